"""Protocol constants and library defaults used by sipforge."""

from __future__ import annotations


CRLF: str = "\r\n"

SUPPORTED_SIP_VERSIONS: list[str] = ["SIP/2.0"]
SUPPORTED_SDP_VERSIONS: list[str] = ["0"]

SIP_VERSION: str = "SIP/2.0"
VIA_PROTOCOL_VERSION: str = "2.0"
VIA_TRANSPORT: str = "UDP"
# RFC 3261 section 8.1.1.7
VIA_BRANCH_MAGIC_COOKIE: str = "z9hG4bK"

DEFAULT_MAX_FORWARDS: int = 70
DEFAULT_REGISTER_EXPIRES: int = 300

REGISTER_ALLOW: tuple[str, ...] = (
    "PRACK",
    "INVITE",
    "ACK",
    "BYE",
    "CANCEL",
    "UPDATE",
    "INFO",
    "SUBSCRIBE",
    "NOTIFY",
    "REFER",
    "MESSAGE",
    "OPTIONS",
)
INVITE_ALLOW: tuple[str, ...] = (
    "INVITE",
    "ACK",
    "PRACK",
    "BYE",
    "CANCEL",
    "UPDATE",
    "SUBSCRIBE",
    "NOTIFY",
    "REFER",
    "MESSAGE",
    "OPTIONS",
)
INVITE_SUPPORTED: tuple[str, ...] = ("timer", "100rel")

# Q.850 cause 16, RFC 3326
BYE_REASON_PROTOCOL: str = "Q.850"
BYE_REASON_CAUSE: int = 16
BYE_REASON_TEXT: str = "Normal call clearing"

SDP_CONTENT_TYPE: str = "application/sdp"

DIGEST_ALGORITHM: str = "MD5"
DIGEST_QOP_AUTH: str = "auth"
DIGEST_CNONCE_SIZE: int = 8

DEFAULT_SDP_SESSION_NAME: str = "sipforge"
DEFAULT_SDP_USERNAME: str = "-"
DEFAULT_PTIME: int = 20
