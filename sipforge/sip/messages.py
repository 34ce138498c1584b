"""SIP messages and related structures."""

from __future__ import annotations

from enum import Enum
from typing import Any

from typing_extensions import Self

from sipforge.constants import CRLF, SIP_VERSION, SUPPORTED_SIP_VERSIONS
from sipforge.exceptions import SIPParseError, SIPUnsupportedVersion

from .headers import CSeqHeader, Headers


__all__ = [
    "SIPMethod",
    "SIPRequest",
]


class SIPMethod(Enum):
    """Enum for SIP requests methods, along with their description."""

    description: str

    def __new__(cls, method: str, description: str) -> Self:  # noqa: D102
        obj = object.__new__(cls)
        obj._value_ = method
        obj.description = description
        return obj

    REGISTER = (
        "REGISTER",
        "Register the URI listed in the To-header field with a location server "
        "and associates it with the network address given in a Contact header field.",
    )
    INVITE = (
        "INVITE",
        "Initiate a dialog for establishing a call. The request is sent by "
        "a user agent client to a user agent server.",
    )
    BYE = (
        "BYE",
        "Signal termination of a dialog and end a call.",
    )

    def __str__(self) -> str:
        return str(self.value)


class SIPRequest:
    """
    SIP requests implementation, as defined in :rfc:`3261#section-7.1`.

    Only the text rendering is handled here, sending is up to the transport.

    :param method: SIP method of the request.
    :param uri: Request-URI of the request.
    :param headers: SIP headers of the request.
    :param body: SIP body of the request, if any.
    :param version: SIP version of the request.
    """

    def __init__(
        self,
        method: SIPMethod,
        uri: str,
        headers: Headers,
        body: str | None = None,
        version: str = SIP_VERSION,
    ):
        if version not in SUPPORTED_SIP_VERSIONS:
            raise SIPUnsupportedVersion(f"Unsupported SIP version: {version}")
        cseq = headers.get("CSeq")
        if isinstance(cseq, CSeqHeader) and cseq.method is not method:
            raise SIPParseError(
                f"CSeq method {cseq.method} does not match request method {method}"
            )

        self.method: SIPMethod = method
        self.uri: str = uri
        self.version: str = version
        self.headers: Headers = headers
        self.body: str | None = body

    @property
    def start_line(self) -> str:
        """Request line of the SIP message."""
        return f"{self.method} {self.uri} {self.version}"

    @property
    def call_id(self) -> str | None:
        """The Call-ID of the request, if set."""
        call_id = self.headers.get("Call-ID")
        return call_id.raw_value if call_id is not None else None

    def __str__(self) -> str:
        return f"{self.start_line}{CRLF}{self.headers}{CRLF}{CRLF}{self.body or ''}"

    def serialize(self) -> bytes:
        """Render the request as it goes on the wire."""
        return str(self).encode("utf-8")

    def __bytes__(self) -> bytes:
        return self.serialize()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}> {self.start_line}"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, SIPRequest) and (
            (self.method, self.uri, self.version, self.headers, self.body)
            == (other.method, other.uri, other.version, other.headers, other.body)
        )
