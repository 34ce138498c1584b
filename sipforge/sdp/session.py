"""SDP session description and session-level fields, as defined in :rfc:`8866#section-5`."""

from __future__ import annotations

from dataclasses import field as dataclass_field

from typing_extensions import Self, override

from sipforge.constants import CRLF, SUPPORTED_SDP_VERSIONS
from sipforge.exceptions import SDPParseError
from sipforge.helpers import StrValueMixin, slots_dataclass

from .common import SDPAttributeField, SDPConnectionField, SDPField
from .media import SDPMedia


__all__ = [
    "SDPVersionField",
    "SDPOriginField",
    "SDPSessionNameField",
    "SDPTimeField",
    "SDPSession",
]


@slots_dataclass
class SDPVersionField(SDPField):
    """
    SDP protocol version field, defined in :rfc:`8866#section-5.1`.

    Spec::
        v=0
    """

    _type = "v"

    version: int = 0

    def __post_init__(self) -> None:
        if str(self.version) not in SUPPORTED_SDP_VERSIONS:
            raise SDPParseError(f"Unsupported SDP version {self.version}")

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        return cls(version=int(raw_value))

    def serialize(self) -> str:  # noqa: D102
        return str(self.version)


@slots_dataclass
class SDPOriginField(SDPField):
    """
    SDP origin field, defined in :rfc:`8866#section-5.2`.

    Spec::
        o=<username> <sess-id> <sess-version> <nettype> <addrtype> <unicast-address>
    """

    _type = "o"

    username: str
    session_id: int
    session_version: int
    address: str
    nettype: str = "IN"
    addrtype: str = "IP4"

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        username, sess_id, sess_version, nettype, addrtype, address = raw_value.split(" ")
        return cls(
            username=username,
            session_id=int(sess_id),
            session_version=int(sess_version),
            address=address,
            nettype=nettype,
            addrtype=addrtype,
        )

    def serialize(self) -> str:  # noqa: D102
        return (
            f"{self.username} {self.session_id} {self.session_version}"
            f" {self.nettype} {self.addrtype} {self.address}"
        )


@slots_dataclass
class SDPSessionNameField(StrValueMixin, SDPField):
    """
    SDP session name field, defined in :rfc:`8866#section-5.3`.

    Spec::
        s=<session name>
    """

    _type = "s"

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        return cls(**cls.parse_raw_value(raw_value))


@slots_dataclass
class SDPTimeField(SDPField):
    """
    SDP time active field, defined in :rfc:`8866#section-5.9`.

    Spec::
        t=<start-time> <stop-time>
    """

    _type = "t"

    start_time: int = 0
    stop_time: int = 0

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        start_time, stop_time = raw_value.split(" ")
        return cls(start_time=int(start_time), stop_time=int(stop_time))

    def serialize(self) -> str:  # noqa: D102
        return f"{self.start_time} {self.stop_time}"


@slots_dataclass
class SDPSession:
    """
    SDP session description, rendering the session-level fields followed by
    the media descriptions, each line terminated by CRLF.
    """

    origin: SDPOriginField
    session_name: SDPSessionNameField
    connection: SDPConnectionField | None = None
    time: SDPTimeField = dataclass_field(default_factory=SDPTimeField)
    attributes: list[SDPAttributeField] = dataclass_field(default_factory=list)
    media: list[SDPMedia] = dataclass_field(default_factory=list)
    version: SDPVersionField = dataclass_field(default_factory=SDPVersionField)

    def lines(self) -> list[str]:
        """The lines of the session description, without terminators."""
        session_fields: list[SDPField] = [self.version, self.origin, self.session_name]
        if self.connection is not None:
            session_fields.append(self.connection)
        session_fields.append(self.time)
        session_fields.extend(self.attributes)
        lines = [str(f) for f in session_fields]
        for media in self.media:
            lines.extend(str(f) for f in media.fields())
        return lines

    def __str__(self) -> str:
        return "".join(f"{line}{CRLF}" for line in self.lines())

    def serialize(self) -> bytes:
        """Serialize the session description to bytes, as carried in a SIP body."""
        return str(self).encode("utf-8")
