"""SDP media section and related fields, attributes and RTP media formats."""

from __future__ import annotations

import enum
from dataclasses import field as dataclass_field
from typing import Sequence

from typing_extensions import Self, override

from sipforge.constants import CRLF
from sipforge.exceptions import SDPParseError
from sipforge.helpers import IntValueMixin, slots_dataclass

from .common import (
    MediaFlowAttribute,
    SDPAttribute,
    SDPAttributeField,
    SDPConnectionField,
    SDPField,
)


__all__ = [
    "MediaFlowType",
    "RTPMediaType",
    "RTPMediaFormat",
    "PCMU",
    "SDPMediaField",
    "PTimeAttribute",
    "RTPMapAttribute",
    "get_media_flow_type",
    "SDPMedia",
]


class MediaFlowType(enum.Enum):
    """Direction of a media stream, as negotiated through SDP flag attributes."""

    SENDRECV = "sendrecv"
    SENDONLY = "sendonly"
    RECVONLY = "recvonly"
    INACTIVE = "inactive"


class RTPMediaType(enum.Enum):
    """The media type of an RTP payload format."""

    AUDIO = "audio"
    VIDEO = "video"


@slots_dataclass(frozen=True)
class RTPMediaFormat:
    """An RTP payload format, as listed in :rfc:`3551#section-6`."""

    payload_type: int
    media_type: RTPMediaType
    encoding_name: str
    clock_rate: int
    channels: int | None = None


PCMU = RTPMediaFormat(0, RTPMediaType.AUDIO, "PCMU", 8000, 1)


@slots_dataclass
class SDPMediaField(SDPField):
    """
    SDP media field, defined in :rfc:`8866#section-5.14`.

    Spec::
        m=<media> <port> <proto> <fmt> ...
    """

    _type = "m"

    media: str
    port: int
    protocol: str
    formats: list[int]

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        media, ports_spec, protocol, *formats = raw_value.split(" ")
        return cls(
            media=media,
            port=int(ports_spec.split("/")[0]),
            protocol=protocol,
            formats=[int(x) for x in formats],
        )

    def serialize(self) -> str:  # noqa: D102
        formats_joined: str = " ".join(str(x) for x in self.formats)
        return f"{self.media} {self.port} {self.protocol} {formats_joined}"


@slots_dataclass
class PTimeAttribute(IntValueMixin, SDPAttribute):
    """
    SDP media attribute for packet time, defined in :rfc:`8866#section-6.4`.

    Spec::
        ptime:<packet time>
    """

    _name = "ptime"
    _is_flag = False

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        if raw_value is None:
            raise SDPParseError("ptime attribute requires a value")
        return cls(**cls.parse_raw_value(raw_value))


@slots_dataclass
class RTPMapAttribute(SDPAttribute):
    """
    SDP media attribute for RTP map, defined in :rfc:`8866#section-6.6`.

    Spec::
        rtpmap:<payload type> <encoding name>/<clock rate>[/<encoding parameters>]
    """

    _name = "rtpmap"
    _is_flag = False

    payload_type: int
    encoding_name: str
    clock_rate: int
    encoding_parameters: str | None = None

    @classmethod
    def from_media_format(cls, media_format: RTPMediaFormat) -> Self:
        """Map an RTP payload format, leaving mono channel count implicit."""
        channels = media_format.channels
        return cls(
            payload_type=media_format.payload_type,
            encoding_name=media_format.encoding_name,
            clock_rate=media_format.clock_rate,
            encoding_parameters=str(channels) if channels and channels > 1 else None,
        )

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        if raw_value is None:
            raise SDPParseError("rtpmap attribute requires a value")
        payload_type, encoding = raw_value.split(" ", maxsplit=1)
        encoding_name, clock_rate, *more = encoding.split("/", maxsplit=2)
        return cls(
            payload_type=int(payload_type),
            encoding_name=encoding_name,
            clock_rate=int(clock_rate),
            encoding_parameters=more[0] if more else None,
        )

    def serialize(self) -> str:  # noqa: D102
        data = f"{self.payload_type} {self.encoding_name}/{self.clock_rate}"
        if self.encoding_parameters is not None:
            data += f"/{self.encoding_parameters}"
        return data


def get_media_flow_type(
    attributes: Sequence[SDPAttributeField],
) -> MediaFlowType | None:
    """Return the media flow type from the given media attributes."""
    media_flow_type: MediaFlowType | None = None
    for attribute_field in attributes:
        if isinstance(attribute_field.attribute, MediaFlowAttribute):
            if media_flow_type is not None:
                raise SDPParseError("Multiple media flow attributes in media description")
            media_flow_type = MediaFlowType(attribute_field.attribute.name)
    return media_flow_type


@slots_dataclass
class SDPMedia:
    """SDP media description section, defined in :rfc:`8866#section-5.14`."""

    media: SDPMediaField
    connection: SDPConnectionField | None = None
    attributes: list[SDPAttributeField] = dataclass_field(default_factory=list)

    @property
    def flow_type(self) -> MediaFlowType | None:
        """The media direction, if declared."""
        return get_media_flow_type(self.attributes)

    def fields(self) -> list[SDPField]:
        """The fields of the section, in the order they are serialized."""
        section_fields: list[SDPField] = [self.media]
        if self.connection is not None:
            section_fields.append(self.connection)
        section_fields.extend(self.attributes)
        return section_fields

    def __str__(self) -> str:
        return CRLF.join(str(f) for f in self.fields())
