"""
Negotiation of a single-codec audio stream: picks the PCMU media line of an
SDP offer and renders the matching SDP answer (:rfc:`3264#section-6`).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from typing_extensions import Self

from sipforge.constants import DEFAULT_PTIME, DEFAULT_SDP_SESSION_NAME, DEFAULT_SDP_USERNAME
from sipforge.exceptions import NoCompatibleMedia, SDPParseError
from sipforge.helpers import Clock, SystemClock, slots_dataclass

from .common import SDPAttributeField, SDPConnectionField, SendRecvFlag
from .media import PCMU, PTimeAttribute, RTPMapAttribute, RTPMediaFormat, SDPMedia, SDPMediaField
from .session import SDPOriginField, SDPSession, SDPSessionNameField


__all__ = [
    "OfferOrigin",
    "MediaDescription",
    "MediaOffer",
    "MediaNegotiation",
    "SessionDescriptor",
    "create_session_id_and_version",
    "MediaNegotiator",
    "default_negotiator",
    "negotiate",
]


_logger = logging.getLogger(__name__)


@slots_dataclass(frozen=True)
class OfferOrigin:
    """The origin of an SDP offer, only its address is relevant."""

    address: str


@slots_dataclass(frozen=True)
class MediaDescription:
    """A media line of an SDP offer: media type, payload formats and port."""

    media: str
    fmt: tuple[int, ...]
    port: int

    def declares(self, media_format: RTPMediaFormat) -> bool:
        """Whether this line is of the format media type and lists its payload type."""
        return (
            self.media == media_format.media_type.value
            and media_format.payload_type in self.fmt
        )


@slots_dataclass(frozen=True)
class MediaOffer:
    """
    An SDP offer, as already parsed by the caller.

    :param origin: the offer origin.
    :param media: the offered media lines, in offer order.
    :param connection_address: the session connection address, if the offer has one.
    """

    origin: OfferOrigin
    media: tuple[MediaDescription, ...]
    connection_address: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """
        Create an offer from its plain mapping form, for instance::

            {"o": {"address": "203.0.113.5"},
             "m": [{"media": "audio", "fmt": [8, 0], "port": 30000}]}

        The SDP line letters ``o``, ``m`` and ``c`` can also be spelled out as
        ``origin``, ``media`` and ``connection``. An optional connection mapping
        with an ``address`` key gives the connection address.

        :raises SDPParseError: if the origin address is missing, or a media line
            is incomplete or has non-numeric formats or port.
        """
        origin = data.get("o", data.get("origin")) or {}
        if not origin.get("address"):
            raise SDPParseError("Offer has no origin address")
        connection = data.get("c", data.get("connection")) or {}
        try:
            media_lines = tuple(
                MediaDescription(
                    media=media["media"],
                    fmt=tuple(int(fmt) for fmt in media["fmt"]),
                    port=int(media["port"]),
                )
                for media in data.get("m", data.get("media")) or ()
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SDPParseError(f"Invalid media description in offer: {e}") from e
        return cls(
            origin=OfferOrigin(address=origin["address"]),
            media=media_lines,
            connection_address=connection.get("address"),
        )

    @property
    def remote_address(self) -> str:
        """Where the remote media is: the connection address if any, else the origin one."""
        return self.connection_address or self.origin.address


@slots_dataclass(frozen=True)
class MediaNegotiation:
    """The result of a negotiation: where to send media, and the SDP answer text."""

    remote_address: str
    remote_port: int
    sdp_answer: str


@slots_dataclass(frozen=True)
class SessionDescriptor:
    """The session id and version of the SDP origin line."""

    id: int
    version: int


def create_session_id_and_version(clock: Clock | None = None) -> SessionDescriptor:
    """Create a session descriptor, both values set to the current epoch milliseconds."""
    now_ms = (clock or SystemClock()).now_ms()
    return SessionDescriptor(id=now_ms, version=now_ms)


@slots_dataclass
class MediaNegotiator:
    """
    Answers SDP offers for a single audio codec.

    :param clock: the clock used for the session id and version.
    :param session_name: the session name of the answers.
    :param media_format: the only payload format accepted, PCMU by default.
    :param ptime: the packet time of the answers, in milliseconds.
    :param username: the origin username of the answers.
    """

    clock: Clock | None = None
    session_name: str = DEFAULT_SDP_SESSION_NAME
    media_format: RTPMediaFormat = PCMU
    ptime: int = DEFAULT_PTIME
    username: str = DEFAULT_SDP_USERNAME

    def __post_init__(self) -> None:
        if self.clock is None:
            self.clock = SystemClock()

    def select_media(self, offer: MediaOffer) -> MediaDescription:
        """
        Select the first offered media line for our payload format.

        :raises NoCompatibleMedia: if no media line lists the format.
        """
        candidates = [media for media in offer.media if media.declares(self.media_format)]
        if not candidates:
            raise NoCompatibleMedia(
                f"No {self.media_format.media_type.value} media with "
                f"{self.media_format.encoding_name} payload in the offer"
            )
        if len(candidates) > 1:
            _logger.warning(
                f"{len(candidates)} compatible media lines offered, using the first one"
            )
        return candidates[0]

    def build_answer(
        self,
        local_address: str,
        local_port: int,
        descriptor: SessionDescriptor | None = None,
    ) -> SDPSession:
        """Build the SDP answer for a media stream received on the given address and port."""
        if descriptor is None:
            descriptor = create_session_id_and_version(self.clock)
        media = SDPMedia(
            media=SDPMediaField(
                media=self.media_format.media_type.value,
                port=local_port,
                protocol="RTP/AVP",
                formats=[self.media_format.payload_type],
            ),
            attributes=[
                SDPAttributeField(SendRecvFlag()),
                SDPAttributeField(RTPMapAttribute.from_media_format(self.media_format)),
                SDPAttributeField(PTimeAttribute(self.ptime)),
            ],
        )
        return SDPSession(
            origin=SDPOriginField(
                username=self.username,
                session_id=descriptor.id,
                session_version=descriptor.version,
                address=local_address,
            ),
            session_name=SDPSessionNameField(self.session_name),
            connection=SDPConnectionField(address=local_address),
            media=[media],
        )

    def negotiate(self, local_address: str, local_port: int, offer: MediaOffer) -> MediaNegotiation:
        """
        Answer an SDP offer.

        :param local_address: the address where we receive media.
        :param local_port: the port where we receive media.
        :param offer: the remote offer.
        :return: the remote media address and port, along with the SDP answer text.
        :raises NoCompatibleMedia: if the offer has no audio line with our payload format.
        """
        selected = self.select_media(offer)
        answer = self.build_answer(local_address, local_port)
        negotiation = MediaNegotiation(
            remote_address=offer.remote_address,
            remote_port=selected.port,
            sdp_answer=str(answer),
        )
        _logger.debug(
            f"Negotiated {self.media_format.encoding_name} with "
            f"{negotiation.remote_address}:{negotiation.remote_port}, "
            f"receiving on {local_address}:{local_port}"
        )
        return negotiation


default_negotiator: MediaNegotiator = MediaNegotiator()


def negotiate(local_address: str, local_port: int, offer: MediaOffer) -> MediaNegotiation:
    """Answer an SDP offer with the default negotiator."""
    return default_negotiator.negotiate(local_address, local_port, offer)
