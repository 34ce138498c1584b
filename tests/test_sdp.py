from __future__ import annotations

import logging

import pytest

from sipforge.exceptions import NoCompatibleMedia, SDPParseError
from sipforge.sdp import (
    PCMU,
    MediaDescription,
    MediaFlowType,
    MediaNegotiator,
    MediaOffer,
    OfferOrigin,
    PTimeAttribute,
    RTPMapAttribute,
    SDPAttributeField,
    SDPConnectionField,
    SDPField,
    SDPMediaField,
    SDPOriginField,
    SendRecvFlag,
    SessionDescriptor,
    UnknownAttribute,
    create_session_id_and_version,
    negotiate,
)


REMOTE_ADDRESS = "203.0.113.5"
LOCAL_ADDRESS = "192.0.2.10"
LOCAL_PORT = 40000


def _offer(*media, connection_address=None):
    return MediaOffer(
        origin=OfferOrigin(address=REMOTE_ADDRESS),
        media=tuple(media),
        connection_address=connection_address,
    )


@pytest.fixture
def negotiator(fixed_clock):
    return MediaNegotiator(clock=fixed_clock)


class TestSDPFields:
    @pytest.mark.parametrize(
        "line",
        [
            "v=0",
            "o=- 1700000000000 1700000000000 IN IP4 192.0.2.10",
            "s=sipforge",
            "c=IN IP4 192.0.2.10",
            "t=0 0",
            "m=audio 40000 RTP/AVP 0 8 101",
            "a=sendrecv",
            "a=rtpmap:0 PCMU/8000",
            "a=ptime:20",
            "a=fmtp:101 0-15",
        ],
    )
    def test_parse_serialize(self, line):
        assert str(SDPField.parse(line)) == line

    def test_parse_types(self):
        assert SDPField.parse("o=- 1 2 IN IP4 198.51.100.1") == SDPOriginField(
            username="-", session_id=1, session_version=2, address="198.51.100.1"
        )
        assert SDPField.parse("c=IN IP4 224.2.1.1/127").address == "224.2.1.1"
        assert SDPField.parse("m=audio 30000 RTP/AVP 8 0") == SDPMediaField(
            media="audio", port=30000, protocol="RTP/AVP", formats=[8, 0]
        )
        assert SDPField.parse("a=sendrecv") == SDPAttributeField(SendRecvFlag())
        assert SDPField.parse("a=ptime:30").attribute == PTimeAttribute(30)
        unknown = SDPField.parse("a=fmtp:101 0-15").attribute
        assert isinstance(unknown, UnknownAttribute)
        assert unknown.name == "fmtp"

    @pytest.mark.parametrize(
        "line", ["x=unknown", "no equal sign", "a=sendrecv:value", "a=rtpmap", "v=1", "t=zero"]
    )
    def test_parse_invalid(self, line):
        with pytest.raises(SDPParseError):
            SDPField.parse(line)

    def test_rtpmap_from_media_format(self):
        assert RTPMapAttribute.from_media_format(PCMU).serialize() == "0 PCMU/8000"

    def test_connection_defaults(self):
        assert str(SDPConnectionField(address="192.0.2.10")) == "c=IN IP4 192.0.2.10"


class TestSessionDescriptor:
    def test_id_and_version_from_clock(self, fixed_clock):
        now_ms = fixed_clock.now_ms()
        assert create_session_id_and_version(fixed_clock) == SessionDescriptor(
            id=now_ms, version=now_ms
        )


class TestMediaNegotiator:
    def test_negotiate(self, negotiator):
        offer = MediaOffer.from_dict(
            {
                "origin": {"address": REMOTE_ADDRESS},
                "media": [{"media": "audio", "fmt": [8, 0], "port": 30000}],
            }
        )
        negotiation = negotiator.negotiate(LOCAL_ADDRESS, LOCAL_PORT, offer)
        assert negotiation.remote_address == REMOTE_ADDRESS
        assert negotiation.remote_port == 30000
        assert f"m=audio {LOCAL_PORT} RTP/AVP 0\r\n" in negotiation.sdp_answer

    def test_offer_from_line_keys(self, negotiator):
        offer = MediaOffer.from_dict(
            {
                "o": {"address": REMOTE_ADDRESS},
                "m": [{"media": "audio", "fmt": [8, 0], "port": 30000}],
            }
        )
        assert offer.origin == OfferOrigin(address=REMOTE_ADDRESS)
        assert offer.media == (MediaDescription(media="audio", fmt=(8, 0), port=30000),)
        assert offer.connection_address is None
        negotiation = negotiator.negotiate(LOCAL_ADDRESS, LOCAL_PORT, offer)
        assert (negotiation.remote_address, negotiation.remote_port) == (REMOTE_ADDRESS, 30000)

        with_connection = MediaOffer.from_dict(
            {
                "o": {"address": REMOTE_ADDRESS},
                "c": {"address": "198.51.100.7"},
                "m": [{"media": "audio", "fmt": ["0"], "port": "30000"}],
            }
        )
        assert with_connection.remote_address == "198.51.100.7"
        assert with_connection.media[0].fmt == (0,)

    @pytest.mark.parametrize(
        "data",
        [
            {"m": [{"media": "audio", "fmt": [0], "port": 30000}]},
            {"o": {}, "m": []},
            {"o": {"address": REMOTE_ADDRESS}, "m": [{"media": "audio", "fmt": [0]}]},
            {"o": {"address": REMOTE_ADDRESS}, "m": [{"media": "audio", "fmt": ["x"], "port": 1}]},
        ],
    )
    def test_invalid_offer_dict(self, data):
        with pytest.raises(SDPParseError):
            MediaOffer.from_dict(data)

    def test_answer_text(self, negotiator, fixed_clock):
        now_ms = fixed_clock.now_ms()
        offer = _offer(MediaDescription(media="audio", fmt=(0,), port=30000))
        answer = negotiator.negotiate(LOCAL_ADDRESS, LOCAL_PORT, offer).sdp_answer
        assert answer == (
            "v=0\r\n"
            f"o=- {now_ms} {now_ms} IN IP4 {LOCAL_ADDRESS}\r\n"
            "s=sipforge\r\n"
            f"c=IN IP4 {LOCAL_ADDRESS}\r\n"
            "t=0 0\r\n"
            f"m=audio {LOCAL_PORT} RTP/AVP 0\r\n"
            "a=sendrecv\r\n"
            "a=rtpmap:0 PCMU/8000\r\n"
            "a=ptime:20\r\n"
        )

    def test_answer_session(self, negotiator):
        session = negotiator.build_answer(
            LOCAL_ADDRESS, LOCAL_PORT, SessionDescriptor(id=1, version=2)
        )
        assert session.origin.session_id == 1
        assert session.origin.session_version == 2
        assert session.media[0].flow_type is MediaFlowType.SENDRECV
        assert session.serialize() == str(session).encode()

    def test_session_name(self, fixed_clock):
        negotiator = MediaNegotiator(clock=fixed_clock, session_name="my phone")
        answer = negotiator.negotiate(
            LOCAL_ADDRESS, LOCAL_PORT, _offer(MediaDescription("audio", (0,), 30000))
        ).sdp_answer
        assert "\r\ns=my phone\r\n" in answer

    def test_first_compatible_media(self, negotiator, caplog):
        offer = _offer(
            MediaDescription(media="video", fmt=(0,), port=30010),
            MediaDescription(media="audio", fmt=(8,), port=30020),
            MediaDescription(media="audio", fmt=(0, 8), port=30030),
            MediaDescription(media="audio", fmt=(0,), port=30040),
        )
        with caplog.at_level(logging.WARNING, logger="sipforge"):
            negotiation = negotiator.negotiate(LOCAL_ADDRESS, LOCAL_PORT, offer)
        assert negotiation.remote_port == 30030
        assert "compatible media lines" in caplog.text

    def test_connection_address(self, negotiator):
        offer = _offer(
            MediaDescription(media="audio", fmt=(0,), port=30000),
            connection_address="198.51.100.7",
        )
        negotiation = negotiator.negotiate(LOCAL_ADDRESS, LOCAL_PORT, offer)
        assert negotiation.remote_address == "198.51.100.7"

    @pytest.mark.parametrize(
        "media",
        [
            (),
            (MediaDescription(media="audio", fmt=(8, 101), port=30000),),
            (MediaDescription(media="video", fmt=(0,), port=30000),),
        ],
    )
    def test_no_compatible_media(self, negotiator, media):
        with pytest.raises(NoCompatibleMedia):
            negotiator.negotiate(LOCAL_ADDRESS, LOCAL_PORT, _offer(*media))

    def test_module_function(self):
        negotiation = negotiate(
            LOCAL_ADDRESS, LOCAL_PORT, _offer(MediaDescription("audio", (0,), 30000))
        )
        assert negotiation.sdp_answer.startswith("v=0\r\no=- ")
        assert negotiation.sdp_answer.endswith("a=ptime:20\r\n")
