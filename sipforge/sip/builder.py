"""Builders for the SIP requests of a user agent client: REGISTER, INVITE and BYE."""

from __future__ import annotations

import copy
import itertools
import logging
import uuid
from typing import Iterable

from sipforge.constants import (
    BYE_REASON_CAUSE,
    BYE_REASON_PROTOCOL,
    BYE_REASON_TEXT,
    DEFAULT_MAX_FORWARDS,
    DEFAULT_REGISTER_EXPIRES,
    INVITE_ALLOW,
    INVITE_SUPPORTED,
    REGISTER_ALLOW,
    SDP_CONTENT_TYPE,
    VIA_BRANCH_MAGIC_COOKIE,
)
from sipforge.helpers import Clock, RandomSource, SystemClock, SystemRandomSource
from sipforge.structures import Contact

from . import headers as hdr
from .digest import AuthChallenge, AuthCredentials, DigestAuthenticator, default_authenticator
from .messages import SIPMethod, SIPRequest


__all__ = [
    "generate_via_branch",
    "generate_call_id",
    "generate_tag",
    "SIPMessageBuilder",
    "default_builder",
    "build_register",
    "build_invite",
    "build_bye",
    "augment_with_authorization",
]


_logger = logging.getLogger(__name__)


# shared by all builders, so that tokens stay unique within the process
_token_sequence = itertools.count(1)


def _generate_token(clock: Clock) -> str:
    return f"{clock.now_ms()}.{next(_token_sequence)}"


def generate_via_branch(clock: Clock) -> str:
    """Generate a Via branch, starting with the :rfc:`3261#section-8.1.1.7` magic cookie."""
    return f"{VIA_BRANCH_MAGIC_COOKIE}{_generate_token(clock)}"


def generate_call_id(clock: Clock, local_host: str) -> str:
    """Generate a unique call ID for SIP sessions, using a timestamp and the local host name."""
    return f"{_generate_token(clock)}@{local_host}"


def generate_tag(random_source: RandomSource) -> str:
    """Generate a tag for From/To headers for SIP sessions, as a random UUID."""
    return str(uuid.UUID(bytes=random_source.random_bytes(16), version=4))


class SIPMessageBuilder:
    """
    Builds the SIP requests needed to register a client and place a call.

    Every build call generates a new Via branch, retries included, so each
    returned request is a new transaction.

    :param clock: the clock used for branch and Call-ID tokens.
    :param random_source: the random source used for tags.
    :param authenticator: the digest authenticator used to answer challenges,
        defaults to the process-wide one.
    :param max_forwards: the Max-Forwards value for all requests.
    :param register_allow: the methods listed in the Allow header of REGISTER requests.
    :param invite_allow: the methods listed in the Allow header of INVITE requests.
    :param invite_supported: the extensions listed in the Supported header of INVITE requests.
    :param bye_reason: the Reason header added to BYE requests.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        random_source: RandomSource | None = None,
        authenticator: DigestAuthenticator | None = None,
        *,
        max_forwards: int = DEFAULT_MAX_FORWARDS,
        register_allow: Iterable[str] = REGISTER_ALLOW,
        invite_allow: Iterable[str] = INVITE_ALLOW,
        invite_supported: Iterable[str] = INVITE_SUPPORTED,
        bye_reason: hdr.ReasonHeader | None = None,
    ):
        self.clock: Clock = clock or SystemClock()
        self.random_source: RandomSource = random_source or SystemRandomSource()
        self.authenticator: DigestAuthenticator = authenticator or default_authenticator
        self.max_forwards: int = max_forwards
        self.register_allow: tuple[str, ...] = tuple(register_allow)
        self.invite_allow: tuple[str, ...] = tuple(invite_allow)
        self.invite_supported: tuple[str, ...] = tuple(invite_supported)
        self.bye_reason: hdr.ReasonHeader = bye_reason or hdr.ReasonHeader(
            protocol=BYE_REASON_PROTOCOL, cause=BYE_REASON_CAUSE, text=BYE_REASON_TEXT
        )

    def generate_via_hdr(self, host: str, port: int) -> hdr.ViaHeader:
        """Generate a Via header with a new branch, asking for rport."""
        via_entry = hdr.ViaEntry(
            host=host, port=port, branch=generate_via_branch(self.clock), rport=True
        )
        return hdr.ViaHeader([via_entry])

    def generate_call_id(self, host: str) -> str:  # noqa: D102
        return generate_call_id(self.clock, host)

    def generate_tag(self) -> str:  # noqa: D102
        return generate_tag(self.random_source)

    def build_register(
        self,
        destination_uri: str,
        host: str,
        port: int,
        contact: Contact,
        user_agent: str,
        seq: int,
        expires: int = DEFAULT_REGISTER_EXPIRES,
    ) -> SIPRequest:
        """
        Build a REGISTER request, as described in :rfc:`3261#section-10.2`.

        :param destination_uri: the registrar URI, used as Request-URI.
        :param host: the local host, for the Via header and the Call-ID.
        :param port: the local port, for the Via header.
        :param contact: the address of record being registered.
        :param user_agent: the User-Agent header value.
        :param seq: the CSeq sequence number.
        :param expires: the requested registration duration, in seconds.
        :return: the REGISTER request, with a fresh Call-ID and From tag.
        """
        headers: hdr.Headers = hdr.Headers(
            self.generate_via_hdr(host, port),
            hdr.MaxForwardsHeader(self.max_forwards),
            hdr.FromHeader(contact, tag=self.generate_tag()),
            hdr.ToHeader(contact),
            hdr.CallIDHeader(self.generate_call_id(host)),
            hdr.CSeqHeader(seq, SIPMethod.REGISTER),
            hdr.UserAgentHeader(user_agent),
            hdr.ContactHeader([contact]),
            hdr.ExpiresHeader(expires),
            hdr.AllowHeader(list(self.register_allow)),
            hdr.ContentLengthHeader(0),
        )
        request = SIPRequest(SIPMethod.REGISTER, destination_uri, headers)
        _logger.debug(f"Built {request!r} with Call-ID {request.call_id}")
        return request

    def build_invite(
        self,
        destination_uri: str,
        host: str,
        port: int,
        contact: Contact,
        user_agent: str,
        seq: int,
        from_tag: str,
        sdp_payload: str,
    ) -> SIPRequest:
        """
        Build an INVITE request carrying an SDP offer, as described in :rfc:`3261#section-13.2`.

        :param destination_uri: the callee URI, used as Request-URI and To address.
        :param host: the local host, for the Via, From headers and the Call-ID.
        :param port: the local port, for the Via and From headers.
        :param contact: the local contact address.
        :param user_agent: the User-Agent header value.
        :param seq: the CSeq sequence number.
        :param from_tag: the From tag of the dialog.
        :param sdp_payload: the SDP offer, copied verbatim into the body.
        :return: the INVITE request, with a fresh Call-ID.
        """
        headers: hdr.Headers = hdr.Headers(
            self.generate_via_hdr(host, port),
            hdr.MaxForwardsHeader(self.max_forwards),
            hdr.FromHeader(Contact(name=None, uri=f"sip:{host}:{port}"), tag=from_tag),
            hdr.ToHeader(Contact(name=None, uri=destination_uri)),
            hdr.CallIDHeader(self.generate_call_id(host)),
            hdr.CSeqHeader(seq, SIPMethod.INVITE),
            hdr.UserAgentHeader(user_agent),
            hdr.ContactHeader([contact]),
            hdr.AllowHeader(list(self.invite_allow)),
            hdr.SupportedHeader(list(self.invite_supported)),
            hdr.ContentTypeHeader(SDP_CONTENT_TYPE),
            hdr.ContentLengthHeader(len(sdp_payload.encode("utf-8"))),
        )
        request = SIPRequest(SIPMethod.INVITE, destination_uri, headers, body=sdp_payload)
        _logger.debug(f"Built {request!r} with Call-ID {request.call_id}")
        return request

    def build_bye(
        self,
        destination_uri: str,
        host: str,
        port: int,
        contact: Contact,
        user_agent: str,
        seq: int,
        call_id: str,
        from_tag: str,
        to_tag: str,
    ) -> SIPRequest:
        """
        Build a BYE request terminating an established dialog, see :rfc:`3261#section-15.1.1`.

        The Call-ID is the one of the dialog, as given by the caller.
        """
        headers: hdr.Headers = hdr.Headers(
            self.generate_via_hdr(host, port),
            hdr.MaxForwardsHeader(self.max_forwards),
            hdr.FromHeader(contact, tag=from_tag),
            hdr.ToHeader(contact, tag=to_tag),
            hdr.CallIDHeader(call_id),
            hdr.CSeqHeader(seq, SIPMethod.BYE),
            hdr.UserAgentHeader(user_agent),
            copy.copy(self.bye_reason),
            hdr.ContentLengthHeader(0),
        )
        request = SIPRequest(SIPMethod.BYE, destination_uri, headers)
        _logger.debug(f"Built {request!r} with Call-ID {call_id}")
        return request

    def augment_with_authorization(
        self,
        request: SIPRequest,
        credentials: AuthCredentials,
        challenge: AuthChallenge,
        *,
        is_proxy: bool = False,
        client_nonce: str | None = None,
    ) -> hdr.Headers:
        """
        Answer an authentication challenge for the given request.

        :param request: the request that was challenged, left untouched.
        :param credentials: the username and password to authenticate with.
        :param challenge: the challenge from the 401 or 407 response.
        :param is_proxy: whether the challenge came from a proxy (407), in which case
            a Proxy-Authorization header is added instead of an Authorization one.
        :param client_nonce: the client nonce to use, a random one if not given.
        :return: a copy of the request headers, with the authorization header added
            or replaced.
        :raises MalformedChallenge: if the challenge lacks a realm or a nonce.
        :raises UnsupportedQoP: if the challenge asks for a qop other than ``auth``.
        """
        digest = self.authenticator.compute_digest(
            credentials,
            challenge,
            request.method.value,
            request.uri,
            client_nonce=client_nonce,
        )
        header_cls: type[hdr.AuthorizationHeader] = (
            hdr.ProxyAuthorizationHeader if is_proxy else hdr.AuthorizationHeader
        )
        headers: hdr.Headers = copy.deepcopy(request.headers)
        headers.add(header_cls.from_digest(challenge, digest))
        _logger.debug(f"Added {header_cls._name} header to {request!r}")  # noqa: SLF001
        return headers

    def authorize_request(
        self,
        request: SIPRequest,
        credentials: AuthCredentials,
        challenge: AuthChallenge,
        *,
        is_proxy: bool = False,
        client_nonce: str | None = None,
    ) -> SIPRequest:
        """Like :meth:`augment_with_authorization`, but return a new request with the new headers."""
        headers = self.augment_with_authorization(
            request, credentials, challenge, is_proxy=is_proxy, client_nonce=client_nonce
        )
        return SIPRequest(
            request.method, request.uri, headers, body=request.body, version=request.version
        )


default_builder: SIPMessageBuilder = SIPMessageBuilder()


def build_register(
    destination_uri: str,
    host: str,
    port: int,
    contact: Contact,
    user_agent: str,
    seq: int,
    expires: int = DEFAULT_REGISTER_EXPIRES,
) -> SIPRequest:
    """Build a REGISTER request with the default builder."""
    return default_builder.build_register(
        destination_uri, host, port, contact, user_agent, seq, expires=expires
    )


def build_invite(
    destination_uri: str,
    host: str,
    port: int,
    contact: Contact,
    user_agent: str,
    seq: int,
    from_tag: str,
    sdp_payload: str,
) -> SIPRequest:
    """Build an INVITE request with the default builder."""
    return default_builder.build_invite(
        destination_uri, host, port, contact, user_agent, seq, from_tag, sdp_payload
    )


def build_bye(
    destination_uri: str,
    host: str,
    port: int,
    contact: Contact,
    user_agent: str,
    seq: int,
    call_id: str,
    from_tag: str,
    to_tag: str,
) -> SIPRequest:
    """Build a BYE request with the default builder."""
    return default_builder.build_bye(
        destination_uri, host, port, contact, user_agent, seq, call_id, from_tag, to_tag
    )


def augment_with_authorization(
    request: SIPRequest,
    credentials: AuthCredentials,
    challenge: AuthChallenge,
    *,
    is_proxy: bool = False,
    client_nonce: str | None = None,
) -> hdr.Headers:
    """Answer an authentication challenge with the default builder and authenticator."""
    return default_builder.augment_with_authorization(
        request, credentials, challenge, is_proxy=is_proxy, client_nonce=client_nonce
    )
