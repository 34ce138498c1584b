"""
Digest access authentication, as described in :rfc:`2617` and :rfc:`7616`,
for answering SIP registrar and proxy challenges (:rfc:`3261#section-22.4`).
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from dataclasses import field as dataclass_field
from typing import Any, Mapping

from frozendict import frozendict
from typing_extensions import Self

from sipforge.constants import DIGEST_ALGORITHM, DIGEST_CNONCE_SIZE, DIGEST_QOP_AUTH
from sipforge.exceptions import (
    MalformedChallenge,
    SIPParseError,
    UnsupportedAlgorithm,
    UnsupportedQoP,
)
from sipforge.helpers import RandomSource, SystemRandomSource, slots_dataclass


__all__ = [
    "md5_hex",
    "hex8",
    "strip_quotes",
    "AuthCredentials",
    "AuthChallenge",
    "DigestResponse",
    "DigestAuthenticator",
    "default_authenticator",
]


_logger = logging.getLogger(__name__)


def md5_hex(value: str) -> str:
    """Lowercase hexadecimal MD5 digest of the UTF-8 encoded string."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()  # noqa: S324


def hex8(number: int) -> str:
    """The 8 rightmost hexadecimal digits of the number, zero padded."""
    return f"{number & 0xFFFFFFFF:08x}"


def strip_quotes(value: str | None) -> str:
    """Remove every double quote from the value (not just surrounding ones)."""
    return (value or "").replace('"', "")


@slots_dataclass(frozen=True)
class AuthCredentials:
    """Username and password used to answer authentication challenges."""

    username: str
    password: str = dataclass_field(repr=False)


# param=value pairs, where value may be a quoted string containing commas
_CHALLENGE_PARAM_RE = re.compile(r'\s*([\w-]+)\s*=\s*("(?:[^"\\]|\\.)*"|[^,]*)\s*(?:,|$)')

_CHALLENGE_KNOWN_PARAMS: frozenset[str] = frozenset(
    {"realm", "nonce", "qop", "opaque", "algorithm", "stale"}
)


@slots_dataclass(frozen=True)
class AuthChallenge:
    """
    A digest challenge received in a WWW-Authenticate or Proxy-Authenticate header.

    Values are kept as received, quote stripping happens when they are used.
    Parameters other than the known ones are kept in ``params``.
    """

    realm: str | None
    nonce: str | None
    qop: str | None = None
    opaque: str | None = None
    algorithm: str | None = None
    stale: str | None = None
    params: Mapping[str, str] = dataclass_field(default_factory=frozendict)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> Self:
        """Create a challenge from a mapping of parameter names to raw values."""
        lowered = {name.lower(): value for name, value in params.items()}
        known: dict[str, Any] = {
            name: lowered[name] for name in _CHALLENGE_KNOWN_PARAMS if name in lowered
        }
        extra = {
            name: value
            for name, value in params.items()
            if name.lower() not in _CHALLENGE_KNOWN_PARAMS
        }
        known.setdefault("realm", None)
        known.setdefault("nonce", None)
        return cls(**known, params=frozendict(extra))

    @classmethod
    def parse(cls, raw_value: str) -> Self:
        """
        Parse the value of a WWW-Authenticate / Proxy-Authenticate header.

        :param raw_value: the header value, starting with the ``Digest`` scheme.
        :return: the parsed challenge.
        :raises SIPParseError: if the scheme is not Digest.
        """
        scheme, _, params_str = raw_value.strip().partition(" ")
        if scheme.lower() != "digest":
            raise SIPParseError(f"Unsupported authentication scheme: {scheme}")
        return cls.from_params(parse_auth_params(params_str))

    def items(self) -> list[tuple[str, str]]:
        """All the challenge parameters that are set, quotes stripped, known ones first."""
        known = [
            (name, strip_quotes(value))
            for name in ("realm", "nonce", "qop", "opaque", "algorithm", "stale")
            if (value := getattr(self, name)) is not None
        ]
        return known + [(name, strip_quotes(value)) for name, value in self.params.items()]


def parse_auth_params(params_str: str) -> dict[str, str]:
    """Split a comma separated list of ``name=value`` auth params, keeping values raw."""
    return {
        match.group(1): match.group(2).strip()
        for match in _CHALLENGE_PARAM_RE.finditer(params_str)
    }


@slots_dataclass(frozen=True)
class DigestResponse:
    """The computed digest fields for an Authorization header."""

    uri: str
    username: str
    response: str
    nc: str | None = None
    cnonce: str | None = None

    def items(self) -> list[tuple[str, str]]:
        """The fields that are set, in the order they go in the Authorization header."""
        return [
            (name, value)
            for name in ("uri", "username", "nc", "cnonce", "response")
            if (value := getattr(self, name)) is not None
        ]


class DigestAuthenticator:
    """
    Computes digest responses to authentication challenges.

    Each instance owns a nonce-count counter, shared by all the ``qop=auth``
    challenges it answers: it starts at zero, is incremented once per
    ``qop=auth`` computation, and never goes back.
    Increments are serialized with a lock, so an instance can be shared by threads.

    :param random_source: the source of random bytes for client nonces.
    """

    def __init__(self, random_source: RandomSource | None = None):
        self._random_source: RandomSource = random_source or SystemRandomSource()
        self._nonce_count: int = 0
        self._lock = threading.Lock()

    @property
    def nonce_count(self) -> int:
        """The last nonce-count value used."""
        with self._lock:
            return self._nonce_count

    def _next_nonce_count(self) -> int:
        with self._lock:
            self._nonce_count += 1
            return self._nonce_count

    def generate_cnonce(self) -> str:
        """Generate a random client nonce, hex-encoded."""
        return self._random_source.random_bytes(DIGEST_CNONCE_SIZE).hex()

    def compute_digest(
        self,
        credentials: AuthCredentials,
        challenge: AuthChallenge,
        method: str,
        request_uri: str,
        client_nonce: str | None = None,
    ) -> DigestResponse:
        """
        Compute the digest response for the given challenge.

        :param credentials: the username and password to authenticate with.
        :param challenge: the challenge received from the registrar or proxy.
        :param method: the method of the request being authenticated.
        :param request_uri: the Request-URI of the request being authenticated.
        :param client_nonce: the client nonce to use with ``qop=auth``,
            a random one is generated if not given.
        :return: the digest fields for the Authorization header.
        :raises MalformedChallenge: if realm or nonce are missing or empty.
        :raises UnsupportedQoP: if the challenge qop is set to something else than ``auth``.
        :raises UnsupportedAlgorithm: if the challenge algorithm is set to something else than ``MD5``.
        """
        realm = strip_quotes(challenge.realm)
        if not realm:
            raise MalformedChallenge("Realm not found in authentication challenge")
        nonce = strip_quotes(challenge.nonce)
        if not nonce:
            raise MalformedChallenge("Nonce not found in authentication challenge")
        algorithm = strip_quotes(challenge.algorithm)
        if algorithm and algorithm.upper() != DIGEST_ALGORITHM:
            raise UnsupportedAlgorithm(f"Unsupported digest algorithm: {algorithm!r}")
        qop = strip_quotes(challenge.qop)
        if qop and qop != DIGEST_QOP_AUTH:
            raise UnsupportedQoP(f"Unsupported Quality Of Protection: {qop!r}")

        ha1 = md5_hex(f"{credentials.username}:{realm}:{credentials.password}")
        ha2 = md5_hex(f"{method}:{request_uri}")

        if not qop:
            _logger.debug(f"Computing digest for {method} {request_uri} in realm {realm!r}")
            return DigestResponse(
                uri=request_uri,
                username=credentials.username,
                response=md5_hex(f"{ha1}:{nonce}:{ha2}"),
            )

        cnonce = client_nonce if client_nonce is not None else self.generate_cnonce()
        nc = hex8(self._next_nonce_count())
        _logger.debug(
            f"Computing digest for {method} {request_uri} in realm {realm!r}, "
            f"qop={qop} nc={nc}"
        )
        response = md5_hex(f"{ha1}:{nonce}:{nc}:{cnonce}:{DIGEST_QOP_AUTH}:{ha2}")
        return DigestResponse(
            uri=request_uri,
            username=credentials.username,
            response=response,
            nc=nc,
            cnonce=cnonce,
        )


default_authenticator: DigestAuthenticator = DigestAuthenticator()
"""Process-wide authenticator, whose nonce-count is shared by all its users."""
