from __future__ import annotations

import itertools

import pytest

from sipforge import AuthCredentials, make_contact
from sipforge.sip import DigestAuthenticator, SIPMessageBuilder


FIXED_NOW_MS = 1_700_000_000_000


class FixedClock:
    """Clock stuck at a given time, unless moved on explicitly."""

    def __init__(self, now_ms: int = FIXED_NOW_MS):
        self.now_ms_value = now_ms

    def now_ms(self) -> int:
        return self.now_ms_value


class FixedRandomSource:
    """Deterministic random source, every call returns different bytes."""

    def __init__(self):
        self._counter = itertools.count()

    def random_bytes(self, size: int) -> bytes:
        seed = next(self._counter)
        return bytes((seed + i) % 256 for i in range(size))


@pytest.fixture
def fixed_clock():
    return FixedClock()


@pytest.fixture
def fixed_random():
    return FixedRandomSource()


@pytest.fixture
def authenticator(fixed_random):
    return DigestAuthenticator(random_source=fixed_random)


@pytest.fixture
def builder(fixed_clock, fixed_random, authenticator):
    return SIPMessageBuilder(
        clock=fixed_clock, random_source=fixed_random, authenticator=authenticator
    )


@pytest.fixture
def registration_credentials():
    return AuthCredentials(username="+4915758093134", password="pHZD3uHt%tw$DV7L")


@pytest.fixture
def extension_credentials():
    return AuthCredentials(username="1001", password="1001")


@pytest.fixture
def contact():
    return make_contact("alice", "sip:alice@192.0.2.10:5060")
