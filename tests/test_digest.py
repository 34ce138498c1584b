from __future__ import annotations

import hashlib
import threading

import pytest

from sipforge.exceptions import (
    MalformedChallenge,
    SIPParseError,
    UnsupportedAlgorithm,
    UnsupportedQoP,
)
from sipforge.sip import AuthChallenge, AuthCredentials, DigestAuthenticator, hex8, md5_hex


def _md5(value: str) -> str:
    return hashlib.md5(value.encode()).hexdigest()  # noqa: S324


class TestHashDigest:
    def test_md5_hex(self):
        assert md5_hex("") == "d41d8cd98f00b204e9800998ecf8427e"
        assert md5_hex("1001:asterisk:1001") == _md5("1001:asterisk:1001")

    @pytest.mark.parametrize(
        ("number", "expected"),
        [(1, "00000001"), (255, "000000ff"), (0x1234ABCD, "1234abcd"), (2**32 + 2, "00000002")],
    )
    def test_hex8(self, number, expected):
        assert hex8(number) == expected


class TestAuthCredentials:
    def test_repr_hides_password(self, extension_credentials):
        assert "1001" in repr(extension_credentials)
        creds = AuthCredentials(username="bob", password="hunter2")
        assert "hunter2" not in repr(creds)

    def test_frozen(self, extension_credentials):
        with pytest.raises(AttributeError):
            extension_credentials.password = "other"  # type: ignore[misc]


class TestAuthChallenge:
    def test_parse(self):
        challenge = AuthChallenge.parse(
            'Digest realm="asterisk", nonce="1585558405/8829", '
            'opaque="a, b", algorithm=MD5, qop="auth", domain="sip:example.com"'
        )
        assert challenge.realm == '"asterisk"'
        assert challenge.nonce == '"1585558405/8829"'
        assert challenge.opaque == '"a, b"'
        assert challenge.algorithm == "MD5"
        assert challenge.qop == '"auth"'
        assert dict(challenge.params) == {"domain": '"sip:example.com"'}

    def test_params_are_immutable(self):
        challenge = AuthChallenge.parse('Digest realm="r", nonce="n", foo="bar"')
        with pytest.raises(TypeError):
            challenge.params["foo"] = "baz"  # type: ignore[index]

    def test_parse_other_scheme(self):
        with pytest.raises(SIPParseError):
            AuthChallenge.parse('Basic realm="r"')

    def test_items_strip_quotes(self):
        challenge = AuthChallenge(realm='"r"', nonce='"n"', qop='"auth"', params={"x": '"y"'})
        assert challenge.items() == [("realm", "r"), ("nonce", "n"), ("qop", "auth"), ("x", "y")]


class TestDigestAuthenticator:
    def test_registration_vector(self, registration_credentials, authenticator):
        challenge = AuthChallenge(
            realm="asterisk",
            nonce="1585558405/882990811414b00b05f596211615f58c",
            qop="auth",
        )
        digest = authenticator.compute_digest(
            registration_credentials,
            challenge,
            "REGISTER",
            "sip:i4hearth.hopto.org:5061",
            client_nonce="L-Q3J80qGDu3n-ZZx1I.8nqvRsJvbIlg",
        )
        assert digest.nc == "00000001"
        assert digest.cnonce == "L-Q3J80qGDu3n-ZZx1I.8nqvRsJvbIlg"
        assert digest.response == "08937ec91dfed2d6a1c969269990cd38"
        assert digest.uri == "sip:i4hearth.hopto.org:5061"
        assert digest.username == "+4915758093134"

    def test_invite_vector(self, extension_credentials, authenticator):
        challenge = AuthChallenge(
            realm='"asterisk"',
            nonce='"1761157360/8582866c17ef9e4cfd024254e37cf1e8"',
            qop='"auth"',
        )
        digest = authenticator.compute_digest(
            extension_credentials,
            challenge,
            "INVITE",
            "sip:61057@192.168.8.102:5060;user=phone",
            client_nonce="/68T/KlfvEd3p7T",
        )
        assert digest.nc == "00000001"
        assert digest.response == "30ffb4415b99d73da5ef3badee2781d1"

    def test_no_qop(self, extension_credentials, authenticator):
        challenge = AuthChallenge(realm="asterisk", nonce="abcdef")
        digest = authenticator.compute_digest(
            extension_credentials, challenge, "REGISTER", "sip:example.com"
        )
        ha1 = _md5("1001:asterisk:1001")
        ha2 = _md5("REGISTER:sip:example.com")
        assert digest.response == _md5(f"{ha1}:abcdef:{ha2}")
        assert digest.nc is None
        assert digest.cnonce is None
        assert authenticator.nonce_count == 0

        again = authenticator.compute_digest(
            extension_credentials, challenge, "REGISTER", "sip:example.com"
        )
        assert again == digest

    def test_nonce_count_increments(self, extension_credentials, authenticator):
        challenge = AuthChallenge(realm="r", nonce="n", qop="auth")
        counts = [
            authenticator.compute_digest(
                extension_credentials, challenge, "REGISTER", "sip:example.com"
            ).nc
            for _ in range(3)
        ]
        assert counts == ["00000001", "00000002", "00000003"]
        assert authenticator.nonce_count == 3

    def test_nonce_count_is_per_instance(self, extension_credentials, fixed_random):
        challenge = AuthChallenge(realm="r", nonce="n", qop="auth")
        first = DigestAuthenticator(random_source=fixed_random)
        second = DigestAuthenticator(random_source=fixed_random)
        first.compute_digest(extension_credentials, challenge, "BYE", "sip:x")
        digest = second.compute_digest(extension_credentials, challenge, "BYE", "sip:x")
        assert digest.nc == "00000001"

    def test_nonce_count_threads(self, extension_credentials, authenticator):
        challenge = AuthChallenge(realm="r", nonce="n", qop="auth")
        results: list[str] = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                nc = authenticator.compute_digest(
                    extension_credentials, challenge, "REGISTER", "sip:x"
                ).nc
                with lock:
                    results.append(nc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == [hex8(n) for n in range(1, 201)]

    def test_generated_cnonce(self, extension_credentials, authenticator):
        challenge = AuthChallenge(realm="r", nonce="n", qop="auth")
        digest = authenticator.compute_digest(extension_credentials, challenge, "BYE", "sip:x")
        assert digest.cnonce is not None
        assert len(digest.cnonce) == 16
        int(digest.cnonce, 16)

    @pytest.mark.parametrize(
        "challenge",
        [
            AuthChallenge(realm="", nonce="n"),
            AuthChallenge(realm='""', nonce="n"),
            AuthChallenge(realm=None, nonce="n"),
            AuthChallenge(realm="r", nonce=None),
        ],
    )
    def test_malformed_challenge(self, extension_credentials, authenticator, challenge):
        with pytest.raises(MalformedChallenge):
            authenticator.compute_digest(extension_credentials, challenge, "REGISTER", "sip:x")
        assert authenticator.nonce_count == 0

    @pytest.mark.parametrize("qop", ["digest", "auth-int", '"auth,auth-int"'])
    def test_unsupported_qop(self, extension_credentials, authenticator, qop):
        challenge = AuthChallenge(realm="r", nonce="n", qop=qop)
        with pytest.raises(UnsupportedQoP):
            authenticator.compute_digest(extension_credentials, challenge, "REGISTER", "sip:x")
        assert authenticator.nonce_count == 0

    @pytest.mark.parametrize("algorithm", ["MD5", '"md5"'])
    def test_md5_algorithm(self, extension_credentials, authenticator, algorithm):
        plain = AuthChallenge(realm="r", nonce="n")
        explicit = AuthChallenge(realm="r", nonce="n", algorithm=algorithm)
        assert authenticator.compute_digest(
            extension_credentials, explicit, "REGISTER", "sip:x"
        ) == authenticator.compute_digest(extension_credentials, plain, "REGISTER", "sip:x")

    @pytest.mark.parametrize("algorithm", ["SHA-256", "MD5-sess", '"SHA-512-256"'])
    def test_unsupported_algorithm(self, extension_credentials, authenticator, algorithm):
        challenge = AuthChallenge(realm="r", nonce="n", qop="auth", algorithm=algorithm)
        with pytest.raises(UnsupportedAlgorithm):
            authenticator.compute_digest(extension_credentials, challenge, "REGISTER", "sip:x")
        assert authenticator.nonce_count == 0

    def test_password_not_logged(self, extension_credentials, authenticator, caplog):
        challenge = AuthChallenge(realm="r", nonce="n", qop="auth")
        creds = AuthCredentials(username="carol", password="s3cr3t-pass")
        with caplog.at_level("DEBUG", logger="sipforge"):
            authenticator.compute_digest(creds, challenge, "REGISTER", "sip:x")
        assert caplog.records
        assert "s3cr3t-pass" not in caplog.text
