"""SIP headers classes."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import field as dataclass_field, fields as dataclass_fields
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Mapping,
    TypeVar,
    Union,
    cast,
)

from frozendict import frozendict
from typing_extensions import Self, override

from sipforge.constants import CRLF, VIA_PROTOCOL_VERSION, VIA_TRANSPORT
from sipforge.exceptions import SIPParseError
from sipforge.helpers import (
    DEFAULT,
    CaseInsensitiveDict,
    DefaultType,
    IntValueMixin,
    ListValueMixin,
    ParseableSerializable,
    Registry,
    StrValueMixin,
    SupportsStr,
    slots_dataclass,
)
from sipforge.structures import Contact

from .digest import AuthChallenge, DigestResponse, parse_auth_params, strip_quotes


if TYPE_CHECKING:
    from .messages import SIPMethod


__all__ = [
    "Header",
    "StrHeader",
    "UnknownHeader",
    "IntHeader",
    "ListHeader",
    "MultipleValuesHeader",
    "ViaEntry",
    "ViaHeader",
    "FromToHeader",
    "FromHeader",
    "ToHeader",
    "ContactHeader",
    "CallIDHeader",
    "CSeqHeader",
    "AllowHeader",
    "SupportedHeader",
    "ExpiresHeader",
    "ContentTypeHeader",
    "ContentLengthHeader",
    "MaxForwardsHeader",
    "UserAgentHeader",
    "ReasonHeader",
    "AuthorizationHeader",
    "WWWAuthenticateHeader",
    "ProxyAuthorizationHeader",
    "ProxyAuthenticateHeader",
    "Headers",
]


_H = TypeVar("_H", bound="Header")


class Header(
    Registry[Union[str, DefaultType], "Header"],
    ABC,
    registry=True,
    registry_attr="_name",
):
    """Abstract base dataclass for SIP headers."""

    _name: ClassVar[str | DefaultType]

    @property
    def name(self) -> str:
        """The name of the header."""
        if self._name is DEFAULT:
            raise SyntaxError(
                f"Class {self.__class__} must override name() property when using _name = DEFAULT"
            )
        assert isinstance(self._name, str)
        return self._name

    @property
    def raw_value(self) -> str:
        """The raw value of the header."""
        return self.serialize()

    @classmethod
    def class_for_name(cls, header: str) -> type[Header]:
        """Find the header class registered for the given name, ignoring case."""
        header_lower = header.lower()
        for registry_id, header_cls in cls.__registry__.items():
            if isinstance(registry_id, str) and registry_id.lower() == header_lower:
                return header_cls
        return cls.get_registered_class(DEFAULT)

    @classmethod
    def parse(cls, header: str, values: str | list[str]) -> Self:
        """
        Parse a raw header into a header object, picking the correct class.

        :param header: the header name, matched case-insensitively.
        :param values: the raw values of the header, one for each time it appeared.
        :return: the new header object.
        """
        header_cls: type[Header] = cls.class_for_name(header)
        if isinstance(values, str):
            values = [values]
        if not values:
            raise SIPParseError(f"No value given for header {header}")
        if len(values) > 1:
            if not issubclass(header_cls, MultipleValuesHeader):
                raise SIPParseError(
                    f"Multiple values for header {header}, but header is not a MultipleValuesHeader"
                )
            value = ListHeader._separator.join(values)  # noqa: SLF001
        else:
            value = values[0]
        return cast(Self, header_cls.from_raw_value(header, value))

    @classmethod
    @abstractmethod
    def from_raw_value(cls, header: str, value: str) -> Self:
        """
        Parse the header value from a string.

        :param header: the header name
        :param value: The raw header value string.
        :return: The parsed header.
        """

    @abstractmethod
    def serialize(self) -> str:
        """Serialize the header value to a string."""

    def __str__(self) -> str:
        """Serialize the entire header to a string."""
        return f"{self.name}: {self.serialize()}"


@slots_dataclass
class StrHeader(StrValueMixin, Header, ABC):
    """Abstract base dataclass for headers with a single string value."""

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        return cls(**cls.parse_raw_value(value))


@slots_dataclass
class UnknownHeader(StrHeader):
    """Catch-all dataclass for headers without a dedicated class."""

    _name = DEFAULT

    header: str

    @property
    @override
    def name(self) -> str:
        return self.header

    @classmethod
    @override
    def from_raw_value(cls, header: str, value: str) -> Self:
        return cls(header=header, value=value.strip())


@slots_dataclass
class IntHeader(IntValueMixin, Header, ABC):
    """Abstract base dataclass for headers with a single integer value."""

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        try:
            return cls(**cls.parse_raw_value(value))
        except ValueError as e:
            raise SIPParseError(f"Invalid integer value for {header}: {value!r}") from e


_ST = TypeVar("_ST", bound=Union[SupportsStr, ParseableSerializable])


class ListHeader(ListValueMixin[_ST], Header, ABC):
    """Abstract base dataclass for headers with a list of values."""

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        return cls(**cls.parse_raw_value(value))


class MultipleValuesHeader(ListHeader[_ST], ABC):
    """Abstract base dataclass for headers which can appear multiple times."""

    _prefers_separate_lines: ClassVar[bool] = False

    @override
    def __str__(self) -> str:
        if self._prefers_separate_lines:
            return CRLF.join(f"{self.name}: {v}" for v in self._serialized_values())
        return f"{self.name}: {self.serialize()}"


@slots_dataclass
class ViaEntry(ParseableSerializable):
    """
    A single Via entry as part of a Via header, as described in :rfc:`3261#section-20.42`.

    ``rport`` is rendered as a bare flag when ``True``, with its value when an int,
    and left out when ``None``.
    """

    host: str
    port: int | None
    branch: str | None = None
    rport: bool | int | None = None
    version: str = VIA_PROTOCOL_VERSION
    protocol: str = VIA_TRANSPORT

    @classmethod
    def parse(cls, raw_value: str) -> Self:  # noqa: D102
        sent_protocol, address, *params = re.split(r"\s+|\s*;\s*", raw_value.strip())
        try:
            _, version, protocol = sent_protocol.split("/")
        except ValueError as e:
            raise SIPParseError(f"Invalid Via sent-protocol: {sent_protocol!r}") from e

        # IPv6 references are bracketed, the port follows the closing bracket
        host, sep, port_str = address.rpartition(":")
        if not sep or (host.startswith("[") and not host.endswith("]")):
            host, port_str = address, ""
        try:
            port = int(port_str) if port_str else None
        except ValueError as e:
            raise SIPParseError(f"Invalid Via sent-by port: {address!r}") from e

        branch: str | None = None
        rport: bool | int | None = None
        for param in params:
            param_name, _, param_value = param.partition("=")
            if param_name == "branch":
                branch = param_value
            elif param_name == "rport":
                try:
                    rport = int(param_value) if param_value else True
                except ValueError as e:
                    raise SIPParseError(f"Invalid Via rport: {param_value!r}") from e

        return cls(
            host=host,
            port=port,
            branch=branch,
            rport=rport,
            version=version,
            protocol=protocol,
        )

    def serialize(self) -> str:  # noqa: D102
        host = f"{self.host}:{self.port}" if self.port else self.host
        params = []
        if self.rport is True:
            params.append(";rport")
        elif self.rport:
            params.append(f";rport={self.rport}")
        if self.branch is not None:
            params.append(f";branch={self.branch}")
        return f"SIP/{self.version}/{self.protocol} {host}{''.join(params)}"


@slots_dataclass
class ViaHeader(MultipleValuesHeader[ViaEntry]):
    """Via header, as described in :rfc:`3261#section-20.42`."""

    _name = "Via"
    _prefers_separate_lines = True
    _values_type = ViaEntry

    @property
    def first(self) -> ViaEntry:
        """The first via entry in the header."""
        return self.values[0]

    def __post_init__(self) -> None:
        if not self.values:
            raise SIPParseError("Via header must have at least one entry")


@slots_dataclass
class FromToHeader(Header, ABC):
    """Abstract base dataclass for From and To headers."""

    contact: Contact
    tag: str | None = None

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        raw_contact, *taginfo = re.split(r"\s*;\s*tag=", value.strip(), maxsplit=1)
        tag = taginfo[0] if taginfo else None
        return cls(contact=Contact.parse(raw_contact), tag=tag)

    def serialize(self) -> str:  # noqa: D102
        if self.tag:
            return f"{self.contact};tag={self.tag}"
        return str(self.contact)


@slots_dataclass
class FromHeader(FromToHeader):
    """From header, as described in :rfc:`3261#section-20.20`."""

    _name = "From"


@slots_dataclass
class ToHeader(FromToHeader):
    """To header, as described in :rfc:`3261#section-20.39`."""

    _name = "To"


@slots_dataclass
class ContactHeader(MultipleValuesHeader[Contact]):
    """
    Contact header, as described in :rfc:`3261#section-20.10`.

    Multiple contacts might be present in a single header, separated by commas.
    """

    _name = "Contact"
    _values_type = Contact

    @property
    def contact(self) -> Contact:
        """The first contact in the header."""
        return self.values[0]


@slots_dataclass
class CallIDHeader(StrHeader):
    """Call-ID header, as described in :rfc:`3261#section-20.8`."""

    _name = "Call-ID"


@slots_dataclass
class CSeqHeader(Header):
    """CSeq header, as described in :rfc:`3261#section-20.16`."""

    _name = "CSeq"

    sequence: int
    method: SIPMethod

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        from .messages import SIPMethod  # noqa: PLC0415

        try:
            sequence, method_raw = value.split(maxsplit=1)
            return cls(sequence=int(sequence), method=SIPMethod(method_raw.strip()))
        except ValueError as e:
            raise SIPParseError(f"Invalid CSeq value: {value!r}") from e

    def serialize(self) -> str:  # noqa: D102
        return f"{self.sequence} {self.method}"


@slots_dataclass
class AllowHeader(MultipleValuesHeader[str]):
    """Allow header, as described in :rfc:`3261#section-20.5`."""

    _name = "Allow"
    _values_type = str


@slots_dataclass
class SupportedHeader(MultipleValuesHeader[str]):
    """Supported header, as described in :rfc:`3261#section-20.37`."""

    _name = "Supported"
    _values_type = str


@slots_dataclass
class ExpiresHeader(IntHeader):
    """Expires header, as described in :rfc:`3261#section-20.19`."""

    _name = "Expires"


@slots_dataclass
class ContentTypeHeader(StrHeader):
    """Content-Type header, as described in :rfc:`3261#section-20.15`."""

    _name = "Content-Type"


@slots_dataclass
class ContentLengthHeader(IntHeader):
    """Content-Length header, as described in :rfc:`3261#section-20.14`."""

    _name = "Content-Length"


@slots_dataclass
class MaxForwardsHeader(IntHeader):
    """Max-Forwards header, as described in :rfc:`3261#section-20.22`."""

    _name = "Max-Forwards"


@slots_dataclass
class UserAgentHeader(StrHeader):
    """User-Agent header, as described in :rfc:`3261#section-20.41`."""

    _name = "User-Agent"


_REASON_RE = re.compile(
    r'\s*(?P<protocol>[^\s;]+)\s*;\s*cause\s*=\s*(?P<cause>\d+)'
    r'(?:\s*;\s*text\s*=\s*"(?P<text>[^"]*)")?\s*'
)


@slots_dataclass
class ReasonHeader(Header):
    """Reason header, as described in :rfc:`3326`."""

    _name = "Reason"

    protocol: str
    cause: int
    text: str | None = None

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        match = _REASON_RE.fullmatch(value)
        if match is None:
            raise SIPParseError(f"Invalid Reason value: {value!r}")
        return cls(
            protocol=match.group("protocol"),
            cause=int(match.group("cause")),
            text=match.group("text"),
        )

    def serialize(self) -> str:  # noqa: D102
        if self.text is None:
            return f"{self.protocol} ;cause={self.cause}"
        return f'{self.protocol} ;cause={self.cause} ; text="{self.text}"'


@slots_dataclass
class AuthorizationHeader(Header):
    """
    Authorization header, as described in :rfc:`3261#section-20.7`.

    Values are stored unquoted. When serializing, the parameters listed in
    ``_order`` come first, in that order, then any other that is set.
    """

    _name = "Authorization"

    username: str | None = None
    realm: str | None = None
    nonce: str | None = None
    uri: str | None = None
    algorithm: str | None = None
    qop: str | None = None
    nc: str | None = None
    cnonce: str | None = None
    response: str | None = None
    opaque: str | None = None
    stale: str | None = None
    auth_params: dict[str, str] = dataclass_field(default_factory=dict)

    _order: tuple[str, ...] = ()

    _no_quote_params: ClassVar[frozenset[str]] = frozenset(
        {"algorithm", "stale", "qop", "nc"}
    )

    @classmethod
    def _known_param_names(cls) -> tuple[str, ...]:
        return tuple(
            f.name for f in dataclass_fields(cls) if f.name not in {"auth_params", "_order"}
        )

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> Self:
        """
        Create the header from an ordered mapping of parameters.

        :param params: parameter names and values, quotes are stripped from values.
        :return: the new header, keeping the parameters order.
        """
        known_param_names = cls._known_param_names()
        known_params: dict[str, Any] = {}
        auth_params: dict[str, str] = {}
        for name, value in params.items():
            if name in known_param_names:
                known_params[name] = strip_quotes(value)
            else:
                auth_params[name] = strip_quotes(value)
        return cls(**known_params, auth_params=auth_params, _order=tuple(params))

    @classmethod
    def from_raw_value(cls, header: str, value: str) -> Self:  # noqa: D102
        scheme, _, params_str = value.strip().partition(" ")
        if scheme.lower() != "digest":
            raise SIPParseError(f"Unsupported authorization scheme: {scheme}")
        return cls.from_params(parse_auth_params(params_str))

    @classmethod
    def from_digest(cls, challenge: AuthChallenge, digest: DigestResponse) -> Self:
        """
        Merge the challenge parameters with the computed digest fields.

        Digest fields take precedence over challenge parameters with the same name.
        """
        params: dict[str, str] = dict(challenge.items())
        params.update(digest.items())
        return cls.from_params(params)

    @property
    def params(self) -> dict[str, str]:
        """All the parameters that are set, in serialization order."""
        params_dict: dict[str, str] = {
            name: value
            for name in self._known_param_names()
            if (value := getattr(self, name)) is not None
        }
        params_dict.update(self.auth_params)
        ordered = {name: params_dict[name] for name in self._order if name in params_dict}
        ordered.update(params_dict)
        return ordered

    def serialize(self) -> str:  # noqa: D102
        params = [
            f"{name}={value}" if name in self._no_quote_params else f'{name}="{value}"'
            for name, value in self.params.items()
        ]
        return f"Digest {', '.join(params)}"


@slots_dataclass
class WWWAuthenticateHeader(AuthorizationHeader):
    """WWW-Authenticate header, as described in :rfc:`3261#section-20.44`."""

    _name = "WWW-Authenticate"

    def to_challenge(self) -> AuthChallenge:
        """Get the authentication challenge carried by this header."""
        return AuthChallenge(
            realm=self.realm,
            nonce=self.nonce,
            qop=self.qop,
            opaque=self.opaque,
            algorithm=self.algorithm,
            stale=self.stale,
            params=frozendict(self.auth_params),
        )


@slots_dataclass
class ProxyAuthorizationHeader(AuthorizationHeader):
    """Proxy-Authorization header, as described in :rfc:`3261#section-20.28`."""

    _name = "Proxy-Authorization"


@slots_dataclass
class ProxyAuthenticateHeader(WWWAuthenticateHeader):
    """Proxy-Authenticate header, as described in :rfc:`3261#section-20.27`."""

    _name = "Proxy-Authenticate"


class Headers(CaseInsensitiveDict[_H]):
    """
    A case-insensitive dictionary of SIP headers, with some additional parsing
    and serialization methods to handle raw headers from/to SIP messages.

    The dictionary keys are the header names, and the values are the parsed header objects.

    :param headers: the headers to initialize the dictionary with.
    :param data: additional headers to initialize the dictionary with, as a mapping.
    :param kwargs: additional headers to initialize the dictionary with, as keyword arguments.
    """

    def __init__(
        self, *headers: _H, data: Mapping[str, _H] | None = None, **kwargs: _H
    ):
        if headers:
            data = dict(data) if data else {}
            for header in headers:
                data[header.name] = header

        super().__init__(data, **kwargs)

    def add(self, header: _H) -> None:
        """Add the header under its own name, replacing any with the same name."""
        self[header.name] = header

    @classmethod
    def parse(cls, raw_headers: bytes) -> Self:
        """
        Parse the raw header lines of a SIP message into a dictionary of headers.

        :param raw_headers: the raw headers, separated by CRLF.
        :return: the parsed headers.
        """
        headers = cls()

        header_lines = raw_headers.decode("utf-8").split(CRLF)
        headers_values: defaultdict[str, list[str]] = defaultdict(list)
        for line in header_lines:
            if not line.strip():
                continue
            header, sep, raw_value = line.partition(":")
            if not sep:
                raise SIPParseError(f"Invalid header line: {line!r}")
            headers_values[header.strip()].append(raw_value.strip())

        for header, raw_values in headers_values.items():
            headers[header] = cast(_H, Header.parse(header, raw_values))

        return headers

    def serialize(self) -> bytes:
        """
        Serialize the headers to raw SIP header lines.

        :return: the raw headers.
        """
        return str(self).encode("utf-8")

    def __str__(self) -> str:
        return CRLF.join(str(header) for header in self.values())
