"""Common base classes for SDP fields and attributes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Union, cast

from typing_extensions import Self, override

from sipforge.exceptions import SDPParseError
from sipforge.helpers import (
    DEFAULT,
    DefaultType,
    ParseableSerializable,
    Registry,
    slots_dataclass,
)


__all__ = [
    "SDPField",
    "SDPAttribute",
    "FlagAttribute",
    "UnknownAttribute",
    "MediaFlowAttribute",
    "RecvOnlyFlag",
    "SendRecvFlag",
    "SendOnlyFlag",
    "InactiveFlag",
    "SDPConnectionField",
    "SDPAttributeField",
]


@dataclass
class SDPField(
    Registry[str, "SDPField"],
    ParseableSerializable,
    ABC,
    registry=True,
    registry_attr="_type",
):
    """Abstract base dataclass for SDP fields, rendered as ``<type>=<value>`` lines."""

    _type: ClassVar[str]

    @property
    def type(self) -> str:
        """The type of the field."""
        return self._type

    @classmethod
    def parse(cls, raw_value: str) -> Self:
        """Parse a whole ``<type>=<value>`` line, picking the class for the field type."""
        field_type, sep, value = raw_value.strip().partition("=")
        if not sep:
            raise SDPParseError(f"Invalid SDP line: {raw_value!r}")
        try:
            field_cls = cls.get_registered_class(field_type)
        except KeyError:
            raise SDPParseError(f"Unknown SDP field type {field_type}")  # noqa: B904
        try:
            return cast(Self, field_cls.from_raw_value(value))
        except ValueError as e:
            raise SDPParseError(f"Invalid SDP {field_type}= line: {raw_value!r}") from e

    @classmethod
    @abstractmethod
    def from_raw_value(cls, raw_value: str) -> Self:
        """
        Parse the raw value of the field into a field object.

        :param raw_value: the raw value of the field, after the ``=`` sign.
        :return: the field object.
        """

    @abstractmethod
    def serialize(self) -> str:
        """Serialize the field value to a string."""

    def __str__(self) -> str:
        return f"{self.type}={self.serialize()}"


@dataclass
class SDPAttribute(
    Registry[Union[str, DefaultType], "SDPAttribute"],
    ParseableSerializable,
    ABC,
    registry=True,
    registry_attr="_name",
):
    """Abstract base dataclass for SDP attributes."""

    _name: ClassVar[str | DefaultType]
    _is_flag: ClassVar[bool | None] = None

    @property
    def name(self) -> str:
        """The name of the attribute."""
        if self._name is DEFAULT:
            raise SyntaxError(
                f"Class {self.__class__} must override name() property when using _name = DEFAULT"
            )
        assert isinstance(self._name, str)
        return self._name

    @property
    def is_flag(self) -> bool:
        """Whether the attribute is a flag or not."""
        return bool(self._is_flag)

    @classmethod
    def parse(cls, raw_value: str) -> Self:  # noqa: D102
        name, sep, value = raw_value.partition(":")
        attr_value: str | None = value if sep else None

        registry_name: str = name.lower()
        registry = cls.get_registry()
        attr_cls: type[SDPAttribute] = cls.get_registered_class(
            registry_name if registry_name in registry else DEFAULT
        )
        if attr_cls._is_flag and attr_value is not None:  # noqa: SLF001
            raise SDPParseError(f"Attribute {name} is a flag, but got a value: {raw_value}")
        if attr_cls._is_flag is False and attr_value is None:  # noqa: SLF001
            raise SDPParseError(f"Attribute {name} is not a flag, but got no value: {raw_value}")

        return cast(Self, attr_cls.from_raw_value(name, attr_value))

    @classmethod
    @abstractmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:
        """
        Parse a raw value into an instance of this attribute class.

        :param name: the name of the attribute parsed from raw data
        :param raw_value: the raw value of the attribute, None for flags
        :return: the attribute object.
        """

    @abstractmethod
    def serialize(self) -> str:
        """Serialize the attribute value to a string."""

    def __str__(self) -> str:
        """Serialize the whole attribute to a string."""
        return f"{self.name}:{self.serialize()}" if not self.is_flag else self.name


@dataclass
class FlagAttribute(SDPAttribute, ABC):
    """Abstract base dataclass for SDP flag attributes."""

    _is_flag: ClassVar[bool] = True

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        return cls()

    def serialize(self) -> str:  # noqa: D102
        raise ValueError("Flag attributes have no value to serialize")


@slots_dataclass
class UnknownAttribute(SDPAttribute):
    """Catch-all dataclass for attributes without a dedicated class."""

    _name = DEFAULT

    attribute_name: str
    value: str | None = None

    @property
    @override
    def name(self) -> str:
        return self.attribute_name

    @property
    @override
    def is_flag(self) -> bool:
        return self.value is None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        return cls(attribute_name=name, value=raw_value)

    def serialize(self) -> str:  # noqa: D102
        return self.value or ""


@dataclass
class MediaFlowAttribute(FlagAttribute, ABC):
    """Abstract base dataclass for media flow direction flags, :rfc:`8866#section-6.7`."""


@slots_dataclass
class RecvOnlyFlag(MediaFlowAttribute):
    """SDP flag attribute for receive-only mode."""

    _name = "recvonly"


@slots_dataclass
class SendRecvFlag(MediaFlowAttribute):
    """SDP flag attribute for send-and-receive mode."""

    _name = "sendrecv"


@slots_dataclass
class SendOnlyFlag(MediaFlowAttribute):
    """SDP flag attribute for send-only mode."""

    _name = "sendonly"


@slots_dataclass
class InactiveFlag(MediaFlowAttribute):
    """SDP flag attribute for inactive mode."""

    _name = "inactive"


@slots_dataclass
class SDPConnectionField(SDPField):
    """
    SDP connection field, defined in :rfc:`8866#section-5.7`.

    Spec::
        c=<nettype> <addrtype> <connection-address>
    """

    _type = "c"

    address: str
    nettype: str = "IN"
    addrtype: str = "IP4"

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        nettype, addrtype, connection_address = raw_value.split(" ")
        # TTL and number of addresses are irrelevant for unicast audio
        address = connection_address.split("/")[0]
        return cls(address=address, nettype=nettype, addrtype=addrtype)

    def serialize(self) -> str:  # noqa: D102
        return f"{self.nettype} {self.addrtype} {self.address}"


@slots_dataclass
class SDPAttributeField(SDPField):
    """SDP attribute field, wrapping any :class:`SDPAttribute`."""

    _type = "a"

    attribute: SDPAttribute

    @property
    def name(self) -> str:
        """The name of the attribute."""
        return self.attribute.name

    @classmethod
    @override
    def from_raw_value(cls, raw_value: str) -> Self:
        return cls(attribute=SDPAttribute.parse(raw_value))

    def serialize(self) -> str:  # noqa: D102
        return str(self.attribute)
