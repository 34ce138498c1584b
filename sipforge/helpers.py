"""Helpers, utilities, and other miscellaneous functions and classes."""

from __future__ import annotations

import functools
import re
import secrets
import sys
import time
import types
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import MutableSequence
from dataclasses import dataclass as _dtcls
from inspect import isabstract
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Generic,
    Iterable,
    Iterator,
    Mapping,
    MutableMapping,
    Pattern,
    Protocol,
    TypeVar,
    Union,
    cast,
    overload,
    runtime_checkable,
)

from typing_extensions import Self, TypeAlias, dataclass_transform


if TYPE_CHECKING:
    from _typeshed import SupportsKeysAndGetItem


_dT = TypeVar("_dT")


@functools.wraps(_dtcls)
@dataclass_transform()
def slots_dataclass(*args: Any, **kwargs: Any) -> Callable[[_dT], _dT]:
    """Wrapper for dataclass decorator that adds slots if supported (py3.10+)."""
    if sys.version_info < (3, 10):
        kwargs.pop("slots", None)
    else:
        kwargs.setdefault("slots", True)
    return cast(Callable[[_dT], _dT], _dtcls(*args, **kwargs))


@runtime_checkable
class SupportsStr(Protocol):
    """Protocol for objects that support str() conversion."""

    @abstractmethod
    def __str__(self) -> str: ...


_T = TypeVar("_T")


# copied from requests.structures
class CaseInsensitiveDict(MutableMapping[str, _T]):
    """
    A case-insensitive ``dict``-like object.

    The structure remembers the case of the last key to be set, and ``iter(instance)``,
    ``keys()`` and ``items()`` will contain case-sensitive keys. However, querying
    and contains testing is case insensitive::

        cid = CaseInsensitiveDict()
        cid['Call-ID'] = 'a84b4c76e66710'
        cid['call-id'] == 'a84b4c76e66710'  # True
        list(cid) == ['Call-ID']  # True
    """

    def __init__(
        self,
        data: SupportsKeysAndGetItem[str, _T] | Iterable[tuple[str, _T]] | None = None,
        **kwargs: _T,
    ) -> None:
        self._store: OrderedDict[str, tuple[str, _T]] = OrderedDict()
        if data is None:
            data = {}
        self.update(data, **kwargs)

    def __setitem__(self, key: str, value: _T) -> None:
        # Use the lowercased key for lookups, but store the actual
        # key alongside the value.
        self._store[key.lower()] = (key, value)

    def __getitem__(self, key: str) -> _T:
        return self._store[key.lower()][1]

    def __delitem__(self, key: str) -> None:
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (casedkey for casedkey, mappedvalue in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def lower_items(self) -> Iterator[tuple[str, _T]]:
        """Like items(), but with all lowercase keys."""
        return ((lowerkey, keyval[1]) for (lowerkey, keyval) in self._store.items())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            other = CaseInsensitiveDict(other)
        else:
            return NotImplemented
        return dict(self.lower_items()) == dict(other.lower_items())

    def copy(self) -> CaseInsensitiveDict[_T]:
        """Return a shallow copy of the instance."""
        return CaseInsensitiveDict(self._store.values())

    def __repr__(self) -> str:
        return str(dict(self.items()))


class _DefaultType:
    """Comparable and hashable sentinel for DEFAULT values."""

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _DefaultType)

    def __hash__(self) -> int:
        return hash(self.__class__)

    def __repr__(self) -> str:
        return "DEFAULT"


DEFAULT = _DefaultType()
DefaultType: TypeAlias = _DefaultType


_ID = TypeVar("_ID")
_RT = TypeVar("_RT", bound="Registry")


class Registry(ABC, Generic[_ID, _RT]):
    """
    Abstract base class for registries of subclasses of a given class.

    A class declared with ``registry=True`` becomes the root of a registry, and
    every concrete subclass is recorded under the value of the class attribute
    named by ``registry_attr``. Abstract subclasses are not registered.

    :param registry: whether the class is a registry root or not.
    :param registry_attr: the name of the class attribute to use as the registry key.
    """

    __registry__: MutableMapping[_ID, type[_RT]]
    __registry_attr_name__: str
    __registry_root__: type[Registry]

    @classmethod
    def is_abstract(cls) -> bool:
        """Check if the class has ABC in its bases, or abstract methods."""
        return isabstract(cls) or ABC in cls.__bases__

    def __init_subclass__(
        cls,
        *,
        registry: bool = False,
        registry_attr: str | None = None,
        **kwargs: Any,
    ):
        super().__init_subclass__(**kwargs)

        if registry:
            if not registry_attr:
                raise AttributeError(
                    f"No registry_attr specified for registry class {cls.__name__}"
                )
            cls.__registry__ = {}
            cls.__registry_attr_name__ = registry_attr
            cls.__registry_root__ = cls
            return

        registry_id = getattr(cls, cls.__registry_attr_name__, None)
        if registry_id is None:
            if cls.is_abstract():
                return
            raise ValueError(
                f"Cannot register {cls.__name__} in {cls.__registry_root__.__name__}, "
                f"no {cls.__registry_attr_name__} defined in the class body"
            )

        conflict_cls: type[_RT] | None = cls.__registry__.get(registry_id)
        if conflict_cls is not None:
            cls_fullname = (cls.__module__, cls.__qualname__)
            conflict_fullname = (conflict_cls.__module__, conflict_cls.__qualname__)
            # slots dataclasses get rebuilt, and re-registered under the same name
            if cls_fullname != conflict_fullname:
                raise NameError(
                    f"More than one {cls.__registry_root__.__name__} subclass with "
                    f'the same {cls.__registry_attr_name__} "{registry_id}" defined: '
                    f"{conflict_cls.__name__} and {cls.__name__}"
                )
        cls.__registry__[registry_id] = cast("type[_RT]", cls)

    @classmethod
    def get_registry(cls) -> types.MappingProxyType[_ID, type[_RT]]:
        """Get a read-only view of the registry mapping."""
        return types.MappingProxyType(cls.__registry__)

    @classmethod
    def get_registered_class(cls, registry_id: _ID) -> type[_RT]:
        """Get the registered subclass for the given key, raising KeyError if missing."""
        registered_cls: type[_RT] | None = cls.__registry__.get(registry_id)
        if registered_cls is None:
            raise KeyError(
                f"No registered {cls.__registry_root__.__name__} subclass found "
                f'for {cls.__registry_attr_name__} == "{registry_id}"'
            )
        return registered_cls


@runtime_checkable
class Parseable(Protocol):
    """Protocol for objects that can be parsed from a str."""

    @classmethod
    def parse(cls, raw_value: str) -> Self:
        """Parse a string value into an instance of this class."""


@runtime_checkable
class Serializable(Protocol):
    """Protocol for objects serializable to str."""

    def serialize(self) -> str:
        """Serialize the object to a string."""


@runtime_checkable
class ParseableSerializable(Parseable, Serializable, Protocol):
    """Protocol for objects that are both parseable and serializable to str."""


@runtime_checkable
class FieldsParser(Protocol):
    """Protocol for objects that can parse a string value into separate fields."""

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:
        """Parse a string value into a mapping of fields values."""


@runtime_checkable
class FieldsParserSerializer(FieldsParser, Serializable, Protocol):
    """
    Protocol for objects that can parse a string value into separate fields
    and serialize them back into a string.
    """


@slots_dataclass
class StrValueMixin(FieldsParserSerializer):
    """Mixin for dataclasses that have a single string field and can be parsed/serialized."""

    value: str

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        return dict(value=raw_value.strip())

    def serialize(self) -> str:  # noqa: D102
        return self.value


@slots_dataclass
class IntValueMixin(FieldsParserSerializer):
    """Mixin for dataclasses that have a single integer field and can be parsed/serialized."""

    value: int

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        return dict(value=int(raw_value))

    def serialize(self) -> str:  # noqa: D102
        return str(self.value)

    def __int__(self) -> int:
        return self.value


_ST = TypeVar("_ST", bound=Union[SupportsStr, ParseableSerializable])


@slots_dataclass
class ListValueMixin(MutableSequence, FieldsParserSerializer, Generic[_ST]):
    """
    Mixin for dataclasses that have a list of values and can be parsed/serialized.

    Also provides a list-like interface to access the values.
    """

    _values_type: ClassVar[type]
    _separator: ClassVar[str] = ", "
    _splitter: ClassVar[Pattern[str]] = re.compile(r"\s*,\s*")

    values: list[_ST]

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        str_value = raw_value.strip()
        str_values: list[str] = cls._splitter.split(str_value) if str_value else []
        vcls = cls._values_type
        values = [
            vcls.parse(value) if hasattr(vcls, "parse") else vcls(value)
            for value in str_values
        ]
        return dict(values=values)

    def _serialized_values(self) -> list[str]:
        return [
            value.serialize() if isinstance(value, Serializable) else str(value)
            for value in self.values
        ]

    def serialize(self) -> str:  # noqa: D102
        return self._separator.join(self._serialized_values())

    def insert(self, index: int, value: _ST) -> None:  # noqa: D102
        self.values.insert(index, value)

    @overload
    def __getitem__(self, index: int) -> _ST: ...

    @overload
    def __getitem__(self, index: slice) -> MutableSequence[_ST]: ...

    def __getitem__(self, index: int | slice) -> _ST | MutableSequence[_ST]:
        return self.values[index]

    def __setitem__(self, index: Any, value: Any) -> None:
        self.values[index] = value

    def __delitem__(self, index: int | slice) -> None:
        del self.values[index]

    def __len__(self) -> int:
        return len(self.values)


@runtime_checkable
class Clock(Protocol):
    """Source of the current wall-clock time."""

    def now_ms(self) -> int:
        """Current time as milliseconds since the epoch."""


class SystemClock:
    """Clock reading the system wall-clock time."""

    def now_ms(self) -> int:  # noqa: D102
        return time.time_ns() // 1_000_000


@runtime_checkable
class RandomSource(Protocol):
    """Source of random bytes, used for tags and client nonces."""

    def random_bytes(self, size: int) -> bytes:
        """Return ``size`` random bytes."""


class SystemRandomSource:
    """Random source backed by the operating system CSPRNG."""

    def random_bytes(self, size: int) -> bytes:  # noqa: D102
        return secrets.token_bytes(size)
