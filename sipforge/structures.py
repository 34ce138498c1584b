"""Common SIP structures."""

from __future__ import annotations

import re
from typing import Any, Match

from typing_extensions import Self

from .exceptions import SIPParseError
from .helpers import ParseableSerializable, slots_dataclass


__all__ = [
    "Contact",
    "make_contact",
]


DISPLAY_NAME_PAT: str = r"(?:\"(?P<quoted_name>[^\"]*)\"|(?P<name>[^\"<]*?))"
ADDRESS_PAT: str = rf"\s*{DISPLAY_NAME_PAT}\s*<(?P<uri>[^>]+)>\s*"
BARE_URI_PAT: str = r"\s*(?P<uri>sips?:[^\s;<>]+)\s*"


@slots_dataclass(frozen=True)
class Contact(ParseableSerializable):
    """
    A SIP contact: a display name and a SIP URI, like ``sip:user@host:port``.

    Used for the From, To and Contact headers of a request.
    """

    name: str | None
    uri: str

    @classmethod
    def parse(cls, raw_value: str) -> Self:
        """Parse a name-addr (``"name" <uri>``) or a bare SIP URI."""
        match: Match | None = re.fullmatch(ADDRESS_PAT, raw_value)
        if match is not None:
            name = match.group("quoted_name")
            if name is None:
                name = match.group("name") or None
            return cls(name=name, uri=match.group("uri").strip())
        match = re.fullmatch(BARE_URI_PAT, raw_value)
        if match is None:
            raise SIPParseError(f"Invalid SIP address: {raw_value!r}")
        return cls(name=None, uri=match.group("uri"))

    def serialize(self) -> str:
        """Serialize to a name-addr, always with angle brackets around the URI."""
        if self.name:
            return f'"{self.name}" <{self.uri}>'
        return f"<{self.uri}>"

    def __str__(self) -> str:
        return self.serialize()

    def __deepcopy__(self, memo: dict[int, Any]) -> Self:
        return self


def make_contact(name: str | None, uri: str) -> Contact:
    """
    Package a name and URI into a contact.

    :param name: the contact's display name.
    :param uri: a SIP URI, for instance ``sip:user@domain:port``.
    :return: the contact value.
    """
    return Contact(name=name, uri=uri)
