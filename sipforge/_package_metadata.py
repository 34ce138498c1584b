from __future__ import annotations

import importlib.metadata as importlib_metadata
import warnings
from email.message import Message
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import toml


DISTRIBUTION_NAME: str = "sipforge"

metadata: Message | Mapping[str, Any] | None = None
try:
    metadata = importlib_metadata.metadata(DISTRIBUTION_NAME)
except importlib_metadata.PackageNotFoundError:
    # running from a source checkout, read the project table directly
    package_path = Path(__file__).resolve().parent
    pyproject_path = package_path.parent / "pyproject.toml"
    if pyproject_path.exists():
        metadata = toml.load(pyproject_path)
    else:
        warnings.warn(
            f"No distribution info nor pyproject.toml found for {DISTRIBUTION_NAME}",
            stacklevel=1,
        )


def get_metadata(
    distinfo_key: str,
    toml_path: Sequence[str | int] | Callable[[Mapping[str, Any]], Any],
) -> Any:
    """
    Look up a metadata value for the installed (or checked out) distribution.

    :param distinfo_key: the key to read from the installed distribution metadata.
    :param toml_path: the keys path into pyproject.toml, or a getter callable,
        used when the package is not installed.
    :return: the metadata value, or None if not found.
    """
    if metadata is None:
        return None
    if isinstance(metadata, Message):
        return metadata.get(distinfo_key)
    try:
        if callable(toml_path):
            return toml_path(metadata)
        value: Any = metadata
        for key in toml_path:
            value = value[key]
        return value
    except (KeyError, IndexError, TypeError):
        return None
