"""
The request field container shared by the signer and the wire codecs.
"""

from __future__ import annotations

import json
from collections.abc import MutableMapping
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Union
from urllib.parse import quote_plus

from lxml import etree

from .errors import ValidationError

__all__ = [
    "ParamValue",
    "ParameterSet",
    "XML_ROOT",
    "format_value",
]

ParamValue = Union[str, int, float, Decimal, bool]

XML_ROOT = "xml"


def _format_decimal(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_value(value: ParamValue) -> str:
    """
    Render a parameter value the way the gateway expects it.

    Integers carry no separators and floats are written positionally, never in
    scientific notation, so ``101.0`` becomes ``"101"`` and ``1e-7`` becomes
    ``"0.0000001"``.
    """
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return str.__str__(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_decimal(Decimal(repr(value)))
    if isinstance(value, Decimal):
        return _format_decimal(value)
    raise TypeError(f"Unsupported parameter value type: {type(value).__name__}")


class ParameterSet(MutableMapping):
    """
    Ordered ``str`` keyed mapping used both as the signing input and the body.

    Insertion order is preserved for the XML body and the query string; the
    signer sorts keys on its own.
    """

    def __init__(self, values: Optional[Mapping[str, ParamValue]] = None, **kwargs: ParamValue) -> None:
        self._values: Dict[str, ParamValue] = {}
        if values:
            self.update(values)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, key: str) -> ParamValue:
        return self._values[key]

    def __setitem__(self, key: str, value: ParamValue) -> None:
        if not isinstance(key, str) or not key:
            raise TypeError("Parameter names must be non-empty strings")
        format_value(value)
        self._values[key] = value

    def __delitem__(self, key: str) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterSet({self._values!r})"

    def set(self, key: str, value: ParamValue) -> "ParameterSet":
        self[key] = value
        return self

    def get_string(self, key: str) -> str:
        """Return the formatted value of ``key``, or ``""`` when it is absent."""
        value = self._values.get(key)
        if value is None:
            return ""
        return format_value(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def is_empty(self, key: str) -> bool:
        return self.get_string(key) == ""

    def require_non_empty(self, *keys: str) -> None:
        for key in keys:
            if self.is_empty(key):
                raise ValidationError(f"{key} : cannot be empty", field=key)

    def copy(self) -> "ParameterSet":
        return ParameterSet(self._values)

    def string_items(self) -> Iterator[tuple[str, str]]:
        for key in self._values:
            yield key, self.get_string(key)

    def to_canonical_query_string(self) -> str:
        return "&".join(
            f"{quote_plus(key)}={quote_plus(value)}"
            for key, value in self.string_items()
            if value != ""
        )

    def to_xml_body(self) -> str:
        root = etree.Element(XML_ROOT)
        for key, value in self.string_items():
            child = etree.SubElement(root, key)
            child.text = etree.CDATA(value)
        return etree.tostring(root, encoding="unicode")

    def to_json(self) -> str:
        return json.dumps(dict(self.string_items()), ensure_ascii=False)
