"""
Generic decoding of the gateway's XML answers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from lxml import etree

from .errors import DecodeError
from .params import ParameterSet
from .signing import SignType, verify_signature
from .transport import TransportResult

__all__ = [
    "GatewayResponse",
    "decode_response",
    "parse_xml_fields",
]

SUCCESS = "SUCCESS"

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


def parse_xml_fields(raw: bytes) -> Dict[str, str]:
    """Flatten the top-level children of an ``<xml>`` document into a dict."""
    try:
        root = etree.fromstring(raw, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise DecodeError(raw, exc) from exc
    if root is None:
        raise DecodeError(raw)
    fields: Dict[str, str] = {}
    for child in root:
        if not isinstance(child.tag, str):
            continue
        fields[child.tag] = (child.text or "").strip()
    return fields


@dataclass(frozen=True)
class GatewayResponse:
    fields: Mapping[str, str]
    result: Optional[TransportResult] = None

    def get(self, key: str, default: str = "") -> str:
        return self.fields.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self.fields[key]

    @property
    def return_code(self) -> str:
        return self.get("return_code")

    @property
    def return_msg(self) -> str:
        return self.get("return_msg")

    @property
    def result_code(self) -> str:
        return self.get("result_code")

    @property
    def err_code(self) -> str:
        return self.get("err_code")

    @property
    def err_code_des(self) -> str:
        return self.get("err_code_des")

    @property
    def is_success(self) -> bool:
        if self.return_code != SUCCESS:
            return False
        return self.result_code in ("", SUCCESS)

    def verify(self, secret: str, sign_type: Optional[SignType] = None) -> bool:
        """Check the gateway's own ``sign`` over the response fields."""
        return verify_signature(ParameterSet(self.fields), secret, sign_type)


def decode_response(result: TransportResult) -> GatewayResponse:
    try:
        fields = parse_xml_fields(result.body)
    except DecodeError as exc:
        raise DecodeError(result.body, exc.cause, result=result) from exc
    if not fields.get("return_code"):
        raise DecodeError(result.body, ValueError("missing return_code"), result=result)
    return GatewayResponse(fields=fields, result=result)
