"""
Canonical request signing.

The gateway recomputes the signature independently, so the canonical string
must match its algorithm byte for byte:

1. drop ``sign`` and every empty value,
2. sort the remaining keys by their UTF-8 bytes,
3. join as ``k1=v1&k2=v2``, append ``&key=<secret>``,
4. digest with MD5 or HMAC-SHA256 (keyed with the secret) as upper-case hex.
"""

from __future__ import annotations

import hashlib
import hmac
from enum import Enum
from typing import Mapping, Union

from .errors import UnsupportedModeError, ValidationError
from .params import ParameterSet, ParamValue

__all__ = [
    "SIGN_FIELD",
    "SIGN_TYPE_FIELD",
    "SignType",
    "canonical_sign_string",
    "compute_sandbox_signature",
    "compute_signature",
    "parse_sign_type",
    "verify_signature",
]

SIGN_FIELD = "sign"
SIGN_TYPE_FIELD = "sign_type"


class SignType(str, Enum):
    MD5 = "MD5"
    HMAC_SHA256 = "HMAC-SHA256"


def parse_sign_type(value: Union[str, SignType, None]) -> SignType:
    """Map a ``sign_type`` field value to :class:`SignType`; empty means MD5."""
    if value is None or value == "":
        return SignType.MD5
    if isinstance(value, SignType):
        return value
    try:
        return SignType(value.upper())
    except ValueError as exc:
        raise ValidationError(
            f"Unsupported sign_type '{value}'", field=SIGN_TYPE_FIELD
        ) from exc


def _as_parameter_set(params: Mapping[str, ParamValue]) -> ParameterSet:
    if isinstance(params, ParameterSet):
        return params
    return ParameterSet(params)


def canonical_sign_string(params: Mapping[str, ParamValue], secret: str) -> str:
    values = _as_parameter_set(params)
    pairs = [
        (key, value)
        for key, value in values.string_items()
        if key != SIGN_FIELD and value != ""
    ]
    pairs.sort(key=lambda pair: pair[0].encode("utf-8"))
    body = "&".join(f"{key}={value}" for key, value in pairs)
    if body:
        return f"{body}&key={secret}"
    return f"key={secret}"


def compute_signature(
    params: Mapping[str, ParamValue],
    secret: str,
    sign_type: Union[str, SignType, None] = SignType.MD5,
) -> str:
    algorithm = parse_sign_type(sign_type)
    payload = canonical_sign_string(params, secret).encode("utf-8")
    if algorithm is SignType.HMAC_SHA256:
        digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    else:
        digest = hashlib.md5(payload).hexdigest()
    return digest.upper()


def compute_sandbox_signature(
    params: Mapping[str, ParamValue],
    mch_id: str,
    secret: str,
    sign_type: Union[str, SignType, None] = SignType.MD5,
) -> str:
    """
    Sign for the sandbox gateway.

    The merchant id is injected into a copy of the signable set and only MD5 is
    accepted; several sandbox endpoints cannot verify HMAC-SHA256.
    """
    if parse_sign_type(sign_type) is not SignType.MD5:
        raise UnsupportedModeError("The sandbox gateway only accepts MD5 signatures")
    signable = _as_parameter_set(params).copy()
    signable.set("mch_id", mch_id)
    return compute_signature(signable, secret, SignType.MD5)


def verify_signature(
    params: Mapping[str, ParamValue],
    secret: str,
    sign_type: Union[str, SignType, None] = None,
) -> bool:
    """
    Check the ``sign`` field of ``params`` against a recomputed signature.

    When ``sign_type`` is omitted the set's own ``sign_type`` field decides.
    """
    values = _as_parameter_set(params)
    received = values.get_string(SIGN_FIELD)
    if not received:
        return False
    if sign_type is None:
        sign_type = values.get_string(SIGN_TYPE_FIELD)
    expected = compute_signature(values, secret, sign_type)
    return hmac.compare_digest(expected, received.upper())
