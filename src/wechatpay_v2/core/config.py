"""
Configuration objects and helpers for the gateway client.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .certs import CertificateMaterial
from .environment import build_environment
from .errors import CertificateError

__all__ = [
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "load_client_config",
]

_PARAMETER_TO_ENV_KEY = {
    "appid": "WECHATPAY_APPID",
    "mch_id": "WECHATPAY_MCH_ID",
    "api_key": "WECHATPAY_API_KEY",
    "is_prod": "WECHATPAY_IS_PROD",
    "base_url": "WECHATPAY_BASE_URL",
    "debug": "WECHATPAY_DEBUG",
    "timeout_seconds": "WECHATPAY_TIMEOUT_SECONDS",
    "cert_file": "WECHATPAY_CERT_FILE",
    "key_file": "WECHATPAY_KEY_FILE",
    "pkcs12_file": "WECHATPAY_PKCS12_FILE",
    "root_ca_file": "WECHATPAY_ROOT_CA_FILE",
    "sandbox_sign_key": "WECHATPAY_SANDBOX_SIGN_KEY",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _env_overrides(values: Mapping[str, Any]) -> Dict[str, str]:
    """Map keyword-style client parameters onto their ``WECHATPAY_*`` keys."""
    unknown = sorted(set(values) - set(_PARAMETER_TO_ENV_KEY))
    if unknown:
        raise TypeError(f"Unknown client parameter(s): {', '.join(unknown)}")
    return {
        _PARAMETER_TO_ENV_KEY[name]: str(value).lower() if isinstance(value, bool) else str(value)
        for name, value in values.items()
        if value is not None
    }


@dataclass(frozen=True)
class ClientParameters:
    """
    Explicit parameter bundle for constructing :class:`ClientConfig`.

    Callers can either instantiate this helper or pass the individual keyword
    arguments directly to :func:`load_client_config`.
    """

    appid: Optional[str] = None
    mch_id: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    is_prod: Optional[bool | str] = None
    base_url: Optional[str] = None
    debug: Optional[bool | str] = None
    timeout_seconds: Optional[float | int | str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    pkcs12_file: Optional[str] = None
    root_ca_file: Optional[str] = None
    sandbox_sign_key: Optional[str] = field(default=None, repr=False)

    def as_overrides(self) -> Dict[str, str]:
        return _env_overrides(asdict(self))


class ConfigError(Exception):
    """Raised when the supplied configuration is invalid."""


def _require(values: Mapping[str, str], key: str) -> str:
    value = (values.get(key) or "").strip()
    if not value:
        raise ConfigError(f"{key} must be provided")
    return value


def _parse_bool(values: Mapping[str, str], key: str) -> bool:
    raw = (values.get(key) or "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got '{values.get(key)}'")


def _optional(values: Mapping[str, str], key: str) -> Optional[str]:
    value = (values.get(key) or "").strip()
    return value or None


def _normalize_base_url(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    if not raw.startswith(("http://", "https://")):
        raise ConfigError("WECHATPAY_BASE_URL must be an http(s) URL")
    return raw.rstrip("/") + "/"


def _read(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise CertificateError(f"Failed to read certificate file {path}: {exc}") from exc


@dataclass(frozen=True)
class ClientConfig:
    appid: str
    mch_id: str
    api_key: str = field(repr=False)
    is_prod: bool = False
    base_url: Optional[str] = None
    debug: bool = False
    timeout_seconds: float = 30.0
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    pkcs12_file: Optional[str] = None
    root_ca_file: Optional[str] = None
    sandbox_sign_key: Optional[str] = field(default=None, repr=False)

    @property
    def has_certificate_files(self) -> bool:
        return self.pkcs12_file is not None or self.cert_file is not None

    def certificate_material(self) -> CertificateMaterial:
        """Read the configured certificate files from disk."""
        root_ca = _read(self.root_ca_file) if self.root_ca_file else None
        if self.pkcs12_file is not None:
            return CertificateMaterial(pkcs12=_read(self.pkcs12_file), root_ca=root_ca)
        if self.cert_file is None or self.key_file is None:
            raise CertificateError("No certificate files configured")
        return CertificateMaterial(
            cert=_read(self.cert_file),
            key=_read(self.key_file),
            root_ca=root_ca,
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ClientConfig":
        appid = _require(values, "WECHATPAY_APPID")
        mch_id = _require(values, "WECHATPAY_MCH_ID")
        api_key = _require(values, "WECHATPAY_API_KEY")

        timeout_raw = values.get("WECHATPAY_TIMEOUT_SECONDS", "30")
        try:
            timeout_seconds = float(timeout_raw)
        except ValueError as exc:
            raise ConfigError(
                f"WECHATPAY_TIMEOUT_SECONDS must be a number, got '{timeout_raw}'"
            ) from exc
        if timeout_seconds <= 0:
            raise ConfigError("WECHATPAY_TIMEOUT_SECONDS must be greater than zero")

        cert_file = _optional(values, "WECHATPAY_CERT_FILE")
        key_file = _optional(values, "WECHATPAY_KEY_FILE")
        if (cert_file is None) != (key_file is None):
            raise ConfigError(
                "WECHATPAY_CERT_FILE and WECHATPAY_KEY_FILE must be provided together"
            )

        return cls(
            appid=appid,
            mch_id=mch_id,
            api_key=api_key,
            is_prod=_parse_bool(values, "WECHATPAY_IS_PROD"),
            base_url=_normalize_base_url(_optional(values, "WECHATPAY_BASE_URL")),
            debug=_parse_bool(values, "WECHATPAY_DEBUG"),
            timeout_seconds=timeout_seconds,
            cert_file=cert_file,
            key_file=key_file,
            pkcs12_file=_optional(values, "WECHATPAY_PKCS12_FILE"),
            root_ca_file=_optional(values, "WECHATPAY_ROOT_CA_FILE"),
            sandbox_sign_key=_optional(values, "WECHATPAY_SANDBOX_SIGN_KEY"),
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_file: Optional[str] = ".env",
        overrides: Optional[Mapping[str, str]] = None,
        base: Optional[Mapping[str, str]] = None,
        parameters: Optional[ClientParameters] = None,
        **explicit: Any,
    ) -> "ClientConfig":
        # raw overrides < parameter bundle < explicit keywords
        layered = dict(overrides or {})
        if parameters is not None:
            layered.update(parameters.as_overrides())
        layered.update(_env_overrides(explicit))
        environment = build_environment(env_file=env_file, base=base, overrides=layered)
        return cls.from_mapping(environment.variables)


def load_client_config(
    *,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ClientParameters] = None,
    appid: Optional[str] = None,
    mch_id: Optional[str] = None,
    api_key: Optional[str] = None,
    is_prod: Optional[bool] = None,
    base_url: Optional[str] = None,
    debug: Optional[bool] = None,
    timeout_seconds: Optional[float] = None,
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
    pkcs12_file: Optional[str] = None,
    root_ca_file: Optional[str] = None,
    sandbox_sign_key: Optional[str] = None,
) -> ClientConfig:
    """
    Convenience wrapper that mirrors :meth:`ClientConfig.from_env`.

    The configuration can be provided entirely through environment variables,
    a ``.env`` file, direct keyword arguments, or any combination of the three.
    """
    return ClientConfig.from_env(
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        appid=appid,
        mch_id=mch_id,
        api_key=api_key,
        is_prod=is_prod,
        base_url=base_url,
        debug=debug,
        timeout_seconds=timeout_seconds,
        cert_file=cert_file,
        key_file=key_file,
        pkcs12_file=pkcs12_file,
        root_ca_file=root_ca_file,
        sandbox_sign_key=sandbox_sign_key,
    )
