"""
Public, high-level helpers for talking to the payment gateway.
"""

from __future__ import annotations

from typing import Mapping, Optional

import requests

from .core.client import GatewayClient, Params, post_api as _post_api
from .core.config import (
    ClientConfig,
    ClientParameters,
    ConfigError,
    load_client_config,
)
from .core.transport import TransportResult

__all__ = [
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "GatewayClient",
    "create_client",
    "load_client_config",
    "post_api",
]


def _resolve_config(
    config: Optional[ClientConfig],
    *,
    env_file: Optional[str],
    overrides: Optional[Mapping[str, str]],
    base: Optional[Mapping[str, str]],
    parameters: Optional[ClientParameters],
    explicit: Mapping[str, object],
) -> ClientConfig:
    if config is not None:
        extras = (overrides, base, parameters, *explicit.values())
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built ClientConfig or individual parameters, not both."
            )
        return config
    return load_client_config(
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        **explicit,
    )


def create_client(
    *,
    config: Optional[ClientConfig] = None,
    session: Optional[requests.Session] = None,
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
) -> GatewayClient:
    """
    Construct a :class:`GatewayClient`.

    Callers can either supply a ready-made :class:`ClientConfig` or let the
    helper assemble one from environment data and keyword arguments.
    """
    cfg = _resolve_config(
        config,
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        explicit={
            "appid": appid,
            "mch_id": mch_id,
            "api_key": api_key,
            "is_prod": is_prod,
            "base_url": base_url,
            "debug": debug,
            "timeout_seconds": timeout_seconds,
            "cert_file": cert_file,
            "key_file": key_file,
            "pkcs12_file": pkcs12_file,
            "root_ca_file": root_ca_file,
            "sandbox_sign_key": sandbox_sign_key,
        },
    )
    return GatewayClient(cfg, session=session)


def post_api(
    path: str,
    params: Params,
    *,
    config: Optional[ClientConfig] = None,
    session: Optional[requests.Session] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
) -> TransportResult:
    """
    Sign and POST ``params`` to ``path`` using configuration from the environment.
    """
    cfg = _resolve_config(
        config,
        env_file=env_file,
        overrides=overrides,
        base=None,
        parameters=None,
        explicit={},
    )
    return _post_api(cfg, path, params, session=session)
