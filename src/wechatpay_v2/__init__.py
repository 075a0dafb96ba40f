"""
Public facade for the WeChat Pay v2 gateway client.

The module re-exports the most useful pieces for integrators so they can
``from wechatpay_v2 import ...`` without navigating the package.
"""

from .api import create_client, post_api
from .core import (
    CancellationToken,
    CancelledError,
    CertificateError,
    ClientConfig,
    ClientParameters,
    ConfigError,
    DecodeError,
    GatewayClient,
    GatewayEnvironment,
    GatewayError,
    GatewayHTMLError,
    GatewayResponse,
    NetworkError,
    ParameterSet,
    SignType,
    TransportError,
    TransportResult,
    UnsupportedModeError,
    ValidationError,
    build_environment,
    compute_signature,
    generate_nonce_str,
    load_client_config,
    load_env_file,
    verify_signature,
)

__all__ = (
    "CancellationToken",
    "CancelledError",
    "CertificateError",
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "DecodeError",
    "GatewayClient",
    "GatewayEnvironment",
    "GatewayError",
    "GatewayHTMLError",
    "GatewayResponse",
    "NetworkError",
    "ParameterSet",
    "SignType",
    "TransportError",
    "TransportResult",
    "UnsupportedModeError",
    "ValidationError",
    "build_environment",
    "compute_signature",
    "create_client",
    "generate_nonce_str",
    "load_client_config",
    "load_env_file",
    "post_api",
    "verify_signature",
)
