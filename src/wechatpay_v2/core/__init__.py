"""
Core primitives: parameters, signing, certificates, routing and transport.
"""

from .cancellation import CancellationToken
from .certs import CertificateMaterial, CertificateStore, TLSConfig, build_tls_config
from .client import GatewayClient, generate_nonce_str, post_api
from .config import (
    ClientConfig,
    ClientParameters,
    ConfigError,
    load_client_config,
)
from .environment import SettingsEnvironment, build_environment, load_env_file
from .errors import (
    CancelledError,
    CertificateError,
    DecodeError,
    GatewayError,
    GatewayHTMLError,
    NetworkError,
    TransportError,
    UnsupportedModeError,
    ValidationError,
)
from .params import ParameterSet, format_value
from .responses import GatewayResponse, decode_response
from .routing import EnvironmentRouter, GatewayEnvironment, Route
from .signing import (
    SignType,
    canonical_sign_string,
    compute_sandbox_signature,
    compute_signature,
    verify_signature,
)
from .transport import Transport, TransportResult, classify_response

__all__ = [
    "CancellationToken",
    "CancelledError",
    "CertificateError",
    "CertificateMaterial",
    "CertificateStore",
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "DecodeError",
    "EnvironmentRouter",
    "GatewayClient",
    "GatewayEnvironment",
    "GatewayError",
    "GatewayHTMLError",
    "GatewayResponse",
    "NetworkError",
    "ParameterSet",
    "Route",
    "SettingsEnvironment",
    "SignType",
    "TLSConfig",
    "Transport",
    "TransportError",
    "TransportResult",
    "UnsupportedModeError",
    "ValidationError",
    "build_environment",
    "build_tls_config",
    "canonical_sign_string",
    "classify_response",
    "compute_sandbox_signature",
    "compute_signature",
    "decode_response",
    "format_value",
    "generate_nonce_str",
    "load_client_config",
    "load_env_file",
    "post_api",
    "verify_signature",
]
