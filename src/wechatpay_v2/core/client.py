"""
Merchant-facing client for the XML payment gateway.

Every business endpoint is a thin caller: validate the fields, route, attach
the client certificate where the gateway demands one, send, decode.
"""

from __future__ import annotations

import logging
import secrets
from typing import Mapping, Optional, Union

import requests

from .cancellation import CancellationToken
from .certs import CertificateStore, PemInput, TLSConfig
from .config import ClientConfig
from .errors import DecodeError
from .params import ParameterSet, ParamValue
from .responses import GatewayResponse, decode_response
from .routing import (
    SANDBOX_PATH_PREFIX,
    SANDBOX_SIGN_KEY_PATH,
    EnvironmentRouter,
    GatewayEnvironment,
    Route,
)
from .signing import SIGN_FIELD, SignType, compute_signature
from .transport import Transport, TransportResult

__all__ = [
    "GatewayClient",
    "Params",
    "generate_nonce_str",
    "post_api",
]

Params = Union[ParameterSet, Mapping[str, ParamValue]]


def generate_nonce_str() -> str:
    """32 random hex characters, suitable for the ``nonce_str`` field."""
    return secrets.token_hex(16)


def _as_params(params: Params) -> ParameterSet:
    if isinstance(params, ParameterSet):
        return params
    return ParameterSet(params)


class GatewayClient:
    """
    One merchant's connection to the gateway.

    Safe to share between threads: credentials are immutable and the client
    certificate is guarded by the :class:`CertificateStore` lock.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.environment = GatewayEnvironment.from_flag(config.is_prod)
        self.router = EnvironmentRouter(self.environment, base_url=config.base_url)
        self.transport = Transport(
            appid=config.appid,
            mch_id=config.mch_id,
            api_key=config.api_key,
            session=session,
            timeout=config.timeout_seconds,
            debug=config.debug,
            sandbox_sign_key=config.sandbox_sign_key,
        )
        # certificate sessions inherit proxies, headers and auth from this one
        self.certificates = CertificateStore(
            is_prod=config.is_prod,
            mch_id=config.mch_id,
            session=self.transport.session,
        )

    @property
    def session(self) -> requests.Session:
        return self.transport.session

    @property
    def is_prod(self) -> bool:
        return self.environment is GatewayEnvironment.PRODUCTION

    # Certificates

    def add_cert_config(
        self,
        cert: Optional[PemInput] = None,
        key: Optional[PemInput] = None,
        pkcs12: Optional[bytes] = None,
        *,
        pkcs12_password: Optional[str] = None,
        root_ca: Optional[PemInput] = None,
    ) -> Optional[TLSConfig]:
        """
        Attach the merchant API certificate (PEM pair or PKCS#12 bundle).

        The PKCS#12 password defaults to the merchant id. Sandbox clients
        ignore the call and get ``None`` back.
        """
        return self.certificates.attach(
            cert,
            key,
            pkcs12,
            pkcs12_password=pkcs12_password,
            root_ca=root_ca,
        )

    def require_tls(self) -> Optional[TLSConfig]:
        """
        Return the certificate for a mutual-TLS call, loading configured files on first use.
        """
        loader = self.config.certificate_material if self.config.has_certificate_files else None
        return self.certificates.ensure(loader)

    # Generic calls

    def call(
        self,
        endpoint: str,
        params: Params,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        """Validate, route and POST ``params`` to a named endpoint, returning the raw answer."""
        params = _as_params(params)
        self.router.validate(endpoint, params)
        route = self.router.resolve(endpoint)
        tls = self.require_tls() if route.requires_cert else None
        logging.info("Calling %s at %s", endpoint, route.url)
        return self.transport.post(params, route, tls=tls, cancel=cancel)

    def _call_decoded(
        self,
        endpoint: str,
        params: Params,
        cancel: Optional[CancellationToken],
    ) -> GatewayResponse:
        return decode_response(self.call(endpoint, params, cancel=cancel))

    def post_api(
        self,
        path: str,
        params: Params,
        *,
        tls: Optional[TLSConfig] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        """
        Sign and POST to an endpoint this package does not wrap.

        ``path`` is relative to the gateway host (``pay/micropay``) or an
        absolute URL. Pass ``tls`` (e.g. from :meth:`require_tls`) for
        endpoints behind mutual TLS.
        """
        route = self.router.resolve(path)
        logging.info("Calling %s", route.url)
        return self.transport.post(_as_params(params), route, tls=tls, cancel=cancel)

    def post_unsigned(
        self,
        path: str,
        params: Params,
        *,
        tls: Optional[TLSConfig] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        """POST ``params`` as given, without injecting ids or a signature."""
        route = self.router.resolve(path)
        return self.transport.post_unsigned(_as_params(params), route, tls=tls, cancel=cancel)

    def get_api(
        self,
        path: str,
        params: Params,
        sign_type: Union[str, SignType] = SignType.MD5,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        route = self.router.resolve(path)
        logging.info("Calling %s", route.url)
        return self.transport.get(_as_params(params), route, sign_type, cancel=cancel)

    def verify_response(self, response: GatewayResponse) -> bool:
        """Sandbox answers are signed with the sandbox key when one is configured."""
        secret = self.config.api_key
        if not self.is_prod and self.config.sandbox_sign_key:
            secret = self.config.sandbox_sign_key
        return response.verify(secret)

    # Business endpoints

    def unified_order(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        params = _as_params(params)
        if not self.is_prod:
            # sandbox acceptance case "101" expects this exact amount
            params.set("total_fee", 101)
        return self._call_decoded("unified_order", params, cancel)

    def micropay(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        params = _as_params(params)
        if not self.is_prod:
            params.set("total_fee", 1)
        return self._call_decoded("micropay", params, cancel)

    def query_order(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        return self._call_decoded("query_order", params, cancel)

    def close_order(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        return self._call_decoded("close_order", params, cancel)

    def refund(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        """Requires a client certificate in production."""
        return self._call_decoded("refund", params, cancel)

    def query_refund(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        return self._call_decoded("query_refund", params, cancel)

    def reverse(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        """Requires a client certificate in production."""
        return self._call_decoded("reverse", params, cancel)

    def report(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        return self._call_decoded("report", params, cancel)

    def get_short_url(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        return self._call_decoded("short_url", params, cancel)

    def auth_code_to_openid(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> GatewayResponse:
        return self._call_decoded("auth_code_to_openid", params, cancel)

    def download_bill(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> TransportResult:
        """The body is the bill itself (CSV-like text), not XML."""
        return self.call("download_bill", params, cancel=cancel)

    def download_fund_flow(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> TransportResult:
        """
        Production only: the endpoint accepts HMAC-SHA256 signatures exclusively
        and needs the client certificate.
        """
        return self.call("download_fund_flow", params, cancel=cancel)

    def batch_query_comment(self, params: Params, *, cancel: Optional[CancellationToken] = None) -> TransportResult:
        """Production only, HMAC-SHA256 and client certificate like the fund flow."""
        return self.call("batch_query_comment", params, cancel=cancel)

    def fetch_sandbox_sign_key(
        self,
        nonce_str: Optional[str] = None,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """
        Ask the sandbox for its signing key.

        The request itself is signed with the real API key. Feed the result
        into ``sandbox_sign_key`` of a new :class:`ClientConfig`.
        """
        params = ParameterSet(mch_id=self.config.mch_id, nonce_str=nonce_str or generate_nonce_str())
        params.set(SIGN_FIELD, compute_signature(params, self.config.api_key, SignType.MD5))
        route = Route(
            url=self.router.build_url(SANDBOX_PATH_PREFIX + SANDBOX_SIGN_KEY_PATH),
            environment=GatewayEnvironment.SANDBOX,
        )
        result = self.transport.post_unsigned(params, route, cancel=cancel)
        response = decode_response(result)
        sign_key = response.get("sandbox_signkey")
        if not sign_key:
            raise DecodeError(
                result.body,
                ValueError(response.return_msg or "missing sandbox_signkey"),
                result=result,
            )
        return sign_key


def post_api(
    config: ClientConfig,
    path: str,
    params: Params,
    *,
    session: Optional[requests.Session] = None,
) -> TransportResult:
    """
    One-shot helper that signs and posts ``params`` with a throwaway client.
    """
    client = GatewayClient(config, session=session)
    return client.post_api(path, params)
