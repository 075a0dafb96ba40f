"""
Mutual-TLS client certificate handling.

Refund, reversal and the HMAC-only downloads require the merchant's API
certificate. The store parses the material with ``cryptography``, builds an
:class:`ssl.SSLContext` and a ``requests.Session`` that presents it. That
session inherits proxies, headers, auth and verification settings from the
client's own session.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import requests
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import CertificateError
from .interrupt import AbortableAdapter, make_abortable
from .locking import ReadWriteLock

__all__ = [
    "CertificateMaterial",
    "CertificateStore",
    "TLSConfig",
    "build_tls_config",
]

PemInput = Union[str, bytes]


def _to_bytes(value: PemInput) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class _SSLContextAdapter(AbortableAdapter):
    def __init__(self, ssl_context: ssl.SSLContext, **kwargs) -> None:
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(*args, **kwargs)


@dataclass(frozen=True)
class TLSConfig:
    ssl_context: ssl.SSLContext
    session: requests.Session
    certificate: x509.Certificate

    @property
    def serial_number(self) -> str:
        return format(self.certificate.serial_number, "X")


@dataclass(frozen=True)
class CertificateMaterial:
    """Raw certificate inputs, either a PEM pair or a PKCS#12 bundle."""

    cert: Optional[PemInput] = None
    key: Optional[PemInput] = None
    pkcs12: Optional[bytes] = None
    pkcs12_password: Optional[str] = None
    root_ca: Optional[PemInput] = None

    @property
    def is_empty(self) -> bool:
        return self.cert is None and self.key is None and self.pkcs12 is None


def _load_pem_pair(cert: PemInput, key: PemInput) -> Tuple[x509.Certificate, bytes, bytes]:
    cert_bytes = _to_bytes(cert)
    key_bytes = _to_bytes(key)
    try:
        certificate = x509.load_pem_x509_certificate(cert_bytes)
        serialization.load_pem_private_key(key_bytes, password=None)
    except (ValueError, TypeError) as exc:
        raise CertificateError(f"Failed to parse PEM certificate or key: {exc}") from exc
    return certificate, cert_bytes, key_bytes


def _load_pkcs12(data: bytes, password: Optional[str]) -> Tuple[x509.Certificate, bytes, bytes]:
    secret = password.encode("utf-8") if password else None
    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(data, secret)
    except (ValueError, TypeError) as exc:
        raise CertificateError(f"Failed to parse PKCS#12 bundle: {exc}") from exc
    if private_key is None or certificate is None:
        raise CertificateError("PKCS#12 bundle must contain a certificate and a private key")
    cert_bytes = certificate.public_bytes(serialization.Encoding.PEM)
    key_bytes = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return certificate, cert_bytes, key_bytes


def _build_ssl_context(cert_bytes: bytes, key_bytes: bytes, root_ca: Optional[PemInput]) -> ssl.SSLContext:
    context = ssl.create_default_context()
    try:
        if root_ca is not None:
            context.load_verify_locations(cadata=_to_bytes(root_ca).decode("ascii"))
        # load_cert_chain only reads from disk
        handle, path = tempfile.mkstemp(suffix=".pem")
        try:
            with os.fdopen(handle, "wb") as chain:
                chain.write(cert_bytes)
                chain.write(b"\n")
                chain.write(key_bytes)
            context.load_cert_chain(path)
        finally:
            os.unlink(path)
    except (ssl.SSLError, ValueError) as exc:
        raise CertificateError(f"Failed to build TLS context: {exc}") from exc
    return context


def _inherit_settings(session: requests.Session, base: requests.Session) -> None:
    session.headers = base.headers.copy()
    session.proxies = dict(base.proxies)
    session.hooks = {event: list(hooks) for event, hooks in base.hooks.items()}
    session.params = dict(base.params)
    session.auth = base.auth
    session.verify = base.verify
    session.trust_env = base.trust_env
    session.max_redirects = base.max_redirects
    session.cookies = base.cookies


def build_tls_config(
    material: CertificateMaterial,
    *,
    default_password: Optional[str] = None,
    base_session: Optional[requests.Session] = None,
) -> TLSConfig:
    """
    Parse ``material`` into a :class:`TLSConfig`.

    With ``base_session`` the certificate-bearing session carries the same
    proxies, default headers, hooks, auth, cookies and verification settings,
    so only the client certificate differs between the two.
    """
    if material.pkcs12 is not None:
        certificate, cert_bytes, key_bytes = _load_pkcs12(
            material.pkcs12,
            material.pkcs12_password if material.pkcs12_password is not None else default_password,
        )
    elif material.cert is not None and material.key is not None:
        certificate, cert_bytes, key_bytes = _load_pem_pair(material.cert, material.key)
    else:
        raise CertificateError("Both a certificate and a private key are required")

    context = _build_ssl_context(cert_bytes, key_bytes, material.root_ca)
    session = make_abortable(requests.Session())
    if base_session is not None:
        _inherit_settings(session, base_session)
    session.mount("https://", _SSLContextAdapter(context))
    return TLSConfig(ssl_context=context, session=session, certificate=certificate)


class CertificateStore:
    """
    Holds the client's certificate behind a reader/writer lock.

    Reads after attachment never block each other. Explicit attachments are
    serialized and the last successful writer wins; :meth:`ensure` loads lazily
    and at most once no matter how many callers race on first use.
    """

    def __init__(
        self,
        *,
        is_prod: bool,
        mch_id: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._is_prod = is_prod
        self._mch_id = mch_id
        self._session = session
        self._lock = ReadWriteLock()
        self._tls: Optional[TLSConfig] = None

    def tls_config(self) -> Optional[TLSConfig]:
        with self._lock.read_locked():
            return self._tls

    @property
    def is_attached(self) -> bool:
        return self.tls_config() is not None

    def attach(
        self,
        cert: Optional[PemInput] = None,
        key: Optional[PemInput] = None,
        pkcs12: Optional[bytes] = None,
        *,
        pkcs12_password: Optional[str] = None,
        root_ca: Optional[PemInput] = None,
    ) -> Optional[TLSConfig]:
        """
        Attach certificate material, or return the current one when none is given.

        Sandbox clients never present a certificate, so this is a no-op there.
        """
        if not self._is_prod:
            return None
        material = CertificateMaterial(
            cert=cert,
            key=key,
            pkcs12=pkcs12,
            pkcs12_password=pkcs12_password,
            root_ca=root_ca,
        )
        if material.is_empty:
            current = self.tls_config()
            if current is None:
                raise CertificateError("No client certificate attached")
            return current

        tls = build_tls_config(material, default_password=self._mch_id, base_session=self._session)
        with self._lock.write_locked():
            self._tls = tls
        logging.info("Attached client certificate %s", tls.serial_number)
        return tls

    def ensure(self, loader: Optional[Callable[[], CertificateMaterial]]) -> Optional[TLSConfig]:
        """
        Return the attached certificate, loading it through ``loader`` on first use.

        Raises :class:`CertificateError` when nothing is attached and there is
        nothing to load.
        """
        if not self._is_prod:
            return None
        current = self.tls_config()
        if current is not None:
            return current
        if loader is None:
            raise CertificateError(
                "This endpoint requires a client certificate; attach one first"
            )
        with self._lock.write_locked():
            if self._tls is None:
                self._tls = build_tls_config(loader(), default_password=self._mch_id, base_session=self._session)
                logging.info("Loaded client certificate %s", self._tls.serial_number)
            return self._tls
