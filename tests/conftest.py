"""Shared fixtures: an in-memory HTTP session and real certificate material."""

from __future__ import annotations

import datetime
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from requests.structures import CaseInsensitiveDict

from wechatpay_v2.core.config import ClientConfig

APPID = "wx2421b1c4370ec43b"
MCH_ID = "10000100"
API_KEY = "192006250b4c09247ec02edce69f6a2d"

SUCCESS_XML = (
    b"<xml><return_code><![CDATA[SUCCESS]]></return_code>"
    b"<return_msg><![CDATA[OK]]></return_msg>"
    b"<result_code><![CDATA[SUCCESS]]></result_code>"
    b"<trade_state><![CDATA[SUCCESS]]></trade_state></xml>"
)


def build_response(
    body: bytes = SUCCESS_XML,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    response._content_consumed = True
    response.headers = CaseInsensitiveDict(headers or {"Content-Type": "text/plain"})
    return response


class StubSession(requests.Session):
    """A ``requests.Session`` that replays queued responses or errors instead of sending."""

    def __init__(self, *replies: Any) -> None:
        super().__init__()
        self.replies: List[Any] = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, reply: Any) -> "StubSession":
        self.replies.append(reply)
        return self

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        reply = self.replies.pop(0) if self.replies else build_response()
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(method, url, **kwargs)
        return reply


@pytest.fixture
def session() -> StubSession:
    return StubSession()


@pytest.fixture
def make_config() -> Callable[..., ClientConfig]:
    def _make(**overrides: Any) -> ClientConfig:
        values: Dict[str, Any] = {
            "appid": APPID,
            "mch_id": MCH_ID,
            "api_key": API_KEY,
        }
        values.update(overrides)
        return ClientConfig(**values)

    return _make


@pytest.fixture(scope="session")
def certificate_material() -> Dict[str, bytes]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, MCH_ID)])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    cert_pem = certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    bundle = pkcs12.serialize_key_and_certificates(
        b"apiclient",
        key,
        certificate,
        None,
        serialization.BestAvailableEncryption(MCH_ID.encode("utf-8")),
    )
    return {"cert": cert_pem, "key": key_pem, "pkcs12": bundle}


@pytest.fixture
def stub_tls_sessions(monkeypatch) -> List[StubSession]:
    """Make certificate-bearing sessions in-memory stubs; returns the ones created."""
    created: List[StubSession] = []

    def _factory() -> StubSession:
        stub = StubSession()
        created.append(stub)
        return stub

    monkeypatch.setattr("wechatpay_v2.core.certs.requests.Session", _factory)
    return created
