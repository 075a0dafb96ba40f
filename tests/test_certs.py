"""Unit tests for the certificate store and its locking."""

from __future__ import annotations

import ssl
import threading
import time

import pytest

from wechatpay_v2.core.certs import CertificateMaterial, CertificateStore, TLSConfig
from wechatpay_v2.core.errors import CertificateError
from wechatpay_v2.core.locking import ReadWriteLock

from conftest import MCH_ID


@pytest.fixture
def store() -> CertificateStore:
    return CertificateStore(is_prod=True, mch_id=MCH_ID)


class TestAttach:
    def test_sandbox_attachment_is_a_noop(self, certificate_material):
        sandbox = CertificateStore(is_prod=False, mch_id=MCH_ID)
        assert sandbox.attach(certificate_material["cert"], certificate_material["key"]) is None
        assert sandbox.attach() is None
        assert sandbox.ensure(None) is None
        assert not sandbox.is_attached

    def test_pem_pair_builds_tls_config(self, store, certificate_material):
        tls = store.attach(certificate_material["cert"], certificate_material["key"])
        assert isinstance(tls, TLSConfig)
        assert isinstance(tls.ssl_context, ssl.SSLContext)
        assert "https://" in tls.session.adapters
        assert store.tls_config() is tls
        assert store.attach() is tls

    def test_pem_pair_accepts_text(self, store, certificate_material):
        tls = store.attach(
            certificate_material["cert"].decode("ascii"),
            certificate_material["key"].decode("ascii"),
        )
        assert tls is not None

    def test_pkcs12_password_defaults_to_merchant_id(self, store, certificate_material):
        tls = store.attach(pkcs12=certificate_material["pkcs12"])
        assert tls.certificate.subject.rfc4514_string() == f"CN={MCH_ID}"

    def test_wrong_pkcs12_password_is_a_certificate_error(self, store, certificate_material):
        with pytest.raises(CertificateError):
            store.attach(pkcs12=certificate_material["pkcs12"], pkcs12_password="wrong")
        assert not store.is_attached

    def test_malformed_pem_is_rejected(self, store, certificate_material):
        with pytest.raises(CertificateError):
            store.attach(b"not a certificate", certificate_material["key"])
        with pytest.raises(CertificateError):
            store.attach(certificate_material["cert"], b"not a key")

    def test_key_without_certificate_is_rejected(self, store, certificate_material):
        with pytest.raises(CertificateError):
            store.attach(key=certificate_material["key"])

    def test_nothing_attached_and_nothing_given(self, store):
        with pytest.raises(CertificateError):
            store.attach()

    def test_ensure_without_loader_fails(self, store):
        with pytest.raises(CertificateError):
            store.ensure(None)


class TestConcurrentAttachment:
    def test_lazy_first_use_loads_once(self, store, certificate_material):
        loads = []

        def loader() -> CertificateMaterial:
            loads.append(threading.get_ident())
            time.sleep(0.05)
            return CertificateMaterial(
                cert=certificate_material["cert"],
                key=certificate_material["key"],
            )

        results = []
        errors = []
        start = threading.Barrier(8)

        def worker() -> None:
            start.wait()
            try:
                results.append(store.ensure(loader))
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(loads) == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert store.tls_config() is results[0]

    def test_racing_explicit_attachments_leave_one_consistent_state(self, store, certificate_material):
        results = []
        errors = []
        start = threading.Barrier(6)

        def worker() -> None:
            start.wait()
            try:
                results.append(store.attach(certificate_material["cert"], certificate_material["key"]))
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == 6
        final = store.tls_config()
        assert any(final is result for result in results)
        assert final.certificate == results[0].certificate


class TestReadWriteLock:
    def test_readers_share_the_lock(self):
        lock = ReadWriteLock()
        inside = threading.Event()
        release = threading.Event()

        def reader() -> None:
            with lock.read_locked():
                inside.set()
                release.wait(timeout=2)

        thread = threading.Thread(target=reader)
        thread.start()
        assert inside.wait(timeout=2)
        acquired = threading.Event()

        def second_reader() -> None:
            with lock.read_locked():
                acquired.set()

        other = threading.Thread(target=second_reader)
        other.start()
        assert acquired.wait(timeout=2)
        release.set()
        thread.join()
        other.join()

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        order = []
        lock.acquire_read()

        def writer() -> None:
            with lock.write_locked():
                order.append("write")

        thread = threading.Thread(target=writer)
        thread.start()
        time.sleep(0.05)
        order.append("read-done")
        lock.release_read()
        thread.join(timeout=2)
        assert order == ["read-done", "write"]
