"""Unit tests for layered configuration loading."""

from __future__ import annotations

import pytest

from wechatpay_v2.core.config import ClientConfig, ClientParameters, ConfigError, load_client_config
from wechatpay_v2.core.environment import build_environment, load_env_file
from wechatpay_v2.core.errors import CertificateError

from conftest import API_KEY, APPID, MCH_ID

BASE = {
    "WECHATPAY_APPID": APPID,
    "WECHATPAY_MCH_ID": MCH_ID,
    "WECHATPAY_API_KEY": API_KEY,
}


class TestFromMapping:
    def test_defaults(self):
        config = ClientConfig.from_mapping(BASE)
        assert config.appid == APPID
        assert not config.is_prod
        assert not config.debug
        assert config.timeout_seconds == 30.0
        assert config.base_url is None
        assert not config.has_certificate_files

    def test_secrets_stay_out_of_repr(self):
        config = ClientConfig.from_mapping({**BASE, "WECHATPAY_SANDBOX_SIGN_KEY": "sandbox-secret"})
        assert API_KEY not in repr(config)
        assert "sandbox-secret" not in repr(config)

    @pytest.mark.parametrize("key", ["WECHATPAY_APPID", "WECHATPAY_MCH_ID", "WECHATPAY_API_KEY"])
    def test_required_keys(self, key):
        values = dict(BASE)
        values[key] = "  "
        with pytest.raises(ConfigError) as excinfo:
            ClientConfig.from_mapping(values)
        assert key in str(excinfo.value)

    @pytest.mark.parametrize("raw, expected", [("true", True), ("YES", True), ("0", False), ("", False)])
    def test_boolean_flags(self, raw, expected):
        config = ClientConfig.from_mapping({**BASE, "WECHATPAY_IS_PROD": raw, "WECHATPAY_DEBUG": raw})
        assert config.is_prod is expected
        assert config.debug is expected

    def test_bad_boolean(self):
        with pytest.raises(ConfigError):
            ClientConfig.from_mapping({**BASE, "WECHATPAY_IS_PROD": "maybe"})

    @pytest.mark.parametrize("raw", ["abc", "0", "-5"])
    def test_bad_timeout(self, raw):
        with pytest.raises(ConfigError):
            ClientConfig.from_mapping({**BASE, "WECHATPAY_TIMEOUT_SECONDS": raw})

    def test_base_url_gets_trailing_slash(self):
        config = ClientConfig.from_mapping({**BASE, "WECHATPAY_BASE_URL": "http://localhost:8080"})
        assert config.base_url == "http://localhost:8080/"

    def test_base_url_must_be_http(self):
        with pytest.raises(ConfigError):
            ClientConfig.from_mapping({**BASE, "WECHATPAY_BASE_URL": "ftp://example.com"})

    def test_cert_and_key_come_together(self):
        with pytest.raises(ConfigError):
            ClientConfig.from_mapping({**BASE, "WECHATPAY_CERT_FILE": "/tmp/cert.pem"})


class TestLayering:
    def test_env_file_fills_gaps_only(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# merchant settings\n"
            f"export WECHATPAY_APPID={APPID}\n"
            f"WECHATPAY_MCH_ID='{MCH_ID}'\n"
            'WECHATPAY_API_KEY="from-file"\n'
            "WECHATPAY_IS_PROD=true\n",
            encoding="utf-8",
        )
        config = load_client_config(
            env_file=str(env_file),
            base={"WECHATPAY_API_KEY": API_KEY},
        )
        assert config.appid == APPID
        assert config.mch_id == MCH_ID
        assert config.api_key == API_KEY
        assert config.is_prod

    def test_keyword_arguments_win(self):
        config = load_client_config(
            env_file=None,
            base=BASE,
            overrides={"WECHATPAY_TIMEOUT_SECONDS": "10"},
            is_prod=True,
            timeout_seconds=2.5,
        )
        assert config.is_prod
        assert config.timeout_seconds == 2.5

    def test_parameter_bundle(self):
        parameters = ClientParameters(appid=APPID, mch_id=MCH_ID, api_key=API_KEY, debug=True)
        config = ClientConfig.from_env(env_file=None, base={}, parameters=parameters)
        assert config.debug
        assert API_KEY not in repr(parameters)

    def test_parameter_bundle_overrides_skip_unset_fields(self):
        parameters = ClientParameters(mch_id=MCH_ID, is_prod=True, timeout_seconds=3)
        assert parameters.as_overrides() == {
            "WECHATPAY_MCH_ID": MCH_ID,
            "WECHATPAY_IS_PROD": "true",
            "WECHATPAY_TIMEOUT_SECONDS": "3",
        }

    def test_unknown_keyword(self):
        with pytest.raises(TypeError):
            ClientConfig.from_env(env_file=None, base=BASE, merchant="x")

    def test_missing_env_file_is_ignored(self, tmp_path):
        environment = build_environment(env_file=str(tmp_path / "absent.env"), base=BASE)
        assert environment.get("WECHATPAY_APPID") == APPID

    def test_load_env_file_keeps_existing_values(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("WECHATPAY_APPID=file\nWECHATPAY_MCH_ID=file\n", encoding="utf-8")
        environ = {"WECHATPAY_APPID": "process"}
        merged = load_env_file(str(env_file), environ=environ)
        assert merged == {"WECHATPAY_APPID": "process", "WECHATPAY_MCH_ID": "file"}

    def test_unrelated_file_keys_are_ignored(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DATABASE_URL=postgres://x\nWECHATPAY_DEBUG=1\n", encoding="utf-8")
        environment = build_environment(env_file=str(env_file), base={})
        assert dict(environment.variables) == {"WECHATPAY_DEBUG": "1"}


class TestCertificateMaterial:
    def test_reads_pem_pair(self, tmp_path, certificate_material):
        cert_file = tmp_path / "cert.pem"
        key_file = tmp_path / "key.pem"
        cert_file.write_bytes(certificate_material["cert"])
        key_file.write_bytes(certificate_material["key"])
        config = ClientConfig(appid=APPID, mch_id=MCH_ID, api_key=API_KEY, cert_file=str(cert_file), key_file=str(key_file))
        material = config.certificate_material()
        assert material.cert == certificate_material["cert"]
        assert material.pkcs12 is None

    def test_pkcs12_wins_over_pem(self, tmp_path, certificate_material):
        bundle = tmp_path / "apiclient_cert.p12"
        bundle.write_bytes(certificate_material["pkcs12"])
        config = ClientConfig(appid=APPID, mch_id=MCH_ID, api_key=API_KEY, pkcs12_file=str(bundle), cert_file="x", key_file="y")
        assert config.certificate_material().pkcs12 == certificate_material["pkcs12"]

    def test_unreadable_file(self, tmp_path):
        config = ClientConfig(appid=APPID, mch_id=MCH_ID, api_key=API_KEY, pkcs12_file=str(tmp_path / "nope.p12"))
        with pytest.raises(CertificateError):
            config.certificate_material()
