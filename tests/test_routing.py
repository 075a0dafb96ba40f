"""Unit tests for sandbox/production routing and endpoint validation."""

from __future__ import annotations

import pytest

from wechatpay_v2.core.errors import UnsupportedModeError, ValidationError
from wechatpay_v2.core.params import ParameterSet
from wechatpay_v2.core.routing import (
    ENDPOINTS,
    EnvironmentRouter,
    GatewayEnvironment,
)
from wechatpay_v2.core.signing import SignType

PROD = EnvironmentRouter(GatewayEnvironment.PRODUCTION)
SANDBOX = EnvironmentRouter(GatewayEnvironment.SANDBOX)


class TestResolve:
    def test_production_uses_fixed_host(self):
        route = PROD.resolve("query_order")
        assert route.url == "https://api.mch.weixin.qq.com/pay/orderquery"
        assert not route.is_sandbox
        assert route.sign_type is None
        assert not route.requires_cert

    def test_sandbox_prefixes_path(self):
        route = SANDBOX.resolve("query_order")
        assert route.url == "https://api.mch.weixin.qq.com/sandboxnew/pay/orderquery"
        assert route.is_sandbox

    def test_refund_uses_secure_path_and_certificate_in_production_only(self):
        assert PROD.resolve("refund").url.endswith("/secapi/pay/refund")
        assert PROD.resolve("refund").requires_cert
        assert SANDBOX.resolve("refund").url.endswith("/sandboxnew/pay/refund")
        assert not SANDBOX.resolve("refund").requires_cert

    def test_base_url_override_wins_over_fixed_host(self):
        router = EnvironmentRouter(GatewayEnvironment.SANDBOX, base_url="http://127.0.0.1:8080/")
        assert router.resolve("close_order").url == "http://127.0.0.1:8080/sandboxnew/pay/closeorder"

    def test_absolute_url_is_used_verbatim(self):
        router = EnvironmentRouter(GatewayEnvironment.PRODUCTION, base_url="http://proxy/")
        route = router.resolve("https://api2.mch.weixin.qq.com/pay/micropay")
        assert route.url == "https://api2.mch.weixin.qq.com/pay/micropay"

    def test_raw_paths_join_the_host(self):
        assert PROD.resolve("mmpaymkttransfers/sendredpack").url == (
            "https://api.mch.weixin.qq.com/mmpaymkttransfers/sendredpack"
        )

    @pytest.mark.parametrize("endpoint", ["download_fund_flow", "batch_query_comment"])
    def test_hmac_only_endpoints(self, endpoint):
        route = PROD.resolve(endpoint)
        assert route.sign_type is SignType.HMAC_SHA256
        assert route.requires_cert
        with pytest.raises(UnsupportedModeError):
            SANDBOX.resolve(endpoint)

    def test_environment_from_flag(self):
        assert GatewayEnvironment.from_flag(True) is GatewayEnvironment.PRODUCTION
        assert GatewayEnvironment.from_flag(False) is GatewayEnvironment.SANDBOX


class TestValidate:
    def test_order_query_needs_one_identifier(self):
        with pytest.raises(ValidationError) as excinfo:
            PROD.validate("query_order", ParameterSet(nonce_str="n"))
        assert "out_trade_no" in str(excinfo.value)
        PROD.validate("query_order", ParameterSet(nonce_str="n", transaction_id="42"))

    def test_refund_required_fields(self):
        params = ParameterSet(nonce_str="n", out_trade_no="o", total_fee=1)
        with pytest.raises(ValidationError) as excinfo:
            PROD.validate("refund", params)
        assert excinfo.value.field == "out_refund_no"

    def test_bill_type_must_be_known(self):
        params = ParameterSet(nonce_str="n", bill_date="20240101", bill_type="EVERYTHING")
        with pytest.raises(ValidationError) as excinfo:
            PROD.validate("download_bill", params)
        assert excinfo.value.field == "bill_type"
        params.set("bill_type", "REFUND")
        PROD.validate("download_bill", params)

    def test_account_type_must_be_known(self):
        params = ParameterSet(nonce_str="n", bill_date="20240101", account_type="basic")
        with pytest.raises(ValidationError):
            PROD.validate("download_fund_flow", params)

    def test_unknown_endpoint(self):
        with pytest.raises(ValueError):
            PROD.validate("no_such_endpoint", ParameterSet())

    def test_every_endpoint_has_a_production_path(self):
        assert all(rule.path for rule in ENDPOINTS.values())
