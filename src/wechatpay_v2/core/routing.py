"""
Sandbox/production routing and per-endpoint request rules.

All differences between the two gateway environments live in
:data:`ENDPOINTS`, a single table keyed by endpoint name, consumed by
:class:`EnvironmentRouter`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from .errors import UnsupportedModeError, ValidationError
from .params import ParameterSet
from .signing import SignType

__all__ = [
    "ENDPOINTS",
    "PRODUCTION_BASE_URL",
    "SANDBOX_BASE_URL",
    "SANDBOX_PATH_PREFIX",
    "SANDBOX_SIGN_KEY_PATH",
    "EndpointRule",
    "EnvironmentRouter",
    "GatewayEnvironment",
    "Route",
]

PRODUCTION_BASE_URL = "https://api.mch.weixin.qq.com/"
SANDBOX_PATH_PREFIX = "sandboxnew/"
SANDBOX_BASE_URL = PRODUCTION_BASE_URL + SANDBOX_PATH_PREFIX
SANDBOX_SIGN_KEY_PATH = "pay/getsignkey"


class GatewayEnvironment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"

    @classmethod
    def from_flag(cls, is_prod: bool) -> "GatewayEnvironment":
        return cls.PRODUCTION if is_prod else cls.SANDBOX

    @property
    def path_prefix(self) -> str:
        return SANDBOX_PATH_PREFIX if self is GatewayEnvironment.SANDBOX else ""


@dataclass(frozen=True)
class EndpointRule:
    path: str
    sandbox_path: Optional[str] = None
    requires_cert: bool = False
    sign_type: Optional[SignType] = None
    required: Tuple[str, ...] = ("nonce_str",)
    any_of: Tuple[Tuple[str, ...], ...] = ()
    allowed_values: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    @property
    def sandbox_supported(self) -> bool:
        return self.sandbox_path is not None


_TRADE_IDS = ("out_trade_no", "transaction_id")

ENDPOINTS: Dict[str, EndpointRule] = {
    "unified_order": EndpointRule(
        path="pay/unifiedorder",
        sandbox_path="pay/unifiedorder",
        required=(),
    ),
    "micropay": EndpointRule(
        path="pay/micropay",
        sandbox_path="pay/micropay",
        required=(),
    ),
    "query_order": EndpointRule(
        path="pay/orderquery",
        sandbox_path="pay/orderquery",
        any_of=(_TRADE_IDS,),
    ),
    "close_order": EndpointRule(
        path="pay/closeorder",
        sandbox_path="pay/closeorder",
        required=("nonce_str", "out_trade_no"),
    ),
    "refund": EndpointRule(
        path="secapi/pay/refund",
        sandbox_path="pay/refund",
        requires_cert=True,
        required=("nonce_str", "out_refund_no", "total_fee", "refund_fee"),
        any_of=(_TRADE_IDS,),
    ),
    "query_refund": EndpointRule(
        path="pay/refundquery",
        sandbox_path="pay/refundquery",
        any_of=(("refund_id", "out_refund_no", "transaction_id", "out_trade_no"),),
    ),
    "reverse": EndpointRule(
        path="secapi/pay/reverse",
        sandbox_path="pay/reverse",
        requires_cert=True,
        required=("nonce_str", "out_trade_no"),
    ),
    "download_bill": EndpointRule(
        path="pay/downloadbill",
        sandbox_path="pay/downloadbill",
        required=("nonce_str", "bill_date", "bill_type"),
        allowed_values={
            "bill_type": frozenset({"ALL", "SUCCESS", "REFUND", "RECHARGE_REFUND"}),
        },
    ),
    "download_fund_flow": EndpointRule(
        path="pay/downloadfundflow",
        requires_cert=True,
        sign_type=SignType.HMAC_SHA256,
        required=("nonce_str", "bill_date", "account_type"),
        allowed_values={"account_type": frozenset({"Basic", "Operation", "Fees"})},
    ),
    "report": EndpointRule(
        path="payitil/report",
        sandbox_path="payitil/report",
        required=(
            "nonce_str",
            "interface_url",
            "execute_time",
            "return_code",
            "return_msg",
            "result_code",
            "user_ip",
        ),
    ),
    "batch_query_comment": EndpointRule(
        path="billcommentsp/batchquerycomment",
        requires_cert=True,
        sign_type=SignType.HMAC_SHA256,
        required=("nonce_str", "begin_time", "end_time", "offset"),
    ),
    "short_url": EndpointRule(
        path="tools/shorturl",
        required=("nonce_str", "long_url"),
    ),
    "auth_code_to_openid": EndpointRule(
        path="tools/authcodetoopenid",
        required=("nonce_str", "auth_code"),
    ),
}


@dataclass(frozen=True)
class Route:
    url: str
    environment: GatewayEnvironment
    sign_type: Optional[SignType] = None
    requires_cert: bool = False
    endpoint: Optional[str] = None

    @property
    def is_sandbox(self) -> bool:
        return self.environment is GatewayEnvironment.SANDBOX


class EnvironmentRouter:
    """
    Resolve an endpoint name (or absolute URL) to a :class:`Route`.

    URL precedence: an absolute URL is used verbatim, otherwise the configured
    base-URL override, otherwise the fixed host of the current environment.
    """

    def __init__(
        self,
        environment: GatewayEnvironment,
        *,
        base_url: Optional[str] = None,
        rules: Optional[Mapping[str, EndpointRule]] = None,
    ) -> None:
        self.environment = environment
        self.base_url = base_url.rstrip("/") + "/" if base_url else None
        self.rules = dict(ENDPOINTS if rules is None else rules)

    def rule(self, endpoint: str) -> EndpointRule:
        try:
            return self.rules[endpoint]
        except KeyError as exc:
            raise ValueError(f"Unknown endpoint '{endpoint}'") from exc

    def build_url(self, path: str) -> str:
        """Join ``path`` (already carrying any sandbox prefix) to the host."""
        if path.startswith(("http://", "https://")):
            return path
        return (self.base_url or PRODUCTION_BASE_URL) + path

    def resolve(self, endpoint_or_url: str) -> Route:
        """
        Route a known endpoint name, or a raw path/URL passed through as given.

        Raw paths are never rewritten for the sandbox; callers pass the full
        ``sandboxnew/...`` path themselves when they need it.
        """
        if endpoint_or_url not in self.rules:
            return Route(url=self.build_url(endpoint_or_url), environment=self.environment)

        rule = self.rules[endpoint_or_url]
        if self.environment is GatewayEnvironment.SANDBOX:
            if not rule.sandbox_supported:
                raise UnsupportedModeError(
                    f"{endpoint_or_url} is not available in the sandbox environment"
                )
            path = self.environment.path_prefix + rule.sandbox_path
        else:
            path = rule.path
        return Route(
            url=self.build_url(path),
            environment=self.environment,
            sign_type=rule.sign_type,
            requires_cert=rule.requires_cert and self.environment is GatewayEnvironment.PRODUCTION,
            endpoint=endpoint_or_url,
        )

    def validate(self, endpoint: str, params: ParameterSet) -> None:
        rule = self.rule(endpoint)
        params.require_non_empty(*rule.required)
        for group in rule.any_of:
            if all(params.is_empty(name) for name in group):
                raise ValidationError(
                    f"{', '.join(group)} are not allowed to be null at the same time",
                    field=group[0],
                )
        for name, allowed in rule.allowed_values.items():
            value = params.get_string(name)
            if value and value not in allowed:
                raise ValidationError(
                    f"{name} must be one of {', '.join(sorted(allowed))}, got '{value}'",
                    field=name,
                )
