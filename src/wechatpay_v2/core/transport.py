"""
HTTP transport for the XML gateway.

Each call is stateless: normalize → sign → serialize → send → classify. No
retries happen here; a caller that wants to retry must build a fresh
parameter set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

import requests
from requests.structures import CaseInsensitiveDict

from .cancellation import CancellationToken
from .certs import TLSConfig
from .errors import (
    CancelledError,
    GatewayHTMLError,
    NetworkError,
    TransportError,
    UnsupportedModeError,
)
from .interrupt import abort_scope, make_abortable
from .params import ParameterSet
from .routing import Route
from .signing import (
    SIGN_FIELD,
    SIGN_TYPE_FIELD,
    SignType,
    compute_sandbox_signature,
    compute_signature,
    parse_sign_type,
)

__all__ = [
    "Transport",
    "TransportResult",
    "classify_response",
]

XML_CONTENT_TYPE = "application/xml; charset=utf-8"
_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class TransportResult:
    body: bytes
    url: str
    status_code: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def classify_response(result: TransportResult) -> TransportResult:
    """
    Raise the error a raw gateway answer stands for, or return it unchanged.

    An HTML page is never protocol XML, so it wins over the status check.
    """
    if b"html" in result.body.lower():
        raise GatewayHTMLError(result)
    if result.status_code != 200:
        raise TransportError(result)
    return result


class Transport:
    """
    Sends parameter sets to the gateway on behalf of one merchant.

    ``session`` is shared by every call without a client certificate; calls
    that present one go through the session of their :class:`TLSConfig`.
    """

    def __init__(
        self,
        *,
        appid: str,
        mch_id: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        debug: bool = False,
        sandbox_sign_key: Optional[str] = None,
    ) -> None:
        self.appid = appid
        self.mch_id = mch_id
        self._api_key = api_key
        self._sandbox_sign_key = sandbox_sign_key or api_key
        self.session = make_abortable(session if session is not None else requests.Session())
        self.timeout = timeout
        self.debug = debug

    def inject_identity(self, params: ParameterSet, *, honour_combined: bool = True) -> None:
        """
        Fill ``appid`` and ``mch_id`` when the caller left them empty.

        A combined-payment request names its own ``combine_appid`` /
        ``combine_mch_id``; with ``honour_combined`` the matching field is then
        left out entirely.
        """
        if params.is_empty("appid") and not (honour_combined and not params.is_empty("combine_appid")):
            params.set("appid", self.appid)
        if params.is_empty("mch_id") and not (honour_combined and not params.is_empty("combine_mch_id")):
            params.set("mch_id", self.mch_id)

    def sign(self, params: ParameterSet, route: Route) -> None:
        """Normalize ``params`` for ``route`` and add ``sign`` unless one is present."""
        if route.is_sandbox:
            self._sign_sandbox(params, route)
            return
        self.inject_identity(params)
        if route.sign_type is not None:
            params.set(SIGN_TYPE_FIELD, route.sign_type.value)
        if params.is_empty(SIGN_FIELD):
            params.set(
                SIGN_FIELD,
                compute_signature(params, self._api_key, params.get_string(SIGN_TYPE_FIELD)),
            )

    def _sign_sandbox(self, params: ParameterSet, route: Route) -> None:
        requested = parse_sign_type(params.get_string(SIGN_TYPE_FIELD) or route.sign_type)
        if requested is not SignType.MD5:
            raise UnsupportedModeError("The sandbox gateway only accepts MD5 signatures")
        params.set("appid", self.appid)
        params.set("mch_id", self.mch_id)
        if params.is_empty(SIGN_FIELD):
            params.set(SIGN_TYPE_FIELD, SignType.MD5.value)
            params.set(
                SIGN_FIELD,
                compute_sandbox_signature(params, self.mch_id, self._sandbox_sign_key),
            )

    def post(
        self,
        params: ParameterSet,
        route: Route,
        *,
        tls: Optional[TLSConfig] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        """Sign ``params`` for ``route`` and POST them as an XML document."""
        self.sign(params, route)
        return self.post_unsigned(params, route, tls=tls, cancel=cancel)

    def post_unsigned(
        self,
        params: ParameterSet,
        route: Route,
        *,
        tls: Optional[TLSConfig] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        """POST ``params`` exactly as given."""
        body = params.to_xml_body()
        if self.debug:
            logging.debug("Wechat_Request: %s", body)
        session = tls.session if tls is not None and not route.is_sandbox else self.session
        return self._exchange(
            "POST",
            route.url,
            session=session,
            data=body.encode("utf-8"),
            headers={"Content-Type": XML_CONTENT_TYPE},
            cancel=cancel,
        )

    def get(
        self,
        params: ParameterSet,
        route: Route,
        sign_type: Union[str, SignType, None] = SignType.MD5,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        """Re-sign ``params`` with ``sign_type`` and send them as a query string."""
        algorithm = parse_sign_type(sign_type)
        if route.is_sandbox and algorithm is not SignType.MD5:
            raise UnsupportedModeError("The sandbox gateway only accepts MD5 signatures")
        self.inject_identity(params, honour_combined=False)
        params.remove(SIGN_FIELD)
        params.set(SIGN_FIELD, compute_signature(params, self._api_key, algorithm))
        if self.debug:
            logging.debug("Wechat_Request: %s", params.to_json())
        url = f"{route.url}?{params.to_canonical_query_string()}"
        return self._exchange("GET", url, session=self.session, cancel=cancel)

    def _timeout_for(self, cancel: Optional[CancellationToken]) -> float:
        remaining = cancel.remaining() if cancel is not None else None
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def _exchange(
        self,
        method: str,
        url: str,
        *,
        session: requests.Session,
        data: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> TransportResult:
        if cancel is not None and cancel.cancelled:
            raise CancelledError(url)
        # cancelling shuts down the live socket, both before and after headers
        with abort_scope(cancel):
            try:
                response = session.request(
                    method,
                    url,
                    data=data,
                    headers=headers,
                    timeout=self._timeout_for(cancel),
                    stream=True,
                )
            except (requests.RequestException, OSError) as exc:
                if cancel is not None and cancel.cancelled:
                    raise CancelledError(url, exc) from exc
                raise NetworkError(url, exc) from exc

            with response:
                unregister = cancel.add_callback(response.close) if cancel is not None else None
                try:
                    body = self._read_body(response, url, cancel)
                finally:
                    if unregister is not None:
                        unregister()

        if self.debug:
            logging.debug("Wechat_Response: %d %s", response.status_code, body.decode("utf-8", errors="replace"))
        result = TransportResult(
            body=body,
            url=url,
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
        )
        return classify_response(result)

    @staticmethod
    def _read_body(
        response: requests.Response,
        url: str,
        cancel: Optional[CancellationToken],
    ) -> bytes:
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if cancel is not None and cancel.cancelled:
                    raise CancelledError(url)
                chunks.append(chunk)
        except (requests.RequestException, OSError, ValueError) as exc:
            if cancel is not None and cancel.cancelled:
                raise CancelledError(url, exc) from exc
            raise NetworkError(url, exc) from exc
        if cancel is not None and cancel.cancelled:
            raise CancelledError(url)
        return b"".join(chunks)
