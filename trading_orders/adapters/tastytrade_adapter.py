"""
Tastytrade Transport - REST transport over an authenticated tastytrade Session.

Authentication and token handling stay with the tastytrade SDK; this class
only issues requests through the session's HTTP client, unwraps the 'data'
envelope and converts failures into BrokerAPIError.

Usage:
    from trading_orders.adapters.tastytrade_adapter import TastytradeTransport
    transport = TastytradeTransport.from_settings(get_settings())
    body = transport.get('/accounts/5WX00000/trading-status')
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

import httpx
from tastytrade import Session
from tastytrade.utils import TastytradeError, validate_response

from trading_orders.adapters.base import TransportBase
from trading_orders.core.errors import BrokerAPIError

logger = logging.getLogger(__name__)


class TastytradeTransport(TransportBase):
    """TransportBase implementation backed by tastytrade.Session"""

    def __init__(self, session: Session):
        self.session = session

    @classmethod
    def from_settings(cls, settings) -> 'TastytradeTransport':
        """Open a session with the credentials held in Settings"""
        if not settings.tastytrade_client_secret or not settings.tastytrade_refresh_token:
            raise BrokerAPIError("Tastytrade credentials are not configured")

        logger.info(f"Connecting to Tastytrade | {'PAPER' if settings.is_paper_trading else 'LIVE'}")
        try:
            session = Session(
                settings.tastytrade_client_secret,
                settings.tastytrade_refresh_token,
                is_test=settings.is_paper_trading,
            )
        except TastytradeError as e:
            raise BrokerAPIError(f"Tastytrade authentication failed: {e}") from e
        return cls(session)

    # ------------------------------------------------------------------
    # TransportBase
    # ------------------------------------------------------------------

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request('GET', path, params=params)

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('POST', path, json=body)

    def put(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('PUT', path, json=body)

    def delete(self, path: str) -> Optional[Dict[str, Any]]:
        return self._request('DELETE', path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _refresh_if_expired(self) -> None:
        expiration = getattr(self.session, 'session_expiration', None)
        if expiration is not None and expiration <= datetime.now(timezone.utc):
            logger.debug("Tastytrade session token expired, refreshing")
            self.session.refresh()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        self._refresh_if_expired()
        logger.debug(f"{method} {path}")

        try:
            response = self.session.sync_client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BrokerAPIError(f"{method} {path} failed: {e}") from e

        try:
            validate_response(response)
        except TastytradeError as e:
            raise self._to_broker_error(response, e) from e

        if response.status_code == 204 or not response.content:
            return {}
        payload = response.json()
        return payload.get('data', payload) if isinstance(payload, dict) else payload

    @staticmethod
    def _to_broker_error(response: httpx.Response, error: TastytradeError) -> BrokerAPIError:
        code = None
        errors = []
        message = str(error)
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = body.get('error') if isinstance(body, dict) else None
        if isinstance(detail, dict):
            code = detail.get('code')
            message = detail.get('message') or message
            errors = detail.get('errors') or []
        return BrokerAPIError(message, status_code=response.status_code, code=code, errors=errors)
