"""Async HTTP client for the Deriverse dashboard API route.

The route wraps the Deriverse SDK and exposes it as GET actions:
- client: account summary and held instruments
- spotOrdersInfo / perpOrdersInfo: resting order counts (+ perp position block)
- spotOrders / perpOrders: resting bids and asks
- transactions: raw transaction history
- prices: price table keyed by symbol

Every failure mode (transport error, non-2xx status, undecodable JSON, an
`error` or `sdkError` field in the payload, schema mismatch) is returned as
Err. There are no retries here; the periodic refresh is the retry.
"""
from typing import Any, Dict, List, Optional, Type

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from tradelens.core.config import app_config
from tradelens.core.models import MarketType
from tradelens.core.result import Err, Ok, Result
from tradelens.exchange.base import AccountDataSource, PriceSource
from tradelens.exchange.schemas import (
    ClientData,
    ClientOrders,
    OrdersInfo,
    PriceQuote,
    RawTransaction,
)

logger = structlog.get_logger(__name__)


def _market_prefix(market_type: MarketType) -> str:
    return "perp" if market_type == MarketType.PERPETUAL else "spot"


class DeriverseClient(AccountDataSource, PriceSource):
    """
    Account data and primary price feed backed by the dashboard API route.

    Args:
        api_url: Route URL (defaults to DERIVERSE_API_URL)
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    name = "deriverse"

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url or app_config.deriverse.api_url
        self.timeout = timeout or app_config.deriverse.timeout
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self):
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
        logger.info("deriverse.client_closed")

    # =========================================================================
    # Core request
    # =========================================================================

    async def _get(self, action: str, **params: Any) -> Result[Dict[str, Any]]:
        """Issue one GET action and unwrap the payload."""
        query = {"action": action}
        query.update({k: v for k, v in params.items() if v is not None})

        try:
            response = await self._client.get(self.api_url, params=query)
        except httpx.HTTPError as e:
            logger.warning("deriverse.request_failed", action=action, error=str(e))
            return Err(f"{action}: {type(e).__name__}: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            detail = payload.get("error") if isinstance(payload, dict) else None
            logger.warning(
                "deriverse.http_error",
                action=action,
                status=response.status_code,
                detail=detail,
            )
            return Err(f"{action}: HTTP {response.status_code}" + (f" ({detail})" if detail else ""))

        if not isinstance(payload, dict):
            logger.warning("deriverse.invalid_payload", action=action)
            return Err(f"{action}: response is not a JSON object")

        error = payload.get("error") or payload.get("sdkError")
        if error:
            logger.warning("deriverse.upstream_error", action=action, error=str(error))
            return Err(f"{action}: {error}")

        return Ok(payload)

    @staticmethod
    def _validate(action: str, model: Type[BaseModel], data: Any) -> Result:
        try:
            return Ok(model.model_validate(data))
        except ValidationError as e:
            logger.warning("deriverse.schema_mismatch", action=action, errors=e.error_count())
            return Err(f"{action}: unexpected payload shape ({e.error_count()} errors)")

    # =========================================================================
    # AccountDataSource
    # =========================================================================

    async def fetch_client_data(self, wallet: str) -> Result[ClientData]:
        result = await self._get("client", wallet=wallet)
        if not result.is_ok:
            return result
        return self._validate("client", ClientData, result.value)

    async def fetch_orders_info(
        self, wallet: str, instr_id: int, market_type: MarketType
    ) -> Result[OrdersInfo]:
        action = f"{_market_prefix(market_type)}OrdersInfo"
        result = await self._get(action, wallet=wallet, instrId=instr_id)
        if not result.is_ok:
            return result

        data = dict(result.value.get("ordersInfo") or {})
        if market_type == MarketType.PERPETUAL:
            data["position"] = result.value.get("position")
        return self._validate(action, OrdersInfo, data)

    async def fetch_orders(
        self, wallet: str, instr_id: int, market_type: MarketType, info: OrdersInfo
    ) -> Result[ClientOrders]:
        action = f"{_market_prefix(market_type)}Orders"
        result = await self._get(
            action,
            wallet=wallet,
            instrId=instr_id,
            bidsCount=info.bids_count,
            asksCount=info.asks_count,
            bidsEntry=info.bids_entry,
            asksEntry=info.asks_entry,
        )
        if not result.is_ok:
            return result
        return self._validate(action, ClientOrders, result.value)

    async def fetch_transaction_history(self, wallet: str) -> Result[List[RawTransaction]]:
        result = await self._get("transactions", wallet=wallet)
        if not result.is_ok:
            return result

        records = result.value.get("transactions") or []
        transactions = []
        for record in records:
            parsed = self._validate("transactions", RawTransaction, record)
            if not parsed.is_ok:
                return parsed
            transactions.append(parsed.value)
        return Ok(transactions)

    # =========================================================================
    # PriceSource
    # =========================================================================

    async def fetch_prices(self) -> Result[Dict[str, PriceQuote]]:
        result = await self._get("prices")
        if not result.is_ok:
            return result

        prices = {}
        for symbol, quote in (result.value.get("prices") or {}).items():
            parsed = self._validate("prices", PriceQuote, quote)
            if not parsed.is_ok:
                return parsed
            prices[symbol] = parsed.value

        logger.debug(
            "deriverse.prices_fetched",
            symbols=len(prices),
            source=result.value.get("source"),
        )
        return Ok(prices)
