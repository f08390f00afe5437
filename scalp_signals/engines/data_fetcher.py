"""
Binance Kline Fetcher
Pulls OHLCV candles for the signal engine from the USDT-M futures REST API
(or spot, on request) over a shared aiohttp session.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import aiohttp

from ..utils.retry import ExponentialBackoff
from .data_types import Candle

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429
IP_BAN_STATUS = 418
MAX_KLINE_LIMIT = 1500


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class RetrievalError(Exception):
    """Base exception for candle retrieval failures."""


class NetworkError(RetrievalError):
    """Transport-level failure (timeout, refused connection, reset)."""


class BinanceTimeoutError(NetworkError):
    """No complete response within the total timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No response within {timeout}s")


class BinanceConnectionError(NetworkError):
    """aiohttp could not reach the exchange."""

    def __init__(self, original_error: Exception):
        self.original_error = original_error
        super().__init__(f"Cannot reach Binance: {original_error}")


class BinanceAPIError(RetrievalError):
    """Non-success HTTP status from the exchange."""

    def __init__(self, status_code: int, message: str, response_text: str = ""):
        self.status_code = status_code
        self.message = message
        self.response_text = response_text
        super().__init__(f"HTTP {status_code} from Binance: {message}")


class BinanceRateLimitError(BinanceAPIError):
    """Request weight exceeded (429) or the IP is banned (418)."""

    def __init__(self, retry_after: Optional[float] = None, status_code: int = RATE_LIMIT_STATUS):
        self.retry_after = retry_after
        reason = "IP banned" if status_code == IP_BAN_STATUS else "request weight exceeded"
        super().__init__(status_code, reason)


class InvalidResponseError(RetrievalError):
    """Payload could not be turned into candles."""


# =============================================================================
# REQUEST CONFIGURATION
# =============================================================================


@dataclass
class RequestConfig:
    """Timeouts and retry policy for exchange requests."""

    timeout_total: float = 30.0
    timeout_connect: float = 10.0
    max_retries: int = 3  # attempts, including the first
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    retry_on_status: tuple = (500, 502, 503, 504)


DEFAULT_REQUEST_CONFIG = RequestConfig()


class KlineSource(Protocol):
    """Anything that can supply ascending candles for a symbol and interval."""

    async def get_klines(self, symbol: str, interval: str, limit: int = 300) -> List[Candle]:
        ...


def normalize_symbol(symbol: str) -> str:
    """'btc/usdt', 'BTC-USDT' and ' btc_usdt ' all become 'BTCUSDT'."""
    cleaned = symbol.strip().upper()
    for separator in ("/", "-", "_"):
        cleaned = cleaned.replace(separator, "")
    return cleaned


def parse_kline(row: Sequence[Any]) -> Candle:
    """
    Convert one REST kline row to a Candle.

    Row layout: [open_time, open, high, low, close, volume, close_time, ...]

    Raises:
        InvalidResponseError: row is not a list of at least six numeric fields
    """
    try:
        open_time, open_, high, low, close, volume = row[:6]
        return Candle(
            time=int(open_time),
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=float(volume),
        )
    except (IndexError, KeyError, TypeError, ValueError) as e:
        raise InvalidResponseError(f"Unparsable kline row {row!r}: {e}") from e


def _seconds(header: Optional[str]) -> Optional[float]:
    """Retry-After value in seconds, None when absent or not a number."""
    try:
        return float(header) if header else None
    except ValueError:
        return None


class BinanceKlineFetcher:
    """
    Kline and exchange-info client.

    Open it with ``async with`` to get a private session, or hand it a session
    the caller owns:

        async with BinanceKlineFetcher() as fetcher:
            candles = await fetcher.get_klines("BTCUSDT", "15m")
    """

    SPOT_BASE = "https://api.binance.com"
    FUTURES_BASE = "https://fapi.binance.com"

    VALID_INTERVALS = tuple("1m 3m 5m 15m 30m 1h 2h 4h 6h 8h 12h 1d 3d 1w 1M".split())

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        request_config: Optional[RequestConfig] = None,
    ):
        self._session = session
        self._owns_session = session is None
        self._config = request_config or DEFAULT_REQUEST_CONFIG
        self._backoff = ExponentialBackoff(
            base=self._config.retry_base_delay, max_delay=self._config.retry_max_delay
        )
        # futures flag -> exchangeInfo payload
        self._exchange_info: Dict[bool, Dict[str, Any]] = {}

    async def __aenter__(self) -> "BinanceKlineFetcher":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self._config.timeout_total, connect=self._config.timeout_connect
                )
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_session and self._session is not None:
            session, self._session = self._session, None
            await session.close()

    def _url(self, path: str, futures: bool) -> str:
        if futures:
            return f"{self.FUTURES_BASE}/fapi/v1/{path}"
        return f"{self.SPOT_BASE}/api/v3/{path}"

    async def _request_once(self, url: str, params: Optional[Dict]) -> Any:
        async with self._session.get(url, params=params) as response:
            status = response.status
            if status in (RATE_LIMIT_STATUS, IP_BAN_STATUS):
                raise BinanceRateLimitError(
                    _seconds(response.headers.get("Retry-After")), status_code=status
                )
            if status != 200:
                body = await response.text()
                raise BinanceAPIError(status, body, body)
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise InvalidResponseError(f"Undecodable JSON from {url}: {e}") from e

    async def _get(self, url: str, params: Optional[Dict] = None) -> Any:
        """
        GET a JSON document, retrying transient failures with backoff.

        Timeouts, connection errors, 429 and the statuses in
        ``retry_on_status`` are retried up to ``max_retries`` attempts in
        total; 429 waits honour Retry-After. A 418 ban and every other status
        fail at once.

        Raises:
            BinanceRateLimitError: 418, or 429 on the last attempt
            BinanceAPIError: other non-200 statuses
            BinanceTimeoutError: timed out on the last attempt
            BinanceConnectionError: transport failure on the last attempt
            InvalidResponseError: body is not JSON
        """
        if self._session is None:
            raise RuntimeError(
                "BinanceKlineFetcher has no session; open it with 'async with' "
                "or pass session= to the constructor."
            )

        attempts = self._config.max_retries
        for attempt in range(attempts):
            final = attempt == attempts - 1
            failure: Exception
            retry_after: Optional[float] = None
            logger.debug("GET %s params=%s (attempt %d/%d)", url, params, attempt + 1, attempts)
            try:
                return await self._request_once(url, params)
            except BinanceRateLimitError as e:
                if final or e.status_code == IP_BAN_STATUS:
                    raise
                failure = e
                retry_after = e.retry_after
            except BinanceAPIError as e:
                if final or e.status_code not in self._config.retry_on_status:
                    raise
                failure = e
            except asyncio.TimeoutError:
                if final:
                    raise BinanceTimeoutError(self._config.timeout_total) from None
                failure = BinanceTimeoutError(self._config.timeout_total)
            except aiohttp.ClientError as e:
                if final:
                    raise BinanceConnectionError(e) from e
                failure = BinanceConnectionError(e)

            delay = self._backoff.calculate(attempt, retry_after)
            logger.warning(
                "%s (attempt %d/%d on %s); waiting %.1fs",
                failure,
                attempt + 1,
                attempts,
                url,
                delay,
            )
            await asyncio.sleep(delay)

        raise RetrievalError(f"max_retries={attempts} allows no request to {url}")

    async def get_klines(
        self, symbol: str, interval: str = "15m", limit: int = 300, futures: bool = True
    ) -> List[Candle]:
        """
        Most recent candles for a symbol, oldest first.

        Args:
            symbol: Trading pair in any common spelling ('BTCUSDT', 'BTC/USDT')
            interval: Binance interval code such as 5m, 15m or 1h
            limit: Candles wanted; the exchange serves at most 1500
            futures: USDT-M futures when True, spot otherwise

        Raises:
            ValueError: unknown interval or non-positive limit
            RetrievalError: transport, HTTP or payload failure
        """
        if interval not in self.VALID_INTERVALS:
            raise ValueError(
                f"Unsupported interval {interval!r}; use one of {self.VALID_INTERVALS}"
            )
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        symbol = normalize_symbol(symbol)
        params = {"symbol": symbol, "interval": interval, "limit": min(limit, MAX_KLINE_LIMIT)}
        rows = await self._get(self._url("klines", futures), params)

        if not isinstance(rows, list):
            raise InvalidResponseError(
                f"Expected a list of klines for {symbol} {interval}, got {type(rows).__name__}"
            )

        candles = [parse_kline(row) for row in rows]
        logger.debug("Fetched %d %s candles for %s", len(candles), interval, symbol)
        return candles

    async def validate_symbol(self, symbol: str, futures: bool = True) -> bool:
        """
        True when the pair is listed on the chosen market.

        The exchangeInfo document is fetched once per market and cached. Any
        lookup failure is logged and reported as False.
        """
        symbol = normalize_symbol(symbol)
        try:
            info = self._exchange_info.get(futures)
            if info is None:
                info = await self._get(self._url("exchangeInfo", futures))
                self._exchange_info[futures] = info
            return any(entry["symbol"] == symbol for entry in info["symbols"])
        except RetrievalError as e:
            logger.warning("Cannot check listing of %s: %s", symbol, e)
        except (KeyError, TypeError) as e:
            logger.warning("Malformed exchangeInfo while checking %s: %s", symbol, e)
        return False
