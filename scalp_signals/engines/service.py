"""
Signal Service
Fetches the three timeframes for a symbol concurrently and runs the engine.
"""

import asyncio
import logging
from typing import List, Optional, Tuple, Type, Union

from .data_fetcher import BinanceKlineFetcher, KlineSource, normalize_symbol
from .data_types import Candle, TradeSignal
from .indicator_config import DEFAULT_CONFIG, EngineConfig
from .pipeline import REASON_INSUFFICIENT_DATA, SignalEngine

logger = logging.getLogger(__name__)

REASON_INVALID_SYMBOL = "invalid symbol"

FetchResult = Union[List[Candle], Exception]


class SignalService:
    """
    Glue between a kline source and the signal engine.

    Args:
        source: Kline source (BinanceKlineFetcher or any KlineSource)
        engine: Signal engine; built from config when omitted
        config: Engine configuration (defaults to the engine's, then DEFAULT_CONFIG)
    """

    def __init__(
        self,
        source: KlineSource,
        engine: Optional[SignalEngine] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.source = source
        self.config = config or (engine.config if engine is not None else DEFAULT_CONFIG)
        self.engine = engine or SignalEngine(self.config)

    async def fetch_timeframes(self, symbol: str) -> List[FetchResult]:
        """
        Fetch every configured timeframe concurrently.

        Returns:
            Results in (higher, middle, lowest) order; each is a candle list or the
            exception raised while fetching it
        """
        timeframes = self.config.timeframes
        results = await asyncio.gather(
            *(
                self.source.get_klines(symbol, spec.interval, timeframes.candle_limit)
                for spec in timeframes.all()
            ),
            return_exceptions=True,
        )
        for result in results:
            # Cancellation is not a fetch failure
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        return list(results)

    async def analyze(
        self, symbol: str, propagate: Tuple[Type[Exception], ...] = ()
    ) -> TradeSignal:
        """
        Analyze one symbol.

        A failed optional timeframe (the higher one by default) is treated as absent.
        A failed required timeframe yields NO_TRADE "insufficient data".

        Args:
            symbol: Trading pair, e.g. 'BTCUSDT'
            propagate: Exception types from a required timeframe that are re-raised
                instead of converted (the scanner uses this to see rate limits)

        Returns:
            TradeSignal; NO_TRADE "invalid symbol" when symbol is not a usable string
        """
        if not isinstance(symbol, str) or not normalize_symbol(symbol):
            logger.warning("Unusable symbol %r", symbol)
            return TradeSignal.no_trade(str(symbol), REASON_INVALID_SYMBOL)

        symbol = normalize_symbol(symbol)
        results = await self.fetch_timeframes(symbol)

        candles: List[Optional[List[Candle]]] = []
        for spec, result in zip(self.config.timeframes.all(), results):
            if not isinstance(result, Exception):
                candles.append(result)
                continue
            if not spec.required:
                logger.warning(
                    "%s: %s fetch failed, continuing without it: %s", symbol, spec.interval, result
                )
                candles.append(None)
                continue
            if propagate and isinstance(result, propagate):
                raise result
            logger.warning("%s: %s fetch failed: %s", symbol, spec.interval, result)
            return TradeSignal.no_trade(symbol, REASON_INSUFFICIENT_DATA)

        higher, middle, lowest = candles
        return self.engine.evaluate(symbol, higher, middle, lowest)


async def analyze_async(symbol: str, config: Optional[EngineConfig] = None) -> TradeSignal:
    """Analyze one symbol against the live Binance futures API."""
    async with BinanceKlineFetcher() as fetcher:
        return await SignalService(fetcher, config=config).analyze(symbol)


def analyze_symbol(symbol: str, config: Optional[EngineConfig] = None) -> TradeSignal:
    """Synchronous wrapper around analyze_async."""
    return asyncio.run(analyze_async(symbol, config))
