"""Multi-timeframe EV scalping signal engine.

Public symbols are exposed lazily so importing `scalp_signals` does not eagerly
import optional network dependencies (for example `aiohttp` via the fetcher).
"""

from __future__ import annotations

import importlib
from typing import Dict, Tuple

__version__ = "0.1.0"

__all__ = [
    # Engine
    "SignalEngine",
    "Continue",
    "Terminal",
    # Service
    "SignalService",
    "analyze_async",
    "analyze_symbol",
    # Data types
    "Candle",
    "TimeframeAnalysis",
    "OrderBlock",
    "FairValueGap",
    "LiquidityLevel",
    "TargetCandidate",
    "SignalDiagnostics",
    "TradeSignal",
    "Trend",
    "Direction",
    # Configuration
    "EngineConfig",
    "DEFAULT_CONFIG",
    "get_config",
    "create_aggressive_config",
    "create_conservative_config",
    # Errors
    "DataInsufficientError",
    "ComputationError",
    "RetrievalError",
    "NetworkError",
    "BinanceAPIError",
    "BinanceRateLimitError",
    "BinanceTimeoutError",
    "BinanceConnectionError",
    "InvalidResponseError",
    # Data fetcher
    "BinanceKlineFetcher",
    "KlineSource",
    "RequestConfig",
    # Indicators
    "VolatilityIndicators",
    "TrendIndicators",
    "MomentumIndicators",
    "VolumeIndicators",
    "StructureIndicators",
    # Scanner
    "SignalScanner",
    "ScanResult",
    "SignalStore",
    "ConsoleSink",
    "TelegramSink",
]


# public name -> (relative module, attribute)
_LAZY_EXPORTS: Dict[str, Tuple[str, str]] = {}


def _register(module: str, names: list[str]) -> None:
    _LAZY_EXPORTS.update((name, (module, name)) for name in names)


_register(".engines.pipeline", ["SignalEngine", "Continue", "Terminal"])

_register(".engines.service", ["SignalService", "analyze_async", "analyze_symbol"])

_register(
    ".engines.data_types",
    [
        "Candle",
        "TimeframeAnalysis",
        "OrderBlock",
        "FairValueGap",
        "LiquidityLevel",
        "TargetCandidate",
        "SignalDiagnostics",
        "TradeSignal",
    ],
)

_register(".engines.signals", ["Trend", "Direction"])

_register(
    ".engines.indicator_config",
    [
        "EngineConfig",
        "DEFAULT_CONFIG",
        "get_config",
        "create_aggressive_config",
        "create_conservative_config",
    ],
)

_register(".engines.errors", ["DataInsufficientError", "ComputationError"])

_register(
    ".engines.data_fetcher",
    [
        "RetrievalError",
        "NetworkError",
        "BinanceAPIError",
        "BinanceRateLimitError",
        "BinanceTimeoutError",
        "BinanceConnectionError",
        "InvalidResponseError",
        "BinanceKlineFetcher",
        "KlineSource",
        "RequestConfig",
    ],
)

_register(
    ".engines.indicators",
    [
        "VolatilityIndicators",
        "TrendIndicators",
        "MomentumIndicators",
        "VolumeIndicators",
        "StructureIndicators",
    ],
)

_register(
    ".scanner",
    ["SignalScanner", "ScanResult", "SignalStore", "ConsoleSink", "TelegramSink"],
)


_unmapped = sorted(set(__all__) - set(_LAZY_EXPORTS))
if _unmapped:
    raise RuntimeError(f"__all__ names without a source module: {_unmapped}")


def __getattr__(name: str):
    try:
        module_name, attribute = _LAZY_EXPORTS[name]
    except KeyError:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from None

    value = getattr(importlib.import_module(module_name, __name__), attribute)
    # Later lookups bypass __getattr__
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
