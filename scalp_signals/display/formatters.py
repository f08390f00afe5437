"""Formatting utilities for signal output (terminal and chat messages)."""

import math
import re
from typing import Any, Iterable, List, Sequence, Union

from ..engines.data_types import TradeSignal
from ..engines.signals import Direction
from .colors import Colors

CHAT_MESSAGE_LIMIT = 3800
SUMMARY_MAX_SIGNALS = 40

DIRECTION_ICONS = {
    Direction.LONG: "🟢",
    Direction.SHORT: "🔴",
}

_TRAILING_ZEROS = re.compile(r"\.?0+$")


def fmt_num(value: Any) -> str:
    """
    Format a price for display.

    Values >= 1 get a thousands separator and 2-4 decimals; smaller values get up
    to 8 decimals with trailing zeros removed. Anything non-numeric is "N/A".
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "N/A"
    if math.isnan(number):
        return "N/A"

    if number >= 1:
        whole, _, decimals = f"{number:,.4f}".partition(".")
        return f"{whole}.{decimals.rstrip('0').ljust(2, '0')}"
    return _TRAILING_ZEROS.sub("", f"{number:.8f}")


def fmt_rr(value: Any) -> str:
    """Reward-to-risk ratio rounded to 2 decimals, '-' when missing or zero."""
    if not value:
        return "-"
    return f"{float(value):.2f}".rstrip("0").rstrip(".")


def base_asset(symbol: str) -> str:
    """BTCUSDT -> BTC"""
    return symbol[: -len("USDT")] if symbol.endswith("USDT") else symbol


def format_probabilities(probabilities: Iterable[float]) -> str:
    parts = [f"{p * 100:.1f}%" for p in probabilities]
    return " , ".join(parts) if parts else "N/A"


def direction_color(direction: Direction) -> str:
    """Get color for a signal direction."""
    if direction is Direction.LONG:
        return Colors.GREEN
    if direction is Direction.SHORT:
        return Colors.RED
    return Colors.YELLOW


def strength_bar(strength: float, width: int = 20) -> str:
    """Create a visual strength bar.

    Args:
        strength: Value from 0-100
        width: Bar width in characters

    Returns:
        Colored bar string
    """
    strength = max(0.0, min(100.0, strength))
    filled = int(strength / 100 * width)
    empty = width - filled

    if strength >= 70:
        color = Colors.GREEN
    elif strength >= 50:
        color = Colors.YELLOW
    else:
        color = Colors.RED

    return f"{color}{'█' * filled}{Colors.DIM}{'░' * empty}{Colors.RESET}"


# =============================================================================
# CHAT MESSAGES (plain text, no ANSI codes)
# =============================================================================


def format_signal_message(signal: TradeSignal, index: Union[int, str]) -> str:
    """
    Render a directional signal as a chat message.

    Args:
        signal: Directional TradeSignal
        index: Daily sequence number, or a label such as 'MANUAL'

    Returns:
        Multi-line message text
    """
    icon = DIRECTION_ICONS.get(signal.direction, "⚪")
    probabilities = (
        format_probabilities(signal.diagnostics.candidate_probabilities)
        if signal.diagnostics is not None
        else "N/A"
    )
    lines = [
        f"🤖 Signal [{index} of the day]",
        f"#{base_asset(signal.symbol)} – [{signal.direction.value}] 📌",
        "",
        f"{icon} Entry: {fmt_num(signal.entry)}",
        f"🆗 Take Profit: {fmt_num(signal.take_profit)}",
        f"🙅‍♂️ Stop-Loss: {fmt_num(signal.stop_loss)}",
        f"🪙 RR: {fmt_rr(signal.reward_to_risk)} (Conf: {signal.confidence}%)",
        "",
        f"ℹ️ p_win (tp candidates): {probabilities}",
        "",
        "🧠 By AI Scalping Bot",
        "",
        "⚠️ For reference only. Risk 0.25% - 1% per trade; the bot does not auto-trade.",
    ]
    return "\n".join(lines)


def format_scan_summary(
    signals: Sequence[TradeSignal],
    min_confidence: float = 60.0,
    limit: int = SUMMARY_MAX_SIGNALS,
) -> str:
    """
    One compact block per qualifying signal, highest confidence first.

    Non-directional signals and those below min_confidence are left out.
    """
    qualifying = [s for s in signals if s.is_directional and s.confidence >= min_confidence]
    if not qualifying:
        return f"❌ No signals (confidence ≥ {min_confidence:.0f}%) across the list."

    ranked = sorted(qualifying, key=lambda s: s.confidence, reverse=True)[:limit]
    lines = [f"🔍 FULL SCAN RESULTS ({len(ranked)} signals)", ""]
    for s in ranked:
        lines.append(f"#{base_asset(s.symbol)} - {s.direction.value} - Conf: {s.confidence}%")
        lines.append(
            f"Entry: {fmt_num(s.entry)} | SL: {fmt_num(s.stop_loss)} | "
            f"TP: {fmt_num(s.take_profit)} | RR:{fmt_rr(s.reward_to_risk)}"
        )
        lines.append("")
    return "\n".join(lines)


def chunk_message(text: str, size: int = CHAT_MESSAGE_LIMIT) -> List[str]:
    """Split text into pieces no longer than size characters."""
    if size <= 0:
        raise ValueError("size must be positive")
    return [text[i : i + size] for i in range(0, len(text), size)]
