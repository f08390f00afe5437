"""Print functions for signal output."""

from datetime import datetime
from typing import Sequence

from ..engines.data_types import TradeSignal
from .colors import Colors
from .formatters import direction_color, fmt_num, fmt_rr, format_probabilities, strength_bar


def print_header(title: str):
    """Print a report header."""
    print()
    print(f"{Colors.BOLD}{'═' * 80}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {title}{Colors.RESET}")
    print(f"{Colors.BOLD}{'═' * 80}{Colors.RESET}")
    print(f"  Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"{Colors.DIM}{'─' * 80}{Colors.RESET}")


def print_signal(signal: TradeSignal):
    """Print one signal with levels and model diagnostics."""
    color = direction_color(signal.direction)

    print()
    print(
        f"  {Colors.BOLD}{signal.symbol:<14}{Colors.RESET} "
        f"{color}{signal.direction.value:^10}{Colors.RESET} "
        f"{strength_bar(signal.confidence)} {signal.confidence}%"
    )

    if not signal.is_directional:
        print(f"  {Colors.DIM}Reason: {signal.reason or '-'}{Colors.RESET}")
        return

    print(
        f"  Entry: {Colors.BOLD}{fmt_num(signal.entry)}{Colors.RESET}  |  "
        f"SL: {Colors.RED}{fmt_num(signal.stop_loss)}{Colors.RESET}  |  "
        f"TP: {Colors.GREEN}{fmt_num(signal.take_profit)}{Colors.RESET}  |  "
        f"RR: {fmt_rr(signal.reward_to_risk)}  |  Size: {signal.position_size}"
    )

    meta = signal.diagnostics
    if meta is not None:
        higher = meta.higher_trend.value if meta.higher_trend is not None else "n/a"
        print(
            f"  {Colors.DIM}p_win: {format_probabilities(meta.candidate_probabilities)}  "
            f"(chosen {meta.chosen_multiplier:g}R, EV {meta.expected_value:+.3f}){Colors.RESET}"
        )
        print(
            f"  {Colors.DIM}15m trend: {meta.middle_trend.value}  |  1h trend: {higher}  |  "
            f"ATR: {fmt_num(meta.atr)}{Colors.RESET}"
        )


def print_signals(signals: Sequence[TradeSignal]):
    """Print a report for several symbols followed by a short tally."""
    print_header(f"SCALP SIGNALS: {len(signals)} symbol(s)")
    for signal in signals:
        print_signal(signal)

    directional = sum(1 for s in signals if s.is_directional)
    print()
    print(f"{Colors.DIM}{'─' * 80}{Colors.RESET}")
    print(f"  {Colors.BOLD}Directional:{Colors.RESET} {directional}/{len(signals)}")


def print_scan_result(result):
    """Print the counters of one scanner cycle."""
    status = f"{Colors.YELLOW}skipped{Colors.RESET}" if result.skipped else "done"
    print(
        f"  Cycle {status}: analyzed {result.analyzed}, sent {len(result.sent)}, "
        f"duplicates {result.duplicates}, below threshold {result.below_threshold}, "
        f"errors {result.errors}"
    )
