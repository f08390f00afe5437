"""Display utilities for signal output."""

from .colors import Colors
from .formatters import (
    chunk_message,
    direction_color,
    fmt_num,
    format_scan_summary,
    format_signal_message,
    strength_bar,
)
from .printers import print_header, print_scan_result, print_signal, print_signals

__all__ = [
    # Colors
    "Colors",
    # Formatters
    "fmt_num",
    "format_signal_message",
    "format_scan_summary",
    "chunk_message",
    "direction_color",
    "strength_bar",
    # Printers
    "print_header",
    "print_signal",
    "print_signals",
    "print_scan_result",
]
