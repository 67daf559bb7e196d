"""ff1agent - natural-language DP-1 playlist builder for FF1 devices."""

__version__ = "0.1.0"
__logo__ = "▣"
