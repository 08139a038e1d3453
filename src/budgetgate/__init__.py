"""Error-budget tracking and release gating."""

__version__ = "0.3.0"
