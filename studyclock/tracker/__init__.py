"""Core timer, ledger and analytics for Study Clock."""

__version__ = "1.0.0"
