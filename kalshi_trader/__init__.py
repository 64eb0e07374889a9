"""Kalshi binary-market trading bot."""

__version__ = "0.1.0"
