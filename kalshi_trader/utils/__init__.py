"""Utility modules for the trading bot."""

from kalshi_trader.utils.ssl_patch import get_ssl_context

__all__ = ['get_ssl_context']
