"""Uptime monitoring and alerting engine for deployed web applications."""

__version__ = "0.1.0"
