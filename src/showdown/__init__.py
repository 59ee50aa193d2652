"""Showdown lineup optimizer and model backtesting toolkit."""

__version__ = "0.1.0"
