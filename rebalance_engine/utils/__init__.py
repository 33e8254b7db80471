"""Shared utilities: configuration, logging, exceptions, Alpaca client."""
