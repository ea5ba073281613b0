"""Shared utilities."""

from .logging import PAYLOAD_LOGGER_NAME, setup_logging

__all__ = ["PAYLOAD_LOGGER_NAME", "setup_logging"]
