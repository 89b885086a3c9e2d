"""Channels to the downstream transaction processor."""

from .base import DownstreamChannel
from .http import HttpChannelConfig, HttpTransactionChannel

__all__ = ["DownstreamChannel", "HttpChannelConfig", "HttpTransactionChannel"]
