"""Downstream transaction channel protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from bulkpay.models import TransactionServiceRequest, TransactionServiceResponse


@runtime_checkable
class DownstreamChannel(Protocol):
    """Synchronous request/response link to the transaction processor.
    
    `send` returns on a success signal and raises on anything else: a
    `ChannelError` for declared failures, or whatever the transport raises.
    The forwarder treats every raise as one failed attempt.
    """
    
    def send(self, request: TransactionServiceRequest) -> TransactionServiceResponse: ...
