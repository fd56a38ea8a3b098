"""Outbound HTTP: request templates and response normalization."""

from fleet_manager.transport.requester import ApiRequester, ApiRequesterBuilder, RawResponse
from fleet_manager.transport.wrapper import wrap_response, wrap_transport_error

__all__ = [
    "ApiRequester",
    "ApiRequesterBuilder",
    "RawResponse",
    "wrap_response",
    "wrap_transport_error",
]
