"""
Dispatch module.
Contains the outbound message queue, its retry policy, rate limiter and
delivery transports.
"""

from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.dispatch.rate_limit import RateLimiter
from deliveryq.dispatch.retry import RetryPolicy
from deliveryq.dispatch.transports import (
    Deliver,
    create_deliver,
    get_transport,
    list_transports,
    register_transport,
)

__all__ = [
    "DispatchQueue",
    "RateLimiter",
    "RetryPolicy",
    "Deliver",
    "create_deliver",
    "get_transport",
    "list_transports",
    "register_transport",
]
