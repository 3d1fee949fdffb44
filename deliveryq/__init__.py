"""
deliveryq

Asynchronous delivery and scheduling subsystem: a priority-ordered outbound
dispatch queue with retry/backoff and rate limiting, plus a provider-abstracted
delayed-job scheduler with an explicit job lifecycle.
"""

__version__ = "1.0.0"
