"""
API routes module.
"""

from deliveryq.api.routes.health import router as health_router
from deliveryq.api.routes.jobs import router as jobs_router
from deliveryq.api.routes.messages import router as messages_router

__all__ = ["health_router", "jobs_router", "messages_router"]
