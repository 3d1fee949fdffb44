"""
Outbound message routes.
"""

from fastapi import APIRouter, status

from deliveryq.api.dependencies import DispatchQueueDep
from deliveryq.constants import API_V1_PREFIX
from deliveryq.types.api import EnqueueRequest, EnqueueResponse
from deliveryq.types.queue import QueueStatus

router = APIRouter(prefix=f"{API_V1_PREFIX}/messages", tags=["Messages"])


@router.post(
    "",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a message",
    description="Queue a message for rate-limited delivery.",
)
async def enqueue_message(
    request: EnqueueRequest,
    dispatch_queue: DispatchQueueDep,
) -> EnqueueResponse:
    """
    Queue a message.

    Delivery happens in the background; the response only confirms
    acceptance.
    """
    message_id = dispatch_queue.enqueue(
        request.payload,
        priority=request.priority,
        scheduled_for=request.scheduled_for,
    )
    return EnqueueResponse(id=message_id)


@router.get(
    "/status",
    response_model=QueueStatus,
    summary="Dispatch queue status",
)
async def queue_status(dispatch_queue: DispatchQueueDep) -> QueueStatus:
    return dispatch_queue.get_status()


@router.delete(
    "",
    summary="Clear the dispatch queue",
    description="Drop every pending message. Deliveries in flight complete.",
)
async def clear_queue(dispatch_queue: DispatchQueueDep) -> dict:
    dropped = len(dispatch_queue)
    dispatch_queue.clear()
    return {"dropped": dropped}
