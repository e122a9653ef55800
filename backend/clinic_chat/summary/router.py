"""Conversation summary endpoints.

Once the caller is admitted, both endpoints answer 200 with a
``SummaryResponse``; summarizer failures are reported inside the body
(see ``summarizer.build_error_report``).
"""
import logging

from fastapi import APIRouter, Depends, Query

from ..services import ChatServices, get_services
from .schemas import SummaryRequest, SummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["summary"])


@router.post("/rooms/{room_id}/summary", response_model=SummaryResponse)
async def summarize_room(
    room_id: str,
    userId: str = Query(...),
    services: ChatServices = Depends(get_services),
) -> SummaryResponse:
    """Summarize the room's current message window for one of its members."""
    services.require_member(room_id, userId)
    messages = services.messages.recent(room_id)
    return await services.summarizer.summarize(messages)


@router.post("/summary", response_model=SummaryResponse)
async def summarize_messages(
    request: SummaryRequest,
    services: ChatServices = Depends(get_services),
) -> SummaryResponse:
    """Summarize an ad-hoc list of messages, oldest first."""
    return await services.summarizer.summarize(request.messages)
