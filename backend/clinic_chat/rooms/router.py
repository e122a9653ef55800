"""Room directory endpoints.

Endpoints:
    GET    /rooms?userId=             - Rooms the user participates in, newest first
    POST   /rooms                     - Create a room (201)
    POST   /rooms/join                - Redeem an invite code
    GET    /rooms/{room_id}           - Room details
    DELETE /rooms/{room_id}?requesterId=  - Delete a room (creator only, 204)
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status

from ..services import ChatServices, get_services
from .schemas import ChatRoom, JoinResult, RoomCreate, RoomJoin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=List[ChatRoom])
async def list_rooms(
    userId: str = Query(..., min_length=1),
    services: ChatServices = Depends(get_services),
) -> List[ChatRoom]:
    return services.rooms.list_rooms(userId)


@router.post("", response_model=ChatRoom, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: RoomCreate,
    services: ChatServices = Depends(get_services),
) -> ChatRoom:
    return services.rooms.create_room(request.name, request.ownerId)


@router.post("/join", response_model=JoinResult)
async def join_room(
    request: RoomJoin,
    services: ChatServices = Depends(get_services),
) -> JoinResult:
    return services.rooms.join_room(request.code, request.userId)


@router.get("/{room_id}", response_model=ChatRoom)
async def get_room(room_id: str, services: ChatServices = Depends(get_services)) -> ChatRoom:
    return services.rooms.get_room(room_id)


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: str,
    requesterId: str = Query(..., min_length=1),
    services: ChatServices = Depends(get_services),
) -> Response:
    services.rooms.delete_room(room_id, requesterId)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
