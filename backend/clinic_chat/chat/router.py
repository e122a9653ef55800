"""Message endpoints and real-time WebSockets.

REST:
    GET  /rooms/{room_id}/messages?userId=              - Current message window
    POST /rooms/{room_id}/messages                      - Send (201, or 204 when empty)
    POST /rooms/{room_id}/messages/{message_id}/read    - Add a read receipt
    POST /rooms/{room_id}/images                        - Upload an image as a message

WebSocket:
    /ws/rooms/{room_id}/messages?userId=   - Live window for one viewer
    /ws/session?userId=                    - Drives a ChatSession
"""
import asyncio
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from ..errors import ChatError, InvalidInputError
from ..images import process_image
from ..services import ChatServices, get_services
from .schemas import Message, MessageCreate, ReadReceipt
from .session import ChatSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _send_response(message: Optional[Message]) -> Response:
    if message is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return JSONResponse(message.model_dump(exclude_none=True), status_code=status.HTTP_201_CREATED)


# =============================================================================
# REST Endpoints
# =============================================================================


@router.get("/rooms/{room_id}/messages", response_model=List[Message], response_model_exclude_none=True)
async def list_messages(
    room_id: str,
    userId: str = Query(...),
    services: ChatServices = Depends(get_services),
) -> List[Message]:
    """The newest messages of the room, oldest first. Members only."""
    services.require_member(room_id, userId)
    return services.messages.recent(room_id)


@router.post("/rooms/{room_id}/messages")
async def send_message(
    room_id: str,
    request: MessageCreate,
    services: ChatServices = Depends(get_services),
) -> Response:
    sender = services.require_member(room_id, request.senderId)
    message = services.messages.send(
        room_id,
        sender,
        text=request.text,
        image_url=request.imageUrl,
        is_important=request.isImportant,
    )
    return _send_response(message)


@router.post("/rooms/{room_id}/messages/{message_id}/read")
async def mark_read(
    room_id: str,
    message_id: str,
    request: ReadReceipt,
    services: ChatServices = Depends(get_services),
) -> dict:
    services.require_member(room_id, request.userId)
    message = services.messages.mark_read(room_id, message_id, request.userId)
    return {"readBy": message.readBy}


@router.post("/rooms/{room_id}/images")
async def upload_image(
    room_id: str,
    file: UploadFile = File(...),
    senderId: str = Form(...),
    isImportant: bool = Form(False),
    services: ChatServices = Depends(get_services),
) -> Response:
    """Downscale an uploaded image and post it to the room."""
    sender = services.require_member(room_id, senderId)
    settings = services.config.images
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise InvalidInputError(f"Image exceeds {settings.max_upload_bytes} bytes")

    image_url = await asyncio.to_thread(
        process_image, data, settings.max_width, settings.jpeg_quality
    )
    logger.info(f"[Chat] Image upload '{file.filename}' from {sender.id} to room {room_id}")
    message = services.messages.send(room_id, sender, image_url=image_url, is_important=isImportant)
    return _send_response(message)


# =============================================================================
# WebSocket Endpoints
# =============================================================================


def _error_frame(error: ChatError) -> dict:
    return {"type": "error", **error.to_dict()}


def _parse_frame(raw: str) -> dict:
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        raise InvalidInputError("Frames must be JSON objects")
    if not isinstance(data, dict):
        raise InvalidInputError("Frames must be JSON objects")
    return data


@router.websocket("/ws/rooms/{room_id}/messages")
async def room_messages_ws(
    websocket: WebSocket,
    room_id: str,
    userId: str = Query(...),
    services: ChatServices = Depends(get_services),
) -> None:
    """Live message window for one viewer.

    Protocol Flow:
        1. Client connects -> Server sends {type: "messages", roomId, messages}
           and again after every change in the room
        2. Client sends {type: "message", text, imageUrl?, isImportant}
        3. Client sends {type: "read", messageId}
        Invalid frames are answered with {type: "error", error, message};
        the connection stays open.
    """
    await websocket.accept()
    try:
        user = services.require_member(room_id, userId)
    except ChatError as e:
        logger.warning(f"[WS] Rejected {userId} for room {room_id}: {e.message}")
        await websocket.send_json(_error_frame(e))
        await websocket.close(code=1008)  # 1008 = Policy Violation
        return

    subscription = services.messages.subscribe(room_id, viewer_id=user.id)
    logger.info(f"[WS] {user.id} subscribed to room {room_id}")

    async def pump() -> None:
        async for messages in subscription:
            await websocket.send_json({
                "type": "messages",
                "roomId": room_id,
                "messages": [m.model_dump(exclude_none=True) for m in messages],
            })

    pump_task = asyncio.create_task(pump())
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = _parse_frame(raw)
                frame_type = data.get("type")
                if frame_type == "message":
                    services.messages.send(
                        room_id,
                        user,
                        text=data.get("text"),
                        image_url=data.get("imageUrl"),
                        is_important=bool(data.get("isImportant", False)),
                    )
                elif frame_type == "read":
                    services.messages.mark_read(room_id, data.get("messageId", ""), user.id)
                else:
                    raise InvalidInputError(f"Unknown frame type: {frame_type}")
            except ChatError as e:
                await websocket.send_json(_error_frame(e))
    except WebSocketDisconnect:
        logger.info(f"[WS] {user.id} left room {room_id}")
    finally:
        subscription.cancel()
        pump_task.cancel()
        await asyncio.gather(pump_task, return_exceptions=True)


@router.websocket("/ws/session")
async def session_ws(
    websocket: WebSocket,
    userId: str = Query(...),
    services: ChatServices = Depends(get_services),
) -> None:
    """Drive a :class:`ChatSession` for one signed-in user.

    Client frames:
        {type: "select_room", roomId}
        {type: "create_room", name}
        {type: "join_room", code}
        {type: "delete_room", roomId}
        {type: "draft", text, isImportant}
        {type: "send", text?, imageUrl?}
        {type: "summarize"}
        {type: "sign_out"}

    Server frames: rooms, active_room, messages, summary, info, error.
    Disconnecting tears the session down.
    """
    await websocket.accept()
    try:
        user = services.identity.get_user(userId)
    except ChatError as e:
        await websocket.send_json(_error_frame(e))
        await websocket.close(code=1008)
        return

    session = ChatSession(services, emit=websocket.send_json)
    await session.start(user)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = _parse_frame(raw)
                frame_type = data.get("type")
                if frame_type == "select_room":
                    await session.select_room(data.get("roomId"))
                elif frame_type == "create_room":
                    await session.create_room(data.get("name", ""))
                elif frame_type == "join_room":
                    await session.join_room(data.get("code", ""))
                elif frame_type == "delete_room":
                    await session.delete_room(data.get("roomId", ""))
                elif frame_type == "draft":
                    session.set_draft(data.get("text", ""), data.get("isImportant"))
                elif frame_type == "send":
                    await session.send(text=data.get("text"), image_url=data.get("imageUrl"))
                elif frame_type == "summarize":
                    await session.summarize()
                elif frame_type == "sign_out":
                    await session.sign_out()
                    await websocket.close()
                    return
                else:
                    raise InvalidInputError(f"Unknown frame type: {frame_type}")
            except ChatError as e:
                await websocket.send_json(_error_frame(e))
    except WebSocketDisconnect:
        logger.info(f"[WS] Session for {user.id} disconnected")
    finally:
        await session.sign_out()
