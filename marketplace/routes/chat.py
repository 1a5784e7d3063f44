from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from .. import messaging
from ..db import get_db
from ..models import User
from ..schemas import (
    BookingOut,
    LatestUnreadResponse,
    MessageOut,
    SendMessageRequest,
    UnreadCountResponse,
)
from ..security import get_current_user

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("/send", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send(
    data: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    msg = await messaging.send_message(db, user, data.booking_id, data.message)
    return MessageOut.from_model(msg)


@router.get("/booking/{booking_id}", response_model=List[MessageOut])
async def thread(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    messages = await messaging.list_thread(db, user, booking_id)
    return [MessageOut.from_model(m) for m in messages]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return UnreadCountResponse(unread_count=await messaging.unread_count(db, user))


@router.get("/latest-unread", response_model=LatestUnreadResponse)
async def latest_unread(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    msg, booking = await messaging.latest_unread(db, user)
    if msg is None:
        return JSONResponse({"message": None})
    return LatestUnreadResponse(message=MessageOut.from_model(msg), booking=BookingOut.from_model(booking))
