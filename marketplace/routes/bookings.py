from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import lifecycle
from ..db import get_db
from ..models import User
from ..schemas import BookingOut, CreateBookingRequest, UpdateBookingStatusRequest
from ..security import get_current_user

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/create", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: CreateBookingRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await lifecycle.create_direct_booking(
        db,
        user,
        merchant_id=data.merchant_id,
        service_type=data.service_type,
        price=data.price,
        address=data.address,
        notes=data.notes,
    )
    return BookingOut.from_model(booking)


@router.get("/user/{user_id}", response_model=List[BookingOut])
async def customer_bookings(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bookings = await lifecycle.list_open_bookings(db, customer_id=user_id)
    return [BookingOut.from_model(b) for b in bookings]


@router.get("/merchant/{merchant_id}", response_model=List[BookingOut])
async def merchant_bookings(
    merchant_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bookings = await lifecycle.list_open_bookings(db, merchant_id=merchant_id)
    return [BookingOut.from_model(b) for b in bookings]


@router.patch("/status", response_model=BookingOut)
async def update_status(
    data: UpdateBookingStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await lifecycle.update_booking_status(db, user, data.booking_id, data.status)
    return BookingOut.from_model(booking)


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await lifecycle.get_booking_for(db, user, booking_id)
    return BookingOut.from_model(booking)
