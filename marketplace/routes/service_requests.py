from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import lifecycle
from ..db import get_db
from ..models import User
from ..schemas import (
    BookingOut,
    CreateServiceRequest,
    SelectMerchantRequest,
    SelectMerchantResponse,
    ServiceRequestOut,
    SubmitOfferRequest,
)
from ..security import get_current_user

router = APIRouter(prefix="/service-requests", tags=["Service requests"])


@router.post("/create", response_model=ServiceRequestOut, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: CreateServiceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sr = await lifecycle.create_service_request(db, user, data.service_type, data.issue, data.location)
    return ServiceRequestOut.from_model(sr)


@router.get("/available", response_model=List[ServiceRequestOut])
async def available_requests(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    requests = await lifecycle.list_available_requests(db, user)
    return [ServiceRequestOut.from_model(sr) for sr in requests]


@router.post("/accept", response_model=ServiceRequestOut)
async def submit_offer(
    data: SubmitOfferRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sr = await lifecycle.submit_offer(db, user, data.request_id, data.price, data.negotiable)
    return ServiceRequestOut.from_model(sr)


@router.post("/select-merchant", response_model=SelectMerchantResponse)
async def select_merchant(
    data: SelectMerchantRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sr, booking = await lifecycle.select_merchant(db, user, data.request_id, data.merchant_id)
    return SelectMerchantResponse(
        service_request=ServiceRequestOut.from_model(sr),
        booking=BookingOut.from_model(booking),
    )


@router.get("/customer/{customer_id}", response_model=List[ServiceRequestOut])
async def customer_requests(
    customer_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requests = await lifecycle.list_customer_requests(db, customer_id)
    return [ServiceRequestOut.from_model(sr) for sr in requests]


@router.get("/{request_id}", response_model=ServiceRequestOut)
async def get_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sr = await lifecycle.load_service_request(db, request_id)
    return ServiceRequestOut.from_model(sr)
