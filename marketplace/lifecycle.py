"""Service request and booking lifecycle.

A customer opens a ServiceRequest, merchants of the matching trade bid on it,
the customer picks one offer and the request turns into an active Booking.
Every function here takes the caller's User and performs its own role and
ownership checks; route handlers only translate HTTP bodies.
"""

import math

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from . import events
from .errors import conflict, forbidden, not_found, validation
from .models import (
    MAX_OFFERS_PER_REQUEST,
    OPEN_REQUEST_STATUSES,
    Booking,
    MerchantProfile,
    ServiceRequest,
    ServiceRequestOffer,
    User,
    new_id,
    utcnow,
)
from .rabbitmq import publisher
from .rbac import require_party, require_role

logger = structlog.get_logger(__name__)

# terminal states have no outgoing edges
BOOKING_TRANSITIONS = {
    "pending": {"accepted", "cancelled"},
    "accepted": {"active", "cancelled"},
    "active": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


# ---- loading ----

async def load_service_request(db: AsyncSession, request_id: str) -> ServiceRequest:
    res = await db.execute(
        select(ServiceRequest)
        .where(ServiceRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    sr = res.scalar_one_or_none()
    if not sr:
        raise not_found("Service request not found")
    return sr


async def load_booking(db: AsyncSession, booking_id: str) -> Booking:
    res = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = res.scalar_one_or_none()
    if not booking:
        raise not_found("Booking not found")
    return booking


async def get_merchant_profile(db: AsyncSession, user_id: str) -> MerchantProfile | None:
    res = await db.execute(select(MerchantProfile).where(MerchantProfile.user_id == user_id))
    return res.scalar_one_or_none()


# ---- service requests ----

async def create_service_request(
    db: AsyncSession,
    customer: User,
    service_type: str,
    issue: str,
    location: str,
) -> ServiceRequest:
    require_role(customer, "customer", "Only customers can create service requests")

    sr = ServiceRequest(
        id=new_id(),
        customer_id=customer.id,
        service_type=service_type,
        issue=issue,
        location=location,
        status="pending",
    )
    sr.customer = customer
    db.add(sr)
    await db.commit()

    logger.info("service_request_created", service_request_id=sr.id, customer_id=customer.id)
    await publisher.emit(
        events.EventType.SERVICE_REQUEST_CREATED,
        {"service_request_id": sr.id, "customer_id": customer.id, "service_type": service_type},
    )
    return await load_service_request(db, sr.id)


async def list_customer_requests(db: AsyncSession, customer_id: str) -> list[ServiceRequest]:
    res = await db.execute(
        select(ServiceRequest)
        .where(ServiceRequest.customer_id == customer_id)
        .order_by(ServiceRequest.created_at.desc())
    )
    return list(res.scalars().all())


async def list_available_requests(db: AsyncSession, merchant: User) -> list[ServiceRequest]:
    require_role(merchant, "merchant", "Only merchants can view available requests")

    profile = await get_merchant_profile(db, merchant.id)
    if not profile:
        raise not_found("Merchant profile not found")

    res = await db.execute(
        select(ServiceRequest)
        .where(
            ServiceRequest.status.in_(OPEN_REQUEST_STATUSES),
            ServiceRequest.service_type == profile.skill_category,
            ServiceRequest.selected_merchant_id.is_(None),
            ~ServiceRequest.offers.any(ServiceRequestOffer.merchant_id == merchant.id),
        )
        .order_by(ServiceRequest.created_at.desc())
    )
    return list(res.scalars().all())


def _is_duplicate_offer(exc: IntegrityError) -> bool:
    # postgres names the constraint, sqlite names the columns
    text = str(exc.orig)
    return "uq_offer_request_merchant" in text or "service_request_offers.merchant_id" in text


async def submit_offer(
    db: AsyncSession,
    merchant: User,
    request_id: str,
    price: float | None,
    negotiable: bool = False,
) -> ServiceRequest:
    require_role(merchant, "merchant", "Only merchants can accept requests")

    if price is None or not math.isfinite(price) or price <= 0:
        raise validation("Price is required and must be greater than 0")

    sr = await load_service_request(db, request_id)

    if sr.status not in OPEN_REQUEST_STATUSES:
        raise conflict("Request is no longer available")

    if sr.offer_from(merchant.id) is not None:
        raise conflict("You have already accepted this request")

    # claim a slot; the WHERE clause is evaluated against the row at write time
    res = await db.execute(
        update(ServiceRequest)
        .where(
            ServiceRequest.id == sr.id,
            ServiceRequest.status.in_(OPEN_REQUEST_STATUSES),
            ServiceRequest.offer_count < MAX_OFFERS_PER_REQUEST,
        )
        .values(
            offer_count=ServiceRequest.offer_count + 1,
            status="offerSubmitted",
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        current = await load_service_request(db, request_id)
        if current.status not in OPEN_REQUEST_STATUSES:
            raise conflict("Request is no longer available")
        raise conflict(f"Maximum {MAX_OFFERS_PER_REQUEST} merchants can accept this request")

    offer = ServiceRequestOffer(
        service_request_id=sr.id,
        merchant_id=merchant.id,
        price=float(price),
        negotiable=bool(negotiable),
        accepted_at=utcnow(),
    )
    offer.merchant = merchant
    db.add(offer)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if _is_duplicate_offer(e):
            raise conflict("You have already accepted this request")
        raise

    sr = await load_service_request(db, sr.id)
    logger.info(
        "offer_submitted",
        service_request_id=sr.id,
        merchant_id=merchant.id,
        price=offer.price,
        offers=len(sr.offers),
    )
    await publisher.emit(
        events.EventType.OFFER_SUBMITTED,
        {
            "service_request_id": sr.id,
            "merchant_id": merchant.id,
            "price": offer.price,
            "negotiable": offer.negotiable,
        },
    )
    return sr


async def select_merchant(
    db: AsyncSession,
    customer: User,
    request_id: str,
    merchant_id: str,
) -> tuple[ServiceRequest, Booking]:
    """Turn the chosen offer into an active booking.

    The request is claimed with a conditional update, so of two concurrent
    selections only one matches a row. Claiming, booking creation and linking
    commit together, so a request is never left `accepted` without its booking.
    """
    require_role(customer, "customer", "Only customers can select merchants")

    sr = await load_service_request(db, request_id)

    if sr.customer_id != customer.id:
        raise forbidden("Not authorized")

    if sr.status not in OPEN_REQUEST_STATUSES or sr.selected_merchant_id is not None:
        raise conflict("A merchant has already been selected for this request")

    offer = sr.offer_from(merchant_id)
    if offer is None:
        raise conflict("Merchant has not accepted this request")

    res = await db.execute(
        update(ServiceRequest)
        .where(
            ServiceRequest.id == sr.id,
            ServiceRequest.selected_merchant_id.is_(None),
            ServiceRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
        .values(selected_merchant_id=merchant_id, status="accepted", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise conflict("A merchant has already been selected for this request")

    booking = Booking(
        id=new_id(),
        customer_id=customer.id,
        merchant_id=merchant_id,
        service_type=sr.service_type,
        price=offer.price,
        address=sr.location,
        notes=sr.issue,
        status="active",
    )
    booking.customer = customer
    booking.merchant = offer.merchant
    db.add(booking)

    try:
        await db.flush()
        await db.execute(
            update(ServiceRequest)
            .where(ServiceRequest.id == sr.id)
            .values(booking_id=booking.id, status="active", updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "merchant_selected",
        service_request_id=sr.id,
        merchant_id=merchant_id,
        booking_id=booking.id,
    )
    await publisher.emit(
        events.EventType.MERCHANT_SELECTED,
        {"service_request_id": sr.id, "merchant_id": merchant_id, "booking_id": booking.id},
    )
    await publisher.emit(
        events.EventType.BOOKING_CREATED,
        {
            "booking_id": booking.id,
            "customer_id": booking.customer_id,
            "merchant_id": booking.merchant_id,
            "service_request_id": sr.id,
            "price": booking.price,
        },
    )
    return await load_service_request(db, sr.id), await load_booking(db, booking.id)


# ---- bookings ----

async def create_direct_booking(
    db: AsyncSession,
    customer: User,
    merchant_id: str,
    service_type: str,
    price: float,
    address: str | None = None,
    notes: str | None = None,
) -> Booking:
    require_role(customer, "customer", "Only customers can create bookings")

    if merchant_id == customer.id:
        raise validation("You cannot book yourself")

    res = await db.execute(select(User).where(User.id == merchant_id))
    merchant = res.scalar_one_or_none()
    if not merchant or not merchant.has_role("merchant"):
        raise not_found("Merchant not found")

    booking = Booking(
        id=new_id(),
        customer_id=customer.id,
        merchant_id=merchant.id,
        service_type=service_type,
        price=price,
        address=address,
        notes=notes,
        status="pending",
    )
    booking.customer = customer
    booking.merchant = merchant
    db.add(booking)
    await db.commit()

    logger.info("booking_created", booking_id=booking.id, customer_id=customer.id, merchant_id=merchant.id)
    await publisher.emit(
        events.EventType.BOOKING_CREATED,
        {
            "booking_id": booking.id,
            "customer_id": booking.customer_id,
            "merchant_id": booking.merchant_id,
            "service_request_id": None,
            "price": booking.price,
        },
    )
    return await load_booking(db, booking.id)


async def get_booking_for(db: AsyncSession, user: User, booking_id: str) -> Booking:
    booking = await load_booking(db, booking_id)
    require_party(user, booking, "Not authorized to view this booking")
    return booking


async def list_open_bookings(db: AsyncSession, customer_id: str | None = None, merchant_id: str | None = None) -> list[Booking]:
    stmt = select(Booking).where(Booking.status != "completed")
    if customer_id is not None:
        stmt = stmt.where(Booking.customer_id == customer_id)
    if merchant_id is not None:
        stmt = stmt.where(Booking.merchant_id == merchant_id)
    res = await db.execute(stmt.order_by(Booking.created_at.desc()))
    return list(res.scalars().all())


async def update_booking_status(db: AsyncSession, user: User, booking_id: str, status: str) -> Booking:
    booking = await load_booking(db, booking_id)
    require_party(user, booking, "Not authorized to update this booking")

    previous = booking.status
    if not can_transition(previous, status):
        raise conflict(f"Cannot change booking status from {previous} to {status}")

    # a concurrent transition from the same state matches no row
    res = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == previous)
        .values(status=status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise conflict(f"Cannot change booking status from {previous} to {status}")

    linked = 0
    if status == "completed":
        res = await db.execute(
            update(ServiceRequest)
            .where(ServiceRequest.booking_id == booking.id)
            .values(status="completed", updated_at=utcnow())
        )
        linked = res.rowcount or 0

    await db.commit()

    logger.info(
        "booking_status_changed",
        booking_id=booking.id,
        from_status=previous,
        to_status=status,
        by=user.id,
        service_requests_completed=linked,
    )
    await publisher.emit(
        events.EventType.BOOKING_STATUS_CHANGED,
        {"booking_id": booking.id, "from": previous, "to": status, "changed_by": user.id},
    )
    return await load_booking(db, booking.id)
