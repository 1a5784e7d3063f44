import hmac

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .. import config
from ..db import get_db
from ..models import Booking, Message, ServiceRequest, ServiceRequestOffer, utcnow
from ..schemas import CleanupResult, CleanupStatus

router = APIRouter(prefix="/cleanup", tags=["Maintenance"])

logger = structlog.get_logger(__name__)


def _require_enabled():
    if not config.CLEANUP_SECRET:
        raise HTTPException(status_code=404, detail="Not Found")


async def _count(db: AsyncSession, model) -> int:
    res = await db.execute(select(func.count()).select_from(model))
    return int(res.scalar_one())


@router.post("/reset-all", response_model=CleanupResult)
async def reset_all(
    x_cleanup_secret: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    _require_enabled()
    if not x_cleanup_secret or not hmac.compare_digest(x_cleanup_secret, config.CLEANUP_SECRET):
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid secret key")

    logger.warning("cleanup_started")

    # children before parents; requests point at bookings
    await db.execute(delete(Message))
    await db.execute(delete(ServiceRequestOffer))
    await db.execute(update(ServiceRequest).values(booking_id=None))
    requests_deleted = (await db.execute(delete(ServiceRequest))).rowcount or 0
    bookings_deleted = (await db.execute(delete(Booking))).rowcount or 0
    await db.commit()

    deleted = {"serviceRequests": requests_deleted, "bookings": bookings_deleted}
    logger.warning("cleanup_completed", **deleted)
    return CleanupResult(
        success=True,
        message="All logs have been reset successfully",
        timestamp=utcnow(),
        deleted=deleted,
    )


@router.get("/status", response_model=CleanupStatus)
async def cleanup_status(db: AsyncSession = Depends(get_db)):
    _require_enabled()
    return CleanupStatus(
        status="OK",
        counts={
            "serviceRequests": await _count(db, ServiceRequest),
            "bookings": await _count(db, Booking),
        },
        timestamp=utcnow(),
    )
