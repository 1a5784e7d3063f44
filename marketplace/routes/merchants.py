from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..errors import not_found
from ..lifecycle import get_merchant_profile
from ..models import MerchantProfile, User
from ..rbac import require_role
from ..schemas import MerchantProfileOut, UpdateMerchantProfile, UpdatePortfolio
from ..security import get_current_user

router = APIRouter(prefix="/merchants", tags=["Merchants"])


async def _own_profile(db: AsyncSession, user: User) -> MerchantProfile:
    require_role(user, "merchant", "Only merchants can manage a merchant profile")
    profile = await get_merchant_profile(db, user.id)
    if not profile:
        raise not_found("Merchant profile not found")
    return profile


@router.get("", response_model=List[MerchantProfileOut])
async def list_merchants(db: AsyncSession = Depends(get_db)):
    res = await db.execute(
        select(MerchantProfile).order_by(MerchantProfile.rating.desc(), MerchantProfile.created_at.desc())
    )
    return [MerchantProfileOut.from_model(p) for p in res.scalars().all()]


@router.get("/{user_id}", response_model=MerchantProfileOut)
async def get_merchant(user_id: str, db: AsyncSession = Depends(get_db)):
    profile = await get_merchant_profile(db, user_id)
    if not profile:
        raise not_found("Merchant not found")
    return MerchantProfileOut.from_model(profile)


@router.post("/update", response_model=MerchantProfileOut)
async def update_profile(
    data: UpdateMerchantProfile,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await _own_profile(db, user)

    changes = data.model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(profile, field, value)

    await db.commit()
    return MerchantProfileOut.from_model(profile)


@router.post("/portfolio", response_model=MerchantProfileOut)
async def update_portfolio(
    data: UpdatePortfolio,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await _own_profile(db, user)

    if data.profile_picture:
        profile.profile_picture = data.profile_picture
    if data.previous_work_images is not None:
        profile.previous_work_images = list(data.previous_work_images)

    await db.commit()
    return MerchantProfileOut.from_model(profile)
