from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..lifecycle import get_merchant_profile
from ..models import MerchantProfile, User, new_id, utcnow
from ..schemas import (
    AddRoleRequest,
    AddRoleResponse,
    AuthResponse,
    LoginRequest,
    MeResponse,
    MerchantProfileOut,
    RegisterRequest,
    UserOut,
)
from ..security import create_access_token, get_current_user, hash_password, verify_password

router = APIRouter(prefix="/auth", tags=["Auth"])

DEFAULT_SKILL = "Electrician"


def _default_profile(user: User) -> MerchantProfile:
    return MerchantProfile(
        id=new_id(),
        user_id=user.id,
        skill_category=DEFAULT_SKILL,
        years_experience=0,
        about="",
        previous_work_images=[],
        certifications=[],
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == data.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        id=new_id(),
        name=data.name,
        email=data.email,
        password_hash=hash_password(data.password),
        roles=list(data.roles),
        phone=data.phone,
        created_at=utcnow(),
    )
    db.add(user)

    if "merchant" in user.roles:
        if data.merchant_data:
            md = data.merchant_data
            profile = MerchantProfile(
                id=new_id(),
                user_id=user.id,
                skill_category=md.skill_category,
                years_experience=md.years_experience,
                about=md.about,
                cnic=md.cnic,
                profile_picture=md.profile_picture,
                previous_work_images=[],
                certifications=[],
            )
        else:
            profile = _default_profile(user)
        db.add(profile)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="User already exists")

    return AuthResponse(user=UserOut.from_model(user), token=create_access_token(user))


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return AuthResponse(user=UserOut.from_model(user), token=create_access_token(user))


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile = None
    if user.has_role("merchant"):
        found = await get_merchant_profile(db, user.id)
        if found:
            profile = MerchantProfileOut.from_model(found)
    return MeResponse(user=UserOut.from_model(user), profile=profile)


@router.post("/add-role", response_model=AddRoleResponse)
async def add_role(
    data: AddRoleRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not user.has_role(data.role):
        # reassign so the JSON column is flagged dirty
        user.roles = list(user.roles or []) + [data.role]

        if data.role == "merchant" and not await get_merchant_profile(db, user.id):
            db.add(_default_profile(user))

        await db.commit()

    return AddRoleResponse(user=UserOut.from_model(user), message=f"Role {data.role} added successfully")
