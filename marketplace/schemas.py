from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import (
    BOOKING_STATUSES,
    MERCHANT_AVAILABILITY,
    ROLES,
    SKILL_CATEGORIES,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required_text(value: str, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{field} is required")
    return value


def _check_skill(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in SKILL_CATEGORIES:
        raise ValueError(f"Invalid skill category: {value}. Allowed: {list(SKILL_CATEGORIES)}")
    return value


# ---- Auth ----

class MerchantData(CamelModel):
    skill_category: str
    years_experience: int = Field(default=0, ge=0)
    about: str = Field(default="", max_length=500)
    cnic: str = ""
    profile_picture: str = ""

    @field_validator("skill_category")
    @classmethod
    def _skill(cls, v):
        return _check_skill(v)


class RegisterRequest(CamelModel):
    name: str
    email: str
    password: str = Field(min_length=6)
    roles: Optional[List[str]] = None
    role: Optional[str] = None  # single-role clients
    phone: Optional[str] = None
    merchant_data: Optional[MerchantData] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return _required_text(v, "name")

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        v = _required_text(v, "email").lower()
        if "@" not in v:
            raise ValueError("email is invalid")
        return v

    @model_validator(mode="after")
    def _normalize_roles(self):
        requested = self.roles if self.roles else ([self.role] if self.role else ["customer"])
        normalized = []
        for r in requested:
            rr = (r or "").strip().lower()
            if rr not in ROLES:
                raise ValueError(f"Invalid role: {r}. Allowed: {list(ROLES)}")
            if rr not in normalized:
                normalized.append(rr)
        self.roles = normalized
        self.role = None
        return self


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return _required_text(v, "email").lower()

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        if not v:
            raise ValueError("password is required")
        return v


class AddRoleRequest(CamelModel):
    role: str

    @field_validator("role")
    @classmethod
    def _role(cls, v):
        v = (v or "").strip().lower()
        if v not in ROLES:
            raise ValueError("Invalid role")
        return v


# ---- Lifecycle ----

class CreateServiceRequest(CamelModel):
    service_type: str
    issue: str
    location: str

    @field_validator("service_type", "issue", "location")
    @classmethod
    def _text(cls, v, info):
        return _required_text(v, to_camel(info.field_name))


class SubmitOfferRequest(CamelModel):
    request_id: str
    price: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    negotiable: bool = False


class SelectMerchantRequest(CamelModel):
    request_id: str
    merchant_id: str


class CreateBookingRequest(CamelModel):
    merchant_id: str
    service_type: str
    price: float = Field(ge=0, allow_inf_nan=False)
    address: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("service_type")
    @classmethod
    def _service_type(cls, v):
        return _required_text(v, "serviceType")


class UpdateBookingStatusRequest(CamelModel):
    booking_id: str
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, v):
        if v not in BOOKING_STATUSES:
            raise ValueError(f"Invalid status: {v}. Allowed: {list(BOOKING_STATUSES)}")
        return v


# ---- Chat ----

class SendMessageRequest(CamelModel):
    booking_id: str
    message: str

    @field_validator("message")
    @classmethod
    def _message(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("Message cannot be empty")
        return v


# ---- Merchants ----

class UpdateMerchantProfile(CamelModel):
    skill_category: Optional[str] = None
    years_experience: Optional[int] = Field(default=None, ge=0)
    about: Optional[str] = Field(default=None, max_length=500)
    price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    availability: Optional[str] = None
    certifications: Optional[List[str]] = None

    @field_validator("skill_category")
    @classmethod
    def _skill(cls, v):
        return _check_skill(v)

    @field_validator("availability")
    @classmethod
    def _availability(cls, v):
        if v is not None and v not in MERCHANT_AVAILABILITY:
            raise ValueError(f"Invalid availability: {v}")
        return v


class UpdatePortfolio(CamelModel):
    profile_picture: Optional[str] = None
    previous_work_images: Optional[List[str]] = None


# ---- Responses ----

class UserSummary(CamelModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None

    @classmethod
    def from_model(cls, user) -> Optional["UserSummary"]:
        if user is None:
            return None
        return cls(id=user.id, name=user.name, email=user.email, phone=user.phone)


class UserOut(CamelModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    roles: List[str]
    role: str  # first of roles, kept for older clients
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, user) -> "UserOut":
        roles = list(user.roles or [])
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            roles=roles,
            role=roles[0] if roles else "customer",
            created_at=user.created_at,
        )


class AuthResponse(CamelModel):
    user: UserOut
    token: str


class MerchantProfileOut(CamelModel):
    id: str
    user_id: str
    user: Optional[UserSummary] = None
    skill_category: str
    years_experience: int
    about: Optional[str] = None
    price: Optional[float] = None
    rating: float
    previous_work_images: List[str] = Field(default_factory=list)
    profile_picture: str = ""
    availability: str
    certifications: List[str] = Field(default_factory=list)

    @classmethod
    def from_model(cls, profile) -> "MerchantProfileOut":
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            user=UserSummary.from_model(profile.user),
            skill_category=profile.skill_category,
            years_experience=profile.years_experience,
            about=profile.about,
            price=profile.price,
            rating=profile.rating,
            previous_work_images=list(profile.previous_work_images or []),
            profile_picture=profile.profile_picture or "",
            availability=profile.availability,
            certifications=list(profile.certifications or []),
        )


class MeResponse(CamelModel):
    user: UserOut
    profile: Optional[MerchantProfileOut] = None


class AddRoleResponse(CamelModel):
    user: UserOut
    message: str


class OfferOut(CamelModel):
    merchant_id: str
    merchant: Optional[UserSummary] = None
    price: float
    negotiable: bool
    accepted_at: datetime

    @classmethod
    def from_model(cls, offer) -> "OfferOut":
        return cls(
            merchant_id=offer.merchant_id,
            merchant=UserSummary.from_model(offer.merchant),
            price=offer.price,
            negotiable=offer.negotiable,
            accepted_at=offer.accepted_at,
        )


class ServiceRequestOut(CamelModel):
    id: str
    customer_id: str
    customer: Optional[UserSummary] = None
    service_type: str
    issue: str
    location: str
    status: str
    accepted_merchants: List[OfferOut] = Field(default_factory=list)
    selected_merchant_id: Optional[str] = None
    booking_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, sr) -> "ServiceRequestOut":
        return cls(
            id=sr.id,
            customer_id=sr.customer_id,
            customer=UserSummary.from_model(sr.customer),
            service_type=sr.service_type,
            issue=sr.issue,
            location=sr.location,
            status=sr.status,
            accepted_merchants=[OfferOut.from_model(o) for o in sr.offers],
            selected_merchant_id=sr.selected_merchant_id,
            booking_id=sr.booking_id,
            created_at=sr.created_at,
            updated_at=sr.updated_at,
        )


class BookingOut(CamelModel):
    id: str
    customer_id: str
    merchant_id: str
    customer: Optional[UserSummary] = None
    merchant: Optional[UserSummary] = None
    service_type: str
    price: float
    status: str
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, booking) -> "BookingOut":
        return cls(
            id=booking.id,
            customer_id=booking.customer_id,
            merchant_id=booking.merchant_id,
            customer=UserSummary.from_model(booking.customer),
            merchant=UserSummary.from_model(booking.merchant),
            service_type=booking.service_type,
            price=booking.price,
            status=booking.status,
            address=booking.address,
            notes=booking.notes,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class SelectMerchantResponse(CamelModel):
    service_request: ServiceRequestOut
    booking: BookingOut


class MessageOut(CamelModel):
    id: int
    booking_id: str
    sender_id: str
    receiver_id: str
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None
    message: str
    read: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, msg) -> "MessageOut":
        return cls(
            id=msg.id,
            booking_id=msg.booking_id,
            sender_id=msg.sender_id,
            receiver_id=msg.receiver_id,
            sender=UserSummary.from_model(msg.sender),
            receiver=UserSummary.from_model(msg.receiver),
            message=msg.message,
            read=msg.read,
            created_at=msg.created_at,
        )


class UnreadCountResponse(CamelModel):
    unread_count: int


class LatestUnreadResponse(CamelModel):
    message: Optional[MessageOut] = None
    booking: Optional[BookingOut] = None


class ServiceCatalogEntry(CamelModel):
    id: int
    name: str
    icon: str
    description: str


class CleanupStatus(CamelModel):
    status: str
    counts: dict
    timestamp: datetime


class CleanupResult(CamelModel):
    success: bool
    message: str
    timestamp: datetime
    deleted: dict
