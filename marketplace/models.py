import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base

ROLES = ("customer", "merchant")

SKILL_CATEGORIES = ("Electrician", "Plumber", "AC Technician", "Carpenter", "Painter")

MERCHANT_AVAILABILITY = ("online", "offline")

# pending -> offerSubmitted -> accepted -> active -> completed; cancelled is reserved
REQUEST_STATUSES = ("pending", "offerSubmitted", "accepted", "active", "completed", "cancelled")
OPEN_REQUEST_STATUSES = ("pending", "offerSubmitted")

BOOKING_STATUSES = ("pending", "accepted", "active", "completed", "cancelled")

MAX_OFFERS_PER_REQUEST = 10


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    roles = Column(JSON, nullable=False)
    phone = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])


class MerchantProfile(Base):
    __tablename__ = "merchant_profiles"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    skill_category = Column(String, nullable=False, index=True)
    years_experience = Column(Integer, nullable=False, default=0)
    about = Column(String(500), nullable=True)
    price = Column(Float, nullable=True)
    rating = Column(Float, nullable=False, default=4.5)
    previous_work_images = Column(JSON, nullable=False, default=list)
    profile_picture = Column(String, nullable=False, default="")
    availability = Column(String, nullable=False, default="offline")
    cnic = Column(String, nullable=True)
    certifications = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="selectin")


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id = Column(String, primary_key=True, default=new_id)
    customer_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    service_type = Column(String, nullable=False, index=True)
    issue = Column(Text, nullable=False)
    location = Column(String, nullable=False)

    status = Column(String, nullable=False, default="pending", index=True)
    selected_merchant_id = Column(String, ForeignKey("users.id"), nullable=True)
    offer_count = Column(Integer, nullable=False, default=0)
    booking_id = Column(String, ForeignKey("bookings.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("User", foreign_keys=[customer_id], lazy="selectin")
    selected_merchant = relationship("User", foreign_keys=[selected_merchant_id], lazy="selectin")
    offers = relationship(
        "ServiceRequestOffer",
        back_populates="service_request",
        cascade="all, delete-orphan",
        order_by="ServiceRequestOffer.id",
        lazy="selectin",
    )

    def offer_from(self, merchant_id: str):
        for offer in self.offers:
            if offer.merchant_id == merchant_id:
                return offer
        return None


class ServiceRequestOffer(Base):
    __tablename__ = "service_request_offers"
    __table_args__ = (
        UniqueConstraint("service_request_id", "merchant_id", name="uq_offer_request_merchant"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_request_id = Column(String, ForeignKey("service_requests.id"), nullable=False, index=True)
    merchant_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    price = Column(Float, nullable=False)
    negotiable = Column(Boolean, nullable=False, default=False)
    accepted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    service_request = relationship("ServiceRequest", back_populates="offers")
    merchant = relationship("User", lazy="selectin")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=new_id)
    customer_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    merchant_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    service_type = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    address = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("User", foreign_keys=[customer_id], lazy="selectin")
    merchant = relationship("User", foreign_keys=[merchant_id], lazy="selectin")

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.customer_id, self.merchant_id)

    def counterparty_of(self, user_id: str) -> str:
        return self.merchant_id if user_id == self.customer_id else self.customer_id


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String, ForeignKey("bookings.id"), nullable=False, index=True)
    sender_id = Column(String, ForeignKey("users.id"), nullable=False)
    receiver_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    sender = relationship("User", foreign_keys=[sender_id], lazy="selectin")
    receiver = relationship("User", foreign_keys=[receiver_id], lazy="selectin")
