import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import events
from .lifecycle import load_booking
from .models import Booking, Message, User, utcnow
from .rabbitmq import publisher
from .rbac import require_party

logger = structlog.get_logger(__name__)


async def send_message(db: AsyncSession, sender: User, booking_id: str, body: str) -> Message:
    booking = await load_booking(db, booking_id)
    require_party(sender, booking, "Not authorized to send messages for this booking")

    receiver_id = booking.counterparty_of(sender.id)
    msg = Message(
        booking_id=booking.id,
        sender_id=sender.id,
        receiver_id=receiver_id,
        message=body,
        read=False,
        created_at=utcnow(),
    )
    msg.sender = sender
    msg.receiver = booking.merchant if receiver_id == booking.merchant_id else booking.customer
    db.add(msg)
    await db.commit()

    logger.info("message_sent", booking_id=booking.id, message_id=msg.id, sender_id=sender.id)
    await publisher.emit(
        events.EventType.MESSAGE_SENT,
        {"booking_id": booking.id, "message_id": msg.id, "sender_id": sender.id, "receiver_id": receiver_id},
    )
    return msg


async def list_thread(db: AsyncSession, reader: User, booking_id: str) -> list[Message]:
    """Messages of a booking, oldest first.

    Marks everything addressed to the reader as read. The returned objects
    still show the pre-read state, matching what the reader had not seen yet.
    """
    booking = await load_booking(db, booking_id)
    require_party(reader, booking, "Not authorized to view messages for this booking")

    res = await db.execute(
        select(Message)
        .where(Message.booking_id == booking.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    messages = list(res.scalars().all())

    await db.execute(
        update(Message)
        .where(
            Message.booking_id == booking.id,
            Message.receiver_id == reader.id,
            Message.read.is_(False),
        )
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return messages


async def unread_count(db: AsyncSession, user: User) -> int:
    res = await db.execute(
        select(func.count(Message.id)).where(
            Message.receiver_id == user.id,
            Message.read.is_(False),
        )
    )
    return int(res.scalar_one())


async def latest_unread(db: AsyncSession, user: User) -> tuple[Message | None, Booking | None]:
    res = await db.execute(
        select(Message)
        .where(Message.receiver_id == user.id, Message.read.is_(False))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    )
    msg = res.scalar_one_or_none()
    if msg is None:
        return None, None

    booking = await load_booking(db, msg.booking_id)
    return msg, booking
