"""Domain events published after a write commits.

Consumers bind to the topic exchange with the event type as routing key,
e.g. `booking.*` for every booking change.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    SERVICE_REQUEST_CREATED = "service_request.created"
    OFFER_SUBMITTED = "service_request.offer_submitted"
    MERCHANT_SELECTED = "service_request.merchant_selected"
    BOOKING_CREATED = "booking.created"
    BOOKING_STATUS_CHANGED = "booking.status_changed"
    MESSAGE_SENT = "message.sent"


class DomainEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: EventType
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def routing_key(self) -> str:
        return self.event_type.value

    def to_json(self) -> str:
        return self.model_dump_json()
