"""Inbound webhook ledger.

A row is inserted (and committed) before any side effect runs; the unique
``event_id`` is what makes redelivered events no-ops.
"""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import JSONType
from services.store_service.models.enums import WebhookSource, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, String, Text, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column


class WebhookEvent(Base):
    __tablename__ = "store_webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    source: Mapped[WebhookSource] = mapped_column(
        SAEnum(
            WebhookSource,
            values_callable=enum_values,
            name="store_webhook_source_enum",
        ),
        default=WebhookSource.STRIPE,
    )
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict)

    processed: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false()
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        Index("ix_store_webhook_events_processed_created", "processed", "created_at"),
    )

    def __repr__(self):
        return f"<WebhookEvent {self.event_id} {self.event_type} processed={self.processed}>"
