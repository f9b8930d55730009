"""Claim ledger for inbound webhooks.

``claim_event`` inserts the WebhookEvent row and commits it before the
caller runs any side effect, so the unique ``event_id`` turns redeliveries
into no-ops. An unprocessed claim older than the lease is treated as
abandoned and can be taken over by exactly one later delivery.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from libs.common.datetime_utils import minutes_ago, utc_now
from libs.common.logging import get_logger
from services.store_service.models import WebhookEvent, WebhookSource
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class ClaimStatus(str, enum.Enum):
    CLAIMED = "claimed"
    RECLAIMED = "reclaimed"
    DUPLICATE = "duplicate"
    IN_FLIGHT = "in_flight"


@dataclass
class Claim:
    status: ClaimStatus
    event_pk: Optional[uuid.UUID] = None

    @property
    def acquired(self) -> bool:
        return self.status in (ClaimStatus.CLAIMED, ClaimStatus.RECLAIMED)


async def claim_event(
    db: AsyncSession,
    event_id: str,
    source: WebhookSource,
    event_type: str,
    payload: dict,
    lease_minutes: int,
) -> Claim:
    row = WebhookEvent(
        event_id=event_id,
        source=source,
        event_type=event_type,
        payload=payload,
        processed=False,
        claimed_at=utc_now(),
    )
    db.add(row)
    try:
        await db.commit()
        return Claim(status=ClaimStatus.CLAIMED, event_pk=row.id)
    except IntegrityError:
        await db.rollback()

    result = await db.execute(
        select(WebhookEvent.id, WebhookEvent.processed).where(
            WebhookEvent.event_id == event_id
        )
    )
    existing = result.one()
    if existing.processed:
        logger.info(
            f"Webhook {event_id} already processed, skipping",
            extra={"extra_fields": {"event_id": event_id, "event_type": event_type}},
        )
        return Claim(status=ClaimStatus.DUPLICATE, event_pk=existing.id)

    # Conditional update: only one delivery can take over a stale claim.
    takeover = await db.execute(
        update(WebhookEvent)
        .where(
            WebhookEvent.event_id == event_id,
            WebhookEvent.processed.is_(False),
            WebhookEvent.claimed_at < minutes_ago(lease_minutes),
        )
        .values(claimed_at=utc_now(), error_message=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if takeover.rowcount == 1:
        logger.warning(
            f"Webhook {event_id} claim lease expired, reprocessing",
            extra={"extra_fields": {"event_id": event_id, "event_type": event_type}},
        )
        return Claim(status=ClaimStatus.RECLAIMED, event_pk=existing.id)

    logger.info(
        f"Webhook {event_id} is being processed by another delivery",
        extra={"extra_fields": {"event_id": event_id, "event_type": event_type}},
    )
    return Claim(status=ClaimStatus.IN_FLIGHT, event_pk=existing.id)


async def mark_processed(db: AsyncSession, event_pk: uuid.UUID) -> None:
    await db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.id == event_pk)
        .values(processed=True, processed_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def record_error(db: AsyncSession, event_pk: uuid.UUID, message: str) -> None:
    await db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.id == event_pk)
        .values(error_message=message[:2000])
        .execution_options(synchronize_session=False)
    )
    await db.commit()
