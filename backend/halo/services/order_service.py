"""
Order Service

Persists submitted checkouts and serves order history.
"""
import json
import uuid
import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import OrderModel, utcnow
from ..exceptions import OrderNotFoundError
from ..models.orders import Order
from ..models.payloads import NormalizedPayload

logger = logging.getLogger(__name__)


def _to_order(row: OrderModel) -> Order:
    return Order(
        order_id=row.order_id,
        user_id=row.user_id,
        protocol=row.protocol,
        payment_method_id=row.payment_method_id,
        total_cents=row.total_cents,
        currency=row.currency,
        country=row.country,
        provider=row.provider,
        shipping_speed=row.shipping_speed,
        status=row.status,
        authorization_code=row.authorization_code,
        decline_reason=row.decline_reason,
        raw_payload=json.loads(row.raw_payload),
        created_at=row.created_at,
    )


async def record_order(
    db: AsyncSession,
    user_id: str,
    protocol: str,
    normalized: NormalizedPayload,
    authorization: Dict[str, Any],
    raw_payload: Dict[str, Any],
    payment_method_id: str = None
) -> Order:
    """
    Store a submitted checkout.

    Args:
        db: Database session
        user_id: Buyer
        protocol: Canonical protocol name
        normalized: Canonical totals
        authorization: Processor result (status, authorization_code, decline_reason)
        raw_payload: Protocol payload as submitted, kept for audit
        payment_method_id: Card charged
    """
    canonical = normalized.halo_normalized
    row = OrderModel(
        order_id=f"ord_{uuid.uuid4().hex[:16]}",
        user_id=user_id,
        protocol=protocol,
        payment_method_id=payment_method_id,
        total_cents=canonical.total_cents,
        currency=canonical.currency,
        country=canonical.country,
        provider=canonical.provider,
        shipping_speed=canonical.shipping_speed,
        status=authorization["status"],
        authorization_code=authorization.get("authorization_code"),
        decline_reason=authorization.get("decline_reason"),
        raw_payload=json.dumps(raw_payload, default=str),
        created_at=utcnow(),
    )

    db.add(row)
    await db.commit()
    await db.refresh(row)

    logger.info(
        f"Recorded order {row.order_id}: protocol={protocol}, status={row.status}, "
        f"total={row.total_cents} {row.currency}"
    )
    return _to_order(row)


async def get_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(select(OrderModel).where(OrderModel.order_id == order_id))
    row = result.scalar_one_or_none()
    if row is None:
        raise OrderNotFoundError(f"Order {order_id} not found", {"order_id": order_id})
    return _to_order(row)


async def get_user_orders(
    db: AsyncSession,
    user_id: str,
    limit: int = 50,
    offset: int = 0
) -> List[Order]:
    """Order history, newest first."""
    result = await db.execute(
        select(OrderModel)
        .where(OrderModel.user_id == user_id)
        .order_by(OrderModel.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return [_to_order(row) for row in result.scalars().all()]
