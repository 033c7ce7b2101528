"""
Orders API Endpoints

Order history built from normalized checkout records.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any
import logging

from ..db.init_db import get_db
from ..services.order_service import get_order, get_user_orders

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/user/{user_id}")
async def get_user_orders_endpoint(
    user_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Order history for a user, newest first.

    Example:
        GET /api/orders/user/user_demo_001?limit=10
    """
    orders = await get_user_orders(db, user_id, limit=limit, offset=offset)
    return {
        "user_id": user_id,
        "orders": [order.model_dump(mode="json") for order in orders],
        "count": len(orders),
    }


@router.get("/{order_id}")
async def get_order_endpoint(order_id: str, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    order = await get_order(db, order_id)
    return order.model_dump(mode="json")
