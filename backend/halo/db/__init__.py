"""
Database package for Halo.

Exports database initialization, models, and session management.
"""
from .init_db import initialize_database, get_db, get_async_session, AsyncSessionLocal
from .models import Base, PaymentMethodModel, OrderModel

__all__ = [
    "initialize_database",
    "get_db",
    "get_async_session",
    "AsyncSessionLocal",
    "Base",
    "PaymentMethodModel",
    "OrderModel",
]
