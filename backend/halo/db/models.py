"""
SQLAlchemy ORM Models for Halo

Defines database models matching the schema in init_db.py.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PaymentMethodModel(Base):
    """
    ORM model for payment_methods table.

    Stores tokenized cards only: brand, last four digits and vault token.
    """
    __tablename__ = "payment_methods"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    tokenized_provider_id = Column(String, nullable=False)
    card_brand = Column(String, nullable=False)
    card_last4 = Column(String, nullable=False)
    card_exp_month = Column(Integer, nullable=False)
    card_exp_year = Column(Integer, nullable=False)
    card_holder_name = Column(String, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    verification_otp = Column(String)
    verification_otp_expires = Column(DateTime)
    billing_address = Column(Text)  # JSON blob
    is_default = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default="active", index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_used = Column(DateTime)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'expired', 'removed')", name="payment_method_status_check"),
    )


class OrderModel(Base):
    """
    ORM model for orders table.

    One row per submitted checkout: the normalized totals plus the raw
    protocol payload kept for audit.
    """
    __tablename__ = "orders"

    order_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    protocol = Column(String, nullable=False)
    payment_method_id = Column(String)
    total_cents = Column(Integer, nullable=False)
    currency = Column(String, nullable=False)
    country = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    shipping_speed = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    authorization_code = Column(String)
    decline_reason = Column(String)
    raw_payload = Column(Text, nullable=False)  # JSON blob
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint("status IN ('authorized', 'declined')", name="order_status_check"),
    )
