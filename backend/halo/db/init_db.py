"""
Database Initialization

Creates the SQLite tables for Halo: payment_methods, orders.
"""
import logging
import sqlite3
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from ..config import settings

logger = logging.getLogger(__name__)


def create_tables(conn: sqlite3.Connection) -> None:
    """
    Create all database tables with indexes.

    Tables:
    - payment_methods: Tokenized cards with verification state
    - orders: Normalized checkout records with the raw payload for audit

    Also enables WAL mode for better concurrency.
    """
    cursor = conn.cursor()

    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA synchronous=NORMAL")

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS payment_methods (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            tokenized_provider_id TEXT NOT NULL,
            card_brand TEXT NOT NULL,
            card_last4 TEXT NOT NULL,
            card_exp_month INTEGER NOT NULL,
            card_exp_year INTEGER NOT NULL,
            card_holder_name TEXT NOT NULL,
            verified BOOLEAN NOT NULL DEFAULT FALSE,
            verification_otp TEXT,
            verification_otp_expires TIMESTAMP,
            billing_address TEXT,
            is_default BOOLEAN NOT NULL DEFAULT FALSE,
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'expired', 'removed')),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            last_used TIMESTAMP
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_payment_methods_user_id ON payment_methods(user_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_payment_methods_status ON payment_methods(status)")

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS orders (
            order_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            protocol TEXT NOT NULL,
            payment_method_id TEXT,
            total_cents INTEGER NOT NULL,
            currency TEXT NOT NULL,
            country TEXT NOT NULL,
            provider TEXT NOT NULL,
            shipping_speed TEXT NOT NULL,
            status TEXT NOT NULL CHECK(status IN ('authorized', 'declined')),
            authorization_code TEXT,
            decline_reason TEXT,
            raw_payload TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (payment_method_id) REFERENCES payment_methods(id)
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_orders_user_id ON orders(user_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_orders_created ON orders(created_at DESC)")

    conn.commit()
    logger.info("All tables created successfully")


def initialize_database() -> None:
    """
    Initialize the database with all required tables.

    Called during FastAPI startup.
    """
    db_path = Path(settings.database_path)
    logger.info(f"Initializing database at: {db_path}")

    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        create_tables(conn)
    finally:
        conn.close()


# ============================================================================
# SQLAlchemy Async Session Setup for FastAPI
# ============================================================================

DATABASE_URL = f"sqlite+aiosqlite:///{settings.database_path}"
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    connect_args={
        "timeout": 30,
        "check_same_thread": False
    },
    pool_pre_ping=True
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions in FastAPI.

    Usage:
        @router.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session


# Alias for FastAPI Depends
get_db = get_async_session


def main():
    """CLI entry point for initializing database."""
    logging.basicConfig(level=logging.INFO)
    initialize_database()


if __name__ == "__main__":
    main()
