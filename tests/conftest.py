"""Shared fixtures: a throwaway SQLite database and seeded products."""

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_dropiq.db"
os.environ["SPELLING_AI_ENABLED"] = "false"
os.environ["LLM_CACHE_ENABLED"] = "false"
os.environ["SOVRN_API_KEY"] = ""
os.environ["SOVRN_SECRET_KEY"] = ""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from dropiq.db.models import AmazonProduct, Base, FlipkartProduct, SamsungProduct, SonyProduct

TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_dropiq.db"

# NullPool: every test runs on its own event loop, connections must not be reused
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


SAMPLE_PRODUCTS = {
    AmazonProduct: [
        dict(product_name="Samsung Galaxy Buds2 Pro", brand="Samsung", asin="B0B2SH4CN6",
             category="earbuds", price_inr=Decimal("11999"), rating=Decimal("4.3"), reviews_count=5400,
             description="Hi-Fi sound with intelligent ANC"),
        dict(product_name="boAt Airdopes 141", brand="boAt", asin="B09N3ZNHTY",
             category="earbuds", price_inr=Decimal("1299"), rating=Decimal("4.1"), reviews_count=250000,
             description="42H playtime, low latency"),
        dict(product_name="Sony WH-1000XM5", brand="Sony", asin="B09XS7JWHH",
             category="headphones", price_inr=Decimal("29990"), rating=Decimal("4.6"), reviews_count=8800,
             description="Industry leading noise cancellation"),
        dict(product_name="JBL Tune 760NC", brand="JBL", asin="B096FYBQKQ",
             category="headphones", price_inr=None, rating=Decimal("4.0"), reviews_count=3100,
             description="Over-ear with active noise cancellation"),
        dict(product_name="Noise Buds VS104", brand="Noise", asin="B0B6GH9CZB",
             category="earbuds", price_inr=Decimal("999"), rating=Decimal("3.9"),
             availability_status="out_of_stock"),
        dict(product_name="Realme Buds Air 3", brand="Realme", asin="B09WDFHK2L",
             category="earbuds", price_inr=Decimal("2999"), rating=Decimal("4.0"), is_deleted=True),
    ],
    FlipkartProduct: [
        dict(product_name="OnePlus Nord Buds 2", brand="OnePlus", product_id="ACCGNCZ4",
             category="earbuds", price_inr=Decimal("2999"), rating=Decimal("4.2"), reviews_count=41000,
             description="12.4mm drivers"),
        dict(product_name="Realme Buds Wireless 3 Neckband", brand="Realme", product_id="ACCGKH7A",
             category="neckbands", price_inr=Decimal("1799"), rating=Decimal("4.0"), reviews_count=9000,
             description="Bluetooth neckband with 40H playback"),
    ],
    SamsungProduct: [
        dict(product_name="Galaxy Buds FE", brand="Samsung", product_id="sam_1_01",
             category="earbuds", price_inr=Decimal("6999"), rating=Decimal("4.4"), reviews_count=1200),
        dict(product_name="Samsung Level On Pro Headphones", brand="Samsung", product_id="sam_2_01",
             category="headphones", price_inr=Decimal("8999"), rating=Decimal("4.1"), reviews_count=300),
    ],
    SonyProduct: [
        dict(product_name="Sony WF-1000XM5", brand="Sony", product_id="son_1_01",
             category="earbuds", price_inr=Decimal("24990"), rating=Decimal("4.5"), reviews_count=2100),
        dict(product_name="Sony MDR-EX155AP Wired Earphones", brand="Sony", product_id="son_4_01",
             category="wired_earphones", price_inr=Decimal("799"), rating=Decimal("4.2"), reviews_count=61000),
    ],
}


@pytest.fixture
async def session_factory():
    """Fresh schema per test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield TestSessionLocal

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def seeded(session_factory):
    """Schema plus the sample products in all four tables."""
    async with session_factory() as session:
        for model, rows in SAMPLE_PRODUCTS.items():
            session.add_all(model(**row) for row in rows)
        await session.commit()
    return session_factory
