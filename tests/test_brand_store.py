"""Tests for the product repository and brand-store ingestion."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from dropiq.db.models import AmazonProduct, SamsungProduct, SonyProduct
from dropiq.enrich.affiliate import AffiliateLinkGenerator
from dropiq.ingest.brand_store import (
    BrandStoreIngestor,
    ProductIdAllocator,
    default_product_url,
    determine_category,
    normalize_brand_product,
    parse_number,
)
from dropiq.repository.products import ProductRepository, frequent_searches


class TestDetermineCategory:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Samsung Jet Bot Robot Vacuum", "robot_vacuums"),
            ("Sony Wireless Neckband WI-C100", "neckbands"),
            ("Galaxy Buds FE", "earbuds"),
            ("Sony MDR-EX155AP Wired Earphones", "wired_earphones"),
            ("Sony WH-CH520 Headphones", "headphones"),
            ("Gaming Headset", "headphones"),
            ("Something else", "earbuds"),
        ],
    )
    def test_categories(self, name, expected):
        assert determine_category(name) == expected

    def test_description_counts(self):
        assert determine_category("Level U", "Bluetooth neckband") == "neckbands"


class TestProductIdAllocator:
    def test_serials_per_brand_and_category(self):
        allocator = ProductIdAllocator()
        assert allocator.next_id("Samsung", "earbuds") == "sam_1_01"
        assert allocator.next_id("Samsung", "earbuds") == "sam_1_02"
        assert allocator.next_id("Samsung", "headphones") == "sam_2_01"
        assert allocator.next_id("Sony", "earbuds") == "son_1_01"

    def test_each_run_starts_over(self):
        ProductIdAllocator().next_id("Sony", "neckbands")
        assert ProductIdAllocator().next_id("Sony", "neckbands") == "son_3_01"


class TestNormalize:
    def test_parse_number(self):
        assert parse_number("₹12,999.00") == 12999.0
        assert parse_number("4.5 out of 5") == 4.5
        assert parse_number(None) is None
        assert parse_number("Notify me") is None

    def test_normalize_record(self):
        product = normalize_brand_product(
            {"name": "Galaxy Buds FE", "price": "₹6,999", "rating": "4.4", "reviews_count": "1,204", "colors": "Graphite"},
            "Samsung",
            ProductIdAllocator(),
        )
        assert product["product_id"] == "sam_1_01"
        assert product["category"] == "earbuds"
        assert product["price_inr"] == 6999.0
        assert product["reviews_count"] == 1204
        assert product["description"] == "Available in: Graphite"
        assert product["features"] == ["Available in: Graphite"]
        assert product["product_url"] == "https://www.samsung.com/in/audio-sound/galaxy-buds/galaxy-buds-fe/"

    def test_default_product_url(self):
        assert default_product_url("Sony", "WH-1000XM5 (Black)") == "https://www.sony.co.in/electronics/wh-1000xm5-black"


class TestProductRepository:
    """Upserts and cross-table lookups."""

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_updates(self, session_factory):
        affiliate = AffiliateLinkGenerator(api_key="abc123")
        async with session_factory() as session:
            repo = ProductRepository(session, affiliate=affiliate)
            data = {
                "product_name": "Sony WF-C700N",
                "category": "earbuds",
                "price_inr": Decimal("8990"),
                "product_id": "son_1_07",
                "product_url": "https://www.sony.co.in/electronics/wf-c700n",
                "not_a_column": "ignored",
            }
            first = await repo.upsert("sony", data)
            second = await repo.upsert("Sony", {**data, "price_inr": Decimal("7990")})

        assert first.inserted is True
        assert second.inserted is False
        assert second.id == first.id

        async with session_factory() as session:
            row = (await session.execute(select(SonyProduct))).scalar_one()
        assert row.price_inr == Decimal("7990")
        assert row.brand == "Sony"
        assert "cuid=sony_son_1_07" in row.affiliate_url
        assert "utm_campaign=sony" in row.affiliate_url

    @pytest.mark.asyncio
    async def test_find_in_retailers_prefers_amazon(self, seeded):
        async with seeded() as session:
            repo = ProductRepository(session)
            session.add(AmazonProduct(product_name="OnePlus Nord Buds 2", category="earbuds"))
            await session.commit()

            match = await repo.find_in_retailers("oneplus nord buds 2")
            missing = await repo.find_in_retailers("Nothing Ear (2)")

        assert match.retailer == "amazon"
        assert match.product_name == "OnePlus Nord Buds 2"
        assert missing is None

    @pytest.mark.asyncio
    async def test_update_with_brand_data_keeps_missing_fields(self, seeded):
        async with seeded() as session:
            repo = ProductRepository(session)
            updated = await repo.update_with_brand_data(
                "amazon", "samsung galaxy buds2 pro", {"price_inr": 9999.0, "rating": None, "description": None}
            )

        async with seeded() as session:
            row = (
                await session.execute(select(AmazonProduct).where(AmazonProduct.product_name == "Samsung Galaxy Buds2 Pro"))
            ).scalar_one()

        assert updated == row.id
        assert row.price_inr == Decimal("9999")
        assert row.rating == Decimal("4.3")
        assert row.description == "Hi-Fi sound with intelligent ANC"

    @pytest.mark.asyncio
    async def test_find_any_checks_marketplaces_only(self, seeded):
        async with seeded() as session:
            sony_id = (await session.execute(select(SonyProduct.id))).scalars().first()
            amazon_id = (await session.execute(select(AmazonProduct.id))).scalars().first()
            repo = ProductRepository(session)

            assert (await repo.find_any(str(amazon_id)))["retailer_name"] == "Amazon"
            assert await repo.find_any(str(sony_id)) is None
            assert await repo.find_any("not-a-uuid") is None

    def test_frequent_searches(self):
        assert frequent_searches() == ["headphones", "earbuds", "neckbands", "wired_earphones", "robot_vacuums"]


class TestBrandStoreIngestor:
    """Duplicate detection and routing of brand-store records."""

    @pytest.mark.asyncio
    async def test_run(self, seeded):
        records = {
            "samsung": [
                # Already on Amazon: refresh price there
                {"name": "Samsung Galaxy Buds2 Pro", "price": "₹9,999"},
                # Already in the Sony table
                {"name": "Sony WF-1000XM5", "price": "₹19,990"},
                # New to every table
                {"name": "Galaxy Buds3 Pro", "price": "₹19,999", "rating": "4.6"},
                # Unusable
                {"name": ""},
            ],
            "sony": [{"name": "Sony WH-CH720N Headphones", "price": "₹9,990"}],
            "apple": [{"name": "AirPods Pro"}],
        }

        report = await BrandStoreIngestor(seeded).run(records)

        samsung = report.brands["samsung"]
        assert (samsung.total, samsung.updated, samsung.duplicates, samsung.inserted, samsung.errors) == (4, 1, 1, 1, 1)
        assert report.brands["sony"].inserted == 1
        assert "apple" not in report.brands
        assert report.to_dict()["brands"]["samsung"]["updated"] == 1

        async with seeded() as session:
            amazon = (
                await session.execute(select(AmazonProduct).where(AmazonProduct.product_name == "Samsung Galaxy Buds2 Pro"))
            ).scalar_one()
            new_samsung = (
                await session.execute(select(SamsungProduct).where(SamsungProduct.product_name == "Galaxy Buds3 Pro"))
            ).scalar_one()
            new_sony = (
                await session.execute(select(SonyProduct).where(SonyProduct.product_name == "Sony WH-CH720N Headphones"))
            ).scalar_one()

        assert amazon.price_inr == Decimal("9999")
        assert new_samsung.brand == "Samsung"
        assert new_samsung.category == "earbuds"
        assert new_samsung.product_id == "sam_1_03"
        assert new_sony.category == "headphones"
        assert new_sony.product_id == "son_2_01"
