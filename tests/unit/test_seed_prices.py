"""
Unit tests for seed_prices.py module.
"""

from scripts.collectors.equipment_schemas import PriceEntry
from scripts.seeding.seed_prices import (
    MANUAL_PRICE_DATA,
    find_equipment,
    model_search_term,
    seed_prices,
    upsert_price,
)

PRODUCT = {
    "equipment_search": "TaylorMade Qi10 Max",
    "prices": [
        {"retailer": "Amazon", "price": 579.95, "url": "https://www.amazon.com/qi10"},
        {"retailer": "Golf Galaxy", "price": 599.99, "url": "https://www.golfgalaxy.com/qi10"},
    ],
}
EQUIPMENT = {"id": "eq-1", "brand": "TaylorMade", "model": "Qi10 Max"}


def test_model_search_term():
    assert model_search_term("Scotty Cameron Special Select Newport 2 Plus") == "2 Plus"
    assert model_search_term("Qi10") == "Qi10"


def test_curated_prices_are_valid():
    for product in MANUAL_PRICE_DATA:
        for price in product["prices"]:
            PriceEntry.model_validate(price)


def test_find_equipment(fake_client, fake_query):
    query = fake_client.set_table("equipment", fake_query(data=[EQUIPMENT]))

    assert find_equipment(fake_client, "TaylorMade Qi10 Max") == EQUIPMENT
    assert query.called("ilike") == [("model", "%Qi10 Max%")]


def test_find_equipment_missing(fake_client):
    assert find_equipment(fake_client, "Nothing Here") is None


class TestUpsertPrice:
    entry = PriceEntry(retailer="Amazon", price=52.99, url="https://www.amazon.com/x")

    def test_updates_existing(self, fake_client, fake_query, fake_response):
        query = fake_client.set_table(
            "equipment_prices",
            fake_query(responses=[fake_response([{"id": "price-1"}]), fake_response(None)]),
        )

        assert upsert_price(fake_client, "eq-1", self.entry) == "updated"
        assert query.called("update") == [
            ({"price": 52.99, "url": "https://www.amazon.com/x", "in_stock": True},)
        ]
        assert ("id", "price-1") in query.called("eq")

    def test_inserts_new(self, fake_client, fake_query):
        query = fake_client.set_table("equipment_prices", fake_query(data=[]))

        assert upsert_price(fake_client, "eq-1", self.entry) == "inserted"
        assert query.called("insert") == [
            (
                {
                    "equipment_id": "eq-1",
                    "retailer": "Amazon",
                    "price": 52.99,
                    "url": "https://www.amazon.com/x",
                    "in_stock": True,
                },
            )
        ]


class TestSeedPrices:
    def test_counts(self, fake_client, fake_query, test_logger):
        fake_client.set_table("equipment", fake_query(data=[EQUIPMENT]))
        fake_client.set_table("equipment_prices", fake_query(data=[]))

        counts = seed_prices(fake_client, test_logger, price_data=[PRODUCT])

        assert counts == {"inserted": 2, "updated": 0, "not_found": 0, "errors": 0}

    def test_not_found(self, fake_client, test_logger):
        counts = seed_prices(fake_client, test_logger, price_data=[PRODUCT])

        assert counts["not_found"] == 1
        assert counts["inserted"] == 0

    def test_dry_run_writes_nothing(self, fake_client, fake_query, test_logger):
        fake_client.set_table("equipment", fake_query(data=[EQUIPMENT]))

        counts = seed_prices(fake_client, test_logger, price_data=[PRODUCT], dry_run=True)

        assert counts["inserted"] == 0
        assert "equipment_prices" not in fake_client.table_calls

    def test_write_errors_counted(self, fake_client, fake_query, api_error, test_logger):
        fake_client.set_table("equipment", fake_query(data=[EQUIPMENT]))
        fake_client.set_table("equipment_prices", fake_query(responses=[api_error("42501", "denied")]))

        counts = seed_prices(fake_client, test_logger, price_data=[PRODUCT])

        assert counts["errors"] == 2
