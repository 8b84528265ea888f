"""
Unit tests for import_catalog.py module.
"""

import json

import pytest

from scripts.seeding.import_catalog import (
    catalog_key,
    import_catalog,
    insert_rows,
    select_new_items,
)

ITEMS = [
    {"id": "tmp-1", "brand": "Ping", "model": "G430 Max", "category": "driver"},
    {"brand": "TaylorMade", "model": "Qi10", "category": "Drivers"},
    {"brand": "ping", "model": "g430 max ", "category": "driver"},
]


def test_catalog_key():
    assert catalog_key(" Ping ", "G430 MAX") == ("ping", "g430 max")
    assert catalog_key(None, None) == ("", "")


class TestSelectNewItems:
    def test_skips_existing_and_repeated(self):
        rows, skipped = select_new_items(ITEMS, {("taylormade", "qi10")})

        assert skipped == 2
        assert rows == [{"brand": "Ping", "model": "G430 Max", "category": "driver", "specs": {}}]

    def test_category_normalized(self):
        rows, _ = select_new_items(ITEMS[1:2], set())
        assert rows[0]["category"] == "driver"


class TestInsertRows:
    ROWS = [{"brand": "B", "model": str(i), "category": "iron"} for i in range(5)]

    def test_batches(self, fake_client, fake_query, test_logger):
        query = fake_client.set_table("equipment", fake_query(data=None))

        inserted, failed = insert_rows(fake_client, self.ROWS, test_logger, batch_size=2)

        assert (inserted, failed) == (5, 0)
        assert [len(args[0]) for args in query.called("insert")] == [2, 2, 1]

    def test_failed_batch_counted(self, fake_client, fake_query, fake_response, api_error, test_logger):
        fake_client.set_table(
            "equipment",
            fake_query(responses=[fake_response(None), api_error("23505", "duplicate"), fake_response(None)]),
        )

        inserted, failed = insert_rows(fake_client, self.ROWS, test_logger, batch_size=2)

        assert (inserted, failed) == (3, 2)


class TestImportCatalog:
    @pytest.fixture
    def catalog_file(self, tmp_path):
        path = tmp_path / "drivers.json"
        path.write_text(json.dumps(ITEMS + [{"brand": "Ping"}]), encoding="utf-8")
        return str(path)

    def test_imports_new_items(self, catalog_file, fake_client, fake_query, fake_response, test_logger):
        query = fake_client.set_table(
            "equipment",
            fake_query(
                responses=[
                    fake_response([{"id": "eq-1", "brand": "TaylorMade", "model": "Qi10"}]),
                    fake_response(None),
                ]
            ),
        )

        counts = import_catalog(fake_client, catalog_file, test_logger)

        assert counts == {"loaded": 3, "invalid": 1, "skipped": 2, "inserted": 1, "failed": 0}
        (batch,) = query.called("insert")[0]
        assert batch[0]["model"] == "G430 Max"

    def test_dry_run(self, catalog_file, fake_client, fake_query, test_logger):
        query = fake_client.set_table("equipment", fake_query(data=[]))

        counts = import_catalog(fake_client, catalog_file, test_logger, dry_run=True)

        assert counts["inserted"] == 0
        assert query.called("insert") == []

    def test_not_a_list(self, tmp_path, fake_client, test_logger):
        path = tmp_path / "bad.json"
        path.write_text("{}", encoding="utf-8")

        with pytest.raises(ValueError):
            import_catalog(fake_client, str(path), test_logger)
