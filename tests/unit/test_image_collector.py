"""
Unit tests for image_collector.py module.

Images are generated in memory with Pillow; HTTP goes through a mocked
requests session and storage through the FakeClient's MagicMock storage.
"""

import io
import json
from unittest.mock import Mock

import pytest
import requests
from PIL import Image

from scripts.collectors.image_collector import (
    EquipmentImageCollector,
    ImageTooSmallError,
    escape_like,
    extract_product_image,
    is_storage_url,
    load_json_items,
    parse_search_results,
    process_image,
    slugify,
    storage_path,
)

STORAGE_URL = "https://abc.supabase.co/storage/v1/object/public/equipment-images/ping/g430.png"


def make_image_bytes(width, height, mode="RGB", fmt="JPEG"):
    buf = io.BytesIO()
    Image.new(mode, (width, height), color=(200, 30, 30) if mode == "RGB" else (200, 30, 30, 128)).save(
        buf, format=fmt
    )
    return buf.getvalue()


class TestHelpers:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("TaylorMade", "taylormade"),
            ("Qi10 Max!", "qi10-max"),
            ("Special Select  Newport 2+", "special-select-newport-2"),
            ("Odyssey_Ai-One", "odyssey-ai-one"),
            ("!!!", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_storage_path(self):
        assert storage_path("TaylorMade", "Qi10 Max", 1700000000000) == (
            "taylormade/qi10-max-1700000000000.png"
        )

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("G430 Max", "G430 Max"),
            ("100% Spin", r"100\% Spin"),
            ("Ai_One", r"Ai\_One"),
            (r"back\slash", r"back\\slash"),
            (None, ""),
        ],
    )
    def test_escape_like(self, text, expected):
        assert escape_like(text) == expected

    def test_is_storage_url(self):
        assert is_storage_url(STORAGE_URL)
        assert not is_storage_url("https://cdn.example.com/qi10.jpg")
        assert not is_storage_url(None)


class TestProcessImage:
    def test_large_image_fits_target(self):
        png = process_image(make_image_bytes(2000, 1000), min_size=400, target_size=1000)

        with Image.open(io.BytesIO(png)) as img:
            assert img.format == "PNG"
            assert img.size == (1000, 500)
            assert img.mode == "RGB"

    def test_mid_size_image_not_enlarged(self):
        png = process_image(make_image_bytes(600, 500), min_size=400, target_size=1000)

        with Image.open(io.BytesIO(png)) as img:
            assert img.size == (600, 500)

    def test_transparency_kept(self):
        png = process_image(
            make_image_bytes(500, 500, mode="RGBA", fmt="PNG"), min_size=400, target_size=1000
        )

        with Image.open(io.BytesIO(png)) as img:
            assert img.mode == "RGBA"

    def test_too_small_rejected(self):
        with pytest.raises(ImageTooSmallError, match="399x800"):
            process_image(make_image_bytes(399, 800), min_size=400, target_size=1000)

    def test_not_an_image(self):
        with pytest.raises(Exception):
            process_image(b"<html>nope</html>")


class TestHtmlParsing:
    def test_parse_search_results_decodes_redirects(self):
        html = """
        <div class="result"><a class="result__a"
           href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.ping.com%2Fg430&amp;rut=x">Ping</a></div>
        <div class="result"><a class="result__a" href="https://www.golfgalaxy.com/p/g430">GG</a></div>
        <div class="result"><a class="result__a"
           href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.ping.com%2Fg430">Dup</a></div>
        <div class="result"><a class="other" href="https://ignored.example.com">x</a></div>
        """
        assert parse_search_results(html, limit=5) == [
            "https://www.ping.com/g430",
            "https://www.golfgalaxy.com/p/g430",
        ]

    def test_parse_search_results_limit(self):
        html = "".join(
            f'<a class="result__a" href="https://site{i}.example.com/">r</a>' for i in range(5)
        )
        assert len(parse_search_results(html, limit=2)) == 2

    def test_extract_og_image(self):
        html = '<html><head><meta property="og:image" content="/img/g430.jpg"></head></html>'
        assert extract_product_image(html, "https://www.ping.com/p/g430") == (
            "https://www.ping.com/img/g430.jpg"
        )

    def test_extract_twitter_image_fallback(self):
        html = '<meta name="twitter:image" content="https://cdn.example.com/a.png">'
        assert extract_product_image(html, "https://x.com") == "https://cdn.example.com/a.png"

    def test_extract_none(self):
        assert extract_product_image("<html></html>", "https://x.com") is None


def test_load_json_items_skips_bad_files(tmp_path, test_logger):
    (tmp_path / "a.json").write_text(
        json.dumps(
            [
                {"brand": "Ping", "model": "G430", "category": "driver", "image_url": "https://x.com/a.jpg"},
                {"brand": "Ping"},
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "b.json").write_text(json.dumps({"not": "a list"}), encoding="utf-8")
    (tmp_path / "c.json").write_text("{broken", encoding="utf-8")

    items = load_json_items(str(tmp_path), test_logger)

    assert [item["model"] for item in items] == ["G430"]


class TestEquipmentImageCollector:
    @pytest.fixture
    def session(self):
        return Mock(spec=requests.Session, headers={})

    def _response(self, content=b"", text=""):
        response = Mock()
        response.content = content
        response.text = text
        response.raise_for_status.return_value = None
        return response

    def test_rehost_uploads_and_updates(self, fake_client, session, test_logger):
        session.get.return_value = self._response(content=make_image_bytes(1200, 800))
        bucket = fake_client.storage.from_.return_value
        bucket.get_public_url.return_value = STORAGE_URL
        collector = EquipmentImageCollector(fake_client, session, delay_seconds=0, logger=test_logger)

        item = {"id": "eq-1", "brand": "Ping", "model": "G430", "image_url": "https://cdn.example.com/g430.jpg"}
        collector.process_item(item, "rehost")

        fake_client.storage.from_.assert_called_with("equipment-images")
        path, data, options = bucket.upload.call_args.args
        assert path.startswith("ping/g430-") and path.endswith(".png")
        assert options == {"content-type": "image/png", "upsert": "true"}
        update = fake_client.tables["equipment"][0]
        assert update.called("update") == [({"image_url": STORAGE_URL},)]
        assert update.called("eq") == [("id", "eq-1")]
        assert collector.stats.uploaded == 1
        assert collector.stats.updated_rows == 1

    def test_storage_urls_skipped(self, fake_client, session, test_logger):
        collector = EquipmentImageCollector(fake_client, session, delay_seconds=0, logger=test_logger)

        collector.process_item({"id": "eq-1", "image_url": STORAGE_URL}, "rehost")

        session.get.assert_not_called()
        assert collector.stats.skipped == 1

    def test_same_source_processed_once(self, fake_client, session, test_logger):
        session.get.return_value = self._response(content=make_image_bytes(800, 800))
        collector = EquipmentImageCollector(
            fake_client, session, delay_seconds=0, dry_run=True, logger=test_logger
        )
        item = {"id": "eq-1", "brand": "A", "model": "B", "image_url": "https://x.com/a.jpg"}

        collector.process_item(item, "rehost")
        collector.process_item(dict(item, id="eq-2"), "rehost")

        assert session.get.call_count == 1
        assert collector.stats.downloaded == 1
        assert collector.stats.skipped == 1

    def test_dry_run_does_not_upload(self, fake_client, session, test_logger):
        session.get.return_value = self._response(content=make_image_bytes(800, 800))
        collector = EquipmentImageCollector(
            fake_client, session, delay_seconds=0, dry_run=True, logger=test_logger
        )

        collector.process_item({"id": "eq-1", "brand": "A", "model": "B", "image_url": "https://x.com/a.jpg"}, "rehost")

        fake_client.storage.from_.assert_not_called()
        assert collector.stats.downloaded == 1
        assert collector.stats.uploaded == 0

    def test_small_image_skipped(self, fake_client, session, test_logger):
        session.get.return_value = self._response(content=make_image_bytes(200, 200))
        collector = EquipmentImageCollector(fake_client, session, delay_seconds=0, logger=test_logger)

        collector.process_item({"id": "eq-1", "brand": "A", "model": "B", "image_url": "https://x.com/a.jpg"}, "rehost")

        assert collector.stats.skipped == 1
        assert collector.stats.errors == 0

    def test_download_error_counted(self, fake_client, session, test_logger):
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        collector = EquipmentImageCollector(fake_client, session, delay_seconds=0, logger=test_logger)

        collector.process_item({"id": "eq-1", "brand": "A", "model": "B", "image_url": "https://x.com/a.jpg"}, "rehost")

        assert collector.stats.errors == 1

    def test_search_mode_follows_results(self, fake_client, session, test_logger):
        results_html = '<a class="result__a" href="https://www.ping.com/g430">Ping</a>'
        product_html = '<meta property="og:image" content="https://www.ping.com/g430.jpg">'
        session.get.side_effect = [
            self._response(text=results_html),
            self._response(text=product_html),
        ]
        collector = EquipmentImageCollector(fake_client, session, delay_seconds=0, logger=test_logger)

        assert collector.search_image("Ping", "G430", "driver") == "https://www.ping.com/g430.jpg"
        assert session.get.call_args_list[0].kwargs["params"] == {"q": "Ping G430 driver golf"}

    def test_find_equipment_id_matches_names_literally(
        self, fake_client, fake_query, session, test_logger
    ):
        query = fake_client.set_table("equipment", fake_query(data=[{"id": "eq-9"}]))
        collector = EquipmentImageCollector(fake_client, session, logger=test_logger)

        assert collector.find_equipment_id("Scotty_Cameron", "Phantom 100%") == "eq-9"
        assert query.called("ilike") == [
            ("brand", r"Scotty\_Cameron"),
            ("model", r"Phantom 100\%"),
        ]

    def test_run_rejects_unknown_mode(self, fake_client, session, test_logger):
        collector = EquipmentImageCollector(fake_client, session, logger=test_logger)
        with pytest.raises(ValueError, match="Unknown mode"):
            collector.run("scrape", 10)

    def test_run_rehost_selects_external_images(self, fake_client, fake_query, session, test_logger):
        query = fake_client.set_table("equipment", fake_query(data=[]))
        collector = EquipmentImageCollector(fake_client, session, delay_seconds=0, logger=test_logger)

        stats = collector.run("rehost", 25)

        assert stats.downloaded == 0
        assert query.called("limit") == [(25,)]
        assert ("image_url", "%/storage/v1/object/%") in query.called("like")
