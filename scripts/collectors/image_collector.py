"""
Equipment Image Collector

This module fills in and re-hosts product images for the equipment catalog.
Every image ends up as a PNG in the ``equipment-images`` storage bucket and
``equipment.image_url`` points at its public URL.

Modes:
- rehost: equipment whose image_url points somewhere other than our storage;
  the external image is downloaded and re-hosted
- search: equipment with no image; candidate product pages are found through
  DuckDuckGo's HTML results and their og:image is used
- json: items from scraped JSON files (lists of equipment objects) in a
  directory; each is matched to a catalog row by brand and model

Processing Pipeline:
1. Select items for the mode
2. Download the source image with a browser User-Agent and fixed timeout
3. Reject images smaller than MIN_IMAGE_SIZE on either side
4. Fit inside TARGET_IMAGE_SIZE without enlarging, encode PNG
5. Upload to <brand-slug>/<model-slug>-<timestamp>.png with upsert
6. Point equipment.image_url at the public URL

Failures are logged per item and counted; the run continues.
"""

from __future__ import annotations

import argparse
import glob
import io
import json
import logging
import os
import re
import sys
import time
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from PIL import Image

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.collectors.equipment_schemas import load_equipment_file
from scripts.database.supabase_admin import describe_api_error, get_service_client
from utils.logging import log_banner, setup_script_logging

MODES = ("rehost", "search", "json")

STORAGE_PATH_MARKER = "/storage/v1/object/"


class ImageTooSmallError(ValueError):
    """Raised when a downloaded image is below the minimum dimensions."""


@dataclass
class CollectionStats:
    downloaded: int = 0
    uploaded: int = 0
    skipped: int = 0
    errors: int = 0
    updated_rows: int = 0
    seen_urls: set = field(default_factory=set, repr=False)


def slugify(text: str) -> str:
    """Lower-case, strip punctuation, and hyphenate ("Qi10 Max!" -> "qi10-max")."""
    slug = re.sub(r"[^\w\s-]", "", (text or "").lower())
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-") or "unknown"


def storage_path(brand: str, model: str, timestamp: int | None = None) -> str:
    """Bucket path for an equipment image: <brand-slug>/<model-slug>-<timestamp>.png."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return f"{slugify(brand)}/{slugify(model)}-{timestamp}.png"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` only matches itself."""
    return re.sub(r"([\\%_])", r"\\\1", value or "")


def is_storage_url(url: str | None) -> bool:
    """True when the URL already points at our Supabase storage."""
    if not url:
        return False
    if config.SUPABASE_URL and url.startswith(config.SUPABASE_URL):
        return True
    return STORAGE_PATH_MARKER in url and "supabase" in url


def process_image(
    content: bytes,
    min_size: int | None = None,
    target_size: int | None = None,
) -> bytes:
    """
    Validate and normalize an image for the catalog.

    Args:
        content: Raw image bytes in any format Pillow reads
        min_size: Minimum width and height (default config.MIN_IMAGE_SIZE)
        target_size: Bounding box side to fit inside (default config.TARGET_IMAGE_SIZE)

    Returns:
        bytes: PNG-encoded image no larger than target_size on either side

    Raises:
        ImageTooSmallError: If either side is below min_size
        PIL.UnidentifiedImageError: If the bytes are not an image
    """
    min_size = config.MIN_IMAGE_SIZE if min_size is None else min_size
    target_size = config.TARGET_IMAGE_SIZE if target_size is None else target_size

    with Image.open(io.BytesIO(content)) as img:
        width, height = img.size
        if width < min_size or height < min_size:
            raise ImageTooSmallError(
                f"Image is {width}x{height}, minimum is {min_size}x{min_size}"
            )

        converted = img.convert("RGBA" if "A" in img.getbands() or img.mode == "P" else "RGB")
        # thumbnail only ever shrinks
        converted.thumbnail((target_size, target_size), Image.LANCZOS)

        buf = io.BytesIO()
        converted.save(buf, format="PNG", optimize=True)
        return buf.getvalue()


def parse_search_results(html: str, limit: int | None = None) -> list[str]:
    """
    Extract result page URLs from a DuckDuckGo HTML results page.

    Result links are redirect URLs carrying the target in the ``uddg`` query
    parameter; direct links are returned unchanged.
    """
    limit = config.IMAGE_SEARCH_RESULTS if limit is None else limit
    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []

    for link in soup.select("a.result__a"):
        href = link.get("href", "")
        if href.startswith("//"):
            href = "https:" + href
        parsed = urlparse(href)
        target = parse_qs(parsed.query).get("uddg", [href])[0]
        if target.startswith(("http://", "https://")) and target not in urls:
            urls.append(target)
        if len(urls) >= limit:
            break

    return urls


def extract_product_image(html: str, page_url: str) -> str | None:
    """Find a product page's primary image from its og:image / twitter:image meta tags."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in (
        'meta[property="og:image"]',
        'meta[property="og:image:url"]',
        'meta[name="twitter:image"]',
        'link[rel="image_src"]',
    ):
        tag = soup.select_one(selector)
        if tag is None:
            continue
        value = tag.get("content") or tag.get("href")
        if value:
            return urljoin(page_url, value.strip())
    return None


def load_json_items(json_dir: str, logger: logging.Logger | None = None) -> list[dict]:
    """
    Load and validate equipment items from every *.json file in a directory.

    Invalid items are logged and dropped. A catalog ``id`` on an item is kept.
    """
    logger = logger or logging.getLogger(__name__)
    items: list[dict] = []

    for path in sorted(glob.glob(os.path.join(json_dir, "*.json"))):
        try:
            file_items, errors = load_equipment_file(path)
        except (ValueError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️  Skipping {path}: {e}")
            continue
        for error in errors:
            logger.warning(f"⚠️  {os.path.basename(path)} {error}")
        items.extend(file_items)

    logger.info(f"Loaded {len(items)} items from {json_dir}")
    return items


class EquipmentImageCollector:
    """
    Collect, normalize and re-host equipment images.

    The collector keeps an in-run set of source URLs so the same image is
    never processed twice, and counts outcomes in ``self.stats``.
    """

    def __init__(
        self,
        client=None,
        session: requests.Session | None = None,
        delay_seconds: float | None = None,
        dry_run: bool = False,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.delay_seconds = (
            config.DEFAULT_DELAY_SECONDS if delay_seconds is None else delay_seconds
        )
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(__name__)
        self.stats = CollectionStats()
        self.bucket = config.EQUIPMENT_IMAGES_BUCKET

        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.BROWSER_USER_AGENT})

    def _client(self):
        if self.client is None:
            self.client = get_service_client()
        return self.client

    # ===============
    # ITEM SELECTION
    # ===============

    def select_rehost_candidates(self, limit: int) -> list[dict]:
        """Equipment with an image_url that is not in our storage yet."""
        response = (
            self._client()
            .table("equipment")
            .select("id, brand, model, category, image_url")
            .not_.is_("image_url", "null")
            .neq("image_url", "")
            .not_.like("image_url", f"%{STORAGE_PATH_MARKER}%")
            .limit(limit)
            .execute()
        )
        return response.data or []

    def select_missing_images(self, limit: int) -> list[dict]:
        """Equipment with no image at all."""
        response = (
            self._client()
            .table("equipment")
            .select("id, brand, model, category, image_url")
            .or_("image_url.is.null,image_url.eq.")
            .limit(limit)
            .execute()
        )
        return response.data or []

    def find_equipment_id(self, brand: str, model: str) -> str | None:
        response = (
            self._client()
            .table("equipment")
            .select("id")
            .ilike("brand", escape_like(brand))
            .ilike("model", escape_like(model))
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0]["id"] if rows else None

    # ========
    # SOURCES
    # ========

    def download(self, url: str) -> bytes:
        response = self.session.get(url, timeout=config.REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.content

    def search_image(self, brand: str, model: str, category: str | None = None) -> str | None:
        """
        Find a product image URL for an item through DuckDuckGo HTML results.

        Each result page is fetched in turn until one exposes an og:image.
        """
        query = " ".join(part for part in (brand, model, category) if part)
        response = self.session.get(
            config.IMAGE_SEARCH_URL,
            params={"q": f"{query} golf"},
            timeout=config.REQUEST_TIMEOUT,
        )
        response.raise_for_status()

        for page_url in parse_search_results(response.text):
            try:
                page = self.session.get(page_url, timeout=config.REQUEST_TIMEOUT)
                page.raise_for_status()
            except requests.RequestException as e:
                self.logger.debug(f"   Skipping result {page_url}: {e}")
                continue
            image_url = extract_product_image(page.text, page_url)
            if image_url:
                return image_url
        return None

    # ==========
    # PIPELINE
    # ==========

    def upload(self, path: str, png_bytes: bytes) -> str:
        """Upload PNG bytes to the equipment bucket and return the public URL."""
        bucket = self._client().storage.from_(self.bucket)
        bucket.upload(
            path,
            png_bytes,
            {"content-type": "image/png", "upsert": "true"},
        )
        return bucket.get_public_url(path)

    def process_item(self, item: dict, mode: str) -> None:
        """Run one item through download, processing, upload and update."""
        brand = item.get("brand") or ""
        model = item.get("model") or ""
        label = f"{brand} {model}".strip()

        try:
            if mode == "search":
                source_url = self.search_image(brand, model, item.get("category"))
                if not source_url:
                    self.logger.warning(f"   ⚠️  No image found for {label}")
                    self.stats.skipped += 1
                    return
            else:
                source_url = item.get("image_url")
                if not source_url or is_storage_url(source_url):
                    self.stats.skipped += 1
                    return

            if source_url in self.stats.seen_urls:
                self.logger.info(f"   ⏭️  Already processed {source_url}")
                self.stats.skipped += 1
                return
            self.stats.seen_urls.add(source_url)

            self.logger.info("   📥 Downloading image...")
            content = self.download(source_url)
            self.stats.downloaded += 1

            try:
                png_bytes = process_image(content)
            except ImageTooSmallError as e:
                self.logger.warning(f"   ⚠️  Skipping {label}: {e}")
                self.stats.skipped += 1
                return

            path = storage_path(brand, model)
            if self.dry_run:
                self.logger.info(f"   📝 [DRY RUN] Would upload {len(png_bytes):,} bytes to {path}")
                return

            self.logger.info(f"   📤 Uploading to {self.bucket}/{path}...")
            public_url = self.upload(path, png_bytes)
            self.stats.uploaded += 1

            equipment_id = item.get("id") or self.find_equipment_id(brand, model)
            if not equipment_id:
                self.logger.warning(f"   ⚠️  No catalog row for {label}; image uploaded only")
                return

            self._client().table("equipment").update({"image_url": public_url}).eq(
                "id", equipment_id
            ).execute()
            self.stats.updated_rows += 1
            self.logger.info("   ✅ Updated database with new image URL")

        except Exception as e:
            self.logger.error(f"   ❌ Error processing {label}: {describe_api_error(e)}")
            self.stats.errors += 1

    def run(self, mode: str, limit: int, json_dir: str | None = None) -> CollectionStats:
        """
        Collect images for up to ``limit`` items in the given mode.

        Returns:
            CollectionStats: Counters for the run
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode '{mode}'. Must be one of: {MODES}")

        if mode == "rehost":
            items = self.select_rehost_candidates(limit)
        elif mode == "search":
            items = self.select_missing_images(limit)
        else:
            items = load_json_items(json_dir or config.SCRAPED_DATA_DIR, self.logger)[:limit]

        self.logger.info(f"Found {len(items)} equipment items to process")

        for index, item in enumerate(items, 1):
            self.logger.info(
                f"Processing {index}/{len(items)}: {item.get('brand')} {item.get('model')}..."
            )
            self.process_item(item, mode)
            if index < len(items) and self.delay_seconds:
                time.sleep(self.delay_seconds)

        return self.stats


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Collect and re-host equipment images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --mode rehost --limit 50          # Move external images into storage
  %(prog)s --mode search --limit 10          # Find images for items without one
  %(prog)s --mode json --json-dir scraped-data
  %(prog)s --mode search --dry-run           # Download and process, no uploads
        """,
    )
    parser.add_argument("--mode", choices=MODES, default="rehost")
    parser.add_argument("--limit", type=int, default=100, metavar="N")
    parser.add_argument(
        "--json-dir",
        default=config.SCRAPED_DATA_DIR,
        help=f"Directory of scraped JSON files (default: {config.SCRAPED_DATA_DIR})",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=config.DEFAULT_DELAY_SECONDS,
        metavar="SECONDS",
        help=f"Delay between items (default: {config.DEFAULT_DELAY_SECONDS})",
    )
    parser.add_argument("--dry-run", action="store_true", help="Do not upload or update")
    args = parser.parse_args()

    logger = setup_script_logging("image_collector")
    log_banner(logger, f"📸 Equipment image collection ({args.mode})")

    try:
        client = get_service_client()
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        return 1

    collector = EquipmentImageCollector(
        client, delay_seconds=args.delay, dry_run=args.dry_run, logger=logger
    )

    try:
        stats = collector.run(args.mode, args.limit, args.json_dir)
    except Exception as e:
        logger.error(f"❌ Fatal error: {describe_api_error(e)}")
        return 1

    log_banner(logger, "📊 Download & Upload Summary")
    logger.info(f"✅ Downloaded: {stats.downloaded} images")
    logger.info(f"☁️  Uploaded: {stats.uploaded} images")
    logger.info(f"📝 Rows updated: {stats.updated_rows}")
    logger.info(f"⏭️  Skipped: {stats.skipped}")
    logger.info(f"❌ Errors: {stats.errors}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
