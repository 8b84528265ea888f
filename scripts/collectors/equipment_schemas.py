"""Pydantic schemas for validating equipment, price and waitlist rows before writing."""

import json
import re

from pydantic import BaseModel, Field, ValidationError, field_validator

CANONICAL_CATEGORIES = {
    "driver",
    "fairway_wood",
    "hybrid",
    "iron",
    "wedge",
    "putter",
    "balls",
    "bags",
    "gloves",
    "rangefinders",
    "gps_devices",
    "shaft",
    "grip",
    "accessories",
}

CATEGORY_ALIASES = {
    "drivers": "driver",
    "fairway": "fairway_wood",
    "fairways": "fairway_wood",
    "fairway_woods": "fairway_wood",
    "woods": "fairway_wood",
    "hybrids": "hybrid",
    "irons": "iron",
    "wedges": "wedge",
    "putters": "putter",
    "ball": "balls",
    "golf_ball": "balls",
    "golf_balls": "balls",
    "bag": "bags",
    "glove": "gloves",
    "rangefinder": "rangefinders",
    "gps": "gps_devices",
    "gps_device": "gps_devices",
    "shafts": "shaft",
    "grips": "grip",
    "accessory": "accessories",
}

WAITLIST_STATUSES = {"pending", "approved", "rejected"}

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_category(value: str) -> str:
    """Lower-case, snake_case and de-alias a category name ("Fairway Woods" -> "fairway_wood")."""
    key = re.sub(r"[\s\-]+", "_", value.strip().lower())
    return CATEGORY_ALIASES.get(key, key)


class EquipmentItem(BaseModel):
    """Schema for an equipment catalog row built from scraped or imported data.

    Brand and model are required and stripped; the category is normalized to
    the app's canonical names so imports do not introduce naming drift.
    """

    brand: str = Field(..., min_length=1, description="Manufacturer name")
    model: str = Field(..., min_length=1, description="Model name")
    category: str = Field(..., description="Canonical equipment category")
    msrp: float | None = Field(default=None, ge=0, description="List price in USD")
    image_url: str | None = Field(default=None, description="Product image URL")
    description: str | None = Field(default=None, description="Marketing copy")
    specs: dict = Field(default_factory=dict, description="Free-form specifications")
    source_url: str | None = Field(default=None, description="Page the item came from")

    @field_validator("brand", "model", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Category is required")
        category = normalize_category(v)
        if category not in CANONICAL_CATEGORIES:
            raise ValueError(
                f"Unknown category '{v}'. Must be one of: {sorted(CANONICAL_CATEGORIES)}"
            )
        return category

    @field_validator("image_url", "source_url")
    @classmethod
    def validate_http_url(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must be http(s): '{v}'")
        return v

    def to_row(self) -> dict:
        """Row for insertion into the equipment table."""
        return self.model_dump(exclude={"source_url"}, exclude_none=True)


class PriceEntry(BaseModel):
    """Schema for one retailer price for an equipment item."""

    retailer: str = Field(..., min_length=1, description="Retailer display name")
    price: float = Field(..., gt=0, description="Price in USD")
    url: str = Field(..., description="Product page URL")
    in_stock: bool = Field(default=True, description="Whether the retailer has stock")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Price URL must be http(s): '{v}'")
        return v


class WaitlistApplication(BaseModel):
    """Schema for a waitlist_applications row."""

    email: str = Field(..., description="Applicant email, stored lower-case")
    display_name: str = Field(..., min_length=1, max_length=50)
    city_region: str = Field(default="")
    status: str = Field(default="pending")
    score: int = Field(default=0, ge=0, le=100)
    answers: dict = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        email = v.strip().lower()
        if not _EMAIL_PATTERN.match(email):
            raise ValueError(f"Invalid email address '{v}'")
        return email

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in WAITLIST_STATUSES:
            raise ValueError(
                f"Invalid status '{v}'. Must be one of: {sorted(WAITLIST_STATUSES)}"
            )
        return v


def load_equipment_file(path: str) -> tuple[list[dict], list[str]]:
    """Validate every item in a JSON file holding a list of equipment objects.

    Args:
        path: JSON file path

    Returns:
        (valid items as dicts, error messages for rejected items). A catalog
        ``id`` present on an input object is carried through.

    Raises:
        ValueError: If the file does not contain a JSON list
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of equipment items")

    items: list[dict] = []
    errors: list[str] = []
    for index, raw in enumerate(data):
        try:
            item = EquipmentItem.model_validate(raw).model_dump()
        except ValidationError as e:
            errors.append(f"item {index}: {e.error_count()} validation errors")
            continue
        if isinstance(raw, dict) and raw.get("id"):
            item["id"] = raw["id"]
        items.append(item)
    return items, errors
