"""
Data model — catalog products, generated ads and the compositing working set.

  ProductVariant    — one sellable SKU row, immutable once parsed
  Product           — one catalog entry keyed by handle, owns its variants
  GeneratedAd       — AI marketing image + caption for one product
  CompositingState  — editor dimensions + logo settings
  AdCopy            — structured caption response (pydantic, used as schema)
  ImageOptions      — free-text modifiers for the image prompt
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

LogoPosition = Literal["top_left", "top_right", "bottom_left", "bottom_right"]
LOGO_POSITIONS = ("top_left", "top_right", "bottom_left", "bottom_right")

Wearer = Literal["none", "wearing", "held"]
AspectRatio = Literal["1:1", "3:4", "4:3", "9:16", "16:9"]
ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

LOGO_SCALE_MIN = 0.05
LOGO_SCALE_MAX = 0.5
DEFAULT_LOGO_SCALE = 0.1
DEFAULT_LOGO_POSITION: LogoPosition = "bottom_right"

_TAG_RE = re.compile(r"<[^>]*>?")


# ── Catalog ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProductVariant:
    option1_value: str                      # e.g. shoe size
    sku: str
    grams: float = 0.0
    inventory_qty: int = 0
    price: float = 0.0
    compare_at_price: Optional[float] = None
    image: Optional[str] = None             # variant-specific image URL


@dataclass
class Product:
    handle: str
    title: str
    body_html: str = ""
    vendor: str = ""
    product_category: str = ""
    product_type: str = ""
    tags: List[str] = field(default_factory=list)
    published: bool = False
    image_src: str = ""                     # main product image
    seo_title: str = ""
    seo_description: str = ""
    variants: List[ProductVariant] = field(default_factory=list)
    color: Optional[str] = None
    material: Optional[str] = None
    gender: Optional[str] = None

    def plain_description(self, limit: int = 100) -> str:
        """body_html with tags stripped, cut to `limit` characters."""
        return _TAG_RE.sub("", self.body_html or "")[:limit]


# ── Generation ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GeneratedAd:
    product_handle: str
    product_title: str
    marketing_image: str                    # data URL
    caption: str
    hashtags: List[str] = field(default_factory=list)

    def download_filename(self, prefix: str = "ad", ext: str = "png") -> str:
        return f"{prefix}-{self.product_handle}.{ext.lower().lstrip('.')}"


class AdCopy(BaseModel):
    caption: str = Field(description="Short catchy caption, under 12 words")
    hashtags: List[str] = Field(description="3-5 trending hashtags")


@dataclass
class ImageOptions:
    """Optional modifiers for the marketing image prompt. Empty = model decides."""
    background: str = ""
    environment: str = ""
    mood: str = ""
    composition: str = ""
    angle: str = ""
    custom_prompt: str = ""
    wearer: Wearer = "none"
    aspect_ratio: AspectRatio = "1:1"


# ── Compositing ───────────────────────────────────────────────────────────────

@dataclass
class CompositingState:
    width: int
    height: int
    show_logo: bool = False
    logo_position: LogoPosition = DEFAULT_LOGO_POSITION
    logo_scale: float = DEFAULT_LOGO_SCALE

    def __post_init__(self) -> None:
        validate_logo_position(self.logo_position)
        validate_logo_scale(self.logo_scale)
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Canvas size must be positive, got {self.width}x{self.height}")

    @classmethod
    def initial(cls, width: int, height: int) -> "CompositingState":
        return cls(width=width, height=height)

    def updated(self, **changes) -> "CompositingState":
        """Return a copy with `changes` applied (validated again)."""
        return replace(self, **changes)


def validate_logo_scale(scale: float) -> float:
    if not LOGO_SCALE_MIN <= scale <= LOGO_SCALE_MAX:
        raise ValueError(
            f"logo_scale must be within [{LOGO_SCALE_MIN}, {LOGO_SCALE_MAX}], got {scale}"
        )
    return scale


def validate_logo_position(position: str) -> str:
    if position not in LOGO_POSITIONS:
        raise ValueError(f"Unknown logo position {position!r}; expected one of {LOGO_POSITIONS}")
    return position
