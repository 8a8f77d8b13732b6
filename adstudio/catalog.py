"""
Catalog parser — reads a Shopify-style product export (CSV) into a list of
Product objects with nested variants.

FORMAT:
  first line   ← header row, plain comma-separated names (no quoting)
  other lines  ← one variant per row; fields may be "double-quoted" to hold
                 literal commas

  Rows sharing a Handle are one product: the first row sets the product
  fields, every row contributes a variant. Only published products with an
  image (row image, or first variant image as fallback) are returned.

RECOGNISED COLUMNS:
  Handle, Title, Body (HTML), Vendor, Product Category, Type, Tags,
  Published, Image Src, SEO Title, SEO Description, Option1 Value,
  Variant SKU, Variant Grams, Variant Inventory Qty, Variant Price,
  Variant Compare At Price, Variant Image
  + Color / Fabric / gender, metafield-qualified or plain-named
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import CatalogParseError, MissingColumnError
from .models import Product, ProductVariant

logger = logging.getLogger(__name__)

ALL = "All"


# ── Column descriptors ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ColumnSpec:
    name: str
    required: bool = False


COLUMNS: Tuple[ColumnSpec, ...] = (
    ColumnSpec("Handle", required=True),
    ColumnSpec("Title", required=True),
    ColumnSpec("Published", required=True),
    ColumnSpec("Body (HTML)"),
    ColumnSpec("Vendor"),
    ColumnSpec("Product Category"),
    ColumnSpec("Type"),
    ColumnSpec("Tags"),
    ColumnSpec("Image Src"),
    ColumnSpec("SEO Title"),
    ColumnSpec("SEO Description"),
    ColumnSpec("Option1 Value"),
    ColumnSpec("Variant SKU"),
    ColumnSpec("Variant Grams"),
    ColumnSpec("Variant Inventory Qty"),
    ColumnSpec("Variant Price"),
    ColumnSpec("Variant Compare At Price"),
    ColumnSpec("Variant Image"),
    ColumnSpec("Color (product.metafields.shopify.color-pattern)"),
    ColumnSpec("Color"),
    ColumnSpec("Fabric (product.metafields.shopify.fabric)"),
    ColumnSpec("Fabric"),
    ColumnSpec("Target gender (product.metafields.shopify.target-gender)"),
    ColumnSpec("Google Shopping / Gender"),
)

# (metafield column, plain fallback column)
COLOR_COLUMNS = ("Color (product.metafields.shopify.color-pattern)", "Color")
FABRIC_COLUMNS = ("Fabric (product.metafields.shopify.fabric)", "Fabric")
GENDER_COLUMNS = (
    "Target gender (product.metafields.shopify.target-gender)",
    "Google Shopping / Gender",
)

_INT_RE = re.compile(r"^\s*[+-]?\d+")
_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def resolve_columns(headers: Sequence[str]) -> Dict[str, int]:
    """
    Map each recognised column name to its index in the header row.

    Raises MissingColumnError if a required column is absent. Unknown
    headers are ignored; on duplicate names the last one wins.
    """
    positions: Dict[str, int] = {}
    for index, name in enumerate(headers):
        positions[name] = index

    missing = [c.name for c in COLUMNS if c.required and c.name not in positions]
    if missing:
        raise MissingColumnError(missing)

    return {c.name: positions[c.name] for c in COLUMNS if c.name in positions}


# ── Line / value helpers ──────────────────────────────────────────────────────

def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on commas, honouring double quotes.

    A quote toggles the quoted state and is not kept; commas inside quotes
    are literal. Every field is trimmed.
    """
    fields: List[str] = []
    in_quote = False
    current: List[str] = []

    for char in line:
        if char == '"':
            in_quote = not in_quote
        elif char == "," and not in_quote:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def _parse_int(text: str) -> int:
    m = _INT_RE.match(text or "")
    return int(m.group()) if m else 0


def _parse_float(text: str) -> float:
    m = _FLOAT_RE.match(text or "")
    return float(m.group()) if m else 0.0


def _split_tags(text: str) -> List[str]:
    return [tag.strip() for tag in (text or "").split(",") if tag.strip()]


def _first_filled(row: Dict[str, str], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = row.get(name, "")
        if value:
            return value
    return None


def _row_mapping(values: List[str], columns: Dict[str, int]) -> Dict[str, str]:
    return {
        name: (values[index] if index < len(values) else "")
        for name, index in columns.items()
    }


def _variant_from_row(row: Dict[str, str]) -> ProductVariant:
    compare_at = _parse_float(row.get("Variant Compare At Price", ""))
    return ProductVariant(
        option1_value=row.get("Option1 Value", ""),
        sku=row.get("Variant SKU", ""),
        grams=_parse_float(row.get("Variant Grams", "")),
        inventory_qty=max(0, _parse_int(row.get("Variant Inventory Qty", ""))),
        price=max(0.0, _parse_float(row.get("Variant Price", ""))),
        compare_at_price=compare_at or None,
        image=row.get("Variant Image", "") or None,
    )


def _product_from_row(handle: str, row: Dict[str, str]) -> Product:
    return Product(
        handle=handle,
        title=row.get("Title", ""),
        body_html=row.get("Body (HTML)", ""),
        vendor=row.get("Vendor", ""),
        product_category=row.get("Product Category", ""),
        product_type=row.get("Type", ""),
        tags=_split_tags(row.get("Tags", "")),
        published=row.get("Published", "").lower() == "true",
        image_src=row.get("Image Src", ""),
        seo_title=row.get("SEO Title", ""),
        seo_description=row.get("SEO Description", ""),
        color=_first_filled(row, COLOR_COLUMNS),
        material=_first_filled(row, FABRIC_COLUMNS),
        gender=_first_filled(row, GENDER_COLUMNS),
    )


# ── Parser ────────────────────────────────────────────────────────────────────

def parse_catalog(raw_text: str) -> List[Product]:
    """
    Parse catalog CSV text into published, image-bearing products.

    Products come back in the order their handle first appears. Returns an
    empty list when there is no data row.
    """
    lines = (raw_text or "").lstrip("\ufeff").strip().split("\n")
    if len(lines) < 2:
        return []

    headers = [h.strip() for h in lines[0].split(",")]
    columns = resolve_columns(headers)

    products: Dict[str, Product] = {}
    skipped = 0

    for line in lines[1:]:
        values = split_csv_line(line)
        if not values:
            continue

        row = _row_mapping(values, columns)
        handle = row.get("Handle", "")
        if not handle:
            skipped += 1
            continue

        product = products.get(handle)
        if product is None:
            product = _product_from_row(handle, row)
            products[handle] = product

        variant = _variant_from_row(row)
        product.variants.append(variant)

        if not product.image_src and variant.image:
            product.image_src = variant.image

    kept = [p for p in products.values() if p.published and p.image_src]
    logger.debug(
        "Parsed %d handle(s), kept %d, skipped %d row(s) without handle",
        len(products), len(kept), skipped,
    )
    return kept


def load_catalog(path: Union[str, Path]) -> List[Product]:
    """Read and parse a catalog file. Failures surface as CatalogParseError."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise CatalogParseError(f"Could not read {p.name}: {exc}") from exc

    try:
        return parse_catalog(text)
    except CatalogParseError:
        raise
    except Exception as exc:
        raise CatalogParseError(
            str(exc) or "Please ensure it is a valid CSV format."
        ) from exc


# ── Catalog queries ───────────────────────────────────────────────────────────

def unique_vendors(products: Sequence[Product]) -> List[str]:
    """Sorted unique vendors, with the 'All' choice first."""
    return [ALL] + sorted({p.vendor for p in products})


def unique_categories(products: Sequence[Product]) -> List[str]:
    """Sorted unique product categories, with the 'All' choice first."""
    return [ALL] + sorted({p.product_category for p in products})


def filter_products(
    products: Sequence[Product],
    vendor: str = ALL,
    category: str = ALL,
) -> List[Product]:
    return [
        p for p in products
        if (vendor == ALL or p.vendor == vendor)
        and (category == ALL or p.product_category == category)
    ]


def find_product(products: Sequence[Product], handle: Optional[str]) -> Optional[Product]:
    if not handle:
        return None
    return next((p for p in products if p.handle == handle), None)
