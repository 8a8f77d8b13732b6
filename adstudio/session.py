"""
Studio session — the working state of one user: loaded catalog, filters,
selected product and the current generated ad.

A new selection (or a new catalog) replaces the ad wholesale. Generation
results are checked against the selection when they arrive; an ad for a
product that is no longer selected is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Union

from .catalog import (
    ALL,
    filter_products,
    find_product,
    load_catalog,
    parse_catalog,
    unique_categories,
    unique_vendors,
)
from .errors import CatalogParseError, GenerationError
from .generator import AdGenerator
from .models import GeneratedAd, ImageOptions, Product

logger = logging.getLogger(__name__)


class StudioSession:

    def __init__(self) -> None:
        self.products: List[Product] = []
        self.csv_file_name: Optional[str] = None
        self.error: Optional[str] = None
        self.vendor_filter: str = ALL
        self.category_filter: str = ALL
        self.selected_handle: Optional[str] = None
        self.ad: Optional[GeneratedAd] = None

    # ── Catalog ──────────────────────────────────────────────────────────────

    def load_csv(self, content: str, file_name: str) -> bool:
        """Parse catalog text. On failure the catalog is emptied and `error` set."""
        self.error = None
        try:
            products = parse_catalog(content)
        except Exception as exc:
            self._fail_catalog(exc)
            return False
        self._set_catalog(products, file_name)
        return True

    def load_file(self, path: Union[str, Path]) -> bool:
        self.error = None
        p = Path(path)
        try:
            products = load_catalog(p)
        except CatalogParseError as exc:
            self._fail_catalog(exc)
            return False
        self._set_catalog(products, p.name)
        return True

    def _set_catalog(self, products: List[Product], file_name: str) -> None:
        self.products = products
        self.csv_file_name = file_name
        self.vendor_filter = ALL
        self.category_filter = ALL
        self.selected_handle = None
        self.ad = None
        logger.info("Catalog loaded: %s with %d unique products", file_name, len(products))

    def _fail_catalog(self, exc: Exception) -> None:
        logger.error("Error parsing CSV: %s", exc)
        self.error = f"Failed to parse CSV: {str(exc) or 'Please ensure it is a valid CSV format.'}"
        self.products = []
        self.csv_file_name = None
        self.selected_handle = None
        self.ad = None

    # ── Filters ──────────────────────────────────────────────────────────────

    @property
    def vendors(self) -> List[str]:
        return unique_vendors(self.products)

    @property
    def categories(self) -> List[str]:
        return unique_categories(self.products)

    @property
    def filtered_products(self) -> List[Product]:
        return filter_products(self.products, self.vendor_filter, self.category_filter)

    def set_vendor_filter(self, vendor: str) -> None:
        self.vendor_filter = vendor
        self.selected_handle = None

    def set_category_filter(self, category: str) -> None:
        self.category_filter = category
        self.selected_handle = None

    def clear_filters(self) -> None:
        self.vendor_filter = ALL
        self.category_filter = ALL
        self.selected_handle = None

    # ── Selection ────────────────────────────────────────────────────────────

    @property
    def selected_product(self) -> Optional[Product]:
        return find_product(self.products, self.selected_handle)

    def select_product(self, handle: Optional[str]) -> Optional[Product]:
        """Select a product by handle (None clears). Any current ad is dropped."""
        if handle is not None and find_product(self.products, handle) is None:
            raise KeyError(f"Unknown product handle: {handle}")
        self.selected_handle = handle
        self.ad = None
        return self.selected_product

    # ── Generation ───────────────────────────────────────────────────────────

    def accept_ad(self, ad: GeneratedAd) -> bool:
        """Commit `ad` unless it belongs to a product that is no longer selected."""
        if ad.product_handle != self.selected_handle:
            logger.info(
                "Discarding stale ad for %s (current selection: %s)",
                ad.product_handle, self.selected_handle,
            )
            return False
        self.ad = ad
        self.error = None
        return True

    def clear_ad(self) -> None:
        self.ad = None

    def _require_selection(self) -> Product:
        product = self.selected_product
        if product is None:
            self.error = (
                "No product selected to generate an ad. "
                "Please select a product from the catalog."
            )
            raise GenerationError(self.error)
        return product

    def _record_failure(self, product: Product, exc: Exception) -> None:
        logger.error("Failed to generate ad for %s: %s", product.title, exc)
        if product.handle == self.selected_handle:
            self.error = f'Failed to generate ad for "{product.title}": {str(exc) or "Unknown error"}'

    def generate_ad(
        self,
        generator: AdGenerator,
        options: Optional[ImageOptions] = None,
    ) -> Optional[GeneratedAd]:
        """Generate for the selected product. Returns None if the result went stale."""
        product = self._require_selection()
        self.error = None
        try:
            ad = generator.generate_ad(product, options)
        except GenerationError as exc:
            self._record_failure(product, exc)
            raise
        return ad if self.accept_ad(ad) else None

    async def generate_ad_async(
        self,
        generator: AdGenerator,
        options: Optional[ImageOptions] = None,
    ) -> Optional[GeneratedAd]:
        """Same as generate_ad, with the blocking SDK call in the default executor."""
        product = self._require_selection()
        self.error = None
        loop = asyncio.get_event_loop()
        try:
            ad = await loop.run_in_executor(None, generator.generate_ad, product, options)
        except GenerationError as exc:
            self._record_failure(product, exc)
            raise
        return ad if self.accept_ad(ad) else None
