"""
Product Ad Studio — Main Pipeline

Usage:
  python -m adstudio.main catalog.csv --list
  python -m adstudio.main catalog.csv --vendor Nike --list
  python -m adstudio.main catalog.csv --product shoe-1 --mood energetic
  python -m adstudio.main catalog.csv --product shoe-1 --logo logo.png --width 1080
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from .compositor import AdEditor
from .config import StudioConfig
from .errors import StudioError
from .generator import AdGenerator
from .models import ASPECT_RATIOS, LOGO_POSITIONS, GeneratedAd, ImageOptions, Product
from .session import StudioSession

console = Console()

OUTPUTS_ROOT = Path("outputs")


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Product Ad Studio — catalog CSV to AI marketing ad"
    )
    parser.add_argument("catalog", help="Path to the product catalog CSV export")
    parser.add_argument("--list", action="store_true", help="List matching products and exit")
    parser.add_argument("--vendor", default="All", help="Filter by vendor")
    parser.add_argument("--category", default="All", help="Filter by product category")
    parser.add_argument("--product", default=None, help="Handle of the product to advertise")

    gen = parser.add_argument_group("generation")
    gen.add_argument("--background", default="", help="e.g. seamless white studio")
    gen.add_argument("--environment", default="", help="e.g. outdoor sunny day")
    gen.add_argument("--mood", default="", help="e.g. energetic, calm, vintage")
    gen.add_argument("--composition", default="", help="e.g. centered and minimalistic")
    gen.add_argument("--angle", default="", help="e.g. low-angle shot")
    gen.add_argument("--wearer", choices=["none", "wearing", "held"], default="none")
    gen.add_argument("--prompt", default="", help="Additional custom instructions")
    gen.add_argument("--aspect-ratio", choices=ASPECT_RATIOS, default="1:1")

    edit = parser.add_argument_group("editing")
    edit.add_argument("--logo", default=None, help="Logo image (path, URL or data URL)")
    edit.add_argument("--logo-knockout", action="store_true",
                      help="Make the logo's white background transparent")
    edit.add_argument("--logo-position", choices=LOGO_POSITIONS, default="bottom_right")
    edit.add_argument("--logo-scale", type=float, default=0.1,
                      help="Logo size as a fraction of its own size (0.05-0.5)")
    edit.add_argument("--width", type=int, default=None)
    edit.add_argument("--height", type=int, default=None)
    edit.add_argument("--no-aspect-lock", action="store_true",
                      help="Use --width/--height verbatim (allows distortion)")
    edit.add_argument("--format", choices=["png", "jpeg", "webp"], default="png")
    edit.add_argument("--quality", type=float, default=None,
                      help="0-1, lossy formats only")

    parser.add_argument(
        "--output",
        default=None,
        help="Output directory (default: outputs/<timestamp>)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ── Output helpers ────────────────────────────────────────────────────────────

def display_products(products: List[Product], selected: Optional[str] = None) -> None:
    table = Table(title=f"{len(products)} product(s)")
    table.add_column("Handle", style="cyan")
    table.add_column("Title")
    table.add_column("Vendor")
    table.add_column("Category")
    table.add_column("Variants", justify="right")
    table.add_column("Price", justify="right")

    for p in products:
        prices = [v.price for v in p.variants]
        price = f"{min(prices):.2f}" if prices else "-"
        if prices and max(prices) != min(prices):
            price += f"-{max(prices):.2f}"
        marker = "→ " if p.handle == selected else ""
        table.add_row(
            marker + p.handle, p.title, p.vendor, p.product_category,
            str(len(p.variants)), price,
        )
    console.print(table)


def save_ad_json(ad: GeneratedAd, image_path: Path, output_dir: Path) -> Path:
    """Caption + hashtags next to the exported image."""
    json_path = output_dir / "ad.json"
    json_path.write_text(
        json.dumps(
            {
                "product_handle": ad.product_handle,
                "product_title": ad.product_title,
                "caption": ad.caption,
                "hashtags": ad.hashtags,
                "image": image_path.name,
            },
            indent=2,
        ),
        encoding="utf-8",
    )
    return json_path


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


# ── Main ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    _setup_logging(args.verbose)
    pipeline_start = time.time()

    console.print(Rule("[bold magenta]Product Ad Studio[/bold magenta]"))

    # ── Step 1: Catalog ──────────────────────────────────────────────────────
    session = StudioSession()
    if not session.load_file(args.catalog):
        _fail(session.error or "Failed to parse CSV")
    console.print(
        f"  [green]✓[/green] Catalog loaded: [bold]{session.csv_file_name}[/bold] "
        f"with {len(session.products)} unique products"
    )

    session.set_vendor_filter(args.vendor)
    session.set_category_filter(args.category)
    products = session.filtered_products

    if args.list or not args.product:
        display_products(products)
        if not args.product:
            console.print("  [dim]Pick one with --product HANDLE to generate an ad.[/dim]")
        return

    try:
        product = session.select_product(args.product)
    except KeyError:
        _fail(f"No published product with handle {args.product!r} in {session.csv_file_name}")
    console.print(f"  Selected: [bold]{product.title}[/bold] ({product.handle})")

    # ── Step 2: Generate ad ──────────────────────────────────────────────────
    try:
        config = StudioConfig.from_env().validate()
        generator = AdGenerator(config)
    except StudioError as exc:
        _fail(str(exc))

    options = ImageOptions(
        background=args.background,
        environment=args.environment,
        mood=args.mood,
        composition=args.composition,
        angle=args.angle,
        custom_prompt=args.prompt,
        wearer=args.wearer,
        aspect_ratio=args.aspect_ratio,
    )

    console.print("\n[bold]Step 1/2 — Generating ad (Gemini)[/bold]")
    t0 = time.time()
    try:
        ad = session.generate_ad(generator, options)
    except StudioError:
        _fail(session.error or "Ad generation failed")
    if ad is None:
        _fail("Selection changed while generating; result discarded")
    console.print(f"  [green]✓ Done in {time.time() - t0:.1f}s[/green]")

    # ── Step 3: Edit + export ────────────────────────────────────────────────
    console.print("\n[bold]Step 2/2 — Compositing (Pillow)[/bold]")
    try:
        editor = AdEditor.from_ad(
            ad,
            logo_source=args.logo,
            knockout_logo=args.logo_knockout,
            timeout=config.fetch_timeout,
        )
        if args.width or args.height:
            editor.resize(args.width, args.height, keep_aspect=not args.no_aspect_lock)
        if args.logo:
            editor.set_logo(show=True, position=args.logo_position, scale=args.logo_scale)
    except (StudioError, ValueError) as exc:
        _fail(str(exc))

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output) if args.output else OUTPUTS_ROOT / timestamp
    output_dir.mkdir(parents=True, exist_ok=True)

    image_path = editor.save(
        output_dir / ad.download_filename(config.filename_prefix, args.format),
        fmt=args.format,
        quality=args.quality,
    )
    json_path = save_ad_json(ad, image_path, output_dir)

    console.print(
        Panel(
            f"[italic]\"{ad.caption}\"[/italic]\n"
            f"{' '.join(ad.hashtags)}\n\n"
            f"Image: [bold]{image_path}[/bold] ({editor.state.width}×{editor.state.height})\n"
            f"Copy:  [bold]{json_path}[/bold]\n"
            f"Total: {time.time() - pipeline_start:.0f}s",
            title=f"[bold green]{ad.product_title}[/bold green]",
            border_style="green",
        )
    )


if __name__ == "__main__":
    main()
