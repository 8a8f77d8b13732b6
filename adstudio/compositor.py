"""
Compositor — post-processes the generated marketing image with Pillow.

Every step is a pure function: it takes an image plus parameters and
returns a NEW image. `render()` rebuilds the output from the untouched
original each time, so toggling the logo off really removes it.

  load_image / place_initial  — data URL, base64, http(s) URL or file → RGBA
  compute_resize              — aspect-lock / fit-within-box math
  overlay_logo                — logo scaled by its own size, 20px from corner
  render                      — original → resize → optional logo
  export_image                — data URL (PNG / JPEG / WEBP)

AdEditor wraps these around a CompositingState for interactive use.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import urllib.request
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image

from .errors import AssetLoadError
from .models import (
    CompositingState,
    GeneratedAd,
    LogoPosition,
    validate_logo_position,
    validate_logo_scale,
)

logger = logging.getLogger(__name__)

LOGO_PADDING = 20
DEFAULT_FETCH_TIMEOUT = 15.0

ImageSource = Union[str, bytes, Path]

_FORMATS = {
    "png": ("PNG", "image/png"),
    "jpeg": ("JPEG", "image/jpeg"),
    "jpg": ("JPEG", "image/jpeg"),
    "webp": ("WEBP", "image/webp"),
}
_LOSSY = {"JPEG", "WEBP"}


# ── Data URLs ─────────────────────────────────────────────────────────────────

def encode_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(url: str) -> Tuple[str, bytes]:
    """Split a `data:<mime>;base64,<payload>` URL into (mime, raw bytes)."""
    if not url.startswith("data:") or "," not in url:
        raise ValueError("Not a data URL")
    header, payload = url.split(",", 1)
    mime = header[5:].split(";", 1)[0] or "application/octet-stream"
    if ";base64" not in header:
        raise ValueError("Only base64 data URLs are supported")
    return mime, base64.b64decode(payload, validate=False)


def _normalize_format(fmt: str) -> Tuple[str, str]:
    key = fmt.lower().strip()
    if key.startswith("image/"):
        key = key[len("image/"):]
    if key not in _FORMATS:
        raise ValueError(f"Unsupported export format {fmt!r}")
    return _FORMATS[key]


# ── Loading ───────────────────────────────────────────────────────────────────

def _read_source(source: ImageSource, timeout: float) -> bytes:
    if isinstance(source, bytes):
        return source

    if isinstance(source, Path):
        return source.read_bytes()

    text = source.strip()
    if text.startswith("data:"):
        return decode_data_url(text)[1]

    if text.startswith(("http://", "https://")):
        req = urllib.request.Request(text, headers={"User-Agent": "AdStudio/1.0"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read()

    path = Path(text)
    if len(text) < 1024 and path.exists():
        return path.read_bytes()

    # Bare base64 payload (no data: prefix)
    return base64.b64decode(text, validate=True)


def load_image(source: ImageSource, timeout: float = DEFAULT_FETCH_TIMEOUT) -> Image.Image:
    """
    Load and fully decode an image. Returns RGBA.

    Raises AssetLoadError on any fetch or decode failure; there is no retry.
    """
    try:
        data = _read_source(source, timeout)
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, ValueError, binascii.Error, Image.DecompressionBombError) as exc:
        label = source if isinstance(source, (str, Path)) and len(str(source)) < 120 else "image"
        raise AssetLoadError(f"Could not load {label}: {exc}") from exc

    return img.convert("RGBA")


def place_initial(source: ImageSource, timeout: float = DEFAULT_FETCH_TIMEOUT) -> Image.Image:
    """The marketing image at its natural pixel size: no crop, no letterbox."""
    img = load_image(source, timeout=timeout)
    logger.debug("Placed source image at natural size %dx%d", img.width, img.height)
    return img


def knockout_white(logo: Image.Image, threshold: int = 240) -> Image.Image:
    """Near-white pixels → transparent, anti-aliasing edges preserved."""
    arr = np.array(logo.convert("RGBA")).astype(np.float32)
    br = 0.299 * arr[:, :, 0] + 0.587 * arr[:, :, 1] + 0.114 * arr[:, :, 2]
    scale = np.clip((threshold - br) / 30.0, 0.0, 1.0)
    arr[:, :, 3] = (arr[:, :, 3] * scale).clip(0, 255)
    return Image.fromarray(arr.astype(np.uint8), "RGBA")


# ── Transforms ────────────────────────────────────────────────────────────────

def compute_resize(
    natural_size: Tuple[int, int],
    width: Optional[float] = None,
    height: Optional[float] = None,
    keep_aspect: bool = True,
) -> Tuple[int, int]:
    """
    Final (width, height) for a resize request.

    With keep_aspect and both sides given, the result fits inside the
    requested box (the free side is derived from the original ratio).
    Without keep_aspect the request is used verbatim.
    """
    if not width and not height:
        raise ValueError("Resize needs a target width and/or height")

    nat_w, nat_h = natural_size
    ratio = nat_w / nat_h
    final_w = float(width or nat_w)
    final_h = float(height or nat_h)

    if keep_aspect:
        if width and not height:
            final_h = width / ratio
        elif height and not width:
            final_w = height * ratio
        elif ratio > width / height:
            final_h = width / ratio
        else:
            final_w = height * ratio

    return max(1, round(final_w)), max(1, round(final_h))


def resize_image(
    image: Image.Image,
    width: Optional[float] = None,
    height: Optional[float] = None,
    keep_aspect: bool = True,
) -> Image.Image:
    size = compute_resize(image.size, width, height, keep_aspect)
    return image.resize(size, Image.LANCZOS)


def logo_box(
    canvas_size: Tuple[int, int],
    logo_size: Tuple[int, int],
    position: LogoPosition,
    scale: float,
) -> Tuple[int, int, int, int]:
    """(x, y, w, h) of the logo: own size × scale, LOGO_PADDING from the corner."""
    validate_logo_position(position)
    cw, ch = canvas_size
    w = max(1, round(logo_size[0] * scale))
    h = max(1, round(logo_size[1] * scale))

    x = LOGO_PADDING if position.endswith("left") else cw - w - LOGO_PADDING
    y = LOGO_PADDING if position.startswith("top") else ch - h - LOGO_PADDING
    return x, y, w, h


def overlay_logo(
    image: Image.Image,
    logo: Image.Image,
    position: LogoPosition = "bottom_right",
    scale: float = 0.1,
) -> Image.Image:
    """Composite the logo over a copy of `image`. Existing content is kept."""
    validate_logo_scale(scale)
    x, y, w, h = logo_box(image.size, logo.size, position, scale)
    mark = logo.convert("RGBA").resize((w, h), Image.LANCZOS)

    layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
    layer.paste(mark, (x, y), mark)
    return Image.alpha_composite(image.convert("RGBA"), layer)


def render(
    base: Image.Image,
    state: CompositingState,
    logo: Optional[Image.Image] = None,
) -> Image.Image:
    """Full redraw from state: original at state size, then logo if enabled."""
    size = (state.width, state.height)
    canvas = base.convert("RGBA")
    canvas = canvas.resize(size, Image.LANCZOS) if canvas.size != size else canvas.copy()

    if state.show_logo and logo is not None:
        canvas = overlay_logo(canvas, logo, state.logo_position, state.logo_scale)
    return canvas


# ── Export ────────────────────────────────────────────────────────────────────

def encode_image(image: Image.Image, fmt: str = "png", quality: Optional[float] = None) -> bytes:
    """
    Serialise an image. `quality` is 0–1 and only used for JPEG / WEBP.
    JPEG has no alpha, so transparency is flattened onto white.
    """
    pil_format, _ = _normalize_format(fmt)
    out = image
    if pil_format == "JPEG" and image.mode != "RGB":
        flat = Image.new("RGB", image.size, (255, 255, 255))
        rgba = image.convert("RGBA")
        flat.paste(rgba, mask=rgba.split()[3])
        out = flat

    params = {}
    if quality is not None and pil_format in _LOSSY:
        params["quality"] = max(1, min(100, round(quality * 100)))

    buf = io.BytesIO()
    out.save(buf, format=pil_format, **params)
    return buf.getvalue()


def export_image(image: Image.Image, fmt: str = "png", quality: Optional[float] = None) -> str:
    """Current pixels as a data URL. Does not touch `image`."""
    _, mime = _normalize_format(fmt)
    return encode_data_url(encode_image(image, fmt, quality), mime)


# ── Editor working set ────────────────────────────────────────────────────────

class AdEditor:
    """Holds the original image, the logo and the CompositingState."""

    def __init__(
        self,
        image_source: ImageSource,
        logo_source: Optional[ImageSource] = None,
        knockout_logo: bool = False,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self.timeout = timeout
        self.original = place_initial(image_source, timeout=timeout)
        self.logo: Optional[Image.Image] = None
        self.state = CompositingState.initial(*self.original.size)
        if logo_source is not None:
            self.load_logo(logo_source, knockout=knockout_logo)

    @classmethod
    def from_ad(cls, ad: GeneratedAd, **kwargs) -> "AdEditor":
        return cls(ad.marketing_image, **kwargs)

    @property
    def natural_size(self) -> Tuple[int, int]:
        return self.original.size

    def load_logo(self, source: ImageSource, knockout: bool = False) -> Image.Image:
        """Replace the logo. On failure the previous logo stays in place."""
        logo = load_image(source, timeout=self.timeout)
        self.logo = knockout_white(logo) if knockout else logo
        return self.logo

    def resize(
        self,
        width: Optional[float] = None,
        height: Optional[float] = None,
        keep_aspect: bool = True,
    ) -> CompositingState:
        w, h = compute_resize(self.natural_size, width, height, keep_aspect)
        self.state = self.state.updated(width=w, height=h)
        return self.state

    def set_logo(
        self,
        show: Optional[bool] = None,
        position: Optional[LogoPosition] = None,
        scale: Optional[float] = None,
    ) -> CompositingState:
        changes = {}
        if show is not None:
            changes["show_logo"] = show
        if position is not None:
            changes["logo_position"] = position
        if scale is not None:
            changes["logo_scale"] = scale
        self.state = self.state.updated(**changes)
        return self.state

    def reset(self) -> Image.Image:
        """Natural size, logo off, bottom-right at 10% — then redraw."""
        self.state = CompositingState.initial(*self.natural_size)
        return self.render()

    def render(self) -> Image.Image:
        return render(self.original, self.state, self.logo)

    def export(self, fmt: str = "png", quality: Optional[float] = None) -> str:
        return export_image(self.render(), fmt, quality)

    def save(self, path: Union[str, Path], fmt: str = "png", quality: Optional[float] = None) -> Path:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(encode_image(self.render(), fmt, quality))
        logger.info("Saved %s (%dx%d)", out.name, self.state.width, self.state.height)
        return out
