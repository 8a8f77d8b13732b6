"""
Generator — asks Gemini / Imagen for the marketing assets of one product.

  marketing image  — Imagen, one JPEG, returned as a data URL
  caption          — Gemini JSON output: short caption + 3-5 hashtags

Both calls must succeed for an ad to exist. No retries and no timeout: a
single provider failure ends the attempt with a GenerationError.
"""

from __future__ import annotations

import base64
import logging
from typing import List, Optional

from google import genai
from google.genai import types

from .config import StudioConfig
from .errors import GenerationError
from .models import AdCopy, GeneratedAd, ImageOptions, Product

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 100


# ── Prompt builders ───────────────────────────────────────────────────────────

def describe_product(product: Product) -> str:
    """One-paragraph product summary shared by both prompts."""
    parts = [
        f"Product Name: {product.title}.",
        f"Category: {product.product_category}.",
        f"Type: {product.product_type}.",
        f"Vendor: {product.vendor}.",
    ]
    if product.color:
        parts.append(f"Color: {product.color}.")
    if product.material:
        parts.append(f"Material: {product.material}.")
    if product.body_html:
        parts.append(f"Description: {product.plain_description(DESCRIPTION_LIMIT)}...")
    return " ".join(parts)


def build_image_prompt(product: Product, options: Optional[ImageOptions] = None) -> str:
    opts = options or ImageOptions()
    noun = (product.product_type or "product").lower()

    lines = [
        f"Create a professional, high-resolution marketing ad image for the following {noun}. "
        "The image should feature a modern ad layout with realistic shadows, "
        "professional lighting, and natural reflections.",
        f"DO NOT alter the core visual identity (color, shape, material) of the {noun}.",
        "Draw inspiration from current advertisement trends on brand Instagram accounts "
        "and editorial product sites.",
        "",
        f"Product Details: {describe_product(product)}",
    ]

    extras: List[str] = []
    if opts.wearer == "wearing":
        extras.append("Show someone wearing the product in an authentic street style shot.")
    elif opts.wearer == "held":
        extras.append("Show the product being held casually.")
    else:
        extras.append("Focus on the product itself.")

    extras.append(
        f"Use a composition style: {opts.composition}." if opts.composition
        else "Employ dynamic positioning and creative framing to highlight the product."
    )
    extras.append(
        f"Use a camera angle: {opts.angle}." if opts.angle
        else "Utilize varied camera angles to capture the design details."
    )
    extras.append(
        f"The background should be: {opts.background}." if opts.background
        else "Use a trending background color, lighting, reflections, or props."
    )
    if opts.environment:
        extras.append(f"The environment should be: {opts.environment}.")
    if opts.mood:
        extras.append(f"The mood of the image should be: {opts.mood}.")
    if opts.custom_prompt:
        extras.append(f"Additional instructions: {opts.custom_prompt}.")

    return "\n".join(lines) + "\n" + " ".join(extras)


def build_caption_prompt(product: Product) -> str:
    return (
        "As an autonomous marketing AI, generate a short, catchy caption "
        "(under 12 words) and 3-5 trending hashtags for the following product. "
        "The tone should be minimal, bold, and youthful, fitting current community language.\n"
        f"Product Details: {describe_product(product)}\n"
        "Output must be a JSON object with 'caption' (string) and 'hashtags' (array of strings)."
    )


def normalize_hashtag(tag: str) -> str:
    tag = tag.strip()
    if not tag:
        return ""
    return tag if tag.startswith("#") else f"#{tag}"


def normalize_hashtags(tags: List[str]) -> List[str]:
    return [t for t in (normalize_hashtag(tag) for tag in tags) if t]


# ── Generator ─────────────────────────────────────────────────────────────────

class AdGenerator:
    """Remote AI boundary. Configuration is validated once, at construction."""

    def __init__(self, config: StudioConfig, client: Optional[object] = None) -> None:
        self.config = config.validate()
        self.client = client if client is not None else genai.Client(api_key=config.api_key)

    def generate_marketing_image(
        self,
        product: Product,
        options: Optional[ImageOptions] = None,
    ) -> str:
        """Return the generated photo as a `data:image/jpeg;base64,...` URL."""
        opts = options or ImageOptions()
        prompt = build_image_prompt(product, opts)
        logger.info("Generating marketing image for %s (%s)", product.handle, self.config.image_model)

        try:
            response = self.client.models.generate_images(
                model=self.config.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type="image/jpeg",
                    aspect_ratio=opts.aspect_ratio,
                ),
            )
        except Exception as exc:
            logger.error("Image generation failed for %s: %s", product.handle, exc)
            raise GenerationError(f"Failed to generate marketing image: {exc}") from exc

        generated = getattr(response, "generated_images", None) or []
        data = generated[0].image.image_bytes if generated and generated[0].image else None
        if not data:
            raise GenerationError("Failed to generate marketing image: no image returned")

        if isinstance(data, str):
            return f"data:image/jpeg;base64,{data}"
        return f"data:image/jpeg;base64,{base64.b64encode(data).decode('ascii')}"

    def generate_caption(self, product: Product) -> AdCopy:
        logger.info("Generating caption for %s (%s)", product.handle, self.config.text_model)
        try:
            response = self.client.models.generate_content(
                model=self.config.text_model,
                contents=build_caption_prompt(product),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=AdCopy,
                ),
            )
            raw = (response.text or "").strip()
            if not raw:
                raise ValueError("Gemini returned no content")
            return AdCopy.model_validate_json(raw)
        except Exception as exc:
            logger.error("Caption generation failed for %s: %s", product.handle, exc)
            raise GenerationError(f"Failed to generate caption and hashtags: {exc}") from exc

    def generate_ad(
        self,
        product: Product,
        options: Optional[ImageOptions] = None,
    ) -> GeneratedAd:
        """Image first, then copy. Either failure fails the whole attempt."""
        marketing_image = self.generate_marketing_image(product, options)

        try:
            copy = self.generate_caption(product)
        except GenerationError:
            # No partial ad: the generated image is dropped with the attempt.
            logger.warning("Discarding generated image for %s: caption step failed", product.handle)
            raise

        return GeneratedAd(
            product_handle=product.handle,
            product_title=product.title,
            marketing_image=marketing_image,
            caption=copy.caption.strip(),
            hashtags=normalize_hashtags(copy.hashtags),
        )
