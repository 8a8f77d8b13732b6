from __future__ import annotations

import io
from types import SimpleNamespace

import pytest
from PIL import Image

CATALOG_HEADER = (
    "Handle,Title,Body (HTML),Vendor,Product Category,Type,Tags,Published,"
    "Image Src,Option1 Value,Variant SKU,Variant Grams,Variant Inventory Qty,"
    "Variant Price,Variant Compare At Price,Variant Image,"
    "Color (product.metafields.shopify.color-pattern),Color"
)

CATALOG_ROWS = [
    'air-runner,Air Runner,"<p>Light, fast</p>",Nike,Shoes,Sneakers,"running, street",true,'
    "https://cdn.example.com/air.jpg,9,AR-9,800,5,120.00,150.00,,Black,",
    "air-runner,,,,,,,,,10,AR-10,820,0,125.50,,,,",
    "trail-max,Trail Max,,Adidas,Shoes,Boots,,TRUE,,8,TM-8,900,3,99.99,0,"
    "https://cdn.example.com/tm-8.jpg,,Olive",
    "hidden-one,Hidden,,Nike,Shoes,Sneakers,,false,https://cdn.example.com/h.jpg,9,H-9,1,1,10,,,,",
    "no-image,No Image,,Puma,Socks,Socks,,true,,M,NI-M,1,1,5,,,,",
]


class FakeModels:
    """Stands in for `genai.Client().models`; records every call."""

    def __init__(
        self,
        image_bytes=b"",
        caption_text='{"caption": "Run the city.", "hashtags": ["run", "#street", " "]}',
        image_error=None,
        caption_error=None,
        no_images=False,
    ):
        self.image_bytes = image_bytes
        self.caption_text = caption_text
        self.image_error = image_error
        self.caption_error = caption_error
        self.no_images = no_images
        self.image_calls = []
        self.caption_calls = []

    def generate_images(self, model, prompt, config):
        self.image_calls.append(SimpleNamespace(model=model, prompt=prompt, config=config))
        if self.image_error:
            raise self.image_error
        if self.no_images:
            return SimpleNamespace(generated_images=[])
        image = SimpleNamespace(image_bytes=self.image_bytes)
        return SimpleNamespace(generated_images=[SimpleNamespace(image=image)])

    def generate_content(self, model, contents, config):
        self.caption_calls.append(SimpleNamespace(model=model, contents=contents, config=config))
        if self.caption_error:
            raise self.caption_error
        return SimpleNamespace(text=self.caption_text)


class FakeClient:
    def __init__(self, **kwargs):
        self.models = FakeModels(**kwargs)


@pytest.fixture
def catalog_text():
    return "\n".join([CATALOG_HEADER] + CATALOG_ROWS) + "\n"


@pytest.fixture
def make_image():
    def _make(size=(200, 100), color=(255, 0, 0, 255)):
        return Image.new("RGBA", size, color)
    return _make


@pytest.fixture
def png_bytes(make_image):
    def _png(size=(200, 100), color=(255, 0, 0, 255)):
        buf = io.BytesIO()
        make_image(size, color).save(buf, format="PNG")
        return buf.getvalue()
    return _png


@pytest.fixture
def fake_client(png_bytes):
    def _client(**kwargs):
        kwargs.setdefault("image_bytes", png_bytes((100, 50)))
        return FakeClient(**kwargs)
    return _client
