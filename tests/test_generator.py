from __future__ import annotations

import io

import pytest
from PIL import Image

from adstudio.compositor import decode_data_url
from adstudio.config import DEFAULT_IMAGE_MODEL, DEFAULT_TEXT_MODEL, StudioConfig
from adstudio.errors import ConfigError, GenerationError
from adstudio.generator import (
    AdGenerator,
    build_caption_prompt,
    build_image_prompt,
    describe_product,
    normalize_hashtag,
)
from adstudio.models import ImageOptions, Product

CONFIG = StudioConfig(api_key="test-key")


@pytest.fixture
def product():
    return Product(
        handle="air-runner",
        title="Air Runner",
        body_html="<p>Light <b>and</b> fast</p>",
        vendor="Nike",
        product_category="Shoes",
        product_type="Sneakers",
        published=True,
        image_src="https://cdn.example.com/air.jpg",
        color="Black",
    )


# ── Config ────────────────────────────────────────────────────────────────────

def test_missing_api_key_fails_at_construction(fake_client):
    with pytest.raises(ConfigError):
        AdGenerator(StudioConfig(api_key=""), client=fake_client())


def test_config_from_env_defaults():
    config = StudioConfig.from_env({"API_KEY": "k"})
    assert config.api_key == "k"
    assert config.image_model == DEFAULT_IMAGE_MODEL
    assert config.text_model == DEFAULT_TEXT_MODEL
    assert config.filename_prefix == "pepomart-ad"


def test_config_from_env_overrides():
    config = StudioConfig.from_env({
        "GEMINI_API_KEY": "g",
        "API_KEY": "ignored",
        "ADSTUDIO_TEXT_MODEL": "gemini-x",
        "ADSTUDIO_FETCH_TIMEOUT": "3.5",
    })
    assert (config.api_key, config.text_model, config.fetch_timeout) == ("g", "gemini-x", 3.5)


def test_config_bad_timeout():
    with pytest.raises(ConfigError):
        StudioConfig.from_env({"ADSTUDIO_FETCH_TIMEOUT": "soon"})
    with pytest.raises(ConfigError):
        StudioConfig(api_key="k", fetch_timeout=0).validate()


# ── Prompts ───────────────────────────────────────────────────────────────────

def test_describe_product_strips_html(product):
    text = describe_product(product)
    assert "Product Name: Air Runner." in text
    assert "Color: Black." in text
    assert "Material" not in text
    assert "Description: Light and fast..." in text


def test_image_prompt_defaults(product):
    prompt = build_image_prompt(product)
    assert "Focus on the product itself." in prompt
    assert "Use a trending background color" in prompt
    assert "The mood" not in prompt


def test_image_prompt_modifiers(product):
    options = ImageOptions(
        background="seamless white studio",
        environment="night city",
        mood="calm",
        composition="centered",
        angle="low-angle shot",
        custom_prompt="add a lens flare",
        wearer="held",
    )
    prompt = build_image_prompt(product, options)
    assert "being held casually" in prompt
    assert "The background should be: seamless white studio." in prompt
    assert "The environment should be: night city." in prompt
    assert "The mood of the image should be: calm." in prompt
    assert "Use a composition style: centered." in prompt
    assert "Use a camera angle: low-angle shot." in prompt
    assert "Additional instructions: add a lens flare." in prompt


def test_caption_prompt_mentions_json(product):
    assert "'hashtags'" in build_caption_prompt(product)


def test_normalize_hashtag():
    assert normalize_hashtag("run") == "#run"
    assert normalize_hashtag(" #run ") == "#run"
    assert normalize_hashtag("  ") == ""


# ── Generation ────────────────────────────────────────────────────────────────

def test_generate_ad(product, fake_client):
    client = fake_client()
    ad = AdGenerator(CONFIG, client=client).generate_ad(product, ImageOptions(aspect_ratio="4:3"))

    assert ad.product_handle == "air-runner"
    assert ad.product_title == "Air Runner"
    assert ad.caption == "Run the city."
    assert ad.hashtags == ["#run", "#street"]

    mime, data = decode_data_url(ad.marketing_image)
    assert mime == "image/jpeg"
    assert Image.open(io.BytesIO(data)).size == (100, 50)

    call = client.models.image_calls[0]
    assert call.model == DEFAULT_IMAGE_MODEL
    assert call.config.aspect_ratio == "4:3"
    assert call.config.number_of_images == 1
    assert client.models.caption_calls[0].config.response_mime_type == "application/json"


def test_image_failure_skips_caption(product, fake_client):
    client = fake_client(image_error=RuntimeError("quota"))
    with pytest.raises(GenerationError, match="quota"):
        AdGenerator(CONFIG, client=client).generate_ad(product)
    assert client.models.caption_calls == []


def test_empty_image_result(product, fake_client):
    with pytest.raises(GenerationError):
        AdGenerator(CONFIG, client=fake_client(no_images=True)).generate_marketing_image(product)


def test_caption_failure_after_image_fails_whole_attempt(product, fake_client):
    client = fake_client(caption_error=RuntimeError("provider error"))
    with pytest.raises(GenerationError):
        AdGenerator(CONFIG, client=client).generate_ad(product)
    assert len(client.models.image_calls) == 1


@pytest.mark.parametrize("text", ["", "not json", '{"caption": "x"}'])
def test_bad_caption_payload(product, fake_client, text):
    with pytest.raises(GenerationError):
        AdGenerator(CONFIG, client=fake_client(caption_text=text)).generate_caption(product)
