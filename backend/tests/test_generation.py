"""
Content generation tests

Output cleanup, the bounded poll loop for asynchronous jobs and the OpenAI
generator against a mocked client.
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from launchcheck.errors import GenerationError, GenerationTimeout
from launchcheck.services.generation import openai_client
from launchcheck.services.generation.base import GenerationContext, GenerationKind, GenerationResult
from launchcheck.services.generation.openai_client import (
    OpenAIContentGenerator, clean_alt_text, clean_seo_description, clean_seo_title, clean_title,
    generator_for_key, parse_tags,
)
from launchcheck.services.generation.polling import await_generation
from launchcheck.services.generation.prompts import build_prompt

from fakes import FakeGenerator, make_listing


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def context():
    return GenerationContext.from_listing(make_listing())


# =============================================================================
# OUTPUT CLEANUP
# =============================================================================

class TestCleaners:

    def test_title_strips_quotes_and_separators(self):
        assert clean_title('"Soft Tee: Organic | Cotton"') == "Soft Tee- Organic - Cotton"

    def test_short_seo_title_unchanged(self):
        assert clean_seo_title("Organic Cotton Tee | Northwind") == "Organic Cotton Tee | Northwind"

    def test_long_seo_title_cut_at_separator(self):
        title = "Organic Cotton Crew Neck T-Shirt for Everyday | Northwind Apparel Store"
        cleaned = clean_seo_title(title)
        assert cleaned == "Organic Cotton Crew Neck T-Shirt for Everyday"
        assert len(cleaned) <= 60

    def test_long_seo_title_without_separator_is_truncated(self):
        cleaned = clean_seo_title("x" * 80)
        assert cleaned == "x" * 57 + "..."

    def test_seo_description_limit(self):
        assert len(clean_seo_description("y" * 200)) == 160
        assert clean_seo_description("'Short.'") == "Short."

    def test_parse_tags(self):
        tags = parse_tags("Summer Wear, cotton ,, " + "z" * 40 + ", Gift Idea")
        assert tags == ["summer-wear", "cotton", "gift-idea"]

    def test_parse_tags_caps_at_ten(self):
        assert len(parse_tags(",".join(f"tag{i}" for i in range(15)))) == 10

    def test_alt_text_drops_prefix(self):
        assert clean_alt_text("Image of a white cotton tee") == "a white cotton tee"
        assert len(clean_alt_text("a" * 200)) == 125


class TestPrompts:

    def test_prompt_mentions_listing(self, context):
        prompt = build_prompt(GenerationKind.SEO_DESCRIPTION, context)
        assert "Organic Cotton Crew Neck T-Shirt" in prompt

    def test_context_uses_plain_description(self, context):
        assert "<p>" not in context.description
        assert context.collections == ("Tops",)


# =============================================================================
# POLLING
# =============================================================================

class TestAwaitGeneration:

    def test_immediate_result(self, context):
        result = run(await_generation(FakeGenerator(), GenerationKind.TITLE, context))
        assert result.text == "Generated title"

    def test_pending_job_is_polled_until_done(self, context):
        generator = FakeGenerator(pending_polls=3)
        result = run(await_generation(generator, GenerationKind.TITLE, context, poll_interval=0))
        assert result.text == "Generated title"
        assert len(generator.polls) == 3

    def test_gives_up_after_max_attempts(self, context):
        generator = FakeGenerator(pending_polls=100)
        with pytest.raises(GenerationTimeout) as exc:
            run(await_generation(generator, GenerationKind.IMAGE, context, max_attempts=4, poll_interval=0))
        assert exc.value.attempts == 4
        assert len(generator.polls) == 4

    def test_empty_result_is_an_error(self, context):
        generator = FakeGenerator({GenerationKind.SEO_TITLE: GenerationResult(text="")})
        with pytest.raises(GenerationError, match="Generation returned no seo title"):
            run(await_generation(generator, GenerationKind.SEO_TITLE, context))


# =============================================================================
# OPENAI GENERATOR
# =============================================================================

def completion(content, model="gpt-4o-mini"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        model=model,
    )


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion('"Organic Cotton Tee"'))
    client.images.generate = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(url="https://img.example.com/1.png")])
    )
    return client


class TestOpenAIContentGenerator:

    def test_text_generation_is_cleaned(self, mock_client, context):
        generator = OpenAIContentGenerator(client=mock_client)
        result = run(generator.generate(GenerationKind.TITLE, context))
        assert result.text == "Organic Cotton Tee"
        assert result.model == "gpt-4o-mini"
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0]["role"] == "system"

    def test_tags_fill_items(self, mock_client, context):
        mock_client.chat.completions.create.return_value = completion("Summer, Gift Idea")
        result = run(OpenAIContentGenerator(client=mock_client).generate(GenerationKind.TAGS, context))
        assert result.items == ["summer", "gift-idea"]
        assert result.text is None

    def test_alt_text_sends_image(self, mock_client):
        context = GenerationContext(title="Tee", image_url="https://cdn.example.com/1.jpg")
        run(OpenAIContentGenerator(client=mock_client).generate(GenerationKind.ALT_TEXT, context))
        user = mock_client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert user[1] == {"type": "image_url", "image_url": {"url": "https://cdn.example.com/1.jpg"}}

    def test_image_generation(self, mock_client, context):
        result = run(OpenAIContentGenerator(client=mock_client).generate(GenerationKind.IMAGE, context))
        assert result.image_url == "https://img.example.com/1.png"
        assert not result.is_pending

    def test_provider_errors_become_generation_errors(self, mock_client, context):
        mock_client.chat.completions.create.side_effect = OpenAIError("insufficient_quota")
        with pytest.raises(GenerationError, match="insufficient_quota"):
            run(OpenAIContentGenerator(client=mock_client).generate(GenerationKind.TITLE, context))

    def test_generator_factories(self, monkeypatch):
        monkeypatch.setattr(openai_client, "OPENAI_API_KEY", None)
        assert openai_client.default_generator() is None
        assert generator_for_key(None) is None
        assert isinstance(generator_for_key("sk-shop"), OpenAIContentGenerator)
