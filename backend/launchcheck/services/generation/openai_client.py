"""
Launch Checklist Engine - OpenAI Content Generator

Text kinds go through chat completions, images through the images API.
Both are synchronous from the caller's point of view, so results are never
pending.
"""
import logging
import os
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from ...errors import GenerationError
from .base import GenerationContext, GenerationKind, GenerationResult
from .prompts import SYSTEM_PROMPTS, build_prompt

logger = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_TEXT_MODEL = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini")
OPENAI_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")

# (max_tokens, temperature) per text kind
TEXT_SETTINGS: Dict[GenerationKind, tuple] = {
    GenerationKind.TITLE: (80, 0.7),
    GenerationKind.DESCRIPTION: (500, 0.75),
    GenerationKind.SEO_TITLE: (80, 0.7),
    GenerationKind.SEO_DESCRIPTION: (120, 0.7),
    GenerationKind.TAGS: (120, 0.7),
    GenerationKind.ALT_TEXT: (80, 0.7),
}

_QUOTES = re.compile(r"^[\"']|[\"']$")
_ALT_PREFIX = re.compile(r"^(image of|picture of|photo of)", re.IGNORECASE)


# =============================================================================
# OUTPUT CLEANUP
# =============================================================================

def clean_title(text: str) -> str:
    return re.sub(r"[:|]", "-", _QUOTES.sub("", text.strip()))


def clean_seo_title(text: str) -> str:
    title = _QUOTES.sub("", text.strip()).strip()
    if len(title) > 60:
        cut = max(title.rfind("|", 0, 58), title.rfind("-", 0, 58))
        title = title[:cut].strip() if cut > 30 else f"{title[:57]}..."
    return title


def clean_seo_description(text: str) -> str:
    desc = _QUOTES.sub("", text.strip()).strip()
    if len(desc) > 160:
        desc = f"{desc[:157]}..."
    return desc


def parse_tags(text: str) -> List[str]:
    tags = []
    for raw in text.split(","):
        tag = re.sub(r"\s+", "-", raw.strip().lower())
        if 0 < len(tag) < 30:
            tags.append(tag)
    return tags[:10]


def clean_alt_text(text: str) -> str:
    return _ALT_PREFIX.sub("", _QUOTES.sub("", text.strip())).strip()[:125]


CLEANERS = {
    GenerationKind.TITLE: clean_title,
    GenerationKind.DESCRIPTION: str.strip,
    GenerationKind.SEO_TITLE: clean_seo_title,
    GenerationKind.SEO_DESCRIPTION: clean_seo_description,
    GenerationKind.ALT_TEXT: clean_alt_text,
}


# =============================================================================
# GENERATOR
# =============================================================================

class OpenAIContentGenerator:
    """
    ContentGenerator backed by the OpenAI API.

    Pass the shop's own key to bill generation to the shop instead of the
    app (fallback once app credits are used up).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: Optional[str] = None,
        image_model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.text_model = text_model or OPENAI_TEXT_MODEL
        self.image_model = image_model or OPENAI_IMAGE_MODEL
        self.client = client or AsyncOpenAI(api_key=api_key or OPENAI_API_KEY)

    async def generate(
        self,
        kind: GenerationKind,
        context: GenerationContext,
        options: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        options = options or {}
        try:
            if kind == GenerationKind.IMAGE:
                return await self._generate_image(context, options)
            return await self._generate_text(kind, context, options)
        except OpenAIError as exc:
            logger.error(f"OpenAI {kind.value} generation failed: {exc}")
            raise GenerationError(f"AI generation failed: {exc}") from exc

    async def check_job(self, job_id: str) -> GenerationResult:
        raise GenerationError(f"Unknown generation job {job_id}")

    async def _generate_text(
        self,
        kind: GenerationKind,
        context: GenerationContext,
        options: Dict[str, Any],
    ) -> GenerationResult:
        max_tokens, temperature = TEXT_SETTINGS[kind]
        user_content: Any = build_prompt(kind, context)
        if options.get("custom_prompt"):
            user_content = f"{user_content}\n\nAdditional instructions: {options['custom_prompt']}"
        if kind == GenerationKind.ALT_TEXT and context.image_url:
            user_content = [
                {"type": "text", "text": user_content},
                {"type": "image_url", "image_url": {"url": context.image_url}},
            ]

        response = await self.client.chat.completions.create(
            model=options.get("model") or self.text_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPTS[kind]},
                {"role": "user", "content": user_content},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        text = (response.choices[0].message.content or "").strip()
        model = response.model or self.text_model

        if kind == GenerationKind.TAGS:
            return GenerationResult(items=parse_tags(text), model=model)
        return GenerationResult(text=CLEANERS[kind](text), model=model)

    async def _generate_image(self, context: GenerationContext, options: Dict[str, Any]) -> GenerationResult:
        response = await self.client.images.generate(
            model=options.get("image_model") or self.image_model,
            prompt=build_prompt(GenerationKind.IMAGE, context),
            size=options.get("size", "1024x1024"),
            n=1,
        )
        url = response.data[0].url if response.data else None
        return GenerationResult(image_url=url, model=self.image_model)


def default_generator() -> Optional[OpenAIContentGenerator]:
    """App-billed generator, or None when no app key is configured."""
    if not OPENAI_API_KEY:
        logger.warning("No OpenAI API key configured")
        return None
    return OpenAIContentGenerator(api_key=OPENAI_API_KEY)


def generator_for_key(api_key: Optional[str]) -> Optional[OpenAIContentGenerator]:
    """Generator billed to a shop's own key."""
    if not api_key:
        return None
    return OpenAIContentGenerator(api_key=api_key)
