"""
Launch Checklist Engine - Generation Prompts

One system prompt and one user-prompt builder per GenerationKind.
"""
from typing import Callable, Dict

from .base import GenerationContext, GenerationKind

SYSTEM_PROMPTS: Dict[GenerationKind, str] = {
    GenerationKind.TITLE: "You are an e-commerce copywriter who writes concise, search-optimized product titles.",
    GenerationKind.DESCRIPTION: "You are an e-commerce copywriter who writes benefit-driven product descriptions.",
    GenerationKind.SEO_TITLE: "You are an SEO specialist who writes meta titles for product pages.",
    GenerationKind.SEO_DESCRIPTION: "You are an SEO specialist who writes meta descriptions that earn clicks.",
    GenerationKind.TAGS: "You are a merchandiser who tags products for filtering and search.",
    GenerationKind.ALT_TEXT: "You write accessible, descriptive alt text for product images.",
    GenerationKind.IMAGE: "You write prompts for clean, studio-quality product photography.",
}


def _info(context: GenerationContext) -> str:
    return (
        f"- Product: {context.title}\n"
        f"- Type: {context.product_type or 'product'}\n"
        f"- Brand: {context.vendor or 'N/A'}\n"
        f"- Tags: {', '.join(context.tags) or 'none'}\n"
        f"- Description: {context.description[:400] or 'none'}"
    )


def _title(context: GenerationContext) -> str:
    return (
        "Create a compelling, search-optimized product title.\n\n"
        f"PRODUCT INFO:\n{_info(context)}\n\n"
        "Keep it between 4 and 10 words, title case, no quotes or colons. "
        "Output ONLY the title."
    )


def _description(context: GenerationContext) -> str:
    return (
        "Write a conversion-optimized product description.\n\n"
        f"PRODUCT INFO:\n{_info(context)}\n\n"
        "Plain text only, 100-200 words, short paragraphs, speak to the customer as 'you'."
    )


def _seo_title(context: GenerationContext) -> str:
    return (
        "Write a search-optimized meta title for this product page.\n\n"
        f"PRODUCT INFO:\n{_info(context)}\n\n"
        "Maximum 60 characters, primary keyword first. Output ONLY the meta title."
    )


def _seo_description(context: GenerationContext) -> str:
    return (
        "Write a meta description that drives clicks from search results.\n\n"
        f"PRODUCT INFO:\n{_info(context)}\n\n"
        "Between 130 and 155 characters, end with a call to action. Output ONLY the description."
    )


def _tags(context: GenerationContext) -> str:
    return (
        "Generate strategic, search-optimized tags for this product.\n\n"
        f"PRODUCT INFO:\n{_info(context)}\n"
        f"- Collections: {', '.join(context.collections) or 'none'}\n\n"
        "Exactly 8 lowercase tags, hyphens instead of spaces, as a comma-separated list ONLY."
    )


def _alt_text(context: GenerationContext) -> str:
    if context.image_index == 0:
        position = "main product image showing the full product"
    elif context.image_index == 1:
        position = "secondary image showing product details or an alternate angle"
    else:
        position = f"additional product image #{context.image_index + 1}"
    return (
        f"Write descriptive alt text for this product image. This is the {position}.\n\n"
        f"PRODUCT INFO:\n{_info(context)}\n\n"
        "Maximum 125 characters. Do not start with 'Image of'. Output ONLY the alt text."
    )


def _image(context: GenerationContext) -> str:
    return (
        f"Professional e-commerce photo of {context.title}"
        f"{', a ' + context.product_type if context.product_type else ''}"
        f"{' by ' + context.vendor if context.vendor else ''}. "
        "Clean white background, soft studio lighting, product centered, no text."
    )


PROMPT_BUILDERS: Dict[GenerationKind, Callable[[GenerationContext], str]] = {
    GenerationKind.TITLE: _title,
    GenerationKind.DESCRIPTION: _description,
    GenerationKind.SEO_TITLE: _seo_title,
    GenerationKind.SEO_DESCRIPTION: _seo_description,
    GenerationKind.TAGS: _tags,
    GenerationKind.ALT_TEXT: _alt_text,
    GenerationKind.IMAGE: _image,
}


def build_prompt(kind: GenerationKind, context: GenerationContext) -> str:
    return PROMPT_BUILDERS[kind](context)
