"""Launch Checklist Engine - Content generation boundary"""
from .base import ContentGenerator, GenerationContext, GenerationKind, GenerationResult
from .openai_client import OpenAIContentGenerator, default_generator, generator_for_key
from .polling import await_generation

__all__ = [
    "ContentGenerator",
    "GenerationContext",
    "GenerationKind",
    "GenerationResult",
    "OpenAIContentGenerator",
    "default_generator",
    "generator_for_key",
    "await_generation",
]
