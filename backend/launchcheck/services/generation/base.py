"""
Launch Checklist Engine - Content Generation Interface

Generation is slow (seconds) and fails sometimes. Providers that run
asynchronous jobs return a pending job id; callers resolve it with the
bounded poll loop in polling.py.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ...models.domain import ListingSnapshot
from ..checklist.rules import plain_text


class GenerationKind(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    SEO_TITLE = "seo_title"
    SEO_DESCRIPTION = "seo_description"
    TAGS = "tags"
    ALT_TEXT = "alt_text"
    IMAGE = "image"


@dataclass(frozen=True)
class GenerationContext:
    """What a generator may know about a listing."""
    title: str
    description: str = ""
    product_type: str = ""
    vendor: str = ""
    tags: Tuple[str, ...] = ()
    collections: Tuple[str, ...] = ()
    image_url: Optional[str] = None
    image_index: int = 0

    @classmethod
    def from_listing(cls, listing: ListingSnapshot, **overrides: Any) -> "GenerationContext":
        values = dict(
            title=listing.title,
            description=plain_text(listing.description_html),
            product_type=listing.product_type,
            vendor=listing.vendor,
            tags=listing.tags,
            collections=tuple(c.title for c in listing.collections),
        )
        values.update(overrides)
        return cls(**values)


@dataclass
class GenerationResult:
    text: Optional[str] = None
    items: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    pending_job_id: Optional[str] = None
    model: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.pending_job_id is not None


class ContentGenerator(Protocol):
    async def generate(
        self,
        kind: GenerationKind,
        context: GenerationContext,
        options: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        ...

    async def check_job(self, job_id: str) -> GenerationResult:
        """Current state of an asynchronous job; still pending if not done."""
        ...
