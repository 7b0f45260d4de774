"""
Launch Checklist Engine - Catalog Interface

The engine reads listings as immutable snapshots and writes them through a
single partial-update call. Everything behind this interface (GraphQL,
staged uploads, media processing) is the adapter's concern.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ...models.domain import ListingSnapshot


@dataclass(frozen=True)
class FieldError:
    """A structured mutation error as reported by the catalog."""
    field: Optional[str]
    message: str


@dataclass
class MutationResult:
    """
    Outcome of one mutate_listing call.

    `applied_fields` names the fields the catalog accepted before any error;
    a failed result may still have changed some of them.
    """
    success: bool
    errors: List[FieldError] = field(default_factory=list)
    applied_fields: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        """Catalog error text, verbatim, for FixOutcome.message."""
        return "; ".join(e.message for e in self.errors)

    @classmethod
    def ok(cls) -> "MutationResult":
        return cls(success=True)

    @classmethod
    def failed(cls, message: str, field_name: Optional[str] = None) -> "MutationResult":
        return cls(success=False, errors=[FieldError(field=field_name, message=message)])


@dataclass
class ListingUpdate:
    """
    Partial set of listing fields to write in one mutation.

    None means "leave unchanged". `tags` replaces the whole tag list;
    `add_collection_ids` and `media_urls` only ever add.
    """
    title: Optional[str] = None
    description_html: Optional[str] = None
    tags: Optional[Tuple[str, ...]] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    add_collection_ids: Tuple[str, ...] = ()
    image_alt_texts: Dict[str, str] = field(default_factory=dict)
    media_urls: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not self.changed_fields()

    def changed_fields(self) -> List[str]:
        fields = []
        if self.title is not None:
            fields.append("title")
        if self.description_html is not None:
            fields.append("description")
        if self.tags is not None:
            fields.append("tags")
        if self.seo_title is not None:
            fields.append("seo_title")
        if self.seo_description is not None:
            fields.append("seo_description")
        if self.add_collection_ids:
            fields.append("collections")
        if self.image_alt_texts:
            fields.append("image_alt")
        if self.media_urls:
            fields.append("images")
        return fields

    def only(self, fields: Sequence[str]) -> "ListingUpdate":
        """The part of this update that touches `fields`."""
        wanted = set(fields)
        return ListingUpdate(
            title=self.title if "title" in wanted else None,
            description_html=self.description_html if "description" in wanted else None,
            tags=self.tags if "tags" in wanted else None,
            seo_title=self.seo_title if "seo_title" in wanted else None,
            seo_description=self.seo_description if "seo_description" in wanted else None,
            add_collection_ids=self.add_collection_ids if "collections" in wanted else (),
            image_alt_texts=dict(self.image_alt_texts) if "image_alt" in wanted else {},
            media_urls=self.media_urls if "images" in wanted else (),
        )

    def merge(self, other: "ListingUpdate") -> "ListingUpdate":
        """Combine two updates; values set on `other` win."""
        return ListingUpdate(
            title=other.title if other.title is not None else self.title,
            description_html=(
                other.description_html if other.description_html is not None else self.description_html
            ),
            tags=other.tags if other.tags is not None else self.tags,
            seo_title=other.seo_title if other.seo_title is not None else self.seo_title,
            seo_description=(
                other.seo_description if other.seo_description is not None else self.seo_description
            ),
            add_collection_ids=tuple(dict.fromkeys(self.add_collection_ids + other.add_collection_ids)),
            image_alt_texts={**self.image_alt_texts, **other.image_alt_texts},
            media_urls=self.media_urls + other.media_urls,
        )


class CatalogClient(Protocol):
    """Read/write access to one shop's product catalog."""

    async def fetch_listing(self, listing_id: str) -> Optional[ListingSnapshot]:
        """Return the listing, or None when it does not exist."""
        ...

    async def mutate_listing(self, listing_id: str, update: ListingUpdate) -> MutationResult:
        """Apply `update` to the listing. Errors are returned, not raised."""
        ...
