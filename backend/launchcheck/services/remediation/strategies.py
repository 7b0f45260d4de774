"""
Launch Checklist Engine - Remediation Strategies

Fix registry, separate from the audit rule registry: not every auditable
rule has a fix, and a rule may have both a deterministic and a generated
fix. Strategies never touch the catalog themselves. Each one checks whether
the listing already matches the desired state, then builds a single
ListingUpdate for the dispatcher to apply.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ...errors import GenerationError
from ...models.domain import FixType, ListingSnapshot, RuleStatus
from ...models.rule_configs import RuleKey
from ..catalog.base import ListingUpdate
from ..checklist.rules import plain_text
from ..generation.base import GenerationContext, GenerationKind, GenerationResult

logger = logging.getLogger(__name__)

Generate = Callable[[GenerationKind, GenerationContext], Awaitable[GenerationResult]]

SEO_DESCRIPTION_MIN = 80
SEO_DESCRIPTION_MAX = 160
SEO_DESCRIPTION_PADDING = ". Shop now for the best selection and quality products."
TARGET_IMAGE_COUNT = 3


@dataclass
class FixContext:
    listing: ListingSnapshot
    config: Dict[str, Any] = field(default_factory=dict)
    generate: Optional[Generate] = None

    async def generate_text(self, kind: GenerationKind, **overrides: Any) -> GenerationResult:
        if self.generate is None:
            raise GenerationError("Content generation is not configured")
        return await self.generate(kind, GenerationContext.from_listing(self.listing, **overrides))


def _config_value(config: Dict[str, Any], name: str, *aliases: str) -> Any:
    for key in (name, *aliases):
        if config.get(key) not in (None, "", []):
            return config[key]
    return None


def merge_tags(existing: Tuple[str, ...], extra: List[str]) -> Tuple[str, ...]:
    """Existing tags first, then new ones, duplicates dropped (case-insensitive)."""
    seen = {t.lower() for t in existing}
    merged = list(existing)
    for tag in extra:
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            merged.append(tag)
    return tuple(merged)


def images_missing_alt(listing: ListingSnapshot):
    return [img for img in listing.images if not (img.alt_text or "").strip()]


# =============================================================================
# BASE
# =============================================================================

class RemediationStrategy:
    """One way of fixing one field."""

    fix_type: FixType = FixType.AUTO
    field: str = ""
    noop_message: str = "No updates needed"

    def unavailable(self, listing: ListingSnapshot, config: Dict[str, Any]) -> Optional[str]:
        """Failure message when the fix cannot run at all (e.g. missing settings)."""
        return None

    def precheck(self, listing: ListingSnapshot, config: Dict[str, Any]) -> Optional[str]:
        """No-op message when the listing already matches the desired state."""
        return None

    async def build_update(self, ctx: FixContext) -> ListingUpdate:
        raise NotImplementedError

    def describe(self, listing: ListingSnapshot, update: ListingUpdate) -> str:
        return f"Updated {self.field.replace('_', ' ')}"

    @property
    def uses_ai(self) -> bool:
        return self.fix_type == FixType.AI


# =============================================================================
# SEO
# =============================================================================

class SeoTitleFromTitle(RemediationStrategy):
    field = "seo_title"

    def unavailable(self, listing, config):
        if not listing.title.strip():
            return "Product has no title to use as SEO title"
        return None

    def precheck(self, listing, config):
        if (listing.seo_title or "").strip():
            return "Already has SEO title"
        return None

    async def build_update(self, ctx):
        return ListingUpdate(seo_title=ctx.listing.title)

    def describe(self, listing, update):
        return f'SEO title set to "{update.seo_title}"'


class GeneratedSeoTitle(SeoTitleFromTitle):
    fix_type = FixType.AI

    def unavailable(self, listing, config):
        return None

    async def build_update(self, ctx):
        result = await ctx.generate_text(GenerationKind.SEO_TITLE)
        return ListingUpdate(seo_title=result.text)

    def describe(self, listing, update):
        return "SEO title generated"


def seo_description_template(listing: ListingSnapshot) -> str:
    """Deterministic meta description built from title, type, vendor and tags."""
    parts = []
    if listing.title:
        parts.append(listing.title)
    if listing.product_type:
        parts.append(f"is a {listing.product_type.lower()}")
    if listing.vendor:
        parts.append(f"from {listing.vendor}")
    if listing.tags:
        parts.append(f"featuring {', '.join(listing.tags[:3])}")

    description = " ".join(parts)
    if len(description) < SEO_DESCRIPTION_MIN:
        description += SEO_DESCRIPTION_PADDING
    if len(description) > SEO_DESCRIPTION_MAX:
        description = description[:SEO_DESCRIPTION_MAX - 3] + "..."
    return description


class SeoDescriptionTemplate(RemediationStrategy):
    field = "seo_description"

    def precheck(self, listing, config):
        min_chars = _config_value(config, "min_chars", "minChars") or SEO_DESCRIPTION_MIN
        if len((listing.seo_description or "").strip()) >= min_chars:
            return "Already has SEO description"
        return None

    async def build_update(self, ctx):
        return ListingUpdate(seo_description=seo_description_template(ctx.listing))

    def describe(self, listing, update):
        return f"SEO description generated ({len(update.seo_description)} chars)"


class GeneratedSeoDescription(SeoDescriptionTemplate):
    fix_type = FixType.AI

    async def build_update(self, ctx):
        result = await ctx.generate_text(GenerationKind.SEO_DESCRIPTION)
        return ListingUpdate(seo_description=result.text)

    def describe(self, listing, update):
        return "SEO description generated"


# =============================================================================
# IMAGES
# =============================================================================

class AltTextFromTitle(RemediationStrategy):
    field = "image_alt"

    def unavailable(self, listing, config):
        if not listing.images:
            return "No images to add alt text to"
        return None

    def precheck(self, listing, config):
        if not images_missing_alt(listing):
            return "All images already have alt text"
        return None

    async def build_update(self, ctx):
        missing = images_missing_alt(ctx.listing)
        title = ctx.listing.title
        return ListingUpdate(image_alt_texts={
            img.id: title if i == 0 else f"{title} - Image {i + 1}"
            for i, img in enumerate(missing)
        })

    def describe(self, listing, update):
        return f"Added alt text to {len(update.image_alt_texts)} of {len(images_missing_alt(listing))} images"


class GeneratedAltText(AltTextFromTitle):
    """Alt text per image. One image failing does not stop the others."""

    fix_type = FixType.AI

    async def build_update(self, ctx):
        missing = images_missing_alt(ctx.listing)
        alt_texts: Dict[str, str] = {}
        last_error: Optional[GenerationError] = None
        for i, img in enumerate(missing):
            try:
                result = await ctx.generate_text(GenerationKind.ALT_TEXT, image_url=img.url, image_index=i)
            except GenerationError as exc:
                logger.warning(f"Alt text generation failed for {img.id}: {exc}")
                last_error = exc
                continue
            if result.text:
                alt_texts[img.id] = result.text

        if not alt_texts and last_error is not None:
            raise last_error
        return ListingUpdate(image_alt_texts=alt_texts)

    def describe(self, listing, update):
        return f"Generated alt text for {len(update.image_alt_texts)}/{len(images_missing_alt(listing))} images"


# =============================================================================
# ORGANIZATION
# =============================================================================

class AddToCollection(RemediationStrategy):
    field = "collections"

    def unavailable(self, listing, config):
        if not _config_value(config, "collection_id", "collectionId"):
            return "No default collection configured in settings"
        return None

    def precheck(self, listing, config):
        if listing.has_collection(_config_value(config, "collection_id", "collectionId")):
            return "Already in collection"
        return None

    async def build_update(self, ctx):
        return ListingUpdate(add_collection_ids=(_config_value(ctx.config, "collection_id", "collectionId"),))

    def describe(self, listing, update):
        return "Added to collection"


class ApplyDefaultTags(RemediationStrategy):
    field = "tags"

    def _tags(self, config) -> List[str]:
        return list(_config_value(config, "tags", "default_tags") or [])

    def unavailable(self, listing, config):
        if not self._tags(config):
            return "No default tags configured in settings"
        return None

    def precheck(self, listing, config):
        if merge_tags(listing.tags, self._tags(config)) == listing.tags:
            return "Tags already applied"
        return None

    async def build_update(self, ctx):
        return ListingUpdate(tags=merge_tags(ctx.listing.tags, self._tags(ctx.config)))

    def describe(self, listing, update):
        return f"Added {len(update.tags) - len(listing.tags)} tags"


class GeneratedTags(RemediationStrategy):
    fix_type = FixType.AI
    field = "tags"
    noop_message = "Tags already include generated tags"

    async def build_update(self, ctx):
        result = await ctx.generate_text(GenerationKind.TAGS)
        merged = merge_tags(ctx.listing.tags, result.items)
        if merged == ctx.listing.tags:
            return ListingUpdate()
        return ListingUpdate(tags=merged)

    def describe(self, listing, update):
        return f"Generated and added {len(update.tags) - len(listing.tags)} tags"


# =============================================================================
# CONTENT
# =============================================================================

class GeneratedTitle(RemediationStrategy):
    fix_type = FixType.AI
    field = "title"

    def precheck(self, listing, config):
        minimum = _config_value(config, "min")
        if minimum is not None and len(listing.title.strip()) >= minimum:
            return "Title already meets the minimum length"
        return None

    async def build_update(self, ctx):
        result = await ctx.generate_text(GenerationKind.TITLE)
        return ListingUpdate(title=result.text)

    def describe(self, listing, update):
        return f'Title set to "{update.title}"'


class GeneratedDescription(RemediationStrategy):
    fix_type = FixType.AI
    field = "description"

    def precheck(self, listing, config):
        minimum = _config_value(config, "min")
        if minimum is not None and len(plain_text(listing.description_html)) >= minimum:
            return "Description already meets the minimum length"
        return None

    async def build_update(self, ctx):
        result = await ctx.generate_text(GenerationKind.DESCRIPTION)
        return ListingUpdate(description_html=result.text)

    def describe(self, listing, update):
        return "Description generated"


# =============================================================================
# GENERATE ALL (bulk)
# =============================================================================

GENERATE_ALL_FIELDS = {
    "title": GenerationKind.TITLE,
    "description": GenerationKind.DESCRIPTION,
    "tags": GenerationKind.TAGS,
    "seoTitle": GenerationKind.SEO_TITLE,
    "seoDescription": GenerationKind.SEO_DESCRIPTION,
}
IMAGE_OPTIONS = ("image", "alt")


class GenerateAll(RemediationStrategy):
    """
    Generate several fields into one update.

    Config: `selected_fields` (subset of GENERATE_ALL_FIELDS) and
    `field_options` (e.g. {"images": ["image", "alt"]}). A field whose
    generation fails is left out; the item fails only if every field did.
    """

    fix_type = FixType.AI
    field = "multiple"

    def _fields(self, config) -> List[str]:
        return [f for f in (config.get("selected_fields") or []) if f in GENERATE_ALL_FIELDS]

    def _image_options(self, config) -> List[str]:
        options = (config.get("field_options") or {}).get("images") or []
        return [o for o in options if o in IMAGE_OPTIONS]

    def unavailable(self, listing, config):
        if not self._fields(config) and not self._image_options(config):
            return "No fields selected"
        return None

    async def build_update(self, ctx):
        update = ListingUpdate()
        generated: List[str] = []
        errors: List[str] = []

        for name in self._fields(ctx.config):
            try:
                result = await ctx.generate_text(GENERATE_ALL_FIELDS[name])
            except GenerationError as exc:
                logger.warning(f"generate_all: {name} failed for {ctx.listing.id}: {exc}")
                errors.append(str(exc))
                continue
            update = update.merge(self._field_update(name, ctx.listing, result))
            generated.append(name)

        image_options = self._image_options(ctx.config)
        if "image" in image_options:
            urls = await self._generate_images(ctx, errors)
            if urls:
                update = update.merge(ListingUpdate(media_urls=tuple(urls)))
                generated.append(f"{len(urls)} image{'s' if len(urls) > 1 else ''}")
        if "alt" in image_options and images_missing_alt(ctx.listing):
            try:
                alt_update = await GeneratedAltText().build_update(ctx)
            except GenerationError as exc:
                errors.append(str(exc))
            else:
                update = update.merge(alt_update)
                generated.append(f"alt text for {len(alt_update.image_alt_texts)} images")

        if not generated and errors:
            raise GenerationError(errors[0])
        return update

    def _field_update(self, name: str, listing: ListingSnapshot, result: GenerationResult) -> ListingUpdate:
        if name == "title":
            return ListingUpdate(title=result.text)
        if name == "description":
            return ListingUpdate(description_html=result.text)
        if name == "tags":
            return ListingUpdate(tags=merge_tags(listing.tags, result.items))
        if name == "seoTitle":
            return ListingUpdate(seo_title=result.text)
        return ListingUpdate(seo_description=result.text)

    async def _generate_images(self, ctx: FixContext, errors: List[str]) -> List[str]:
        urls = []
        for _ in range(max(0, TARGET_IMAGE_COUNT - len(ctx.listing.images))):
            try:
                result = await ctx.generate_text(GenerationKind.IMAGE)
            except GenerationError as exc:
                logger.warning(f"generate_all: image failed for {ctx.listing.id}: {exc}")
                errors.append(str(exc))
                continue
            if result.image_url:
                urls.append(result.image_url)
        return urls

    def describe(self, listing, update):
        return f"Generated: {', '.join(update.changed_fields())}"


# =============================================================================
# REGISTRY
# =============================================================================

FIX_STRATEGIES: Dict[RuleKey, Dict[FixType, RemediationStrategy]] = {
    RuleKey.SEO_TITLE: {
        FixType.AUTO: SeoTitleFromTitle(),
        FixType.AI: GeneratedSeoTitle(),
    },
    RuleKey.SEO_DESCRIPTION: {
        FixType.AUTO: SeoDescriptionTemplate(),
        FixType.AI: GeneratedSeoDescription(),
    },
    RuleKey.IMAGES_HAVE_ALT_TEXT: {
        FixType.AUTO: AltTextFromTitle(),
        FixType.AI: GeneratedAltText(),
    },
    RuleKey.HAS_COLLECTIONS: {
        FixType.AUTO: AddToCollection(),
    },
    RuleKey.HAS_TAGS: {
        FixType.AUTO: ApplyDefaultTags(),
        FixType.AI: GeneratedTags(),
    },
    RuleKey.MIN_TITLE_LENGTH: {
        FixType.AI: GeneratedTitle(),
    },
    RuleKey.MIN_DESCRIPTION_LENGTH: {
        FixType.AI: GeneratedDescription(),
    },
}


def get_strategies(rule_key: str) -> Optional[Dict[FixType, RemediationStrategy]]:
    """Fix implementations for a rule key, or None if it has none."""
    key = RuleKey.lookup(rule_key)
    if key is None:
        return None
    return FIX_STRATEGIES.get(key)


def available_fixes(items: Iterable[Any]) -> List[Dict[str, Any]]:
    """
    Failed audit items that have a fix for their resolved fix type.

    Accepts RuleResults or stored audit items.
    """
    fixes = []
    for item in items:
        if item.status != RuleStatus.FAILED or not item.can_auto_fix:
            continue
        strategies = get_strategies(item.rule_key) or {}
        if item.fix_type in strategies:
            fixes.append({
                "rule_key": item.rule_key,
                "label": item.label,
                "fix_type": item.fix_type.value,
                "target_field": item.target_field,
            })
    return fixes
