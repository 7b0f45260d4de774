"""
Launch Checklist Engine - Checklist Rules

Deterministic listing checks. Each rule is a pure function of
(listing, typed config) and never touches the catalog or the database.

The registry maps RuleKey -> Rule. Lookups return None for keys that are
stored on a checklist item but have no implementation; callers skip those.
"""
from __future__ import annotations
import logging
from typing import Callable, Dict, Optional, Union

from bs4 import BeautifulSoup

from ...models.domain import (
    EvaluationFault, FixType, ListingSnapshot, RuleOutcome, RuleStatus,
)
from ...models.rule_configs import (
    MetafieldConfig, MinCountConfig, MinLengthConfig, NoConfig, RuleConfig, RuleKey,
    SeoDescriptionConfig, TagPatternConfig,
)

logger = logging.getLogger(__name__)

Rule = Callable[[ListingSnapshot, RuleConfig], RuleOutcome]

PASSED = RuleOutcome(status=RuleStatus.PASSED)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def plain_text(html: Optional[str]) -> str:
    """Visible text of a rich-text description."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text().strip()


# =============================================================================
# CONTENT RULES
# =============================================================================

def min_title_length(listing: ListingSnapshot, config: MinLengthConfig) -> RuleOutcome:
    length = len((listing.title or "").strip())
    if length >= config.min:
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f"Title is {length} characters, minimum is {config.min}.",
        can_auto_fix=True,
        fix_type=FixType.AI,
        target_field="title",
    )


def min_description_length(listing: ListingSnapshot, config: MinLengthConfig) -> RuleOutcome:
    length = len(plain_text(listing.description_html))
    if length >= config.min:
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f"Description is {length} characters, minimum is {config.min}.",
        can_auto_fix=True,
        fix_type=FixType.AI,
        target_field="description",
    )


def has_product_type(listing: ListingSnapshot, config: NoConfig) -> RuleOutcome:
    if (listing.product_type or "").strip():
        return PASSED
    return RuleOutcome(status=RuleStatus.FAILED, details="Product type is not set.")


def has_vendor(listing: ListingSnapshot, config: NoConfig) -> RuleOutcome:
    if (listing.vendor or "").strip():
        return PASSED
    return RuleOutcome(status=RuleStatus.FAILED, details="Vendor/brand is not set.")


# =============================================================================
# MEDIA RULES
# =============================================================================

def min_images(listing: ListingSnapshot, config: MinCountConfig) -> RuleOutcome:
    count = len(listing.images)
    if count >= config.min:
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f"Found {_plural(count, 'image')}, minimum is {config.min}.",
    )


def images_have_alt_text(listing: ListingSnapshot, config: NoConfig) -> RuleOutcome:
    images = listing.images
    if not images:
        return RuleOutcome(
            status=RuleStatus.FAILED,
            details="No images to check. Add images first.",
            can_auto_fix=False,
            fix_type=FixType.MANUAL,
            target_field="images",
        )

    missing = [img for img in images if not (img.alt_text or "").strip()]
    if not missing:
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f"{len(missing)} of {_plural(len(images), 'image')} missing alt text.",
        can_auto_fix=True,
        fix_type=FixType.AI,
        target_field="image_alt",
    )


# =============================================================================
# SEO RULES
# =============================================================================

def seo_title(listing: ListingSnapshot, config: NoConfig) -> RuleOutcome:
    if (listing.seo_title or "").strip():
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details="SEO title is not set. Using product title as fallback.",
        can_auto_fix=True,
        fix_type=FixType.AI,
        target_field="seo_title",
    )


def seo_description(listing: ListingSnapshot, config: SeoDescriptionConfig) -> RuleOutcome:
    length = len((listing.seo_description or "").strip())
    if length >= config.min_chars:
        return PASSED

    if length == 0:
        details = "SEO description is not set."
    else:
        details = f"SEO description is {length} characters, need at least {config.min_chars}."

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=details,
        can_auto_fix=True,
        fix_type=FixType.AI,
        target_field="seo_description",
    )


# =============================================================================
# ORGANIZATION RULES
# =============================================================================

def has_collections(listing: ListingSnapshot, config: MinCountConfig) -> RuleOutcome:
    count = len(listing.collections)
    if count >= config.min:
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f"Product is in {_plural(count, 'collection')}, needs at least {config.min}.",
        can_auto_fix=True,
        fix_type=FixType.AUTO,
        target_field="collections",
    )


def has_tags(listing: ListingSnapshot, config: MinCountConfig) -> RuleOutcome:
    count = len(listing.tags)
    if count >= config.min:
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f"Product has {_plural(count, 'tag')}, needs at least {config.min}.",
        can_auto_fix=True,
        fix_type=FixType.AUTO,
        target_field="tags",
    )


def has_tag_pattern(listing: ListingSnapshot, config: TagPatternConfig) -> RuleOutcome:
    regex = config.regex
    if any(regex.search(tag) for tag in listing.tags):
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f'No tag matching pattern "{config.pattern}" found.',
    )


def metafield_required(listing: ListingSnapshot, config: MetafieldConfig) -> RuleOutcome:
    metafield = listing.metafield(config.namespace, config.key)
    if metafield is not None and (metafield.value or "").strip():
        return PASSED

    return RuleOutcome(
        status=RuleStatus.FAILED,
        details=f'Metafield "{config.namespace}.{config.key}" is not set.',
    )


# =============================================================================
# REGISTRY
# =============================================================================

RULES: Dict[RuleKey, Rule] = {
    RuleKey.MIN_TITLE_LENGTH: min_title_length,
    RuleKey.MIN_DESCRIPTION_LENGTH: min_description_length,
    RuleKey.MIN_IMAGES: min_images,
    RuleKey.IMAGES_HAVE_ALT_TEXT: images_have_alt_text,
    RuleKey.SEO_TITLE: seo_title,
    RuleKey.SEO_DESCRIPTION: seo_description,
    RuleKey.HAS_COLLECTIONS: has_collections,
    RuleKey.HAS_PRODUCT_TYPE: has_product_type,
    RuleKey.HAS_VENDOR: has_vendor,
    RuleKey.HAS_TAGS: has_tags,
    RuleKey.METAFIELD_REQUIRED: metafield_required,
    RuleKey.HAS_TAG_PATTERN: has_tag_pattern,
}


def get_rule(key: Union[str, RuleKey, None]) -> Optional[Rule]:
    """Resolve a stored rule key to its implementation, or None if unregistered."""
    if key is None:
        return None
    rule_key = key if isinstance(key, RuleKey) else RuleKey.lookup(key)
    if rule_key is None:
        return None
    return RULES.get(rule_key)


def evaluate_rule(
    rule_key: str,
    rule: Rule,
    listing: ListingSnapshot,
    config: RuleConfig,
) -> Union[RuleOutcome, EvaluationFault]:
    """
    Invoke a rule and capture any exception it raises as an EvaluationFault.

    This is the only place a rule implementation is called.
    """
    try:
        return rule(listing, config)
    except Exception as exc:
        logger.error(f"Rule {rule_key} raised while evaluating {listing.id}", exc_info=True)
        return EvaluationFault(rule_key=rule_key, error=str(exc) or exc.__class__.__name__)
