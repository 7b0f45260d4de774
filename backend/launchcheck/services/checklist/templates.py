"""
Launch Checklist Engine - Default Checklist

Items created for every shop at onboarding. Order matches the product
editor layout: title, vendor, type, description, tags, images, SEO,
collections.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...models.domain import FixType
from ...models.rule_configs import RuleKey


@dataclass(frozen=True)
class ChecklistItemTemplate:
    key: RuleKey
    label: str
    description: str
    config: Dict[str, Any] = field(default_factory=dict)
    fix_type: FixType = FixType.MANUAL
    target_field: Optional[str] = None
    weight: int = 1


DEFAULT_CHECKLIST_ITEMS: List[ChecklistItemTemplate] = [
    ChecklistItemTemplate(
        key=RuleKey.MIN_TITLE_LENGTH,
        label="Product title is descriptive",
        description="Title should be at least 10 characters",
        config={"min": 10},
        fix_type=FixType.AI,
        target_field="title",
    ),
    ChecklistItemTemplate(
        key=RuleKey.HAS_VENDOR,
        label="Vendor/brand is set",
        description="Vendor helps customers find products by brand",
    ),
    ChecklistItemTemplate(
        key=RuleKey.HAS_PRODUCT_TYPE,
        label="Product type is set",
        description="Product type helps with filtering and organization",
    ),
    ChecklistItemTemplate(
        key=RuleKey.MIN_DESCRIPTION_LENGTH,
        label="Product has description",
        description="Description should be at least 50 characters",
        config={"min": 50},
        fix_type=FixType.AI,
        target_field="description",
    ),
    ChecklistItemTemplate(
        key=RuleKey.HAS_TAGS,
        label="Has at least one tag",
        description="Tags help with filtering and search",
        config={"min": 1},
        fix_type=FixType.AUTO,
        target_field="tags",
    ),
    ChecklistItemTemplate(
        key=RuleKey.MIN_IMAGES,
        label="Has enough product images",
        description="At least 3 images recommended for better conversions",
        config={"min": 3},
        target_field="images",
    ),
    ChecklistItemTemplate(
        key=RuleKey.IMAGES_HAVE_ALT_TEXT,
        label="All images have alt text",
        description="Alt text improves SEO and accessibility",
        fix_type=FixType.AI,
        target_field="image_alt",
    ),
    ChecklistItemTemplate(
        key=RuleKey.SEO_TITLE,
        label="SEO title is set",
        description="Custom SEO title helps search rankings",
        fix_type=FixType.AI,
        target_field="seo_title",
    ),
    ChecklistItemTemplate(
        key=RuleKey.SEO_DESCRIPTION,
        label="SEO description is set",
        description="Meta description should be at least 80 characters",
        config={"min_chars": 80},
        fix_type=FixType.AI,
        target_field="seo_description",
    ),
    ChecklistItemTemplate(
        key=RuleKey.HAS_COLLECTIONS,
        label="Added to at least one collection",
        description="Products should be organized into collections",
        config={"min": 1},
        fix_type=FixType.AUTO,
        target_field="collections",
    ),
]
