"""
Launch Checklist Engine - Rule Keys and Typed Rule Configuration

Each rule declares its own configuration shape. Configuration is parsed once
when a checklist item is loaded, never per evaluation.
"""
from __future__ import annotations
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from ..errors import RuleConfigError


class RuleKey(str, Enum):
    MIN_TITLE_LENGTH = "min_title_length"
    MIN_DESCRIPTION_LENGTH = "min_description_length"
    MIN_IMAGES = "min_images"
    IMAGES_HAVE_ALT_TEXT = "images_have_alt_text"
    SEO_TITLE = "seo_title"
    SEO_DESCRIPTION = "seo_description"
    HAS_COLLECTIONS = "has_collections"
    HAS_PRODUCT_TYPE = "has_product_type"
    HAS_VENDOR = "has_vendor"
    HAS_TAGS = "has_tags"
    METAFIELD_REQUIRED = "metafield_required"
    HAS_TAG_PATTERN = "has_tag_pattern"

    @classmethod
    def lookup(cls, raw: str) -> Optional["RuleKey"]:
        """Return the key for a stored string, or None if it is not registered."""
        try:
            return cls(raw)
        except ValueError:
            return None


# =============================================================================
# CONFIG SHAPES
# =============================================================================

@dataclass(frozen=True)
class NoConfig:
    """Rules that take no parameters."""


@dataclass(frozen=True)
class MinLengthConfig:
    min: int


@dataclass(frozen=True)
class MinCountConfig:
    min: int


@dataclass(frozen=True)
class SeoDescriptionConfig:
    min_chars: int = 80


@dataclass(frozen=True)
class MetafieldConfig:
    namespace: str
    key: str


@dataclass(frozen=True)
class TagPatternConfig:
    pattern: str

    @property
    def regex(self) -> "re.Pattern[str]":
        return re.compile(self.pattern, re.IGNORECASE)


RuleConfig = Union[
    NoConfig,
    MinLengthConfig,
    MinCountConfig,
    SeoDescriptionConfig,
    MetafieldConfig,
    TagPatternConfig,
]


# =============================================================================
# PARSING
# =============================================================================

def _int_param(key: RuleKey, raw: Dict[str, Any], name: str, default: int, *aliases: str) -> int:
    value = default
    for candidate in (name, *aliases):
        if candidate in raw:
            value = raw[candidate]
            break
    # bool is an int subclass; "min": true is a config mistake
    if isinstance(value, bool) or not isinstance(value, int):
        raise RuleConfigError(key.value, f"'{name}' must be an integer, got {value!r}")
    if value < 0:
        raise RuleConfigError(key.value, f"'{name}' must not be negative, got {value}")
    return value


def _str_param(key: RuleKey, raw: Dict[str, Any], name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str) or not value.strip():
        raise RuleConfigError(key.value, f"'{name}' is required")
    return value.strip()


def _parse_tag_pattern(raw: Dict[str, Any]) -> TagPatternConfig:
    pattern = _str_param(RuleKey.HAS_TAG_PATTERN, raw, "pattern")
    try:
        re.compile(pattern)
    except re.error as exc:
        raise RuleConfigError(RuleKey.HAS_TAG_PATTERN.value, f"invalid pattern {pattern!r}: {exc}")
    return TagPatternConfig(pattern=pattern)


CONFIG_PARSERS: Dict[RuleKey, Callable[[Dict[str, Any]], RuleConfig]] = {
    RuleKey.MIN_TITLE_LENGTH: lambda raw: MinLengthConfig(
        min=_int_param(RuleKey.MIN_TITLE_LENGTH, raw, "min", 10)
    ),
    RuleKey.MIN_DESCRIPTION_LENGTH: lambda raw: MinLengthConfig(
        min=_int_param(RuleKey.MIN_DESCRIPTION_LENGTH, raw, "min", 50)
    ),
    RuleKey.MIN_IMAGES: lambda raw: MinCountConfig(
        min=_int_param(RuleKey.MIN_IMAGES, raw, "min", 3)
    ),
    RuleKey.IMAGES_HAVE_ALT_TEXT: lambda raw: NoConfig(),
    RuleKey.SEO_TITLE: lambda raw: NoConfig(),
    RuleKey.SEO_DESCRIPTION: lambda raw: SeoDescriptionConfig(
        min_chars=_int_param(RuleKey.SEO_DESCRIPTION, raw, "min_chars", 80, "minChars")
    ),
    RuleKey.HAS_COLLECTIONS: lambda raw: MinCountConfig(
        min=_int_param(RuleKey.HAS_COLLECTIONS, raw, "min", 1)
    ),
    RuleKey.HAS_PRODUCT_TYPE: lambda raw: NoConfig(),
    RuleKey.HAS_VENDOR: lambda raw: NoConfig(),
    RuleKey.HAS_TAGS: lambda raw: MinCountConfig(
        min=_int_param(RuleKey.HAS_TAGS, raw, "min", 1)
    ),
    RuleKey.METAFIELD_REQUIRED: lambda raw: MetafieldConfig(
        namespace=_str_param(RuleKey.METAFIELD_REQUIRED, raw, "namespace"),
        key=_str_param(RuleKey.METAFIELD_REQUIRED, raw, "key"),
    ),
    RuleKey.HAS_TAG_PATTERN: _parse_tag_pattern,
}


def parse_rule_config(key: RuleKey, raw: Union[str, Dict[str, Any], None]) -> RuleConfig:
    """
    Parse stored configuration for a rule into its typed shape.

    Args:
        key: Registered rule key
        raw: JSON text as stored on the checklist item, an already-decoded
            dict, or None for "use defaults"

    Raises:
        RuleConfigError: if the JSON is invalid or a parameter is unusable
    """
    if raw is None or raw == "":
        data: Dict[str, Any] = {}
    elif isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuleConfigError(key.value, f"config is not valid JSON: {exc}")
    else:
        data = raw

    if not isinstance(data, dict):
        raise RuleConfigError(key.value, "config must be a JSON object")

    return CONFIG_PARSERS[key](data)
