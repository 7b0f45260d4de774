"""
Checklist rule tests

Covers the rule registry, typed config parsing and each rule's pass/fail
behavior, including the details text and fix hints.
"""
import pytest

from launchcheck.errors import RuleConfigError
from launchcheck.models.domain import (
    EvaluationFault, FixType, ListingImage, Metafield, RuleStatus,
)
from launchcheck.models.rule_configs import (
    MetafieldConfig, MinCountConfig, MinLengthConfig, NoConfig, RuleKey, SeoDescriptionConfig,
    TagPatternConfig, parse_rule_config,
)
from launchcheck.services.checklist import rules
from launchcheck.services.checklist.rules import RULES, evaluate_rule, get_rule, plain_text

from fakes import make_listing


# =============================================================================
# REGISTRY
# =============================================================================

class TestRegistry:

    def test_every_rule_key_is_registered(self):
        assert set(RULES) == set(RuleKey)

    def test_get_rule_accepts_strings_and_keys(self):
        assert get_rule("min_images") is rules.min_images
        assert get_rule(RuleKey.SEO_TITLE) is rules.seo_title

    def test_unknown_key_returns_none(self):
        assert get_rule("has_warranty_info") is None
        assert get_rule(None) is None

    def test_evaluate_rule_captures_exceptions(self, listing):
        def broken(listing, config):
            raise KeyError("boom")

        outcome = evaluate_rule("broken", broken, listing, NoConfig())
        assert isinstance(outcome, EvaluationFault)
        assert outcome.rule_key == "broken"
        assert "boom" in outcome.error


# =============================================================================
# CONFIG PARSING
# =============================================================================

class TestConfigParsing:

    def test_defaults_when_config_missing(self):
        assert parse_rule_config(RuleKey.MIN_TITLE_LENGTH, None) == MinLengthConfig(min=10)
        assert parse_rule_config(RuleKey.MIN_IMAGES, "") == MinCountConfig(min=3)
        assert parse_rule_config(RuleKey.SEO_DESCRIPTION, "{}") == SeoDescriptionConfig(min_chars=80)

    def test_json_text_is_parsed(self):
        assert parse_rule_config(RuleKey.MIN_IMAGES, '{"min": 5}') == MinCountConfig(min=5)

    def test_camel_case_alias(self):
        config = parse_rule_config(RuleKey.SEO_DESCRIPTION, {"minChars": 120})
        assert config.min_chars == 120

    def test_invalid_json_raises(self):
        with pytest.raises(RuleConfigError) as exc:
            parse_rule_config(RuleKey.MIN_IMAGES, "{min: 3")
        assert exc.value.rule_key == "min_images"

    @pytest.mark.parametrize("raw", ['{"min": "3"}', '{"min": true}', '{"min": -1}', "[1, 2]"])
    def test_unusable_values_raise(self, raw):
        with pytest.raises(RuleConfigError):
            parse_rule_config(RuleKey.MIN_IMAGES, raw)

    def test_metafield_requires_namespace_and_key(self):
        with pytest.raises(RuleConfigError):
            parse_rule_config(RuleKey.METAFIELD_REQUIRED, {"namespace": "specs"})

    def test_tag_pattern_must_compile(self):
        with pytest.raises(RuleConfigError):
            parse_rule_config(RuleKey.HAS_TAG_PATTERN, {"pattern": "size-(["})


# =============================================================================
# CONTENT RULES
# =============================================================================

class TestContentRules:

    def test_title_length_passes(self, listing):
        assert rules.min_title_length(listing, MinLengthConfig(min=10)).passed

    def test_title_length_fails_with_ai_hint(self):
        outcome = rules.min_title_length(make_listing(title="  Tee  "), MinLengthConfig(min=10))
        assert outcome.status == RuleStatus.FAILED
        assert outcome.details == "Title is 3 characters, minimum is 10."
        assert outcome.can_auto_fix
        assert outcome.fix_type == FixType.AI
        assert outcome.target_field == "title"

    def test_description_length_ignores_markup(self):
        listing = make_listing(description_html="<p><strong>Soft</strong> tee</p>")
        outcome = rules.min_description_length(listing, MinLengthConfig(min=50))
        assert not outcome.passed
        assert outcome.details == "Description is 8 characters, minimum is 50."

    def test_plain_text(self):
        assert plain_text("<p>Hello <em>world</em></p>") == "Hello world"
        assert plain_text(None) == ""

    def test_vendor_and_type_are_manual(self):
        listing = make_listing(vendor=" ", product_type="")
        vendor = rules.has_vendor(listing, NoConfig())
        product_type = rules.has_product_type(listing, NoConfig())
        assert not vendor.passed and not vendor.can_auto_fix
        assert not product_type.passed and product_type.fix_type is None


# =============================================================================
# MEDIA RULES
# =============================================================================

class TestMediaRules:

    def test_min_images_pluralizes(self):
        listing = make_listing(images=(ListingImage(id="a"),))
        outcome = rules.min_images(listing, MinCountConfig(min=3))
        assert outcome.details == "Found 1 image, minimum is 3."

    def test_alt_text_with_no_images_is_manual(self):
        outcome = rules.images_have_alt_text(make_listing(images=()), NoConfig())
        assert not outcome.passed
        assert not outcome.can_auto_fix
        assert outcome.fix_type == FixType.MANUAL

    def test_alt_text_counts_missing(self):
        listing = make_listing(images=(
            ListingImage(id="a", alt_text="Front"),
            ListingImage(id="b", alt_text="  "),
            ListingImage(id="c"),
        ))
        outcome = rules.images_have_alt_text(listing, NoConfig())
        assert outcome.details == "2 of 3 images missing alt text."
        assert outcome.fix_type == FixType.AI
        assert outcome.target_field == "image_alt"


# =============================================================================
# SEO AND ORGANIZATION RULES
# =============================================================================

class TestSeoAndOrganizationRules:

    def test_seo_title_missing(self):
        outcome = rules.seo_title(make_listing(seo_title=None), NoConfig())
        assert not outcome.passed
        assert outcome.can_auto_fix

    def test_seo_description_unset_vs_short(self):
        config = SeoDescriptionConfig(min_chars=80)
        unset = rules.seo_description(make_listing(seo_description=""), config)
        short = rules.seo_description(make_listing(seo_description="Soft tee."), config)
        assert unset.details == "SEO description is not set."
        assert short.details == "SEO description is 9 characters, need at least 80."

    def test_collections_auto_fix(self):
        outcome = rules.has_collections(make_listing(collections=()), MinCountConfig(min=1))
        assert outcome.details == "Product is in 0 collections, needs at least 1."
        assert outcome.fix_type == FixType.AUTO

    def test_tags(self):
        outcome = rules.has_tags(make_listing(tags=()), MinCountConfig(min=2))
        assert outcome.details == "Product has 0 tags, needs at least 2."

    def test_tag_pattern_is_case_insensitive(self):
        config = TagPatternConfig(pattern="^size-")
        assert rules.has_tag_pattern(make_listing(tags=("Size-M",)), config).passed
        assert not rules.has_tag_pattern(make_listing(tags=("cotton",)), config).passed

    def test_metafield_required(self):
        config = MetafieldConfig(namespace="specs", key="material")
        with_value = make_listing(metafields=(Metafield("specs", "material", "Cotton"),))
        empty = make_listing(metafields=(Metafield("specs", "material", ""),))
        assert rules.metafield_required(with_value, config).passed
        outcome = rules.metafield_required(empty, config)
        assert outcome.details == 'Metafield "specs.material" is not set.'
