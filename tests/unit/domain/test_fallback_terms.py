"""Tests for the fallback term registry."""

from previewspot.domain.value_objects import (
    DEFAULT_FALLBACK_TERMS,
    FallbackTermRegistry,
    FallbackTermSet,
)

TODAYS_TOP_HITS = "37i9dQZF1DXcBWIGoYBM5M"


class TestFallbackTermSet:
    def test_of_drops_blank_entries_and_keeps_order(self):
        term_set = FallbackTermSet.of(keywords=["b", " ", "a "], genres=["", "pop"])

        assert term_set.keywords == ("b", "a")
        assert term_set.genres == ("pop",)

    def test_is_empty(self):
        assert FallbackTermSet().is_empty
        assert not FallbackTermSet.of(genres=["pop"]).is_empty


class TestFallbackTermRegistry:
    """Test lookup and the miss policy."""

    def test_defaults_contain_todays_top_hits(self):
        registry = FallbackTermRegistry.with_defaults()

        assert TODAYS_TOP_HITS in registry
        assert registry[TODAYS_TOP_HITS].keywords[0] == "top hits"
        assert len(registry) == len(DEFAULT_FALLBACK_TERMS)

    def test_miss_returns_none(self):
        """Test that unknown ids never raise from get()."""
        registry = FallbackTermRegistry.with_defaults()

        assert registry.get("unknown-playlist") is None
        assert "unknown-playlist" not in registry

    def test_lookup_ignores_surrounding_whitespace(self):
        registry = FallbackTermRegistry.with_defaults()

        assert registry.get(f"  {TODAYS_TOP_HITS}\n") is registry[TODAYS_TOP_HITS]

    def test_register_extends_without_touching_defaults(self):
        registry = FallbackTermRegistry.with_defaults()
        registry.register("mine", FallbackTermSet.of(keywords=["indie"]))

        assert registry.get("mine").keywords == ("indie",)
        assert "mine" not in FallbackTermRegistry.with_defaults()
        assert "mine" not in DEFAULT_FALLBACK_TERMS
