import pytest

from taalmeet.domain.partners.models import FilterState


def test_defaults_are_inactive():
	filters = FilterState()
	assert filters.max_distance_km == 50.0
	assert filters.availability == "all"
	assert not filters.has_active_filters()


def test_updates_return_new_values():
	base = FilterState()
	narrowed = base.with_distance(10).toggle_language("Dutch")
	assert base.languages == frozenset()
	assert narrowed.languages == frozenset({"Dutch"})
	assert narrowed.has_active_filters()
	assert narrowed.toggle_language("Dutch").languages == frozenset()


def test_distance_must_be_positive():
	with pytest.raises(ValueError):
		FilterState().with_distance(0)


def test_min_match_score_is_clamped():
	assert FilterState().with_min_match_score(140).min_match_score == 100
	assert FilterState().with_min_match_score(-5).min_match_score == 0


def test_reset_restores_defaults():
	busy = FilterState().with_search("anna").with_meeting_type("virtual").with_availability("now")
	assert busy.has_active_filters()
	assert busy.reset() == FilterState()


def test_cache_key_ignores_language_order_and_display_only_fields():
	a = FilterState(languages=frozenset({"Spanish", "Dutch"}), search_query="x")
	b = FilterState(languages=frozenset({"dutch", "spanish"}))
	assert a.cache_key() == b.cache_key() == "d=50|l=dutch,spanish|a=all"
