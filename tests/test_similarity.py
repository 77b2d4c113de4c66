"""Tests for similarity ranking used by the listing search fallback."""

import math

import pytest

from app.services.similarity import (
    age_group_similarity, category_similarity, has_search_criteria, location_similarity,
    parse_age_range, price_similarity, rank_by_similarity, similarity_score, string_similarity,
)


def _listing(listing_id, **fields):
    data = {
        'id': listing_id,
        'name': '',
        'description': '',
        'price': None,
        'agegroup': [],
        'location': [],
        'facilities': [],
        'selected_main_categories': [],
        'selected_sub_categories': [],
        'selected_specific_items': [],
    }
    data.update(fields)
    return data


class TestAgeGroups:

    @pytest.mark.parametrize('label, expected', [
        ('25+ years', (25, 100, True)),
        ('20-25 years', (20, 25, False)),
        ('20–25 years', (20, 25, False)),
        ('7 years', (7, 7, False)),
        ('adults', None),
    ])
    def test_parse_age_range(self, label, expected):
        assert parse_age_range(label) == expected

    def test_plus_range_includes_its_lower_boundary(self):
        assert age_group_similarity(['25+ years'], ['20-25 years']) > 0

    def test_plus_range_matches_older_ranges(self):
        assert age_group_similarity(['25+ years'], ['30-40 years']) > 0

    def test_plus_range_excludes_younger_ranges(self):
        assert age_group_similarity(['25+ years'], ['5-10 years']) == 0

    def test_packed_listing_values_are_split(self):
        assert age_group_similarity(['30+ years'], ['5-10 years, 30+ years']) == 1.0


class TestPrice:

    def test_inside_range_scores_one(self):
        assert price_similarity({'min_price': 100, 'max_price': 200}, 150) == 1.0

    def test_far_outside_range_is_cut_off(self):
        # exp(-60 / 50) is about 0.30, under the 0.7 cutoff
        assert math.exp(-60 / 50) < 0.7
        assert price_similarity({'min_price': 100, 'max_price': 200}, 260) == 0.0

    def test_just_outside_range_decays(self):
        score = price_similarity({'min_price': 100, 'max_price': 200}, 210)
        assert score == pytest.approx(math.exp(-10 / 50))

    def test_missing_price_scores_zero(self):
        assert price_similarity({'min_price': 100}, None) == 0.0


class TestFieldScores:

    def test_string_similarity(self):
        assert string_similarity('riyadh', 'riyadh') == 1.0
        assert string_similarity('riyadh', 'riyad') == pytest.approx(5 / 6)
        assert string_similarity('', '') == 1.0

    def test_location_substring_is_full_match(self):
        assert location_similarity(['riyadh'], ['North Riyadh']) == 1.0

    def test_category_jaccard(self):
        assert category_similarity([1, 2], [{'id': 2}, {'id': 3}]) == pytest.approx(1 / 3)
        assert category_similarity([1], []) == 0.0


class TestRanking:

    def test_empty_criteria_returns_nothing(self):
        listings = [_listing(1, name='Pool')]
        assert not has_search_criteria({})
        assert rank_by_similarity(listings, {}) == []
        assert rank_by_similarity(listings, {'page': 2, 'limit': 8}) == []

    def test_score_is_normalized(self):
        listing = _listing(1, name='Pool', facilities=['Swimming pool'], location=['Riyadh'])
        score = similarity_score(listing, {'facilities': ['pool'], 'location': ['Riyadh']})
        assert 0 < score <= 1.0

    def test_results_sorted_by_score_then_id(self):
        listings = [
            _listing(3, location=['Jeddah']),
            _listing(1, location=['Jeddah']),
            _listing(2, location=['Riyadh']),
            _listing(4, location=['Dammam']),
        ]
        ranked = rank_by_similarity(listings, {'location': ['Jeddah']})

        ids = [listing['id'] for listing, _ in ranked]
        assert ids[:2] == [1, 3]
        assert all(score > 0.2 for _, score in ranked)
        scores = [score for _, score in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_below_threshold_is_dropped(self):
        listings = [_listing(1, agegroup=['5-10 years'])]
        assert rank_by_similarity(listings, {'agegroup': ['25+ years']}) == []
