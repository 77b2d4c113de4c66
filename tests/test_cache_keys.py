"""Tests for cache key naming."""

from app.services import cache_keys


def test_singular_keys():
    assert cache_keys.listing_key(12, 'ar') == 'listing:12:ar'
    assert cache_keys.booking_key(3, 'ar') == 'booking:3:ar'
    assert cache_keys.review_key(4, 'ar') == 'review:4:ar'
    assert cache_keys.notification_key(5, 'ar') == 'notification:5:ar'
    assert cache_keys.user_key(6, 'ar') == 'user:6:ar'
    assert cache_keys.user_uid_key('abc', 'ar') == 'user:uid:abc:ar'


def test_scoped_collection_keys():
    assert cache_keys.user_collection_key('abc', 'bookings', 'ar') == 'user:abc:bookings:ar'
    assert cache_keys.listing_collection_key(7, 'reviews', 'ar') == 'listing:7:reviews:ar'


def test_category_keys():
    assert cache_keys.category_key(1, 2, 'ar') == 'category:1:2:ar'
    assert cache_keys.category_pattern(1, 'ar') == 'category:1:*:ar'
    assert cache_keys.categories_formatted_key('ar') == 'categories:all_formatted:ar'


def test_collection_key_without_filters():
    assert cache_keys.collection_key('listing', None, 'ar') == 'listings:all:ar'
    assert cache_keys.collection_key('listing', {}, 'ar') == 'listings:all:ar'
    assert cache_keys.users_all_key('ar') == 'users:all:ar'


def test_filter_hash_is_order_independent():
    first = cache_keys.collection_key('listing', {'page': 1, 'limit': 8}, 'ar')
    second = cache_keys.collection_key('listing', {'limit': 8, 'page': 1}, 'ar')
    assert first == second == 'listings:all{"limit":8,"page":1}:ar'


def test_filter_hash_drops_empty_values():
    assert cache_keys.filter_hash({'search': '', 'location': [], 'price': None}) == ''
    assert cache_keys.filter_hash({'search': 'pool', 'location': []}) == '{"search":"pool"}'


def test_collection_pattern_matches_every_filtered_variant():
    import fnmatch
    pattern = cache_keys.collection_pattern('booking', 'ar')
    assert pattern == 'bookings:all*:ar'
    assert fnmatch.fnmatchcase(cache_keys.collection_key('booking', None, 'ar'), pattern)
    assert fnmatch.fnmatchcase(cache_keys.collection_key('booking', {'status': 'PENDING'}, 'ar'), pattern)
    assert not fnmatch.fnmatchcase(cache_keys.collection_key('booking', None, 'en'), pattern)


def test_dependents_key():
    assert cache_keys.dependents_key('listing', 12, 'ar') == 'deps:listing:12:ar'
