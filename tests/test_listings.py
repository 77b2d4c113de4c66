"""Tests for listing reads, search, aggregates and their translated cache."""

import json

from app import db
from app.models import BookingStatus, ReviewStatus
from app.services import cache_keys
from app.services.listings import compute_listing_stats


def _cached(fake_redis, key):
    raw = fake_redis.data.get(key)
    return json.loads(raw) if raw else None


class TestListingDetail:

    def test_source_language_bypasses_cache(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Swim Club')

        response = client.get(f'/api/listings/{listing.id}?lang=en')

        assert response.status_code == 200
        assert response.get_json()['name'] == 'Swim Club'
        assert fake_redis.data == {}
        assert provider.calls == []

    def test_translated_read_is_cached_in_envelope(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Swim Club', location=['Riyadh'])

        response = client.get(f'/api/listings/{listing.id}?lang=ar')

        assert response.status_code == 200
        data = response.get_json()
        assert data['name'] == '[ar] Swim Club'
        assert data['location'] == ['[ar] Riyadh']
        entry = _cached(fake_redis, cache_keys.listing_key(listing.id, 'ar'))
        assert entry['schema'] == 1
        assert entry['data']['name'] == '[ar] Swim Club'
        assert entry['fingerprint']['total_reviews'] == 0

    def test_second_read_is_served_from_cache(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Swim Club')
        key = cache_keys.listing_key(listing.id, 'ar')
        client.get(f'/api/listings/{listing.id}?lang=ar')

        entry = _cached(fake_redis, key)
        entry['data']['name'] = 'from cache'
        fake_redis.data[key] = json.dumps(entry)

        response = client.get(f'/api/listings/{listing.id}?lang=ar')
        assert response.get_json()['name'] == 'from cache'

    def test_stale_fingerprint_is_a_miss(self, client, fake_redis, provider, test_user,
                                         make_listing, make_booking, make_review):
        listing = make_listing()
        key = cache_keys.listing_key(listing.id, 'ar')
        client.get(f'/api/listings/{listing.id}?lang=ar')
        entry = _cached(fake_redis, key)
        entry['data']['name'] = 'stale'
        fake_redis.data[key] = json.dumps(entry)

        # Written straight to the store, so no fan-out has run
        booking = make_booking(test_user, listing, status=BookingStatus.CONFIRMED)
        make_review(booking, rating=5)

        data = client.get(f'/api/listings/{listing.id}?lang=ar').get_json()
        assert data['name'] != 'stale'
        assert data['total_reviews'] == 1
        assert data['total_bookings'] == 1

    def test_schema_mismatch_is_a_miss(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Swim Club')
        key = cache_keys.listing_key(listing.id, 'ar')
        client.get(f'/api/listings/{listing.id}?lang=ar')
        entry = _cached(fake_redis, key)
        entry['schema'] = 0
        entry['data']['name'] = 'old shape'
        fake_redis.data[key] = json.dumps(entry)

        assert client.get(f'/api/listings/{listing.id}?lang=ar').get_json()['name'] == '[ar] Swim Club'

    def test_disabled_gateway_serves_source_without_caching(self, client, fake_redis, make_listing):
        listing = make_listing(name='Swim Club')

        response = client.get(f'/api/listings/{listing.id}?lang=ar')

        assert response.status_code == 200
        assert response.get_json()['name'] == 'Swim Club'
        assert fake_redis.data == {}

    def test_redis_down_falls_back_to_store(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Swim Club')
        fake_redis.fail = True

        response = client.get(f'/api/listings/{listing.id}?lang=ar')

        assert response.status_code == 200
        assert response.get_json()['name'] == '[ar] Swim Club'

    def test_unknown_listing_is_localized_404(self, client, db_session):
        response = client.get('/api/listings/99999?lang=ar')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'القائمة غير موجودة'

        response = client.get('/api/listings/99999')
        assert response.get_json()['error'] == 'Listing not found'

    def test_accept_language_selects_arabic(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Swim Club')
        response = client.get(f'/api/listings/{listing.id}', headers={'Accept-Language': 'ar'})
        assert response.get_json()['name'] == '[ar] Swim Club'


class TestAggregates:

    def test_stats_only_count_accepted_reviews(self, test_user, make_listing, make_booking, make_review):
        listing = make_listing()
        for rating, status in ((5, ReviewStatus.ACCEPTED), (4, ReviewStatus.ACCEPTED),
                               (1, ReviewStatus.PENDING)):
            booking = make_booking(test_user, listing, status=BookingStatus.CONFIRMED)
            make_review(booking, rating=rating, status=status)

        stats = compute_listing_stats([listing.id])[listing.id]

        assert stats['total_reviews'] == 2
        assert stats['average_rating'] == 4.5
        assert stats['rating_distribution'] == {'5': 1, '4': 1, '3': 0, '2': 0, '1': 0}
        assert stats['total_bookings'] == 3
        assert stats['confirmed_bookings'] == 3

    def test_average_rounds_half_up(self, test_user, make_listing, make_booking, make_review):
        listing = make_listing()
        for rating in (5, 4, 4, 4):
            make_review(make_booking(test_user, listing), rating=rating)

        assert compute_listing_stats([listing.id])[listing.id]['average_rating'] == 4.3

    def test_listing_without_activity(self, make_listing):
        listing = make_listing()
        stats = compute_listing_stats([listing.id])[listing.id]
        assert stats['average_rating'] == 0
        assert stats['total_bookings'] == 0


class TestListingSearch:

    def test_pagination_metadata(self, client, make_listing):
        for _ in range(3):
            make_listing()

        data = client.get('/api/listings?limit=2&page=1').get_json()

        assert len(data['listings']) == 2
        assert data['total_count'] == 3
        assert data['total_pages'] == 2
        assert data['has_next_page'] is True
        assert data['has_prev_page'] is False
        assert data['using_similarity_search'] is False

    def test_inactive_listings_are_hidden(self, client, make_listing):
        make_listing(is_active=False)
        assert client.get('/api/listings').get_json()['total_count'] == 0

    def test_exact_filters(self, client, make_listing):
        pool = make_listing(name='Aqua Park', description='Outdoor water park',
                            facilities=['Swimming pool'], location=['Jeddah'], price=90)
        make_listing(name='Gym Hall', description='Weights and cardio',
                     facilities=['Gym'], location=['Riyadh'], price=300)

        data = client.get('/api/listings?location=Jeddah&max_price=100').get_json()
        assert [l['id'] for l in data['listings']] == [pool.id]

        data = client.get('/api/listings?search=aqua').get_json()
        assert [l['id'] for l in data['listings']] == [pool.id]

    def test_plus_age_filter_matches_year_spellings(self, client, make_listing):
        adults = make_listing(agegroup=['18+ years'])
        make_listing(agegroup=['5-10 years'])

        data = client.get('/api/listings', query_string={'agegroup': '18+ years'}).get_json()
        assert [l['id'] for l in data['listings']] == [adults.id]

    def test_category_filter(self, client, make_listing, make_category):
        category = make_category()
        tagged = make_listing()
        tagged.selected_main_categories = [category]
        db.session.commit()
        make_listing()

        data = client.get(f'/api/listings?main_category_ids={category.id}').get_json()
        assert [l['id'] for l in data['listings']] == [tagged.id]
        assert data['listings'][0]['selected_main_categories'][0]['name'] == 'Sports'

    def test_rating_filter(self, client, test_user, make_listing, make_booking, make_review):
        good = make_listing()
        poor = make_listing()
        make_review(make_booking(test_user, good), rating=5)
        make_review(make_booking(test_user, poor), rating=2)

        data = client.get('/api/listings?rating=4').get_json()
        assert [l['id'] for l in data['listings']] == [good.id]

    def test_zero_matches_fall_back_to_similarity(self, client, make_listing):
        near = make_listing(location=['Riyadh North'], facilities=['Parking'])
        make_listing(location=['Dammam'], facilities=['Library'])

        data = client.get('/api/listings', query_string={'location': 'Riyadh North Side'}).get_json()

        assert data['using_similarity_search'] is True
        assert data['listings'][0]['id'] == near.id
        assert data['listings'][0]['similarity_score'] > 0.2

    def test_no_criteria_never_falls_back(self, client, db_session):
        data = client.get('/api/listings').get_json()
        assert data['listings'] == []
        assert data['using_similarity_search'] is False

    def test_translated_page_caches_each_listing_and_the_page(self, client, fake_redis, provider, make_listing):
        listings = [make_listing(name=f'Club {i}') for i in range(2)]

        data = client.get('/api/listings?lang=ar').get_json()

        assert {l['name'] for l in data['listings']} == {'[ar] Club 0', '[ar] Club 1'}
        for listing in listings:
            assert cache_keys.listing_key(listing.id, 'ar') in fake_redis.data
        assert cache_keys.collection_key('listing', {'page': 1, 'limit': 8}, 'ar') in fake_redis.data

    def test_filtered_translated_page_reuses_listing_snapshots(self, client, fake_redis, provider, make_listing):
        listing = make_listing(name='Aqua Park', location=['Jeddah'])
        client.get(f'/api/listings/{listing.id}?lang=ar')
        key = cache_keys.listing_key(listing.id, 'ar')
        entry = _cached(fake_redis, key)
        entry['data']['name'] = 'snapshot'
        fake_redis.data[key] = json.dumps(entry)

        data = client.get('/api/listings?lang=ar&location=Jeddah').get_json()
        assert data['listings'][0]['name'] == 'snapshot'
