"""Listing reads and writes.

Reads compute review/booking stats from the database on every request and
serve non-source languages through cached translated snapshots. A search
that matches nothing falls back to similarity ranking.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.orm import selectinload, joinedload

from app import db
from app.models import (
    Listing, Review, ReviewStatus, Booking, BookingStatus,
    MainCategory, SubCategory, SpecificItem,
)
from app.services import cache_keys
from app.services.cache_aside import (
    Snapshot, is_source_language, read_through, resolve_many,
)
from app.services.fanout import get_fanout
from app.services.redis_client import get_cache
from app.services.similarity import as_list, has_search_criteria, rank_by_similarity, parse_age_range
from app.services.translation import get_gateway
from app.services.translators import translate_listing, to_source_language
from app.utils.errors import NotFoundError, ValidationError
from app.utils.i18n import translate_message
from app.utils.validation import parse_id, parse_id_list, parse_pagination, page_meta, require_fields

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 8

TEXT_FIELDS = ('name', 'description', 'gender', 'discount', 'main_image')
LIST_FIELDS = ('agegroup', 'location', 'facilities', 'operating_hours', 'sub_images')
CATEGORY_FIELDS = (
    ('main_category_ids', 'selected_main_categories', MainCategory),
    ('sub_category_ids', 'selected_sub_categories', SubCategory),
    ('specific_item_ids', 'selected_specific_items', SpecificItem),
)


# Stats

def _empty_stats():
    return {
        'average_rating': 0,
        'total_reviews': 0,
        'rating_distribution': {'5': 0, '4': 0, '3': 0, '2': 0, '1': 0},
        'total_bookings': 0,
        'confirmed_bookings': 0,
    }


def _round_rating(value) -> float:
    return float(Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def compute_listing_stats(listing_ids) -> dict:
    """
    Derived aggregates per listing, never stored.

    Ratings only count ACCEPTED reviews; the average is rounded half-up to
    one decimal. Bookings count every status, confirmed counts CONFIRMED.
    """
    listing_ids = list(listing_ids)
    stats = {listing_id: _empty_stats() for listing_id in listing_ids}
    if not listing_ids:
        return stats

    rating_rows = db.session.query(
        Review.listing_id, Review.rating, func.count(Review.id)
    ).filter(
        Review.listing_id.in_(listing_ids),
        Review.status == ReviewStatus.ACCEPTED
    ).group_by(Review.listing_id, Review.rating).all()

    rating_sums = {}
    for listing_id, rating, count in rating_rows:
        entry = stats[listing_id]
        entry['total_reviews'] += count
        rating_sums[listing_id] = rating_sums.get(listing_id, 0) + rating * count
        key = str(rating)
        if key in entry['rating_distribution']:
            entry['rating_distribution'][key] += count

    for listing_id, total in rating_sums.items():
        reviews = stats[listing_id]['total_reviews']
        stats[listing_id]['average_rating'] = _round_rating(total / reviews) if reviews else 0

    booking_rows = db.session.query(
        Booking.listing_id, Booking.status, func.count(Booking.id)
    ).filter(
        Booking.listing_id.in_(listing_ids)
    ).group_by(Booking.listing_id, Booking.status).all()

    for listing_id, status, count in booking_rows:
        stats[listing_id]['total_bookings'] += count
        if status == BookingStatus.CONFIRMED:
            stats[listing_id]['confirmed_bookings'] += count

    return stats


def listing_fingerprint(listing, stats) -> dict:
    return {
        'updated_at': listing.updated_at.isoformat(),
        'total_reviews': stats['total_reviews'],
        'total_bookings': stats['total_bookings'],
    }


# Serialization

def _with_user(summary, user):
    summary['user'] = user.to_summary() if user else None
    return summary


def serialize_listing(listing, stats=None) -> dict:
    """Listing with its accepted reviews, bookings and derived stats."""
    data = listing.to_dict()
    data['reviews'] = [
        _with_user(review.to_summary(), review.user)
        for review in sorted(listing.reviews, key=lambda r: r.id)
        if review.status == ReviewStatus.ACCEPTED
    ]
    data['bookings'] = [
        _with_user(booking.to_summary(), booking.user)
        for booking in sorted(listing.bookings, key=lambda b: b.id)
    ]
    data.update(stats or _empty_stats())
    return data


def listing_dependencies(record) -> list:
    """Entities embedded in a serialized listing, for the reverse index."""
    deps = [('listing', record['id'])]
    for review in record.get('reviews') or []:
        deps.append(('review', review['id']))
        if review.get('user'):
            deps.append(('user', review['user']['id']))
    for booking in record.get('bookings') or []:
        deps.append(('booking', booking['id']))
        if booking.get('user'):
            deps.append(('user', booking['user']['id']))
    for category in record.get('selected_main_categories') or []:
        deps.append(('category', category['id']))
    return deps


def _load_listings(listing_ids):
    listings = Listing.query.options(
        selectinload(Listing.reviews).joinedload(Review.user),
        selectinload(Listing.bookings).joinedload(Booking.user),
    ).filter(Listing.id.in_(listing_ids)).all()
    return {listing.id: listing for listing in listings}


# Reads

def listing_snapshot(listing_id, lang):
    """Fresh translated snapshot of one listing, or None if there is nothing to cache."""
    if not get_gateway().enabled:
        return None
    listing = db.session.get(Listing, listing_id)
    if listing is None:
        return None
    stats = compute_listing_stats([listing.id])[listing.id]
    record = serialize_listing(listing, stats)
    return Snapshot(
        cache_keys.listing_key(listing.id, lang),
        translate_listing(record, lang),
        listing_fingerprint(listing, stats),
        listing_dependencies(record),
    )


def get_listing(listing_id, lang='en') -> dict:
    listing_id = parse_id(listing_id)
    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise NotFoundError('listing_not_found')

    stats = compute_listing_stats([listing_id])[listing_id]
    if is_source_language(lang):
        return serialize_listing(listing, stats)

    return read_through(
        cache_keys.listing_key(listing_id, lang), lang,
        load=lambda: serialize_listing(listing, stats),
        translate=translate_listing,
        fingerprint=listing_fingerprint(listing, stats),
        depends_on=listing_dependencies,
    )


def normalize_listing_filters(raw: dict) -> dict:
    """Canonical filter dict: list values as lists, id lists as ints."""
    filters = {}
    if raw.get('search'):
        filters['search'] = str(raw['search']).strip()
    for key in ('location', 'facilities', 'agegroup'):
        values = as_list(raw.get(key))
        if values:
            filters[key] = [str(v).strip() for v in values if str(v).strip()]
    for key in ('min_price', 'max_price', 'price', 'rating'):
        value = raw.get(key)
        if value not in (None, ''):
            try:
                filters[key] = float(value)
            except (TypeError, ValueError):
                raise ValidationError('validation_failed')
    for key, _, _ in CATEGORY_FIELDS:
        ids = parse_id_list(raw.get(key))
        if ids:
            filters[key] = ids
    return {k: v for k, v in filters.items() if v not in (None, '', [])}


def _split_values(values):
    return {
        part.strip().lower()
        for value in values or []
        for part in str(value).split(',')
        if part.strip()
    }


def _expanded_age_groups(groups):
    """Requested age labels plus the "N+ year(s)" spellings of plus ranges."""
    expanded = set()
    for group in groups:
        label = str(group).strip().lower()
        expanded.add(label)
        parsed = parse_age_range(label)
        if parsed and parsed[2]:
            expanded.add(f"{parsed[0]}+ year")
            expanded.add(f"{parsed[0]}+ years")
    return expanded


def _matches(listing, filters) -> bool:
    search = filters.get('search')
    if search:
        term = search.lower()
        in_text = term in (listing.name or '').lower() or term in (listing.description or '').lower()
        in_lists = term in _split_values(listing.location) or term in _split_values(listing.facilities)
        if not (in_text or in_lists):
            return False

    if 'location' in filters and not _split_values(filters['location']) & _split_values(listing.location):
        return False
    if 'facilities' in filters and not _split_values(filters['facilities']) & _split_values(listing.facilities):
        return False
    if 'agegroup' in filters and not _expanded_age_groups(filters['agegroup']) & _split_values(listing.agegroup):
        return False
    return True


def _exact_matches(filters):
    query = Listing.query.filter(Listing.is_active.is_(True))

    if filters.get('min_price') is not None:
        query = query.filter(Listing.price >= filters['min_price'])
    if filters.get('max_price') is not None:
        query = query.filter(Listing.price <= filters['max_price'])
    if filters.get('price') is not None:
        query = query.filter(Listing.price == filters['price'])

    for key, relation, model in CATEGORY_FIELDS:
        if filters.get(key):
            query = query.filter(getattr(Listing, relation).any(model.id.in_(filters[key])))

    candidates = [listing for listing in query.order_by(Listing.id.asc()).all() if _matches(listing, filters)]

    stats = compute_listing_stats([listing.id for listing in candidates])
    if filters.get('rating') is not None:
        candidates = [l for l in candidates if stats[l.id]['average_rating'] >= filters['rating']]
    return candidates, stats


def _resolve_page(listings, stats, lang):
    if not listings:
        return []
    ids = [listing.id for listing in listings]
    loaded = _load_listings(ids)

    if is_source_language(lang):
        return [serialize_listing(loaded[i], stats[i]) for i in ids if i in loaded]

    fingerprints = {i: listing_fingerprint(loaded[i], stats[i]) for i in ids if i in loaded}
    return resolve_many(
        ids, lang,
        key_for=lambda listing_id: cache_keys.listing_key(listing_id, lang),
        load_many=lambda missing: {i: serialize_listing(loaded[i], stats[i]) for i in missing if i in loaded},
        translate=translate_listing,
        fingerprints=fingerprints,
        depends_on=listing_dependencies,
    )


def get_listings(raw_filters=None, lang='en') -> dict:
    """
    Paginated active listings matching the filters.

    When nothing matches and the filters carry real criteria, every active
    listing is ranked by similarity instead and the response is flagged with
    ``using_similarity_search``.
    """
    raw_filters = raw_filters or {}
    page, limit = parse_pagination(raw_filters, DEFAULT_PAGE_SIZE)
    filters = normalize_listing_filters(raw_filters)
    offset = (page - 1) * limit

    # The unfiltered listing page is also cached as a whole
    collection_key = None
    if not filters and not is_source_language(lang):
        collection_key = cache_keys.collection_key('listing', {'page': page, 'limit': limit}, lang)

    matches, stats = _exact_matches(filters)
    using_similarity = False
    scores = {}

    if not matches and has_search_criteria(filters):
        logger.info("No exact listing matches, falling back to similarity search")
        using_similarity = True
        active = Listing.query.filter(Listing.is_active.is_(True)).order_by(Listing.id.asc()).all()
        by_id = {listing.id: listing for listing in active}
        ranked = rank_by_similarity([listing.to_dict() for listing in active], filters)
        matches = [by_id[record['id']] for record, _ in ranked]
        scores = {record['id']: score for record, score in ranked}
        stats = compute_listing_stats(list(scores))
        logger.info(f"Similarity search kept {len(matches)} of {len(active)} listings")

    page_items = matches[offset:offset + limit]

    collection_fingerprint = None
    if collection_key:
        collection_fingerprint = {
            'total_count': len(matches),
            'listings': [listing_fingerprint(l, stats[l.id]) | {'id': l.id} for l in page_items],
        }
        cached = get_cache().get_entry(collection_key, collection_fingerprint)
        if cached is not None:
            return cached

    listings = _resolve_page(page_items, stats, lang)
    if using_similarity:
        listings = [dict(item, similarity_score=round(scores.get(item['id'], 0), 4)) for item in listings]

    response = {'listings': listings, **page_meta(len(matches), page, limit),
                'using_similarity_search': using_similarity}

    if collection_key and get_gateway().enabled:
        get_cache().set_entry(
            collection_key, response, collection_fingerprint,
            [('listing', l.id) for l in page_items]
        )
    return response


# Writes

def _listing_fields(data: dict) -> dict:
    fields = {}
    for key in TEXT_FIELDS:
        if key in data:
            fields[key] = data[key] or None
    for key in LIST_FIELDS:
        if key in data:
            fields[key] = [str(v) for v in as_list(data[key])]
    if 'price' in data:
        if data['price'] in (None, ''):
            fields['price'] = None
        else:
            try:
                fields['price'] = float(data['price'])
            except (TypeError, ValueError):
                raise ValidationError('validation_failed')
    if 'is_active' in data:
        fields['is_active'] = bool(data['is_active'])
    return fields


def _apply_categories(listing, data):
    for key, relation, model in CATEGORY_FIELDS:
        if key in data:
            ids = parse_id_list(data[key])
            rows = model.query.filter(model.id.in_(ids)).all() if ids else []
            setattr(listing, relation, rows)


def create_listing(data: dict, lang='en') -> dict:
    require_fields(data, 'name')
    fields = to_source_language('listing', _listing_fields(data), lang)

    listing = Listing(**fields)
    _apply_categories(listing, data)
    db.session.add(listing)
    db.session.commit()
    logger.info(f"Created listing {listing.id}")

    get_fanout().enqueue('listing', listing.id, 'create')
    return {
        'message': translate_message('listing_created', lang),
        'id': listing.id,
        'listing': serialize_listing(listing),
        'status': 'processing',
    }


def update_listing(listing_id, data: dict, lang='en') -> dict:
    listing_id = parse_id(listing_id)
    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise NotFoundError('listing_not_found')

    fields = to_source_language('listing', _listing_fields(data), lang)
    for key, value in fields.items():
        setattr(listing, key, value)
    _apply_categories(listing, data)
    db.session.commit()
    logger.info(f"Updated listing {listing_id}")

    get_fanout().enqueue('listing', listing_id, 'update')
    return {
        'message': translate_message('listing_updated', lang),
        'id': listing_id,
        'listing': serialize_listing(listing, compute_listing_stats([listing_id])[listing_id]),
    }


def listing_dependents(listing) -> dict:
    """Rows whose cached snapshots embed this listing."""
    bookings = Booking.query.filter_by(listing_id=listing.id).all()
    reviews = Review.query.filter_by(listing_id=listing.id).all()
    uids = {b.user.uid for b in bookings if b.user} | {r.user.uid for r in reviews if r.user}
    return {
        'booking_ids': [b.id for b in bookings],
        'review_ids': [r.id for r in reviews],
        'user_uids': sorted(uids),
    }


def delete_listing(listing_id, lang='en') -> dict:
    listing_id = parse_id(listing_id)
    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise NotFoundError('listing_not_found')

    # Collected before the cascade removes them
    payload = listing_dependents(listing)
    db.session.delete(listing)
    db.session.commit()
    logger.info(f"Deleted listing {listing_id}")

    get_fanout().enqueue('listing', listing_id, 'delete', payload)
    return {'message': translate_message('listing_deleted', lang), 'id': listing_id}
