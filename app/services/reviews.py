"""Review reads and writes.

A review is written against one of the reviewer's own bookings once that
booking is confirmed (or completed) and paid, and only once per booking.
"""

import logging

from app import db
from app.models import Review, ReviewStatus, Booking, BookingStatus, PaymentMethod, Listing, User
from app.services import cache_keys
from app.services.cache_aside import Snapshot, is_source_language, read_through, resolve_many
from app.services.fanout import get_fanout
from app.services.translation import get_gateway
from app.services.translators import translate_review, to_source_language
from app.utils.errors import NotFoundError, PermissionDeniedError, ValidationError
from app.utils.i18n import translate_message
from app.utils.validation import parse_id, parse_pagination, page_meta, require_fields

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

# Moderation labels accepted from Arabic admin screens
STATUS_LABELS = {
    'مقبول': ReviewStatus.ACCEPTED,
    'مرفوض': ReviewStatus.REJECTED,
    'قيد المراجعة': ReviewStatus.PENDING,
    'معلق': ReviewStatus.PENDING,
}


def normalize_status(value) -> str:
    if value is None:
        return None
    label = str(value).strip()
    status = STATUS_LABELS.get(label, label.upper())
    if status not in ReviewStatus.ALL:
        raise ValidationError('invalid_status')
    return status


def parse_rating(value) -> int:
    try:
        rating = int(value)
    except (TypeError, ValueError):
        raise ValidationError('invalid_rating')
    if isinstance(value, float) and value != rating:
        raise ValidationError('invalid_rating')
    if not 1 <= rating <= 5:
        raise ValidationError('invalid_rating')
    return rating


def serialize_review(review) -> dict:
    return review.to_dict()


def review_fingerprint(review) -> dict:
    return {'updated_at': review.updated_at.isoformat()}


def review_dependencies(record) -> list:
    deps = [('review', record['id']), ('listing', record['listing_id']), ('user', record['user_id'])]
    if record.get('booking_id'):
        deps.append(('booking', record['booking_id']))
    return deps


def _translate_all(records, lang):
    return [translate_review(record, lang) for record in records]


def _collection_fingerprint(reviews) -> list:
    return [[r.id, r.updated_at.isoformat()] for r in reviews]


def _collection_dependencies(records):
    return [dep for record in records for dep in review_dependencies(record)]


def _ordered(query):
    return query.order_by(Review.created_at.desc(), Review.id.desc())


# Snapshots

def review_snapshot(review_id, lang):
    if not get_gateway().enabled:
        return None
    review = db.session.get(Review, review_id)
    if review is None:
        return None
    record = serialize_review(review)
    return Snapshot(
        cache_keys.review_key(review.id, lang),
        translate_review(record, lang),
        review_fingerprint(review),
        review_dependencies(record),
    )


def user_reviews_snapshot(uid, lang):
    if not get_gateway().enabled:
        return None
    user = User.query.filter_by(uid=uid).first()
    if user is None:
        return None
    reviews = _ordered(Review.query.filter_by(user_id=user.id)).all()
    records = [serialize_review(r) for r in reviews]
    return Snapshot(
        cache_keys.user_collection_key(uid, 'reviews', lang),
        _translate_all(records, lang),
        _collection_fingerprint(reviews),
        [('user', user.id)] + _collection_dependencies(records),
    )


# Reads

def get_review(review_id, lang='en') -> dict:
    review_id = parse_id(review_id)
    review = db.session.get(Review, review_id)
    if review is None:
        raise NotFoundError('review_not_found')

    if is_source_language(lang):
        return serialize_review(review)

    return read_through(
        cache_keys.review_key(review_id, lang), lang,
        load=lambda: serialize_review(review),
        translate=translate_review,
        fingerprint=review_fingerprint(review),
        depends_on=review_dependencies,
    )


def get_reviews(filters=None, lang='en') -> dict:
    filters = filters or {}
    page, limit = parse_pagination(filters, DEFAULT_PAGE_SIZE)

    query = Review.query
    if filters.get('status'):
        query = query.filter(Review.status == normalize_status(filters['status']))
    if filters.get('listing_id'):
        query = query.filter(Review.listing_id == parse_id(filters['listing_id']))
    if filters.get('rating'):
        query = query.filter(Review.rating == parse_rating(filters['rating']))

    total = query.count()
    reviews = _ordered(query).offset((page - 1) * limit).limit(limit).all()

    if is_source_language(lang):
        items = [serialize_review(r) for r in reviews]
    else:
        by_id = {r.id: r for r in reviews}
        items = resolve_many(
            [r.id for r in reviews], lang,
            key_for=lambda review_id: cache_keys.review_key(review_id, lang),
            load_many=lambda missing: {i: serialize_review(by_id[i]) for i in missing},
            translate=translate_review,
            fingerprints={r.id: review_fingerprint(r) for r in reviews},
            depends_on=review_dependencies,
        )
    return {'reviews': items, **page_meta(total, page, limit)}


def get_user_reviews(uid, lang='en') -> list:
    user = User.query.filter_by(uid=uid).first()
    if user is None:
        raise NotFoundError('user_not_found')
    reviews = _ordered(Review.query.filter_by(user_id=user.id)).all()

    if is_source_language(lang):
        return [serialize_review(r) for r in reviews]

    return read_through(
        cache_keys.user_collection_key(uid, 'reviews', lang), lang,
        load=lambda: [serialize_review(r) for r in reviews],
        translate=_translate_all,
        fingerprint=_collection_fingerprint(reviews),
        depends_on=lambda records: [('user', user.id)] + _collection_dependencies(records),
    )


def get_listing_reviews(listing_id, lang='en') -> list:
    """Accepted reviews shown on a listing page."""
    listing_id = parse_id(listing_id)
    if db.session.get(Listing, listing_id) is None:
        raise NotFoundError('listing_not_found')
    reviews = _ordered(Review.query.filter_by(listing_id=listing_id, status=ReviewStatus.ACCEPTED)).all()

    if is_source_language(lang):
        return [serialize_review(r) for r in reviews]

    return read_through(
        cache_keys.listing_collection_key(listing_id, 'reviews', lang), lang,
        load=lambda: [serialize_review(r) for r in reviews],
        translate=_translate_all,
        fingerprint=_collection_fingerprint(reviews),
        depends_on=lambda records: [('listing', listing_id)] + _collection_dependencies(records),
    )


# Writes

def create_review(data: dict, user, lang='en') -> dict:
    require_fields(data, 'booking_id', 'rating')
    booking = db.session.get(Booking, parse_id(data['booking_id']))
    if booking is None:
        raise NotFoundError('booking_not_found')
    if booking.user_id != user.id:
        raise PermissionDeniedError('not_booking_owner')
    if booking.status in (BookingStatus.PENDING, BookingStatus.CANCELLED):
        raise ValidationError('booking_not_reviewable')
    if booking.payment_method != PaymentMethod.PAID:
        raise ValidationError('booking_not_paid')
    if booking.review is not None:
        raise ValidationError('review_exists')

    rating = parse_rating(data['rating'])
    fields = to_source_language('review', {'comment': data.get('comment') or None}, lang)

    review = Review(
        user_id=user.id,
        listing_id=booking.listing_id,
        booking_id=booking.id,
        rating=rating,
        comment=fields['comment'],
        status=ReviewStatus.PENDING,
    )
    db.session.add(review)
    db.session.commit()
    logger.info(f"Created review {review.id} for booking {booking.id}")

    get_fanout().enqueue('review', review.id, 'create', {'user_uid': user.uid})
    return {
        'message': translate_message('review_created', lang),
        'id': review.id,
        'review': serialize_review(review),
    }


def update_review(review_id, data: dict, lang='en', actor=None) -> dict:
    """
    Owners may change rating and comment; moderation may change status.
    Status accepts the Arabic moderation labels as well as the English codes.
    """
    review_id = parse_id(review_id)
    review = db.session.get(Review, review_id)
    if review is None:
        raise NotFoundError('review_not_found')

    editing_content = 'rating' in data or 'comment' in data
    if editing_content and actor is not None and actor.id != review.user_id:
        raise PermissionDeniedError('not_review_owner')

    previous_status = review.status
    if 'rating' in data:
        review.rating = parse_rating(data['rating'])
    if 'comment' in data:
        review.comment = to_source_language('review', {'comment': data['comment'] or None}, lang)['comment']
    if data.get('status'):
        review.status = normalize_status(data['status'])
    db.session.commit()
    logger.info(f"Updated review {review_id}")

    get_fanout().enqueue('review', review_id, 'update', {
        'user_uid': review.user.uid,
        'status_changed': review.status != previous_status,
    })
    return {
        'message': translate_message('review_updated', lang),
        'id': review_id,
        'review': serialize_review(review),
    }


def delete_review(review_id, lang='en', actor=None) -> dict:
    review_id = parse_id(review_id)
    review = db.session.get(Review, review_id)
    if review is None:
        raise NotFoundError('review_not_found')
    if actor is not None and actor.id != review.user_id:
        raise PermissionDeniedError('not_review_owner')

    payload = {
        'user_uid': review.user.uid,
        'listing_id': review.listing_id,
        'booking_id': review.booking_id,
    }
    db.session.delete(review)
    db.session.commit()
    logger.info(f"Deleted review {review_id}")

    get_fanout().enqueue('review', review_id, 'delete', payload)
    return {'message': translate_message('review_deleted', lang), 'id': review_id}
