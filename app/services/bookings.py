"""Booking reads and writes."""

import logging
from datetime import datetime

from app import db
from app.models import Booking, BookingStatus, Listing, User
from app.services import cache_keys
from app.services.cache_aside import Snapshot, is_source_language, read_through, resolve_many
from app.services.fanout import get_fanout
from app.services.translation import get_gateway
from app.services.translators import translate_booking, to_source_language
from app.utils.errors import NotFoundError, ValidationError
from app.utils.i18n import translate_message
from app.utils.validation import parse_id, parse_pagination, page_meta, require_fields

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

TEXT_FIELDS = ('booking_hours', 'additional_note', 'age_group')


def serialize_booking(booking) -> dict:
    return booking.to_dict()


def booking_fingerprint(booking) -> dict:
    return {'updated_at': booking.updated_at.isoformat()}


def booking_dependencies(record) -> list:
    deps = [('booking', record['id']), ('listing', record['listing_id']), ('user', record['user_id'])]
    if record.get('review'):
        deps.append(('review', record['review']['id']))
    return deps


def _collection_fingerprint(bookings) -> list:
    return [[b.id, b.updated_at.isoformat()] for b in bookings]


def _translate_all(records, lang):
    return [translate_booking(record, lang) for record in records]


def _collection_dependencies(records):
    return [dep for record in records for dep in booking_dependencies(record)]


def _get_user(uid):
    user = User.query.filter_by(uid=uid).first()
    if user is None:
        raise NotFoundError('user_not_found')
    return user


# Snapshots

def booking_snapshot(booking_id, lang):
    if not get_gateway().enabled:
        return None
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return None
    record = serialize_booking(booking)
    return Snapshot(
        cache_keys.booking_key(booking.id, lang),
        translate_booking(record, lang),
        booking_fingerprint(booking),
        booking_dependencies(record),
    )


def user_bookings_snapshot(uid, lang):
    if not get_gateway().enabled:
        return None
    user = User.query.filter_by(uid=uid).first()
    if user is None:
        return None
    bookings = Booking.query.filter_by(user_id=user.id).order_by(Booking.created_at.desc(), Booking.id.desc()).all()
    records = [serialize_booking(b) for b in bookings]
    return Snapshot(
        cache_keys.user_collection_key(uid, 'bookings', lang),
        _translate_all(records, lang),
        _collection_fingerprint(bookings),
        [('user', user.id)] + _collection_dependencies(records),
    )


# Reads

def get_booking(booking_id, lang='en') -> dict:
    booking_id = parse_id(booking_id)
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError('booking_not_found')

    if is_source_language(lang):
        return serialize_booking(booking)

    return read_through(
        cache_keys.booking_key(booking_id, lang), lang,
        load=lambda: serialize_booking(booking),
        translate=translate_booking,
        fingerprint=booking_fingerprint(booking),
        depends_on=booking_dependencies,
    )


def get_bookings(filters=None, lang='en') -> dict:
    """Paginated bookings, newest first, optionally by status / listing / user."""
    filters = filters or {}
    page, limit = parse_pagination(filters, DEFAULT_PAGE_SIZE)

    query = Booking.query
    if filters.get('status'):
        status = str(filters['status']).upper()
        if status not in BookingStatus.ALL:
            raise ValidationError('invalid_status')
        query = query.filter(Booking.status == status)
    if filters.get('listing_id'):
        query = query.filter(Booking.listing_id == parse_id(filters['listing_id']))
    if filters.get('user_uid'):
        query = query.filter(Booking.user_id == _get_user(filters['user_uid']).id)

    total = query.count()
    bookings = query.order_by(Booking.created_at.desc(), Booking.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()

    if is_source_language(lang):
        items = [serialize_booking(b) for b in bookings]
    else:
        by_id = {b.id: b for b in bookings}
        items = resolve_many(
            [b.id for b in bookings], lang,
            key_for=lambda booking_id: cache_keys.booking_key(booking_id, lang),
            load_many=lambda missing: {i: serialize_booking(by_id[i]) for i in missing},
            translate=translate_booking,
            fingerprints={b.id: booking_fingerprint(b) for b in bookings},
            depends_on=booking_dependencies,
        )
    return {'bookings': items, **page_meta(total, page, limit)}


def get_user_bookings(uid, lang='en') -> list:
    user = _get_user(uid)
    bookings = Booking.query.filter_by(user_id=user.id) \
        .order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    if is_source_language(lang):
        return [serialize_booking(b) for b in bookings]

    return read_through(
        cache_keys.user_collection_key(uid, 'bookings', lang), lang,
        load=lambda: [serialize_booking(b) for b in bookings],
        translate=_translate_all,
        fingerprint=_collection_fingerprint(bookings),
        depends_on=lambda records: [('user', user.id)] + _collection_dependencies(records),
    )


def get_listing_bookings(listing_id, lang='en') -> list:
    listing_id = parse_id(listing_id)
    if db.session.get(Listing, listing_id) is None:
        raise NotFoundError('listing_not_found')
    bookings = Booking.query.filter_by(listing_id=listing_id) \
        .order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    if is_source_language(lang):
        return [serialize_booking(b) for b in bookings]

    return read_through(
        cache_keys.listing_collection_key(listing_id, 'bookings', lang), lang,
        load=lambda: [serialize_booking(b) for b in bookings],
        translate=_translate_all,
        fingerprint=_collection_fingerprint(bookings),
        depends_on=lambda records: [('listing', listing_id)] + _collection_dependencies(records),
    )


# Writes

def _parse_date(value):
    if value in (None, ''):
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        raise ValidationError('validation_failed')


def _booking_fields(data: dict) -> dict:
    fields = {key: data[key] or None for key in TEXT_FIELDS if key in data}
    if 'booking_date' in data:
        fields['booking_date'] = _parse_date(data['booking_date'])
    if 'number_of_persons' in data:
        try:
            fields['number_of_persons'] = int(data['number_of_persons']) if data['number_of_persons'] not in (None, '') else None
        except (TypeError, ValueError):
            raise ValidationError('validation_failed')
    return fields


def create_booking(data: dict, user, lang='en') -> dict:
    require_fields(data, 'listing_id')
    listing = db.session.get(Listing, parse_id(data['listing_id']))
    if listing is None or not listing.is_active:
        raise NotFoundError('listing_not_found')

    fields = to_source_language('booking', _booking_fields(data), lang)
    booking = Booking(user_id=user.id, listing_id=listing.id, **fields)
    db.session.add(booking)
    db.session.commit()
    logger.info(f"Created booking {booking.id} on listing {listing.id} for user {user.uid}")

    get_fanout().enqueue('booking', booking.id, 'create', {'user_uid': user.uid, 'listing_id': listing.id})
    return {
        'message': translate_message('booking_created', lang),
        'id': booking.id,
        'booking': serialize_booking(booking),
    }


def update_booking(booking_id, data: dict, lang='en') -> dict:
    booking_id = parse_id(booking_id)
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError('booking_not_found')

    previous_status = booking.status
    previous_payment = booking.payment_method

    fields = to_source_language('booking', _booking_fields(data), lang)
    if data.get('status'):
        status = str(data['status']).upper()
        if status not in BookingStatus.ALL:
            raise ValidationError('invalid_status')
        fields['status'] = status
    if data.get('payment_method'):
        fields['payment_method'] = str(data['payment_method']).upper()

    for key, value in fields.items():
        setattr(booking, key, value)
    db.session.commit()
    logger.info(f"Updated booking {booking_id}")

    get_fanout().enqueue('booking', booking_id, 'update', {
        'user_uid': booking.user.uid,
        'listing_id': booking.listing_id,
        'status_changed': booking.status != previous_status,
        'payment_changed': booking.payment_method != previous_payment,
    })
    return {
        'message': translate_message('booking_updated', lang),
        'id': booking_id,
        'booking': serialize_booking(booking),
    }


def delete_booking(booking_id, lang='en') -> dict:
    booking_id = parse_id(booking_id)
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError('booking_not_found')

    payload = {
        'user_uid': booking.user.uid,
        'user_id': booking.user_id,
        'listing_id': booking.listing_id,
        'listing_name': booking.listing.name,
        'review_id': booking.review.id if booking.review else None,
    }
    db.session.delete(booking)
    db.session.commit()
    logger.info(f"Deleted booking {booking_id}")

    get_fanout().enqueue('booking', booking_id, 'delete', payload)
    return {'message': translate_message('booking_deleted', lang), 'id': booking_id}
