"""Fan-out handlers run after each committed mutation.

Every handler follows the same shape: drop every cached snapshot that embeds
the mutated entity (named keys, collection globs and the reverse index),
rebuild and store the entity's own snapshots from fresh store data, then run
the notification and email side effects. Each of these is a separate step so
one failure never prevents the others.
"""

import logging
from functools import partial

from flask import current_app

from app import db
from app.models import Listing, Booking, BookingStatus, Review, Notification, NotificationType, User
from app.services import cache_keys
from app.services.bookings import booking_snapshot, user_bookings_snapshot
from app.services.cache_aside import cached_languages, store_snapshot
from app.services.categories import category_snapshots, categories_snapshot
from app.services.email import email_service
from app.services.listings import listing_snapshot, listing_dependents
from app.services.notifications import notify, notification_snapshot, user_notifications_snapshot
from app.services.redis_client import get_cache
from app.services.reviews import review_snapshot, user_reviews_snapshot
from app.services.users import grant_booking_reward, user_dependents, user_snapshots, users_all_snapshot

logger = logging.getLogger(__name__)

COLLECTIONS = ('listing', 'booking', 'review', 'notification')


# Shared steps

def invalidate(keys_for, patterns_for=None, dependents=()) -> int:
    """
    Delete cached snapshots in every cached language.

    ``keys_for`` and ``patterns_for`` are callables taking a language and
    returning key names / glob patterns; ``dependents`` lists the
    ``(entity_type, id)`` pairs whose reverse index is swept.
    """
    cache = get_cache()
    removed = 0
    for lang in cached_languages():
        removed += cache.delete(*keys_for(lang))
        for pattern in (patterns_for(lang) if patterns_for else ()):
            removed += cache.delete_pattern(pattern)
        for entity_type, entity_id in dependents:
            if entity_id is not None:
                removed += cache.invalidate_dependents(entity_type, entity_id, lang)
    logger.debug(f"Invalidated {removed} cache keys")
    return removed


def build_snapshots(builders) -> list:
    """Call each ``builder(lang)`` for every cached language, dropping empties."""
    snapshots = []
    for lang in cached_languages():
        for build in builders:
            result = build(lang)
            if result is None:
                continue
            snapshots.extend(result if isinstance(result, list) else [result])
    return snapshots


def store_snapshots(snapshots) -> int:
    return sum(1 for snapshot in snapshots if store_snapshot(snapshot))


def refresh(run, *builders):
    snapshots = run.step('translated', build_snapshots, builders)
    if snapshots:
        run.step('recached', store_snapshots, snapshots)


def _patterns(*entity_types):
    return lambda lang: [cache_keys.collection_pattern(t, lang) for t in entity_types]


def _admin_email():
    return current_app.config.get('ADMIN_EMAIL')


def _listing_view_keys(listing_id, dependents, lang) -> list:
    """Keys of every snapshot that embeds a copy of the listing."""
    keys = [
        cache_keys.listing_key(listing_id, lang),
        cache_keys.listing_collection_key(listing_id, 'bookings', lang),
        cache_keys.listing_collection_key(listing_id, 'reviews', lang),
    ]
    keys += [cache_keys.booking_key(i, lang) for i in dependents.get('booking_ids', [])]
    keys += [cache_keys.review_key(i, lang) for i in dependents.get('review_ids', [])]
    for uid in dependents.get('user_uids', []):
        keys.append(cache_keys.user_collection_key(uid, 'bookings', lang))
        keys.append(cache_keys.user_collection_key(uid, 'reviews', lang))
    return keys


# Listings

def handle_listing(run, job):
    listing_id = job.entity_id
    listing = db.session.get(Listing, listing_id)
    if job.operation == 'delete' or listing is None:
        dependents = job.payload
    else:
        dependents = listing_dependents(listing)

    def keys_for(lang):
        return _listing_view_keys(listing_id, dependents, lang)

    run.step('cache_invalidated', invalidate, keys_for, _patterns('listing', 'booking', 'review'),
             [('listing', listing_id)])

    if listing is None:
        return
    refresh(run, partial(listing_snapshot, listing_id))

    if job.operation == 'create':
        run.step('notified', _announce_listing, listing)
        run.step('emailed', _email_listing, listing)


def _announce_listing(listing):
    users = User.query.order_by(User.id.asc()).all()
    for user in users:
        notify(
            user,
            'New Listing Available',
            f"A new listing '{listing.name}' is now available.",
            notification_type=NotificationType.GENERAL,
            entity_id=listing.id,
            entity_type='listing',
            link=f"/listings/{listing.id}",
            fanout=False,
        )

    # One sweep covers the whole batch
    if users:
        invalidate(
            lambda lang: [cache_keys.user_collection_key(u.uid, 'notifications', lang) for u in users],
            _patterns('notification'),
        )
    logger.info(f"Announced listing {listing.id} to {len(users)} users")
    return len(users)


def _email_listing(listing):
    sent = 0
    for user in User.query.order_by(User.id.asc()).all():
        if email_service.send_new_listing_email(user, listing):
            sent += 1
    return sent


# Bookings

def handle_booking(run, job):
    booking_id = job.entity_id
    payload = job.payload
    booking = db.session.get(Booking, booking_id)

    if booking is not None:
        user = booking.user
        listing_id = booking.listing_id
        review_id = booking.review.id if booking.review else None
    else:
        user = User.query.filter_by(uid=payload.get('user_uid')).first()
        listing_id = payload.get('listing_id')
        review_id = payload.get('review_id')
    uid = payload.get('user_uid') or (user.uid if user else None)

    # Points land before the snapshots are rebuilt so they embed the reward
    if job.operation == 'create' and booking is not None:
        run.step('rewarded', grant_booking_reward, booking)

    def keys_for(lang):
        keys = [
            cache_keys.booking_key(booking_id, lang),
            cache_keys.listing_key(listing_id, lang),
            cache_keys.listing_collection_key(listing_id, 'bookings', lang),
        ]
        if review_id:
            keys.append(cache_keys.review_key(review_id, lang))
        if uid:
            keys += [cache_keys.user_collection_key(uid, c, lang) for c in ('bookings', 'reviews', 'notifications')]
            keys += [cache_keys.user_uid_key(uid, lang), cache_keys.users_all_key(lang)]
        if user is not None:
            keys.append(cache_keys.user_key(user.id, lang))
        return keys

    run.step('cache_invalidated', invalidate, keys_for, _patterns('booking', 'listing'),
             [('booking', booking_id), ('review', review_id)])

    builders = [partial(listing_snapshot, listing_id)]
    if booking is not None:
        builders.insert(0, partial(booking_snapshot, booking_id))
    if uid:
        builders.append(partial(user_bookings_snapshot, uid))
    if user is not None:
        builders.append(partial(user_snapshots, user.id))
    refresh(run, *builders)

    if booking is None or user is None:
        return
    if job.operation == 'create':
        run.step('notified', notify, user, 'Booking Received',
                 f"Your booking for {booking.listing.name} has been received and is pending confirmation.",
                 notification_type=NotificationType.BOOKING, entity_id=booking.id, entity_type='booking',
                 link=f"/bookings/{booking.id}")
        run.step('emailed', _email_new_booking, booking)
    elif job.operation == 'update' and (payload.get('status_changed') or payload.get('payment_changed')):
        run.step('notified', _notify_booking_status, booking)
        run.step('emailed', email_service.send_booking_status_email, user, booking, booking.listing)


def _email_new_booking(booking):
    sent = email_service.send_booking_received_email(booking.user, booking, booking.listing)
    if _admin_email():
        email_service.send_booking_admin_email(_admin_email(), booking.user, booking, booking.listing)
    return sent


def _notify_booking_status(booking):
    cancelled = booking.status == BookingStatus.CANCELLED
    return notify(
        booking.user,
        f"Booking {booking.status.title()}",
        f"Your booking for {booking.listing.name} is now {booking.status} "
        f"(payment: {booking.payment_method}).",
        notification_type=NotificationType.CANCELLATION if cancelled else NotificationType.BOOKING,
        entity_id=booking.id,
        entity_type='booking',
        link=f"/bookings/{booking.id}",
    )


# Reviews

def handle_review(run, job):
    review_id = job.entity_id
    payload = job.payload
    review = db.session.get(Review, review_id)

    if review is not None:
        listing_id, booking_id = review.listing_id, review.booking_id
    else:
        listing_id, booking_id = payload.get('listing_id'), payload.get('booking_id')
    uid = payload.get('user_uid')

    def keys_for(lang):
        keys = [
            cache_keys.review_key(review_id, lang),
            cache_keys.listing_key(listing_id, lang),
            cache_keys.listing_collection_key(listing_id, 'reviews', lang),
        ]
        if booking_id:
            keys.append(cache_keys.booking_key(booking_id, lang))
        if uid:
            keys.append(cache_keys.user_collection_key(uid, 'reviews', lang))
            keys.append(cache_keys.user_collection_key(uid, 'bookings', lang))
        return keys

    run.step('cache_invalidated', invalidate, keys_for, _patterns('review', 'listing'),
             [('review', review_id)])

    builders = [partial(listing_snapshot, listing_id)]
    if review is not None:
        builders.insert(0, partial(review_snapshot, review_id))
    if booking_id:
        builders.append(partial(booking_snapshot, booking_id))
    if uid:
        builders.append(partial(user_reviews_snapshot, uid))
    refresh(run, *builders)

    if job.operation == 'create' and review is not None:
        run.step('notified', notify, review.user, 'Review Submitted',
                 f"Thank you for reviewing {review.listing.name}. It will be visible once approved.",
                 notification_type=NotificationType.REVIEW, entity_id=review.id, entity_type='review')
        if _admin_email():
            run.step('emailed', email_service.send_review_admin_email,
                     _admin_email(), review.user, review, review.listing)


# Users

def handle_user(run, job):
    user_id = job.entity_id
    user = db.session.get(User, user_id)
    if job.operation == 'delete' or user is None:
        dependents = job.payload
    else:
        dependents = user_dependents(user)
    uid = dependents.get('uid')

    def keys_for(lang):
        keys = [cache_keys.user_key(user_id, lang), cache_keys.users_all_key(lang)]
        if uid:
            keys.append(cache_keys.user_uid_key(uid, lang))
            keys += [cache_keys.user_collection_key(uid, c, lang) for c in ('bookings', 'reviews', 'notifications')]
        keys += [cache_keys.booking_key(i, lang) for i in dependents.get('booking_ids', [])]
        keys += [cache_keys.review_key(i, lang) for i in dependents.get('review_ids', [])]
        keys += [cache_keys.notification_key(i, lang) for i in dependents.get('notification_ids', [])]
        for listing_id in dependents.get('listing_ids', []):
            keys.append(cache_keys.listing_key(listing_id, lang))
            keys.append(cache_keys.listing_collection_key(listing_id, 'bookings', lang))
            keys.append(cache_keys.listing_collection_key(listing_id, 'reviews', lang))
        return keys

    run.step('cache_invalidated', invalidate, keys_for, _patterns(*COLLECTIONS), [('user', user_id)])

    builders = [users_all_snapshot]
    if user is not None:
        builders.insert(0, partial(user_snapshots, user_id))
    refresh(run, *builders)


# Categories

def handle_category(run, job):
    main_id = job.entity_id
    listing_ids = job.payload.get('listing_ids', [])

    # Bookings and reviews embed their listing, category names included
    listing_views = {}
    for listing_id in listing_ids:
        listing = db.session.get(Listing, listing_id)
        listing_views[listing_id] = listing_dependents(listing) if listing is not None else {}

    def keys_for(lang):
        keys = [cache_keys.categories_formatted_key(lang)]
        for listing_id, dependents in listing_views.items():
            keys += _listing_view_keys(listing_id, dependents, lang)
        return keys

    def patterns_for(lang):
        patterns = [cache_keys.category_pattern(main_id, lang)]
        if listing_ids:
            patterns += [cache_keys.collection_pattern(t, lang) for t in ('listing', 'booking', 'review')]
        else:
            patterns.append(cache_keys.collection_pattern('listing', lang))
        return patterns

    dependents = [('category', main_id)] + [('listing', i) for i in listing_ids]
    run.step('cache_invalidated', invalidate, keys_for, patterns_for, dependents)

    builders = [categories_snapshot]
    if job.operation != 'delete':
        builders.insert(0, partial(category_snapshots, main_id))
    builders += [partial(listing_snapshot, i) for i in listing_ids]
    refresh(run, *builders)


# Notifications

def handle_notification(run, job):
    payload = job.payload
    ids = [job.entity_id] if job.entity_id is not None else list(payload.get('ids', []))
    uid = payload.get('user_uid')

    def keys_for(lang):
        keys = [cache_keys.notification_key(i, lang) for i in ids]
        if uid:
            keys.append(cache_keys.user_collection_key(uid, 'notifications', lang))
        return keys

    run.step('cache_invalidated', invalidate, keys_for, _patterns('notification'),
             [('notification', i) for i in ids])

    builders = []
    if job.operation != 'delete':
        builders += [partial(notification_snapshot, i) for i in ids]
    if uid:
        builders.append(partial(user_notifications_snapshot, uid))
    refresh(run, *builders)

    if job.operation == 'create' and payload.get('send_email'):
        notification = db.session.get(Notification, job.entity_id)
        if notification is not None:
            run.step('emailed', email_service.send_notification_email, notification.user, notification)


HANDLERS = {
    'listing': handle_listing,
    'booking': handle_booking,
    'review': handle_review,
    'user': handle_user,
    'category': handle_category,
    'notification': handle_notification,
}


def register_fanout_handlers(fanout):
    for entity_type, handler in HANDLERS.items():
        fanout.register(entity_type, handler)
    return fanout
