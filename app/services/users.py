"""User reads and writes, plus loyalty rewards granted on bookings."""

import logging

from sqlalchemy import func

from app import db
from app.models import User, Reward, Booking, Review, Notification, NotificationType
from app.models.reward import BOOKING_REWARD_POINTS, TIER_RANK, tier_for_points
from app.services import cache_keys
from app.services.cache_aside import Snapshot, is_source_language, read_through
from app.services.fanout import get_fanout
from app.services.notifications import notify
from app.services.redis_client import get_cache
from app.services.translation import get_gateway
from app.services.translators import translate_user
from app.utils.errors import NotFoundError, ValidationError
from app.utils.i18n import translate_message
from app.utils.validation import parse_id, require_fields

logger = logging.getLogger(__name__)


def user_reward_summary(user_ids) -> dict:
    """Total points and highest tier reached per user id."""
    user_ids = list(user_ids)
    summary = {user_id: {'total_reward_points': 0, 'highest_reward_category': 'BRONZE'} for user_id in user_ids}
    if not user_ids:
        return summary

    rows = db.session.query(
        Reward.user_id, Reward.category, func.coalesce(func.sum(Reward.points), 0)
    ).filter(Reward.user_id.in_(user_ids)).group_by(Reward.user_id, Reward.category).all()

    for user_id, category, points in rows:
        entry = summary[user_id]
        entry['total_reward_points'] += int(points)
        if TIER_RANK.get(category, 0) > TIER_RANK[entry['highest_reward_category']]:
            entry['highest_reward_category'] = category
    return summary


def serialize_user(user, rewards=None) -> dict:
    data = user.to_dict()
    data.update(rewards or user_reward_summary([user.id])[user.id])
    return data


def user_fingerprint(record) -> dict:
    return {'total_reward_points': record['total_reward_points'], 'updated_at': record['updated_at']}


def user_dependencies(record) -> list:
    return [('user', record['id'])]


def _translate_all(records, lang):
    return [translate_user(record, lang) for record in records]


def _all_users():
    users = User.query.order_by(User.id.asc()).all()
    rewards = user_reward_summary([u.id for u in users])
    return [serialize_user(u, rewards[u.id]) for u in users]


# Snapshots

def user_snapshots(user_id, lang) -> list:
    """Fresh snapshots of one user under both its id key and its uid key."""
    if not get_gateway().enabled:
        return []
    user = db.session.get(User, user_id)
    if user is None:
        return []
    record = serialize_user(user)
    translated = translate_user(record, lang)
    fingerprint = user_fingerprint(record)
    deps = user_dependencies(record)
    return [
        Snapshot(cache_keys.user_key(user.id, lang), translated, fingerprint, deps),
        Snapshot(cache_keys.user_uid_key(user.uid, lang), translated, fingerprint, deps),
    ]


def users_all_snapshot(lang):
    if not get_gateway().enabled:
        return None
    records = _all_users()
    return Snapshot(
        cache_keys.users_all_key(lang),
        _translate_all(records, lang),
        [user_fingerprint(r) | {'id': r['id']} for r in records],
        [dep for r in records for dep in user_dependencies(r)],
    )


# Reads

def _read_user(user, key, lang):
    record = serialize_user(user)
    if is_source_language(lang):
        return record
    return read_through(
        key, lang,
        load=lambda: record,
        translate=translate_user,
        fingerprint=user_fingerprint(record),
        depends_on=user_dependencies,
    )


def get_user(user_id, lang='en') -> dict:
    user_id = parse_id(user_id)
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError('user_not_found')
    return _read_user(user, cache_keys.user_key(user_id, lang), lang)


def get_user_by_uid(uid, lang='en') -> dict:
    user = User.query.filter_by(uid=uid).first()
    if user is None:
        raise NotFoundError('user_not_found')
    return _read_user(user, cache_keys.user_uid_key(uid, lang), lang)


def get_users(lang='en') -> list:
    records = _all_users()
    if is_source_language(lang):
        return records

    fingerprint = [user_fingerprint(r) | {'id': r['id']} for r in records]
    key = cache_keys.users_all_key(lang)
    cached = get_cache().get_entry(key, fingerprint)
    if cached is not None:
        return cached
    if not get_gateway().enabled:
        return records

    translated = _translate_all(records, lang)
    cache = get_cache()
    cache.set_entry(key, translated, fingerprint, [dep for r in records for dep in user_dependencies(r)])
    for record, item in zip(records, translated):
        cache.set_entry(cache_keys.user_key(record['id'], lang), item,
                        user_fingerprint(record), user_dependencies(record))
    return translated


def authenticate(email, password):
    """Return the user for valid credentials, else None."""
    if not email or not password:
        return None
    user = User.query.filter_by(email=str(email).strip().lower()).first()
    if user is None or not user.check_password(password):
        return None
    return user


# Writes

def _normalize_email(value) -> str:
    email = str(value or '').strip().lower()
    if '@' not in email or email.startswith('@') or email.endswith('@'):
        raise ValidationError('validation_failed')
    return email


def create_user(data: dict, lang='en') -> dict:
    """Register a user. Names are stored exactly as given in any language."""
    require_fields(data, 'email', 'password')
    email = _normalize_email(data['email'])
    if User.query.filter_by(email=email).first() is not None:
        raise ValidationError('invalid_email')

    user = User(email=email, fname=data.get('fname'), lname=data.get('lname'))
    user.set_password(data['password'])
    db.session.add(user)
    db.session.commit()
    logger.info(f"Created user {user.uid}")

    get_fanout().enqueue('user', user.id, 'create', {'uid': user.uid})
    return {
        'message': translate_message('user_created', lang),
        'id': user.id,
        'user': serialize_user(user),
    }


def update_user(user_id, data: dict, lang='en') -> dict:
    user_id = parse_id(user_id)
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError('user_not_found')

    for key in ('fname', 'lname'):
        if key in data:
            setattr(user, key, data[key] or None)
    if data.get('email'):
        email = _normalize_email(data['email'])
        existing = User.query.filter_by(email=email).first()
        if existing is not None and existing.id != user.id:
            raise ValidationError('invalid_email')
        user.email = email
    if data.get('password'):
        user.set_password(data['password'])
    db.session.commit()
    logger.info(f"Updated user {user.uid}")

    get_fanout().enqueue('user', user_id, 'update', {'uid': user.uid})
    return {
        'message': translate_message('user_updated', lang),
        'id': user_id,
        'user': serialize_user(user),
    }


def user_dependents(user) -> dict:
    """Rows whose cached snapshots embed this user."""
    bookings = Booking.query.filter_by(user_id=user.id).all()
    reviews = Review.query.filter_by(user_id=user.id).all()
    notifications = Notification.query.filter_by(user_id=user.id).all()
    listing_ids = {b.listing_id for b in bookings} | {r.listing_id for r in reviews}
    return {
        'uid': user.uid,
        'booking_ids': [b.id for b in bookings],
        'review_ids': [r.id for r in reviews],
        'notification_ids': [n.id for n in notifications],
        'listing_ids': sorted(listing_ids),
    }


def delete_user(user_id, lang='en') -> dict:
    user_id = parse_id(user_id)
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError('user_not_found')

    payload = user_dependents(user)
    db.session.delete(user)
    db.session.commit()
    logger.info(f"Deleted user {payload['uid']}")

    get_fanout().enqueue('user', user_id, 'delete', payload)
    return {'message': translate_message('user_deleted', lang), 'id': user_id}


# Rewards

def grant_booking_reward(booking):
    """
    Award the fixed booking points and recompute the user's tier.

    Returns the new Reward, or None when this booking was already rewarded.
    Crossing into a higher tier also records a tier reward row and sends a
    loyalty notification.
    """
    if Reward.query.filter_by(booking_id=booking.id).first() is not None:
        return None

    user = booking.user
    before = user_reward_summary([user.id])[user.id]
    total = before['total_reward_points'] + BOOKING_REWARD_POINTS
    tier = tier_for_points(total)

    reward = Reward(
        user_id=user.id,
        booking_id=booking.id,
        points=BOOKING_REWARD_POINTS,
        description=f"Booking reward for {booking.listing.name}",
        category=tier,
    )
    db.session.add(reward)
    db.session.commit()
    logger.info(f"Granted {BOOKING_REWARD_POINTS} points to user {user.uid} for booking {booking.id}")

    if TIER_RANK[tier] > TIER_RANK.get(before['highest_reward_category'], 1):
        db.session.add(Reward(
            user_id=user.id,
            points=0,
            description=f"Reached {tier} tier",
            category=tier,
        ))
        db.session.commit()
        notify(
            user,
            'Reward Tier Upgraded!',
            f"Congratulations! You have reached the {tier} tier with {total} points.",
            notification_type=NotificationType.LOYALTY,
            entity_id=user.id,
            entity_type='reward',
        )
        logger.info(f"User {user.uid} upgraded to {tier}")
    return reward
