"""Cache key naming for translated entity snapshots.

Keys are colon-delimited and prefixed by entity type, e.g. ``listing:12:ar``,
``user:<uid>:bookings:ar`` or ``listings:all{"page":2}:ar``. Every reader and
writer builds keys through these functions so the namespace stays consistent
with data already sitting in redis.
"""

import json

ENTITY_PLURALS = {
    'listing': 'listings',
    'booking': 'bookings',
    'review': 'reviews',
    'notification': 'notifications',
    'user': 'users',
}


def filter_hash(filters: dict | None) -> str:
    """Stable serialization of a filter set; empty string when there are no filters."""
    if not filters:
        return ''
    cleaned = {k: v for k, v in filters.items() if v is not None and v != '' and v != []}
    if not cleaned:
        return ''
    return json.dumps(cleaned, sort_keys=True, separators=(',', ':'), ensure_ascii=False, default=str)


# Singular entities

def listing_key(listing_id, lang: str) -> str:
    return f"listing:{listing_id}:{lang}"


def booking_key(booking_id, lang: str) -> str:
    return f"booking:{booking_id}:{lang}"


def review_key(review_id, lang: str) -> str:
    return f"review:{review_id}:{lang}"


def notification_key(notification_id, lang: str) -> str:
    return f"notification:{notification_id}:{lang}"


def user_key(user_id, lang: str) -> str:
    return f"user:{user_id}:{lang}"


def user_uid_key(uid: str, lang: str) -> str:
    return f"user:uid:{uid}:{lang}"


# Scoped collections

def user_collection_key(uid: str, collection: str, lang: str) -> str:
    """``collection`` is one of bookings, reviews, notifications."""
    return f"user:{uid}:{collection}:{lang}"


def listing_collection_key(listing_id, collection: str, lang: str) -> str:
    """``collection`` is one of bookings, reviews."""
    return f"listing:{listing_id}:{collection}:{lang}"


# Categories

def category_key(main_id, sub_id, lang: str) -> str:
    return f"category:{main_id}:{sub_id}:{lang}"


def category_pattern(main_id, lang: str) -> str:
    return f"category:{main_id}:*:{lang}"


def categories_formatted_key(lang: str) -> str:
    return f"categories:all_formatted:{lang}"


# Filtered collections

def collection_key(entity_type: str, filters: dict | None, lang: str) -> str:
    plural = ENTITY_PLURALS.get(entity_type, entity_type)
    return f"{plural}:all{filter_hash(filters)}:{lang}"


def collection_pattern(entity_type: str, lang: str) -> str:
    """Glob matching every filtered variant of a collection."""
    plural = ENTITY_PLURALS.get(entity_type, entity_type)
    return f"{plural}:all*:{lang}"


def users_all_key(lang: str) -> str:
    return f"users:all:{lang}"


# Reverse index

def dependents_key(entity_type: str, entity_id, lang: str) -> str:
    """Redis set holding every cache key whose value embeds this entity."""
    return f"deps:{entity_type}:{entity_id}:{lang}"
