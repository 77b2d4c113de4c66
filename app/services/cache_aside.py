"""Cache-aside reads for translated snapshots.

Source-language reads never touch redis. Other languages look up the
snapshot, and on a miss load the record from the database, translate it
and store it with the long TTL. When the translation gateway is disabled
the source record is returned as-is and nothing is cached.
"""

import logging
from collections import namedtuple

from flask import current_app

from app.services.redis_client import get_cache
from app.services.translation import get_gateway
from app.utils.i18n import SUPPORTED_LANGUAGES

logger = logging.getLogger(__name__)

# A translated value ready to be written: key, data, fingerprint, reverse-index entries
Snapshot = namedtuple('Snapshot', 'key data fingerprint depends_on')


def source_language() -> str:
    return current_app.config.get('SOURCE_LANGUAGE', 'en')


def is_source_language(lang: str) -> bool:
    return not lang or lang == source_language()


def cached_languages() -> list:
    """Languages whose snapshots live in redis."""
    return [lang for lang in SUPPORTED_LANGUAGES if lang != source_language()]


def store_snapshot(snapshot) -> bool:
    if snapshot is None:
        return False
    return get_cache().set_entry(snapshot.key, snapshot.data, snapshot.fingerprint, snapshot.depends_on)


def read_through(key, lang, load, translate, fingerprint=None, depends_on=None):
    """
    Resolve one snapshot.

    Args:
        key: cache key for the translated snapshot
        lang: requested language (non-source)
        load: callable returning the source-language dict, or None if missing
        translate: callable ``(record, lang) -> dict``
        fingerprint: live-record fingerprint the cached entry must match
        depends_on: callable ``record -> [(entity_type, id), ...]`` for the reverse index

    Returns:
        The translated dict, or None when ``load`` finds nothing.
    """
    cache = get_cache()
    cached = cache.get_entry(key, fingerprint)
    if cached is not None:
        logger.debug(f"Cache hit {key}")
        return cached

    record = load()
    if record is None:
        return None
    if not get_gateway().enabled:
        return record

    translated = translate(record, lang)
    cache.set_entry(key, translated, fingerprint, depends_on(record) if depends_on else ())
    return translated


def resolve_many(ids, lang, key_for, load_many, translate, fingerprints=None, depends_on=None):
    """
    Resolve a page of snapshots one id at a time.

    Hits come straight from redis; every miss is loaded with a single
    ``load_many(missing_ids) -> {id: record}`` call, then translated and
    cached individually. Order of ``ids`` is preserved and ids that no longer
    exist are dropped.
    """
    cache = get_cache()
    fingerprints = fingerprints or {}
    resolved = {}
    missing = []

    for entity_id in ids:
        cached = cache.get_entry(key_for(entity_id), fingerprints.get(entity_id))
        if cached is not None:
            resolved[entity_id] = cached
        else:
            missing.append(entity_id)

    if missing:
        logger.debug(f"Cache misses for {len(missing)}/{len(ids)} ids")
        records = load_many(missing)
        enabled = get_gateway().enabled
        for entity_id, record in records.items():
            if not enabled:
                resolved[entity_id] = record
                continue
            translated = translate(record, lang)
            cache.set_entry(
                key_for(entity_id), translated, fingerprints.get(entity_id),
                depends_on(record) if depends_on else ()
            )
            resolved[entity_id] = translated

    return [resolved[entity_id] for entity_id in ids if entity_id in resolved]
