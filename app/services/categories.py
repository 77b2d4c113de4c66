"""Category tree reads and writes.

Main categories own sub categories, which own specific items. Translated
trees are cached per main category (``category:{main}:all:{lang}``), per sub
category (``category:{main}:{sub}:{lang}``) and as the full formatted list.
"""

import logging
from datetime import datetime

from sqlalchemy import func

from app import db
from app.models import MainCategory, SubCategory, SpecificItem
from app.services import cache_keys
from app.services.cache_aside import Snapshot, is_source_language, read_through
from app.services.fanout import get_fanout
from app.services.translation import get_gateway
from app.services.translators import translate_category_tree, translate_entity, to_source_language
from app.utils.errors import NotFoundError, ValidationError
from app.utils.i18n import translate_message
from app.utils.validation import parse_id

logger = logging.getLogger(__name__)

ALL_SUBS = 'all'


def _fingerprint(main) -> dict:
    return {'updated_at': main.updated_at.isoformat()}


def _list_fingerprint(mains) -> list:
    return [[m.id, m.updated_at.isoformat()] for m in mains]


def _dependencies(record) -> list:
    return [('category', record['id'])]


def _translate_sub(record, lang):
    return translate_entity('sub_category_tree', record, lang)


def _translate_all(records, lang):
    return [translate_category_tree(record, lang) for record in records]


def _all_mains():
    return MainCategory.query.order_by(MainCategory.id.asc()).all()


def _get_main(main_id) -> MainCategory:
    main = db.session.get(MainCategory, parse_id(main_id))
    if main is None:
        raise NotFoundError('category_not_found')
    return main


# Snapshots

def category_snapshots(main_id, lang) -> list:
    """The main category tree and each of its sub category trees."""
    if not get_gateway().enabled:
        return []
    main = db.session.get(MainCategory, main_id)
    if main is None:
        return []
    record = main.to_tree()
    translated = translate_category_tree(record, lang)
    fingerprint = _fingerprint(main)
    deps = _dependencies(record)
    snapshots = [Snapshot(cache_keys.category_key(main.id, ALL_SUBS, lang), translated, fingerprint, deps)]
    for sub in translated['sub_categories']:
        snapshots.append(Snapshot(cache_keys.category_key(main.id, sub['id'], lang), sub, fingerprint, deps))
    return snapshots


def categories_snapshot(lang):
    if not get_gateway().enabled:
        return None
    mains = _all_mains()
    records = [m.to_tree() for m in mains]
    return Snapshot(
        cache_keys.categories_formatted_key(lang),
        _translate_all(records, lang),
        _list_fingerprint(mains),
        [dep for r in records for dep in _dependencies(r)],
    )


# Reads

def get_categories(lang='en') -> list:
    mains = _all_mains()
    if is_source_language(lang):
        return [m.to_tree() for m in mains]

    return read_through(
        cache_keys.categories_formatted_key(lang), lang,
        load=lambda: [m.to_tree() for m in mains],
        translate=_translate_all,
        fingerprint=_list_fingerprint(mains),
        depends_on=lambda records: [dep for r in records for dep in _dependencies(r)],
    )


def get_category(main_id, lang='en') -> dict:
    main = _get_main(main_id)
    if is_source_language(lang):
        return main.to_tree()

    return read_through(
        cache_keys.category_key(main.id, ALL_SUBS, lang), lang,
        load=main.to_tree,
        translate=translate_category_tree,
        fingerprint=_fingerprint(main),
        depends_on=_dependencies,
    )


def get_sub_category(main_id, sub_id, lang='en') -> dict:
    main = _get_main(main_id)
    sub = db.session.get(SubCategory, parse_id(sub_id))
    if sub is None or sub.main_category_id != main.id:
        raise NotFoundError('category_not_found')
    if is_source_language(lang):
        return sub.to_tree()

    return read_through(
        cache_keys.category_key(main.id, sub.id, lang), lang,
        load=sub.to_tree,
        translate=_translate_sub,
        fingerprint=_fingerprint(main),
        depends_on=lambda record: [('category', main.id)],
    )


# Writes

def _normalize_tree(data: dict) -> dict:
    """Inbound payload as a tree of ``{'name': ...}`` dicts."""
    subs = []
    for sub in data.get('sub_categories') or []:
        if isinstance(sub, str):
            sub = {'name': sub}
        if not isinstance(sub, dict):
            raise ValidationError('validation_failed')
        items = [
            item if isinstance(item, dict) else {'name': item}
            for item in sub.get('specific_items') or []
        ]
        subs.append({'id': sub.get('id'), 'name': sub.get('name'), 'specific_items': items})
    return {'name': data.get('main_category') or data.get('name'), 'sub_categories': subs}


def _clean_name(value):
    name = str(value or '').strip()
    return name or None


def _find_or_create_sub(main, name):
    for sub in main.sub_categories:
        if sub.name.lower() == name.lower():
            return sub
    sub = SubCategory(name=name)
    main.sub_categories.append(sub)
    return sub


def _find_or_create_item(main, sub, name):
    for item in sub.specific_items:
        if item.name.lower() == name.lower():
            return item
    item = SpecificItem(name=name, main_category_id=main.id)
    sub.specific_items.append(item)
    return item


def _merge_subs(main, tree):
    for sub_data in tree['sub_categories']:
        if sub_data.get('id'):
            sub = db.session.get(SubCategory, parse_id(sub_data['id']))
            if sub is None or sub.main_category_id != main.id:
                raise NotFoundError('category_not_found')
            if _clean_name(sub_data.get('name')):
                sub.name = _clean_name(sub_data['name'])
        else:
            name = _clean_name(sub_data.get('name'))
            if not name:
                raise ValidationError('missing_fields', fields='sub_categories.name')
            sub = _find_or_create_sub(main, name)
        for item_data in sub_data['specific_items']:
            item_name = _clean_name(item_data.get('name'))
            if item_name:
                _find_or_create_item(main, sub, item_name)


def listings_using(main) -> list:
    """Ids of listings that reference this main category or anything under it."""
    ids = {listing.id for listing in main.listings}
    for sub in main.sub_categories:
        ids.update(listing.id for listing in sub.listings)
        for item in sub.specific_items:
            ids.update(listing.id for listing in item.listings)
    return sorted(ids)


def create_category(data: dict, lang='en') -> dict:
    """
    Create or extend a category tree.

    Accepts either ``main_category`` (a name, found or created) or
    ``main_category_id`` plus ``sub_categories``: a list of names or of
    ``{'name', 'specific_items'}`` dicts. Existing names are reused.
    """
    tree = to_source_language('category_tree', _normalize_tree(data), lang)

    if data.get('main_category_id'):
        main = _get_main(data['main_category_id'])
    else:
        name = _clean_name(tree['name'])
        if not name:
            raise ValidationError('missing_fields', fields='main_category')
        main = MainCategory.query.filter(func.lower(MainCategory.name) == name.lower()).first()
        if main is None:
            main = MainCategory(name=name)
            db.session.add(main)
            db.session.flush()

    _merge_subs(main, tree)
    main.updated_at = datetime.utcnow()
    db.session.commit()
    logger.info(f"Saved category tree {main.id} ({len(main.sub_categories)} sub categories)")

    get_fanout().enqueue('category', main.id, 'create', {'listing_ids': listings_using(main)})
    return {
        'message': translate_message('category_created', lang),
        'id': main.id,
        'category': main.to_tree(),
        'status': 'processing',
    }


def update_category(main_id, data: dict, lang='en') -> dict:
    main = _get_main(main_id)
    tree = to_source_language('category_tree', _normalize_tree(data), lang)

    if _clean_name(tree['name']):
        main.name = _clean_name(tree['name'])
    _merge_subs(main, tree)
    main.updated_at = datetime.utcnow()
    db.session.commit()
    logger.info(f"Updated category tree {main.id}")

    get_fanout().enqueue('category', main.id, 'update', {'listing_ids': listings_using(main)})
    return {
        'message': translate_message('category_updated', lang),
        'id': main.id,
        'category': main.to_tree(),
    }


def delete_category(main_id, lang='en') -> dict:
    main = _get_main(main_id)
    main_id = main.id
    payload = {'listing_ids': listings_using(main)}

    db.session.delete(main)
    db.session.commit()
    logger.info(f"Deleted category tree {main_id}")

    get_fanout().enqueue('category', main_id, 'delete', payload)
    return {'message': translate_message('category_deleted', lang), 'id': main_id}


def delete_sub_category(main_id, sub_id, lang='en') -> dict:
    main = _get_main(main_id)
    sub = db.session.get(SubCategory, parse_id(sub_id))
    if sub is None or sub.main_category_id != main.id:
        raise NotFoundError('category_not_found')
    sub_id = sub.id

    listing_ids = {listing.id for listing in sub.listings}
    for item in sub.specific_items:
        listing_ids.update(listing.id for listing in item.listings)

    main.sub_categories.remove(sub)
    main.updated_at = datetime.utcnow()
    db.session.commit()
    logger.info(f"Deleted sub category {sub_id} of {main.id}")

    get_fanout().enqueue('category', main.id, 'update', {'listing_ids': sorted(listing_ids)})
    return {'message': translate_message('category_deleted', lang), 'id': sub_id}
