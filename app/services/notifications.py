"""Notification reads and writes."""

import logging

from app import db
from app.models import Notification, NotificationType, User
from app.services import cache_keys
from app.services.cache_aside import Snapshot, is_source_language, read_through, resolve_many
from app.services.fanout import get_fanout
from app.services.translation import get_gateway
from app.services.translators import translate_notification, to_source_language
from app.utils.errors import NotFoundError, PermissionDeniedError, ValidationError
from app.utils.i18n import translate_message
from app.utils.validation import parse_id, parse_id_list, parse_pagination, page_meta, require_fields

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

NOTIFICATION_TYPES = (
    NotificationType.GENERAL, NotificationType.BOOKING, NotificationType.LOYALTY,
    NotificationType.SYSTEM, NotificationType.CANCELLATION, NotificationType.REVIEW,
)


def serialize_notification(notification) -> dict:
    return notification.to_dict()


def notification_fingerprint(notification) -> dict:
    return {'is_read': notification.is_read}


def notification_dependencies(record) -> list:
    return [('notification', record['id']), ('user', record['user_id'])]


def _translate_all(records, lang):
    return [translate_notification(record, lang) for record in records]


def _ordered(query):
    return query.order_by(Notification.created_at.desc(), Notification.id.desc())


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('true', '1', 'yes')


# Snapshots

def notification_snapshot(notification_id, lang):
    if not get_gateway().enabled:
        return None
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        return None
    record = serialize_notification(notification)
    return Snapshot(
        cache_keys.notification_key(notification.id, lang),
        translate_notification(record, lang),
        notification_fingerprint(notification),
        notification_dependencies(record),
    )


# Reads

def get_notification(notification_id, lang='en', actor=None) -> dict:
    notification_id = parse_id(notification_id)
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError('notification_not_found')
    if actor is not None and notification.user_id != actor.id:
        raise PermissionDeniedError('not_notification_owner')

    if is_source_language(lang):
        return serialize_notification(notification)

    return read_through(
        cache_keys.notification_key(notification_id, lang), lang,
        load=lambda: serialize_notification(notification),
        translate=translate_notification,
        fingerprint=notification_fingerprint(notification),
        depends_on=notification_dependencies,
    )


def get_notifications(filters=None, lang='en') -> dict:
    filters = filters or {}
    page, limit = parse_pagination(filters, DEFAULT_PAGE_SIZE)

    query = Notification.query
    if filters.get('type'):
        query = query.filter(Notification.type == str(filters['type']).upper())
    if filters.get('is_read') not in (None, ''):
        query = query.filter(Notification.is_read.is_(_parse_bool(filters['is_read'])))
    if filters.get('user_uid'):
        user = User.query.filter_by(uid=filters['user_uid']).first()
        if user is None:
            raise NotFoundError('user_not_found')
        query = query.filter(Notification.user_id == user.id)

    total = query.count()
    notifications = _ordered(query).offset((page - 1) * limit).limit(limit).all()

    if is_source_language(lang):
        items = [serialize_notification(n) for n in notifications]
    else:
        by_id = {n.id: n for n in notifications}
        items = resolve_many(
            [n.id for n in notifications], lang,
            key_for=lambda notification_id: cache_keys.notification_key(notification_id, lang),
            load_many=lambda missing: {i: serialize_notification(by_id[i]) for i in missing},
            translate=translate_notification,
            fingerprints={n.id: notification_fingerprint(n) for n in notifications},
            depends_on=notification_dependencies,
        )
    return {'notifications': items, **page_meta(total, page, limit)}


def user_notifications_snapshot(uid, lang):
    if not get_gateway().enabled:
        return None
    user = User.query.filter_by(uid=uid).first()
    if user is None:
        return None
    notifications = _ordered(Notification.query.filter_by(user_id=user.id)).all()
    records = [serialize_notification(n) for n in notifications]
    return Snapshot(
        cache_keys.user_collection_key(uid, 'notifications', lang),
        _translate_all(records, lang),
        [[n.id, n.is_read] for n in notifications],
        [('user', user.id)] + [dep for r in records for dep in notification_dependencies(r)],
    )


def get_user_notifications(user, lang='en') -> list:
    notifications = _ordered(Notification.query.filter_by(user_id=user.id)).all()

    if is_source_language(lang):
        return [serialize_notification(n) for n in notifications]

    return read_through(
        cache_keys.user_collection_key(user.uid, 'notifications', lang), lang,
        load=lambda: [serialize_notification(n) for n in notifications],
        translate=_translate_all,
        fingerprint=[[n.id, n.is_read] for n in notifications],
        depends_on=lambda records: [('user', user.id)] + [
            dep for r in records for dep in notification_dependencies(r)
        ],
    )


def unread_count(user) -> int:
    return Notification.query.filter_by(user_id=user.id, is_read=False).count()


# Writes

def notify(user, title, message, notification_type=NotificationType.GENERAL, entity_id=None,
           entity_type=None, link=None, send_email=False, fanout=True):
    """
    Create a notification from inside the application (already in English).

    With ``fanout=False`` the caller owns cache invalidation, used when many
    notifications are created in one go.
    """
    notification = Notification(
        user_id=user.id,
        title=title,
        message=message,
        type=notification_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        entity_type=entity_type,
        link=link,
    )
    db.session.add(notification)
    db.session.commit()
    if not fanout:
        return notification
    get_fanout().enqueue('notification', notification.id, 'create', {
        'user_uid': user.uid,
        'send_email': send_email,
    })
    return notification


def create_notification(data: dict, lang='en') -> dict:
    require_fields(data, 'user_uid', 'title', 'message')
    user = User.query.filter_by(uid=data['user_uid']).first()
    if user is None:
        raise NotFoundError('user_not_found')

    notification_type = str(data.get('type') or NotificationType.GENERAL).upper()
    if notification_type not in NOTIFICATION_TYPES:
        raise ValidationError('validation_failed')

    fields = to_source_language('notification', {
        'title': data['title'],
        'message': data['message'],
        'entity_type': data.get('entity_type'),
    }, lang)

    notification = notify(
        user, fields['title'], fields['message'], notification_type=notification_type,
        entity_id=data.get('entity_id'), entity_type=fields['entity_type'],
        link=data.get('link'), send_email=notification_type in NotificationType.EMAILED,
    )
    logger.info(f"Created notification {notification.id} for user {user.uid}")
    return {
        'message': translate_message('notification_created', lang),
        'id': notification.id,
        'notification': serialize_notification(notification),
    }


def mark_as_read(user, notification_ids=None, lang='en') -> dict:
    """Mark the given notifications (or all of them) read for this user."""
    ids = parse_id_list(notification_ids)
    query = Notification.query.filter_by(user_id=user.id, is_read=False)
    if ids:
        query = query.filter(Notification.id.in_(ids))
    notifications = query.all()

    for notification in notifications:
        notification.mark_as_read()
    db.session.commit()

    marked = [n.id for n in notifications]
    if marked:
        get_fanout().enqueue('notification', None, 'mark_read', {'user_uid': user.uid, 'ids': marked})
    return {
        'message': translate_message('notifications_marked_read', lang),
        'updated': len(marked),
        'ids': marked,
    }


def delete_notification(notification_id, lang='en', actor=None) -> dict:
    notification_id = parse_id(notification_id)
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError('notification_not_found')
    if actor is not None and notification.user_id != actor.id:
        raise PermissionDeniedError('not_notification_owner')

    payload = {'user_uid': notification.user.uid}
    db.session.delete(notification)
    db.session.commit()

    get_fanout().enqueue('notification', notification_id, 'delete', payload)
    return {'message': translate_message('notification_deleted', lang), 'id': notification_id}
