"""Notification routes."""

from flask import Blueprint, request, jsonify
from app.services import notifications as notification_service
from app.utils import ServiceError, get_language, token_required

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('', methods=['GET'])
def get_notifications():
    """Paginated notifications. Query params: type, is_read, user_uid, page, limit, lang."""
    lang = get_language()
    try:
        return jsonify(notification_service.get_notifications(request.args.to_dict(), lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@notifications_bp.route('/self', methods=['GET'])
@token_required
def my_notifications(current_user):
    lang = get_language()
    try:
        notifications = notification_service.get_user_notifications(current_user, lang)
        return jsonify({
            'notifications': notifications,
            'total': len(notifications),
            'unread_count': notification_service.unread_count(current_user),
        }), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@notifications_bp.route('/self/unread-count', methods=['GET'])
@token_required
def my_unread_count(current_user):
    try:
        return jsonify({'unread_count': notification_service.unread_count(current_user)}), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@notifications_bp.route('/<int:notification_id>', methods=['GET'])
@token_required
def get_notification(current_user, notification_id):
    lang = get_language()
    try:
        return jsonify(notification_service.get_notification(notification_id, lang, actor=current_user)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@notifications_bp.route('', methods=['POST'])
def create_notification():
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(notification_service.create_notification(data, lang)), 201
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@notifications_bp.route('/mark-read', methods=['PUT'])
@token_required
def mark_read(current_user):
    """Mark the given ``ids`` read, or every unread notification when none are given."""
    lang = get_language()
    try:
        data = request.get_json(silent=True) or {}
        return jsonify(notification_service.mark_as_read(current_user, data.get('ids'), lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@notifications_bp.route('/<int:notification_id>', methods=['DELETE'])
@token_required
def delete_notification(current_user, notification_id):
    lang = get_language()
    try:
        return jsonify(notification_service.delete_notification(notification_id, lang, actor=current_user)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500
