"""Booking routes."""

from flask import Blueprint, request, jsonify
from app.services import bookings as booking_service
from app.utils import ServiceError, get_language, token_required

bookings_bp = Blueprint('bookings', __name__)


@bookings_bp.route('', methods=['GET'])
def get_bookings():
    """
    Paginated bookings.

    Query params: status, listing_id, user_uid, page, limit (default 10), lang
    """
    lang = get_language()
    try:
        return jsonify(booking_service.get_bookings(request.args.to_dict(), lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('/self', methods=['GET'])
@token_required
def my_bookings(current_user):
    lang = get_language()
    try:
        bookings = booking_service.get_user_bookings(current_user.uid, lang)
        return jsonify({'bookings': bookings, 'total': len(bookings)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('/user/<uid>', methods=['GET'])
def user_bookings(uid):
    lang = get_language()
    try:
        bookings = booking_service.get_user_bookings(uid, lang)
        return jsonify({'bookings': bookings, 'total': len(bookings)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('/<int:booking_id>', methods=['GET'])
def get_booking(booking_id):
    lang = get_language()
    try:
        return jsonify(booking_service.get_booking(booking_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('', methods=['POST'])
@token_required
def create_booking(current_user):
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(booking_service.create_booking(data, current_user, lang)), 201
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('/<int:booking_id>', methods=['PUT'])
def update_booking(booking_id):
    """Update booking details, status or payment method."""
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(booking_service.update_booking(booking_id, data, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('/<int:booking_id>', methods=['DELETE'])
def delete_booking(booking_id):
    lang = get_language()
    try:
        return jsonify(booking_service.delete_booking(booking_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500
