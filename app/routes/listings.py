"""Listing routes: search, detail, and the bookings/reviews shown on a listing."""

from flask import Blueprint, request, jsonify
from app.services import listings as listing_service
from app.services.bookings import get_listing_bookings
from app.services.reviews import get_listing_reviews
from app.utils import ServiceError, get_language

listings_bp = Blueprint('listings', __name__)

# Query params that may repeat (?location=a&location=b) or be comma separated
LIST_PARAMS = ('location', 'facilities', 'agegroup')
ID_LIST_PARAMS = ('main_category_ids', 'sub_category_ids', 'specific_item_ids')


def _listing_filters(args) -> dict:
    filters = {}
    for key, value in args.items():
        filters[key] = value
    for key in LIST_PARAMS:
        values = [part.strip() for v in args.getlist(key) for part in v.split(',') if part.strip()]
        if values:
            filters[key] = values
    for key in ID_LIST_PARAMS:
        if key in args:
            filters[key] = ','.join(args.getlist(key))
    filters.pop('lang', None)
    return filters


@listings_bp.route('', methods=['GET'])
def get_listings():
    """
    Search active listings.

    Query params:
    - search, location, facilities, agegroup
    - min_price, max_price, price, rating
    - main_category_ids, sub_category_ids, specific_item_ids
    - page (default 1), limit (default 8)
    - lang: en | ar
    """
    lang = get_language()
    try:
        result = listing_service.get_listings(_listing_filters(request.args), lang)
        return jsonify(result), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>', methods=['GET'])
def get_listing(listing_id):
    lang = get_language()
    try:
        return jsonify(listing_service.get_listing(listing_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>/bookings', methods=['GET'])
def listing_bookings(listing_id):
    lang = get_language()
    try:
        bookings = get_listing_bookings(listing_id, lang)
        return jsonify({'bookings': bookings, 'total': len(bookings)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>/reviews', methods=['GET'])
def listing_reviews(listing_id):
    """Accepted reviews for a listing."""
    lang = get_language()
    try:
        reviews = get_listing_reviews(listing_id, lang)
        return jsonify({'reviews': reviews, 'total': len(reviews)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@listings_bp.route('', methods=['POST'])
def create_listing():
    """Create a listing. Cache warm-up and announcements run in the background."""
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(listing_service.create_listing(data, lang)), 202
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>', methods=['PUT'])
def update_listing(listing_id):
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(listing_service.update_listing(listing_id, data, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>', methods=['DELETE'])
def delete_listing(listing_id):
    lang = get_language()
    try:
        return jsonify(listing_service.delete_listing(listing_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500
