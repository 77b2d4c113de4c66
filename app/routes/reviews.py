"""Review routes.

Reviews are written against the caller's own confirmed, paid bookings and
appear on the listing once accepted.
"""

from flask import Blueprint, request, jsonify
from app.services import reviews as review_service
from app.utils import ServiceError, get_language, token_required

reviews_bp = Blueprint('reviews', __name__)


@reviews_bp.route('', methods=['GET'])
def get_reviews():
    """Paginated reviews. Query params: status, listing_id, rating, page, limit, lang."""
    lang = get_language()
    try:
        return jsonify(review_service.get_reviews(request.args.to_dict(), lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@reviews_bp.route('/self', methods=['GET'])
@token_required
def my_reviews(current_user):
    lang = get_language()
    try:
        reviews = review_service.get_user_reviews(current_user.uid, lang)
        return jsonify({'reviews': reviews, 'total': len(reviews)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@reviews_bp.route('/<int:review_id>', methods=['GET'])
def get_review(review_id):
    lang = get_language()
    try:
        return jsonify(review_service.get_review(review_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@reviews_bp.route('', methods=['POST'])
@token_required
def create_review(current_user):
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(review_service.create_review(data, current_user, lang)), 201
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@reviews_bp.route('/<int:review_id>', methods=['PUT'])
@token_required
def update_review(current_user, review_id):
    """Owners edit rating/comment; status accepts English codes or Arabic labels."""
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(review_service.update_review(review_id, data, lang, actor=current_user)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@reviews_bp.route('/<int:review_id>', methods=['DELETE'])
@token_required
def delete_review(current_user, review_id):
    lang = get_language()
    try:
        return jsonify(review_service.delete_review(review_id, lang, actor=current_user)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500
