"""Category tree routes."""

from flask import Blueprint, request, jsonify
from app.services import categories as category_service
from app.utils import ServiceError, get_language

categories_bp = Blueprint('categories', __name__)


@categories_bp.route('', methods=['GET'])
def get_categories():
    """Every main category with its sub categories and specific items."""
    lang = get_language()
    try:
        categories = category_service.get_categories(lang)
        return jsonify({'categories': categories, 'total': len(categories)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@categories_bp.route('/<int:main_id>', methods=['GET'])
def get_category(main_id):
    lang = get_language()
    try:
        return jsonify(category_service.get_category(main_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@categories_bp.route('/<int:main_id>/<int:sub_id>', methods=['GET'])
def get_sub_category(main_id, sub_id):
    lang = get_language()
    try:
        return jsonify(category_service.get_sub_category(main_id, sub_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@categories_bp.route('', methods=['POST'])
def create_category():
    """
    Create or extend a category tree.

    Body: ``main_category`` (name) or ``main_category_id``, and
    ``sub_categories``: ``[{"name": ..., "specific_items": [...]}]``.
    """
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(category_service.create_category(data, lang)), 202
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@categories_bp.route('/<int:main_id>', methods=['PUT'])
def update_category(main_id):
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(category_service.update_category(main_id, data, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@categories_bp.route('/<int:main_id>', methods=['DELETE'])
def delete_category(main_id):
    lang = get_language()
    try:
        return jsonify(category_service.delete_category(main_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@categories_bp.route('/<int:main_id>/<int:sub_id>', methods=['DELETE'])
def delete_sub_category(main_id, sub_id):
    lang = get_language()
    try:
        return jsonify(category_service.delete_sub_category(main_id, sub_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500
