"""User routes: registration, login and profile reads."""

from flask import Blueprint, request, jsonify
from app import db
from app.models import User
from app.services import users as user_service
from app.utils import ServiceError, create_token, get_language, translate_message

users_bp = Blueprint('users', __name__)


@users_bp.route('', methods=['GET'])
def get_users():
    lang = get_language()
    try:
        users = user_service.get_users(lang)
        return jsonify({'users': users, 'total': len(users)}), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@users_bp.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    lang = get_language()
    try:
        return jsonify(user_service.get_user(user_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@users_bp.route('/uid/<uid>', methods=['GET'])
def get_user_by_uid(uid):
    lang = get_language()
    try:
        return jsonify(user_service.get_user_by_uid(uid, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@users_bp.route('', methods=['POST'])
def register():
    """Register a new user and return a bearer token."""
    lang = get_language()
    try:
        data = request.get_json() or {}
        result = user_service.create_user(data, lang)
        result['token'] = create_token(db.session.get(User, result['id']))
        return jsonify(result), 201
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@users_bp.route('/login', methods=['POST'])
def login():
    lang = get_language()
    try:
        data = request.get_json() or {}
        user = user_service.authenticate(data.get('email'), data.get('password'))
        if user is None:
            return jsonify({'error': translate_message('invalid_credentials', lang)}), 401
        return jsonify({
            'token': create_token(user),
            'user': user_service.serialize_user(user),
        }), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@users_bp.route('/<int:user_id>', methods=['PUT'])
def update_user(user_id):
    lang = get_language()
    try:
        data = request.get_json() or {}
        return jsonify(user_service.update_user(user_id, data, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@users_bp.route('/<int:user_id>', methods=['DELETE'])
def delete_user(user_id):
    lang = get_language()
    try:
        return jsonify(user_service.delete_user(user_id, lang)), 200
    except ServiceError as e:
        return e.to_response(lang)
    except Exception as e:
        return jsonify({'error': str(e)}), 500
