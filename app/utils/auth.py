"""Shared authentication utilities.

Bearer tokens are PyJWT HS256 tokens carrying the user's ``uid``.
"""

from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify, current_app
import jwt


def create_token(user, expires_in_days: int = 30) -> str:
    """Issue a bearer token for a user."""
    payload = {
        'user_id': user.id,
        'uid': user.uid,
        'exp': datetime.utcnow() + timedelta(days=expires_in_days),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def decode_token(token: str) -> dict:
    return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])


def _decode(auth_header):
    # Support both "Bearer <token>" and raw token formats
    token = auth_header.split(' ')[1] if ' ' in auth_header else auth_header
    return decode_token(token)


def token_required(f):
    """
    Decorator to require a valid JWT token.

    Loads the User named by the token's ``uid`` and passes it as the first
    argument to the decorated function.

    Usage:
        @bp.route('/self')
        @token_required
        def my_items(current_user):
            return jsonify({'uid': current_user.uid})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        from app.models import User

        auth_header = request.headers.get('Authorization')
        if not auth_header:
            return jsonify({'error': 'Token is missing'}), 401

        try:
            payload = _decode(auth_header)
        except jwt.ExpiredSignatureError:
            return jsonify({'error': 'Token has expired'}), 401
        except (jwt.InvalidTokenError, IndexError):
            return jsonify({'error': 'Token is invalid'}), 401

        current_user = User.query.filter_by(uid=payload.get('uid')).first()
        if not current_user:
            return jsonify({'error': 'User not found'}), 401

        return f(current_user, *args, **kwargs)
    return decorated
