"""Client-facing errors raised by services and rendered by the routes."""

from flask import jsonify

from app.utils.i18n import get_language, translate_message


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message_key: str, **params):
        super().__init__(message_key)
        self.message_key = message_key
        self.params = params

    def to_response(self, lang: str = 'en'):
        body = {'error': translate_message(self.message_key, lang, **self.params)}
        return jsonify(body), self.status_code


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class PermissionDeniedError(ServiceError):
    status_code = 403


def register_error_handlers(app):
    """Render ServiceError subclasses in the request language."""
    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        return error.to_response(get_language())
