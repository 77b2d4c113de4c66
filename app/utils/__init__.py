"""Shared utilities for the listings backend.

Authentication, request language detection and the client-facing error types
used by every route module.
"""

from app.utils.auth import token_required, create_token
from app.utils.errors import ValidationError, NotFoundError, PermissionDeniedError, ServiceError
from app.utils.i18n import get_language, normalize_lang, translate_message

__all__ = [
    'token_required',
    'create_token',
    'ServiceError',
    'ValidationError',
    'NotFoundError',
    'PermissionDeniedError',
    'get_language',
    'normalize_lang',
    'translate_message',
]
