"""Small input-parsing helpers shared by the services."""

import math

from app.utils.errors import ValidationError


def parse_id(value) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError('invalid_id')
    if parsed <= 0:
        raise ValidationError('invalid_id')
    return parsed


def parse_id_list(value) -> list:
    """Accept a list, a single id or a comma-separated string."""
    if value is None or value == '':
        return []
    if isinstance(value, str):
        value = [part for part in value.split(',') if part.strip()]
    elif not isinstance(value, (list, tuple, set)):
        value = [value]
    ids = []
    for item in value:
        if isinstance(item, str) and ',' in item:
            ids.extend(parse_id(part) for part in item.split(',') if part.strip())
        else:
            ids.append(parse_id(item))
    return ids


def require_fields(data: dict, *fields):
    missing = [f for f in fields if data.get(f) in (None, '', [])]
    if missing:
        raise ValidationError('missing_fields', fields=', '.join(missing))


def parse_pagination(filters: dict, default_limit: int = 8, max_limit: int = 100):
    try:
        page = int(filters.get('page') or 1)
        limit = int(filters.get('limit') or default_limit)
    except (TypeError, ValueError):
        raise ValidationError('validation_failed')
    return max(page, 1), min(max(limit, 1), max_limit)


def page_meta(total_count: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total_count / limit) if limit else 0
    return {
        'total_count': total_count,
        'total_pages': total_pages,
        'current_page': page,
        'has_next_page': page < total_pages,
        'has_prev_page': page > 1,
    }
