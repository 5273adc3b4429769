import json
from datetime import datetime, timezone
from flask import request, current_app


def get_page_args():
    """Read page/per_page from the query string, capped at MAX_PAGE_SIZE."""
    page = max(request.args.get('page', 1, type=int) or 1, 1)
    per_page = request.args.get('per_page', current_app.config.get("DEFAULT_PAGE_SIZE", 10), type=int)
    per_page = max(1, min(per_page or 1, current_app.config.get("MAX_PAGE_SIZE", 50)))
    return page, per_page


def paginated(pagination, key, items):
    return {
        key: items,
        'total': pagination.total,
        'pages': pagination.pages,
        'current_page': pagination.page,
        'per_page': pagination.per_page,
        'has_next': pagination.has_next,
        'has_prev': pagination.has_prev
    }


def parse_bool(value, default=None):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


def parse_timestamp(value):
    """Parse an ISO 8601 timestamp (a trailing Z is accepted) into a naive UTC datetime."""
    if not isinstance(value, str):
        raise ValueError("Timestamp must be an ISO 8601 string")
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


LIKE_ESCAPE = '\\'


def escape_like(value):
    """Escape LIKE wildcards so user input matches literally (use with escape=LIKE_ESCAPE)."""
    return (value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
            .replace('%', LIKE_ESCAPE + '%')
            .replace('_', LIKE_ESCAPE + '_'))


def contains_pattern(value):
    return f'%{escape_like(value)}%'


def json_member_pattern(value):
    """Pattern matching one string element of a JSON list column in its text form.

    Columns are written with ensure_ascii=False (see Config.get_database_engine_options),
    so the element is dumped the same way here.
    """
    return contains_pattern(json.dumps(value, ensure_ascii=False))
