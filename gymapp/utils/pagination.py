"""Pagination helpers shared by list endpoints."""
import math

from gymapp.exceptions import ValidationError

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def parse_page_args(page=None, limit=None, default_limit=DEFAULT_LIMIT):
    """Coerce page/limit query values to ints within bounds."""
    try:
        page = int(page) if page not in (None, '') else 1
        limit = int(limit) if limit not in (None, '') else default_limit
    except (TypeError, ValueError):
        raise ValidationError('Page and limit must be integers')

    if page < 1:
        raise ValidationError('Page must be a positive integer')
    if limit < 1 or limit > MAX_LIMIT:
        raise ValidationError(f'Limit must be between 1 and {MAX_LIMIT}')
    return page, limit


def paginate(query, page=1, limit=DEFAULT_LIMIT):
    """
    Apply offset/limit to a query.

    Returns:
        (items, pagination) where pagination is
        {'total', 'page', 'limit', 'total_pages'}.
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        'total': total,
        'page': page,
        'limit': limit,
        'total_pages': math.ceil(total / limit) if limit else 0,
    }
