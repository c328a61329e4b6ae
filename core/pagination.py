from django.conf import settings

from .exceptions import ValidationFailed


def paginate(queryset, request):
    """
    Apply limit/offset query params to a queryset.

    Returns (page, meta) where meta is {"count", "limit", "offset"}.
    """
    limit = request.query_params.get("limit")
    offset = request.query_params.get("offset")

    try:
        limit_val = int(limit) if limit is not None else settings.TRACKER_PAGE_SIZE
        offset_val = int(offset) if offset is not None else 0
    except ValueError:
        raise ValidationFailed("Invalid pagination params")

    limit_val = max(1, min(limit_val, settings.TRACKER_MAX_PAGE_SIZE))
    offset_val = max(0, offset_val)

    total_count = queryset.count()
    page = queryset[offset_val : offset_val + limit_val]

    return page, {"count": total_count, "limit": limit_val, "offset": offset_val}
