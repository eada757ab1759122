DEFAULT_LIMIT = 50
MAX_LIMIT = 200
# SCOM01 history screen loads day documents in pages of this size
HISTORY_PAGE_SIZE = 40


def normalize_pagination(limit_raw, offset_raw, default_limit: int = DEFAULT_LIMIT):
    """Parse limit/offset query values; limit is clamped to [1, MAX_LIMIT]."""
    try:
        limit = default_limit if limit_raw is None else int(limit_raw)
        offset = 0 if offset_raw is None else int(offset_raw)
    except ValueError:
        raise ValueError('limit y offset deben ser números enteros')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)
