def clamp_limit(limit: int | None, default: int, ceiling: int) -> int:
    """Page size for list reads. Only an omitted limit falls back to the default."""
    if limit is None:
        return default
    return min(max(limit, 1), ceiling)
