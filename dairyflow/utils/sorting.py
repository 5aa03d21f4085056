"""
Stable multi-type sorting for report rows.
"""


def resolve_path(obj, path: str):
    """Follow a dotted path through dicts/attributes ('customer.billing_name')."""
    value = obj
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def sort_rows(rows, key_path: str, direction: str = "asc") -> list:
    """
    Sort by `key_path`. None values always go last whatever the direction;
    strings compare case-insensitively.
    """
    present, missing = [], []
    for row in rows:
        (missing if resolve_path(row, key_path) is None else present).append(row)

    def _key(row):
        value = resolve_path(row, key_path)
        return value.lower() if isinstance(value, str) else value

    present.sort(key=_key, reverse=(direction == "desc"))
    return present + missing
