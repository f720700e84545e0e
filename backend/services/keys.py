"""Cache key fingerprints and invalidation tags for the items API."""

from urllib.parse import quote, urlencode

from errors import InvalidKeyError

# Tags every payload that depends on the item collection as a whole
ITEMS_ALL_TAG = "items:all"

_KEY_PART_TYPES = (str, int, float, bool)


def _part(value) -> str:
    if not isinstance(value, _KEY_PART_TYPES):
        raise InvalidKeyError(f"Unsupported cache key part: {value!r} ({type(value).__name__})")
    text = str(value)
    if not text:
        raise InvalidKeyError("Cache key parts must not be empty")
    return text


def fingerprint(resource: str, *path, **query) -> str:
    """Build a deterministic cache key for a read.

    Query params are sorted so ?a=1&b=2 and ?b=2&a=1 share a key; params
    set to None are left out.

        fingerprint("items", "all")                    -> "items:all"
        fingerprint("items", "all", limit=5, offset=0) -> "items:all?limit=5&offset=0"
    """
    if not isinstance(resource, str) or not resource:
        raise InvalidKeyError("Cache key resource must be a non-empty string")

    # ":", "?" and "&" inside a part are percent-encoded
    key = ":".join(quote(part, safe="") for part in [resource, *(_part(p) for p in path)])
    params = sorted((name, _part(value)) for name, value in query.items() if value is not None)
    if params:
        key += "?" + urlencode(params)
    return key


def item_tag(item_id: int) -> str:
    return f"item:{_part(item_id)}"


def item_write_tags(item_id: int) -> set[str]:
    """Tags touched by any write to a single item."""
    return {ITEMS_ALL_TAG, item_tag(item_id)}
