# services/cache_keys.py
"""Cache key shapes and the namespaces invalidation matches against."""
import hashlib
import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode

KEY_PREFIX = "cache"
PUBLIC_NAMESPACE = f"{KEY_PREFIX}:public"
USER_NAMESPACE = f"{KEY_PREFIX}:user"
SEARCH_NAMESPACE = f"{KEY_PREFIX}:search"


def normalize_path(path: str) -> str:
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def normalize_query(query: str) -> str:
    """Sort query parameters so the same parameters in any order share a key."""
    if not query:
        return ""
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode(sorted(pairs))


def default_cache_key(path: str, query: str, caller_id: Optional[str] = None) -> str:
    path = normalize_path(path)
    query = normalize_query(query)
    if caller_id:
        return f"{USER_NAMESPACE}:{caller_id}:{path}:{query}"
    return f"{PUBLIC_NAMESPACE}:{path}:{query}"


def search_cache_key(path: str, query: str, caller_id: Optional[str] = None) -> str:
    # Fixed-width digest bounds key length and keeps raw query text out of key space
    raw = normalize_path(path) + normalize_query(query)
    digest = hashlib.md5(raw.encode()).hexdigest()
    return f"{SEARCH_NAMESPACE}:{digest}"


# ---------------- INVALIDATION PATTERNS ----------------
_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis MATCH metacharacters so the value only matches itself."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


def public_pattern(path_prefix: str) -> str:
    return f"{PUBLIC_NAMESPACE}:{escape_glob(path_prefix)}*"


def search_pattern() -> str:
    return f"{SEARCH_NAMESPACE}:*"


def user_pattern(caller_id: str, path_prefix: str = "") -> str:
    return f"{USER_NAMESPACE}:{escape_glob(caller_id)}:{escape_glob(path_prefix)}*"
