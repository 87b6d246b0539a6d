# contact_relay/lib/origins.py
from typing import Iterable, List, Optional


def parse_origins(raw: Optional[str]) -> List[str]:
    """Split a comma-separated CORS_ORIGIN value into a clean allow-list."""
    if not raw:
        return []
    return [o.strip() for o in raw.split(",") if o.strip()]


def is_allowed_origin(origin: Optional[str], allow_list: Iterable[str]) -> bool:
    # No Origin header means a non-browser client (curl, mobile apps, server-to-server)
    if not origin:
        return True
    return origin in set(allow_list)
