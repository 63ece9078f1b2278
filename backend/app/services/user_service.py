"""Owner name suggestions for range and schedule forms."""
from __future__ import annotations

from typing import List, Optional, Sequence

from app.core.config import settings

MAX_SUGGESTIONS = 20


def search_users(query: Optional[str], values: Optional[Sequence[str]] = None) -> List[str]:
    """Configured user names containing ``query`` (case-insensitive), first 20 in configured order."""
    candidates = settings.user_autocomplete_values if values is None else values
    needle = (query or "").strip().lower()
    if not needle:
        return list(candidates[:MAX_SUGGESTIONS])
    return [value for value in candidates if needle in value.lower()][:MAX_SUGGESTIONS]
