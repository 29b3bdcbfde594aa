from typing import Sequence
from inbox.config import get_settings
from inbox.schemas import Pagination

settings = get_settings()


def clamp_limit(limit: int) -> int:
    """Cap a requested page size at MAX_PAGE_SIZE."""
    return min(limit, settings.MAX_PAGE_SIZE)


def page_info(items: Sequence, limit: int, offset: int) -> Pagination:
    """Pagination block for a returned page; total is the page length, not a row count."""
    return Pagination(limit=limit, offset=offset, total=len(items))
