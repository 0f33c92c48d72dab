"""Offset pagination envelope shared by the list endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


def page_info(total: int, limit: int, offset: int) -> Pagination:
    """Build the pagination block for a page starting at ``offset``."""
    return Pagination(total=total, limit=limit, offset=offset, has_more=offset + limit < total)
