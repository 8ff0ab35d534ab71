"""Offset pagination shared by the history queries."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ValidationFailure

MAX_PAGE_SIZE = 100


def check_page(page: int, size: int) -> None:
    if page < 0:
        raise ValidationFailure("page must be >= 0")
    if size < 1 or size > MAX_PAGE_SIZE:
        raise ValidationFailure(f"size must be between 1 and {MAX_PAGE_SIZE}")


@dataclass
class Page:
    """One page of results plus the totals needed to render paging controls."""

    items: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

    def meta(self) -> dict[str, int]:
        return {
            "total_elements": self.total,
            "total_pages": self.total_pages,
            "page_number": self.page,
            "page_size": self.size,
        }
