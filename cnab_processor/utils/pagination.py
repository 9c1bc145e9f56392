"""Pagination helpers"""

import math
from dataclasses import dataclass

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class PageWindow:
    """Resolved page position after clamping"""

    page_number: int
    page_size: int
    total_count: int

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.page_size

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages


def clamp_page(page_number: int, page_size: int, total_count: int) -> PageWindow:
    """Page < 1 becomes 1, size outside 1..100 is corrected, past-the-end pages land on the last page"""
    if page_number < 1:
        page_number = 1
    if page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    if page_size > MAX_PAGE_SIZE:
        page_size = MAX_PAGE_SIZE

    total_pages = math.ceil(total_count / page_size)
    if total_pages > 0 and page_number > total_pages:
        page_number = total_pages

    return PageWindow(page_number=page_number, page_size=page_size, total_count=total_count)
