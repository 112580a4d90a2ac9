"""
Pagination package: slices a stitched surface into physical pages.
"""

from .paginator import (
    PageImage,
    PageLayout,
    PageSlice,
    PaginationError,
    compute_layout,
    paginate,
    plan_pages,
)

__all__ = [
    "PageImage",
    "PageLayout",
    "PageSlice",
    "PaginationError",
    "compute_layout",
    "paginate",
    "plan_pages",
]
