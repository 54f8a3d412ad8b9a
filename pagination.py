"""Paginated, optionally filtered listing of sales.

``fetch_page`` is shared by the JSON listing (``GET /api/sales``) and the
HTML search results (``POST /api/search``).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from errors import InvalidPage, PerPageTooLarge, ValidationFailed
from sales import parse_int

MAX_PER_PAGE = 100


@dataclass(frozen=True)
class PageRequest:
	page: int
	per_page: int
	store_location: Optional[str] = None

	@classmethod
	def from_params(cls, params: Mapping[str, Any]) -> "PageRequest":
		"""Build a request from query-string, form or JSON values.

		``page`` and ``perPage`` are required integers >= 1; ``storeLocation``
		is an optional string and may be empty.
		"""
		for name in ("page", "perPage"):
			if params.get(name) in (None, ""):
				raise ValidationFailed(f"{name} is required")
		store_location = params.get("storeLocation")
		if store_location is not None and not isinstance(store_location, str):
			raise ValidationFailed("storeLocation must be a string")
		return cls(
			page=parse_int(params["page"], "page", minimum=1, strict=True),
			per_page=parse_int(params["perPage"], "perPage", minimum=1, strict=True),
			store_location=store_location,
		)

	@property
	def location_filter(self) -> Optional[str]:
		# "" means no filter, same as not given
		return self.store_location or None

	@property
	def skip(self) -> int:
		return (self.page - 1) * self.per_page


@dataclass(frozen=True)
class SalesPage:
	current_page: int
	total_pages: int
	total_records: int
	data: List[Dict[str, Any]] = field(default_factory=list)

	def to_payload(self) -> Dict[str, Any]:
		return {
			"data": self.data,
			"currentPage": self.current_page,
			"totalPages": self.total_pages,
			"totalRecords": self.total_records,
		}


def total_pages(count: int, per_page: int) -> int:
	return (count + per_page - 1) // per_page


def fetch_page(store, page_request: PageRequest) -> SalesPage:
	"""Return one page of sales, in the store's insertion order.

	``PerPageTooLarge`` is raised for any ``per_page`` above ``MAX_PER_PAGE``;
	``InvalidPage`` when ``page`` is past the last page, which includes every
	page when nothing matches. Both are raised before any rows are fetched.
	"""
	if page_request.per_page > MAX_PER_PAGE:
		raise PerPageTooLarge()

	location = page_request.location_filter
	count = store.count(location)
	pages = total_pages(count, page_request.per_page)
	if page_request.page > pages:
		raise InvalidPage()

	rows = store.find(location, skip=page_request.skip, limit=page_request.per_page)
	return SalesPage(
		current_page=page_request.page,
		total_pages=pages,
		total_records=count,
		data=rows,
	)
