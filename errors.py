from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from werkzeug.exceptions import BadRequest, HTTPException, InternalServerError, NotFound
from werkzeug.exceptions import Unauthorized as _Unauthorized


class ApiError(HTTPException):
	"""Base for errors rendered as ``{"message": ...}`` by the app."""

	details: Optional[Dict[str, Any]] = None


class Unauthorized(ApiError, _Unauthorized):
	description = "You are not authorized to access this resource."


class ValidationFailed(ApiError, BadRequest):
	description = "Invalid request"


class MissingFields(ApiError, BadRequest):
	description = "Missing required fields"

	def __init__(self, fields: Iterable[str]) -> None:
		super().__init__()
		self.fields = list(fields)
		self.details = {"fields": self.fields}


class InvalidPage(ApiError, BadRequest):
	description = "Invalid page value"


class PerPageTooLarge(ApiError, BadRequest):
	description = "perPage value too large"


class SaleNotFound(ApiError, NotFound):
	description = "Sale not found"


class InternalError(ApiError, InternalServerError):
	description = "Internal server error"
