"""Sale payload parsing and document rendering.

A request body is turned into a :class:`SaleInput` by :func:`parse_sale`
before anything reaches the store. Stores hand :class:`SaleInput` values back
and :meth:`SaleInput.to_document` renders them for the API.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from errors import MissingFields, ValidationFailed


@dataclass(frozen=True)
class SaleItem:
	name: str
	price: Decimal
	quantity: int
	tags: Tuple[str, ...] = field(default=(), compare=False)
	# tags are a set: order does not affect equality
	tag_set: FrozenSet[str] = field(init=False, repr=False)

	def __post_init__(self) -> None:
		object.__setattr__(self, "tag_set", frozenset(self.tags))

	def to_document(self) -> Dict[str, Any]:
		return {
			"name": self.name,
			"tags": list(self.tags),
			"price": float(self.price),
			"quantity": self.quantity,
		}


@dataclass(frozen=True)
class Customer:
	gender: str
	age: int
	email: str
	satisfaction: int


@dataclass(frozen=True)
class SaleInput:
	sale_date: dt.datetime
	items: Tuple[SaleItem, ...]
	store_location: str
	customer: Customer
	coupon_used: bool
	purchase_method: str

	def to_document(self, sale_id: Any) -> Dict[str, Any]:
		return {
			"_id": sale_id,
			"saleDate": format_timestamp(self.sale_date),
			"items": [item.to_document() for item in self.items],
			"storeLocation": self.store_location,
			"customer": {
				"gender": self.customer.gender,
				"age": self.customer.age,
				"email": self.customer.email,
				"satisfaction": self.customer.satisfaction,
			},
			"couponUsed": self.coupon_used,
			"purchaseMethod": self.purchase_method,
		}


_TOP_LEVEL = ("saleDate", "items", "storeLocation", "customer", "couponUsed", "purchaseMethod")
_CUSTOMER = ("gender", "age", "email", "satisfaction")
_ITEM = ("name", "price", "quantity")


def _is_missing(value: Any) -> bool:
	if value is None:
		return True
	if isinstance(value, str) and not value.strip():
		return True
	return False


def _missing_fields(body: Mapping[str, Any]) -> List[str]:
	missing = [name for name in _TOP_LEVEL if _is_missing(body.get(name))]

	customer = body.get("customer")
	if isinstance(customer, Mapping):
		missing.extend(f"customer.{name}" for name in _CUSTOMER if _is_missing(customer.get(name)))

	items = body.get("items")
	if isinstance(items, list):
		for index, item in enumerate(items):
			if not isinstance(item, Mapping):
				raise ValidationFailed(f"items[{index}] must be an object")
			missing.extend(f"items[{index}].{name}" for name in _ITEM if _is_missing(item.get(name)))
	return missing


def parse_int(value: Any, field: str, *, minimum: Optional[int] = None, strict: bool = False) -> int:
	"""Coerce to int. With ``strict``, floats with a fractional part are rejected
	instead of truncated."""
	if isinstance(value, bool):
		raise ValidationFailed(f"{field} must be an integer")
	if strict and isinstance(value, float) and not value.is_integer():
		raise ValidationFailed(f"{field} must be an integer")
	try:
		parsed = int(value)
	except (TypeError, ValueError, OverflowError):
		raise ValidationFailed(f"{field} must be an integer")
	if minimum is not None and parsed < minimum:
		raise ValidationFailed(f"{field} must be >= {minimum}")
	return parsed


def parse_decimal(value: Any, field: str) -> Decimal:
	if isinstance(value, bool):
		raise ValidationFailed(f"{field} must be a number")
	try:
		parsed = Decimal(str(value))
	except (InvalidOperation, ValueError):
		raise ValidationFailed(f"{field} must be a number")
	if not parsed.is_finite():
		raise ValidationFailed(f"{field} must be a number")
	return parsed


def parse_timestamp(value: Any, field: str) -> dt.datetime:
	"""Parse an ISO-8601 date or date-time into naive UTC, millisecond precision."""
	if not isinstance(value, str):
		raise ValidationFailed(f"{field} must be an ISO-8601 timestamp")
	text = value.strip()
	if text.endswith(("Z", "z")):
		text = text[:-1] + "+00:00"
	try:
		parsed = dt.datetime.fromisoformat(text)
	except ValueError:
		raise ValidationFailed(f"{field} must be an ISO-8601 timestamp")
	if parsed.tzinfo is not None:
		parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
	return parsed.replace(microsecond=parsed.microsecond // 1000 * 1000)


def format_timestamp(value: dt.datetime) -> str:
	return value.isoformat(timespec="milliseconds") + "Z"


def _parse_str(value: Any, field: str) -> str:
	if not isinstance(value, str):
		raise ValidationFailed(f"{field} must be a string")
	return value.strip()


def _parse_tags(value: Any, field: str) -> Tuple[str, ...]:
	if value is None:
		return ()
	if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
		raise ValidationFailed(f"{field} must be a list of strings")
	# a set of tags, kept in first-seen order
	return tuple(dict.fromkeys(value))


def _parse_item(raw: Mapping[str, Any], index: int) -> SaleItem:
	prefix = f"items[{index}]"
	return SaleItem(
		name=_parse_str(raw["name"], f"{prefix}.name"),
		price=parse_decimal(raw["price"], f"{prefix}.price"),
		quantity=parse_int(raw["quantity"], f"{prefix}.quantity"),
		tags=_parse_tags(raw.get("tags"), f"{prefix}.tags"),
	)


def parse_sale(body: Any) -> SaleInput:
	"""Validate a full sale payload.

	Raises :class:`MissingFields` when any required field (top-level or
	nested) is absent, :class:`ValidationFailed` when a present field has the
	wrong type. ``customer.age`` and ``customer.satisfaction`` are coerced to
	integers; non-numeric values are rejected.
	"""
	if not isinstance(body, Mapping):
		raise ValidationFailed("Request body must be a JSON object")

	missing = _missing_fields(body)
	if missing:
		raise MissingFields(missing)

	items = body["items"]
	if not isinstance(items, list):
		raise ValidationFailed("items must be a list")
	customer = body["customer"]
	if not isinstance(customer, Mapping):
		raise ValidationFailed("customer must be an object")
	coupon_used = body["couponUsed"]
	if not isinstance(coupon_used, bool):
		raise ValidationFailed("couponUsed must be a boolean")

	return SaleInput(
		sale_date=parse_timestamp(body["saleDate"], "saleDate"),
		items=tuple(_parse_item(item, index) for index, item in enumerate(items)),
		store_location=_parse_str(body["storeLocation"], "storeLocation"),
		customer=Customer(
			gender=_parse_str(customer["gender"], "customer.gender"),
			age=parse_int(customer["age"], "customer.age"),
			email=_parse_str(customer["email"], "customer.email"),
			satisfaction=parse_int(customer["satisfaction"], "customer.satisfaction"),
		),
		coupon_used=coupon_used,
		purchase_method=_parse_str(body["purchaseMethod"], "purchaseMethod"),
	)
