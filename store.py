from __future__ import annotations

import datetime as dt
import json
from dataclasses import dataclass
from decimal import Decimal
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import MySQLdb
from flask_mysqldb import MySQL

from sales import Customer, SaleInput, SaleItem

T = TypeVar("T")

_COLUMNS = (
	"sale_id, sale_date, items, store_location, customer_gender, customer_age, "
	"customer_email, customer_satisfaction, coupon_used, purchase_method"
)


class StoreError(Exception):
	"""Raised for any failure of the underlying database."""


@dataclass(frozen=True)
class UpdateResult:
	matched_count: int
	modified_count: int


def _items_to_json(items: Tuple[SaleItem, ...]) -> str:
	return json.dumps(
		[
			{
				"name": item.name,
				"tags": list(item.tags),
				# string keeps the exact decimal value
				"price": str(item.price),
				"quantity": item.quantity,
			}
			for item in items
		]
	)


def _items_from_json(raw: Any) -> Tuple[SaleItem, ...]:
	if isinstance(raw, (bytes, bytearray)):
		raw = raw.decode("utf-8")
	return tuple(
		SaleItem(
			name=item["name"],
			price=Decimal(str(item["price"])),
			quantity=int(item["quantity"]),
			tags=tuple(item.get("tags") or ()),
		)
		for item in json.loads(raw or "[]")
	)


def row_to_sale(row: Dict[str, Any]) -> SaleInput:
	sale_date = row["sale_date"]
	if isinstance(sale_date, dt.date) and not isinstance(sale_date, dt.datetime):
		sale_date = dt.datetime.combine(sale_date, dt.time())
	return SaleInput(
		sale_date=sale_date,
		items=_items_from_json(row["items"]),
		store_location=row["store_location"],
		customer=Customer(
			gender=row["customer_gender"],
			age=int(row["customer_age"]),
			email=row["customer_email"],
			satisfaction=int(row["customer_satisfaction"]),
		),
		coupon_used=bool(row["coupon_used"]),
		purchase_method=row["purchase_method"],
	)


def _sale_params(sale: SaleInput) -> Tuple[Any, ...]:
	return (
		sale.sale_date,
		_items_to_json(sale.items),
		sale.store_location,
		sale.customer.gender,
		sale.customer.age,
		sale.customer.email,
		sale.customer.satisfaction,
		int(sale.coupon_used),
		sale.purchase_method,
	)


def _location_clause(store_location: Optional[str]) -> Tuple[str, Tuple[Any, ...]]:
	if store_location:
		return " WHERE store_location=%s", (store_location,)
	return "", ()


def _translate_errors(fn: Callable[..., T]) -> Callable[..., T]:
	@wraps(fn)
	def wrapper(self: "SaleStore", *args: Any, **kwargs: Any) -> T:
		try:
			return fn(self, *args, **kwargs)
		except MySQLdb.Error as exc:
			raise StoreError(str(exc)) from exc

	return wrapper


class SaleStore:
	"""Sale records in the MySQL ``sales`` table (see ``schema.sql``).

	Each call uses the request-scoped connection managed by flask-mysqldb, so
	methods must run inside an application context.
	"""

	def __init__(self, mysql: MySQL) -> None:
		self._mysql = mysql

	def _db(self):
		conn = self._mysql.connection
		if conn is None:
			raise StoreError("No database connection available")
		return conn, conn.cursor()

	@_translate_errors
	def ping(self) -> None:
		_, cur = self._db()
		cur.execute("SELECT 1")
		cur.fetchall()

	@_translate_errors
	def count(self, store_location: Optional[str] = None) -> int:
		where, params = _location_clause(store_location)
		_, cur = self._db()
		cur.execute("SELECT COUNT(*) AS c FROM sales" + where, params)
		return int(cur.fetchone()["c"])

	@_translate_errors
	def find(self, store_location: Optional[str] = None, *, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
		where, params = _location_clause(store_location)
		_, cur = self._db()
		cur.execute(
			f"SELECT {_COLUMNS} FROM sales{where} ORDER BY sale_id LIMIT %s OFFSET %s",
			params + (limit, skip),
		)
		return [row_to_sale(row).to_document(row["sale_id"]) for row in cur.fetchall() or []]

	@_translate_errors
	def get(self, sale_id: int) -> Optional[Dict[str, Any]]:
		_, cur = self._db()
		cur.execute(f"SELECT {_COLUMNS} FROM sales WHERE sale_id=%s", (sale_id,))
		row = cur.fetchone()
		if not row:
			return None
		return row_to_sale(row).to_document(row["sale_id"])

	@_translate_errors
	def insert(self, sale: SaleInput) -> Dict[str, Any]:
		conn, cur = self._db()
		try:
			cur.execute(
				"""
				INSERT INTO sales (sale_date, items, store_location, customer_gender, customer_age,
					customer_email, customer_satisfaction, coupon_used, purchase_method)
				VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s)
				""",
				_sale_params(sale),
			)
			conn.commit()
		except MySQLdb.Error:
			conn.rollback()
			raise
		return sale.to_document(cur.lastrowid)

	@_translate_errors
	def update(self, sale_id: int, sale: SaleInput) -> UpdateResult:
		"""Replace every field of a sale.

		The current row is read under ``FOR UPDATE`` so an identical payload is
		reported as matched but not modified, whatever the connection's
		affected-rows mode.
		"""
		conn, cur = self._db()
		try:
			cur.execute(f"SELECT {_COLUMNS} FROM sales WHERE sale_id=%s FOR UPDATE", (sale_id,))
			row = cur.fetchone()
			if not row:
				conn.rollback()
				return UpdateResult(matched_count=0, modified_count=0)
			if row_to_sale(row) == sale:
				conn.rollback()
				return UpdateResult(matched_count=1, modified_count=0)
			cur.execute(
				"""
				UPDATE sales
				SET sale_date=%s, items=%s, store_location=%s, customer_gender=%s, customer_age=%s,
					customer_email=%s, customer_satisfaction=%s, coupon_used=%s, purchase_method=%s
				WHERE sale_id=%s
				""",
				_sale_params(sale) + (sale_id,),
			)
			conn.commit()
		except MySQLdb.Error:
			conn.rollback()
			raise
		return UpdateResult(matched_count=1, modified_count=1)

	@_translate_errors
	def delete(self, sale_id: int) -> int:
		conn, cur = self._db()
		try:
			cur.execute("DELETE FROM sales WHERE sale_id=%s", (sale_id,))
			conn.commit()
		except MySQLdb.Error:
			conn.rollback()
			raise
		return cur.rowcount
