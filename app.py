from __future__ import annotations

import hmac
import os
import sys
from typing import Any, Dict, Mapping, Optional

import dicttoxml
from flask import Flask, Response, jsonify, make_response, render_template, request
from flask_mysqldb import MySQL
from werkzeug.exceptions import HTTPException

from config import Config, parse_database_url
from errors import InternalError, SaleNotFound, Unauthorized, ValidationFailed
from logger import get_logger, setup_logger
from pagination import PageRequest, fetch_page
from sales import parse_sale
from store import SaleStore, StoreError


mysql = MySQL()
logger = get_logger()

API_KEY_HEADER = "API-Key"
_ENV_KEYS = (
	"DATABASE_URL",
	"MYSQL_USER",
	"MYSQL_PASSWORD",
	"MYSQL_HOST",
	"MYSQL_DB",
	"MYSQL_PORT",
	"API_KEY",
	"PORT",
	"LOG_LEVEL",
	"LOG_FORMAT",
)
_INT_KEYS = {"MYSQL_PORT", "PORT"}


def _get_format(*, strict: bool = True) -> str:
	fmt = (request.args.get("format") or "json").strip().lower()
	if fmt not in {"json", "xml"}:
		if strict:
			raise ValidationFailed("format must be 'json' or 'xml'")
		return "json"
	return fmt


def _to_xml(payload: Any, root: str = "response") -> bytes:
	return dicttoxml.dicttoxml(payload, custom_root=root, attr_type=False)


def api_response(payload: Any, status: int = 200, *, root: str = "response", strict: bool = True) -> Response:
	fmt = _get_format(strict=strict)
	if fmt == "xml":
		resp = make_response(_to_xml(payload, root=root), status)
		resp.headers["Content-Type"] = "application/xml; charset=utf-8"
		return resp
	return make_response(jsonify(payload), status)


def error_response(message: str, status: int, *, details: Optional[Dict[str, Any]] = None) -> Response:
	payload: Dict[str, Any] = {"message": message}
	if details:
		payload.update(details)
	return api_response(payload, status=status, root="error", strict=False)


def _handle_db_error(exc: Exception) -> Response:
	logger.error(
		"Database error",
		exc_info=exc,
		extra={"method": request.method, "path": request.path},
	)
	return error_response(InternalError.description, 500)


def _request_params() -> Mapping[str, Any]:
	if request.is_json:
		body = request.get_json(silent=True)
		if not isinstance(body, dict):
			raise ValidationFailed("Request body must be a JSON object")
		return body
	return request.form


def _load_config(app: Flask, overrides: Optional[Mapping[str, Any]]) -> None:
	app.config.from_object(Config)

	# Env vars take precedence over Config class attributes, which are
	# evaluated at import time.
	for name in _ENV_KEYS:
		value = os.getenv(name)
		if value is not None:
			app.config[name] = value
	if overrides:
		app.config.update(overrides)

	app.config.update(parse_database_url(app.config.get("DATABASE_URL")))
	for name in _INT_KEYS:
		app.config[name] = int(app.config[name])
	app.config.setdefault("MYSQL_CURSORCLASS", "DictCursor")


def create_app(store: Optional[Any] = None, overrides: Optional[Mapping[str, Any]] = None) -> Flask:
	"""Build the app.

	``store`` is the sale store handle; by default a :class:`SaleStore` over
	the module-level flask-mysqldb extension. ``overrides`` are applied on top
	of the environment.
	"""
	app = Flask(__name__)
	_load_config(app, overrides)

	setup_logger(logger.name, app.config["LOG_LEVEL"], app.config["LOG_FORMAT"])
	if not app.config.get("API_KEY"):
		logger.warning("API_KEY is not configured; every request will be rejected")

	if store is None:
		mysql.init_app(app)
		store = SaleStore(mysql)
	app.extensions["sale_store"] = store

	# -------------------------
	# Access gate and CORS
	# -------------------------
	@app.before_request
	def require_api_key() -> Optional[Response]:
		expected = app.config.get("API_KEY")
		provided = request.headers.get(API_KEY_HEADER)
		if not expected or not provided or not hmac.compare_digest(
			provided.encode("utf-8"), str(expected).encode("utf-8")
		):
			logger.info("Rejected request without valid API key", extra={"path": request.path})
			return error_response(Unauthorized.description, 401)
		return None

	@app.after_request
	def add_cors_headers(resp: Response) -> Response:
		resp.headers["Access-Control-Allow-Origin"] = "*"
		resp.headers["Access-Control-Allow-Headers"] = (
			"Origin, X-Requested-With, Content-Type, Accept, " + API_KEY_HEADER
		)
		logger.debug(
			"Request handled",
			extra={"method": request.method, "path": request.path, "status": resp.status_code},
		)
		return resp

	@app.get("/")
	def index() -> str:
		return "Project is Running"

	@app.get("/api")
	def api_index() -> str:
		return "Sales related routes"

	# -------------------------
	# Search view
	# -------------------------
	@app.get("/api/search")
	def search_form() -> str:
		return render_template("search.html")

	@app.post("/api/search")
	def search_results() -> Any:
		page_request = PageRequest.from_params(_request_params())
		try:
			page = fetch_page(store, page_request)
		except StoreError as e:
			return _handle_db_error(e)
		return render_template(
			"display.html",
			data=page.data,
			page=page,
			store_location=page_request.store_location or "",
		)

	# -------------------------
	# Sales CRUD
	# -------------------------
	@app.get("/api/sales")
	def list_sales() -> Response:
		_get_format()
		page_request = PageRequest.from_params(request.args)
		try:
			page = fetch_page(store, page_request)
		except StoreError as e:
			return _handle_db_error(e)
		return api_response(page.to_payload())

	@app.post("/api/sales")
	def create_sale() -> Response:
		_get_format()
		sale = parse_sale(request.get_json(silent=True))
		try:
			created = store.insert(sale)
		except StoreError as e:
			return _handle_db_error(e)
		logger.info("Sale created", extra={"sale_id": created["_id"]})
		resp = api_response(created, status=201)
		resp.headers["Location"] = f"/api/sales/{created['_id']}" + _format_suffix()
		return resp

	@app.get("/api/sales/<int:sale_id>")
	def get_sale(sale_id: int) -> Response:
		_get_format()
		try:
			sale = store.get(sale_id)
		except StoreError as e:
			return _handle_db_error(e)
		if sale is None:
			raise SaleNotFound()
		return api_response(sale)

	@app.put("/api/sales/<int:sale_id>")
	def update_sale(sale_id: int) -> Response:
		_get_format()
		sale = parse_sale(request.get_json(silent=True))
		try:
			result = store.update(sale_id, sale)
		except StoreError as e:
			return _handle_db_error(e)
		if result.modified_count == 1:
			logger.info("Sale updated", extra={"sale_id": sale_id})
			return api_response({"message": "Sales updated successfully"})
		if result.matched_count == 1:
			return api_response({"message": "Sales could not be updated. Nothing has changed."})
		raise SaleNotFound("Sales not found")

	@app.delete("/api/sales/<int:sale_id>")
	def delete_sale(sale_id: int) -> Response:
		_get_format()
		try:
			deleted = store.delete(sale_id)
		except StoreError as e:
			return _handle_db_error(e)
		if deleted == 0:
			raise SaleNotFound()
		logger.info("Sale deleted", extra={"sale_id": sale_id})
		return api_response({"message": "Sale deleted successfully"})

	# -------------------------
	# Consistent JSON/XML errors
	# -------------------------
	@app.errorhandler(HTTPException)
	def _http_error(err: HTTPException) -> Any:
		if err.code is not None and err.code < 400:
			# routing redirects
			return err
		details = getattr(err, "details", None)
		return error_response(str(err.description or err.name), err.code or 500, details=details)

	@app.errorhandler(Exception)
	def _unhandled(err: Exception) -> Response:
		logger.error(
			"Unhandled error",
			exc_info=err,
			extra={"method": request.method, "path": request.path},
		)
		return error_response(InternalError.description, 500)

	return app


def _format_suffix() -> str:
	fmt = request.args.get("format")
	if fmt:
		return f"?format={fmt}"
	return ""


def main() -> None:
	app = create_app()
	with app.app_context():
		try:
			app.extensions["sale_store"].ping()
		except StoreError as exc:
			logger.error("Server could not be started", extra={"error": str(exc)})
			sys.exit(1)
	logger.info("Database connected successfully")
	port = app.config["PORT"]
	logger.info(f"App running at port : {port}")
	app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
	main()
