import random
import sys
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

STORE_LOCATIONS = ["Denver", "Seattle", "London", "Austin", "New York", "San Diego"]
PURCHASE_METHODS = ["In store", "Online", "Phone"]
PRODUCTS = {
	"notepad": ["office", "writing", "school"],
	"pens": ["writing", "office", "school", "stationary"],
	"printer paper": ["office", "stationary"],
	"envelopes": ["stationary", "office", "general"],
	"binder": ["school", "general", "organization"],
	"laptop": ["electronics", "school", "office"],
	"backpack": ["school", "travel", "kids"],
}


def make_sale_payload(rng: Optional[random.Random] = None, *, store_location: Optional[str] = None) -> Dict[str, Any]:
	"""Build a random, valid sale request body."""
	rng = rng or random.Random()
	base = datetime(2015, 1, 1)
	sale_date = base + timedelta(days=rng.randint(0, 1500), seconds=rng.randint(0, 86399))
	names = rng.sample(sorted(PRODUCTS), rng.randint(1, 4))
	return {
		"saleDate": sale_date.isoformat() + ".000Z",
		"items": [
			{
				"name": name,
				"tags": PRODUCTS[name],
				"price": f"{rng.uniform(1.0, 1500.0):.2f}",
				"quantity": rng.randint(1, 10),
			}
			for name in names
		],
		"storeLocation": store_location or rng.choice(STORE_LOCATIONS),
		"customer": {
			"gender": rng.choice(["M", "F"]),
			"age": rng.randint(16, 75),
			"email": f"customer{rng.randint(1, 99999)}@example.com",
			"satisfaction": rng.randint(1, 5),
		},
		"couponUsed": rng.random() < 0.2,
		"purchaseMethod": rng.choice(PURCHASE_METHODS),
	}


def ensure_min_sales(min_count: int = 20) -> int:
	from app import create_app
	from sales import parse_sale

	app = create_app()
	store = app.extensions["sale_store"]

	with app.app_context():
		current = store.count()
		if current >= min_count:
			return 0

		to_add = min_count - current
		rng = random.Random()
		for _ in range(to_add):
			store.insert(parse_sale(make_sale_payload(rng)))
		return to_add


if __name__ == "__main__":
	try:
		count = int(sys.argv[1]) if len(sys.argv) > 1 else 20
		added = ensure_min_sales(count)
		print(f"Added {added} sales rows")
	except Exception as exc:
		print(f"ERROR: {exc}")
		sys.exit(1)
