import random
import unittest

from errors import InvalidPage, PerPageTooLarge, ValidationFailed
from insert_data import make_sale_payload
from memory_store import InMemorySaleStore
from pagination import MAX_PER_PAGE, PageRequest, fetch_page, total_pages
from sales import parse_sale


def _seed(store: InMemorySaleStore, total: int, nyc: int) -> None:
	rng = random.Random(1234)
	# every other record is NYC until the quota is used up
	nyc_slots = set(range(0, 2 * nyc, 2))
	for i in range(total):
		location = "NYC" if i in nyc_slots else "Denver"
		store.insert(parse_sale(make_sale_payload(rng, store_location=location)))


class TotalPagesTests(unittest.TestCase):
	def test_rounds_up(self):
		self.assertEqual(total_pages(0, 10), 0)
		self.assertEqual(total_pages(1, 10), 1)
		self.assertEqual(total_pages(10, 10), 1)
		self.assertEqual(total_pages(11, 10), 2)
		self.assertEqual(total_pages(90, 50), 2)


class PageRequestTests(unittest.TestCase):
	def test_parses_query_string_values(self):
		req = PageRequest.from_params({"page": "2", "perPage": "25", "storeLocation": "Denver"})
		self.assertEqual(req, PageRequest(page=2, per_page=25, store_location="Denver"))
		self.assertEqual(req.skip, 25)

	def test_empty_location_is_no_filter(self):
		self.assertIsNone(PageRequest.from_params({"page": 1, "perPage": 5, "storeLocation": ""}).location_filter)
		self.assertIsNone(PageRequest.from_params({"page": 1, "perPage": 5}).location_filter)

	def test_integral_floats_are_accepted(self):
		self.assertEqual(PageRequest.from_params({"page": 2.0, "perPage": 10}), PageRequest(page=2, per_page=10))

	def test_rejects_missing_or_invalid_values(self):
		bad = [
			{"perPage": 5},
			{"page": 1},
			{"page": "", "perPage": 5},
			{"page": 0, "perPage": 5},
			{"page": 1, "perPage": 0},
			{"page": "abc", "perPage": 5},
			{"page": 1, "perPage": 5, "storeLocation": 7},
			{"page": 1.5, "perPage": 5},
			{"page": 1, "perPage": 2.5},
			{"page": float("inf"), "perPage": 5},
			{"page": 1, "perPage": float("-inf")},
			{"page": float("nan"), "perPage": 5},
		]
		for params in bad:
			with self.subTest(params=params):
				with self.assertRaises(ValidationFailed):
					PageRequest.from_params(params)


class FetchPageTests(unittest.TestCase):
	def setUp(self):
		self.store = InMemorySaleStore()
		_seed(self.store, total=250, nyc=90)

	def test_filtered_scenario(self):
		first = fetch_page(self.store, PageRequest(page=1, per_page=50, store_location="NYC"))
		self.assertEqual(len(first.data), 50)
		self.assertEqual(first.total_pages, 2)
		self.assertEqual(first.total_records, 90)
		self.assertEqual(first.current_page, 1)
		self.assertTrue(all(sale["storeLocation"] == "NYC" for sale in first.data))

		second = fetch_page(self.store, PageRequest(page=2, per_page=50, store_location="NYC"))
		self.assertEqual(len(second.data), 40)
		self.assertFalse({s["_id"] for s in first.data} & {s["_id"] for s in second.data})

		with self.assertRaises(InvalidPage):
			fetch_page(self.store, PageRequest(page=3, per_page=50, store_location="NYC"))

	def test_skips_leading_records(self):
		everything = fetch_page(self.store, PageRequest(page=1, per_page=100)).data
		everything += fetch_page(self.store, PageRequest(page=2, per_page=100)).data
		everything += fetch_page(self.store, PageRequest(page=3, per_page=100)).data
		self.assertEqual(len(everything), 250)
		ids = [sale["_id"] for sale in everything]

		for per_page in (1, 7, 33, 100):
			pages = total_pages(250, per_page)
			for page in {1, 2, pages}:
				with self.subTest(per_page=per_page, page=page):
					result = fetch_page(self.store, PageRequest(page=page, per_page=per_page))
					self.assertLessEqual(len(result.data), per_page)
					start = (page - 1) * per_page
					self.assertEqual([s["_id"] for s in result.data], ids[start:start + per_page])

	def test_per_page_limit(self):
		result = fetch_page(self.store, PageRequest(page=1, per_page=MAX_PER_PAGE))
		self.assertEqual(len(result.data), 100)
		for page in (1, 2, 50):
			with self.subTest(page=page):
				with self.assertRaises(PerPageTooLarge):
					fetch_page(self.store, PageRequest(page=page, per_page=101))

	def test_per_page_too_large_on_empty_store(self):
		store = InMemorySaleStore()
		with self.assertRaises(PerPageTooLarge):
			fetch_page(store, PageRequest(page=1, per_page=101))
		self.assertEqual(store.calls, [])

	def test_no_matches_is_invalid_page(self):
		for page in (1, 2):
			with self.subTest(page=page):
				with self.assertRaises(InvalidPage):
					fetch_page(self.store, PageRequest(page=page, per_page=10, store_location="Nowhere"))
		self.assertNotIn("find", self.store.calls)

	def test_empty_location_matches_no_filter(self):
		blank = fetch_page(self.store, PageRequest(page=2, per_page=30, store_location=""))
		omitted = fetch_page(self.store, PageRequest(page=2, per_page=30))
		self.assertEqual(blank, omitted)
		self.assertEqual(blank.total_records, 250)

	def test_payload_shape(self):
		payload = fetch_page(self.store, PageRequest(page=1, per_page=5)).to_payload()
		self.assertEqual(set(payload), {"data", "currentPage", "totalPages", "totalRecords"})
		self.assertEqual(payload["totalPages"], 50)


if __name__ == "__main__":
	unittest.main()
