"""
Unit tests for ProductStore and the input validation rules.
Runs without the HTTP layer.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import (
    Product,
    ProductNotFoundError,
    ProductStore,
    ProductValidationError,
    SEED_PRODUCTS,
    parse_price_bound,
)


@pytest.fixture
def store():
    return ProductStore()


class TestSeed:

    def test_seed_has_four_products(self, store):
        assert len(store) == 4
        assert [p.id for p in store.list()] == [1, 2, 3, 4]

    def test_stores_are_independent(self):
        first, second = ProductStore(), ProductStore()
        first.delete(1)
        assert len(second) == 4
        assert len(SEED_PRODUCTS) == 4

    def test_empty_store_starts_ids_at_one(self):
        store = ProductStore([])
        assert store.create("Mouse", 10).id == 1


class TestList:

    def test_filters_compose(self, store):
        products = store.list(min_price=10000, max_price=40000)
        assert [(p.name, p.price) for p in products] == [
            ("Смартфон XYZ Pro", 24990),
            ("Планшет Tab S8", 35990),
        ]

    def test_bounds_are_inclusive(self, store):
        assert [p.id for p in store.list(min_price=4990, max_price=4990)] == [4]

    def test_filtering_runs_under_the_lock(self, store):
        seen = []

        class Bound:
            # price >= bound falls back to Bound.__le__
            def __le__(self, price):
                seen.append(store._lock.locked())
                return True

        store.list(min_price=Bound())
        assert seen == [True, True, True, True]

    def test_returned_products_are_copies(self, store):
        store.list()[0].name = "Hacked"
        assert store.get(1).name == "Смартфон XYZ Pro"


class TestCreate:

    def test_create_appends_with_fresh_id(self, store):
        product = store.create("  Mouse ", 999)
        assert product == Product(id=5, name="Mouse", price=999)
        assert store.list()[-1] == product

    def test_ids_increase(self, store):
        ids = [store.create("Mouse", 1).id for _ in range(5)]
        assert ids == sorted(set(ids))

    @pytest.mark.parametrize("name, price, message", [
        ("", 100, "name and price are required"),
        ("Mouse", None, "name and price are required"),
        ("Mouse", 0, "name and price are required"),
        ("Mouse", False, "name and price are required"),
        ("Mouse", -1, "price must be a positive number"),
        ("Mouse", float("nan"), "price must be a positive number"),
        ("Mouse", float("inf"), "price must be a positive number"),
        ("Mouse", "12", "price must be a positive number"),
        (["Mouse"], 12, "name must be a non-empty string"),
    ])
    def test_create_validation(self, store, name, price, message):
        with pytest.raises(ProductValidationError) as excinfo:
            store.create(name, price)
        assert excinfo.value.message == message
        assert excinfo.value.status_code == 400
        assert len(store) == 4


class TestReplace:

    def test_replace_overwrites_in_place(self, store):
        product = store.replace(3, "Tab", 100)
        assert product == Product(id=3, name="Tab", price=100)
        assert [p.id for p in store.list()] == [1, 2, 3, 4]

    def test_replace_validates_before_lookup(self, store):
        with pytest.raises(ProductValidationError):
            store.replace(9999, "", 100)

    def test_replace_missing(self, store):
        with pytest.raises(ProductNotFoundError) as excinfo:
            store.replace(9999, "Tab", 100)
        assert excinfo.value.status_code == 404
        assert excinfo.value.product_id == 9999


class TestPatch:

    def test_patch_only_given_fields(self, store):
        product = store.patch(2, {"price": 49990})
        assert product == Product(id=2, name="Ноутбук UltraBook 15", price=49990)

    def test_patch_empty_changes(self, store):
        assert store.patch(2, {}) == store.get(2)

    def test_patch_failure_changes_nothing(self, store):
        with pytest.raises(ProductValidationError):
            store.patch(2, {"name": "Laptop", "price": -1})
        assert store.get(2).name == "Ноутбук UltraBook 15"

    def test_patch_missing_checked_first(self, store):
        with pytest.raises(ProductNotFoundError):
            store.patch(9999, {"price": -1})


class TestDelete:

    def test_delete_removes(self, store):
        assert store.delete(1) == 1
        with pytest.raises(ProductNotFoundError):
            store.get(1)
        assert 1 not in [p.id for p in store.list()]

    def test_delete_missing(self, store):
        with pytest.raises(ProductNotFoundError):
            store.delete(9999)
        assert len(store) == 4


class TestParsePriceBound:

    @pytest.mark.parametrize("raw", [None, ""])
    def test_absent(self, raw):
        assert parse_price_bound("minPrice", raw) is None

    def test_numeric(self):
        assert parse_price_bound("minPrice", "10.5") == 10.5

    @pytest.mark.parametrize("raw", ["abc", "nan", "inf"])
    def test_invalid(self, raw):
        with pytest.raises(ProductValidationError) as excinfo:
            parse_price_bound("maxPrice", raw)
        assert excinfo.value.message == "maxPrice must be a number"
