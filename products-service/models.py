import math
import threading
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel

REQUIRED_MESSAGE = "name and price are required"
PRICE_MESSAGE = "price must be a positive number"
NAME_MESSAGE = "name must be a non-empty string"
NOT_FOUND_MESSAGE = "product not found"


class ProductDirectoryError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductValidationError(ProductDirectoryError):
    status_code = 400


class ProductNotFoundError(ProductDirectoryError):
    status_code = 404

    def __init__(self, product_id: int):
        super().__init__(NOT_FOUND_MESSAGE)
        self.product_id = product_id


class Product(BaseModel):
    id: int
    name: str
    price: Union[int, float]


# Données initiales
SEED_PRODUCTS: List[Product] = [
    Product(id=1, name="Смартфон XYZ Pro", price=24990),
    Product(id=2, name="Ноутбук UltraBook 15", price=54990),
    Product(id=3, name="Планшет Tab S8", price=35990),
    Product(id=4, name="Наушники AirSound", price=4990),
]


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (int, float)):
        return value == 0
    return False


def validate_price(price: Any) -> Union[int, float]:
    # bool est une sous-classe de int
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise ProductValidationError(PRICE_MESSAGE)
    if not math.isfinite(price) or price <= 0:
        raise ProductValidationError(PRICE_MESSAGE)
    return price


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ProductValidationError(NAME_MESSAGE)
    return name.strip()


def validate_full(name: Any, price: Any):
    """Checks applied to create and replace: presence first, then price, then name."""
    if _is_blank(name) or _is_blank(price):
        raise ProductValidationError(REQUIRED_MESSAGE)
    price = validate_price(price)
    return validate_name(name), price


def parse_price_bound(label: str, raw: Optional[str]) -> Optional[float]:
    """Parse a ``minPrice``/``maxPrice`` query value; empty means no bound."""
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ProductValidationError(f"{label} must be a number")
    if not math.isfinite(value):
        raise ProductValidationError(f"{label} must be a number")
    return value


class ProductStore:
    """Ordered in-memory product collection.

    Every operation holds the store lock for its whole lookup/mutation
    sequence, and returned products are copies of the stored records.
    """

    def __init__(self, products: Optional[List[Product]] = None):
        if products is None:
            products = SEED_PRODUCTS
        self._products: List[Product] = [p.model_copy() for p in products]
        self._lock = threading.Lock()
        self._next_id = max((p.id for p in self._products), default=0) + 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._products)

    def _index_of(self, product_id: int) -> int:
        for index, product in enumerate(self._products):
            if product.id == product_id:
                return index
        raise ProductNotFoundError(product_id)

    def list(self, min_price: Optional[float] = None, max_price: Optional[float] = None) -> List[Product]:
        with self._lock:
            products = self._products
            if min_price is not None:
                products = [p for p in products if p.price >= min_price]
            if max_price is not None:
                products = [p for p in products if p.price <= max_price]
            return [p.model_copy() for p in products]

    def get(self, product_id: int) -> Product:
        with self._lock:
            return self._products[self._index_of(product_id)].model_copy()

    def create(self, name: Any, price: Any) -> Product:
        name, price = validate_full(name, price)
        with self._lock:
            product = Product(id=self._next_id, name=name, price=price)
            self._next_id += 1
            self._products.append(product)
            return product.model_copy()

    def replace(self, product_id: int, name: Any, price: Any) -> Product:
        name, price = validate_full(name, price)
        with self._lock:
            index = self._index_of(product_id)
            self._products[index] = Product(id=product_id, name=name, price=price)
            return self._products[index].model_copy()

    def patch(self, product_id: int, changes: Dict[str, Any]) -> Product:
        with self._lock:
            product = self._products[self._index_of(product_id)]
            updates = {}
            if "name" in changes:
                updates["name"] = validate_name(changes["name"])
            if "price" in changes:
                updates["price"] = validate_price(changes["price"])
            for field, value in updates.items():
                setattr(product, field, value)
            return product.model_copy()

    def delete(self, product_id: int) -> int:
        with self._lock:
            del self._products[self._index_of(product_id)]
            return product_id
