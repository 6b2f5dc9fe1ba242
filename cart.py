import json
import logging
from typing import Any, Callable, List, Mapping, Union

from pydantic import ValidationError

from config import CART_STORAGE_KEY, settings
from schemas import CartLine, Product
from storage import LocalStorage, MemoryStorage

logger = logging.getLogger(__name__)

CartListener = Callable[[List[CartLine]], None]


def _price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class CartManager:
    """
    Ordered cart lines, unique by product id, persisted to client storage
    after every mutation. Listeners receive the new snapshot after each
    persist (the cart badge is one of them).
    """

    def __init__(self, storage: MemoryStorage, key: str = CART_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._listeners: List[CartListener] = []
        self._lines: List[CartLine] = self._restore()

    def _restore(self) -> List[CartLine]:
        raw = self.storage.get_item(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            lines = [CartLine.model_validate(item) for item in data]
        except (ValueError, TypeError, ValidationError):
            logger.debug("Discarding malformed cart under %s", self.key)
            return []
        merged: List[CartLine] = []
        for line in lines:
            idx = self._index(merged, line.product_id)
            if idx is None:
                merged.append(line)
            else:
                merged[idx] = merged[idx].model_copy(update={"quantity": merged[idx].quantity + line.quantity})
        return merged

    @staticmethod
    def _index(lines: List[CartLine], product_id: Any):
        wanted = str(product_id)
        for i, line in enumerate(lines):
            if line.product_id == wanted:
                return i
        return None

    def subscribe(self, listener: CartListener) -> None:
        self._listeners.append(listener)

    def add(self, product: Union[Product, CartLine, Mapping[str, Any]]) -> CartLine:
        if isinstance(product, Product):
            product_id, name, price = product.id, product.name, product.price
        elif isinstance(product, CartLine):
            product_id, name, price = product.product_id, product.name, product.unit_price
        else:
            product_id, name, price = product["id"], product.get("name", ""), _price(product.get("price"))

        idx = self._index(self._lines, product_id)
        if idx is not None:
            line = self._lines[idx].model_copy(update={"quantity": self._lines[idx].quantity + 1})
            self._lines[idx] = line
        else:
            line = CartLine(product_id=product_id, name=name, unit_price=max(price, 0.0), quantity=1)
            self._lines.append(line)
        self.persist()
        return line

    def remove(self, product_id: Any) -> bool:
        idx = self._index(self._lines, product_id)
        if idx is None:
            return False
        del self._lines[idx]
        self.persist()
        return True

    def get_all(self) -> List[CartLine]:
        return list(self._lines)

    def clear(self) -> None:
        self._lines = []
        self.storage.remove_item(self.key)
        self._notify()

    def persist(self) -> None:
        payload = json.dumps([line.model_dump() for line in self._lines])
        self.storage.set_item(self.key, payload)
        self._notify()

    def _notify(self) -> None:
        snapshot = self.get_all()
        for listener in self._listeners:
            listener(snapshot)

    def total(self) -> float:
        return round(sum(line.line_total for line in self._lines), 2)

    def count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self):
        return len(self._lines)


def open_cart(path: str = settings.CART_STORAGE_PATH) -> CartManager:
    """Cart restored from the file-backed client storage."""
    return CartManager(LocalStorage(path))
