from typing import Optional


class StorefrontError(Exception):
    pass


class BackendError(StorefrontError):
    """A query was rejected by the database. The raw driver message is kept."""


class RecordNotFoundError(StorefrontError):
    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} record {record_id} not found")
        self.collection = collection
        self.record_id = record_id


class EmptyCartError(StorefrontError):
    def __init__(self):
        super().__init__("Your cart is empty.")


class CheckoutError(StorefrontError):
    def __init__(self, message: str, order_id: Optional[str] = None):
        super().__init__(message)
        self.order_id = order_id


class InvalidTransitionError(StorefrontError):
    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(f"{entity} cannot move from '{current}' to '{requested}'")
        self.entity = entity
        self.current = current
        self.requested = requested
