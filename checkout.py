import logging
from typing import List

from cart import CartManager
from errors import BackendError, CheckoutError, EmptyCartError
from repository import StoreRepository
from schemas import CartLine, CustomerDetails, Order, OrderStatus

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Standard Order (See Items)"


def order_total(lines: List[CartLine]) -> float:
    return round(sum(line.unit_price * line.quantity for line in lines), 2)


def items_summary(lines: List[CartLine]) -> str:
    summary = ", ".join(f"{line.quantity} x {line.name}" for line in lines)
    if not summary.strip():
        return FALLBACK_SUMMARY
    return summary


def submit_order(repo: StoreRepository, cart: CartManager, details: CustomerDetails) -> Order:
    """
    Write one order and its line items from the current cart.

    The cart is cleared only once both writes succeed. If the items insert
    fails, the order row just created and any of its lines already written
    are deleted again before the failure is raised; should that cleanup also
    fail, the CheckoutError names the orphaned order id.
    """
    lines = cart.get_all()
    if not lines:
        raise EmptyCartError()

    total = order_total(lines)
    summary = items_summary(lines)
    logger.info("Submitting order: name=%s ref=%s total=%s items=%s",
                details.customer_name, details.payment_reference, total, summary)

    try:
        order = repo.insert_order({
            "customer_name": details.customer_name,
            "customer_phone": details.customer_phone,
            "shipping_address": details.shipping_address,
            "payment_reference": details.payment_reference,
            "total_amount": total,
            "status": OrderStatus.PENDING.value,
            "items_summary": summary,
        })
    except BackendError as e:
        raise CheckoutError(f"Order Failed: {e}") from e

    try:
        repo.insert_order_items([
            {
                "order_id": order.id,
                "product_id": line.product_id,
                "quantity": line.quantity,
                "price_at_purchase": line.unit_price,
                "grind_type": line.grind_type,
            }
            for line in lines
        ])
    except BackendError as e:
        try:
            # an ordered bulk insert may have written some lines before failing
            repo.delete_order_items(order.id)
            repo.delete_order(order.id)
        except BackendError:
            logger.error("Order %s left partially written; compensation failed", order.id)
            raise CheckoutError(f"Order Failed: {e} (order {order.id} needs manual cleanup)", order.id) from e
        logger.warning("Rolled back order %s after items insert failed", order.id)
        raise CheckoutError(f"Order Failed: {e}") from e

    cart.clear()
    return order
