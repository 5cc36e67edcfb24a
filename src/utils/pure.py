from typing import Dict, Iterable, Tuple

from db.models import ORDER_STATUSES, Order, ProductOption


def price_range(options: Iterable[ProductOption]) -> Tuple[int, int]:
    """
    Lowest and highest option price of a product, as shown on catalog cards.

    Returns (0, 0) for a product without options.
    """
    prices = [o.price for o in options]
    if not prices:
        return 0, 0
    return min(prices), max(prices)


def count_by_status(orders: Iterable[Order]) -> Dict[str, int]:
    counts = {status: 0 for status in ORDER_STATUSES}
    for order in orders:
        counts[order.status] = counts.get(order.status, 0) + 1
    return counts
