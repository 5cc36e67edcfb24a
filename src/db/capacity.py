# size management for the products collection
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List

from db.models import PRODUCT_PLACEHOLDER_IMAGE, Product
from utils.logger import get_logger

_logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_inline_image(value) -> bool:
    """True for image data embedded in the field (a data URL) rather than a link."""
    return isinstance(value, str) and value.startswith("data:image")


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO timestamp; unreadable values sort as the oldest."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _oldest_first(products: List[Product]) -> List[Product]:
    # stable: records with equal timestamps keep their stored order
    return sorted(products, key=lambda p: parse_timestamp(p.created_at))


@dataclass(frozen=True)
class CapacityPolicy:
    """
    How the products collection is kept inside the store's capacity.

    It is applied once before a write (image cap + retention) and once more
    after a write fails (degrade the new record, evict the oldest one).

    Fields:
      - max_inline_image_bytes: inlined images above this size are replaced
        by placeholder_image before they are stored
      - max_products: once the collection holds this many records, it is
        pruned before the next append
      - retain_products: how many of the most recent records survive a prune
      - description_limit / option_limit: caps used by the degraded retry
    """

    max_inline_image_bytes: int = 64 * 1024
    max_products: int = 20
    retain_products: int = 19
    description_limit: int = 100
    option_limit: int = 3
    placeholder_image: str = PRODUCT_PLACEHOLDER_IMAGE

    def __post_init__(self) -> None:
        if self.max_products < 1:
            raise ValueError("max_products must be at least 1.")
        if not 0 <= self.retain_products < self.max_products:
            raise ValueError("retain_products must be in [0, max_products).")
        if self.max_inline_image_bytes < 0:
            raise ValueError("max_inline_image_bytes cannot be negative.")

    def cap_image(self, product: Product) -> Product:
        if not is_inline_image(product.image):
            return product
        size = len(product.image.encode("utf-8"))
        if size <= self.max_inline_image_bytes:
            return product
        _logger.info(
            f"Inline image of {size} bytes on '{product.id}' replaced by placeholder"
        )
        return replace(product, image=self.placeholder_image)

    def prune(self, products: List[Product]) -> List[Product]:
        """Drop the oldest records when the collection is full.

        Returns the records to keep, in their stored order.
        """
        if len(products) < self.max_products:
            return list(products)
        newest = _oldest_first(products)[len(products) - self.retain_products :]
        keep_ids = {p.id for p in newest}
        kept = [p for p in products if p.id in keep_ids]
        _logger.warning(
            f"Products collection full ({len(products)}), "
            f"dropped {len(products) - len(kept)} oldest record(s)"
        )
        return kept

    def degrade(self, product: Product) -> Product:
        return replace(
            product,
            description=product.description[: self.description_limit],
            image=self.placeholder_image,
            options=list(product.options[: self.option_limit]),
        )

    def evict_oldest(self, products: List[Product]) -> List[Product]:
        if not products:
            return []
        oldest = _oldest_first(products)[0]
        _logger.warning(f"Evicting oldest product '{oldest.id}' to make room")
        return [p for p in products if p.id != oldest.id]
