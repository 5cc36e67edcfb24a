# default records written to an empty store
from typing import List

from db.models import PRODUCT_PLACEHOLDER_IMAGE, Category, Product, ProductOption


def default_categories() -> List[Category]:
    return [
        Category(
            id="cat-1",
            name="Mobile Games",
            description="Top-up for popular mobile games",
        ),
        Category(
            id="cat-2",
            name="Gift Cards",
            description="Gift cards for various platforms",
        ),
    ]


def default_products(created_at: str) -> List[Product]:
    return [
        Product(
            id="prod-1",
            title="Free Fire Diamonds",
            description="Top up your Free Fire account with diamonds",
            image=PRODUCT_PLACEHOLDER_IMAGE,
            category_id="cat-1",
            in_stock=True,
            on_sale=True,
            featured=True,
            created_at=created_at,
            options=[
                ProductOption(id="opt-1", name="100 Diamonds", price=100),
                ProductOption(id="opt-2", name="310 Diamonds", price=300),
                ProductOption(id="opt-3", name="520 Diamonds", price=500),
                ProductOption(id="opt-4", name="1060 Diamonds", price=1000),
            ],
        ),
        Product(
            id="prod-2",
            title="PUBG Mobile UC",
            description="Top up your PUBG Mobile account with UC",
            image=PRODUCT_PLACEHOLDER_IMAGE,
            category_id="cat-1",
            in_stock=True,
            on_sale=False,
            featured=True,
            created_at=created_at,
            options=[
                ProductOption(id="opt-5", name="60 UC", price=100),
                ProductOption(id="opt-6", name="325 UC", price=500),
                ProductOption(id="opt-7", name="660 UC", price=1000),
            ],
        ),
    ]
