# provide dataclass models, their create drafts and update patches
#
# Attributes are snake_case; the stored JSON uses camelCase keys
# (category_id <-> categoryId) so the persisted layout stays stable.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, TypeVar, Union

OrderStatus = Literal["pending", "completed", "cancelled"]
ORDER_STATUSES = ("pending", "completed", "cancelled")

PRODUCT_PLACEHOLDER_IMAGE = "/placeholder.svg?height=192&width=256"
LOGO_PLACEHOLDER_IMAGE = "/placeholder.svg?height=96&width=96"
QR_PLACEHOLDER_IMAGE = "/placeholder.svg?height=192&width=192"

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _encode(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


class Record:
    """Mixin giving dataclass records their camelCase JSON shape."""

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): _encode(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Build a record from its stored form.

        Unknown keys are ignored, missing optional keys take the field
        default. A missing required key raises TypeError.
        """
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} expects an object, got {type(data).__name__}")
        kwargs = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)


@dataclass(frozen=True)
class ProductOption(Record):
    id: str
    name: str
    price: int
    in_stock: bool = True


@dataclass(frozen=True)
class Product(Record):
    id: str
    title: str
    category_id: str  # soft reference to Category.id, never cascaded
    created_at: str  # ISO-8601, UTC
    description: str = ""
    image: str = ""
    in_stock: bool = True
    on_sale: bool = False
    featured: bool = False
    options: List[ProductOption] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        product = super().from_dict(data)
        options = [ProductOption.from_dict(o) for o in data.get("options") or []]
        return replace(product, options=options)


@dataclass(frozen=True)
class Category(Record):
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class Order(Record):
    """
    A placed order. Product and option fields are a snapshot taken at
    purchase time, so the order stays readable after the product changes.
    """

    id: str
    date: str  # YYYY-MM-DD
    customer_name: str
    customer_email: str
    customer_phone: str
    product_id: str
    product_title: str
    option_id: str
    option_name: str
    price: int
    uid: str  # in-game account id the top-up is delivered to
    payment_method: str
    payment_proof: Optional[str] = None
    status: OrderStatus = "pending"


@dataclass(frozen=True)
class ContactSubmission(Record):
    id: str
    name: str
    email: str
    subject: str
    message: str
    date: str
    is_read: bool = False


@dataclass(frozen=True)
class User(Record):
    id: str
    name: str
    email: str
    password: str


@dataclass(frozen=True)
class SiteConfig(Record):
    site_name: str = "Digital Store"
    logo_url: str = LOGO_PLACEHOLDER_IMAGE
    contact_email: str = "support@digitalstore.com"
    contact_phone: str = "+1 (123) 456-7890"
    qr_code_url: str = QR_PLACEHOLDER_IMAGE


@dataclass(frozen=True)
class AdminCredentials:
    username: str = DEFAULT_ADMIN_USERNAME
    password: str = DEFAULT_ADMIN_PASSWORD


@dataclass(frozen=True)
class AdminSession:
    token: str
    issued_at: datetime
    expires_at: datetime


# ---------------------------
# Create inputs
# ---------------------------


@dataclass(frozen=True)
class ProductDraft:
    title: str
    category_id: str
    options: List[ProductOption] = field(default_factory=list)
    description: str = ""
    image: str = ""
    in_stock: bool = True
    on_sale: bool = False
    featured: bool = False


@dataclass(frozen=True)
class CategoryDraft:
    name: str
    description: str = ""


@dataclass(frozen=True)
class OrderDraft:
    customer_name: str
    customer_email: str
    customer_phone: str
    product_id: str
    product_title: str
    option_id: str
    option_name: str
    price: int
    uid: str
    payment_method: str
    payment_proof: Optional[str] = None


@dataclass(frozen=True)
class UserDraft:
    name: str
    email: str
    password: str


@dataclass(frozen=True)
class ContactDraft:
    name: str
    email: str
    subject: str
    message: str


def draft_fields(draft) -> Dict[str, Any]:
    """Shallow field dict of a draft, nested records left as objects."""
    return {f.name: getattr(draft, f.name) for f in fields(draft)}


# ---------------------------
# Update patches
# ---------------------------


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

T = TypeVar("T")
Patchable = Union[T, _Unset]

R = TypeVar("R", bound=Record)


class Patch:
    """
    A set of optional fields. Fields left at UNSET are not touched; any other
    value, None included, replaces the stored one. Lists are replaced whole.
    """

    def changes(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def apply(self, record: R) -> R:
        return replace(record, **self.changes())

    def is_empty(self) -> bool:
        return not self.changes()


@dataclass(frozen=True)
class ProductPatch(Patch):
    title: Patchable[str] = UNSET
    description: Patchable[str] = UNSET
    image: Patchable[str] = UNSET
    category_id: Patchable[str] = UNSET
    in_stock: Patchable[bool] = UNSET
    on_sale: Patchable[bool] = UNSET
    featured: Patchable[bool] = UNSET
    options: Patchable[List[ProductOption]] = UNSET


@dataclass(frozen=True)
class CategoryPatch(Patch):
    name: Patchable[str] = UNSET
    description: Patchable[str] = UNSET


@dataclass(frozen=True)
class OrderPatch(Patch):
    customer_name: Patchable[str] = UNSET
    customer_email: Patchable[str] = UNSET
    customer_phone: Patchable[str] = UNSET
    uid: Patchable[str] = UNSET
    payment_method: Patchable[str] = UNSET
    payment_proof: Patchable[Optional[str]] = UNSET
    status: Patchable[OrderStatus] = UNSET


@dataclass(frozen=True)
class UserPatch(Patch):
    name: Patchable[str] = UNSET
    email: Patchable[str] = UNSET
    password: Patchable[str] = UNSET


@dataclass(frozen=True)
class ContactSubmissionPatch(Patch):
    subject: Patchable[str] = UNSET
    message: Patchable[str] = UNSET
    is_read: Patchable[bool] = UNSET


@dataclass(frozen=True)
class SiteConfigPatch(Patch):
    site_name: Patchable[str] = UNSET
    logo_url: Patchable[str] = UNSET
    contact_email: Patchable[str] = UNSET
    contact_phone: Patchable[str] = UNSET
    qr_code_url: Patchable[str] = UNSET
