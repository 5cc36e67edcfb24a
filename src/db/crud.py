# src/db/crud.py
from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import fields, replace
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, List, Optional, Type, TypeVar

from db import models
from db.capacity import CapacityPolicy, is_inline_image
from db.config import DEFAULT_SESSION_TTL, StoreSettings
from db.database import KeyValueStore, SqliteStore
from db.errors import ParseError, QuotaExceededError, StorageExhaustedError, ValidationError
from db.ids import IdGenerator
from db.seed import default_categories, default_products
from db.sessions import SessionSigner
from utils.logger import get_logger
from utils.pure import count_by_status

_logger = get_logger(__name__)

PRODUCTS_KEY = "products"
CATEGORIES_KEY = "categories"
ORDERS_KEY = "orders"
USERS_KEY = "users"
CONTACT_SUBMISSIONS_KEY = "contactSubmissions"
SITE_CONFIG_KEY = "siteConfig"
SITE_LOGO_KEY = "siteLogoImage"
SITE_QR_KEY = "siteQrCodeImage"
ADMIN_TOKEN_KEY = "adminToken"
ADMIN_USERNAME_KEY = "adminUsername"
ADMIN_PASSWORD_KEY = "adminPassword"
CURRENT_USER_KEY = "currentUser"

LOGO_TOKEN_PREFIX = "custom-logo-"
QR_TOKEN_PREFIX = "custom-qr-"

R = TypeVar("R", bound=models.Record)


def _now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def _today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _decode_collection(key: str, raw: str, model: Type[R]) -> List[R]:
    try:
        data = json.loads(raw)
    except ValueError as err:
        raise ParseError(key, str(err)) from err
    if not isinstance(data, list):
        raise ParseError(key, f"expected a list, got {type(data).__name__}")
    records = []
    for index, item in enumerate(data):
        try:
            records.append(model.from_dict(item))
        except (TypeError, KeyError, ValueError, AttributeError) as err:
            _logger.error(f"Skipping malformed record {index} in {key}: {err}")
    return records


def _fill_site_config_defaults(config: models.SiteConfig) -> models.SiteConfig:
    """Replace every field that is not a string with the field default."""
    defaults = models.SiteConfig()
    broken = {
        f.name: getattr(defaults, f.name)
        for f in fields(config)
        if not isinstance(getattr(config, f.name), str)
    }
    if broken:
        _logger.warning(f"Site config fields reset to defaults: {sorted(broken)}")
        config = replace(config, **broken)
    return config


def _encode_collection(records: List[models.Record]) -> str:
    return json.dumps([r.to_dict() for r in records])


def validate_product(draft: models.ProductDraft) -> None:
    """Raise ValidationError naming the first rule the draft breaks."""
    if not draft.title or not draft.category_id:
        raise ValidationError("Product title and category are required")
    if not draft.options:
        raise ValidationError("At least one product option is required")
    for option in draft.options:
        if not option.name or option.price is None:
            raise ValidationError("Each option must have a name and price")
        if isinstance(option.price, bool) or not isinstance(option.price, int):
            raise ValidationError("Option prices must be whole numbers")
        if option.price < 0:
            raise ValidationError("Option prices cannot be negative")
    ids = [o.id for o in draft.options if o.id]
    if len(ids) != len(set(ids)):
        raise ValidationError("Option ids must be unique within a product")


class Repository:
    """
    Collection-style CRUD for the storefront over a KeyValueStore.

    Collection methods read the whole collection, change it and write it
    back in one awaited call. Reads never raise on corrupt data, they
    log and return an empty result. Creates raise ValidationError on bad
    input and StorageExhaustedError when the store is full.
    """

    def __init__(
        self,
        store: KeyValueStore,
        policy: Optional[CapacityPolicy] = None,
        secret: Optional[str] = None,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        signer: Optional[SessionSigner] = None,
    ) -> None:
        self.store = store
        self.policy = policy or CapacityPolicy()
        self._ids = IdGenerator()
        self._signer = signer or SessionSigner(secret, session_ttl)

    # ---------------------------
    # Initialization
    # ---------------------------

    async def initialize(self) -> None:
        """Seed each collection key that is entirely absent. Never overwrites."""
        created_at = _now_iso()
        seeds = {
            CATEGORIES_KEY: default_categories(),
            PRODUCTS_KEY: default_products(created_at),
            ORDERS_KEY: [],
            USERS_KEY: [],
            CONTACT_SUBMISSIONS_KEY: [],
        }
        for key, records in seeds.items():
            if await self.store.get_item(key) is not None:
                continue
            _logger.info(f"Seeding '{key}' with {len(records)} default record(s)")
            await self.store.set_item(key, _encode_collection(records))

    # ---------------------------
    # Collection helpers
    # ---------------------------

    async def _load(self, key: str, model: Type[R]) -> List[R]:
        raw = await self.store.get_item(key)
        if raw is None:
            return []
        try:
            return _decode_collection(key, raw, model)
        except ParseError as err:
            _logger.error(f"Failed to read {key}: {err}")
            return []

    async def _save(self, key: str, records: List[models.Record]) -> None:
        try:
            await self.store.set_item(key, _encode_collection(records))
        except QuotaExceededError as err:
            raise StorageExhaustedError(
                f"Could not save {key}: storage is full."
            ) from err

    async def _get(self, key: str, model: Type[R], record_id: str) -> Optional[R]:
        for record in await self._load(key, model):
            if record.id == record_id:
                return record
        return None

    async def _append(self, key: str, model: Type[R], record: R) -> R:
        records = await self._load(key, model)
        await self._save(key, [*records, record])
        return record

    async def _update(
        self, key: str, model: Type[R], record_id: str, patch: models.Patch
    ) -> Optional[R]:
        records = await self._load(key, model)
        for index, record in enumerate(records):
            if record.id == record_id:
                break
        else:
            return None
        if patch.is_empty():
            return record
        updated = patch.apply(record)
        records[index] = updated
        await self._save(key, records)
        return updated

    async def _delete(self, key: str, model: Type[R], record_id: str) -> bool:
        records = await self._load(key, model)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        await self._save(key, remaining)
        return True

    async def _new_id(self, key: str, model: Type[R], prefix: str) -> str:
        taken = {r.id for r in await self._load(key, model)}
        return self._ids.next(prefix, taken)

    # ---------------------------
    # Products
    # ---------------------------

    async def list_products(self) -> List[models.Product]:
        return await self._load(PRODUCTS_KEY, models.Product)

    async def get_product(self, product_id: str) -> Optional[models.Product]:
        return await self._get(PRODUCTS_KEY, models.Product, product_id)

    async def create_product(self, draft: models.ProductDraft) -> models.Product:
        """
        Validate, stamp and append a product, keeping the collection in budget.

        Before the write the inline image is capped and a full collection is
        pruned. If the write is refused by the store, one retry is made with a
        degraded copy of the product and the oldest record evicted. Returns
        the record actually stored.
        """
        validate_product(draft)
        products = await self.list_products()
        taken = {p.id for p in products}

        option_ids = {o.id for o in draft.options if o.id}
        options = []
        for option in draft.options:
            if not option.id:
                option = replace(option, id=self._ids.next("opt", option_ids))
                option_ids.add(option.id)
            options.append(option)

        product = models.Product(
            id=self._ids.next("prod", taken),
            created_at=_now_iso(),
            **{**models.draft_fields(draft), "options": options},
        )
        product = self.policy.cap_image(product)
        kept = self.policy.prune(products)

        try:
            await self.store.set_item(PRODUCTS_KEY, _encode_collection([*kept, product]))
            return product
        except QuotaExceededError as err:
            _logger.warning(f"Failed to save product '{product.id}': {err}")

        minimal = self.policy.degrade(product)
        remaining = self.policy.evict_oldest(kept)
        try:
            await self.store.set_item(
                PRODUCTS_KEY, _encode_collection([*remaining, minimal])
            )
        except QuotaExceededError as err:
            raise StorageExhaustedError(
                "Storage quota exceeded. Try clearing stored data or using smaller images."
            ) from err
        _logger.warning(f"Saved product '{minimal.id}' in reduced form")
        return minimal

    async def update_product(
        self, product_id: str, patch: models.ProductPatch
    ) -> Optional[models.Product]:
        return await self._update(PRODUCTS_KEY, models.Product, product_id, patch)

    async def delete_product(self, product_id: str) -> bool:
        return await self._delete(PRODUCTS_KEY, models.Product, product_id)

    async def featured_products(self) -> List[models.Product]:
        return [p for p in await self.list_products() if p.featured]

    async def products_by_category(self, category_id: str) -> List[models.Product]:
        """Products whose category_id matches; "all" returns every product."""
        products = await self.list_products()
        if category_id == "all":
            return products
        return [p for p in products if p.category_id == category_id]

    # ---------------------------
    # Categories
    # ---------------------------

    async def list_categories(self) -> List[models.Category]:
        return await self._load(CATEGORIES_KEY, models.Category)

    async def get_category(self, category_id: str) -> Optional[models.Category]:
        return await self._get(CATEGORIES_KEY, models.Category, category_id)

    async def create_category(self, draft: models.CategoryDraft) -> models.Category:
        category = models.Category(
            id=await self._new_id(CATEGORIES_KEY, models.Category, "cat"),
            **models.draft_fields(draft),
        )
        return await self._append(CATEGORIES_KEY, models.Category, category)

    async def update_category(
        self, category_id: str, patch: models.CategoryPatch
    ) -> Optional[models.Category]:
        return await self._update(CATEGORIES_KEY, models.Category, category_id, patch)

    async def delete_category(self, category_id: str) -> bool:
        """Remove a category. Products pointing at it keep the dangling id."""
        return await self._delete(CATEGORIES_KEY, models.Category, category_id)

    # ---------------------------
    # Orders
    # ---------------------------

    async def list_orders(self) -> List[models.Order]:
        return await self._load(ORDERS_KEY, models.Order)

    async def get_order(self, order_id: str) -> Optional[models.Order]:
        return await self._get(ORDERS_KEY, models.Order, order_id)

    async def create_order(self, draft: models.OrderDraft) -> models.Order:
        """Record a new pending order dated today. Product stock is not touched."""
        order = models.Order(
            id=await self._new_id(ORDERS_KEY, models.Order, "order"),
            date=_today_iso(),
            status="pending",
            **models.draft_fields(draft),
        )
        return await self._append(ORDERS_KEY, models.Order, order)

    async def update_order(
        self, order_id: str, patch: models.OrderPatch
    ) -> Optional[models.Order]:
        """
        Apply a patch to an order.

        Status must be one of the known values, but the transition itself is
        not checked here: completed -> pending goes through. Use
        set_order_status for the guarded transition.
        """
        if patch.status is not models.UNSET and patch.status not in models.ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {patch.status}")
        return await self._update(ORDERS_KEY, models.Order, order_id, patch)

    async def set_order_status(
        self, order_id: str, status: models.OrderStatus
    ) -> Optional[models.Order]:
        """Move a pending order to completed or cancelled.

        Returns None for an unknown order, raises ValidationError for any
        other transition. Setting the status an order already has is a no-op.
        """
        if status not in models.ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        order = await self.get_order(order_id)
        if order is None:
            return None
        if order.status == status:
            return order
        if order.status != "pending":
            raise ValidationError(
                f"Order {order_id} is {order.status} and can no longer change status"
            )
        if status == "pending":
            raise ValidationError(f"Order {order_id} cannot go back to pending")
        return await self._update(
            ORDERS_KEY, models.Order, order_id, models.OrderPatch(status=status)
        )

    async def delete_order(self, order_id: str) -> bool:
        return await self._delete(ORDERS_KEY, models.Order, order_id)

    # ---------------------------
    # Users & customer session
    # ---------------------------

    async def list_users(self) -> List[models.User]:
        return await self._load(USERS_KEY, models.User)

    async def get_user(self, user_id: str) -> Optional[models.User]:
        return await self._get(USERS_KEY, models.User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[models.User]:
        for user in await self.list_users():
            if user.email == email:
                return user
        return None

    async def create_user(self, draft: models.UserDraft) -> models.User:
        users = await self.list_users()
        if any(u.email == draft.email for u in users):
            raise ValidationError("Email already exists")
        user = models.User(
            id=self._ids.next("user", {u.id for u in users}),
            **models.draft_fields(draft),
        )
        await self._save(USERS_KEY, [*users, user])
        return user

    async def update_user(
        self, user_id: str, patch: models.UserPatch
    ) -> Optional[models.User]:
        if patch.email is not models.UNSET:
            owner = await self.get_user_by_email(patch.email)
            if owner is not None and owner.id != user_id:
                raise ValidationError("Email already exists")
        return await self._update(USERS_KEY, models.User, user_id, patch)

    async def delete_user(self, user_id: str) -> bool:
        return await self._delete(USERS_KEY, models.User, user_id)

    async def login_user(self, email: str, password: str) -> Optional[models.User]:
        """Match email and password; on success remember the user as current."""
        user = await self.get_user_by_email(email)
        if user is None or user.password != password:
            return None
        await self.store.set_item(CURRENT_USER_KEY, json.dumps(user.to_dict()))
        return user

    async def get_current_user(self) -> Optional[models.User]:
        raw = await self.store.get_item(CURRENT_USER_KEY)
        if raw is None:
            return None
        try:
            return models.User.from_dict(json.loads(raw))
        except (TypeError, ValueError) as err:
            _logger.error(f"Failed to read current user: {err}")
            return None

    async def logout_user(self) -> None:
        await self.store.remove_item(CURRENT_USER_KEY)

    # ---------------------------
    # Contact submissions
    # ---------------------------

    async def list_contact_submissions(self) -> List[models.ContactSubmission]:
        return await self._load(CONTACT_SUBMISSIONS_KEY, models.ContactSubmission)

    async def get_contact_submission(
        self, submission_id: str
    ) -> Optional[models.ContactSubmission]:
        return await self._get(
            CONTACT_SUBMISSIONS_KEY, models.ContactSubmission, submission_id
        )

    async def create_contact_submission(
        self, draft: models.ContactDraft
    ) -> models.ContactSubmission:
        submission = models.ContactSubmission(
            id=await self._new_id(
                CONTACT_SUBMISSIONS_KEY, models.ContactSubmission, "contact"
            ),
            date=_now_iso(),
            is_read=False,
            **models.draft_fields(draft),
        )
        return await self._append(
            CONTACT_SUBMISSIONS_KEY, models.ContactSubmission, submission
        )

    async def update_contact_submission(
        self, submission_id: str, patch: models.ContactSubmissionPatch
    ) -> Optional[models.ContactSubmission]:
        return await self._update(
            CONTACT_SUBMISSIONS_KEY, models.ContactSubmission, submission_id, patch
        )

    async def mark_contact_submission_read(
        self, submission_id: str
    ) -> Optional[models.ContactSubmission]:
        return await self.update_contact_submission(
            submission_id, models.ContactSubmissionPatch(is_read=True)
        )

    async def delete_contact_submission(self, submission_id: str) -> bool:
        return await self._delete(
            CONTACT_SUBMISSIONS_KEY, models.ContactSubmission, submission_id
        )

    # ---------------------------
    # Site config
    # ---------------------------

    async def get_site_config(self) -> models.SiteConfig:
        """Stored site config with inline images resolved; defaults if unset."""
        raw = await self.store.get_item(SITE_CONFIG_KEY)
        if raw is None:
            return models.SiteConfig()
        try:
            config = models.SiteConfig.from_dict(json.loads(raw))
        except (TypeError, ValueError) as err:
            _logger.error(f"Failed to parse site config: {err}")
            return models.SiteConfig()
        config = _fill_site_config_defaults(config)

        if config.logo_url.startswith(LOGO_TOKEN_PREFIX):
            stored_logo = await self.store.get_item(SITE_LOGO_KEY)
            if stored_logo:
                config = replace(config, logo_url=stored_logo)
        if config.qr_code_url.startswith(QR_TOKEN_PREFIX):
            stored_qr = await self.store.get_item(SITE_QR_KEY)
            if stored_qr:
                config = replace(config, qr_code_url=stored_qr)
        return config

    async def update_site_config(
        self, patch: models.SiteConfigPatch
    ) -> models.SiteConfig:
        """
        Merge patch into the site config and persist it.

        Inline logo/QR images are written under their own keys and the config
        keeps only a token pointing at them. When that does not fit, only the
        name and contact fields are kept. A field patched to None or to a
        non-string falls back to its default. Returns the merged config.
        """
        updated = _fill_site_config_defaults(
            patch.apply(await self.get_site_config())
        )
        storable = updated
        images: Dict[str, str] = {}
        stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        if is_inline_image(updated.logo_url):
            storable = replace(storable, logo_url=f"{LOGO_TOKEN_PREFIX}{stamp}")
            images[SITE_LOGO_KEY] = updated.logo_url
        if is_inline_image(updated.qr_code_url):
            storable = replace(storable, qr_code_url=f"{QR_TOKEN_PREFIX}{stamp}")
            images[SITE_QR_KEY] = updated.qr_code_url

        try:
            await self.store.set_item(SITE_CONFIG_KEY, json.dumps(storable.to_dict()))
            for key, data in images.items():
                await self.store.set_item(key, data)
        except QuotaExceededError as err:
            _logger.warning(f"Failed to save site config, keeping minimal copy: {err}")
            minimal = {
                "siteName": updated.site_name,
                "contactEmail": updated.contact_email,
                "contactPhone": updated.contact_phone,
            }
            try:
                await self.store.set_item(SITE_CONFIG_KEY, json.dumps(minimal))
            except QuotaExceededError as exc:
                raise StorageExhaustedError(
                    "Could not save site config: storage is full."
                ) from exc
        return updated

    # ---------------------------
    # Admin auth
    # ---------------------------

    async def get_admin_credentials(self) -> models.AdminCredentials:
        username = await self.store.get_item(ADMIN_USERNAME_KEY)
        password = await self.store.get_item(ADMIN_PASSWORD_KEY)
        return models.AdminCredentials(
            username=username or models.DEFAULT_ADMIN_USERNAME,
            password=password or models.DEFAULT_ADMIN_PASSWORD,
        )

    async def update_admin_credentials(self, username: str, password: str) -> bool:
        if not username or not password:
            return False
        await self.store.set_item(ADMIN_USERNAME_KEY, username)
        await self.store.set_item(ADMIN_PASSWORD_KEY, password)
        return True

    async def admin_login(self, username: str, password: str) -> bool:
        """Check credentials and, on a match, store a freshly signed session token."""
        credentials = await self.get_admin_credentials()
        if username != credentials.username or password != credentials.password:
            return False
        session = self._signer.issue()
        await self.store.set_item(ADMIN_TOKEN_KEY, session.token)
        _logger.debug(f"Admin session issued, expires {session.expires_at}")
        return True

    async def current_admin_session(self) -> Optional[models.AdminSession]:
        token = await self.store.get_item(ADMIN_TOKEN_KEY)
        if token is None:
            return None
        session = self._signer.verify(token)
        if session is None:
            _logger.debug("Stored admin token is invalid or expired")
        return session

    async def check_admin_auth(self) -> bool:
        return await self.current_admin_session() is not None

    async def admin_logout(self) -> None:
        await self.store.remove_item(ADMIN_TOKEN_KEY)

    # ---------------------------
    # Maintenance & reports
    # ---------------------------

    async def clear_all(self, preserve_admin_session: bool = True) -> bool:
        """
        Wipe every key, optionally keep the admin token, then reseed.

        Returns True once the defaults are back. Raises StorageExhaustedError
        if the token or the defaults no longer fit.
        """
        token = None
        if preserve_admin_session:
            token = await self.store.get_item(ADMIN_TOKEN_KEY)
        cleared = len(await self.store.keys())
        await self.store.clear()
        _logger.info(f"Store cleared ({cleared} key(s)), restoring default data")
        try:
            if token is not None:
                await self.store.set_item(ADMIN_TOKEN_KEY, token)
            await self.initialize()
        except QuotaExceededError as err:
            raise StorageExhaustedError(
                "Could not restore default data: storage is full."
            ) from err
        return True

    async def dashboard_stats(self) -> Dict[str, int]:
        """Counts shown on the admin dashboard."""
        orders = await self.list_orders()
        by_status = count_by_status(orders)
        submissions = await self.list_contact_submissions()
        return {
            "products": len(await self.list_products()),
            "categories": len(await self.list_categories()),
            "orders": len(orders),
            "pending_orders": by_status["pending"],
            "completed_orders": by_status["completed"],
            "unread_messages": sum(1 for s in submissions if not s.is_read),
        }


@asynccontextmanager
async def open_repository(
    settings: Optional[StoreSettings] = None,
) -> AsyncIterator[Repository]:
    """Open the SQLite-backed store, seed it and yield a Repository over it.

    The store is closed when the block exits.
    """
    settings = settings or StoreSettings.from_env()
    store = SqliteStore(settings.db_path, settings.max_value_bytes)
    async with store:
        repo = Repository(
            store,
            policy=settings.capacity,
            secret=settings.secret,
            session_ttl=settings.session_ttl,
        )
        await repo.initialize()
        yield repo
