"""Merge offline client batches into the central store (upserts + write-once sales)."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple, Type

from django.conf import settings
from django.db import connection, models, transaction
from django.utils import timezone

from ..exceptions import SyncTimeoutError
from ..models import Category, Product, Transaction, TransactionItem

logger = logging.getLogger(__name__)

CATEGORY_MUTABLE_FIELDS = ("name", "description")
PRODUCT_MUTABLE_FIELDS = ("name", "barcode", "price", "stock", "category_id", "image_path")


@dataclass
class SectionResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0


@dataclass
class SyncResult:
    categories: SectionResult = field(default_factory=SectionResult)
    products: SectionResult = field(default_factory=SectionResult)
    transactions: SectionResult = field(default_factory=SectionResult)


class Deadline:
    """Wall-clock budget for one batch; ``seconds`` of 0 or None disables it."""

    def __init__(self, seconds: Optional[float]):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds if seconds else None

    def check(self) -> None:
        if self.expires_at is not None and time.monotonic() > self.expires_at:
            raise SyncTimeoutError(f"Sync transaction exceeded the {self.seconds:g}s timeout")


def _upsert(model: Type[models.Model], data: Dict, mutable_fields: Tuple[str, ...], now: datetime) -> bool:
    """
    Insert-or-update one client record keyed by its id. Returns True on insert.

    Updates overwrite only the mutable fields the client sent, plus the
    soft-delete marker, which is always reset (a missing marker undeletes).
    created_at is never touched on update.
    """
    record = dict(data)
    pk = record.pop("id")
    deleted_at = record.pop("deleted_at", None)

    defaults = {name: record[name] for name in mutable_fields if name in record}
    defaults["deleted_at"] = deleted_at
    if settings.SYNC_TOUCH_UPDATED_AT:
        defaults["updated_at"] = record.get("updated_at") or now

    create_defaults = dict(record, deleted_at=deleted_at)
    create_defaults.setdefault("created_at", now)
    create_defaults.setdefault("updated_at", now)

    _, created = model.objects.update_or_create(id=pk, defaults=defaults, create_defaults=create_defaults)
    return created


def upsert_category(data: Dict, now: datetime) -> bool:
    return _upsert(Category, data, CATEGORY_MUTABLE_FIELDS, now)


def upsert_product(data: Dict, now: datetime) -> bool:
    return _upsert(Product, data, PRODUCT_MUTABLE_FIELDS, now)


def create_transaction_once(data: Dict, now: datetime) -> bool:
    """Create a sale with all of its items, or do nothing if the id already exists."""
    header = data["header"]
    if Transaction.objects.filter(pk=header["id"]).exists():
        return False

    sale = Transaction.objects.create(
        id=header["id"],
        total_amount=header["total_amount"],
        payment_method=header.get("payment_method") or "",
        created_at=header.get("created_at") or now,
    )
    TransactionItem.objects.bulk_create(
        [
            TransactionItem(
                id=item["id"],
                transaction=sale,
                product_id=item["product_id"],
                quantity=item["quantity"],
                price=item["price"],
                created_at=item.get("created_at") or now,
            )
            for item in data.get("items") or []
        ]
    )
    return True


def _apply_session_timeouts() -> None:
    """Bound lock waits and statement time for the current transaction (PostgreSQL only)."""
    if connection.vendor != "postgresql":
        return
    max_wait_ms = int(settings.SYNC_TRANSACTION_MAX_WAIT * 1000)
    timeout_ms = int(settings.SYNC_TRANSACTION_TIMEOUT * 1000)
    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{max_wait_ms}ms"])
        cursor.execute("SELECT set_config('statement_timeout', %s, true)", [f"{timeout_ms}ms"])


def _apply_upserts(rows: Iterable[Dict], upsert, result: SectionResult, deadline: Deadline, now: datetime) -> None:
    for data in rows:
        deadline.check()
        if upsert(data, now):
            result.created += 1
        else:
            result.updated += 1


def apply_sync_payload(payload: Dict, now: Optional[datetime] = None) -> SyncResult:
    """
    Apply a validated batch inside a single database transaction.

    Sections run in dependency order (categories, products, transactions) and
    rows run one by one in submission order, so references resolve against
    rows written earlier in the same batch. Any error rolls back everything.
    """
    now = now or timezone.now()
    categories = payload.get("categories") or []
    products = payload.get("products") or []
    transactions = payload.get("transactions") or []
    logger.info(
        "Sync: received payload (%d categories, %d products, %d transactions)",
        len(categories),
        len(products),
        len(transactions),
    )

    result = SyncResult()
    deadline = Deadline(settings.SYNC_TRANSACTION_TIMEOUT)
    with transaction.atomic():
        _apply_session_timeouts()
        _apply_upserts(categories, upsert_category, result.categories, deadline, now)
        _apply_upserts(products, upsert_product, result.products, deadline, now)

        for data in transactions:
            deadline.check()
            if create_transaction_once(data, now):
                result.transactions.created += 1
            else:
                result.transactions.skipped += 1

        deadline.check()
        # FKs are deferred until commit; surface dangling references here.
        connection.check_constraints()

    logger.info(
        "Sync: applied categories=%s products=%s transactions=%s",
        result.categories,
        result.products,
        result.transactions,
    )
    return result
