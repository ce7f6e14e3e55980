"""
Ledger Repository

Owns the Expense / ExpenseItem records and the two invariants that matter:

1. ATOMICITY: an expense and its items are created, replaced and deleted
   in a single write batch. A failed call leaves nothing behind.
2. DERIVED TOTAL: `totalAmount` is always computed here, from the exact
   item prices written in the same batch. Callers never set it.

Updates are a full replace of the item set (delete all, insert fresh),
never a diff. Old item ids do not survive an update.

KNOWN GAP: the single-item operations (add / update / delete one item) are
standalone writes and do NOT touch the parent total. Call
`recalculate_total()` afterwards to resynchronize.

Store failures are logged and re-raised unchanged. Nothing is retried here.
"""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Union

from expense_ledger.logs import get_logger
from expense_ledger.models import (
    EXPENSE_ITEMS,
    EXPENSES,
    Expense,
    ExpenseItem,
    ExpenseWithItems,
    ItemInput,
    ItemUpdate,
    utc_now,
)
from expense_ledger.services.storage import (
    FieldFilter,
    NotFoundError,
    OrderBy,
    RecordStore,
    StorageError,
)
from expense_ledger.services.storage.interface import EQ, GE, LE


logger = get_logger(__name__)


ItemLike = Union[ItemInput, Mapping]
DateLike = Union[date, datetime, str]


class InvalidAmountError(ValueError):
    """A price could not be read as a finite number."""
    pass


def parse_amount(value: Any) -> Decimal:
    """
    Parse a price into an exact Decimal.

    Accepts ints, floats, Decimals and numeric strings. Rejects booleans,
    blanks, non-numeric text, NaN and infinities.

    Raises:
        InvalidAmountError: If the value is not a finite number
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"Invalid item price: {value!r}")

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, int):
            amount = Decimal(value)
        elif isinstance(value, float):
            # str() gives the shortest repr, so 0.1 stays 0.1
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            raise InvalidAmountError(f"Invalid item price: {value!r}")
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid item price: {value!r}") from None

    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid item price: {value!r}")

    return amount


def _coerce_date(value: DateLike) -> Any:
    """Reduce datetimes to their calendar day; strings are left to the model."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return datetime.fromisoformat(value).date()
    return value


class LedgerRepository:
    """
    Create / read / update / delete for expenses and their items.

    The record store is injected; the repository holds no state of its own
    between calls and takes no locks.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    @property
    def store(self) -> RecordStore:
        return self._store

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def create_expense(
        self,
        owner_id: str,
        expense_date: DateLike,
        items: Iterable[ItemLike],
    ) -> Expense:
        """
        Create an expense together with its items in one atomic write.

        Args:
            owner_id: Identity of the owning user
            expense_date: Calendar date of the expense
            items: Line items as ItemInput or {"name", "price"} mappings

        Returns:
            The created expense (without items)

        Raises:
            InvalidAmountError: If any price is not a number (nothing is written)
            StoreUnavailableError / CommitConflictError: From the store
        """
        parsed = self._parse_items(items)
        total = sum((price for _, price in parsed), Decimal("0"))
        now = utc_now()

        expense = Expense(
            id=self._store.new_id(),
            owner_id=owner_id,
            expense_date=_coerce_date(expense_date),
            total_amount=total,
            created_at=now,
            updated_at=now,
        )
        new_items = self._build_items(expense.id, parsed, now)

        batch = self._store.begin_atomic_write()
        batch.put(EXPENSES, expense.to_record())
        for item in new_items:
            batch.put(EXPENSE_ITEMS, item.to_record())

        await self._commit(batch, "create_expense", expense_id=expense.id)

        logger.info(
            "expense_created",
            expense_id=expense.id,
            owner_id=owner_id,
            item_count=len(new_items),
            total_amount=str(total),
        )
        return expense

    async def get_user_expenses(self, owner_id: str) -> list[ExpenseWithItems]:
        """
        All expenses of one owner, newest first, each with its items.

        Items are fetched per expense (one query each). Fine for a single
        user's few hundred records.
        """
        records = await self._store.query(
            EXPENSES,
            [FieldFilter("ownerId", EQ, owner_id)],
            OrderBy("date", descending=True),
        )

        expenses = []
        for record in records:
            expense = Expense.from_record(record)
            items = await self.get_expense_items(expense.id)
            expenses.append(self._with_items(expense, items))

        logger.debug("user_expenses_loaded", owner_id=owner_id, count=len(expenses))
        return expenses

    async def get_expense_with_items(self, expense_id: str) -> ExpenseWithItems:
        """
        One expense with its items.

        Raises:
            NotFoundError: If the expense does not exist
        """
        expense = await self._get_expense(expense_id)
        items = await self.get_expense_items(expense_id)
        return self._with_items(expense, items)

    async def update_expense(
        self,
        expense_id: str,
        expense_date: DateLike,
        items: Iterable[ItemLike],
    ) -> ExpenseWithItems:
        """
        Replace an expense's date and full item set in one atomic write.

        The previous items are deleted and the new ones inserted with fresh
        ids; the total is recomputed from the new list.

        Raises:
            InvalidAmountError: If any price is not a number (nothing is written)
            NotFoundError: If the expense does not exist
        """
        parsed = self._parse_items(items)
        total = sum((price for _, price in parsed), Decimal("0"))

        current = await self._get_expense(expense_id)
        old_items = await self.get_expense_items(expense_id)
        now = utc_now()

        updated = Expense(
            id=current.id,
            owner_id=current.owner_id,
            expense_date=_coerce_date(expense_date),
            total_amount=total,
            created_at=current.created_at,
            updated_at=now,
        )
        new_items = self._build_items(expense_id, parsed, now)

        batch = self._store.begin_atomic_write()
        batch.put(EXPENSES, updated.to_record())
        for item in old_items:
            batch.delete(EXPENSE_ITEMS, item.id)
        for item in new_items:
            batch.put(EXPENSE_ITEMS, item.to_record())

        await self._commit(batch, "update_expense", expense_id=expense_id)

        logger.info(
            "expense_updated",
            expense_id=expense_id,
            removed_items=len(old_items),
            added_items=len(new_items),
            total_amount=str(total),
        )
        return self._with_items(updated, new_items)

    async def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense and all its items in one atomic write.

        Deleting an expense that does not exist is treated as success.
        """
        items = await self.get_expense_items(expense_id)

        batch = self._store.begin_atomic_write()
        for item in items:
            batch.delete(EXPENSE_ITEMS, item.id)
        batch.delete(EXPENSES, expense_id)

        await self._commit(batch, "delete_expense", expense_id=expense_id)

        logger.info("expense_deleted", expense_id=expense_id, item_count=len(items))
        return True

    async def recalculate_total(self, expense_id: str) -> Expense:
        """
        Recompute an expense's total from its stored items and persist it.

        Use after single-item edits, which leave the total untouched.

        Raises:
            NotFoundError: If the expense does not exist
        """
        current = await self._get_expense(expense_id)
        items = await self.get_expense_items(expense_id)
        total = sum((item.price for item in items), Decimal("0"))

        if total == current.total_amount:
            return current

        updated = current.model_copy(
            update={"total_amount": total, "updated_at": utc_now()}
        )
        batch = self._store.begin_atomic_write()
        batch.put(EXPENSES, updated.to_record())
        await self._commit(batch, "recalculate_total", expense_id=expense_id)

        logger.info(
            "expense_total_recalculated",
            expense_id=expense_id,
            previous_total=str(current.total_amount),
            total_amount=str(total),
        )
        return updated

    async def expenses_in_range(
        self,
        owner_id: str,
        start: date,
        end: date,
    ) -> list[Expense]:
        """Expenses of one owner dated within [start, end], oldest first."""
        records = await self._store.query(
            EXPENSES,
            [
                FieldFilter("ownerId", EQ, owner_id),
                FieldFilter("date", GE, start),
                FieldFilter("date", LE, end),
            ],
            OrderBy("date"),
        )
        return [Expense.from_record(record) for record in records]

    # =========================================================================
    # SINGLE ITEMS (do not touch the parent total)
    # =========================================================================

    async def get_expense_items(self, expense_id: str) -> list[ExpenseItem]:
        """Items currently associated with an expense."""
        records = await self._store.query(
            EXPENSE_ITEMS,
            [FieldFilter("expenseId", EQ, expense_id)],
            OrderBy("createdAt"),
        )
        return [ExpenseItem.from_record(record) for record in records]

    async def add_expense_item(
        self,
        expense_id: str,
        name: str,
        price: Any,
    ) -> ExpenseItem:
        """
        Add one item to an existing expense.

        Raises:
            InvalidAmountError: If the price is not a number
            NotFoundError: If the expense does not exist
        """
        amount = parse_amount(price)
        await self._get_expense(expense_id)

        now = utc_now()
        item = ExpenseItem(
            id=self._store.new_id(),
            expense_id=expense_id,
            name=name,
            price=amount,
            created_at=now,
            updated_at=now,
        )

        batch = self._store.begin_atomic_write()
        batch.put(EXPENSE_ITEMS, item.to_record())
        await self._commit(batch, "add_expense_item", item_id=item.id)

        logger.info("expense_item_added", expense_id=expense_id, item_id=item.id)
        return item

    async def update_expense_item(
        self,
        item_id: str,
        updates: Union[ItemUpdate, Mapping],
    ) -> ExpenseItem:
        """
        Change the name and/or price of one item. Unset fields are kept.

        Raises:
            InvalidAmountError: If a supplied price is not a number
            NotFoundError: If the item does not exist
        """
        if not isinstance(updates, ItemUpdate):
            updates = ItemUpdate.model_validate(dict(updates))
        changes = {
            field: value
            for field, value in updates.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if "price" in changes:
            changes["price"] = parse_amount(changes["price"])

        record = await self._store.get(EXPENSE_ITEMS, item_id)
        current = ExpenseItem.from_record(record)

        updated = ExpenseItem.model_validate({
            **current.model_dump(),
            **changes,
            "updated_at": utc_now(),
        })

        batch = self._store.begin_atomic_write()
        batch.put(EXPENSE_ITEMS, updated.to_record())
        await self._commit(batch, "update_expense_item", item_id=item_id)

        logger.info(
            "expense_item_updated",
            item_id=item_id,
            expense_id=updated.expense_id,
            fields=sorted(changes),
        )
        return updated

    async def delete_expense_item(self, item_id: str) -> bool:
        """Delete one item. Deleting a missing item is treated as success."""
        batch = self._store.begin_atomic_write()
        batch.delete(EXPENSE_ITEMS, item_id)
        await self._commit(batch, "delete_expense_item", item_id=item_id)

        logger.info("expense_item_deleted", item_id=item_id)
        return True

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _parse_items(self, items: Iterable[ItemLike]) -> list[tuple[str, Decimal]]:
        parsed = []
        for index, item in enumerate(items):
            if not isinstance(item, ItemInput):
                item = ItemInput.model_validate(dict(item))
            try:
                price = parse_amount(item.price)
            except InvalidAmountError as e:
                logger.warning("invalid_item_price", index=index, price=repr(item.price))
                raise InvalidAmountError(f"Item {index} ({item.name!r}): {e}") from None
            parsed.append((item.name, price))
        return parsed

    def _build_items(
        self,
        expense_id: str,
        parsed: list[tuple[str, Decimal]],
        now: datetime,
    ) -> list[ExpenseItem]:
        return [
            ExpenseItem(
                id=self._store.new_id(),
                expense_id=expense_id,
                name=name,
                price=price,
                created_at=now,
                updated_at=now,
            )
            for name, price in parsed
        ]

    async def _get_expense(self, expense_id: str) -> Expense:
        try:
            record = await self._store.get(EXPENSES, expense_id)
        except NotFoundError:
            logger.info("expense_not_found", expense_id=expense_id)
            raise
        return Expense.from_record(record)

    async def _commit(self, batch, operation: str, **context) -> None:
        try:
            await batch.commit()
        except StorageError as e:
            logger.error(
                "ledger_commit_failed",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
                **context,
            )
            raise

    @staticmethod
    def _with_items(expense: Expense, items: list[ExpenseItem]) -> ExpenseWithItems:
        return ExpenseWithItems(**expense.model_dump(), items=items)
