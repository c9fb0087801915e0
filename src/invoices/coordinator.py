"""
View Coordinator

A two-state machine between the invoice list and the invoice form:

    LISTING --create_new--------> EDITING(fresh draft)
    LISTING --edit_invoice(id)--> EDITING(copy)       (missing id: stays LISTING)
    EDITING --cancel------------> LISTING             (working copy discarded)
    EDITING --save--------------> LISTING             (committed, then discarded)

The coordinator owns at most one working copy. It is never aliased into
the collection: the controller copies on the way in and on the way out.

Intents that make no sense in the current state are logged and ignored.
"""

import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.invoices.controller import InvoiceCollectionController
from src.models.audit import AuditEventBuilder
from src.models.invoice import (
    Invoice,
    add_item,
    format_amount,
    invoice_total,
    remove_item,
    update_item,
)

logger = structlog.get_logger(__name__)

# Invoice header fields the form may set on the working copy
WORKING_COPY_FIELDS = ("ntn_no", "ref", "invoice_date", "recipient")

ConfirmDelete = Callable[[Invoice], Union[bool, Awaitable[bool]]]


class ViewState(str, Enum):
    LISTING = "listing"
    EDITING = "editing"


class ViewCoordinator:
    """
    Translates user intents into controller calls.

    Usage:
        coordinator = ViewCoordinator(controller)
        await coordinator.create_new()
        coordinator.update_item(item_id, "qty", "2")
        await coordinator.save()
    """

    def __init__(
        self,
        controller: InvoiceCollectionController,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._controller = controller
        self._audit_logger = audit_logger
        self._state = ViewState.LISTING
        self._working_copy: Optional[Invoice] = None
        self._correlation_id: Optional[UUID] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def is_editing(self) -> bool:
        return self._state == ViewState.EDITING

    @property
    def working_copy(self) -> Optional[Invoice]:
        """A copy of the working copy, or None while listing."""
        if self._working_copy is None:
            return None
        return self._working_copy.model_copy(deep=True)

    @property
    def working_total(self) -> float:
        if self._working_copy is None:
            return 0.0
        return invoice_total(self._working_copy)

    @property
    def formatted_total(self) -> str:
        return format_amount(self.working_total)

    def invoices(self) -> list[Invoice]:
        return self._controller.list()

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def _reject(self, intent: str) -> None:
        logger.warning("invalid_transition", intent=intent, state=self._state.value)
        await self._audit(AuditEventBuilder.invalid_transition(intent, self._state.value))

    def _reject_edit(self, intent: str) -> bool:
        logger.warning("invalid_transition", intent=intent, state=self._state.value)
        if self._audit_logger:
            self._audit_logger.record(
                AuditEventBuilder.invalid_transition(intent, self._state.value)
            )
        return False

    def _enter_editing(self, invoice: Invoice) -> None:
        self._working_copy = invoice
        self._state = ViewState.EDITING
        self._correlation_id = create_correlation_id()

    def _enter_listing(self) -> None:
        self._working_copy = None
        self._state = ViewState.LISTING
        self._correlation_id = None

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def create_new(self) -> bool:
        if self._state != ViewState.LISTING:
            await self._reject("create_new")
            return False

        self._enter_editing(self._controller.create())
        await self._audit(AuditEventBuilder.draft_created(self._correlation_id))
        return True

    async def edit_invoice(self, invoice_id: str) -> bool:
        if self._state != ViewState.LISTING:
            await self._reject("edit_invoice")
            return False

        invoice = self._controller.edit(invoice_id)
        if invoice is None:
            await self._audit(AuditEventBuilder.invoice_not_found(invoice_id, "edit"))
            return False

        self._enter_editing(invoice)
        await self._audit(AuditEventBuilder.invoice_opened(invoice_id, self._correlation_id))
        return True

    async def cancel(self) -> bool:
        if self._state != ViewState.EDITING:
            await self._reject("cancel")
            return False

        invoice_id = self._working_copy.id
        correlation_id = self._correlation_id
        self._enter_listing()
        await self._audit(AuditEventBuilder.edit_cancelled(invoice_id, correlation_id))
        return True

    async def save(self) -> Optional[Invoice]:
        """
        Commit the working copy and return to the list.

        Returns:
            The committed invoice, or None if not editing
        """
        if self._state != ViewState.EDITING:
            await self._reject("save")
            return None

        committed = await self._controller.save(self._working_copy)
        self._enter_listing()
        return committed

    async def delete_invoice(self, invoice_id: str, confirm: ConfirmDelete) -> bool:
        """
        Delete an invoice after asking for confirmation.

        Args:
            invoice_id: The invoice to delete
            confirm: Called with the invoice; may return bool or an awaitable bool

        Returns:
            True if the invoice was deleted
        """
        if self._state != ViewState.LISTING:
            await self._reject("delete_invoice")
            return False

        invoice = self._controller.get(invoice_id)
        if invoice is None:
            logger.info("invoice_not_found", invoice_id=invoice_id, action="delete")
            await self._audit(AuditEventBuilder.invoice_not_found(invoice_id, "delete"))
            return False

        answer = confirm(invoice)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            await self._audit(AuditEventBuilder.delete_cancelled(invoice_id))
            return False

        return await self._controller.delete(invoice_id)

    async def export_working_copy(self, exporter: Any):
        """Hand the working copy to an exporter. Returns its result."""
        if self._state != ViewState.EDITING:
            await self._reject("export")
            return None
        return await exporter.export(self._working_copy.model_copy(deep=True))

    # -------------------------------------------------------------------------
    # Working copy edits
    # -------------------------------------------------------------------------

    def set_field(self, name: str, value: Any) -> bool:
        """
        Set a header field on the working copy.

        Raises:
            ValueError: If name is not an editable header field
        """
        if name not in WORKING_COPY_FIELDS:
            raise ValueError(f"Invoice field is not editable: {name}")
        if self._state != ViewState.EDITING:
            return self._reject_edit("set_field")

        text = "" if value is None else str(value)
        self._working_copy = self._working_copy.model_copy(update={name: text})
        return True

    def add_item(self) -> Optional[str]:
        """Append a blank item. Returns the new item id."""
        if self._state != ViewState.EDITING:
            self._reject_edit("add_item")
            return None

        item_id = self._controller.id_generator.next_id()
        self._working_copy = self._working_copy.model_copy(
            update={"items": add_item(self._working_copy.items, item_id)}
        )
        return item_id

    def remove_item(self, item_id: str) -> bool:
        if self._state != ViewState.EDITING:
            return self._reject_edit("remove_item")

        items = remove_item(self._working_copy.items, item_id)
        changed = len(items) != len(self._working_copy.items)
        self._working_copy = self._working_copy.model_copy(update={"items": items})
        return changed

    def update_item(self, item_id: str, field: str, raw: Any) -> bool:
        """
        Set description, qty or unit_rate on one item.

        Numeric input that does not parse becomes 0.

        Raises:
            ValueError: If field is not an editable item field
        """
        if self._state != ViewState.EDITING:
            return self._reject_edit("update_item")

        items = update_item(self._working_copy.items, item_id, field, raw)
        self._working_copy = self._working_copy.model_copy(update={"items": items})
        return any(item.id == item_id for item in items)
