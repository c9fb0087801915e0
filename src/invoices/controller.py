"""
Invoice Collection Controller

Owns the authoritative, in-memory list of invoices for one session.

DESIGN DECISION: Persistence is an explicit observer, not a side effect
of rendering. After every committed mutation (save or delete) the
controller hands a full snapshot to each subscriber exactly once. The
synchronizer subscribes and flushes; the controller never knows about
storage.

Callers only ever receive copies. Nothing returned from this class
aliases the authoritative collection.
"""

from typing import Any, Awaitable, Callable, Optional

import structlog

from src.audit import AuditLogger
from src.models.audit import AuditEventBuilder
from src.models.invoice import (
    IdGenerator,
    Invoice,
    format_amount,
    invoice_total,
    new_draft,
    renumber,
)

logger = structlog.get_logger(__name__)

CollectionListener = Callable[[list[Invoice]], Awaitable[Any]]


class InvoiceCollectionController:
    """
    Create, edit, save and delete invoices.

    Usage:
        controller = InvoiceCollectionController()
        controller.subscribe(synchronizer.save)
        controller.hydrate(await synchronizer.load())
        committed = await controller.save(controller.create())
    """

    def __init__(
        self,
        id_generator: Optional[IdGenerator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._invoices: list[Invoice] = []
        self._id_generator = id_generator or IdGenerator()
        self._audit_logger = audit_logger
        self._listeners: list[CollectionListener] = []
        self._hydrated = False
        self._mutated = False

    @property
    def id_generator(self) -> IdGenerator:
        return self._id_generator

    def __len__(self) -> int:
        return len(self._invoices)

    def subscribe(self, listener: CollectionListener) -> Callable[[], None]:
        """
        Register an async listener for committed mutations.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def hydrate(self, invoices: list[Invoice]) -> None:
        """
        Populate the collection from storage.

        Allowed once, before any mutation. Does not notify listeners.

        Raises:
            RuntimeError: If already hydrated or mutated
        """
        if self._hydrated or self._mutated:
            raise RuntimeError("Invoice collection can only be hydrated once, before any change")

        seen = set()
        for invoice in invoices:
            if not invoice.id or invoice.id in seen:
                logger.warning("hydrate_skipped_invoice", invoice_id=invoice.id)
                continue
            seen.add(invoice.id)
            self._invoices.append(invoice.model_copy(deep=True))
        self._hydrated = True
        logger.info("collection_hydrated", count=len(self._invoices))

    def list(self) -> list[Invoice]:
        """All invoices in display order, as copies."""
        return [invoice.model_copy(deep=True) for invoice in self._invoices]

    def _index_of(self, invoice_id: str) -> Optional[int]:
        for index, invoice in enumerate(self._invoices):
            if invoice.id == invoice_id:
                return index
        return None

    def get(self, invoice_id: str) -> Optional[Invoice]:
        index = self._index_of(invoice_id)
        if index is None:
            return None
        return self._invoices[index].model_copy(deep=True)

    def create(self) -> Invoice:
        """A fresh draft. Not added to the collection until saved."""
        return new_draft(self._id_generator)

    def edit(self, invoice_id: str) -> Optional[Invoice]:
        """A copy of the invoice for editing, or None if it does not exist."""
        invoice = self.get(invoice_id)
        if invoice is None:
            logger.info("invoice_not_found", invoice_id=invoice_id, action="edit")
        return invoice

    def _new_id(self) -> str:
        candidate = self._id_generator.next_id()
        while self._index_of(candidate) is not None:
            candidate = self._id_generator.next_id()
        return candidate

    async def save(self, draft: Invoice) -> Invoice:
        """
        Commit a working copy.

        An empty id gets a fresh id and is appended. A known id replaces
        the stored invoice in place. An unknown non-empty id is appended.

        Returns:
            A copy of the committed invoice
        """
        committed = draft.model_copy(deep=True)
        committed.items = renumber(committed.items)

        if committed.is_draft:
            committed.id = self._new_id()
            index = None
        else:
            index = self._index_of(committed.id)

        created = index is None
        if created:
            self._invoices.append(committed)
        else:
            self._invoices[index] = committed
        self._mutated = True

        total = format_amount(invoice_total(committed))
        logger.info(
            "invoice_saved",
            invoice_id=committed.id,
            created=created,
            item_count=len(committed.items),
            total=total,
        )
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.invoice_saved(committed.id, committed.ref, total, created)
            )

        await self._notify()
        return committed.model_copy(deep=True)

    async def delete(self, invoice_id: str) -> bool:
        """
        Remove an invoice.

        Returns:
            True if it was removed. A missing id changes nothing and
            does not flush.
        """
        index = self._index_of(invoice_id)
        if index is None:
            logger.info("invoice_not_found", invoice_id=invoice_id, action="delete")
            if self._audit_logger:
                await self._audit_logger.log(
                    AuditEventBuilder.invoice_not_found(invoice_id, "delete")
                )
            return False

        del self._invoices[index]
        self._mutated = True
        logger.info("invoice_deleted", invoice_id=invoice_id)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.invoice_deleted(invoice_id))

        await self._notify()
        return True

    async def _notify(self) -> None:
        snapshot = self.list()
        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception as e:
                # A failing listener must not undo a committed mutation
                logger.exception("listener_failed", listener=repr(listener))
                if self._audit_logger:
                    await self._audit_logger.log(
                        AuditEventBuilder.system_error(
                            error_type=type(e).__name__,
                            error_message=str(e),
                            details={"stage": "collection_listener"},
                        )
                    )
