"""
Core Data Models for Invoice Pro

These models define the invoice shape shared by the editor, the
persistence layer and the PDF export. They are designed to:
1. Round-trip exactly through the persisted JSON layout
2. Keep derived values (line amount, total) computed, never stored
3. Never let NaN or infinity reach a total

DESIGN DECISION: Field names are snake_case in Python and camelCase on
disk (ntnNo, unitRate). Aliases carry the mapping, so callers always dump
with by_alias=True when serializing.
"""

import math
import threading
import time
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# IDENTIFIERS
# =============================================================================

class IdGenerator:
    """
    Issues string ids from a millisecond clock.

    Ids look like the original application's Date.now() strings. When two
    ids are requested within the same millisecond the second one is bumped
    to last + 1, so a single generator never repeats itself.
    """

    def __init__(self, clock=None):
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = int(self._clock())
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


def today_iso() -> str:
    """Today's date as YYYY-MM-DD, the format of the date input."""
    return date.today().isoformat()


# =============================================================================
# CORE INVOICE MODELS
# =============================================================================

class InvoiceItem(BaseModel):
    """
    A single line on an invoice.

    sno is the 1-based position within the invoice. It is recomputed by
    renumber() whenever items are inserted or removed and is never set
    directly by the user.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque item identifier, immutable after creation"
    )
    sno: int = Field(
        default=1,
        ge=1,
        description="1-based sequence number within the invoice"
    )
    description: str = Field(
        default="",
        description="Free text description"
    )
    qty: float = Field(
        default=1.0,
        allow_inf_nan=False,
        description="Quantity"
    )
    unit_rate: float = Field(
        default=0.0,
        alias="unitRate",
        allow_inf_nan=False,
        description="Price per unit"
    )

    @property
    def line_amount(self) -> float:
        return line_amount(self)


class Invoice(BaseModel):
    """
    A commercial invoice.

    An empty id marks a draft that has never been saved. The controller
    assigns an id the first time the draft is committed.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        default="",
        description="Opaque identifier; empty for drafts"
    )
    ntn_no: str = Field(
        default="",
        alias="ntnNo",
        description="National Tax Number shown in the letterhead"
    )
    ref: str = Field(
        default="",
        description="Invoice reference, also used to name the PDF"
    )
    invoice_date: str = Field(
        default_factory=today_iso,
        alias="date",
        description="Calendar date string (YYYY-MM-DD)"
    )
    recipient: str = Field(
        default="",
        description="Addressee shown on the M/s line"
    )
    items: list[InvoiceItem] = Field(default_factory=list)

    @property
    def is_draft(self) -> bool:
        return not self.id

    @property
    def total_amount(self) -> float:
        return invoice_total(self)

    def to_record(self) -> dict:
        """Dump in the persisted layout (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# DERIVED VALUES
# =============================================================================

def line_amount(item: InvoiceItem) -> float:
    """qty * unit_rate. Inputs are already coerced; no validation here."""
    return item.qty * item.unit_rate


def invoice_total(invoice: Invoice) -> float:
    """Sum of line amounts, accumulated in sequence order."""
    total = 0.0
    for item in invoice.items:
        total += line_amount(item)
    return total


def format_amount(value: float) -> str:
    """
    Render an amount with exactly two decimals.

    Always fixed-point, never scientific notation. Adding 0.0 folds
    negative zero into 0.00.
    """
    return f"{value + 0.0:.2f}"


def coerce_numeric(raw: Any) -> float:
    """
    Parse user input as a float.

    Anything that does not parse to a finite number becomes 0. Never raises.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        try:
            value = float(str(raw).strip())
        except (TypeError, ValueError):
            return 0.0
    if not math.isfinite(value):
        return 0.0
    return value + 0.0


# =============================================================================
# ITEM LIST OPERATIONS
# =============================================================================

NUMERIC_ITEM_FIELDS = {"qty", "unit_rate"}
EDITABLE_ITEM_FIELDS = NUMERIC_ITEM_FIELDS | {"description"}


def renumber(items: list[InvoiceItem]) -> list[InvoiceItem]:
    """Reassign sno to 1..n, keeping the current order."""
    return [
        item if item.sno == index else item.model_copy(update={"sno": index})
        for index, item in enumerate(items, start=1)
    ]


def new_item(item_id: str, sno: int = 1) -> InvoiceItem:
    """A blank line: qty 1, rate 0."""
    return InvoiceItem(id=item_id, sno=sno, description="", qty=1, unit_rate=0)


def new_draft(id_generator: IdGenerator, invoice_date: Optional[str] = None) -> Invoice:
    """A fresh unsaved invoice with a single blank item."""
    return Invoice(
        id="",
        invoice_date=invoice_date or today_iso(),
        items=[new_item(id_generator.next_id(), sno=1)],
    )


def add_item(items: list[InvoiceItem], item_id: str) -> list[InvoiceItem]:
    return renumber([*items, new_item(item_id, sno=len(items) + 1)])


def remove_item(items: list[InvoiceItem], item_id: str) -> list[InvoiceItem]:
    return renumber([item for item in items if item.id != item_id])


def update_item(
    items: list[InvoiceItem],
    item_id: str,
    field: str,
    raw: Any,
) -> list[InvoiceItem]:
    """
    Set one editable field on the item with the given id.

    qty and unit_rate go through coerce_numeric; description is stored as
    given. Unknown item ids leave the list unchanged.

    Raises:
        ValueError: If field is not an editable item field
    """
    if field not in EDITABLE_ITEM_FIELDS:
        raise ValueError(f"Item field is not editable: {field}")

    value = coerce_numeric(raw) if field in NUMERIC_ITEM_FIELDS else str(raw)
    return [
        item.model_copy(update={field: value}) if item.id == item_id else item
        for item in items
    ]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a persisted record."""

    field: str = Field(
        ...,
        description="Field with the issue (dotted path for nested fields)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_type', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    record_index: Optional[int] = Field(
        default=None,
        description="Position of the offending record in the stored collection"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a stored collection.

    Records with error-level issues are left out of `invoices`; everything
    else is loaded.
    """

    schema_version: Optional[int] = None
    is_valid: bool = Field(
        ...,
        description="Was the payload a readable collection at all?"
    )
    invoices: list[Invoice] = Field(default_factory=list)
    rejected_count: int = Field(default=0, ge=0)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")
