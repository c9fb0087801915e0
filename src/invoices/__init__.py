"""Invoice collection ownership and the list/form view state machine."""

from src.invoices.controller import CollectionListener, InvoiceCollectionController
from src.invoices.coordinator import WORKING_COPY_FIELDS, ViewCoordinator, ViewState

__all__ = [
    "CollectionListener",
    "InvoiceCollectionController",
    "ViewCoordinator",
    "ViewState",
    "WORKING_COPY_FIELDS",
]
