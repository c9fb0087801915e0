"""Shared fixtures for the test suite."""

import asyncio

import pytest

from src.audit import AuditLogger
from src.invoices import InvoiceCollectionController, ViewCoordinator
from src.models.invoice import IdGenerator, Invoice, InvoiceItem
from src.services.storage import InvoiceSynchronizer, MemoryKeyValueStore


class StepClock:
    """Deterministic millisecond clock: 1000, 1001, 1002, ..."""

    def __init__(self, start: int = 1000):
        self.now = start

    def __call__(self) -> int:
        value = self.now
        self.now += 1
        return value


@pytest.fixture
def event_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def audit_logger():
    return AuditLogger(history_size=100)


@pytest.fixture
def id_generator():
    return IdGenerator(clock=StepClock())


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def synchronizer(store, audit_logger):
    return InvoiceSynchronizer(store, audit_logger=audit_logger)


@pytest.fixture
def controller(id_generator, audit_logger):
    return InvoiceCollectionController(id_generator=id_generator, audit_logger=audit_logger)


@pytest.fixture
def coordinator(controller, audit_logger):
    return ViewCoordinator(controller, audit_logger=audit_logger)


@pytest.fixture
def sample_invoice():
    return Invoice(
        id="1700000000000",
        ntn_no="1234567-8",
        ref="REW-001",
        invoice_date="2024-05-01",
        recipient="Karachi Shipyard",
        items=[
            InvoiceItem(id="1700000000001", sno=1, description="Gear shaft", qty=2, unit_rate=1500),
            InvoiceItem(id="1700000000002", sno=2, description="Bush", qty=10, unit_rate=35.5),
        ],
    )
