"""
Stored Collection Validation

DESIGN DECISION: Validation of persisted data happens in two stages:

STAGE 1 - PAYLOAD:
- Is the stored text JSON at all?
- Is it a versioned envelope (or the legacy bare array)?
- Is the schema version one we can read?
A failure here means the whole value is corrupt and nothing is loaded.

STAGE 2 - RECORDS:
- Each invoice record is checked field by field
- Records with errors are rejected individually
- Valid records are loaded even when their neighbours are not

IMPORTANT: Validation does not repair values. Missing optional text
fields take their defaults; anything of the wrong type rejects the record.
The only normalisation is renumbering item sno values.
"""

import json
import math
from typing import Any

from pydantic import ValidationError

from src.models.invoice import (
    Invoice,
    InvoiceItem,
    ValidationIssue,
    ValidationResult,
)

SCHEMA_VERSION = 1
SUPPORTED_SCHEMA_VERSIONS = {SCHEMA_VERSION}
LEGACY_SCHEMA_VERSION = 0

_TEXT_FIELDS = ("ntnNo", "ref", "recipient", "date")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


class InvoiceRecordValidator:
    """
    Validates a stored invoice collection through a two-stage pipeline.

    Stage 1: Payload validation (JSON, envelope, schema version)
    Stage 2: Record validation (one invoice at a time)
    """

    def _payload_error(self, issue_type: str, message: str) -> ValidationResult:
        return ValidationResult(
            is_valid=False,
            issues=[ValidationIssue(
                field="payload",
                issue_type=issue_type,
                message=message,
                severity="error",
            )],
        )

    def _unwrap(self, payload: Any) -> tuple[int, list] | ValidationResult:
        """
        Stage 1: find the list of records inside the payload.

        Returns (schema_version, records) or a failed ValidationResult.
        """
        if isinstance(payload, list):
            return LEGACY_SCHEMA_VERSION, payload

        if not isinstance(payload, dict):
            return self._payload_error(
                "invalid_type",
                f"Expected a collection, found {type(payload).__name__}",
            )

        version = payload.get("schemaVersion")
        if not isinstance(version, int) or isinstance(version, bool):
            return self._payload_error("missing", "schemaVersion is missing or not an integer")
        if version not in SUPPORTED_SCHEMA_VERSIONS:
            return self._payload_error(
                "unsupported_version",
                f"schemaVersion {version} is not supported",
            )

        records = payload.get("invoices")
        if not isinstance(records, list):
            return self._payload_error("invalid_type", "invoices must be a list")

        return version, records

    def _validate_item(self, item: Any, path: str, index: int) -> list[ValidationIssue]:
        issues = []

        def error(field: str, issue_type: str, message: str) -> None:
            issues.append(ValidationIssue(
                field=f"{path}.{field}" if field else path,
                issue_type=issue_type,
                message=message,
                severity="error",
                record_index=index,
            ))

        if not isinstance(item, dict):
            error("", "invalid_type", "Item must be an object")
            return issues

        item_id = item.get("id")
        if not isinstance(item_id, str) or not item_id:
            error("id", "missing", "Item id is missing or empty")

        if "description" in item and not isinstance(item["description"], str):
            error("description", "invalid_type", "Description must be text")

        for field in ("qty", "unitRate"):
            if field not in item:
                error(field, "missing", f"{field} is missing")
            elif not _is_number(item[field]):
                error(field, "invalid_type", f"{field} must be a finite number")

        if "sno" in item and not (isinstance(item["sno"], int) and not isinstance(item["sno"], bool)):
            issues.append(ValidationIssue(
                field=f"{path}.sno",
                issue_type="invalid_type",
                message="sno is not an integer and will be recomputed",
                severity="warning",
                record_index=index,
            ))

        return issues

    def _validate_record(
        self,
        record: Any,
        index: int,
        seen_ids: set[str],
    ) -> list[ValidationIssue]:
        """
        Stage 2: field-by-field checks for one invoice record.

        Returns: list_of_issues (error-level issues reject the record)
        """
        issues = []

        def add(field: str, issue_type: str, message: str, severity: str = "error") -> None:
            issues.append(ValidationIssue(
                field=field,
                issue_type=issue_type,
                message=message,
                severity=severity,
                record_index=index,
            ))

        if not isinstance(record, dict):
            add("record", "invalid_type", "Invoice record must be an object")
            return issues

        invoice_id = record.get("id")
        if not isinstance(invoice_id, str) or not invoice_id:
            add("id", "missing", "Stored invoice has no id")
        elif invoice_id in seen_ids:
            add("id", "duplicate", f"Invoice id {invoice_id} appears more than once")

        for field in _TEXT_FIELDS:
            if field in record and not isinstance(record[field], str):
                add(field, "invalid_type", f"{field} must be text")
            elif field == "date" and field not in record:
                add(field, "missing", "date is missing; today's date will be used", "warning")

        items = record.get("items")
        if not isinstance(items, list):
            add("items", "invalid_type", "items must be a list")
        else:
            for position, item in enumerate(items):
                issues.extend(self._validate_item(item, f"items[{position}]", index))

        return issues

    def _build_invoice(self, record: dict) -> Invoice:
        items = [
            InvoiceItem(
                id=item["id"],
                sno=position,
                description=item.get("description", ""),
                qty=item["qty"],
                unit_rate=item["unitRate"],
            )
            for position, item in enumerate(record["items"], start=1)
        ]
        fields = {key: record[key] for key in ("id", *_TEXT_FIELDS) if key in record}
        return Invoice.model_validate({**fields, "items": items})

    def validate_records(self, records: list) -> ValidationResult:
        """Run stage 2 over an already unwrapped list of records."""
        invoices = []
        issues = []
        rejected = 0
        seen_ids: set[str] = set()

        for index, record in enumerate(records):
            record_issues = self._validate_record(record, index, seen_ids)

            if not any(issue.severity == "error" for issue in record_issues):
                try:
                    invoice = self._build_invoice(record)
                except ValidationError as e:
                    record_issues.extend(
                        ValidationIssue(
                            field=".".join(str(part) for part in err["loc"]),
                            issue_type=err["type"],
                            message=err["msg"],
                            severity="error",
                            record_index=index,
                        )
                        for err in e.errors()
                    )
                else:
                    invoices.append(invoice)
                    seen_ids.add(invoice.id)

            if any(issue.severity == "error" for issue in record_issues):
                rejected += 1
            issues.extend(record_issues)

        return ValidationResult(
            is_valid=True,
            invoices=invoices,
            rejected_count=rejected,
            issues=issues,
        )

    def validate(self, raw: str) -> ValidationResult:
        """
        Run the full pipeline over a stored value.

        Args:
            raw: The text read from the store

        Returns:
            ValidationResult with the loadable invoices and all issues found
        """
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as e:
            return self._payload_error("unparseable", f"Stored value is not valid JSON: {e}")

        unwrapped = self._unwrap(payload)
        if isinstance(unwrapped, ValidationResult):
            return unwrapped

        version, records = unwrapped
        result = self.validate_records(records)
        result.schema_version = version
        return result

    def get_summary(self, result: ValidationResult) -> str:
        """One-line description of a validation result for logs and the UI."""
        if not result.is_valid:
            return "; ".join(issue.message for issue in result.issues)
        loaded = len(result.invoices)
        if result.rejected_count:
            return f"Loaded {loaded} invoices, rejected {result.rejected_count} malformed records"
        return f"Loaded {loaded} invoices"
