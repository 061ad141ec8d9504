from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    DUPLICATE_TAX_CODE = "DuplicateTaxCode"
    REFERENTIAL_INTEGRITY_VIOLATION = "ReferentialIntegrityViolation"
    INVALID_NUMBER_FORMAT = "InvalidNumberFormat"
    INVALID_DATE_FORMAT = "InvalidDateFormat"
    INVALID_UNIT = "InvalidUnit"
    NOT_FOUND = "NotFound"
    PAYMENT_DATE_REQUIRED = "PaymentDateRequired"
    VALIDATION_FAILED = "ValidationFailed"
    UNAUTHORIZED = "Unauthorized"


class BlockReason(str, Enum):
    """Why the referential guard refused a delete."""

    USED_IN_CONTRACTS_OR_INVOICES = "used in contracts or invoices"
    USED_IN_INVOICES = "used in invoices"
    USED_IN_INVOICE_SPECIFICATION = "used in invoice specification"


@dataclass
class ServiceError(Exception):
    kind: ErrorKind
    message: str
    details: dict | None = None
    reason: BlockReason | None = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        payload = {
            "code": self.kind.value,
            "message": self.message,
        }
        if self.reason:
            payload["reason"] = self.reason.value
        if self.details:
            payload["details"] = self.details
        return payload


def not_found(entity: str, entity_id: str | None = None) -> ServiceError:
    details = {"id": entity_id} if entity_id else None
    return ServiceError(ErrorKind.NOT_FOUND, f"{entity} не знайдено", details)
