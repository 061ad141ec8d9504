"""Pre-delete checks.

Each ``can_delete_*`` function answers with a :class:`GuardResult` rather than
raising; :func:`ensure_allowed` turns a refusal into a ``ServiceError`` for
callers that are about to delete.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import BlockReason, ErrorKind, ServiceError
from ..orm_models import ContractORM, InvoiceORM, InvoiceSpecificationORM
from ..schemas import GuardResult

logger = logging.getLogger(__name__)

SUPPLIER_IN_USE_MESSAGE = (
    "Не можливо видалити постачальника так як його дані використовуються в договорах чи накладних."
)
CUSTOMER_IN_USE_MESSAGE = (
    "Не можливо видалити Замовника так як його дані використовуються в договорах чи накладних."
)
ADDRESS_IN_USE_MESSAGE = (
    "Не можливо видалити адреси доставки, бо адреси даного замовника використовується в накладних"
)
CONTRACT_IN_USE_MESSAGE = "Не можливо видалити договір так як його дані використовуються в накладних."
SPECIFICATION_IN_USE_MESSAGE = (
    "Не можна видалити товар(и) зі специфікації, оскільки вони вже використовуються в накладних."
)

ALLOWED = GuardResult(ok=True)


def _exists(session: Session, statement) -> bool:
    return session.execute(statement.limit(1)).first() is not None


def _blocked(reason: BlockReason) -> GuardResult:
    return GuardResult(ok=False, reason=reason)


def can_delete_supplier(session: Session, supplier_id: str) -> GuardResult:
    if _exists(session, select(ContractORM.id).where(ContractORM.supplier_id == supplier_id)) or _exists(
        session, select(InvoiceORM.id).where(InvoiceORM.supplier_id == supplier_id)
    ):
        return _blocked(BlockReason.USED_IN_CONTRACTS_OR_INVOICES)
    return ALLOWED


def can_delete_customer(session: Session, customer_id: str) -> GuardResult:
    if _exists(session, select(ContractORM.id).where(ContractORM.customer_id == customer_id)) or _exists(
        session, select(InvoiceORM.id).where(InvoiceORM.customer_id == customer_id)
    ):
        return _blocked(BlockReason.USED_IN_CONTRACTS_OR_INVOICES)
    return ALLOWED


def can_delete_customer_addresses(session: Session, address_ids: Iterable[str]) -> GuardResult:
    ids = list(address_ids)
    if ids and _exists(session, select(InvoiceORM.id).where(InvoiceORM.customer_address_id.in_(ids))):
        return _blocked(BlockReason.USED_IN_INVOICES)
    return ALLOWED


def can_delete_customer_address(session: Session, address_id: str) -> GuardResult:
    return can_delete_customer_addresses(session, [address_id])


def can_delete_contract(session: Session, contract_id: str) -> GuardResult:
    if _exists(session, select(InvoiceORM.id).where(InvoiceORM.contract_id == contract_id)):
        return _blocked(BlockReason.USED_IN_INVOICES)
    return ALLOWED


def can_delete_specification_lines(session: Session, line_ids: Iterable[str]) -> GuardResult:
    ids = list(line_ids)
    if ids and _exists(
        session,
        select(InvoiceSpecificationORM.id).where(InvoiceSpecificationORM.contract_specification_id.in_(ids)),
    ):
        return _blocked(BlockReason.USED_IN_INVOICE_SPECIFICATION)
    return ALLOWED


def can_delete_specification_line(session: Session, line_id: str) -> GuardResult:
    return can_delete_specification_lines(session, [line_id])


def ensure_allowed(result: GuardResult, message: str, *, entity_id: str | None = None) -> None:
    if result.ok:
        return
    logger.info("Delete of %s blocked: %s", entity_id or "lines", result.reason.value if result.reason else "")
    raise ServiceError(
        ErrorKind.REFERENTIAL_INTEGRITY_VIOLATION,
        message,
        {"id": entity_id} if entity_id else None,
        reason=result.reason,
    )
