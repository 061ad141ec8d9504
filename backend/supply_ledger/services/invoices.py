from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session, joinedload, selectinload

from .. import orm_models
from ..amounts import parse_decimal, parse_unit
from ..cache import contract_totals_tag, dashboard_tag, mark_dirty, specification_tag
from ..dates import normalize_date
from ..errors import ErrorKind, ServiceError, not_found
from ..orm_models import InvoiceStatus
from ..owner_scoping import get_owned, require_user_id
from ..schemas import (
    Invoice,
    InvoiceCreate,
    InvoiceLine,
    InvoiceLineInput,
    InvoiceSummary,
    InvoiceUpdate,
)
from .contracts import CONTRACT, SPECIFICATION_LINE
from .directory import ADDRESS, CUSTOMER, SUPPLIER
from .lines import apply_changes, plan_replacement
from .operations import operation
from .reports import invoice_line_sum, invoice_total

logger = logging.getLogger(__name__)

INVOICE = "Накладну"
INVOICE_LINE = "Рядок накладної"

PAYMENT_DATE_REQUIRED_MESSAGE = "Дата оплати обов'язкова, якщо рахунок оплачено"
ADDRESS_MISMATCH_MESSAGE = "Адреса доставки не належить обраному замовнику"
CONTRACT_MISMATCH_MESSAGE = "Договір не укладено між обраними замовником та постачальником"


# === Converters =============================================================

def _line_to_schema(entity: orm_models.InvoiceSpecificationORM) -> InvoiceLine:
    product = entity.contract_specification
    return InvoiceLine(
        id=entity.id,
        contractSpecificationId=entity.contract_specification_id,
        productName=product.product_name if product else "",
        unit=entity.unit,
        quantity=entity.quantity,
        pricePerUnit=entity.price_per_unit,
        sum=invoice_line_sum(entity),
    )


def _summary_fields(entity: orm_models.InvoiceORM) -> dict:
    return {
        "id": entity.id,
        "number": entity.number,
        "date": entity.date,
        "status": entity.status,
        "paymentDate": entity.payment_date,
        "supplierId": entity.supplier_id,
        "customerId": entity.customer_id,
        "supplierName": entity.supplier.name if entity.supplier else "",
        "customerName": entity.customer.name if entity.customer else "",
        "totalAmount": invoice_total(entity),
    }


def _summary_to_schema(entity: orm_models.InvoiceORM) -> InvoiceSummary:
    return InvoiceSummary(**_summary_fields(entity))


def _invoice_to_schema(entity: orm_models.InvoiceORM) -> Invoice:
    address = entity.customer_address
    contract = entity.contract
    return Invoice(
        **_summary_fields(entity),
        customerAddressId=entity.customer_address_id,
        contractId=entity.contract_id,
        institutionName=address.institution_name if address else "",
        deliveryAddress=address.delivery_address if address else "",
        contractNumber=contract.number if contract else "",
        contractDate=contract.date if contract else "",
        contractSubject=contract.subject if contract else "",
        specification=[_line_to_schema(line) for line in entity.specification],
    )


# === Validation =============================================================

def _payment_fields(status: InvoiceStatus, payment_date: Optional[str]) -> dict:
    status = InvoiceStatus(status)
    if status is InvoiceStatus.PAID:
        if not payment_date:
            raise ServiceError(ErrorKind.PAYMENT_DATE_REQUIRED, PAYMENT_DATE_REQUIRED_MESSAGE)
        return {"status": status, "payment_date": normalize_date(payment_date, field="paymentDate")}
    return {"status": status, "payment_date": None}


def _check_references(session: Session, values: dict) -> orm_models.ContractORM:
    """Resolve the parties of an invoice and check they belong together."""
    get_owned(session, orm_models.SupplierORM, values["supplier_id"], SUPPLIER)
    get_owned(session, orm_models.CustomerORM, values["customer_id"], CUSTOMER)
    address = get_owned(session, orm_models.CustomerAddressORM, values["customer_address_id"], ADDRESS)
    if address.customer_id != values["customer_id"]:
        raise ServiceError(
            ErrorKind.VALIDATION_FAILED,
            ADDRESS_MISMATCH_MESSAGE,
            {"customerAddressId": address.id},
        )
    contract = get_owned(session, orm_models.ContractORM, values["contract_id"], CONTRACT)
    if contract.customer_id != values["customer_id"] or contract.supplier_id != values["supplier_id"]:
        raise ServiceError(
            ErrorKind.VALIDATION_FAILED,
            CONTRACT_MISMATCH_MESSAGE,
            {"contractId": contract.id},
        )
    return contract


def _contract_products(session: Session, contract_id: str) -> dict[str, orm_models.ContractSpecificationORM]:
    rows = (
        session.query(orm_models.ContractSpecificationORM)
        .filter(orm_models.ContractSpecificationORM.contract_id == contract_id)
        .all()
    )
    return {row.id: row for row in rows}


def _line_values(
    line: InvoiceLineInput,
    products: dict[str, orm_models.ContractSpecificationORM],
    stored: orm_models.InvoiceSpecificationORM | None = None,
) -> dict:
    """Values of one invoice line.

    Omitted unit and price keep the stored line's values while it still points
    at the same product, otherwise they default to the contract line's.
    """
    product = products.get(line.contractSpecificationId)
    if product is None:
        raise not_found(SPECIFICATION_LINE, line.contractSpecificationId)
    source = stored if stored is not None and stored.contract_specification_id == product.id else product
    return {
        "contract_specification_id": product.id,
        "unit": parse_unit(line.unit) if line.unit else source.unit,
        "quantity": parse_decimal(line.quantity, field="quantity"),
        "price_per_unit": (
            parse_decimal(line.pricePerUnit, field="pricePerUnit") if line.pricePerUnit else source.price_per_unit
        ),
    }


def _mark_invoice_dirty(session: Session, user_id: str, *contract_ids: str) -> None:
    tags = [dashboard_tag(user_id)]
    for contract_id in {value for value in contract_ids if value}:
        tags.extend([specification_tag(contract_id), contract_totals_tag(contract_id)])
    mark_dirty(session, *tags)


def _invoice_query(session: Session):
    return session.query(orm_models.InvoiceORM).options(
        joinedload(orm_models.InvoiceORM.supplier),
        joinedload(orm_models.InvoiceORM.customer),
        selectinload(orm_models.InvoiceORM.specification).joinedload(
            orm_models.InvoiceSpecificationORM.contract_specification
        ),
    )


# === Reads ==================================================================

def list_invoices(session: Session, status: InvoiceStatus | None = None) -> List[InvoiceSummary]:
    user_id = require_user_id(session)
    query = _invoice_query(session).filter(orm_models.InvoiceORM.user_id == user_id)
    if status is not None:
        query = query.filter(orm_models.InvoiceORM.status == status)
    items = query.order_by(orm_models.InvoiceORM.number.desc()).all()
    return [_summary_to_schema(item) for item in items]


def list_pending_invoices(session: Session) -> List[InvoiceSummary]:
    return list_invoices(session, InvoiceStatus.UNPAID)


def get_invoice(session: Session, invoice_id: str) -> Invoice:
    return _invoice_to_schema(get_owned(session, orm_models.InvoiceORM, invoice_id, INVOICE))


# === Writes =================================================================

@operation("Помилка при створенні накладної")
def create_invoice(session: Session, payload: InvoiceCreate) -> Invoice:
    user_id = require_user_id(session)
    values = {
        "supplier_id": payload.supplierId,
        "customer_id": payload.customerId,
        "customer_address_id": payload.customerAddressId,
        "contract_id": payload.contractId,
        "number": payload.number,
        "date": normalize_date(payload.date, field="date"),
        **_payment_fields(payload.status, payload.paymentDate),
    }
    contract = _check_references(session, values)
    products = _contract_products(session, contract.id)
    prepared = [_line_values(line, products) for line in payload.specification]

    entity = orm_models.InvoiceORM(user_id=user_id, **values)
    for position, line_values in enumerate(prepared):
        entity.specification.append(orm_models.InvoiceSpecificationORM(position=position, **line_values))
    session.add(entity)
    session.flush()
    _mark_invoice_dirty(session, user_id, contract.id)
    logger.info("Invoice %s created with %d lines", entity.id, len(prepared))
    return _invoice_to_schema(entity)


def _replace_lines(
    session: Session,
    invoice: orm_models.InvoiceORM,
    lines: Sequence[InvoiceLineInput],
    products: dict[str, orm_models.ContractSpecificationORM],
) -> bool:
    existing = (
        session.query(orm_models.InvoiceSpecificationORM)
        .filter(orm_models.InvoiceSpecificationORM.invoice_id == invoice.id)
        .all()
    )
    plan = plan_replacement(existing, lines, entity=INVOICE_LINE)
    inserts = [(position, _line_values(line, products)) for position, line in plan.to_insert]
    updates = [(position, row, _line_values(line, products, row)) for position, row, line in plan.to_update]

    changed = bool(plan.to_delete or inserts)
    for row in plan.to_delete:
        invoice.specification.remove(row)
    session.flush()
    for position, values in inserts:
        invoice.specification.append(orm_models.InvoiceSpecificationORM(position=position, **values))
    for position, row, values in updates:
        changed = apply_changes(row, {"position": position, **values}) or changed
    return changed


@operation("Помилка при редагуванні накладної")
def update_invoice(session: Session, invoice_id: str, payload: InvoiceUpdate) -> Invoice:
    """Partial update of the header and, when given, the full line list.

    Only header fields that actually differ are written. Lines of an invoice
    moved to another contract must reference that contract's specification.
    """
    entity = get_owned(session, orm_models.InvoiceORM, invoice_id, INVOICE)
    previous_contract_id = entity.contract_id

    header = {
        "supplier_id": payload.supplierId or entity.supplier_id,
        "customer_id": payload.customerId or entity.customer_id,
        "customer_address_id": payload.customerAddressId or entity.customer_address_id,
        "contract_id": payload.contractId or entity.contract_id,
        "number": payload.number or entity.number,
        "date": normalize_date(payload.date, field="date") if payload.date else entity.date,
    }
    status = payload.status or entity.status
    payment_date = payload.paymentDate if payload.paymentDate is not None else entity.payment_date
    header.update(_payment_fields(status, payment_date))
    contract = _check_references(session, header)
    products = _contract_products(session, contract.id)

    if payload.specification is None:
        for line in entity.specification:
            if line.contract_specification_id not in products:
                raise ServiceError(
                    ErrorKind.VALIDATION_FAILED,
                    CONTRACT_MISMATCH_MESSAGE,
                    {"contractSpecificationId": line.contract_specification_id},
                )
        lines_changed = False
    else:
        lines_changed = _replace_lines(session, entity, payload.specification, products)

    header_changed = apply_changes(entity, header)
    if header_changed or lines_changed:
        session.flush()
        session.expire(entity)
        _mark_invoice_dirty(session, entity.user_id, previous_contract_id, contract.id)
        logger.info("Invoice %s updated", entity.id)
    return _invoice_to_schema(entity)


@operation("Помилка при зміні статусу накладної")
def set_invoice_status(
    session: Session, invoice_id: str, status: InvoiceStatus, payment_date: Optional[str] = None
) -> Invoice:
    entity = get_owned(session, orm_models.InvoiceORM, invoice_id, INVOICE)
    if apply_changes(entity, _payment_fields(status, payment_date)):
        session.flush()
        _mark_invoice_dirty(session, entity.user_id, entity.contract_id)
        logger.info("Invoice %s marked %s", entity.id, status.value)
    return _invoice_to_schema(entity)


@operation("Помилка при видаленні накладної")
def delete_invoice(session: Session, invoice_id: str) -> None:
    entity = get_owned(session, orm_models.InvoiceORM, invoice_id, INVOICE)
    contract_id = entity.contract_id
    session.delete(entity)
    session.flush()
    _mark_invoice_dirty(session, entity.user_id, contract_id)
    logger.info("Invoice %s deleted", invoice_id)
