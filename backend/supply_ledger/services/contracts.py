from __future__ import annotations

import logging
from typing import List, Sequence

from sqlalchemy.orm import Session, joinedload

from .. import orm_models
from ..amounts import parse_decimal, parse_unit
from ..cache import contract_totals_tag, dashboard_tag, mark_dirty, specification_tag
from ..dates import extract_year, normalize_date
from ..owner_scoping import get_owned, require_user_id
from ..schemas import (
    Contract,
    ContractCreate,
    ContractUpdate,
    SpecificationLine,
    SpecificationLineInput,
)
from . import guard
from .directory import CUSTOMER, SUPPLIER
from .lines import apply_changes, plan_replacement
from .operations import operation

logger = logging.getLogger(__name__)

CONTRACT = "Договір"
SPECIFICATION_LINE = "Товар специфікації"


# === Helpers ================================================================

def _contract_to_schema(entity: orm_models.ContractORM) -> Contract:
    return Contract(
        id=entity.id,
        customerId=entity.customer_id,
        supplierId=entity.supplier_id,
        number=entity.number,
        date=entity.date,
        subject=entity.subject,
        price=entity.price,
        executionPeriod=entity.execution_period,
        customerName=entity.customer.name if entity.customer else "",
        supplierName=entity.supplier.name if entity.supplier else "",
    )


def _line_to_schema(entity: orm_models.ContractSpecificationORM) -> SpecificationLine:
    return SpecificationLine(
        id=entity.id,
        contractId=entity.contract_id,
        productName=entity.product_name,
        unit=entity.unit,
        quantity=entity.quantity,
        pricePerUnit=entity.price_per_unit,
    )


def _contract_values(payload: ContractCreate | ContractUpdate) -> dict:
    values: dict = {}
    if payload.supplierId is not None:
        values["supplier_id"] = payload.supplierId
    if payload.customerId is not None:
        values["customer_id"] = payload.customerId
    if payload.number is not None:
        values["number"] = payload.number
    if payload.date is not None:
        values["date"] = normalize_date(payload.date, field="date")
    if payload.subject is not None:
        values["subject"] = payload.subject
    if payload.price is not None:
        values["price"] = parse_decimal(payload.price, field="price")
    if payload.executionPeriod is not None:
        extract_year(payload.executionPeriod)
        values["execution_period"] = normalize_date(payload.executionPeriod, field="executionPeriod")
    return values


def _check_parties(session: Session, values: dict) -> None:
    if "supplier_id" in values:
        get_owned(session, orm_models.SupplierORM, values["supplier_id"], SUPPLIER)
    if "customer_id" in values:
        get_owned(session, orm_models.CustomerORM, values["customer_id"], CUSTOMER)


def _line_values(line: SpecificationLineInput) -> dict:
    return {
        "product_name": line.productName,
        "unit": parse_unit(line.unit),
        "quantity": parse_decimal(line.quantity, field="quantity"),
        "price_per_unit": parse_decimal(line.pricePerUnit, field="pricePerUnit"),
    }


def _specification_rows(session: Session, contract_id: str) -> list[orm_models.ContractSpecificationORM]:
    return (
        session.query(orm_models.ContractSpecificationORM)
        .filter(orm_models.ContractSpecificationORM.contract_id == contract_id)
        .order_by(
            orm_models.ContractSpecificationORM.position.asc(),
            orm_models.ContractSpecificationORM.id.asc(),
        )
        .all()
    )


def _mark_specification_dirty(session: Session, contract: orm_models.ContractORM) -> None:
    mark_dirty(session, specification_tag(contract.id))


# === Contracts ==============================================================

def list_contracts(session: Session) -> List[Contract]:
    user_id = require_user_id(session)
    items = (
        session.query(orm_models.ContractORM)
        .options(joinedload(orm_models.ContractORM.supplier), joinedload(orm_models.ContractORM.customer))
        .filter(orm_models.ContractORM.user_id == user_id)
        .order_by(orm_models.ContractORM.date.desc(), orm_models.ContractORM.number.asc())
        .all()
    )
    return [_contract_to_schema(item) for item in items]


def get_contract(session: Session, contract_id: str) -> Contract:
    return _contract_to_schema(get_owned(session, orm_models.ContractORM, contract_id, CONTRACT))


def contracts_for_invoice(session: Session, customer_id: str, supplier_id: str) -> List[Contract]:
    """Contracts an invoice between this customer and supplier may be issued against."""
    user_id = require_user_id(session)
    items = (
        session.query(orm_models.ContractORM)
        .options(joinedload(orm_models.ContractORM.supplier), joinedload(orm_models.ContractORM.customer))
        .filter(
            orm_models.ContractORM.user_id == user_id,
            orm_models.ContractORM.customer_id == customer_id,
            orm_models.ContractORM.supplier_id == supplier_id,
        )
        .order_by(orm_models.ContractORM.number.asc())
        .all()
    )
    return [_contract_to_schema(item) for item in items]


@operation("Помилка при створенні договору")
def create_contract(session: Session, payload: ContractCreate) -> Contract:
    values = _contract_values(payload)
    _check_parties(session, values)
    entity = orm_models.ContractORM(user_id=require_user_id(session), **values)
    session.add(entity)
    session.flush()
    mark_dirty(session, dashboard_tag(entity.user_id))
    logger.info("Contract %s created", entity.id)
    return _contract_to_schema(entity)


@operation("Помилка при редагуванні договору")
def update_contract(session: Session, contract_id: str, payload: ContractUpdate) -> Contract:
    entity = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    values = _contract_values(payload)
    _check_parties(session, values)
    if apply_changes(entity, values):
        session.flush()
        session.refresh(entity)
        mark_dirty(session, dashboard_tag(entity.user_id))
    return _contract_to_schema(entity)


@operation("Помилка при видаленні договору")
def delete_contract(session: Session, contract_id: str) -> None:
    entity = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    guard.ensure_allowed(
        guard.can_delete_contract(session, entity.id),
        guard.CONTRACT_IN_USE_MESSAGE,
        entity_id=entity.id,
    )
    session.delete(entity)
    session.flush()
    mark_dirty(
        session,
        specification_tag(entity.id),
        contract_totals_tag(entity.id),
        dashboard_tag(entity.user_id),
    )
    logger.info("Contract %s deleted", contract_id)


# === Specification ==========================================================

def list_specification(session: Session, contract_id: str) -> List[SpecificationLine]:
    contract = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    return [_line_to_schema(item) for item in _specification_rows(session, contract.id)]


@operation("Помилка при створенні специфікації")
def create_specification(
    session: Session, contract_id: str, lines: Sequence[SpecificationLineInput]
) -> List[SpecificationLine]:
    contract = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    prepared = [_line_values(line) for line in lines]
    offset = len(_specification_rows(session, contract.id))
    created = []
    for index, values in enumerate(prepared):
        entity = orm_models.ContractSpecificationORM(contract_id=contract.id, position=offset + index, **values)
        session.add(entity)
        created.append(entity)
    session.flush()
    _mark_specification_dirty(session, contract)
    return [_line_to_schema(item) for item in created]


@operation("Помилка при редагуванні специфікації")
def replace_specification(
    session: Session, contract_id: str, lines: Sequence[SpecificationLineInput]
) -> List[SpecificationLine]:
    """Bulk edit of a contract specification as one unit of work.

    Every check runs before the first statement: submitted ids must belong to
    the contract, every quantity, price and unit must parse, and none of the
    removed lines may be referenced by an invoice line. Deletes are flushed
    first, then inserts and updates.
    """
    contract = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    plan = plan_replacement(_specification_rows(session, contract.id), lines, entity=SPECIFICATION_LINE)
    if plan.to_delete:
        guard.ensure_allowed(
            guard.can_delete_specification_lines(session, plan.deleted_ids),
            guard.SPECIFICATION_IN_USE_MESSAGE,
            entity_id=contract.id,
        )
    inserts = [(position, _line_values(line)) for position, line in plan.to_insert]
    updates = [(position, row, _line_values(line)) for position, row, line in plan.to_update]

    for row in plan.to_delete:
        session.delete(row)
    session.flush()
    placed = []
    for position, values in inserts:
        entity = orm_models.ContractSpecificationORM(contract_id=contract.id, position=position, **values)
        session.add(entity)
        placed.append((position, entity))
    for position, row, values in updates:
        apply_changes(row, {"position": position, **values})
        placed.append((position, row))
    session.flush()
    _mark_specification_dirty(session, contract)
    logger.info(
        "Specification of %s replaced: %d deleted, %d added, %d kept",
        contract.id,
        len(plan.to_delete),
        len(inserts),
        len(updates),
    )
    return [_line_to_schema(row) for _, row in sorted(placed, key=lambda item: item[0])]


@operation("Помилка при видаленні специфікації")
def delete_specification(session: Session, contract_id: str) -> None:
    contract = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    rows = _specification_rows(session, contract.id)
    guard.ensure_allowed(
        guard.can_delete_specification_lines(session, [row.id for row in rows]),
        guard.SPECIFICATION_IN_USE_MESSAGE,
        entity_id=contract.id,
    )
    for row in rows:
        session.delete(row)
    session.flush()
    _mark_specification_dirty(session, contract)


@operation("Помилка при видаленні товару специфікації")
def delete_specification_line(session: Session, line_id: str) -> None:
    row = get_owned(session, orm_models.ContractSpecificationORM, line_id, SPECIFICATION_LINE)
    guard.ensure_allowed(
        guard.can_delete_specification_line(session, row.id),
        guard.SPECIFICATION_IN_USE_MESSAGE,
        entity_id=row.id,
    )
    contract_id = row.contract_id
    session.delete(row)
    session.flush()
    mark_dirty(session, specification_tag(contract_id))
