from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from sqlalchemy.orm import Session

from .. import orm_models
from ..cache import dashboard_tag, mark_dirty
from ..errors import ErrorKind, ServiceError
from ..owner_scoping import get_owned, require_user_id
from ..schemas import (
    Customer,
    CustomerAddress,
    CustomerAddressLine,
    CustomerCreate,
    CustomerUpdate,
    Supplier,
    SupplierCar,
    SupplierCarLine,
    SupplierCreate,
    SupplierDriver,
    SupplierDriverLine,
    SupplierUpdate,
)
from . import guard
from .lines import apply_changes, plan_replacement
from .operations import operation

logger = logging.getLogger(__name__)

SUPPLIER = "Постачальника"
CUSTOMER = "Замовника"
ADDRESS = "Адресу доставки"
DRIVER = "Водія"
CAR = "Автомобіль"

DUPLICATE_SUPPLIER_MESSAGE = "Постачальник з таким кодом ЄДРПОУ вже існує"
DUPLICATE_CUSTOMER_MESSAGE = "Замовник з таким кодом ЄДРПОУ вже існує"


# === Converters =============================================================

def _supplier_to_schema(entity: orm_models.SupplierORM) -> Supplier:
    return Supplier(
        id=entity.id,
        name=entity.name,
        address=entity.address,
        edrpou=entity.edrpou,
        phoneNumber=entity.phone_number,
        email=entity.email,
        bankAccount=entity.bank_account,
    )


def _customer_to_schema(entity: orm_models.CustomerORM) -> Customer:
    return Customer(
        id=entity.id,
        name=entity.name,
        address=entity.address,
        edrpou=entity.edrpou,
        phoneNumber=entity.phone_number,
        email=entity.email,
    )


def _address_to_schema(entity: orm_models.CustomerAddressORM) -> CustomerAddress:
    return CustomerAddress(
        id=entity.id,
        customerId=entity.customer_id,
        institutionName=entity.institution_name,
        deliveryAddress=entity.delivery_address,
    )


def _driver_to_schema(entity: orm_models.SupplierDriverORM) -> SupplierDriver:
    return SupplierDriver(
        id=entity.id,
        supplierId=entity.supplier_id,
        lastName=entity.last_name,
        firstName=entity.first_name,
        middleName=entity.middle_name,
        driverLicense=entity.driver_license,
    )


def _car_to_schema(entity: orm_models.SupplierCarORM) -> SupplierCar:
    return SupplierCar(
        id=entity.id,
        supplierId=entity.supplier_id,
        name=entity.name,
        registration=entity.registration,
        owner=entity.owner,
        ownerAddress=entity.owner_address,
    )


def _supplier_values(payload: SupplierCreate | SupplierUpdate) -> dict:
    values = {
        "name": payload.name,
        "address": payload.address,
        "edrpou": payload.edrpou,
        "phone_number": payload.phoneNumber,
        "email": payload.email,
        "bank_account": payload.bankAccount,
    }
    return {key: value for key, value in values.items() if value is not None}


def _customer_values(payload: CustomerCreate | CustomerUpdate) -> dict:
    values = {
        "name": payload.name,
        "address": payload.address,
        "edrpou": payload.edrpou,
        "phone_number": payload.phoneNumber,
        "email": payload.email,
    }
    return {key: value for key, value in values.items() if value is not None}


def _address_values(line: CustomerAddressLine) -> dict:
    return {"institution_name": line.institutionName, "delivery_address": line.deliveryAddress}


def _driver_values(line: SupplierDriverLine) -> dict:
    return {
        "last_name": line.lastName,
        "first_name": line.firstName,
        "middle_name": line.middleName,
        "driver_license": line.driverLicense,
    }


def _car_values(line: SupplierCarLine) -> dict:
    return {
        "name": line.name,
        "registration": line.registration,
        "owner": line.owner,
        "owner_address": line.ownerAddress,
    }


def _ensure_unique_edrpou(
    session: Session,
    model,
    edrpou: str,
    message: str,
    *,
    exclude_id: str | None = None,
) -> None:
    user_id = require_user_id(session)
    query = session.query(model.id).filter(model.user_id == user_id, model.edrpou == edrpou)
    if exclude_id:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise ServiceError(ErrorKind.DUPLICATE_TAX_CODE, message, {"edrpou": edrpou})


# === Suppliers ==============================================================

def list_suppliers(session: Session) -> List[Supplier]:
    user_id = require_user_id(session)
    items = (
        session.query(orm_models.SupplierORM)
        .filter(orm_models.SupplierORM.user_id == user_id)
        .order_by(orm_models.SupplierORM.name.asc())
        .all()
    )
    return [_supplier_to_schema(item) for item in items]


def get_supplier(session: Session, supplier_id: str) -> Supplier:
    return _supplier_to_schema(get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER))


@operation("Помилка при створенні постачальника")
def create_supplier(session: Session, payload: SupplierCreate) -> Supplier:
    _ensure_unique_edrpou(session, orm_models.SupplierORM, payload.edrpou, DUPLICATE_SUPPLIER_MESSAGE)
    entity = orm_models.SupplierORM(user_id=require_user_id(session), **_supplier_values(payload))
    session.add(entity)
    session.flush()
    mark_dirty(session, dashboard_tag(entity.user_id))
    logger.info("Supplier %s created", entity.id)
    return _supplier_to_schema(entity)


@operation("Помилка при редагуванні постачальника")
def update_supplier(session: Session, supplier_id: str, payload: SupplierUpdate) -> Supplier:
    entity = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    values = _supplier_values(payload)
    if "edrpou" in values and values["edrpou"] != entity.edrpou:
        _ensure_unique_edrpou(
            session, orm_models.SupplierORM, values["edrpou"], DUPLICATE_SUPPLIER_MESSAGE, exclude_id=entity.id
        )
    if apply_changes(entity, values):
        session.flush()
        mark_dirty(session, dashboard_tag(entity.user_id))
    return _supplier_to_schema(entity)


@operation("Помилка при видаленні постачальника")
def delete_supplier(session: Session, supplier_id: str) -> None:
    entity = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    guard.ensure_allowed(
        guard.can_delete_supplier(session, entity.id),
        guard.SUPPLIER_IN_USE_MESSAGE,
        entity_id=entity.id,
    )
    session.delete(entity)
    session.flush()
    mark_dirty(session, dashboard_tag(entity.user_id))
    logger.info("Supplier %s deleted", supplier_id)


# === Customers ==============================================================

def list_customers(session: Session) -> List[Customer]:
    user_id = require_user_id(session)
    items = (
        session.query(orm_models.CustomerORM)
        .filter(orm_models.CustomerORM.user_id == user_id)
        .order_by(orm_models.CustomerORM.name.asc())
        .all()
    )
    return [_customer_to_schema(item) for item in items]


def get_customer(session: Session, customer_id: str) -> Customer:
    return _customer_to_schema(get_owned(session, orm_models.CustomerORM, customer_id, CUSTOMER))


@operation("Помилка при створенні замовника")
def create_customer(session: Session, payload: CustomerCreate) -> Customer:
    _ensure_unique_edrpou(session, orm_models.CustomerORM, payload.edrpou, DUPLICATE_CUSTOMER_MESSAGE)
    entity = orm_models.CustomerORM(user_id=require_user_id(session), **_customer_values(payload))
    session.add(entity)
    session.flush()
    logger.info("Customer %s created", entity.id)
    return _customer_to_schema(entity)


@operation("Помилка при редагуванні замовника")
def update_customer(session: Session, customer_id: str, payload: CustomerUpdate) -> Customer:
    entity = get_owned(session, orm_models.CustomerORM, customer_id, CUSTOMER)
    values = _customer_values(payload)
    if "edrpou" in values and values["edrpou"] != entity.edrpou:
        _ensure_unique_edrpou(
            session, orm_models.CustomerORM, values["edrpou"], DUPLICATE_CUSTOMER_MESSAGE, exclude_id=entity.id
        )
    if apply_changes(entity, values):
        session.flush()
    return _customer_to_schema(entity)


@operation("Помилка при видаленні замовника")
def delete_customer(session: Session, customer_id: str) -> None:
    entity = get_owned(session, orm_models.CustomerORM, customer_id, CUSTOMER)
    guard.ensure_allowed(
        guard.can_delete_customer(session, entity.id),
        guard.CUSTOMER_IN_USE_MESSAGE,
        entity_id=entity.id,
    )
    session.delete(entity)
    session.flush()
    logger.info("Customer %s deleted", customer_id)


# === Child lines ============================================================

def _children(session: Session, model, parent_field: str, parent_id: str) -> list:
    return (
        session.query(model)
        .filter(getattr(model, parent_field) == parent_id)
        .order_by(model.id.asc())
        .all()
    )


def _create_children(
    session: Session,
    model,
    parent_field: str,
    parent_id: str,
    lines: Sequence,
    values_of: Callable[[object], dict],
) -> list:
    created = []
    for line in lines:
        entity = model(**{parent_field: parent_id}, **values_of(line))
        session.add(entity)
        created.append(entity)
    session.flush()
    return created


def _replace_children(
    session: Session,
    model,
    parent_field: str,
    parent_id: str,
    lines: Sequence,
    values_of: Callable[[object], dict],
    *,
    entity: str,
    check_delete: Optional[Callable[[Session, list[str]], object]] = None,
    blocked_message: str = "",
) -> list:
    existing = _children(session, model, parent_field, parent_id)
    plan = plan_replacement(existing, lines, entity=entity)
    if check_delete is not None and plan.to_delete:
        guard.ensure_allowed(check_delete(session, plan.deleted_ids), blocked_message, entity_id=parent_id)
    prepared_inserts = [(position, values_of(line)) for position, line in plan.to_insert]
    prepared_updates = [(position, row, values_of(line)) for position, row, line in plan.to_update]

    for row in plan.to_delete:
        session.delete(row)
    session.flush()
    placed = []
    for position, values in prepared_inserts:
        row = model(**{parent_field: parent_id}, **values)
        session.add(row)
        placed.append((position, row))
    for position, row, values in prepared_updates:
        apply_changes(row, values)
        placed.append((position, row))
    session.flush()
    logger.info(
        "Replaced %s lines of %s: %d deleted, %d added, %d kept",
        model.__tablename__,
        parent_id,
        len(plan.to_delete),
        len(prepared_inserts),
        len(prepared_updates),
    )
    return [row for _, row in sorted(placed, key=lambda item: item[0])]


# === Customer addresses =====================================================

def list_customer_addresses(session: Session, customer_id: str) -> List[CustomerAddress]:
    customer = get_owned(session, orm_models.CustomerORM, customer_id, CUSTOMER)
    items = _children(session, orm_models.CustomerAddressORM, "customer_id", customer.id)
    return [_address_to_schema(item) for item in items]


@operation("Помилка при створенні адреси доставки")
def create_customer_addresses(
    session: Session, customer_id: str, lines: Sequence[CustomerAddressLine]
) -> List[CustomerAddress]:
    customer = get_owned(session, orm_models.CustomerORM, customer_id, CUSTOMER)
    created = _create_children(
        session, orm_models.CustomerAddressORM, "customer_id", customer.id, lines, _address_values
    )
    return [_address_to_schema(item) for item in created]


@operation("Помилка при редагуванні адрес доставки")
def replace_customer_addresses(
    session: Session, customer_id: str, lines: Sequence[CustomerAddressLine]
) -> List[CustomerAddress]:
    customer = get_owned(session, orm_models.CustomerORM, customer_id, CUSTOMER)
    result = _replace_children(
        session,
        orm_models.CustomerAddressORM,
        "customer_id",
        customer.id,
        lines,
        _address_values,
        entity=ADDRESS,
        check_delete=guard.can_delete_customer_addresses,
        blocked_message=guard.ADDRESS_IN_USE_MESSAGE,
    )
    return [_address_to_schema(item) for item in result]


@operation("Помилка при видаленні адреси доставки")
def delete_customer_address(session: Session, address_id: str) -> None:
    entity = get_owned(session, orm_models.CustomerAddressORM, address_id, ADDRESS)
    guard.ensure_allowed(
        guard.can_delete_customer_address(session, entity.id),
        guard.ADDRESS_IN_USE_MESSAGE,
        entity_id=entity.id,
    )
    session.delete(entity)
    session.flush()


# === Supplier drivers and cars ==============================================

def list_supplier_drivers(session: Session, supplier_id: str) -> List[SupplierDriver]:
    supplier = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    items = _children(session, orm_models.SupplierDriverORM, "supplier_id", supplier.id)
    return [_driver_to_schema(item) for item in items]


@operation("Помилка при створенні водія")
def create_supplier_drivers(
    session: Session, supplier_id: str, lines: Sequence[SupplierDriverLine]
) -> List[SupplierDriver]:
    supplier = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    created = _create_children(
        session, orm_models.SupplierDriverORM, "supplier_id", supplier.id, lines, _driver_values
    )
    return [_driver_to_schema(item) for item in created]


@operation("Помилка при редагуванні водіїв")
def replace_supplier_drivers(
    session: Session, supplier_id: str, lines: Sequence[SupplierDriverLine]
) -> List[SupplierDriver]:
    supplier = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    result = _replace_children(
        session,
        orm_models.SupplierDriverORM,
        "supplier_id",
        supplier.id,
        lines,
        _driver_values,
        entity=DRIVER,
    )
    return [_driver_to_schema(item) for item in result]


def list_supplier_cars(session: Session, supplier_id: str) -> List[SupplierCar]:
    supplier = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    items = _children(session, orm_models.SupplierCarORM, "supplier_id", supplier.id)
    return [_car_to_schema(item) for item in items]


@operation("Помилка при створенні автомобіля")
def create_supplier_cars(session: Session, supplier_id: str, lines: Sequence[SupplierCarLine]) -> List[SupplierCar]:
    supplier = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    created = _create_children(session, orm_models.SupplierCarORM, "supplier_id", supplier.id, lines, _car_values)
    return [_car_to_schema(item) for item in created]


@operation("Помилка при редагуванні автомобілів")
def replace_supplier_cars(session: Session, supplier_id: str, lines: Sequence[SupplierCarLine]) -> List[SupplierCar]:
    supplier = get_owned(session, orm_models.SupplierORM, supplier_id, SUPPLIER)
    result = _replace_children(
        session,
        orm_models.SupplierCarORM,
        "supplier_id",
        supplier.id,
        lines,
        _car_values,
        entity=CAR,
    )
    return [_car_to_schema(item) for item in result]
