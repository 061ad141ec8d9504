"""Consumed and remaining quantities of contract specification lines."""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import orm_models
from ..amounts import ZERO, quantize
from ..cache import cache, specification_tag
from ..owner_scoping import get_owned, require_user_id
from ..schemas import SpecificationBalanceLine
from . import guard
from .contracts import CONTRACT, SPECIFICATION_LINE


def _load_balance(session: Session, user_id: str, contract_id: str) -> List[SpecificationBalanceLine]:
    spec = orm_models.ContractSpecificationORM
    line = orm_models.InvoiceSpecificationORM
    rows = session.execute(
        select(
            spec.id,
            spec.contract_id,
            spec.product_name,
            spec.unit,
            spec.quantity,
            spec.price_per_unit,
            line.quantity,
        )
        .outerjoin(line, line.contract_specification_id == spec.id)
        .where(spec.contract_id == contract_id, spec.user_id == user_id)
        .order_by(spec.position.asc(), spec.id.asc())
    ).all()

    balance: "OrderedDict[str, dict]" = OrderedDict()
    for spec_id, spec_contract_id, product_name, unit, quantity, price, invoiced in rows:
        entry = balance.setdefault(
            spec_id,
            {
                "id": spec_id,
                "contractId": spec_contract_id,
                "productName": product_name,
                "unit": unit,
                "quantity": quantity,
                "pricePerUnit": price,
                "invoicedQuantity": ZERO,
            },
        )
        if invoiced is not None:
            entry["invoicedQuantity"] += invoiced

    return [
        SpecificationBalanceLine(
            remainingQuantity=quantize(entry["quantity"] - entry["invoicedQuantity"]),
            **{**entry, "invoicedQuantity": quantize(entry["invoicedQuantity"])},
        )
        for entry in balance.values()
    ]


def specification_balance(session: Session, contract_id: str) -> List[SpecificationBalanceLine]:
    """Every line of the contract with its invoiced and remaining quantity.

    Over-invoicing is reported, not prevented: the remainder goes negative.
    """
    user_id = require_user_id(session)
    contract = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    return cache.get_or_load(
        ("specification_balance", user_id, contract.id),
        [specification_tag(contract.id)],
        lambda: _load_balance(session, user_id, contract.id),
    )


def remaining_quantity(session: Session, spec_line_id: str) -> Decimal:
    row = get_owned(session, orm_models.ContractSpecificationORM, spec_line_id, SPECIFICATION_LINE)
    for entry in specification_balance(session, row.contract_id):
        if entry.id == row.id:
            return entry.remainingQuantity
    return quantize(row.quantity)


def is_referenced(session: Session, spec_line_id: str) -> bool:
    return not guard.can_delete_specification_line(session, spec_line_id).ok
