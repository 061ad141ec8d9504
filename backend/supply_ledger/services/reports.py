"""Monetary aggregates behind contract, invoice and dashboard views.

All sums are Decimal and computed in Python from the stored line values, so
totals are exact whatever the database returns for NUMERIC columns. Yearly
buckets use the ``dd.MM.yyyy`` year of the relevant date: the invoice date
for unpaid invoices, the payment date for paid ones. Nothing is rounded
here; amounts are rounded to two places only when formatted.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import orm_models
from ..amounts import ZERO, parse_decimal
from ..cache import cache, contract_totals_tag, dashboard_tag
from ..dates import normalize_year, quarter_of, year_of
from ..orm_models import InvoiceStatus
from ..owner_scoping import get_owned
from ..schemas import ContractTotals, DashboardInfo, QuarterlyTotal, SupplierTotal
from .contracts import CONTRACT

QUARTERS = (1, 2, 3, 4)


def invoice_line_sum(line) -> Decimal:
    price = getattr(line, "price_per_unit", None)
    if price is None:
        price = line.pricePerUnit
    return parse_decimal(price, field="pricePerUnit") * parse_decimal(line.quantity, field="quantity")


def invoice_total(invoice) -> Decimal:
    lines = invoice.specification
    return sum((invoice_line_sum(line) for line in lines), ZERO)


def _sum_rows(rows: Iterable) -> Decimal:
    return sum((price * quantity for quantity, price in rows), ZERO)


def _resolve_status(status: InvoiceStatus | str) -> InvoiceStatus:
    return status if isinstance(status, InvoiceStatus) else InvoiceStatus(status)


# === Contract totals ========================================================

def _contract_status_total(session: Session, user_id: str, contract_id: str, status: InvoiceStatus) -> Decimal:
    line = orm_models.InvoiceSpecificationORM
    invoice = orm_models.InvoiceORM

    def load() -> Decimal:
        rows = session.execute(
            select(line.quantity, line.price_per_unit)
            .join(invoice, invoice.id == line.invoice_id)
            .where(
                invoice.user_id == user_id,
                invoice.contract_id == contract_id,
                invoice.status == status,
            )
        ).all()
        return _sum_rows(rows)

    return cache.get_or_load(
        ("contract_total", user_id, contract_id, status.value),
        [contract_totals_tag(contract_id)],
        load,
    )


def contract_paid_total(session: Session, user_id: str, contract_id: str) -> Decimal:
    return _contract_status_total(session, user_id, contract_id, InvoiceStatus.PAID)


def contract_unpaid_total(session: Session, user_id: str, contract_id: str) -> Decimal:
    return _contract_status_total(session, user_id, contract_id, InvoiceStatus.UNPAID)


def contract_totals(session: Session, contract_id: str) -> ContractTotals:
    contract = get_owned(session, orm_models.ContractORM, contract_id, CONTRACT)
    return ContractTotals(
        contractId=contract.id,
        paid=contract_paid_total(session, contract.user_id, contract.id),
        unpaid=contract_unpaid_total(session, contract.user_id, contract.id),
    )


# === Supplier aggregates ====================================================

def _suppliers(session: Session, user_id: str) -> list[tuple[str, str]]:
    supplier = orm_models.SupplierORM
    return [
        (row.id, row.name)
        for row in session.execute(
            select(supplier.id, supplier.name)
            .where(supplier.user_id == user_id)
            .order_by(supplier.name.asc(), supplier.id.asc())
        )
    ]


def _supplier_totals(suppliers: list[tuple[str, str]], totals: dict[str, Decimal]) -> List[SupplierTotal]:
    return [
        SupplierTotal(supplierId=supplier_id, supplierName=name, totalPrice=totals.get(supplier_id, ZERO))
        for supplier_id, name in suppliers
    ]


def supplier_yearly_contract_sum(session: Session, user_id: str, year: str) -> List[SupplierTotal]:
    """Contract prices per supplier for contracts whose execution period falls in ``year``.

    Suppliers without matching contracts are listed with a zero total.
    """
    year = normalize_year(year)

    def load() -> List[SupplierTotal]:
        contract = orm_models.ContractORM
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        rows = session.execute(
            select(contract.supplier_id, contract.price, contract.execution_period).where(contract.user_id == user_id)
        )
        for supplier_id, price, execution_period in rows:
            if year_of(execution_period) == year:
                totals[supplier_id] += price
        return _supplier_totals(_suppliers(session, user_id), totals)

    return cache.get_or_load(("supplier_yearly_contract_sum", user_id, year), [dashboard_tag(user_id)], load)


def _invoice_line_rows(session: Session, user_id: str, status: InvoiceStatus):
    line = orm_models.InvoiceSpecificationORM
    invoice = orm_models.InvoiceORM
    return session.execute(
        select(invoice.supplier_id, invoice.date, invoice.payment_date, line.quantity, line.price_per_unit)
        .join(line, line.invoice_id == invoice.id)
        .where(invoice.user_id == user_id, invoice.status == status)
    ).all()


def _bucket_date(status: InvoiceStatus, invoice_date: str, payment_date: str | None) -> str | None:
    return payment_date if status is InvoiceStatus.PAID else invoice_date


def supplier_yearly_invoice_sum(
    session: Session, user_id: str, status: InvoiceStatus | str, year: str
) -> List[SupplierTotal]:
    status = _resolve_status(status)
    year = normalize_year(year)

    def load() -> List[SupplierTotal]:
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for supplier_id, invoice_date, payment_date, quantity, price in _invoice_line_rows(session, user_id, status):
            if year_of(_bucket_date(status, invoice_date, payment_date)) == year:
                totals[supplier_id] += price * quantity
        return _supplier_totals(_suppliers(session, user_id), totals)

    return cache.get_or_load(
        ("supplier_yearly_invoice_sum", user_id, status.value, year),
        [dashboard_tag(user_id)],
        load,
    )


def quarterly_paid_sum_by_supplier(session: Session, user_id: str, year: str) -> List[QuarterlyTotal]:
    """Paid invoice sums per supplier and calendar quarter of the payment date."""
    year = normalize_year(year)

    def load() -> List[QuarterlyTotal]:
        totals: dict[tuple[str, int], Decimal] = defaultdict(lambda: ZERO)
        for supplier_id, _, payment_date, quantity, price in _invoice_line_rows(session, user_id, InvoiceStatus.PAID):
            if year_of(payment_date) != year:
                continue
            quarter = quarter_of(payment_date)
            if quarter is None:
                continue
            totals[(supplier_id, quarter)] += price * quantity
        return [
            QuarterlyTotal(
                supplierId=supplier_id,
                supplierName=name,
                quarter=quarter,
                totalPrice=totals.get((supplier_id, quarter), ZERO),
            )
            for supplier_id, name in _suppliers(session, user_id)
            for quarter in QUARTERS
        ]

    return cache.get_or_load(("quarterly_paid_sum_by_supplier", user_id, year), [dashboard_tag(user_id)], load)


def dashboard(session: Session, user_id: str, year: str) -> DashboardInfo:
    year = normalize_year(year)
    return DashboardInfo(
        year=year,
        supplierSum=supplier_yearly_contract_sum(session, user_id, year),
        unpaidSum=supplier_yearly_invoice_sum(session, user_id, InvoiceStatus.UNPAID, year),
        paidSum=supplier_yearly_invoice_sum(session, user_id, InvoiceStatus.PAID, year),
        quarterlySum=quarterly_paid_sum_by_supplier(session, user_id, year),
    )
