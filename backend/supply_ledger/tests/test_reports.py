from decimal import Decimal

import pytest

from backend.supply_ledger.errors import ErrorKind, ServiceError
from backend.supply_ledger.orm_models import InvoiceStatus, UserORM
from backend.supply_ledger.owner_scoping import bind_user
from backend.supply_ledger.schemas import SupplierCreate
from backend.supply_ledger.services import directory, invoices, reports


@pytest.fixture()
def ledger_data(build):
    alpha = build.supplier(name="ТОВ Альфа")
    beta = build.supplier(name="ТОВ Бета")
    customer = build.customer()
    address = build.address(customer.id)
    contract = build.contract(alpha.id, customer.id, price="10 000,00", execution_period="31.12.2025")
    flour, oil = build.specification(
        contract.id,
        [("Борошно", "кг", "100", "25,50"), ("Олія", "л", "50", "12,35")],
    )
    return {
        "alpha": alpha,
        "beta": beta,
        "address": address,
        "contract": contract,
        "flour": flour,
        "oil": oil,
    }


def _totals(rows):
    return {row.supplierName: row.totalPrice for row in rows}


def test_invoice_total_is_the_exact_sum_of_line_sums(build, ledger_data):
    invoice = build.invoice(
        ledger_data["contract"],
        ledger_data["address"],
        [(ledger_data["flour"].id, "3"), (ledger_data["oil"].id, "2,5")],
    )

    assert [line.sum for line in invoice.specification] == [Decimal("76.50"), Decimal("30.875")]
    assert invoice.totalAmount == Decimal("107.375")
    assert reports.invoice_total(invoice) == invoice.totalAmount


def test_sub_cent_line_sums_are_not_rounded_before_adding(build, ledger_data):
    cheap = build.specification(ledger_data["contract"].id, [("Сіль", "кг", "10", "0,01")])[0]
    invoice = build.invoice(
        ledger_data["contract"],
        ledger_data["address"],
        [(cheap.id, "0,5"), (cheap.id, "0,5")],
    )

    assert invoice.totalAmount == Decimal("0.01")


def test_yearly_sums_bucket_paid_by_payment_date(session, user, build, ledger_data):
    contract = ledger_data["contract"]
    build.invoice(contract, ledger_data["address"], [(ledger_data["flour"].id, "3")], date="15.03.2025")
    build.invoice(
        contract,
        ledger_data["address"],
        [(ledger_data["flour"].id, "2")],
        date="20.12.2025",
        status=InvoiceStatus.PAID,
        payment_date="10.01.2026",
    )

    unpaid_2025 = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.UNPAID, "2025"))
    paid_2025 = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.PAID, "2025"))
    paid_2026 = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.PAID, "2026"))

    assert unpaid_2025 == {"ТОВ Альфа": Decimal("76.50"), "ТОВ Бета": Decimal("0")}
    assert paid_2025 == {"ТОВ Альфа": Decimal("0"), "ТОВ Бета": Decimal("0")}
    assert paid_2026 == {"ТОВ Альфа": Decimal("51.00"), "ТОВ Бета": Decimal("0")}


def test_one_invoice_moves_from_invoice_year_to_payment_year_when_paid(session, user, build, ledger_data):
    invoice = build.invoice(
        ledger_data["contract"], ledger_data["address"], [(ledger_data["flour"].id, "3")], date="15.03.2025"
    )
    before = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.UNPAID, "2025"))
    assert before["ТОВ Альфа"] == Decimal("76.50")

    assert invoices.set_invoice_status(session, invoice.id, InvoiceStatus.PAID, "10.01.2026").success

    unpaid_2025 = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.UNPAID, "2025"))
    paid_2025 = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.PAID, "2025"))
    paid_2026 = _totals(reports.supplier_yearly_invoice_sum(session, user.id, InvoiceStatus.PAID, "2026"))
    assert unpaid_2025["ТОВ Альфа"] == Decimal("0")
    assert paid_2025["ТОВ Альфа"] == Decimal("0")
    assert paid_2026["ТОВ Альфа"] == Decimal("76.50")


def test_contract_sum_lists_suppliers_without_contracts(session, user, ledger_data):
    by_year = _totals(reports.supplier_yearly_contract_sum(session, user.id, "2025"))
    other_year = _totals(reports.supplier_yearly_contract_sum(session, user.id, "2024"))

    assert by_year == {"ТОВ Альфа": Decimal("10000"), "ТОВ Бета": Decimal("0")}
    assert other_year == {"ТОВ Альфа": Decimal("0"), "ТОВ Бета": Decimal("0")}


def test_quarterly_sums_cover_every_supplier_and_quarter(session, user, build, ledger_data):
    build.invoice(
        ledger_data["contract"],
        ledger_data["address"],
        [(ledger_data["oil"].id, "10")],
        status=InvoiceStatus.PAID,
        payment_date="05.05.2025",
    )

    rows = reports.quarterly_paid_sum_by_supplier(session, user.id, "2025")

    assert len(rows) == 8
    amounts = {(row.supplierName, row.quarter): row.totalPrice for row in rows}
    assert amounts[("ТОВ Альфа", 2)] == Decimal("123.50")
    assert amounts[("ТОВ Альфа", 1)] == Decimal("0")
    assert all(amounts[("ТОВ Бета", quarter)] == Decimal("0") for quarter in (1, 2, 3, 4))


def test_contract_totals_split_by_status(session, build, ledger_data):
    contract = ledger_data["contract"]
    build.invoice(contract, ledger_data["address"], [(ledger_data["flour"].id, "1")])
    build.invoice(
        contract,
        ledger_data["address"],
        [(ledger_data["oil"].id, "1")],
        status=InvoiceStatus.PAID,
        payment_date="01.04.2025",
    )

    totals = reports.contract_totals(session, contract.id)

    assert totals.unpaid == Decimal("25.50")
    assert totals.paid == Decimal("12.35")


def test_dashboard_reflects_status_change_after_commit(session, user, build, ledger_data):
    invoice = build.invoice(ledger_data["contract"], ledger_data["address"], [(ledger_data["flour"].id, "3")])
    before = reports.dashboard(session, user.id, "2025")
    assert _totals(before.unpaidSum)["ТОВ Альфа"] == Decimal("76.50")

    result = invoices.set_invoice_status(session, invoice.id, InvoiceStatus.PAID, "01.04.2025")
    assert result.success

    after = reports.dashboard(session, user.id, "2025")
    assert _totals(after.unpaidSum)["ТОВ Альфа"] == Decimal("0")
    assert _totals(after.paidSum)["ТОВ Альфа"] == Decimal("76.50")
    quarterly = {(row.supplierName, row.quarter): row.totalPrice for row in after.quarterlySum}
    assert quarterly[("ТОВ Альфа", 2)] == Decimal("76.50")
    assert after.supplierSum[0].totalPrice == Decimal("10000")


def test_dashboard_rejects_malformed_year(session, user):
    with pytest.raises(ServiceError) as excinfo:
        reports.dashboard(session, user.id, "25")
    assert excinfo.value.kind is ErrorKind.INVALID_DATE_FORMAT

def _supplier_of(session_factory, email: str, name: str, edrpou: str):
    with session_factory() as session:
        account = UserORM(email=email, full_name=email, password_hash="hash")
        session.add(account)
        session.commit()
        bind_user(session, account.id)
        created = directory.create_supplier(
            session,
            SupplierCreate(
                name=name,
                address="м. Одеса, вул. Морська, 9",
                edrpou=edrpou,
                phoneNumber="+380482000000",
                email="supplier@example.com",
                bankAccount="UA000000000000000000000000003",
            ),
        )
        assert created.success
        return account.id, reports.dashboard(session, account.id, "2025")


def test_each_user_dashboard_lists_only_their_suppliers(session_factory):
    _, first_board = _supplier_of(session_factory, "first@example.com", "ТОВ Альфа", "30000001")
    _, second_board = _supplier_of(session_factory, "second@example.com", "ТОВ Гамма", "30000003")

    assert _totals(first_board.supplierSum) == {"ТОВ Альфа": Decimal("0")}
    assert _totals(second_board.supplierSum) == {"ТОВ Гамма": Decimal("0")}
    assert [row.supplierName for row in second_board.quarterlySum] == ["ТОВ Гамма"] * 4
