from decimal import Decimal

from backend.supply_ledger.errors import BlockReason, ErrorKind
from backend.supply_ledger.orm_models import UnitType
from backend.supply_ledger.schemas import SpecificationLineInput
from backend.supply_ledger.services import contracts, invoices, ledger


def _balance_by_id(session, contract_id):
    return {line.id: line for line in ledger.specification_balance(session, contract_id)}


def test_remaining_quantity_follows_invoices(session, build, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]

    assert ledger.remaining_quantity(session, spec_line.id) == Decimal("10")

    invoice = build.invoice(contract, contract_setup["address"], [(spec_line.id, "6")])
    line = _balance_by_id(session, contract.id)[spec_line.id]
    assert line.invoicedQuantity == Decimal("6")
    assert line.remainingQuantity == Decimal("4")

    assert invoices.delete_invoice(session, invoice.id).success
    assert ledger.remaining_quantity(session, spec_line.id) == Decimal("10")


def test_over_invoicing_is_reported_as_negative_remainder(session, build, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]

    build.invoice(contract, contract_setup["address"], [(spec_line.id, "6")])
    build.invoice(contract, contract_setup["address"], [(spec_line.id, "6")])

    assert ledger.remaining_quantity(session, spec_line.id) == Decimal("-2")


def test_balance_lists_unreferenced_lines_in_position_order(session, build, contract_setup):
    contract = contract_setup["contract"]
    extra = build.specification(contract.id, [("Цукор", "кг", "5", "30")])[0]

    balance = ledger.specification_balance(session, contract.id)

    assert [line.id for line in balance] == [contract_setup["spec_line"].id, extra.id]
    assert balance[1].invoicedQuantity == Decimal("0")
    assert balance[1].remainingQuantity == Decimal("5")


def test_cached_balance_is_refreshed_after_a_committed_invoice(session, build, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]
    before = ledger.specification_balance(session, contract.id)
    assert before[0].remainingQuantity == Decimal("10")

    build.invoice(contract, contract_setup["address"], [(spec_line.id, "2,5")])

    after = ledger.specification_balance(session, contract.id)
    assert after[0].remainingQuantity == Decimal("7.5")


def test_is_referenced(session, build, contract_setup):
    spec_line = contract_setup["spec_line"]
    assert not ledger.is_referenced(session, spec_line.id)

    build.invoice(contract_setup["contract"], contract_setup["address"], [(spec_line.id, "1")])

    assert ledger.is_referenced(session, spec_line.id)


def test_replace_specification_updates_inserts_and_orders_lines(session, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]

    result = contracts.replace_specification(
        session,
        contract.id,
        [
            SpecificationLineInput(productName="Олія", unit="л", quantity="20", pricePerUnit="65,40"),
            SpecificationLineInput(
                id=spec_line.id, productName="Борошно в/г", unit="кг", quantity="12", pricePerUnit="25,50"
            ),
        ],
    )

    assert result.success
    assert [line.productName for line in result.data] == ["Олія", "Борошно в/г"]
    assert result.data[0].unit is UnitType.L
    stored = contracts.list_specification(session, contract.id)
    assert [line.productName for line in stored] == ["Олія", "Борошно в/г"]
    assert stored[1].id == spec_line.id
    assert stored[1].quantity == Decimal("12")


def test_replace_specification_refuses_to_drop_invoiced_lines(session, build, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]
    build.invoice(contract, contract_setup["address"], [(spec_line.id, "3")])

    result = contracts.replace_specification(
        session,
        contract.id,
        [SpecificationLineInput(productName="Рис", unit="кг", quantity="4", pricePerUnit="40")],
    )

    assert result.error is ErrorKind.REFERENTIAL_INTEGRITY_VIOLATION
    assert result.reason is BlockReason.USED_IN_INVOICE_SPECIFICATION
    assert [line.id for line in contracts.list_specification(session, contract.id)] == [spec_line.id]


def test_replace_specification_with_bad_number_changes_nothing(session, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]

    result = contracts.replace_specification(
        session,
        contract.id,
        [
            SpecificationLineInput(productName="Рис", unit="кг", quantity="4", pricePerUnit="40"),
            SpecificationLineInput(id=spec_line.id, productName="Борошно", unit="кг", quantity="багато", pricePerUnit="1"),
        ],
    )

    assert result.error is ErrorKind.INVALID_NUMBER_FORMAT
    stored = contracts.list_specification(session, contract.id)
    assert [line.id for line in stored] == [spec_line.id]
    assert stored[0].quantity == Decimal("10")


def test_specification_rejects_unknown_unit(session, contract_setup):
    result = contracts.create_specification(
        session,
        contract_setup["contract"].id,
        [SpecificationLineInput(productName="Яйця", unit="десяток", quantity="3", pricePerUnit="45")],
    )

    assert result.error is ErrorKind.INVALID_UNIT
    assert len(contracts.list_specification(session, contract_setup["contract"].id)) == 1


def test_delete_specification_line_respects_invoice_references(session, build, contract_setup):
    contract = contract_setup["contract"]
    spec_line = contract_setup["spec_line"]
    spare = build.specification(contract.id, [("Сіль", "кг", "1", "12")])[0]
    build.invoice(contract, contract_setup["address"], [(spec_line.id, "1")])

    blocked = contracts.delete_specification_line(session, spec_line.id)
    allowed = contracts.delete_specification_line(session, spare.id)

    assert blocked.error is ErrorKind.REFERENTIAL_INTEGRITY_VIOLATION
    assert allowed.success
    assert [line.id for line in contracts.list_specification(session, contract.id)] == [spec_line.id]


def test_delete_whole_specification(session, contract_setup):
    contract = contract_setup["contract"]

    assert contracts.delete_specification(session, contract.id).success
    assert contracts.list_specification(session, contract.id) == []
    assert ledger.specification_balance(session, contract.id) == []
