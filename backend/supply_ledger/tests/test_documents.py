from decimal import Decimal
from pathlib import Path

import pytest
from docx import Document
from docx.enum.section import WD_ORIENT

from backend.supply_ledger.errors import ErrorKind, ServiceError
from backend.supply_ledger.services import documents


@pytest.fixture()
def issued_invoice(build, contract_setup):
    return build.invoice(contract_setup["contract"], contract_setup["address"], [(contract_setup["spec_line"].id, "2,5")])


def _text(path: str) -> str:
    document = Document(path)
    parts = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.extend(cell.text for cell in row.cells)
    return "\n".join(parts)


def test_invoice_document_payload(session, issued_invoice, contract_setup):
    payload = documents.build_invoice_document(session, issued_invoice.id)

    assert payload.dateText == "15 березня 2025"
    assert payload.supplier.name == contract_setup["supplier"].name
    assert payload.customer.edrpou == contract_setup["customer"].edrpou
    assert payload.lines[0].quantityText == "2.50"
    assert payload.lines[0].pricePerUnitText == "25,50"
    assert payload.totalAmount == Decimal("63.75")
    assert payload.totalAmountText == "63,75"
    assert payload.totalAmountWords == "Шістдесят три гривні 75 копійок"
    assert payload.vatAmountText == "0,00"


def test_waybill_payload_names_driver_car_and_consignee(session, build, issued_invoice, contract_setup):
    supplier_id = contract_setup["supplier"].id
    driver = build.driver(supplier_id)
    car = build.car(supplier_id)

    payload = documents.build_waybill_document(session, issued_invoice.id, driver.id, car.id)

    assert payload.driverName == "Шевченко Т.Г."
    assert payload.carrier == "ФОП Коваль м. Київ, вул. Гаражна, 3"
    assert payload.consignee == "Школа №1 (вул. Шкільна, 5)"
    assert payload.totalQuantity == Decimal("2.5")
    assert payload.totalQuantityWords == "Два кілограми п’ятсот грамів"
    assert payload.loadPlace == ""


def test_consignee_names_customer_when_institution_differs():
    assert (
        documents._consignee("Відділ освіти", "Садочок №3", "вул. Весела, 1")
        == "Відділ освіти (Садочок №3) вул. Весела, 1"
    )


def test_waybill_rejects_transport_of_another_supplier(session, build, issued_invoice, contract_setup):
    stranger = build.supplier(name="ТОВ Чужий")
    driver = build.driver(stranger.id)
    car = build.car(contract_setup["supplier"].id)

    with pytest.raises(ServiceError) as excinfo:
        documents.build_waybill_document(session, issued_invoice.id, driver.id, car.id)
    assert excinfo.value.kind is ErrorKind.VALIDATION_FAILED


def test_invoice_docx_is_written(session, issued_invoice, tmp_path):
    rendered = documents.generate_invoice_document(session, issued_invoice.id, tmp_path)

    assert Path(rendered.path).parent == tmp_path
    assert rendered.fileName.endswith(".docx")
    text = _text(rendered.path)
    assert "Разом: 63,75" in text
    assert "ПДВ20%: 0,00" in text
    assert "Борошно" in text


def test_waybill_docx_is_landscape(session, build, issued_invoice, contract_setup, tmp_path):
    supplier_id = contract_setup["supplier"].id
    driver = build.driver(supplier_id)
    car = build.car(supplier_id)

    rendered = documents.generate_waybill_document(session, issued_invoice.id, driver.id, car.id, tmp_path)

    document = Document(rendered.path)
    assert document.sections[0].orientation == WD_ORIENT.LANDSCAPE
    assert "Шістдесят три гривні 75 копійок. Без ПДВ" in _text(rendered.path)
