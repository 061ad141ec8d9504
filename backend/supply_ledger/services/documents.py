"""Printable invoice and TTN documents.

Builders resolve an invoice with its parties, address, contract and lines
into a flat payload with every sum and text already computed; the renderers
only lay that payload out as a DOCX file.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Cm, Pt
from sqlalchemy.orm import Session

from .. import orm_models
from ..amounts import ZERO, format_price, format_quantity
from ..config import settings
from ..dates import format_ukrainian_date
from ..errors import ErrorKind, ServiceError
from ..owner_scoping import get_owned
from ..schemas import DocumentLine, DocumentParty, InvoiceDocument, RenderedDocument, WaybillDocument
from ..wording import amount_to_words, quantity_to_words
from .directory import CAR, DRIVER
from .invoices import INVOICE
from .reports import invoice_line_sum, invoice_total

logger = logging.getLogger(__name__)

VAT_TEXT = "0,00"
NO_VAT_SUFFIX = ". Без ПДВ"
FOREIGN_TRANSPORT_MESSAGE = "Водій або автомобіль не належить постачальнику накладної"

_FILENAME_UNSAFE_RE = re.compile(r"[^\w.-]+", re.UNICODE)


# === Builders ===============================================================

def _initial(value: str | None) -> str:
    text = (value or "").strip()
    return f"{text[0].upper()}." if text else ""


def _short_driver_name(driver: orm_models.SupplierDriverORM) -> str:
    initials = "".join(_initial(part) for part in (driver.first_name, driver.middle_name))
    return f"{driver.last_name.strip()} {initials}".strip()


def _consignee(customer_name: str, institution_name: str, delivery_address: str) -> str:
    if institution_name == customer_name:
        return f"{institution_name} ({delivery_address})"
    return f"{customer_name} ({institution_name}) {delivery_address}"


def _document_lines(invoice: orm_models.InvoiceORM) -> list[DocumentLine]:
    lines = []
    for index, line in enumerate(invoice.specification, start=1):
        line_sum = invoice_line_sum(line)
        product = line.contract_specification
        lines.append(
            DocumentLine(
                index=index,
                productName=product.product_name if product else "",
                unit=line.unit,
                quantity=line.quantity,
                quantityText=format_quantity(line.quantity),
                pricePerUnit=line.price_per_unit,
                pricePerUnitText=format_price(line.price_per_unit),
                sum=line_sum,
                sumText=format_price(line_sum),
            )
        )
    return lines


def _invoice_payload(invoice: orm_models.InvoiceORM) -> dict:
    supplier = invoice.supplier
    customer = invoice.customer
    address = invoice.customer_address
    contract = invoice.contract
    total = invoice_total(invoice)
    return {
        "invoiceId": invoice.id,
        "number": invoice.number,
        "date": invoice.date,
        "dateText": format_ukrainian_date(invoice.date),
        "supplier": DocumentParty(
            name=supplier.name,
            address=supplier.address,
            edrpou=supplier.edrpou,
            phoneNumber=supplier.phone_number,
            bankAccount=supplier.bank_account,
        ),
        "customer": DocumentParty(
            name=customer.name,
            address=customer.address,
            edrpou=customer.edrpou,
            phoneNumber=customer.phone_number,
        ),
        "institutionName": address.institution_name,
        "deliveryAddress": address.delivery_address,
        "contractNumber": contract.number,
        "contractDate": contract.date,
        "lines": _document_lines(invoice),
        "totalAmount": total,
        "totalAmountText": format_price(total),
        "totalAmountWords": amount_to_words(total),
        "vatAmountText": VAT_TEXT,
    }


def build_invoice_document(session: Session, invoice_id: str) -> InvoiceDocument:
    invoice = get_owned(session, orm_models.InvoiceORM, invoice_id, INVOICE)
    return InvoiceDocument(**_invoice_payload(invoice))


def build_waybill_document(session: Session, invoice_id: str, driver_id: str, car_id: str) -> WaybillDocument:
    invoice = get_owned(session, orm_models.InvoiceORM, invoice_id, INVOICE)
    driver = get_owned(session, orm_models.SupplierDriverORM, driver_id, DRIVER)
    car = get_owned(session, orm_models.SupplierCarORM, car_id, CAR)
    if driver.supplier_id != invoice.supplier_id or car.supplier_id != invoice.supplier_id:
        raise ServiceError(
            ErrorKind.VALIDATION_FAILED,
            FOREIGN_TRANSPORT_MESSAGE,
            {"driverId": driver.id, "carId": car.id},
        )

    payload = _invoice_payload(invoice)
    total_quantity = sum((line.quantity for line in invoice.specification), ZERO)
    first_unit = invoice.specification[0].unit if invoice.specification else orm_models.UnitType.KG
    return WaybillDocument(
        **payload,
        carName=car.name,
        carRegistration=car.registration,
        carrier=f"{car.owner} {car.owner_address}".strip(),
        driverName=_short_driver_name(driver),
        driverLicense=driver.driver_license,
        consignee=_consignee(payload["customer"].name, payload["institutionName"], payload["deliveryAddress"]),
        totalQuantity=total_quantity,
        totalQuantityWords=quantity_to_words(total_quantity, first_unit),
    )


# === DOCX rendering =========================================================

LINE_HEADER = ["№", "Найменування", "Од.", "Кількість", "Ціна без ПДВ", "Сума без ПДВ"]


def _initialize_document_defaults(document: Document, *, landscape: bool = False) -> None:
    normal_style = document.styles["Normal"]
    normal_style.font.name = "Times New Roman"
    normal_style.font.size = Pt(10)
    para = normal_style.paragraph_format
    para.space_after = Pt(2)
    para.alignment = WD_ALIGN_PARAGRAPH.LEFT

    section = document.sections[0]
    section.left_margin = section.right_margin = Cm(1.5)
    section.top_margin = section.bottom_margin = Cm(1.5)
    if landscape:
        section.orientation = WD_ORIENT.LANDSCAPE
        section.page_width, section.page_height = section.page_height, section.page_width


def _set_cell_border(cell, width_pt: float = 0.5) -> None:
    tc_pr = cell._tc.get_or_add_tcPr()
    tc_borders = tc_pr.find(qn("w:tcBorders"))
    if tc_borders is None:
        tc_borders = OxmlElement("w:tcBorders")
        tc_pr.append(tc_borders)
    for edge in ("top", "left", "bottom", "right"):
        element = tc_borders.find(qn(f"w:{edge}"))
        if element is None:
            element = OxmlElement(f"w:{edge}")
            tc_borders.append(element)
        element.set(qn("w:val"), "single")
        element.set(qn("w:sz"), str(int(width_pt * 8)))
        element.set(qn("w:space"), "0")
        element.set(qn("w:color"), "auto")


def _add_line(document: Document, text: str, *, bold: bool = False, align=None, size: Optional[int] = None):
    paragraph = document.add_paragraph()
    run = paragraph.add_run(text)
    run.bold = bold
    if size:
        run.font.size = Pt(size)
    if align is not None:
        paragraph.alignment = align
    return paragraph


def _add_table(document: Document, header: list[str], rows: list[list[str]]) -> None:
    table = document.add_table(rows=1, cols=len(header))
    for cell, title in zip(table.rows[0].cells, header):
        cell.paragraphs[0].add_run(title).bold = True
    for values in rows:
        cells = table.add_row().cells
        for cell, value in zip(cells, values):
            cell.text = value
    for row in table.rows:
        for cell in row.cells:
            _set_cell_border(cell)


def _line_rows(payload: InvoiceDocument) -> list[list[str]]:
    return [
        [
            str(line.index),
            line.productName,
            line.unit.value,
            line.quantityText,
            line.pricePerUnitText,
            line.sumText,
        ]
        for line in payload.lines
    ]


def _safe_filename(prefix: str, number: str, document_id: str) -> str:
    stem = _FILENAME_UNSAFE_RE.sub("_", f"{prefix}-{number}-{document_id}").strip("_")
    return f"{stem}.docx"


def _save(document: Document, file_name: str, directory: Optional[Path]) -> RenderedDocument:
    target_dir = Path(directory or settings.documents_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    destination = target_dir / file_name
    document.save(destination)
    logger.info("Document written to %s", destination)
    return RenderedDocument(fileName=file_name, path=str(destination))


def render_invoice(payload: InvoiceDocument, directory: Optional[Path] = None) -> RenderedDocument:
    document = Document()
    _initialize_document_defaults(document)

    _add_line(document, f"Постачальник: {payload.supplier.name}", bold=True)
    _add_line(document, f"Адреса: {payload.supplier.address}")
    _add_line(document, f"Р/р: {payload.supplier.bankAccount}")
    _add_line(document, f"Код ЄДРПОУ: {payload.supplier.edrpou}, тел.: {payload.supplier.phoneNumber}")
    _add_line(document, f"Одержувач: {payload.customer.name}")
    _add_line(document, f"Адреса доставки: {payload.institutionName} ({payload.deliveryAddress})")
    _add_line(document, f"Договір № {payload.contractNumber} від {payload.contractDate}")
    _add_line(
        document,
        f"Видаткова накладна № {payload.number} від {payload.dateText} року",
        bold=True,
        align=WD_ALIGN_PARAGRAPH.CENTER,
        size=13,
    )

    _add_table(document, LINE_HEADER, _line_rows(payload))

    _add_line(document, f"Разом: {payload.totalAmountText}", align=WD_ALIGN_PARAGRAPH.RIGHT)
    _add_line(document, f"ПДВ20%: {payload.vatAmountText}", align=WD_ALIGN_PARAGRAPH.RIGHT)
    _add_line(document, f"Всього з ПДВ: {payload.totalAmountText}", bold=True, align=WD_ALIGN_PARAGRAPH.RIGHT)
    _add_line(document, f"Всього на суму: {payload.totalAmountWords}")
    _add_line(document, "Відвантажив(ла): ____________        Отримав(ла): ____________")

    return _save(document, _safe_filename("invoice", payload.number, payload.invoiceId), directory)


def render_waybill(payload: WaybillDocument, directory: Optional[Path] = None) -> RenderedDocument:
    document = Document()
    _initialize_document_defaults(document, landscape=True)

    _add_line(document, "Форма № 1-ТН", align=WD_ALIGN_PARAGRAPH.RIGHT)
    _add_line(document, "ТОВАРНО-ТРАНСПОРТНА НАКЛАДНА", bold=True, align=WD_ALIGN_PARAGRAPH.CENTER, size=13)
    _add_line(document, f"№ {payload.number} від {payload.dateText} року", align=WD_ALIGN_PARAGRAPH.CENTER)
    _add_line(document, f"Автомобіль {payload.carName} {payload.carRegistration}")
    _add_line(
        document,
        f"Автомобільний перевізник {payload.carrier}    Водій {payload.driverName}, {payload.driverLicense}",
    )
    _add_line(document, f"Замовник {payload.customer.name}")
    _add_line(document, f"Вантажовідправник {payload.supplier.name} {payload.supplier.address}")
    _add_line(document, f"Вантажоодержувач {payload.consignee}")
    _add_line(document, f"Пункт навантаження {payload.loadPlace or '_' * 40}")
    _add_line(document, f"Пункт розвантаження {payload.deliveryAddress}")
    _add_line(
        document,
        f"кількість місць {payload.totalQuantityWords}, отримав водій/експедитор {payload.driverName} (Водій)",
    )
    _add_line(document, f"Усього відпущено на загальну суму {payload.totalAmountWords}{NO_VAT_SUFFIX}")
    _add_line(
        document,
        f"Супровідні документи на вантаж накладна №{payload.number} від {payload.dateText} року",
    )

    document.add_page_break()
    _add_line(document, "ВІДОМОСТІ ПРО ВАНТАЖ", bold=True, align=WD_ALIGN_PARAGRAPH.CENTER, size=13)
    _add_table(document, LINE_HEADER, _line_rows(payload))
    _add_line(document, f"Разом: {payload.totalAmountText}", align=WD_ALIGN_PARAGRAPH.RIGHT)

    return _save(document, _safe_filename("ttn", payload.number, payload.invoiceId), directory)


def generate_invoice_document(session: Session, invoice_id: str, directory: Optional[Path] = None) -> RenderedDocument:
    return render_invoice(build_invoice_document(session, invoice_id), directory)


def generate_waybill_document(
    session: Session,
    invoice_id: str,
    driver_id: str,
    car_id: str,
    directory: Optional[Path] = None,
) -> RenderedDocument:
    return render_waybill(build_waybill_document(session, invoice_id, driver_id, car_id), directory)
