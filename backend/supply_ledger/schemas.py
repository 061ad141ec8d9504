from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .errors import BlockReason, ErrorKind
from .orm_models import InvoiceStatus, UnitType


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _number_text(value: Any) -> Any:
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


# === Results ================================================================

class OperationResult(ApiModel):
    success: bool
    message: Optional[str] = None
    error: Optional[ErrorKind] = None
    reason: Optional[BlockReason] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None) -> "OperationResult":
        return cls(success=True, data=data, message=message)


class GuardResult(ApiModel):
    ok: bool
    reason: Optional[BlockReason] = None


# === Suppliers ==============================================================

class SupplierBase(ApiModel):
    name: str = Field(min_length=2, max_length=1000)
    address: str = Field(min_length=2, max_length=100)
    edrpou: str = Field(min_length=2, max_length=100)
    phoneNumber: str = Field(min_length=2, max_length=100, alias="phoneNumber")
    email: str = Field(min_length=2, max_length=100)
    bankAccount: str = Field(min_length=2, max_length=100, alias="bankAccount")

    strip_strings = field_validator("*", mode="before")(_strip)


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=1000)
    address: Optional[str] = Field(default=None, min_length=2, max_length=100)
    edrpou: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phoneNumber: Optional[str] = Field(default=None, min_length=2, max_length=100, alias="phoneNumber")
    email: Optional[str] = Field(default=None, min_length=2, max_length=100)
    bankAccount: Optional[str] = Field(default=None, min_length=2, max_length=100, alias="bankAccount")

    strip_strings = field_validator("*", mode="before")(_strip)


class Supplier(SupplierBase):
    id: str


class SupplierDriverLine(ApiModel):
    id: Optional[str] = None
    lastName: str = Field(min_length=1, alias="lastName")
    firstName: str = Field(min_length=1, alias="firstName")
    middleName: str = Field(min_length=1, alias="middleName")
    driverLicense: str = Field(min_length=1, alias="driverLicense")

    strip_strings = field_validator("*", mode="before")(_strip)


class SupplierDriver(SupplierDriverLine):
    id: str
    supplierId: str = Field(alias="supplierId")


class SupplierCarLine(ApiModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    registration: str = Field(min_length=1)
    owner: str = Field(min_length=1)
    ownerAddress: str = Field(min_length=1, alias="ownerAddress")

    strip_strings = field_validator("*", mode="before")(_strip)


class SupplierCar(SupplierCarLine):
    id: str
    supplierId: str = Field(alias="supplierId")


# === Customers ==============================================================

class CustomerBase(ApiModel):
    name: str = Field(min_length=3, max_length=1000)
    address: str = Field(min_length=1, max_length=100)
    edrpou: str = Field(min_length=6, max_length=100)
    phoneNumber: str = Field(min_length=5, max_length=100, alias="phoneNumber")
    email: str = Field(min_length=5, max_length=100)

    strip_strings = field_validator("*", mode="before")(_strip)


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=1000)
    address: Optional[str] = Field(default=None, min_length=1, max_length=100)
    edrpou: Optional[str] = Field(default=None, min_length=6, max_length=100)
    phoneNumber: Optional[str] = Field(default=None, min_length=5, max_length=100, alias="phoneNumber")
    email: Optional[str] = Field(default=None, min_length=5, max_length=100)

    strip_strings = field_validator("*", mode="before")(_strip)


class Customer(CustomerBase):
    id: str


class CustomerAddressLine(ApiModel):
    id: Optional[str] = None
    institutionName: str = Field(min_length=1, alias="institutionName")
    deliveryAddress: str = Field(min_length=1, alias="deliveryAddress")

    strip_strings = field_validator("*", mode="before")(_strip)


class CustomerAddress(CustomerAddressLine):
    id: str
    customerId: str = Field(alias="customerId")


# === Contracts ==============================================================

class ContractBase(ApiModel):
    customerId: str = Field(min_length=1, alias="customerId")
    supplierId: str = Field(min_length=1, alias="supplierId")
    number: str = Field(min_length=1, max_length=100)
    date: str = Field(min_length=2, max_length=100)
    subject: str = Field(min_length=1, max_length=1000)
    price: str = Field(min_length=1, max_length=1000)
    executionPeriod: str = Field(min_length=1, max_length=100, alias="executionPeriod")

    strip_strings = field_validator("*", mode="before")(_strip)
    number_text = field_validator("price", mode="before")(_number_text)


class ContractCreate(ContractBase):
    pass


class ContractUpdate(ApiModel):
    customerId: Optional[str] = Field(default=None, alias="customerId")
    supplierId: Optional[str] = Field(default=None, alias="supplierId")
    number: Optional[str] = None
    date: Optional[str] = None
    subject: Optional[str] = None
    price: Optional[str] = None
    executionPeriod: Optional[str] = Field(default=None, alias="executionPeriod")

    strip_strings = field_validator("*", mode="before")(_strip)
    number_text = field_validator("price", mode="before")(_number_text)


class Contract(ApiModel):
    id: str
    customerId: str = Field(alias="customerId")
    supplierId: str = Field(alias="supplierId")
    number: str
    date: str
    subject: str
    price: Decimal
    executionPeriod: str = Field(alias="executionPeriod")
    customerName: str = Field(default="", alias="customerName")
    supplierName: str = Field(default="", alias="supplierName")


class SpecificationLineInput(ApiModel):
    id: Optional[str] = None
    productName: str = Field(min_length=1, alias="productName")
    unit: str
    quantity: str = Field(min_length=1)
    pricePerUnit: str = Field(min_length=1, alias="pricePerUnit")

    strip_strings = field_validator("id", "productName", "unit", mode="before")(_strip)
    number_text = field_validator("quantity", "pricePerUnit", mode="before")(_number_text)


class SpecificationLine(ApiModel):
    id: str
    contractId: str = Field(alias="contractId")
    productName: str = Field(alias="productName")
    unit: UnitType
    quantity: Decimal
    pricePerUnit: Decimal = Field(alias="pricePerUnit")


class SpecificationBalanceLine(SpecificationLine):
    invoicedQuantity: Decimal = Field(alias="invoicedQuantity")
    remainingQuantity: Decimal = Field(alias="remainingQuantity")


class ContractTotals(ApiModel):
    contractId: str = Field(alias="contractId")
    paid: Decimal
    unpaid: Decimal


# === Invoices ===============================================================

class InvoiceLineInput(ApiModel):
    id: Optional[str] = None
    contractSpecificationId: str = Field(min_length=1, alias="contractSpecificationId")
    unit: Optional[str] = None
    quantity: str = Field(min_length=1)
    pricePerUnit: Optional[str] = Field(default=None, alias="pricePerUnit")

    strip_strings = field_validator("id", "contractSpecificationId", "unit", mode="before")(_strip)
    number_text = field_validator("quantity", "pricePerUnit", mode="before")(_number_text)


class InvoiceCreate(ApiModel):
    customerId: str = Field(min_length=1, alias="customerId")
    supplierId: str = Field(min_length=1, alias="supplierId")
    customerAddressId: str = Field(min_length=1, alias="customerAddressId")
    contractId: str = Field(min_length=1, alias="contractId")
    number: str = Field(min_length=1, max_length=100)
    date: str = Field(min_length=2, max_length=100)
    status: InvoiceStatus = InvoiceStatus.UNPAID
    paymentDate: Optional[str] = Field(default=None, alias="paymentDate")
    specification: List[InvoiceLineInput] = Field(default_factory=list)

    strip_strings = field_validator(
        "customerId", "supplierId", "customerAddressId", "contractId", "number", "date", "paymentDate",
        mode="before",
    )(_strip)


class InvoiceUpdate(ApiModel):
    customerId: Optional[str] = Field(default=None, alias="customerId")
    supplierId: Optional[str] = Field(default=None, alias="supplierId")
    customerAddressId: Optional[str] = Field(default=None, alias="customerAddressId")
    contractId: Optional[str] = Field(default=None, alias="contractId")
    number: Optional[str] = None
    date: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    paymentDate: Optional[str] = Field(default=None, alias="paymentDate")
    specification: Optional[List[InvoiceLineInput]] = None

    strip_strings = field_validator(
        "customerId", "supplierId", "customerAddressId", "contractId", "number", "date", "paymentDate",
        mode="before",
    )(_strip)


class InvoiceStatusUpdate(ApiModel):
    status: InvoiceStatus
    paymentDate: Optional[str] = Field(default=None, alias="paymentDate")


class InvoiceLine(ApiModel):
    id: str
    contractSpecificationId: str = Field(alias="contractSpecificationId")
    productName: str = Field(default="", alias="productName")
    unit: UnitType
    quantity: Decimal
    pricePerUnit: Decimal = Field(alias="pricePerUnit")
    sum: Decimal


class InvoiceSummary(ApiModel):
    id: str
    number: str
    date: str
    status: InvoiceStatus
    paymentDate: Optional[str] = Field(default=None, alias="paymentDate")
    supplierId: str = Field(alias="supplierId")
    customerId: str = Field(alias="customerId")
    supplierName: str = Field(default="", alias="supplierName")
    customerName: str = Field(default="", alias="customerName")
    totalAmount: Decimal = Field(alias="totalAmount")


class Invoice(InvoiceSummary):
    customerAddressId: str = Field(alias="customerAddressId")
    contractId: str = Field(alias="contractId")
    institutionName: str = Field(default="", alias="institutionName")
    deliveryAddress: str = Field(default="", alias="deliveryAddress")
    contractNumber: str = Field(default="", alias="contractNumber")
    contractDate: str = Field(default="", alias="contractDate")
    contractSubject: str = Field(default="", alias="contractSubject")
    specification: List[InvoiceLine] = Field(default_factory=list)


# === Reports ================================================================

class SupplierTotal(ApiModel):
    supplierId: str = Field(alias="supplierId")
    supplierName: str = Field(alias="supplierName")
    totalPrice: Decimal = Field(alias="totalPrice")


class QuarterlyTotal(SupplierTotal):
    quarter: int


class DashboardInfo(ApiModel):
    year: str
    supplierSum: List[SupplierTotal] = Field(alias="supplierSum")
    unpaidSum: List[SupplierTotal] = Field(alias="unpaidSum")
    paidSum: List[SupplierTotal] = Field(alias="paidSum")
    quarterlySum: List[QuarterlyTotal] = Field(alias="quarterlySum")


# === Documents ==============================================================

class DocumentLine(ApiModel):
    index: int
    productName: str = Field(alias="productName")
    unit: UnitType
    quantity: Decimal
    quantityText: str = Field(alias="quantityText")
    pricePerUnit: Decimal = Field(alias="pricePerUnit")
    pricePerUnitText: str = Field(alias="pricePerUnitText")
    sum: Decimal
    sumText: str = Field(alias="sumText")


class DocumentParty(ApiModel):
    name: str
    address: str = ""
    edrpou: str = ""
    phoneNumber: str = Field(default="", alias="phoneNumber")
    bankAccount: str = Field(default="", alias="bankAccount")


class InvoiceDocument(ApiModel):
    invoiceId: str = Field(alias="invoiceId")
    number: str
    date: str
    dateText: str = Field(alias="dateText")
    supplier: DocumentParty
    customer: DocumentParty
    institutionName: str = Field(alias="institutionName")
    deliveryAddress: str = Field(alias="deliveryAddress")
    contractNumber: str = Field(alias="contractNumber")
    contractDate: str = Field(alias="contractDate")
    lines: List[DocumentLine]
    totalAmount: Decimal = Field(alias="totalAmount")
    totalAmountText: str = Field(alias="totalAmountText")
    totalAmountWords: str = Field(alias="totalAmountWords")
    vatAmountText: str = Field(default="0,00", alias="vatAmountText")


class WaybillDocument(InvoiceDocument):
    carName: str = Field(alias="carName")
    carRegistration: str = Field(alias="carRegistration")
    carrier: str
    driverName: str = Field(alias="driverName")
    driverLicense: str = Field(alias="driverLicense")
    consignee: str
    loadPlace: str = Field(default="", alias="loadPlace")
    totalQuantity: Decimal = Field(alias="totalQuantity")
    totalQuantityWords: str = Field(alias="totalQuantityWords")


class RenderedDocument(ApiModel):
    fileName: str = Field(alias="fileName")
    path: str


# === Auth ===================================================================

class UserCreate(ApiModel):
    email: EmailStr
    password: str = Field(min_length=8)
    fullName: str = Field(min_length=3, alias="fullName")


class UserPublic(ApiModel):
    id: str
    email: str
    fullName: str = Field(alias="fullName")
    isActive: bool = Field(alias="isActive")


class LoginRequest(ApiModel):
    email: str
    password: str


class TokenResponse(ApiModel):
    accessToken: str = Field(alias="accessToken")
    tokenType: str = Field(default="bearer", alias="tokenType")
    user: UserPublic
