from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class UnitType(str, PyEnum):
    KG = "кг"
    G = "г"
    T = "т"
    L = "л"
    PIECE = "шт"


class InvoiceStatus(str, PyEnum):
    UNPAID = "Неоплачена"
    PAID = "Оплачена"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


unit_enum = Enum(
    UnitType,
    name="unit",
    values_callable=_enum_values,
    validate_strings=True,
)
invoice_status_enum = Enum(
    InvoiceStatus,
    name="invoice_status",
    values_callable=_enum_values,
    validate_strings=True,
)


class UserORM(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: generate_id("user"))
    email = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=False, default="")
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SupplierORM(Base):
    __tablename__ = "suppliers"
    __table_args__ = (UniqueConstraint("user_id", "edrpou", name="uq_suppliers_user_edrpou"),)

    id = Column(String, primary_key=True, default=lambda: generate_id("supplier"))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    edrpou = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    email = Column(String, nullable=False)
    bank_account = Column(String, nullable=False)

    drivers = relationship(
        "SupplierDriverORM",
        back_populates="supplier",
        cascade="all, delete-orphan",
    )
    cars = relationship(
        "SupplierCarORM",
        back_populates="supplier",
        cascade="all, delete-orphan",
    )
    contracts = relationship("ContractORM", back_populates="supplier")


class SupplierDriverORM(Base):
    __tablename__ = "supplier_drivers"

    id = Column(String, primary_key=True, default=lambda: generate_id("driver"))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(String, ForeignKey("suppliers.id"), nullable=False, index=True)
    last_name = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    middle_name = Column(String, nullable=False)
    driver_license = Column(String, nullable=False)

    supplier = relationship("SupplierORM", back_populates="drivers")

    @property
    def full_name(self) -> str:
        parts = [self.last_name, self.first_name, self.middle_name]
        return " ".join(part.strip() for part in parts if part and part.strip())


class SupplierCarORM(Base):
    __tablename__ = "supplier_cars"

    id = Column(String, primary_key=True, default=lambda: generate_id("car"))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(String, ForeignKey("suppliers.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    registration = Column(String, nullable=False)
    owner = Column(String, nullable=False)
    owner_address = Column(String, nullable=False)

    supplier = relationship("SupplierORM", back_populates="cars")


class CustomerORM(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("user_id", "edrpou", name="uq_customers_user_edrpou"),)

    id = Column(String, primary_key=True, default=lambda: generate_id("customer"))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    edrpou = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    email = Column(String, nullable=False)

    addresses = relationship(
        "CustomerAddressORM",
        back_populates="customer",
        cascade="all, delete-orphan",
    )
    contracts = relationship("ContractORM", back_populates="customer")


class CustomerAddressORM(Base):
    __tablename__ = "customer_addresses"

    id = Column(String, primary_key=True, default=lambda: generate_id("address"))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    institution_name = Column(Text, nullable=False)
    delivery_address = Column(Text, nullable=False)

    customer = relationship("CustomerORM", back_populates="addresses")


class ContractORM(Base):
    __tablename__ = "contracts"

    id = Column(String, primary_key=True, default=lambda: generate_id("contract"))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(String, ForeignKey("suppliers.id"), nullable=False, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    number = Column(String, nullable=False)
    date = Column(String, nullable=False)
    subject = Column(Text, nullable=False)
    price = Column(Numeric(12, 2, asdecimal=True), nullable=False)
    execution_period = Column(String, nullable=False)

    supplier = relationship("SupplierORM", back_populates="contracts")
    customer = relationship("CustomerORM", back_populates="contracts")
    specification = relationship(
        "ContractSpecificationORM",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractSpecificationORM.position",
    )


class ContractSpecificationORM(Base):
    __tablename__ = "contract_specification"

    id = Column(String, primary_key=True, default=lambda: generate_id("spec"))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    contract_id = Column(String, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(Text, nullable=False)
    unit = Column(unit_enum, nullable=False)
    quantity = Column(Numeric(10, 2, asdecimal=True), nullable=False)
    price_per_unit = Column(Numeric(10, 2, asdecimal=True), nullable=False)

    contract = relationship("ContractORM", back_populates="specification")
    invoice_lines = relationship("InvoiceSpecificationORM", back_populates="contract_specification")


class InvoiceORM(Base):
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=lambda: generate_id("invoice"))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(String, nullable=False)
    number = Column(String, nullable=False)
    supplier_id = Column(String, ForeignKey("suppliers.id"), nullable=False, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    customer_address_id = Column(String, ForeignKey("customer_addresses.id"), nullable=False, index=True)
    contract_id = Column(String, ForeignKey("contracts.id"), nullable=False, index=True)
    status = Column(invoice_status_enum, nullable=False, default=InvoiceStatus.UNPAID)
    payment_date = Column(String, nullable=True)

    supplier = relationship("SupplierORM")
    customer = relationship("CustomerORM")
    customer_address = relationship("CustomerAddressORM")
    contract = relationship("ContractORM")
    specification = relationship(
        "InvoiceSpecificationORM",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceSpecificationORM.position",
    )


class InvoiceSpecificationORM(Base):
    __tablename__ = "invoice_specification"

    id = Column(String, primary_key=True, default=lambda: generate_id("invline"))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(String, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    contract_specification_id = Column(
        String,
        ForeignKey("contract_specification.id"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    unit = Column(unit_enum, nullable=False)
    quantity = Column(Numeric(10, 2, asdecimal=True), nullable=False)
    price_per_unit = Column(Numeric(10, 2, asdecimal=True), nullable=False)

    invoice = relationship("InvoiceORM", back_populates="specification")
    contract_specification = relationship("ContractSpecificationORM", back_populates="invoice_lines")


OWNED_MODELS = (
    SupplierORM,
    SupplierDriverORM,
    SupplierCarORM,
    CustomerORM,
    CustomerAddressORM,
    ContractORM,
    ContractSpecificationORM,
    InvoiceORM,
    InvoiceSpecificationORM,
)
