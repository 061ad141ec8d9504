from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.supply_ledger.cache import cache
from backend.supply_ledger.database import Base, OwnerSession, enable_sqlite_foreign_keys, setup_session_events
from backend.supply_ledger.orm_models import InvoiceStatus, UserORM
from backend.supply_ledger.owner_scoping import bind_user
from backend.supply_ledger.schemas import (
    ContractCreate,
    CustomerAddressLine,
    CustomerCreate,
    InvoiceCreate,
    InvoiceLineInput,
    SpecificationLineInput,
    SupplierCarLine,
    SupplierCreate,
    SupplierDriverLine,
)
from backend.supply_ledger.services import contracts, directory, invoices


def _make_session_factory():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    TestingSession = type("TestingSession", (OwnerSession,), {})
    setup_session_events(TestingSession)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        future=True,
        class_=TestingSession,
    )


@pytest.fixture(autouse=True)
def _reset_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def session_factory():
    return _make_session_factory()


@pytest.fixture()
def session(session_factory):
    with session_factory() as session:
        yield session


def make_user(session, email: str) -> UserORM:
    user = UserORM(email=email, full_name=email, password_hash="stub")
    session.add(user)
    session.commit()
    return user


@pytest.fixture()
def user(session):
    owner = make_user(session, "owner@example.com")
    bind_user(session, owner.id)
    return owner


@pytest.fixture()
def other_user(session, user):
    return make_user(session, "other@example.com")


def _ok(result):
    assert result.success, result.message
    return result.data


class Builders:
    """Creates records through the public services and unwraps the results."""

    def __init__(self, session) -> None:
        self.session = session
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def supplier(self, name: str = "ТОВ Зерно", edrpou: str | None = None):
        index = self._next()
        payload = SupplierCreate(
            name=name,
            address="м. Київ, вул. Хлібна, 1",
            edrpou=edrpou or f"1000{index:04d}",
            phoneNumber="+380441234567",
            email="supplier@example.com",
            bankAccount="UA213223130000026007233566001",
        )
        return _ok(directory.create_supplier(self.session, payload))

    def customer(self, name: str = "Школа №1", edrpou: str | None = None):
        index = self._next()
        payload = CustomerCreate(
            name=name,
            address="м. Львів, вул. Шкільна, 5",
            edrpou=edrpou or f"2000{index:04d}",
            phoneNumber="+380321234567",
            email="school@example.com",
        )
        return _ok(directory.create_customer(self.session, payload))

    def address(self, customer_id: str, institution: str = "Школа №1", delivery: str = "вул. Шкільна, 5"):
        lines = [CustomerAddressLine(institutionName=institution, deliveryAddress=delivery)]
        return _ok(directory.create_customer_addresses(self.session, customer_id, lines))[0]

    def driver(self, supplier_id: str):
        lines = [
            SupplierDriverLine(
                lastName="Шевченко",
                firstName="Тарас",
                middleName="Григорович",
                driverLicense="ВХА123456",
            )
        ]
        return _ok(directory.create_supplier_drivers(self.session, supplier_id, lines))[0]

    def car(self, supplier_id: str):
        lines = [
            SupplierCarLine(
                name="Renault Master",
                registration="AA1234BB",
                owner="ФОП Коваль",
                ownerAddress="м. Київ, вул. Гаражна, 3",
            )
        ]
        return _ok(directory.create_supplier_cars(self.session, supplier_id, lines))[0]

    def contract(
        self,
        supplier_id: str,
        customer_id: str,
        *,
        price: str = "10000",
        execution_period: str = "31.12.2025",
        number: str | None = None,
    ):
        payload = ContractCreate(
            supplierId=supplier_id,
            customerId=customer_id,
            number=number or f"Д-{self._next()}",
            date="10.01.2025",
            subject="Постачання продуктів харчування",
            price=price,
            executionPeriod=execution_period,
        )
        return _ok(contracts.create_contract(self.session, payload))

    def specification(self, contract_id: str, lines=(("Борошно", "кг", "10", "25,50"),)):
        payload = [
            SpecificationLineInput(productName=name, unit=unit, quantity=quantity, pricePerUnit=price)
            for name, unit, quantity, price in lines
        ]
        return _ok(contracts.create_specification(self.session, contract_id, payload))

    def invoice(
        self,
        contract,
        address,
        lines,
        *,
        date: str = "15.03.2025",
        status: InvoiceStatus = InvoiceStatus.UNPAID,
        payment_date: str | None = None,
    ):
        payload = InvoiceCreate(
            supplierId=contract.supplierId,
            customerId=contract.customerId,
            customerAddressId=address.id,
            contractId=contract.id,
            number=f"Н-{self._next()}",
            date=date,
            status=status,
            paymentDate=payment_date,
            specification=[
                InvoiceLineInput(contractSpecificationId=spec_id, quantity=quantity, pricePerUnit=price)
                for spec_id, quantity, price in (
                    (line + (None,)) if len(line) == 2 else line for line in lines
                )
            ],
        )
        return _ok(invoices.create_invoice(self.session, payload))


@pytest.fixture()
def build(session, user):
    return Builders(session)


@pytest.fixture()
def contract_setup(build):
    """Supplier, customer, delivery address, contract and one 10 kg specification line."""
    supplier = build.supplier()
    customer = build.customer()
    address = build.address(customer.id)
    contract = build.contract(supplier.id, customer.id)
    spec_line = build.specification(contract.id)[0]
    return {
        "supplier": supplier,
        "customer": customer,
        "address": address,
        "contract": contract,
        "spec_line": spec_line,
    }
