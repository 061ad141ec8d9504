from __future__ import annotations

import logging
from typing import Callable, List, Optional, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .config import configure_logging, settings
from .database import get_session, init_db
from .errors import ErrorKind, ServiceError
from .orm_models import InvoiceStatus
from .owner_scoping import bind_user
from .schemas import (
    Contract,
    ContractCreate,
    ContractTotals,
    ContractUpdate,
    Customer,
    CustomerAddress,
    CustomerAddressLine,
    CustomerCreate,
    CustomerUpdate,
    DashboardInfo,
    Invoice,
    InvoiceCreate,
    InvoiceStatusUpdate,
    InvoiceSummary,
    InvoiceUpdate,
    LoginRequest,
    OperationResult,
    SpecificationBalanceLine,
    SpecificationLine,
    SpecificationLineInput,
    Supplier,
    SupplierCar,
    SupplierCarLine,
    SupplierCreate,
    SupplierDriver,
    SupplierDriverLine,
    SupplierUpdate,
    TokenResponse,
    UserCreate,
    UserPublic,
)
from .services import contracts as contract_service
from .services import directory, documents, invoices, ledger, reports
from .services.auth import (
    authenticate_user,
    create_access_token,
    create_user,
    decode_access_token,
    get_user,
    serialize_user,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = FastAPI(title="Supply Ledger Backend", version="0.1.0")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@app.on_event("startup")
def startup_event() -> None:  # pragma: no cover - side effect
    configure_logging()
    init_db()


app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Dependencies ===========================================================

def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> UserPublic:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Необхідна авторизація")
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Недійсний токен")
    user = get_user(session, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Користувач недоступний")
    return serialize_user(user)


def get_user_session(
    current_user: UserPublic = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Session:
    bind_user(session, current_user.id)
    return session


# === Error mapping ==========================================================

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.DUPLICATE_TAX_CODE: status.HTTP_409_CONFLICT,
    ErrorKind.REFERENTIAL_INTEGRITY_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
}


def _status_for(kind: Optional[ErrorKind]) -> int:
    if kind is None:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return STATUS_BY_KIND.get(kind, status.HTTP_400_BAD_REQUEST)


def _read(loader: Callable[..., T], *args) -> T:
    try:
        return loader(*args)
    except ServiceError as exc:
        raise HTTPException(status_code=_status_for(exc.kind), detail=exc.to_dict()) from exc


def _finish(result: OperationResult, response: Response, success_status: int = status.HTTP_200_OK) -> OperationResult:
    response.status_code = success_status if result.success else _status_for(result.error)
    return result


# === Auth ===================================================================

@app.get("/health", tags=["system"])
def api_health() -> dict:
    return {"status": "ok"}


@app.post("/auth/register", response_model=UserPublic, status_code=201, tags=["auth"])
def api_register_user(payload: UserCreate, session: Session = Depends(get_session)) -> UserPublic:
    user = create_user(session, email=payload.email, password=payload.password, full_name=payload.fullName)
    session.commit()
    logger.info("User %s registered", user.id)
    return serialize_user(user)


@app.post("/auth/login", response_model=TokenResponse, tags=["auth"])
def api_login(payload: LoginRequest, session: Session = Depends(get_session)) -> TokenResponse:
    user = authenticate_user(session, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Невірні облікові дані")
    token = create_access_token(user.id)
    return TokenResponse(accessToken=token, user=serialize_user(user))


@app.get("/auth/me", response_model=UserPublic, tags=["auth"])
def api_me(current_user: UserPublic = Depends(get_current_user)) -> UserPublic:
    return current_user


# === Suppliers ==============================================================

@app.get("/suppliers", response_model=List[Supplier], tags=["suppliers"])
def api_list_suppliers(session: Session = Depends(get_user_session)) -> List[Supplier]:
    return directory.list_suppliers(session)


@app.post("/suppliers", response_model=OperationResult, tags=["suppliers"])
def api_create_supplier(
    payload: SupplierCreate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.create_supplier(session, payload), response, status.HTTP_201_CREATED)


@app.get("/suppliers/{supplier_id}", response_model=Supplier, tags=["suppliers"])
def api_get_supplier(supplier_id: str, session: Session = Depends(get_user_session)) -> Supplier:
    return _read(directory.get_supplier, session, supplier_id)


@app.patch("/suppliers/{supplier_id}", response_model=OperationResult, tags=["suppliers"])
def api_update_supplier(
    supplier_id: str, payload: SupplierUpdate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.update_supplier(session, supplier_id, payload), response)


@app.delete("/suppliers/{supplier_id}", response_model=OperationResult, tags=["suppliers"])
def api_delete_supplier(
    supplier_id: str, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.delete_supplier(session, supplier_id), response)


@app.get("/suppliers/{supplier_id}/drivers", response_model=List[SupplierDriver], tags=["suppliers"])
def api_list_drivers(supplier_id: str, session: Session = Depends(get_user_session)) -> List[SupplierDriver]:
    return _read(directory.list_supplier_drivers, session, supplier_id)


@app.post("/suppliers/{supplier_id}/drivers", response_model=OperationResult, tags=["suppliers"])
def api_create_drivers(
    supplier_id: str,
    payload: List[SupplierDriverLine],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(directory.create_supplier_drivers(session, supplier_id, payload), response, status.HTTP_201_CREATED)


@app.put("/suppliers/{supplier_id}/drivers", response_model=OperationResult, tags=["suppliers"])
def api_replace_drivers(
    supplier_id: str,
    payload: List[SupplierDriverLine],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(directory.replace_supplier_drivers(session, supplier_id, payload), response)


@app.get("/suppliers/{supplier_id}/cars", response_model=List[SupplierCar], tags=["suppliers"])
def api_list_cars(supplier_id: str, session: Session = Depends(get_user_session)) -> List[SupplierCar]:
    return _read(directory.list_supplier_cars, session, supplier_id)


@app.post("/suppliers/{supplier_id}/cars", response_model=OperationResult, tags=["suppliers"])
def api_create_cars(
    supplier_id: str,
    payload: List[SupplierCarLine],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(directory.create_supplier_cars(session, supplier_id, payload), response, status.HTTP_201_CREATED)


@app.put("/suppliers/{supplier_id}/cars", response_model=OperationResult, tags=["suppliers"])
def api_replace_cars(
    supplier_id: str,
    payload: List[SupplierCarLine],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(directory.replace_supplier_cars(session, supplier_id, payload), response)


# === Customers ==============================================================

@app.get("/customers", response_model=List[Customer], tags=["customers"])
def api_list_customers(session: Session = Depends(get_user_session)) -> List[Customer]:
    return directory.list_customers(session)


@app.post("/customers", response_model=OperationResult, tags=["customers"])
def api_create_customer(
    payload: CustomerCreate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.create_customer(session, payload), response, status.HTTP_201_CREATED)


@app.get("/customers/{customer_id}", response_model=Customer, tags=["customers"])
def api_get_customer(customer_id: str, session: Session = Depends(get_user_session)) -> Customer:
    return _read(directory.get_customer, session, customer_id)


@app.patch("/customers/{customer_id}", response_model=OperationResult, tags=["customers"])
def api_update_customer(
    customer_id: str, payload: CustomerUpdate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.update_customer(session, customer_id, payload), response)


@app.delete("/customers/{customer_id}", response_model=OperationResult, tags=["customers"])
def api_delete_customer(
    customer_id: str, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.delete_customer(session, customer_id), response)


@app.get("/customers/{customer_id}/addresses", response_model=List[CustomerAddress], tags=["customers"])
def api_list_addresses(customer_id: str, session: Session = Depends(get_user_session)) -> List[CustomerAddress]:
    return _read(directory.list_customer_addresses, session, customer_id)


@app.post("/customers/{customer_id}/addresses", response_model=OperationResult, tags=["customers"])
def api_create_addresses(
    customer_id: str,
    payload: List[CustomerAddressLine],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(
        directory.create_customer_addresses(session, customer_id, payload), response, status.HTTP_201_CREATED
    )


@app.put("/customers/{customer_id}/addresses", response_model=OperationResult, tags=["customers"])
def api_replace_addresses(
    customer_id: str,
    payload: List[CustomerAddressLine],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(directory.replace_customer_addresses(session, customer_id, payload), response)


@app.delete("/addresses/{address_id}", response_model=OperationResult, tags=["customers"])
def api_delete_address(
    address_id: str, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(directory.delete_customer_address(session, address_id), response)


# === Contracts ==============================================================

@app.get("/contracts", response_model=List[Contract], tags=["contracts"])
def api_list_contracts(
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    supplier_id: Optional[str] = Query(default=None, alias="supplierId"),
    session: Session = Depends(get_user_session),
) -> List[Contract]:
    if customer_id and supplier_id:
        return contract_service.contracts_for_invoice(session, customer_id, supplier_id)
    return contract_service.list_contracts(session)


@app.post("/contracts", response_model=OperationResult, tags=["contracts"])
def api_create_contract(
    payload: ContractCreate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(contract_service.create_contract(session, payload), response, status.HTTP_201_CREATED)


@app.get("/contracts/{contract_id}", response_model=Contract, tags=["contracts"])
def api_get_contract(contract_id: str, session: Session = Depends(get_user_session)) -> Contract:
    return _read(contract_service.get_contract, session, contract_id)


@app.patch("/contracts/{contract_id}", response_model=OperationResult, tags=["contracts"])
def api_update_contract(
    contract_id: str, payload: ContractUpdate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(contract_service.update_contract(session, contract_id, payload), response)


@app.delete("/contracts/{contract_id}", response_model=OperationResult, tags=["contracts"])
def api_delete_contract(
    contract_id: str, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(contract_service.delete_contract(session, contract_id), response)


@app.get("/contracts/{contract_id}/specification", response_model=List[SpecificationLine], tags=["contracts"])
def api_list_specification(contract_id: str, session: Session = Depends(get_user_session)) -> List[SpecificationLine]:
    return _read(contract_service.list_specification, session, contract_id)


@app.post("/contracts/{contract_id}/specification", response_model=OperationResult, tags=["contracts"])
def api_create_specification(
    contract_id: str,
    payload: List[SpecificationLineInput],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(
        contract_service.create_specification(session, contract_id, payload), response, status.HTTP_201_CREATED
    )


@app.put("/contracts/{contract_id}/specification", response_model=OperationResult, tags=["contracts"])
def api_replace_specification(
    contract_id: str,
    payload: List[SpecificationLineInput],
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(contract_service.replace_specification(session, contract_id, payload), response)


@app.delete("/contracts/{contract_id}/specification", response_model=OperationResult, tags=["contracts"])
def api_delete_specification(
    contract_id: str, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(contract_service.delete_specification(session, contract_id), response)


@app.get(
    "/contracts/{contract_id}/specification/balance",
    response_model=List[SpecificationBalanceLine],
    tags=["contracts"],
)
def api_specification_balance(
    contract_id: str, session: Session = Depends(get_user_session)
) -> List[SpecificationBalanceLine]:
    return _read(ledger.specification_balance, session, contract_id)


@app.get("/contracts/{contract_id}/totals", response_model=ContractTotals, tags=["contracts"])
def api_contract_totals(contract_id: str, session: Session = Depends(get_user_session)) -> ContractTotals:
    return _read(reports.contract_totals, session, contract_id)


# === Invoices ===============================================================

@app.get("/invoices", response_model=List[InvoiceSummary], tags=["invoices"])
def api_list_invoices(
    invoice_status: Optional[InvoiceStatus] = Query(default=None, alias="status"),
    session: Session = Depends(get_user_session),
) -> List[InvoiceSummary]:
    return invoices.list_invoices(session, invoice_status)


@app.get("/invoices/pending", response_model=List[InvoiceSummary], tags=["invoices"])
def api_pending_invoices(session: Session = Depends(get_user_session)) -> List[InvoiceSummary]:
    return invoices.list_pending_invoices(session)


@app.post("/invoices", response_model=OperationResult, tags=["invoices"])
def api_create_invoice(
    payload: InvoiceCreate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(invoices.create_invoice(session, payload), response, status.HTTP_201_CREATED)


@app.get("/invoices/{invoice_id}", response_model=Invoice, tags=["invoices"])
def api_get_invoice(invoice_id: str, session: Session = Depends(get_user_session)) -> Invoice:
    return _read(invoices.get_invoice, session, invoice_id)


@app.patch("/invoices/{invoice_id}", response_model=OperationResult, tags=["invoices"])
def api_update_invoice(
    invoice_id: str, payload: InvoiceUpdate, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(invoices.update_invoice(session, invoice_id, payload), response)


@app.put("/invoices/{invoice_id}/status", response_model=OperationResult, tags=["invoices"])
def api_set_invoice_status(
    invoice_id: str,
    payload: InvoiceStatusUpdate,
    response: Response,
    session: Session = Depends(get_user_session),
) -> OperationResult:
    return _finish(invoices.set_invoice_status(session, invoice_id, payload.status, payload.paymentDate), response)


@app.delete("/invoices/{invoice_id}", response_model=OperationResult, tags=["invoices"])
def api_delete_invoice(
    invoice_id: str, response: Response, session: Session = Depends(get_user_session)
) -> OperationResult:
    return _finish(invoices.delete_invoice(session, invoice_id), response)


@app.get("/invoices/{invoice_id}/document", tags=["invoices"])
def api_invoice_document(invoice_id: str, session: Session = Depends(get_user_session)) -> FileResponse:
    rendered = _read(documents.generate_invoice_document, session, invoice_id)
    return FileResponse(rendered.path, media_type=DOCX_MEDIA_TYPE, filename=rendered.fileName)


@app.get("/invoices/{invoice_id}/waybill", tags=["invoices"])
def api_invoice_waybill(
    invoice_id: str,
    driver_id: str = Query(..., alias="driver"),
    car_id: str = Query(..., alias="car"),
    session: Session = Depends(get_user_session),
) -> FileResponse:
    rendered = _read(documents.generate_waybill_document, session, invoice_id, driver_id, car_id)
    return FileResponse(rendered.path, media_type=DOCX_MEDIA_TYPE, filename=rendered.fileName)


# === Dashboard ==============================================================

@app.get("/dashboard", response_model=DashboardInfo, tags=["dashboard"])
def api_dashboard(
    year: str = Query(..., min_length=4, max_length=4),
    current_user: UserPublic = Depends(get_current_user),
    session: Session = Depends(get_user_session),
) -> DashboardInfo:
    return _read(reports.dashboard, session, current_user.id, year)
