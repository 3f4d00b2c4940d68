import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .database import init_db, make_engine
from .errors import (
    ConflictError,
    LedgerServiceError,
    LedgerValidationError,
    NotFoundError,
    StoreUnavailableError,
)
from .gateway import PlaceholderGateway
from .logging_config import setup_logging
from .models import (
    FeesInformationResponse,
    GatewayCallbackRequest,
    GatewayCallbackResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    TransactionDetailsResponse,
    TransactionHistoryResponse,
)
from .reporting import ReportingService
from .service import LedgerService
from .sql_storage import SqlStorage
from .storage import InMemoryStorage

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger("payment-ledger")

app = FastAPI(
    title=settings.app_name,
    description="Fee assessments, payment transactions and balances per enrollment",
    version=settings.app_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ledger_service: Optional[LedgerService] = None


def build_ledger_service(settings: Settings) -> LedgerService:
    gateway = PlaceholderGateway(settings.gateway_checkout_url)
    if not settings.database_url:
        logger.warning("No database URL configured; using the in-memory store")
        storage = InMemoryStorage(seed=settings.seed_demo_data)
    else:
        session_factory = init_db(make_engine(settings.database_url, settings.store_timeout_seconds))
        storage = SqlStorage(session_factory)
        if settings.seed_demo_data:
            storage.seed_demo_data()
    return LedgerService(storage, storage, gateway=gateway, default_currency=settings.default_currency)


def get_ledger_service() -> LedgerService:
    global _ledger_service
    if _ledger_service is None:
        _ledger_service = build_ledger_service(settings)
    return _ledger_service


def get_reporting_service(ledger: LedgerService = Depends(get_ledger_service)) -> ReportingService:
    return ReportingService(ledger)


def to_http_error(e: LedgerServiceError) -> HTTPException:
    if isinstance(e, LedgerValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, StoreUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=e.to_dict())


@app.get("/", tags=["System"])
def root():
    return {
        "service": settings.app_name,
        "status": "running",
        "endpoints": ["/enrollment/{id}/fees_information", "/transactions/{id}", "/docs"],
    }


@app.get("/health", tags=["System"])
def health_check(ledger: LedgerService = Depends(get_ledger_service)):
    try:
        ledger.transactions.ping()
    except StoreUnavailableError as e:
        raise to_http_error(e)
    return {"status": "healthy", "service": "payment-ledger"}


@app.get("/enrollment/{enrollment_id}/fees_information", response_model=FeesInformationResponse, tags=["Enrollment"])
def get_fees_information(
    enrollment_id: int, reporting: ReportingService = Depends(get_reporting_service)
) -> FeesInformationResponse:
    try:
        return reporting.get_fees_information(enrollment_id)
    except LedgerServiceError as e:
        raise to_http_error(e)


@app.post(
    "/enrollment/{enrollment_id}/payment_transactions",
    response_model=InitiatePaymentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Enrollment"],
)
def initiate_payment(
    enrollment_id: int,
    request: InitiatePaymentRequest,
    ledger: LedgerService = Depends(get_ledger_service),
) -> InitiatePaymentResponse:
    try:
        return ledger.initiate_payment(
            enrollment_id,
            request.amount,
            request.payment_method,
            description=request.description,
        )
    except LedgerServiceError as e:
        raise to_http_error(e)


@app.get(
    "/enrollment/{enrollment_id}/transaction_history",
    response_model=TransactionHistoryResponse,
    tags=["Enrollment"],
)
def get_transaction_history(
    enrollment_id: int, reporting: ReportingService = Depends(get_reporting_service)
) -> TransactionHistoryResponse:
    try:
        return reporting.get_transaction_history(enrollment_id)
    except LedgerServiceError as e:
        raise to_http_error(e)


@app.post("/transactions/{transaction_id}", response_model=GatewayCallbackResponse, tags=["Transactions"])
def apply_gateway_callback(
    transaction_id: str,
    request: GatewayCallbackRequest,
    ledger: LedgerService = Depends(get_ledger_service),
) -> GatewayCallbackResponse:
    try:
        return ledger.apply_gateway_status(transaction_id, request.gateway_reference, request.status_code)
    except LedgerServiceError as e:
        raise to_http_error(e)


@app.get("/transactions/{transaction_id}", response_model=TransactionDetailsResponse, tags=["Transactions"])
def get_transaction_details(
    transaction_id: str, reporting: ReportingService = Depends(get_reporting_service)
) -> TransactionDetailsResponse:
    try:
        return reporting.get_transaction_details(transaction_id)
    except LedgerServiceError as e:
        raise to_http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
