from datetime import date as Date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict

from .errors import InvalidStatusError


STATUS_DESCRIPTIONS = {
    "PENDING": "Transaction initiated, waiting for payment",
    "COMPLETED": "Payment successful",
    "FAILED": "Payment failed",
}


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @classmethod
    def from_code(cls, code) -> "PaymentStatus":
        if isinstance(code, cls):
            return code
        if isinstance(code, str):
            try:
                return cls(code.strip().upper())
            except ValueError:
                pass
        raise InvalidStatusError(f"Invalid status code: {code!r}", status_code=code)

    @property
    def description(self) -> str:
        return STATUS_DESCRIPTIONS[self.value]

    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


def describe(status) -> str:
    """Textual rendering of a status; anything outside the registry is rejected."""
    if not isinstance(status, PaymentStatus):
        raise InvalidStatusError(f"Unknown payment status: {status!r}", status_code=status)
    return status.value


HEADLINE_FEES = ("tuition_fee", "computer_lab_fee", "athletic_fee", "library_fee")
MISCELLANEOUS_FEES = (
    "cultural_fee",
    "internet_fee",
    "medical_dental_fee",
    "registration_fee",
    "school_pub_fee",
    "id_validation_fee",
)


class FeeAssessment(BaseModel):
    enrollment_id: int
    student_id: Optional[str] = None
    term: Optional[str] = None
    currency: str = "PHP"
    tuition_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    computer_lab_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    athletic_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    cultural_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    internet_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    library_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    medical_dental_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    registration_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    school_pub_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    id_validation_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_assessed: Decimal = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    def component_sum(self) -> Decimal:
        return sum((getattr(self, name) for name in HEADLINE_FEES + MISCELLANEOUS_FEES), Decimal("0"))


class PaymentTransaction(BaseModel):
    transaction_id: str
    enrollment_id: int
    amount: Decimal = Field(..., gt=0)
    currency: str = "PHP"
    payment_method: str
    transaction_ref: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    timestamp: Optional[datetime] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def can_transition(self) -> bool:
        return self.status == PaymentStatus.PENDING

    def is_final_installment(self) -> bool:
        return "final" in (self.description or "").lower()


class BalanceSnapshot(BaseModel):
    enrollment_id: int
    total_assessed: Decimal
    total_amount_paid: Decimal
    remaining_balance: Decimal
    payment_status_text: str


class InitiatePaymentRequest(BaseModel):
    # raw values: LedgerService.initiate_payment owns the validation
    amount: Any = None
    payment_method: Any = None
    description: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "amount": 5000.00,
            "payment_method": "Credit Card",
            "description": "Final installment",
        }
    })


class GatewayCallbackRequest(BaseModel):
    gateway_reference: Any = None
    status_code: Any = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"gateway_reference": "GW-REF-99812", "status_code": "COMPLETED"}
    })


class InitiatePaymentResponse(BaseModel):
    transaction_id: str
    enrollment_id: int
    status: PaymentStatus
    amount_due: Decimal
    currency: str
    payment_gateway_url: Optional[str] = None
    timestamp: datetime


class GatewayCallbackResponse(BaseModel):
    transaction_id: str
    status: PaymentStatus
    updated_balance: Optional[Decimal] = None
    balance: Optional[BalanceSnapshot] = None
    message: str


class FeeSummary(BaseModel):
    total_assessed_fees: Decimal
    total_amount_paid: Decimal
    remaining_balance: Decimal
    payment_status: str


class FeeDetails(BaseModel):
    tuition_fee: Decimal
    computer_lab_fee: Decimal
    athletic_fee: Decimal
    library_fee: Decimal
    miscellaneous_fees: Decimal


class FeesInformationResponse(BaseModel):
    enrollment_id: int
    student_id: Optional[str] = None
    term: Optional[str] = None
    currency: str
    summary: FeeSummary
    fees_details: FeeDetails


class TransactionHistoryItem(BaseModel):
    transaction_id: str
    date: Optional[Date] = None
    amount: Decimal
    status: str
    type: str


class TransactionHistoryResponse(BaseModel):
    enrollment_id: int
    total_paid: Decimal
    transactions: list[TransactionHistoryItem]


class TransactionDetailsResponse(BaseModel):
    transaction_id: str
    date: Optional[datetime] = None
    student_id: Optional[str] = None
    amount_paid: Decimal
    payment_method: str
    reference_number: Optional[str] = None
    status: str
