"""
Domain models shared by the ledger, the gateways and the API.

TransactionRecord is serialized with the field names stored in the
day buckets ("transaction_status", "dateTime").
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

PENDING_STATUS = "pending"


class StatusEntry(BaseModel):
    """One entry of a transaction's status timeline."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(..., description="Status label (pending, success, ...)")
    timestamp: str = Field(..., alias="dateTime", description="RFC 3339 timestamp")


class TransactionRecord(BaseModel):
    """A transaction and its append-only status history."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Provider-assigned transaction id")
    amount: float = Field(..., description="Payment amount in major units")
    currency: str = Field(..., description="3-letter currency code")
    status_history: List[StatusEntry] = Field(
        default_factory=list,
        alias="transaction_status",
        description="Status entries in arrival order",
    )

    @property
    def statuses(self) -> List[str]:
        """Status labels in order, without timestamps."""
        return [entry.status for entry in self.status_history]

    @property
    def current_status(self) -> str:
        """Most recently appended status."""
        return self.status_history[-1].status


class CardDetails(BaseModel):
    """Card data submitted with a payment."""

    number: str = Field(..., description="Card number (13-19 digits)")
    expiry: str = Field(..., description="Expiry date in MM/YY format")
    cvv: str = Field(..., min_length=3, max_length=3, description="Card verification value")

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: str) -> str:
        """Validate card number length and digits."""
        if not 13 <= len(v) <= 19 or not v.isdigit():
            raise ValueError("number must be a valid card number")
        return v

    @field_validator("expiry")
    @classmethod
    def validate_expiry(cls, v: str) -> str:
        """Validate MM/YY expiry format."""
        month, sep, year = v.partition("/")
        if (
            len(v) != 5
            or not sep
            or len(month) != 2
            or len(year) != 2
            or not month.isdigit()
            or not year.isdigit()
            or not 1 <= int(month) <= 12
        ):
            raise ValueError("expiry must be in the format MM/YY")
        return v

    @property
    def exp_month(self) -> str:
        return self.expiry.split("/")[0]

    @property
    def exp_year(self) -> str:
        return self.expiry.split("/")[1]


class PaymentDetails(BaseModel):
    """A payment request as understood by the gateways."""

    gateway: str = Field(..., description="Provider name (Stripe, PayPal)")
    amount: float = Field(..., gt=0, description="Payment amount in major units")
    currency: str = Field(..., min_length=3, max_length=3, description="Currency code (e.g., USD)")
    payment_method: str = Field(..., description="Payment method type (e.g., card)")
    card_details: CardDetails

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Normalise currency to upper case."""
        if not v.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return v.upper()
