from decimal import Decimal

from pydantic import BaseModel

from enums.fulfillment_method import FulfillmentMethod
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from enums.reconciliation_outcome import CheckoutOutcome, ReconciliationOutcome


class CheckoutContactDTO(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    fulfillment_method: FulfillmentMethod = FulfillmentMethod.PICKUP


class CheckoutOrderSummaryDTO(BaseModel):
    order_id: int
    seller_id: int | None = None
    status: OrderStatus
    payment_status: PaymentStatus
    total_price: Decimal
    payment_reference: str | None = None
    prescription_id: int | None = None
    tracking_code: str | None = None


class CheckoutResultDTO(BaseModel):
    outcome: CheckoutOutcome
    checkout_session_id: str
    orders: list[CheckoutOrderSummaryDTO] = []
    payable_total: Decimal = Decimal("0")
    authorization_url: str | None = None
    transaction_reference: str | None = None
    prescription_id: int | None = None  # Newly uploaded document awaiting review


class SessionDetailsDTO(BaseModel):
    checkout_session_id: str
    orders: list[CheckoutOrderSummaryDTO] = []
    payable_total: Decimal = Decimal("0")


class ReconciliationResultDTO(BaseModel):
    outcome: ReconciliationOutcome
    reference: str
    tracking_code: str | None = None
    orders: list[CheckoutOrderSummaryDTO] = []


class ReclaimReportDTO(BaseModel):
    cancelled_order_ids: list[int] = []
    failed_order_ids: list[int] = []
    errors: dict[int, str] = {}

    @property
    def cancelled(self) -> int:
        return len(self.cancelled_order_ids)

    @property
    def failed(self) -> int:
        return len(self.failed_order_ids)
