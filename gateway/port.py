"""Payment gateway port (abstract interface).

Defines the contract the checkout and reconciliation services rely on.
Amounts always travel in the smallest currency unit (kobo, cents, ...).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class GatewayError(Exception):
    """Transport failure or a response the gateway marked as unsuccessful."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class GatewayInitialization:
    """Handle returned when a transaction was opened at the gateway."""

    authorization_url: str
    reference: str
    access_code: str | None = None


@dataclass(frozen=True)
class GatewayVerification:
    """Outcome of verifying a transaction."""

    success: bool
    status: str | None = None
    amount_minor: int | None = None
    raw: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def initialize(
        self,
        amount_minor: int,
        email: str,
        reference: str,
        callback_url: str,
    ) -> GatewayInitialization:
        """Open a transaction and return the URL the guest pays at."""
        ...

    @abstractmethod
    async def verify(self, reference: str) -> GatewayVerification:
        """Ask the gateway whether the transaction went through."""
        ...
