"""Configurable fake payment gateway for development and testing.

Simulates the gateway without any external calls. It can be configured at
runtime to fail initialization or report transactions as failed, and it
records every call so tests can assert on amounts and references.
"""

from uuid import uuid4

from gateway.port import GatewayError, GatewayInitialization, GatewayVerification, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_initialize: bool = True
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.verify_status: str = "failed"
        self.calls: list[dict] = []

    def configure(self, should_initialize: bool = True, should_succeed: bool = True,
                  failure_reason: str = "Gateway unavailable", verify_status: str = "failed") -> None:
        """Configure gateway behavior at runtime."""
        self.should_initialize = should_initialize
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.verify_status = verify_status

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    async def initialize(
        self,
        amount_minor: int,
        email: str,
        reference: str,
        callback_url: str,
    ) -> GatewayInitialization:
        self.calls.append({
            "method": "initialize",
            "amount_minor": amount_minor,
            "email": email,
            "reference": reference,
            "callback_url": callback_url,
        })

        if not self.should_initialize:
            raise GatewayError(self.failure_reason, status_code=503)
        return GatewayInitialization(
            authorization_url=f"https://checkout.fake-gateway.test/{uuid4().hex[:12]}",
            reference=reference,
            access_code=uuid4().hex[:10],
        )

    async def verify(self, reference: str) -> GatewayVerification:
        self.calls.append({"method": "verify", "reference": reference})

        if self.should_succeed:
            return GatewayVerification(success=True, status="success", raw={"reference": reference})
        return GatewayVerification(success=False, status=self.verify_status, raw={"reference": reference})
