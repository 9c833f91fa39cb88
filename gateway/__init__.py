"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway in the TEST runtime and in automated tests
- PaystackGateway otherwise
"""

import config
from enums.runtime_environment import RuntimeEnvironment
from gateway.fake import FakeGateway
from gateway.paystack import PaystackGateway
from gateway.port import GatewayError, GatewayInitialization, GatewayVerification, PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, creating the default on first use."""
    global _current_gateway
    if _current_gateway is None:
        if config.RUNTIME_ENVIRONMENT == RuntimeEnvironment.TEST:
            _current_gateway = FakeGateway()
        else:
            _current_gateway = PaystackGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None


__all__ = [
    'PaymentGateway',
    'GatewayError',
    'GatewayInitialization',
    'GatewayVerification',
    'FakeGateway',
    'PaystackGateway',
    'get_gateway',
    'set_gateway',
    'reset_gateway',
]
