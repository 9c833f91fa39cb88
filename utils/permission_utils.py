"""
Centralized permission utilities for caller authorization.

The caller identity is resolved upstream (credentials are never checked here);
these helpers only decide whether a resolved identity may act on a target.
"""

from enums.caller_role import CallerRole
from exceptions import UnauthorizedException, OrderOwnershipException
from models.identity import CallerIdentity
from models.order import OrderDTO


def is_operator(identity: CallerIdentity) -> bool:
    return identity.role == CallerRole.OPERATOR


def require_operator(identity: CallerIdentity, action: str) -> None:
    """
    Raise UnauthorizedException unless the caller is an operator.

    Args:
        identity: Resolved caller identity
        action: Human-readable action name for the error message

    Example:
        >>> require_operator(CallerIdentity(caller_id="op-1", role=CallerRole.OPERATOR), "review prescriptions")
        >>> require_operator(CallerIdentity(caller_id="g-1", role=CallerRole.GUEST), "review prescriptions")
        Traceback (most recent call last):
        UnauthorizedException: Caller g-1 is not allowed to review prescriptions
    """
    if not is_operator(identity):
        raise UnauthorizedException(identity.caller_id, action)


def can_manage_order(identity: CallerIdentity, order: OrderDTO) -> bool:
    """
    Check if a caller may run fulfillment on an order.

    Operators may act on any order; sellers only on orders of their own shop
    (their caller_id is the seller id).
    """
    if is_operator(identity):
        return True
    if identity.role == CallerRole.SELLER:
        return order.seller_id is not None and str(order.seller_id) == identity.caller_id
    return False


def require_order_owner(order: OrderDTO, guest_id: str) -> None:
    """Raise OrderOwnershipException if the order does not belong to the guest."""
    if order.guest_id != guest_id:
        raise OrderOwnershipException(order.id, guest_id)
