"""
Order State Machine for validating order status transitions and maintaining consistency.

This module implements a finite state machine to ensure valid order status transitions
and provide audit logging for all status changes. Services never compare or assign
status strings on their own; every change goes through assert_transition().
"""

import logging
from typing import Dict, List, Optional, Set

from enums.caller_role import CallerRole
from enums.order_status import OrderStatus
from exceptions.order import InvalidOrderStateException

logger = logging.getLogger(__name__)


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus,
                 actors: frozenset[str] = frozenset({"system"}), description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.actors = actors
        self.description = description

    def __repr__(self):
        return f"{self.from_status.value} -> {self.to_status.value} ({', '.join(sorted(self.actors))})"


FULFILLMENT_ACTORS = frozenset({CallerRole.SELLER.value, CallerRole.OPERATOR.value})


class OrderStateMachine:
    """
    Finite state machine for order status transitions with validation and audit logging.

    Valid status transitions:
    - PENDING_PRESCRIPTION -> PENDING (prescription verified, payment still due)
    - PENDING_PRESCRIPTION -> CONFIRMED (prescription verified, payment already captured)
    - PENDING_PRESCRIPTION -> CANCELLED (prescription verification timeout)
    - PENDING -> CONFIRMED (payment verified)
    - PENDING -> PENDING_PRESCRIPTION (payment verified, prescription not yet verified)
    - PENDING -> CANCELLED (payment timeout)
    - CONFIRMED -> PROCESSING | SHIPPED | READY_FOR_PICKUP (seller/operator)
    - PROCESSING -> SHIPPED | READY_FOR_PICKUP (seller/operator)
    - SHIPPED | READY_FOR_PICKUP -> DELIVERED (seller/operator)

    CART rows never transition: checkout deletes them and creates fresh orders.
    DELIVERED and CANCELLED are final.
    """

    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        # From PENDING_PRESCRIPTION
        OrderStatusTransition(
            OrderStatus.PENDING_PRESCRIPTION,
            OrderStatus.PENDING,
            actors=frozenset({CallerRole.OPERATOR.value}),
            description="Prescription verified, order is payable"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING_PRESCRIPTION,
            OrderStatus.CONFIRMED,
            actors=frozenset({CallerRole.OPERATOR.value, "system"}),
            description="Prescription verified after payment was captured"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING_PRESCRIPTION,
            OrderStatus.CANCELLED,
            description="Prescription verification timeout"
        ),

        # From PENDING
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            description="Payment received and confirmed"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.PENDING_PRESCRIPTION,
            description="Payment captured, fulfillment blocked until prescription is verified"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.CANCELLED,
            description="Payment timeout"
        ),

        # Fulfillment
        OrderStatusTransition(OrderStatus.CONFIRMED, OrderStatus.PROCESSING, FULFILLMENT_ACTORS,
                              "Seller started preparing the order"),
        OrderStatusTransition(OrderStatus.CONFIRMED, OrderStatus.SHIPPED, FULFILLMENT_ACTORS,
                              "Order handed to courier"),
        OrderStatusTransition(OrderStatus.CONFIRMED, OrderStatus.READY_FOR_PICKUP, FULFILLMENT_ACTORS,
                              "Order ready for pickup"),
        OrderStatusTransition(OrderStatus.PROCESSING, OrderStatus.SHIPPED, FULFILLMENT_ACTORS,
                              "Order handed to courier"),
        OrderStatusTransition(OrderStatus.PROCESSING, OrderStatus.READY_FOR_PICKUP, FULFILLMENT_ACTORS,
                              "Order ready for pickup"),
        OrderStatusTransition(OrderStatus.SHIPPED, OrderStatus.DELIVERED, FULFILLMENT_ACTORS,
                              "Order delivered"),
        OrderStatusTransition(OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED, FULFILLMENT_ACTORS,
                              "Order picked up"),
    ]

    FINAL_STATUSES: Set[OrderStatus] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Set[OrderStatus]] = {}
    _transition_index: Dict[tuple, OrderStatusTransition] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition maps for performance"""
        if cls._transition_map:
            return  # Already built

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, set()).add(transition.to_status)
            cls._transition_index[(transition.from_status, transition.to_status)] = transition

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is valid according to the state machine.

        Staying in the same status is not a transition and is rejected here;
        callers that want idempotency check for it before asking.
        """
        cls._build_transition_map()
        return to_status in cls._transition_map.get(from_status, set())

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        cls._build_transition_map()
        return sorted(cls._transition_map.get(from_status, set()), key=lambda s: s.value)

    @classmethod
    def get_transition_description(cls, from_status: OrderStatus, to_status: OrderStatus) -> str:
        cls._build_transition_map()
        transition = cls._transition_index.get((from_status, to_status))
        if transition is None:
            return f"Transition from {from_status.value} to {to_status.value}"
        return transition.description

    @classmethod
    def can_actor_transition(cls, from_status: OrderStatus, to_status: OrderStatus, actor: str) -> bool:
        cls._build_transition_map()
        transition = cls._transition_index.get((from_status, to_status))
        return transition is not None and actor in transition.actors

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        return status in cls.FINAL_STATUSES

    @classmethod
    def assert_transition(cls, order_id: Optional[int], from_status: OrderStatus, to_status: OrderStatus,
                          actor: str = "system") -> None:
        """
        Validate a status transition and write the audit log line.

        Args:
            order_id: ID of the order being transitioned
            from_status: Current order status
            to_status: Desired new status
            actor: "system" for automatic transitions, otherwise a CallerRole value

        Raises:
            InvalidOrderStateException: If the pair is not in the table or the actor may not perform it
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            raise InvalidOrderStateException(
                order_id,
                current_state=from_status.value,
                required_state=" | ".join(s.value for s in cls._reverse_lookup(to_status)) or "none"
            )

        if not cls.can_actor_transition(from_status, to_status, actor):
            logger.error(f"Actor {actor} may not perform {from_status.value} -> {to_status.value} on order {order_id}")
            raise InvalidOrderStateException(order_id, current_state=from_status.value,
                                             required_state=f"{to_status.value} by {actor}")

        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value} "
                    f"by {actor}: {cls.get_transition_description(from_status, to_status)}")

    @classmethod
    def _reverse_lookup(cls, to_status: OrderStatus) -> List[OrderStatus]:
        cls._build_transition_map()
        return sorted(
            (source for source, targets in cls._transition_map.items() if to_status in targets),
            key=lambda s: s.value
        )
