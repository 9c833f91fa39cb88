from enum import Enum


class OrderStatus(Enum):
    CART = "CART"                                         # Mutable pre-checkout basket (one per guest)
    PENDING_PRESCRIPTION = "PENDING_PRESCRIPTION"         # Waiting for prescription verification (not payable)
    PENDING = "PENDING"                                   # Waiting for payment
    CONFIRMED = "CONFIRMED"                               # Paid and cleared for fulfillment
    PROCESSING = "PROCESSING"                             # Seller is preparing the order
    SHIPPED = "SHIPPED"                                   # Handed to courier
    READY_FOR_PICKUP = "READY_FOR_PICKUP"                 # Waiting at the seller
    DELIVERED = "DELIVERED"                               # Fulfilled
    CANCELLED = "CANCELLED"                               # Cancelled (timeout), stock released
