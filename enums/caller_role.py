from enum import Enum


class CallerRole(str, Enum):
    GUEST = "guest"
    OPERATOR = "operator"  # Reviews prescriptions, may act on any order
    SELLER = "seller"      # Pharmacy or lab staff, may act on own orders only
