from enum import Enum


class Currency(str, Enum):
    NGN = "NGN"
    GHS = "GHS"
    KES = "KES"
    ZAR = "ZAR"
    USD = "USD"
