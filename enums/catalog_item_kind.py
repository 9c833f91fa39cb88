from enum import Enum


class CatalogItemKind(str, Enum):
    MEDICATION = "medication"
    DIAGNOSTIC_TEST = "diagnostic_test"


class SellerKind(str, Enum):
    PHARMACY = "pharmacy"
    LAB = "lab"
