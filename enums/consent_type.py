from enum import Enum


class ConsentType(Enum):
    TERMS = "TERMS"
    PRIVACY = "PRIVACY"
    MARKETING = "MARKETING"
    DATA_SHARING = "DATA_SHARING"
    REGULATORY = "REGULATORY"
