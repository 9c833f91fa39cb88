from enum import Enum


class FulfillmentMethod(str, Enum):
    """
    How an order reaches the guest.

    COURIER and HOME_COLLECTION need an address, the others do not.
    """
    PICKUP = "PICKUP"
    COURIER = "COURIER"
    HOME_COLLECTION = "HOME_COLLECTION"
    UNSPECIFIED = "UNSPECIFIED"

    @property
    def requires_address(self) -> bool:
        return self in (FulfillmentMethod.COURIER, FulfillmentMethod.HOME_COLLECTION)

    @classmethod
    def from_string(cls, value: str) -> 'FulfillmentMethod':
        """
        Convert a free-form string ("courier", "Home Collection", "PICKUP") to the enum.

        Raises:
            ValueError: If no method matches
        """
        normalized = value.strip().upper().replace(" ", "_").replace("-", "_")
        for method in cls:
            if method.value == normalized:
                return method
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown fulfillment method '{value}'. Valid: {valid}")
