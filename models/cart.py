# The cart is not a table of its own: it is the guest's single Order row with
# status CART. Lines are OrderItems carrying the price snapshot taken when the
# item was added, stock is only pre-checked here and reserved at checkout.
#
# These DTOs are the read-only view returned by CartService.get_cart().
from decimal import Decimal

from pydantic import BaseModel

from models.orderItem import OrderLineDetailDTO


class CartSellerGroupDTO(BaseModel):
    seller_id: int
    seller_name: str | None = None
    lines: list[OrderLineDetailDTO] = []
    subtotal: Decimal = Decimal("0")


class CartViewDTO(BaseModel):
    order_id: int | None = None
    guest_id: str
    groups: list[CartSellerGroupDTO] = []
    total: Decimal = Decimal("0")

    @property
    def is_empty(self) -> bool:
        return len(self.groups) == 0
