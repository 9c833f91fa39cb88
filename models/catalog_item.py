from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Boolean, Enum as SQLEnum

from enums.catalog_item_kind import CatalogItemKind
from models.base import Base


# A catalog item is immutable reference data: a medication or a diagnostic test.
# Whether it needs a prescription (or a test order for lab tests) is decided here,
# never per seller.
class CatalogItem(Base):
    __tablename__ = 'catalog_items'

    id = Column(Integer, primary_key=True, unique=True)
    name = Column(String, nullable=False)
    kind = Column(SQLEnum(CatalogItemKind), nullable=False, default=CatalogItemKind.MEDICATION)
    prescription_required = Column(Boolean, nullable=False, default=False)


class CatalogItemDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    kind: CatalogItemKind | None = None
    prescription_required: bool | None = None
