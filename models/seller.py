from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Enum as SQLEnum

from enums.catalog_item_kind import SellerKind
from models.base import Base


class Seller(Base):
    __tablename__ = 'sellers'

    id = Column(Integer, primary_key=True, unique=True)
    name = Column(String, nullable=False)
    kind = Column(SQLEnum(SellerKind), nullable=False, default=SellerKind.PHARMACY)
    address = Column(String, nullable=True)


class SellerDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    kind: SellerKind | None = None
    address: str | None = None
