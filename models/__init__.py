"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for relationships to work correctly.
"""

from models.base import Base
from models.catalog_item import CatalogItem
from models.seller import Seller
from models.seller_offering import SellerOffering
from models.prescription import Prescription, PrescriptionItem
from models.order import Order
from models.orderItem import OrderItem
from models.checkout_session import CheckoutSession, CheckoutSessionReference
from models.consent import PatientConsent

__all__ = [
    'Base',
    'CatalogItem',
    'Seller',
    'SellerOffering',
    'Prescription',
    'PrescriptionItem',
    'Order',
    'OrderItem',
    'CheckoutSession',
    'CheckoutSessionReference',
    'PatientConsent',
]
