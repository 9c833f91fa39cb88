"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import sys
import os
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Environment defaults must be in place before config is imported
import test_config  # noqa: F401

from enums.caller_role import CallerRole
from enums.catalog_item_kind import CatalogItemKind, SellerKind
from enums.consent_type import ConsentType
from enums.fulfillment_method import FulfillmentMethod
from gateway import FakeGateway, PaystackGateway, set_gateway, reset_gateway
from models.base import Base
from models.catalog_item import CatalogItem
from models.checkout import CheckoutContactDTO
from models.consent import PatientConsent
from models.identity import CallerIdentity
from models.order import Order
from models.seller import Seller
from models.seller_offering import SellerOffering
from repositories.seller_offering import SellerOfferingRepository


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine (in-memory SQLite shared by every connection)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # db.py registers every model on Base
    import db  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Catalog Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def catalog(test_session):
    """
    Two pharmacies and a lab.

    pharmacy_a: paracetamol (OTC, 10 x 5.00), amoxicillin (Rx, 3 x 12.50)
    pharmacy_b: paracetamol (OTC, 4 x 4.50), ibuprofen (OTC, 0 x 3.00)
    lab: lipid panel (test order required, 5 x 40.00)

    guest-1 and guest-2 have granted DATA_SHARING consent.
    """
    pharmacy_a = Seller(name="Central Pharmacy", kind=SellerKind.PHARMACY, address="1 Marina Rd")
    pharmacy_b = Seller(name="Harbour Pharmacy", kind=SellerKind.PHARMACY, address="7 Wharf St")
    lab = Seller(name="City Diagnostics", kind=SellerKind.LAB, address="22 Lab Ave")
    paracetamol = CatalogItem(name="Paracetamol 500mg", kind=CatalogItemKind.MEDICATION, prescription_required=False)
    amoxicillin = CatalogItem(name="Amoxicillin 250mg", kind=CatalogItemKind.MEDICATION, prescription_required=True)
    ibuprofen = CatalogItem(name="Ibuprofen 200mg", kind=CatalogItemKind.MEDICATION, prescription_required=False)
    lipid_panel = CatalogItem(name="Lipid Panel", kind=CatalogItemKind.DIAGNOSTIC_TEST, prescription_required=True)
    test_session.add_all([pharmacy_a, pharmacy_b, lab, paracetamol, amoxicillin, ibuprofen, lipid_panel])
    await test_session.flush()

    test_session.add_all([
        SellerOffering(seller_id=pharmacy_a.id, catalog_item_id=paracetamol.id, stock=10, price=Decimal("5.00")),
        SellerOffering(seller_id=pharmacy_a.id, catalog_item_id=amoxicillin.id, stock=3, price=Decimal("12.50")),
        SellerOffering(seller_id=pharmacy_b.id, catalog_item_id=paracetamol.id, stock=4, price=Decimal("4.50")),
        SellerOffering(seller_id=pharmacy_b.id, catalog_item_id=ibuprofen.id, stock=0, price=Decimal("3.00")),
        SellerOffering(seller_id=lab.id, catalog_item_id=lipid_panel.id, stock=5, price=Decimal("40.00")),
        PatientConsent(guest_id="guest-1", consent_type=ConsentType.DATA_SHARING, granted=True),
        PatientConsent(guest_id="guest-2", consent_type=ConsentType.DATA_SHARING, granted=True),
    ])
    await test_session.commit()

    return SimpleNamespace(
        pharmacy_a=pharmacy_a.id,
        pharmacy_b=pharmacy_b.id,
        lab=lab.id,
        paracetamol=paracetamol.id,
        amoxicillin=amoxicillin.id,
        ibuprofen=ibuprofen.id,
        lipid_panel=lipid_panel.id,
    )


# ============================================================================
# Gateway / Identity Fixtures
# ============================================================================

@pytest.fixture
def fake_gateway():
    """Fresh FakeGateway installed as the active gateway."""
    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest_asyncio.fixture
async def bad_gateway_server():
    """Local HTTP server answering every request with a proxy's HTML 502 page."""
    async def bad_gateway(request):
        return web.Response(status=502, text="<html>Bad Gateway</html>", content_type="text/html")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", bad_gateway)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def paystack_behind_bad_proxy(bad_gateway_server):
    return PaystackGateway(secret_key="sk_test_x", api_url=str(bad_gateway_server.make_url("/")))


@pytest.fixture
def operator():
    return CallerIdentity(caller_id="operator-1", role=CallerRole.OPERATOR)


@pytest.fixture
def contact():
    return CheckoutContactDTO(
        name="Ada Obi",
        email="ada@example.com",
        phone="0803 123 4567",
        address="14 Allen Ave, Ikeja",
        fulfillment_method=FulfillmentMethod.COURIER,
    )


# ============================================================================
# Helpers
# ============================================================================

@pytest.fixture
def backdate(test_session):
    """Move an order's created_at into the past and commit."""
    async def _backdate(order_id: int, hours: float) -> None:
        await test_session.execute(
            update(Order).where(Order.id == order_id).values(created_at=datetime.now() - timedelta(hours=hours))
        )
        await test_session.commit()
    return _backdate


@pytest.fixture
def stock_of(test_session):
    async def _stock_of(seller_id: int, item_id: int) -> int:
        return await SellerOfferingRepository.get_stock(seller_id, item_id, test_session)
    return _stock_of
