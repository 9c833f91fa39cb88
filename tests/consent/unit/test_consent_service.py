"""
Unit Tests: ConsentService

Tests for services/consent.py covering:
- record() - grant, revoke, case-insensitive guest ids
- require_data_sharing() gate on checkout, prescription upload and
  checkout session details
"""

import pytest

from enums.consent_type import ConsentType
from exceptions import UnauthorizedException, ValidationException
from repositories.order import OrderRepository
from services.cart import CartService
from services.checkout import CheckoutService
from services.consent import ConsentService
from services.prescription import PrescriptionService

FILE_URL = "https://files.example.com/rx/scan-001.pdf"


class TestRecordConsent:

    @pytest.mark.asyncio
    async def test_grant(self, test_session, catalog):
        consent = await ConsentService.record("guest-3", ConsentType.DATA_SHARING, True, test_session)

        assert consent.granted is True
        assert consent.consent_type == ConsentType.DATA_SHARING
        assert await ConsentService.has_consent("guest-3", ConsentType.DATA_SHARING, test_session)

    @pytest.mark.asyncio
    async def test_revoke_replaces_grant(self, test_session, catalog):
        first = await ConsentService.record("guest-3", ConsentType.DATA_SHARING, True, test_session)

        second = await ConsentService.record("guest-3", ConsentType.DATA_SHARING, False, test_session)

        assert second.id == first.id
        assert not await ConsentService.has_consent("guest-3", ConsentType.DATA_SHARING, test_session)

    @pytest.mark.asyncio
    async def test_guest_id_matched_case_insensitively(self, test_session, catalog):
        await ConsentService.record("Guest-ABC", ConsentType.DATA_SHARING, True, test_session)

        assert await ConsentService.has_consent("guest-abc", ConsentType.DATA_SHARING, test_session)

    @pytest.mark.asyncio
    async def test_other_consent_types_do_not_count(self, test_session, catalog):
        await ConsentService.record("guest-3", ConsentType.MARKETING, True, test_session)

        with pytest.raises(UnauthorizedException):
            await ConsentService.require_data_sharing("guest-3", test_session)

    @pytest.mark.asyncio
    async def test_guest_id_required(self, test_session, catalog):
        with pytest.raises(ValidationException):
            await ConsentService.record("  ", ConsentType.DATA_SHARING, True, test_session)


class TestDataSharingGate:

    @pytest.mark.asyncio
    async def test_checkout_without_consent_changes_nothing(self, test_session, catalog, contact, fake_gateway,
                                                            stock_of):
        await CartService.add_item("guest-3", catalog.pharmacy_a, catalog.paracetamol, 2, test_session)

        with pytest.raises(UnauthorizedException) as exc_info:
            await CheckoutService.checkout("guest-3", contact, None, test_session)

        assert exc_info.value.caller_id == "guest-3"
        assert await stock_of(catalog.pharmacy_a, catalog.paracetamol) == 10
        assert not (await CartService.get_cart("guest-3", test_session)).is_empty
        assert fake_gateway.calls_to("initialize") == []

    @pytest.mark.asyncio
    async def test_revoked_consent_blocks_checkout(self, test_session, catalog, contact, fake_gateway):
        await ConsentService.record("guest-1", ConsentType.DATA_SHARING, False, test_session)
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)

        with pytest.raises(UnauthorizedException):
            await CheckoutService.checkout("guest-1", contact, None, test_session)

    @pytest.mark.asyncio
    async def test_upload_without_consent(self, test_session, catalog):
        with pytest.raises(UnauthorizedException):
            await PrescriptionService.upload("guest-3", FILE_URL, test_session)

    @pytest.mark.asyncio
    async def test_session_details_after_revocation(self, test_session, catalog, contact, fake_gateway):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)
        result = await CheckoutService.checkout("guest-1", contact, None, test_session)
        await ConsentService.record("guest-1", ConsentType.DATA_SHARING, False, test_session)

        with pytest.raises(UnauthorizedException):
            await CheckoutService.get_session_details("guest-1", result.orders[0].order_id, test_session)

    @pytest.mark.asyncio
    async def test_replace_after_revocation(self, test_session, catalog, contact, fake_gateway):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.amoxicillin, 1, test_session)
        result = await CheckoutService.checkout("guest-1", contact, FILE_URL, test_session)
        await ConsentService.record("guest-1", ConsentType.DATA_SHARING, False, test_session)

        with pytest.raises(UnauthorizedException):
            await PrescriptionService.replace_for_order("guest-1", result.orders[0].order_id, FILE_URL,
                                                        test_session)

        order = await OrderRepository.get_by_id(result.orders[0].order_id, test_session)
        assert order.prescription_id == result.prescription_id
