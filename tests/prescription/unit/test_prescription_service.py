"""
Unit Tests: PrescriptionService

Tests for services/prescription.py covering:
- is_covered() - subset semantics
- review() - operator only, one-shot, releases waiting orders
- add_covered_items() - operator transcription of a pending document
- replace_for_order() - new document after a rejection
"""

import logging
from unittest.mock import patch

import pytest

from enums.caller_role import CallerRole
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from enums.prescription_status import PrescriptionStatus
from enums.reconciliation_outcome import CheckoutOutcome
from exceptions import (
    InvalidOrderStateException,
    OrderOwnershipException,
    PrescriptionAlreadyReviewedException,
    PrescriptionNotFoundException,
    UnauthorizedException,
    ValidationException,
)
from models.identity import CallerIdentity
from models.prescription import PrescriptionItemDTO
from repositories.order import OrderRepository
from services.cart import CartService
from services.checkout import CheckoutService
from services.prescription import PrescriptionService

FILE_URL = "https://files.example.com/rx/scan-001.pdf"
REPLACEMENT_URL = "https://files.example.com/rx/scan-002.pdf"


async def gated_checkout(session, catalog, contact):
    """Checkout of one amoxicillin with an uploaded file; returns the CheckoutResultDTO."""
    await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.amoxicillin, 1, session)
    return await CheckoutService.checkout("guest-1", contact, FILE_URL, session)


class TestIsCovered:

    @pytest.mark.parametrize("required, covered, expected", [
        ({1, 2}, {1, 2}, True),
        ({1}, {1, 2, 3}, True),      # a superset still covers
        ({1, 2}, {1}, False),
        ({1}, set(), False),
        (set(), set(), True),
    ])
    def test_is_covered(self, required, covered, expected):
        assert PrescriptionService.is_covered(required, covered) is expected


class TestReview:

    @pytest.mark.asyncio
    async def test_verify_releases_order_to_pending(self, test_session, catalog, contact, fake_gateway, operator):
        """Verification makes the order payable and payment can be resumed."""
        result = await gated_checkout(test_session, catalog, contact)
        order_id = result.orders[0].order_id

        prescription = await PrescriptionService.review(operator, result.prescription_id,
                                                        PrescriptionStatus.VERIFIED, test_session)

        assert prescription.status == PrescriptionStatus.VERIFIED
        assert prescription.reviewed_by == "operator-1"
        assert prescription.reviewed_at is not None
        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.status == OrderStatus.PENDING

        resumed = await CheckoutService.resume_checkout("guest-1", order_id, None, test_session)
        assert resumed.outcome == CheckoutOutcome.PAYMENT_REQUIRED
        assert resumed.authorization_url is not None
        assert fake_gateway.calls_to("initialize")[-1]["amount_minor"] == 1250

    @pytest.mark.asyncio
    async def test_verify_after_payment_confirms_order(self, test_session, catalog, contact, fake_gateway, operator):
        result = await gated_checkout(test_session, catalog, contact)
        order_id = result.orders[0].order_id
        await OrderRepository.update(order_id, test_session, payment_status=PaymentStatus.PAID)
        await test_session.commit()

        await PrescriptionService.review(operator, result.prescription_id, PrescriptionStatus.VERIFIED, test_session)

        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_reject_leaves_order_waiting(self, test_session, catalog, contact, fake_gateway, operator):
        result = await gated_checkout(test_session, catalog, contact)

        prescription = await PrescriptionService.review(operator, result.prescription_id,
                                                        PrescriptionStatus.REJECTED, test_session)

        assert prescription.status == PrescriptionStatus.REJECTED
        order = await OrderRepository.get_by_id(result.orders[0].order_id, test_session)
        assert order.status == OrderStatus.PENDING_PRESCRIPTION

    @pytest.mark.asyncio
    async def test_order_cancelled_during_review_is_not_released(self, test_session, catalog, contact,
                                                                 fake_gateway, operator, caplog):
        """The reclaimer cancels the order between the lookup and the status change."""
        result = await gated_checkout(test_session, catalog, contact)
        order_id = result.orders[0].order_id
        get_by_prescription = OrderRepository.get_by_prescription

        async def lookup_then_cancel(prescription_id, status, session):
            waiting = await get_by_prescription(prescription_id, status, session)
            await OrderRepository.update(order_id, session, status=OrderStatus.CANCELLED)
            return waiting

        with patch.object(OrderRepository, "get_by_prescription", side_effect=lookup_then_cancel), \
                caplog.at_level(logging.INFO, logger="services.prescription"):
            prescription = await PrescriptionService.review(operator, result.prescription_id,
                                                            PrescriptionStatus.VERIFIED, test_session)

        assert prescription.status == PrescriptionStatus.VERIFIED
        assert (await OrderRepository.get_by_id(order_id, test_session)).status == OrderStatus.CANCELLED
        assert f"Order {order_id} left PENDING_PRESCRIPTION before review, not released" in caplog.text
        assert "released orders []" in caplog.text

    @pytest.mark.asyncio
    async def test_review_is_one_shot(self, test_session, catalog, contact, fake_gateway, operator):
        result = await gated_checkout(test_session, catalog, contact)
        await PrescriptionService.review(operator, result.prescription_id, PrescriptionStatus.REJECTED, test_session)

        with pytest.raises(PrescriptionAlreadyReviewedException):
            await PrescriptionService.review(operator, result.prescription_id, PrescriptionStatus.VERIFIED,
                                             test_session)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [CallerRole.GUEST, CallerRole.SELLER])
    async def test_only_operators_review(self, test_session, catalog, contact, fake_gateway, role):
        result = await gated_checkout(test_session, catalog, contact)
        identity = CallerIdentity(caller_id=str(catalog.pharmacy_a), role=role)

        with pytest.raises(UnauthorizedException):
            await PrescriptionService.review(identity, result.prescription_id, PrescriptionStatus.VERIFIED,
                                             test_session)

    @pytest.mark.asyncio
    async def test_pending_is_not_a_decision(self, test_session, catalog, contact, fake_gateway, operator):
        result = await gated_checkout(test_session, catalog, contact)

        with pytest.raises(ValidationException):
            await PrescriptionService.review(operator, result.prescription_id, PrescriptionStatus.PENDING,
                                             test_session)

    @pytest.mark.asyncio
    async def test_unknown_prescription(self, test_session, catalog, operator):
        with pytest.raises(PrescriptionNotFoundException):
            await PrescriptionService.review(operator, 999, PrescriptionStatus.VERIFIED, test_session)


class TestCoveredItems:

    @pytest.mark.asyncio
    async def test_operator_adds_items_to_upload(self, test_session, catalog, operator):
        prescription = await PrescriptionService.upload("guest-1", FILE_URL, test_session,
                                                        email="ada@example.com", phone="08031234567")

        items = await PrescriptionService.add_covered_items(operator, prescription.id, [
            PrescriptionItemDTO(catalog_item_id=catalog.amoxicillin, quantity=2, dosage_instructions="2x daily"),
        ], test_session)

        assert prescription.status == PrescriptionStatus.PENDING
        assert prescription.phone == "+2348031234567"
        assert [(item.catalog_item_id, item.quantity) for item in items] == [(catalog.amoxicillin, 2)]

    @pytest.mark.asyncio
    async def test_duplicate_item_rejected(self, test_session, catalog, operator):
        prescription = await PrescriptionService.upload("guest-1", FILE_URL, test_session)
        await PrescriptionService.add_covered_items(
            operator, prescription.id, [PrescriptionItemDTO(catalog_item_id=catalog.amoxicillin, quantity=1)],
            test_session
        )

        with pytest.raises(ValidationException):
            await PrescriptionService.add_covered_items(
                operator, prescription.id, [PrescriptionItemDTO(catalog_item_id=catalog.amoxicillin, quantity=1)],
                test_session
            )

    @pytest.mark.asyncio
    async def test_unknown_catalog_item_rejected(self, test_session, catalog, operator):
        prescription = await PrescriptionService.upload("guest-1", FILE_URL, test_session)

        with pytest.raises(ValidationException):
            await PrescriptionService.add_covered_items(
                operator, prescription.id, [PrescriptionItemDTO(catalog_item_id=999, quantity=1)], test_session
            )

    @pytest.mark.asyncio
    async def test_upload_requires_file_url(self, test_session, catalog):
        with pytest.raises(ValidationException):
            await PrescriptionService.upload("guest-1", "  ", test_session)


class TestReplaceForOrder:

    @pytest.mark.asyncio
    async def test_replace_after_rejection(self, test_session, catalog, contact, fake_gateway, operator):
        result = await gated_checkout(test_session, catalog, contact)
        order_id = result.orders[0].order_id
        await PrescriptionService.review(operator, result.prescription_id, PrescriptionStatus.REJECTED, test_session)

        replacement = await PrescriptionService.replace_for_order("guest-1", order_id, REPLACEMENT_URL, test_session)

        assert replacement.id != result.prescription_id
        assert replacement.status == PrescriptionStatus.PENDING
        assert await PrescriptionService.get_covered_item_ids(replacement.id, test_session) == {catalog.amoxicillin}
        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.prescription_id == replacement.id
        assert order.status == OrderStatus.PENDING_PRESCRIPTION

        # The replacement goes through review like any other document
        await PrescriptionService.review(operator, replacement.id, PrescriptionStatus.VERIFIED, test_session)
        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_replace_refused_while_pending(self, test_session, catalog, contact, fake_gateway):
        result = await gated_checkout(test_session, catalog, contact)

        with pytest.raises(ValidationException):
            await PrescriptionService.replace_for_order("guest-1", result.orders[0].order_id, REPLACEMENT_URL,
                                                        test_session)

    @pytest.mark.asyncio
    async def test_replace_requires_owner(self, test_session, catalog, contact, fake_gateway, operator):
        result = await gated_checkout(test_session, catalog, contact)
        await PrescriptionService.review(operator, result.prescription_id, PrescriptionStatus.REJECTED, test_session)

        with pytest.raises(OrderOwnershipException):
            await PrescriptionService.replace_for_order("guest-2", result.orders[0].order_id, REPLACEMENT_URL,
                                                        test_session)

    @pytest.mark.asyncio
    async def test_replace_needs_gated_order(self, test_session, catalog, contact, fake_gateway):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)
        result = await CheckoutService.checkout("guest-1", contact, None, test_session)

        with pytest.raises(InvalidOrderStateException):
            await PrescriptionService.replace_for_order("guest-1", result.orders[0].order_id, REPLACEMENT_URL,
                                                        test_session)
