"""End-to-end document lifecycle scenarios through the ledger facade."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import area
from estimate_ledger.errors import InvalidStateError, InvalidTransitionError


class TestEstimateToPaidInvoice:
    """One estimate walked from creation to a paid invoice."""

    async def test_full_lifecycle(self, ledger, client_id, recorder):
        # 1. create: 1800.00 labor + 350.00 material at 15%
        estimate = await ledger.create_estimate(
            client_id, "Interior repaint", [area()], markup_percentage="15"
        )
        assert estimate.labor_cost == Decimal("1800.00")
        assert estimate.material_cost == Decimal("350.00")
        assert estimate.total_amount == Decimal("2472.50")

        # 2. send, approve and convert
        await ledger.transition_estimate(estimate.id, "sent")
        await ledger.transition_estimate(estimate.id, "approved")
        invoice = await ledger.convert_estimate(estimate.id)
        assert invoice.status == "draft"
        assert invoice.invoice_number is None
        assert invoice.total_amount == Decimal("2472.50")
        assert (await ledger.get_estimate(estimate.id)).status == "converted"

        # 3. sending assigns the number
        invoice = await ledger.transition_invoice(invoice.id, "sent")
        assert invoice.invoice_number == "INV-1001"

        # 4. full payment
        invoice = await ledger.record_payment(
            invoice.id, "2472.50", payment_method="Check", payment_date=date.today()
        )
        assert invoice.paid_amount == Decimal("2472.50")
        assert invoice.status == "paid"
        assert invoice.invoice_number == "INV-1001"

        # 5. a paid invoice cannot be voided
        with pytest.raises(InvalidTransitionError):
            await ledger.transition_invoice(invoice.id, "void", void_reason="duplicate")
        assert (await ledger.get_invoice(invoice.id)).status == "paid"

        # 6. a converted estimate cannot be revised
        with pytest.raises(InvalidStateError):
            await ledger.revise_estimate(
                estimate.id, {"markup_percentage": "20"}, "price_adjustment"
            )
        assert len(await ledger.version_history(estimate.id)) == 1

        assert recorder.types.count("InvoiceNumberAssigned") == 1


class TestRevisedEstimateLifecycle:
    async def test_revise_then_convert_then_void(self, ledger, make_estimate):
        estimate = await make_estimate("sent")
        revised = await ledger.revise_estimate(
            estimate.id,
            {"project_areas": [{"position": 0, "material_cost": "450"}]},
            "scope_change",
            change_summary="Extra primer coat",
        )
        current = await ledger.transition_estimate(revised.estimate.id, "approved")
        assert current.estimate_number == "EST-0001-R2"

        invoice = await ledger.convert_estimate(current.id, due_date=date(2026, 12, 1))
        # (1800 + 450) * 1.15
        assert invoice.total_amount == Decimal("2587.50")

        invoice = await ledger.transition_invoice(invoice.id, "sent")
        await ledger.record_payment(invoice.id, "500")
        invoice = await ledger.transition_invoice(
            invoice.id, "void", void_reason="Client switched contractor"
        )
        assert invoice.status == "void"
        assert invoice.paid_amount == Decimal("500.00")

        reverted = await ledger.get_estimate(current.id)
        assert reverted.status == "approved"
        assert reverted.is_current_version is True

        # The superseded first version is untouched by all of this
        original = await ledger.get_estimate(estimate.id)
        assert original.status == "sent"
        assert original.total_amount == Decimal("2472.50")


class TestPaymentCorrections:
    async def test_paid_amount_tracks_every_correction(self, ledger, make_invoice):
        invoice = await make_invoice("sent")
        total = invoice.total_amount

        invoice = await ledger.record_payment(invoice.id, "1000")
        invoice = await ledger.record_payment(invoice.id, "1472.50")
        assert invoice.status == "paid"

        first = next(p for p in invoice.payments if p.amount == Decimal("1000.00"))
        invoice = await ledger.update_payment(first.id, {"amount": "900"})
        assert (invoice.status, invoice.paid_amount) == ("sent", Decimal("2372.50"))

        invoice = await ledger.record_payment(invoice.id, "100")
        assert (invoice.status, invoice.paid_amount) == ("paid", total)

        for payment in list(invoice.payments):
            invoice = await ledger.delete_payment(payment.id)
            assert invoice.paid_amount == sum(
                (p.amount for p in invoice.payments), Decimal("0.00")
            )
            assert (invoice.status == "paid") == (invoice.paid_amount >= total)

        assert (invoice.status, invoice.paid_amount) == ("sent", Decimal("0.00"))
