from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, override_settings

from .services import money


class InvoiceLineTaxTest(SimpleTestCase):
    def test_within_home_state_splits_cgst_sgst(self):
        line = money.invoice_line_amounts("10", "100", "50", "18", within_home_state=True)
        self.assertEqual(line["total_value"], Decimal("1000.00"))
        self.assertEqual(line["taxable_value"], Decimal("950.00"))
        self.assertEqual(line["cgst_rate"], Decimal("9.00"))
        self.assertEqual(line["sgst_rate"], Decimal("9.00"))
        self.assertEqual(line["igst_rate"], Decimal("0"))
        self.assertEqual(line["cgst_amount"], Decimal("85.50"))
        self.assertEqual(line["sgst_amount"], Decimal("85.50"))
        self.assertEqual(line["igst_amount"], Decimal("0.00"))

    def test_half_rate_is_not_rounded(self):
        within = money.invoice_line_amounts("1", "10000", None, "0.25", within_home_state=True)
        outside = money.invoice_line_amounts("1", "10000", None, "0.25", within_home_state=False)
        self.assertEqual(within["cgst_rate"], Decimal("0.125"))
        self.assertEqual(within["cgst_amount"], Decimal("12.50"))
        self.assertEqual(within["cgst_amount"] + within["sgst_amount"], outside["igst_amount"])

    def test_outside_home_state_is_igst(self):
        line = money.invoice_line_amounts("10", "100", "50", "18", within_home_state=False)
        self.assertEqual(line["cgst_rate"], Decimal("0"))
        self.assertEqual(line["sgst_rate"], Decimal("0"))
        self.assertEqual(line["igst_rate"], Decimal("18"))
        self.assertEqual(line["cgst_amount"] + line["sgst_amount"], Decimal("0.00"))
        self.assertEqual(line["igst_amount"], Decimal("171.00"))

    def test_missing_discount_is_zero(self):
        line = money.invoice_line_amounts(3, "2.5", None, None)
        self.assertEqual(line["discount"], Decimal("0.00"))
        self.assertEqual(line["taxable_value"], Decimal("7.50"))
        self.assertEqual(line["gst_rate"], Decimal("18"))
        self.assertEqual(line["igst_amount"], Decimal("1.35"))

    def test_totals_are_exact_sums(self):
        lines = [
            money.invoice_line_amounts("3", "33.333", None, "18", within_home_state=True),
            money.invoice_line_amounts("7", "14.285", "1.10", "5", within_home_state=True),
        ]
        subtotal, total_gst, total = money.invoice_totals(lines)
        self.assertEqual(subtotal, sum(ln["taxable_value"] for ln in lines))
        self.assertEqual(total_gst, sum(money.line_tax(ln) for ln in lines))
        self.assertEqual(total, subtotal + total_gst)


class OrderLineTest(SimpleTestCase):
    def test_amounts_round_half_up_to_paise(self):
        amount, gst = money.order_line_amounts("2.5", "99.99", None)
        self.assertEqual(amount, Decimal("249.98"))
        self.assertEqual(gst, Decimal("45.00"))

    def test_explicit_zero_rate_is_kept(self):
        amount, gst = money.order_line_amounts(4, 25, 0)
        self.assertEqual(amount, Decimal("100.00"))
        self.assertEqual(gst, Decimal("0.00"))

    def test_absent_rate_uses_default(self):
        self.assertEqual(money.gst_rate_or_default(None), Decimal("18"))
        self.assertEqual(money.gst_rate_or_default(""), Decimal("18"))
        self.assertEqual(money.gst_rate_or_default("0"), Decimal("0"))

    @override_settings(ERP_DEFAULT_GST_RATE=Decimal("12"))
    def test_default_rate_from_settings(self):
        _, gst = money.order_line_amounts(1, 100)
        self.assertEqual(gst, Decimal("12.00"))

    def test_bad_number_raises_validation_error(self):
        with self.assertRaises(ValidationError) as ctx:
            money.order_line_amounts("ten", 5)
        self.assertIn("quantity", ctx.exception.message_dict)


class JurisdictionTest(SimpleTestCase):
    def test_home_state_names(self):
        self.assertTrue(money.is_home_state("Maharashtra"))
        self.assertTrue(money.is_home_state("  MH "))
        self.assertTrue(money.is_home_state("Navi Mumbai, maharashtra"))

    def test_other_states(self):
        self.assertFalse(money.is_home_state("Gujarat"))
        self.assertFalse(money.is_home_state("Mhow"))
        self.assertFalse(money.is_home_state(""))
        self.assertFalse(money.is_home_state(None))


class PaymentStateTest(SimpleTestCase):
    def test_status_derivation(self):
        cases = [
            (Decimal("0"), Decimal("0"), money.PENDING),
            (Decimal("100"), Decimal("0"), money.PENDING),
            (Decimal("100"), Decimal("40"), money.PARTIAL),
            (Decimal("100"), Decimal("100"), money.PAID),
            (Decimal("100"), Decimal("150"), money.PAID),
            (Decimal("0"), Decimal("10"), money.PENDING),
        ]
        for total, paid, expected in cases:
            with self.subTest(total=total, paid=paid):
                self.assertEqual(money.payment_status_for(total, paid), expected)

    def test_outstanding_never_negative(self):
        self.assertEqual(money.outstanding_for(Decimal("100"), Decimal("150")), Decimal("0.00"))
        self.assertEqual(money.outstanding_for(Decimal("100"), Decimal("40.50")), Decimal("59.50"))
