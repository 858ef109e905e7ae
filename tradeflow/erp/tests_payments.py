from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase

from .exceptions import NotFoundError
from .models import Customer, Vendor, SalesOrder, PurchaseOrder, Payment, PaymentStatus
from .services import order_service, payment_service
from .services.balance_service import apply_party_delta, resync_all_balances


def flat_order(model, party, amount):
    """An order whose total is exactly `amount` (one line, no GST)."""
    return order_service.create_order(model, party.pk, [
        {"description": f"Goods {amount}", "quantity": "1", "rate": str(amount), "gst_rate": "0"},
    ])


class PartyPaymentAllocationTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_superuser(username="admin", password="password", email="admin@example.com")
        self.customer = Customer.objects.create(name="Acme Wires")
        self.o1 = flat_order(SalesOrder, self.customer, 100)
        self.o2 = flat_order(SalesOrder, self.customer, 50)
        self.o3 = flat_order(SalesOrder, self.customer, 30)

    def test_oldest_orders_are_settled_first(self):
        party, touched, payments, applied = payment_service.allocate_party_payment(
            Payment.PartyKind.CUSTOMER, self.customer.pk, "120", method="cheque", user=self.user,
        )

        self.assertEqual(applied, Decimal("120.00"))
        self.assertEqual([o.pk for o in touched], [self.o1.pk, self.o2.pk])

        for o in (self.o1, self.o2, self.o3):
            o.refresh_from_db()
        self.assertEqual(self.o1.outstanding_amount, Decimal("0.00"))
        self.assertEqual(self.o1.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.o2.outstanding_amount, Decimal("30.00"))
        self.assertEqual(self.o2.payment_status, PaymentStatus.PARTIAL)
        self.assertEqual(self.o3.outstanding_amount, Decimal("30.00"))
        self.assertEqual(self.o3.payment_status, PaymentStatus.PENDING)

        self.assertEqual(
            [(p.reference_number, p.amount) for p in payments],
            [(self.o1.order_number, Decimal("100.00")), (self.o2.order_number, Decimal("20.00"))],
        )
        self.assertEqual(Payment.objects.count(), 2)
        self.assertTrue(all(p.payment_method == "cheque" for p in payments))
        self.assertTrue(all(p.party_name == "Acme Wires" for p in payments))
        self.assertEqual(party.outstanding_balance, Decimal("60.00"))

    def test_paid_orders_are_skipped(self):
        payment_service.record_order_payment(SalesOrder, self.o1.pk, "100")
        _, touched, payments, _ = payment_service.allocate_party_payment(
            Payment.PartyKind.CUSTOMER, self.customer.pk, "10",
        )
        self.assertEqual([o.pk for o in touched], [self.o2.pk])
        self.assertEqual(payments[0].amount, Decimal("10.00"))

    def test_amount_checks(self):
        for amount in ("0", "0.004", "-1", "180.01"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    payment_service.allocate_party_payment(Payment.PartyKind.CUSTOMER, self.customer.pk, amount)
        self.assertFalse(Payment.objects.exists())

    def test_unknown_party(self):
        with self.assertRaises(NotFoundError):
            payment_service.allocate_party_payment(Payment.PartyKind.CUSTOMER, 999999, "10")
        with self.assertRaises(ValidationError):
            payment_service.allocate_party_payment("supplier", self.customer.pk, "10")

    def test_only_applied_amount_leaves_balance(self):
        # cached balance above what the open orders owe
        apply_party_delta(Customer, self.customer.pk, Decimal("50.00"))

        with self.assertLogs("erp.services.payment_service", level="WARNING"):
            party, touched, payments, applied = payment_service.allocate_party_payment(
                Payment.PartyKind.CUSTOMER, self.customer.pk, "200",
            )

        self.assertEqual(applied, Decimal("180.00"))
        self.assertEqual(len(payments), 3)
        self.assertEqual(party.outstanding_balance, Decimal("50.00"))

    def test_vendor_payment(self):
        vendor = Vendor.objects.create(name="Copper Mills")
        po_old = flat_order(PurchaseOrder, vendor, 70)
        flat_order(PurchaseOrder, vendor, 40)

        party, touched, payments, applied = payment_service.allocate_party_payment(
            Payment.PartyKind.VENDOR, vendor.pk, "70",
        )
        self.assertEqual([o.pk for o in touched], [po_old.pk])
        self.assertEqual(payments[0].type, Payment.Type.MADE)
        self.assertEqual(payments[0].reference_kind, Payment.ReferenceKind.PURCHASE_ORDER)
        self.assertEqual(party.outstanding_balance, Decimal("40.00"))


class BalanceResyncTest(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Acme Wires")
        self.idle = Customer.objects.create(name="No Orders Ltd")
        self.vendor = Vendor.objects.create(name="Copper Mills")
        flat_order(SalesOrder, self.customer, 100)
        flat_order(SalesOrder, self.customer, 50)
        flat_order(PurchaseOrder, self.vendor, 75)

    def test_resync_repairs_drift(self):
        Customer.objects.filter(pk=self.customer.pk).update(outstanding_balance=Decimal("999.00"))
        Customer.objects.filter(pk=self.idle.pk).update(outstanding_balance=Decimal("12.00"))

        with self.assertLogs("erp.services.balance_service", level="WARNING"):
            result = resync_all_balances()

        self.assertEqual(result["customer"], {"examined": 2, "drifted": 2})
        self.assertEqual(result["vendor"], {"examined": 1, "drifted": 0})
        self.customer.refresh_from_db()
        self.idle.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("150.00"))
        self.assertEqual(self.idle.outstanding_balance, Decimal("0.00"))

    def test_resync_of_consistent_ledger_is_noop(self):
        result = resync_all_balances()
        self.assertEqual(result["customer"]["drifted"], 0)
        self.assertEqual(result["vendor"]["drifted"], 0)

    def test_management_command(self):
        Vendor.objects.filter(pk=self.vendor.pk).update(outstanding_balance=Decimal("0.00"))
        out = StringIO()
        call_command("recalculate_party_balances", stdout=out)
        self.assertIn("Successfully recalculated party balances", out.getvalue())
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.outstanding_balance, Decimal("75.00"))
