from decimal import Decimal

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db.models import Sum
from django.test import TestCase

from .exceptions import NotFoundError
from .models import Customer, Vendor, SalesOrder, PurchaseOrder, Payment, PaymentStatus
from .services import order_service, payment_service
from .services.balance_service import apply_party_delta


def line(description="Cable", quantity="10", rate="100", gst_rate="18", **extra):
    data = {"description": description, "quantity": quantity, "rate": rate}
    if gst_rate is not None:
        data["gst_rate"] = gst_rate
    data.update(extra)
    return data


class OrderLedgerTestBase(TestCase):
    def setUp(self):
        self.user = User.objects.create_superuser(username="admin", password="password", email="admin@example.com")
        self.customer = Customer.objects.create(name="Acme Wires", billing_state="Maharashtra")
        self.other_customer = Customer.objects.create(name="Sharma Traders", billing_state="Gujarat")
        self.vendor = Vendor.objects.create(name="Copper Mills")

    def balance(self, party):
        party.refresh_from_db()
        return party.outstanding_balance

    def order_sum(self, customer):
        total = customer.sales_orders.aggregate(s=Sum("outstanding_amount"))["s"]
        return total or Decimal("0.00")


class CreateOrderTest(OrderLedgerTestBase):
    def test_create_prices_lines_and_raises_balance(self):
        order = order_service.create_order(SalesOrder, self.customer.pk, [line()], user=self.user)

        item = order.items.get()
        self.assertEqual(item.amount, Decimal("1000.00"))
        self.assertEqual(item.gst_amount, Decimal("180.00"))
        self.assertEqual(order.subtotal, Decimal("1000.00"))
        self.assertEqual(order.total_gst, Decimal("180.00"))
        self.assertEqual(order.total_amount, Decimal("1180.00"))
        self.assertEqual(order.paid_amount, Decimal("0.00"))
        self.assertEqual(order.outstanding_amount, Decimal("1180.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(order.created_by, self.user)
        self.assertEqual(self.balance(self.customer), Decimal("1180.00"))

    def test_line_defaults(self):
        order = order_service.create_order(SalesOrder, self.customer.pk, [line(gst_rate=None)])
        item = order.items.get()
        self.assertEqual(item.gst_rate, Decimal("18.00"))
        self.assertEqual(item.hsn_code, "8544")
        self.assertEqual(item.unit, "Mtr")

        po = order_service.create_order(PurchaseOrder, self.vendor.pk, [line(gst_rate="0")])
        po_item = po.items.get()
        self.assertEqual(po_item.unit, "Kg")
        self.assertEqual(po_item.gst_amount, Decimal("0.00"))
        self.assertEqual(po.total_amount, Decimal("1000.00"))
        self.assertEqual(self.balance(self.vendor), Decimal("1000.00"))

    def test_invalid_items_rejected_without_writes(self):
        with self.assertRaises(ValidationError) as ctx:
            order_service.create_order(SalesOrder, self.customer.pk, [line(quantity="lots")])
        self.assertIn("items.0.quantity", ctx.exception.message_dict)
        self.assertFalse(SalesOrder.objects.exists())
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))

    def test_unknown_party(self):
        with self.assertRaises(NotFoundError):
            order_service.create_order(SalesOrder, 999999, [line()])
        with self.assertRaises(ValidationError):
            order_service.create_order(SalesOrder, None, [line()])

    def test_order_numbers_follow_series(self):
        first = order_service.create_order(SalesOrder, self.customer.pk, [line()])
        second = order_service.create_order(SalesOrder, self.customer.pk, [line()])
        po = order_service.create_order(PurchaseOrder, self.vendor.pk, [line()])

        self.assertRegex(first.order_number, r"^SO\d{8}\d{4}$")
        self.assertRegex(po.order_number, r"^PO\d{8}\d{4}$")
        self.assertEqual(int(second.order_number[-4:]), int(first.order_number[-4:]) + 1)
        self.assertEqual(po.order_number[-4:], "0001")


class UpdateOrderTest(OrderLedgerTestBase):
    def setUp(self):
        super().setUp()
        self.order = order_service.create_order(SalesOrder, self.customer.pk, [line()])

    def test_edit_keeps_paid_and_moves_balance_by_delta(self):
        payment_service.record_order_payment(SalesOrder, self.order.pk, "180")
        self.assertEqual(self.balance(self.customer), Decimal("1000.00"))

        order = order_service.update_order(SalesOrder, self.order.pk, items=[line(quantity="5")])

        self.assertEqual(order.total_amount, Decimal("590.00"))
        self.assertEqual(order.paid_amount, Decimal("180.00"))
        self.assertEqual(order.outstanding_amount, Decimal("410.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)
        self.assertEqual(self.balance(self.customer), Decimal("410.00"))
        self.assertEqual(self.balance(self.customer), self.order_sum(self.customer))

    def test_edit_below_paid_floors_outstanding(self):
        payment_service.record_order_payment(SalesOrder, self.order.pk, "1000")
        order = order_service.update_order(SalesOrder, self.order.pk, items=[line(quantity="1")])

        self.assertEqual(order.total_amount, Decimal("118.00"))
        self.assertEqual(order.outstanding_amount, Decimal("0.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))

    def test_items_with_id_are_updated_in_place(self):
        item = self.order.items.get()
        order_service.toggle_item_delivery(self.order.pk, item.pk)

        order_service.update_order(
            SalesOrder, self.order.pk,
            items=[line(id=item.pk, rate="120"), line(description="Lug", quantity="2", rate="50")],
        )

        item.refresh_from_db()
        self.assertEqual(item.rate, Decimal("120"))
        self.assertTrue(item.is_delivered)
        self.assertEqual(self.order.items.count(), 2)

        order_service.update_order(SalesOrder, self.order.pk, items=[line(id=item.pk, rate="120")])
        self.assertEqual(list(self.order.items.values_list("pk", flat=True)), [item.pk])

    def test_foreign_item_id_rejected(self):
        other = order_service.create_order(SalesOrder, self.customer.pk, [line()])
        with self.assertRaises(ValidationError):
            order_service.update_order(SalesOrder, self.order.pk, items=[line(id=other.items.get().pk)])

    def test_header_only_edit_leaves_totals(self):
        order = order_service.update_order(SalesOrder, self.order.pk, notes="Urgent")
        self.assertEqual(order.notes, "Urgent")
        self.assertEqual(order.total_amount, Decimal("1180.00"))
        self.assertEqual(self.balance(self.customer), Decimal("1180.00"))

    def test_reassigning_customer_moves_outstanding(self):
        order_service.update_order(SalesOrder, self.order.pk, customer=self.other_customer.pk)
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))
        self.assertEqual(self.balance(self.other_customer), Decimal("1180.00"))

    def test_missing_order(self):
        with self.assertRaises(NotFoundError):
            order_service.update_order(SalesOrder, 424242, items=[line()])


class DeliveryToggleTest(OrderLedgerTestBase):
    def setUp(self):
        super().setUp()
        self.order = order_service.create_order(
            SalesOrder, self.customer.pk, [line(description="A"), line(description="B", quantity="3")],
        )
        self.a, self.b = list(self.order.items.all())

    def test_toggle_sets_and_clears_delivery_fields(self):
        order, item = order_service.toggle_item_delivery(self.order.pk, self.a.pk)
        self.assertTrue(item.is_delivered)
        self.assertIsNotNone(item.delivered_date)
        self.assertEqual(item.delivered_quantity, item.quantity)
        self.assertEqual(order.delivery_status, SalesOrder.DeliveryStatus.DISPATCHED)

        order, item = order_service.toggle_item_delivery(self.order.pk, self.a.pk)
        self.assertFalse(item.is_delivered)
        self.assertIsNone(item.delivered_date)
        self.assertEqual(item.delivered_quantity, Decimal("0"))

    def test_status_never_downgrades_from_delivered(self):
        order_service.toggle_item_delivery(self.order.pk, self.a.pk)
        order, _ = order_service.toggle_item_delivery(self.order.pk, self.b.pk)
        self.assertEqual(order.delivery_status, SalesOrder.DeliveryStatus.DELIVERED)

        order, _ = order_service.toggle_item_delivery(self.order.pk, self.a.pk)
        self.assertEqual(order.delivery_status, SalesOrder.DeliveryStatus.DELIVERED)

    def test_toggle_does_not_touch_money(self):
        order, _ = order_service.toggle_item_delivery(self.order.pk, self.a.pk)
        self.assertEqual(order.total_amount, self.order.total_amount)
        self.assertEqual(self.balance(self.customer), self.order.total_amount)

    def test_unknown_item(self):
        other = order_service.create_order(SalesOrder, self.customer.pk, [line()])
        with self.assertRaises(NotFoundError):
            order_service.toggle_item_delivery(self.order.pk, other.items.get().pk)


class OrderPaymentAndDeleteTest(OrderLedgerTestBase):
    def setUp(self):
        super().setUp()
        self.order = order_service.create_order(SalesOrder, self.customer.pk, [line()], user=self.user)

    def test_payment_records_audit_row(self):
        order, payment = payment_service.record_order_payment(
            SalesOrder, self.order.pk, "180.004", method="upi", transaction_id="UTR1", user=self.user,
        )
        self.assertEqual(payment.amount, Decimal("180.00"))
        self.assertEqual(order.paid_amount, Decimal("180.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)
        self.assertEqual(payment.type, Payment.Type.RECEIVED)
        self.assertEqual(payment.reference_kind, Payment.ReferenceKind.SALES_ORDER)
        self.assertEqual(payment.reference_number, order.order_number)
        self.assertEqual(payment.party_name, "Acme Wires")
        self.assertEqual(payment.payment_method, "upi")
        self.assertEqual(payment.resolve_reference(), order)
        self.assertEqual(payment.resolve_party(), self.customer)
        self.assertEqual(self.balance(self.customer), Decimal("1000.00"))

    def test_full_payment_marks_paid(self):
        order, _ = payment_service.record_order_payment(SalesOrder, self.order.pk, "1180")
        self.assertEqual(order.outstanding_amount, Decimal("0.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))

    def test_invalid_amounts_rejected(self):
        for amount in ("0", "0.004", "-5", "1180.01", "abc"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    payment_service.record_order_payment(SalesOrder, self.order.pk, amount)
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(self.balance(self.customer), Decimal("1180.00"))

    def test_purchase_payment_is_made(self):
        po = order_service.create_order(PurchaseOrder, self.vendor.pk, [line(gst_rate="0")])
        _, payment = payment_service.record_order_payment(PurchaseOrder, po.pk, "400")
        self.assertEqual(payment.type, Payment.Type.MADE)
        self.assertEqual(payment.party_kind, Payment.PartyKind.VENDOR)
        self.assertEqual(self.balance(self.vendor), Decimal("600.00"))

    def test_payments_are_immutable(self):
        _, payment = payment_service.record_order_payment(SalesOrder, self.order.pk, "100")
        payment.amount = Decimal("1.00")
        with self.assertRaises(ValidationError):
            payment.save()

    def test_delete_reverses_only_unpaid_part(self):
        other = order_service.create_order(SalesOrder, self.customer.pk, [line(quantity="5")])
        payment_service.record_order_payment(SalesOrder, self.order.pk, "180")
        self.assertEqual(self.balance(self.customer), Decimal("1000.00") + other.total_amount)

        number = order_service.delete_order(SalesOrder, self.order.pk)

        self.assertEqual(number, self.order.order_number)
        self.assertEqual(self.balance(self.customer), other.total_amount)
        payment = Payment.objects.get()
        self.assertEqual(payment.reference_number, number)
        self.assertIsNone(payment.resolve_reference())

    def test_delete_missing(self):
        with self.assertRaises(NotFoundError):
            order_service.delete_order(SalesOrder, 31337)


class BalanceDeltaTest(OrderLedgerTestBase):
    def test_delta_is_floored_at_zero(self):
        apply_party_delta(Customer, self.customer.pk, Decimal("50.00"))
        apply_party_delta(Customer, self.customer.pk, Decimal("-80.00"))
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))

    def test_missing_party_is_a_noop(self):
        with self.assertLogs("erp.services.balance_service", level="WARNING"):
            self.assertEqual(apply_party_delta(Vendor, 987654, Decimal("10")), 0)

    def test_regular_save_never_writes_balance(self):
        order_service.create_order(SalesOrder, self.customer.pk, [line()])
        stale = Customer.objects.get(pk=self.customer.pk)
        apply_party_delta(Customer, self.customer.pk, Decimal("-180.00"))
        stale.phone = "9820000000"
        stale.save()
        self.assertEqual(self.balance(self.customer), Decimal("1000.00"))
