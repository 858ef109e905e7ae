from decimal import Decimal

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.test import TestCase

from .exceptions import NotFoundError
from .models import Customer, SalesOrder, SalesOrderItem, Invoice, InvoiceItem
from .services import invoice_service, order_service
from .services.sync_service import sync_invoice_from_order, sync_order_from_invoice


class InvoiceTestBase(TestCase):
    def setUp(self):
        self.user = User.objects.create_superuser(username="admin", password="password", email="admin@example.com")
        self.customer = Customer.objects.create(
            name="Acme Wires", phone="9820012345", gst_number="27ABCDE1234F1Z5",
            billing_street="12 Mill Rd", billing_city="Mumbai",
            billing_state="Maharashtra", billing_pincode="400001",
        )
        self.order = order_service.create_order(SalesOrder, self.customer.pk, [
            {"description": "Cable 4mm", "quantity": "10", "rate": "100", "gst_rate": "18"},
            {"description": "Cable 6mm", "quantity": "5", "rate": "200", "gst_rate": "12"},
        ])
        self.a, self.b = list(self.order.items.all())

    def deliver(self, item):
        order, item = order_service.toggle_item_delivery(self.order.pk, item.pk)
        self.order = order
        return item

    def balance(self):
        self.customer.refresh_from_db()
        return self.customer.outstanding_balance

    def invoice_rows(self, invoice):
        return list(invoice.items.order_by("id").values("id", "so_item", *InvoiceItem.COMPUTED_FIELDS))


class GenerateInvoiceTest(InvoiceTestBase):
    def test_generate_from_delivered_items(self):
        self.deliver(self.a)
        invoice = invoice_service.generate_invoice(self.order.pk, user=self.user)

        self.assertRegex(invoice.invoice_number, r"^INV\d{8}\d{4}$")
        self.assertTrue(invoice.sale_within_maharashtra)
        self.assertEqual(invoice.po_number, self.order.order_number)
        self.assertEqual(invoice.po_date, self.order.order_date)

        line = invoice.items.get()
        self.assertEqual(line.so_item, self.a)
        self.assertEqual(line.uom, "METER")
        self.assertEqual(line.hsn_code, "8544")
        self.assertEqual(line.discount, Decimal("0.00"))
        self.assertEqual(line.taxable_value, Decimal("1000.00"))
        self.assertEqual(line.cgst_amount, Decimal("90.00"))
        self.assertEqual(line.sgst_amount, Decimal("90.00"))
        self.assertEqual(line.igst_amount, Decimal("0.00"))

        self.assertEqual(invoice.subtotal, Decimal("1000.00"))
        self.assertEqual(invoice.total_gst, Decimal("180.00"))
        self.assertEqual(invoice.total_amount, Decimal("1180.00"))

        self.order.refresh_from_db()
        self.assertEqual(self.order.latest_invoice, invoice)

    def test_snapshot_of_customer(self):
        self.deliver(self.a)
        invoice = invoice_service.generate_invoice(self.order.pk)
        self.assertEqual(invoice.billed_to_name, "Acme Wires")
        self.assertEqual(invoice.billed_to_address, "12 Mill Rd, Mumbai, Maharashtra, 400001")
        self.assertEqual(invoice.billed_to_state_code, "40")
        self.assertEqual(invoice.billed_to_gst_number, "27ABCDE1234F1Z5")
        self.assertEqual(invoice.delivery_at_address, invoice.billed_to_address)

        self.customer.name = "Acme Wires Pvt Ltd"
        self.customer.save()
        invoice.refresh_from_db()
        self.assertEqual(invoice.billed_to_name, "Acme Wires")

    def test_override_jurisdiction(self):
        self.deliver(self.a)
        invoice = invoice_service.generate_invoice(self.order.pk, sale_within_maharashtra=False)
        line = invoice.items.get()
        self.assertFalse(invoice.sale_within_maharashtra)
        self.assertEqual(line.igst_rate, Decimal("18.00"))
        self.assertEqual(line.igst_amount, Decimal("180.00"))
        self.assertEqual(line.cgst_amount + line.sgst_amount, Decimal("0.00"))

    def test_out_of_state_customer_defaults_to_igst(self):
        self.customer.billing_state = "Karnataka"
        self.customer.save()
        self.deliver(self.a)
        invoice = invoice_service.generate_invoice(self.order.pk)
        self.assertFalse(invoice.sale_within_maharashtra)

    def test_nothing_delivered(self):
        with self.assertRaisesMessage(ValidationError, "No delivered items found"):
            invoice_service.generate_invoice(self.order.pk)
        self.assertFalse(Invoice.objects.exists())

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            invoice_service.generate_invoice(123456)

    def test_generation_leaves_order_money_alone(self):
        self.deliver(self.a)
        invoice_service.generate_invoice(self.order.pk)
        self.order.refresh_from_db()
        self.assertEqual(self.order.total_amount, Decimal("2300.00"))
        self.assertEqual(self.balance(), Decimal("2300.00"))


class OrderToInvoiceSyncTest(InvoiceTestBase):
    def setUp(self):
        super().setUp()
        self.deliver(self.a)
        self.invoice = invoice_service.generate_invoice(self.order.pk)

    def test_no_invoice_is_noop(self):
        other = order_service.create_order(SalesOrder, self.customer.pk, [
            {"description": "Lug", "quantity": "1", "rate": "10"},
        ])
        self.assertIsNone(sync_invoice_from_order(other))

    def test_newly_delivered_item_is_appended(self):
        self.deliver(self.b)
        rows = self.invoice_rows(self.invoice)
        self.assertEqual([r["so_item"] for r in rows], [self.a.pk, self.b.pk])
        self.assertEqual(rows[1]["cgst_amount"], Decimal("60.00"))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.total_amount, Decimal("2300.00"))

    def test_second_sync_changes_nothing(self):
        self.deliver(self.b)
        self.invoice.refresh_from_db()
        before_rows = self.invoice_rows(self.invoice)
        before_stamp = self.invoice.updated_at

        self.assertIs(sync_invoice_from_order(self.order), False)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice_rows(self.invoice), before_rows)
        self.assertEqual(self.invoice.updated_at, before_stamp)

    def test_undelivered_item_is_dropped(self):
        self.deliver(self.b)
        self.deliver(self.a)
        rows = self.invoice_rows(self.invoice)
        self.assertEqual([r["so_item"] for r in rows], [self.b.pk])
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.total_amount, Decimal("1120.00"))

    def test_order_edit_flows_into_invoice(self):
        order_service.update_order(SalesOrder, self.order.pk, items=[
            {"id": self.a.pk, "description": "Cable 4mm", "quantity": "10", "rate": "110", "gst_rate": "18"},
            {"id": self.b.pk, "description": "Cable 6mm", "quantity": "5", "rate": "200", "gst_rate": "12"},
        ])
        line = self.invoice.items.get()
        self.assertEqual(line.rate, Decimal("110"))
        self.assertEqual(line.total_value, Decimal("1100.00"))
        self.assertEqual(line.cgst_amount, Decimal("99.00"))

    def test_existing_discount_is_kept(self):
        InvoiceItem.objects.filter(so_item=self.a).update(discount=Decimal("100.00"))

        self.assertIs(sync_invoice_from_order(self.order), True)

        line = self.invoice.items.get()
        self.assertEqual(line.discount, Decimal("100.00"))
        self.assertEqual(line.taxable_value, Decimal("900.00"))
        self.assertEqual(line.cgst_amount, Decimal("81.00"))

    def test_kept_discount_is_capped_when_line_shrinks(self):
        InvoiceItem.objects.filter(so_item=self.a).update(discount=Decimal("900.00"))

        order_service.update_order(SalesOrder, self.order.pk, items=[
            {"id": self.a.pk, "description": "Cable 4mm", "quantity": "1", "rate": "50", "gst_rate": "18"},
            {"id": self.b.pk, "description": "Cable 6mm", "quantity": "5", "rate": "200", "gst_rate": "12"},
        ])

        line = self.invoice.items.get()
        self.assertEqual(line.total_value, Decimal("50.00"))
        self.assertEqual(line.discount, Decimal("50.00"))
        self.assertEqual(line.taxable_value, Decimal("0.00"))
        self.assertEqual(line.cgst_amount, Decimal("0.00"))
        self.assertEqual(line.sgst_amount, Decimal("0.00"))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.subtotal, Decimal("0.00"))
        self.assertEqual(self.invoice.total_amount, Decimal("0.00"))

    def test_latest_invoice_is_the_target(self):
        newer = invoice_service.generate_invoice(self.order.pk)
        self.deliver(self.b)
        self.assertEqual(self.invoice.items.count(), 1)
        self.assertEqual(newer.items.count(), 2)


class InvoiceToOrderSyncTest(InvoiceTestBase):
    def setUp(self):
        super().setUp()
        self.deliver(self.a)
        self.invoice = invoice_service.generate_invoice(self.order.pk)

    def edited_lines(self, rate="90", discount="50"):
        return [
            {"so_item": self.a.pk, "description": "Cable 4mm", "quantity": "10",
             "rate": rate, "discount": discount, "gst_rate": "18"},
        ]

    def test_invoice_edit_is_recomputed_and_mirrored(self):
        invoice = invoice_service.update_invoice(self.invoice.pk, items=self.edited_lines())

        line = invoice.items.get()
        self.assertEqual(line.total_value, Decimal("900.00"))
        self.assertEqual(line.taxable_value, Decimal("850.00"))
        self.assertEqual(line.cgst_amount, Decimal("76.50"))
        self.assertEqual(invoice.total_amount, Decimal("1003.00"))

        self.a.refresh_from_db()
        self.assertEqual(self.a.rate, Decimal("90"))
        self.assertEqual(self.a.amount, Decimal("850.00"))
        self.assertEqual(self.a.gst_amount, Decimal("153.00"))

        self.b.refresh_from_db()
        self.assertEqual(self.b.amount, Decimal("1000.00"))

        self.order.refresh_from_db()
        self.assertEqual(self.order.subtotal, Decimal("1850.00"))
        self.assertEqual(self.order.total_gst, Decimal("273.00"))
        self.assertEqual(self.order.total_amount, Decimal("2123.00"))
        self.assertEqual(self.order.outstanding_amount, Decimal("2123.00"))
        self.assertEqual(self.balance(), Decimal("2123.00"))

    def test_undelivered_items_are_not_overwritten(self):
        lines = self.edited_lines() + [
            {"so_item": self.b.pk, "description": "Cable 6mm", "quantity": "5", "rate": "1", "gst_rate": "12"},
        ]
        invoice_service.update_invoice(self.invoice.pk, items=lines)
        self.b.refresh_from_db()
        self.assertEqual(self.b.rate, Decimal("200"))
        self.assertEqual(self.b.amount, Decimal("1000.00"))

    def test_stored_zero_is_not_treated_as_unset(self):
        SalesOrderItem.objects.filter(pk=self.b.pk).update(amount=Decimal("0.00"), gst_amount=Decimal("0.00"))

        invoice_service.update_invoice(self.invoice.pk, items=self.edited_lines())

        self.b.refresh_from_db()
        self.assertEqual(self.b.amount, Decimal("0.00"))
        self.assertEqual(self.b.gst_amount, Decimal("0.00"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.total_amount, Decimal("1003.00"))
        self.assertEqual(self.balance(), Decimal("1003.00"))

    def test_unset_amounts_are_filled(self):
        SalesOrderItem.objects.filter(pk=self.b.pk).update(amount=None, gst_amount=None)

        invoice_service.update_invoice(self.invoice.pk, items=self.edited_lines())

        self.b.refresh_from_db()
        self.assertEqual(self.b.amount, Decimal("1000.00"))
        self.assertEqual(self.b.gst_amount, Decimal("120.00"))

    def test_reverse_sync_is_idempotent(self):
        invoice = invoice_service.update_invoice(self.invoice.pk, items=self.edited_lines())
        self.order.refresh_from_db()
        stamp = self.order.updated_at

        sync_order_from_invoice(invoice)

        self.order.refresh_from_db()
        self.assertEqual(self.order.updated_at, stamp)
        self.assertEqual(self.balance(), Decimal("2123.00"))

    def test_client_totals_are_ignored(self):
        lines = self.edited_lines()
        lines[0]["taxable_value"] = "1.00"
        invoice = invoice_service.update_invoice(self.invoice.pk, items=lines, subtotal=Decimal("1.00"))
        invoice.refresh_from_db()
        self.assertEqual(invoice.subtotal, Decimal("850.00"))

    def test_jurisdiction_switch_recomputes_split(self):
        invoice = invoice_service.update_invoice(self.invoice.pk, sale_within_maharashtra=False)
        line = invoice.items.get()
        self.assertEqual(line.cgst_amount, Decimal("0.00"))
        self.assertEqual(line.igst_amount, Decimal("180.00"))
        self.assertEqual(invoice.total_amount, Decimal("1180.00"))

    def test_discount_over_line_value_rejected(self):
        with self.assertRaises(ValidationError):
            invoice_service.update_invoice(self.invoice.pk, items=self.edited_lines(discount="5000"))

    def test_orphaned_invoice_is_skipped(self):
        order_service.delete_order(SalesOrder, self.order.pk)
        with self.assertLogs("erp.services.sync_service", level="WARNING"):
            invoice = invoice_service.update_invoice(self.invoice.pk, special_remark="Order cancelled")
        self.assertIsNone(invoice.sales_order_id)
        self.assertEqual(invoice.special_remark, "Order cancelled")


class InvoiceDeleteAndLookupTest(InvoiceTestBase):
    def setUp(self):
        super().setUp()
        self.deliver(self.a)
        self.first = invoice_service.generate_invoice(self.order.pk)
        self.second = invoice_service.generate_invoice(self.order.pk)

    def test_lookup_returns_newest(self):
        self.assertEqual(invoice_service.latest_invoice_for_order(self.order.pk), self.second)
        with self.assertRaises(NotFoundError):
            invoice_service.latest_invoice_for_order(999999)

    def test_delete_falls_back_to_previous_invoice(self):
        invoice_service.delete_invoice(self.second.pk)
        self.order.refresh_from_db()
        self.assertEqual(self.order.latest_invoice_id, self.first.pk)

        invoice_service.delete_invoice(self.first.pk)
        self.order.refresh_from_db()
        self.assertIsNone(self.order.latest_invoice_id)
        self.assertIsNone(invoice_service.latest_invoice_for_order(self.order.pk))

    def test_delete_older_keeps_pointer(self):
        invoice_service.delete_invoice(self.first.pk)
        self.order.refresh_from_db()
        self.assertEqual(self.order.latest_invoice_id, self.second.pk)

    def test_delete_touches_only_invoice(self):
        number = invoice_service.delete_invoice(self.second.pk)
        self.assertEqual(number, self.second.invoice_number)
        self.order.refresh_from_db()
        self.assertEqual(self.order.total_amount, Decimal("2300.00"))
        self.assertEqual(self.balance(), Decimal("2300.00"))
        with self.assertRaises(NotFoundError):
            invoice_service.delete_invoice(self.second.pk)
