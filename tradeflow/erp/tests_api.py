import json
from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase, Client
from django.urls import reverse

from .models import Customer, Vendor, SalesOrder, Invoice, Payment


class ApiTestBase(TestCase):
    def setUp(self):
        self.user = User.objects.create_superuser(username="admin", password="password", email="admin@example.com")
        self.client = Client()
        self.client.login(username="admin", password="password")
        self.customer = Customer.objects.create(
            name="Acme Wires", billing_state="Maharashtra", billing_pincode="400001",
        )
        self.vendor = Vendor.objects.create(name="Copper Mills", state="Gujarat")

    def post_json(self, url, payload=None):
        return self.client.post(url, data=json.dumps(payload or {}), content_type="application/json")

    def put_json(self, url, payload):
        return self.client.put(url, data=json.dumps(payload), content_type="application/json")

    def create_sales_order(self, items=None):
        items = items or [{"description": "Cable 4mm", "quantity": "10", "rate": "100", "gst_rate": "18"}]
        res = self.post_json(reverse("sales_orders_api"), {"customer": self.customer.pk, "items": items})
        self.assertEqual(res.status_code, 201, res.content)
        return res.json()["data"]


class AuthTest(ApiTestBase):
    def test_anonymous_is_redirected_to_login(self):
        self.client.logout()
        res = self.client.get(reverse("customers_api"))
        self.assertEqual(res.status_code, 302)
        self.assertIn("/admin/login/", res["Location"])


class PartyApiTest(ApiTestBase):
    def test_create_and_list_customers(self):
        res = self.post_json(reverse("customers_api"), {
            "name": "Sharma Traders", "phone": "9820000000", "billing_state": "Gujarat",
        })
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["data"]["status"], "active")
        self.assertEqual(body["data"]["outstanding_balance"], "0.00")
        self.assertEqual(body["data"]["billing_address"]["country"], "India")

        res = self.client.get(reverse("customers_api"), {"search": "sharma"})
        names = [c["name"] for c in res.json()["data"]]
        self.assertEqual(names, ["Sharma Traders"])

    def test_missing_name_is_400(self):
        res = self.post_json(reverse("customers_api"), {"phone": "1"})
        self.assertEqual(res.status_code, 400)
        body = res.json()
        self.assertFalse(body["ok"])
        self.assertIn("name", body["errors"])

    def test_partial_update_keeps_other_fields(self):
        url = reverse("customer_api", args=[self.customer.pk])
        res = self.put_json(url, {"phone": "9811111111"})
        self.assertEqual(res.status_code, 200, res.content)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.phone, "9811111111")
        self.assertEqual(self.customer.billing_state, "Maharashtra")

    def test_balance_is_not_writable(self):
        url = reverse("customer_api", args=[self.customer.pk])
        self.put_json(url, {"outstanding_balance": "5000"})
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))

    def test_customer_with_orders_cannot_be_deleted(self):
        self.create_sales_order()
        res = self.client.delete(reverse("customer_api", args=[self.customer.pk]))
        self.assertEqual(res.status_code, 400)
        self.assertTrue(Customer.objects.filter(pk=self.customer.pk).exists())

    def test_delete_and_404(self):
        url = reverse("vendor_api", args=[self.vendor.pk])
        self.assertEqual(self.client.delete(url).status_code, 200)
        res = self.client.get(url)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["message"], "Vendor not found")


class SalesOrderApiTest(ApiTestBase):
    def test_create_order(self):
        data = self.create_sales_order()
        self.assertTrue(data["order_number"].startswith("SO"))
        self.assertEqual(data["total_amount"], "1180.00")
        self.assertEqual(data["payment_status"], "pending")
        self.assertEqual(data["customer"]["name"], "Acme Wires")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("1180.00"))

    def test_bad_line_reports_field(self):
        res = self.post_json(reverse("sales_orders_api"), {
            "customer": self.customer.pk,
            "items": [{"description": "Cable", "quantity": "-1", "rate": "10"}],
        })
        self.assertEqual(res.status_code, 400)
        self.assertIn("items.0.quantity", res.json()["errors"])

    def test_unknown_customer(self):
        res = self.post_json(reverse("sales_orders_api"), {"customer": 98765, "items": []})
        self.assertEqual(res.status_code, 400)
        self.assertIn("customer", res.json()["errors"])

    def test_malformed_json(self):
        res = self.client.post(reverse("sales_orders_api"), data="{nope", content_type="application/json")
        self.assertEqual(res.status_code, 400)

    def test_list_filters(self):
        first = self.create_sales_order()
        self.create_sales_order()
        self.post_json(reverse("sales_order_payment_api", args=[first["id"]]), {"amount": "100"})

        res = self.client.get(reverse("sales_orders_api"), {"status": "partial"})
        self.assertEqual([o["id"] for o in res.json()["data"]], [first["id"]])

        res = self.client.get(reverse("sales_orders_api"), {"search": first["order_number"]})
        self.assertEqual([o["id"] for o in res.json()["data"]], [first["id"]])

        res = self.client.get(reverse("sales_orders_api"), {"search": "acme"})
        self.assertEqual(len(res.json()["data"]), 2)

    def test_edit_order(self):
        data = self.create_sales_order()
        url = reverse("sales_order_api", args=[data["id"]])
        res = self.put_json(url, {
            "notes": "Rush",
            "items": [{"id": data["items"][0]["id"], "description": "Cable 4mm", "quantity": "5", "rate": "100"}],
        })
        self.assertEqual(res.status_code, 200, res.content)
        body = res.json()["data"]
        self.assertEqual(body["notes"], "Rush")
        self.assertEqual(body["total_amount"], "590.00")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("590.00"))

    def test_order_payment(self):
        data = self.create_sales_order()
        url = reverse("sales_order_payment_api", args=[data["id"]])

        res = self.post_json(url, {"amount": "2000"})
        self.assertEqual(res.status_code, 400)

        res = self.post_json(url, {"amount": "1180", "payment_method": "cash"})
        self.assertEqual(res.status_code, 200, res.content)
        body = res.json()
        self.assertEqual(body["data"]["payment_status"], "paid")
        self.assertEqual(body["payment"]["amount"], "1180.00")
        self.assertEqual(body["payment"]["payment_method"], "cash")

    def test_delete_order(self):
        data = self.create_sales_order()
        res = self.client.delete(reverse("sales_order_api", args=[data["id"]]))
        self.assertEqual(res.status_code, 200)
        self.assertFalse(SalesOrder.objects.exists())
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))

    def test_missing_order_is_404(self):
        self.assertEqual(self.client.get(reverse("sales_order_api", args=[4040])).status_code, 404)
        res = self.put_json(reverse("sales_order_api", args=[4040]), {"notes": "x"})
        self.assertEqual(res.status_code, 404)


class InvoiceApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.order = self.create_sales_order()
        self.item_id = self.order["items"][0]["id"]

    def deliver(self):
        url = reverse("sales_order_item_delivery_api", args=[self.order["id"], self.item_id])
        res = self.client.post(url)
        self.assertEqual(res.status_code, 200, res.content)
        return res.json()["data"]

    def test_generate_requires_delivery(self):
        res = self.post_json(reverse("invoice_generate_api", args=[self.order["id"]]))
        self.assertEqual(res.status_code, 400)
        self.assertIn("No delivered items found", res.json()["message"])

    def test_generate_edit_and_lookup(self):
        order = self.deliver()
        self.assertEqual(order["delivery_status"], "delivered")

        res = self.post_json(reverse("invoice_generate_api", args=[self.order["id"]]))
        self.assertEqual(res.status_code, 201, res.content)
        invoice = res.json()["data"]
        self.assertTrue(invoice["sale_within_maharashtra"])
        self.assertEqual(invoice["billed_to"]["state_code"], "40")
        self.assertEqual(invoice["total_amount"], "1180.00")

        res = self.client.get(reverse("invoice_by_order_api", args=[self.order["id"]]))
        self.assertEqual(res.json()["data"]["id"], invoice["id"])

        res = self.put_json(reverse("invoice_api", args=[invoice["id"]]), {
            "transporter_name": "VRL Logistics",
            "items": [{
                "so_item": self.item_id, "description": "Cable 4mm", "quantity": "10",
                "rate": "100", "discount": "100", "gst_rate": "18",
            }],
        })
        self.assertEqual(res.status_code, 200, res.content)
        body = res.json()["data"]
        self.assertEqual(body["transport"]["transporter_name"], "VRL Logistics")
        self.assertEqual(body["total_amount"], "1062.00")
        self.assertTrue(body["sale_within_maharashtra"])

        order = self.client.get(reverse("sales_order_api", args=[self.order["id"]])).json()["data"]
        self.assertEqual(order["total_amount"], "1062.00")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("1062.00"))

        res = self.client.get(reverse("invoices_api"), {"search": "acme"})
        self.assertEqual(len(res.json()["data"]), 1)

    def test_generate_with_string_override(self):
        self.deliver()
        res = self.post_json(
            reverse("invoice_generate_api", args=[self.order["id"]]), {"sale_within_maharashtra": "false"},
        )
        self.assertEqual(res.status_code, 201, res.content)
        invoice = res.json()["data"]
        self.assertFalse(invoice["sale_within_maharashtra"])
        self.assertEqual(invoice["items"][0]["igst_amount"], "180.00")
        self.assertEqual(invoice["items"][0]["cgst_amount"], "0.00")

    def test_delete_invoice(self):
        self.deliver()
        invoice = self.post_json(reverse("invoice_generate_api", args=[self.order["id"]])).json()["data"]
        res = self.client.delete(reverse("invoice_api", args=[invoice["id"]]))
        self.assertEqual(res.status_code, 200)
        self.assertFalse(Invoice.objects.exists())
        res = self.client.get(reverse("invoice_by_order_api", args=[self.order["id"]]))
        self.assertIsNone(res.json()["data"])


class PaymentApiTest(ApiTestBase):
    def test_customer_payment_and_audit_list(self):
        self.create_sales_order()
        self.create_sales_order()

        res = self.post_json(reverse("customer_payment_api", args=[self.customer.pk]), {"amount": "1500"})
        self.assertEqual(res.status_code, 200, res.content)
        body = res.json()
        self.assertEqual(body["data"]["outstanding_balance"], "860.00")
        self.assertEqual(len(body["updated_orders"]), 2)
        self.assertEqual([p["amount"] for p in body["payments"]], ["1180.00", "320.00"])

        res = self.client.get(reverse("payments_api"), {"type": "received"})
        self.assertEqual(len(res.json()["data"]), 2)
        res = self.client.get(reverse("payments_api"), {"type": "made"})
        self.assertEqual(res.json()["data"], [])

    def test_overpayment_is_rejected(self):
        self.create_sales_order()
        res = self.post_json(reverse("customer_payment_api", args=[self.customer.pk]), {"amount": "5000"})
        self.assertEqual(res.status_code, 400)
        self.assertIn("amount", res.json()["errors"])
        self.assertFalse(Payment.objects.exists())

    def test_vendor_orders_and_payment(self):
        res = self.post_json(reverse("purchase_orders_api"), {
            "vendor": self.vendor.pk,
            "items": [{"description": "Copper rod", "quantity": "100", "rate": "5", "gst_rate": "0"}],
        })
        self.assertEqual(res.status_code, 201, res.content)
        self.assertEqual(res.json()["data"]["status"], "pending")

        res = self.client.get(reverse("vendor_orders_api", args=[self.vendor.pk]))
        self.assertEqual(len(res.json()["data"]), 1)

        res = self.post_json(reverse("vendor_payment_api", args=[self.vendor.pk]), {"amount": "500"})
        self.assertEqual(res.status_code, 200, res.content)
        self.assertEqual(res.json()["payments"][0]["type"], "made")

        res = self.client.get(reverse("vendor_orders_api", args=[self.vendor.pk]))
        self.assertEqual(res.json()["data"], [])

    def test_resync_endpoint(self):
        self.create_sales_order()
        Customer.objects.filter(pk=self.customer.pk).update(outstanding_balance=Decimal("1.00"))

        res = self.client.post(reverse("balances_resync_api"))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["customer"]["drifted"], 1)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("1180.00"))

    def test_resync_requires_post(self):
        self.assertEqual(self.client.get(reverse("balances_resync_api")).status_code, 405)
