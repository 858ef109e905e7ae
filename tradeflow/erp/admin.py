# erp/admin.py
from django.contrib import admin, messages

from .models import (
    Customer, Vendor, SalesOrder, SalesOrderItem, PurchaseOrder, PurchaseOrderItem,
    Invoice, InvoiceItem, Payment, DocumentSequence,
)
from .services.balance_service import resync_all_balances


class TrackUserMixin:
    def save_model(self, request, obj, form, change):
        # track who created/updated
        if not change and not obj.created_by_id:
            obj.created_by = request.user
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Customer)
class CustomerAdmin(TrackUserMixin, admin.ModelAdmin):
    list_display = ("name", "phone", "billing_state", "gst_number", "outstanding_balance", "status")
    search_fields = ("name", "phone", "email", "gst_number")
    list_filter = ("status", "billing_state")
    readonly_fields = ("outstanding_balance", "created_at", "updated_at", "created_by", "updated_by")
    actions = ("action_resync_balances",)

    fieldsets = (
        ("Identity", {
            "fields": ("name", "contact_person", "phone", "email", "gst_number", "status"),
        }),
        ("Billing Address", {
            "fields": ("billing_street", "billing_city", "billing_state", "billing_pincode", "billing_country"),
        }),
        ("Delivery Address", {
            "fields": ("delivery_street", "delivery_city", "delivery_state", "delivery_pincode", "delivery_country"),
            "description": "Leave empty to deliver to the billing address.",
        }),
        ("Ledger", {
            "fields": ("outstanding_balance",),
        }),
        ("System", {
            "fields": ("created_at", "updated_at", "created_by", "updated_by"),
        }),
    )

    def action_resync_balances(self, request, queryset):
        """
        Recomputes every customer and vendor balance from order outstanding
        amounts (not just the selected rows).
        """
        result = resync_all_balances()
        drifted = sum(r["drifted"] for r in result.values())
        level = messages.WARNING if drifted else messages.SUCCESS
        self.message_user(request, f"Balances resynced; {drifted} party balance(s) corrected.", level=level)

    action_resync_balances.short_description = "Resync all party balances from orders"


@admin.register(Vendor)
class VendorAdmin(TrackUserMixin, admin.ModelAdmin):
    list_display = ("name", "phone", "state", "gst_number", "outstanding_balance", "status")
    search_fields = ("name", "phone", "email", "gst_number")
    list_filter = ("status",)
    readonly_fields = ("outstanding_balance", "created_at", "updated_at", "created_by", "updated_by")


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class SalesOrderItemInline(ReadOnlyInline):
    model = SalesOrderItem
    fields = ("description", "hsn_code", "quantity", "unit", "rate", "gst_rate",
              "amount", "gst_amount", "is_delivered", "delivered_date")
    readonly_fields = fields


@admin.register(SalesOrder)
class SalesOrderAdmin(admin.ModelAdmin):
    # edits go through the API so totals, invoices and balances stay in step
    list_display = ("order_number", "customer", "order_date", "total_amount",
                    "paid_amount", "outstanding_amount", "payment_status", "delivery_status")
    list_select_related = ("customer",)
    list_filter = ("payment_status", "delivery_status", ("order_date", admin.DateFieldListFilter))
    search_fields = ("order_number", "customer__name")
    readonly_fields = ("order_number", "subtotal", "total_gst", "total_amount", "paid_amount",
                       "outstanding_amount", "payment_status", "latest_invoice",
                       "created_at", "updated_at", "created_by", "updated_by")
    inlines = (SalesOrderItemInline,)

    def has_add_permission(self, request):
        return False


class PurchaseOrderItemInline(ReadOnlyInline):
    model = PurchaseOrderItem
    fields = ("description", "hsn_code", "quantity", "unit", "rate", "gst_rate", "amount", "gst_amount")
    readonly_fields = fields


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "vendor", "order_date", "status", "total_amount",
                    "paid_amount", "outstanding_amount", "payment_status")
    list_select_related = ("vendor",)
    list_filter = ("status", "payment_status")
    search_fields = ("order_number", "vendor__name")
    readonly_fields = ("order_number", "subtotal", "total_gst", "total_amount", "paid_amount",
                       "outstanding_amount", "payment_status",
                       "created_at", "updated_at", "created_by", "updated_by")
    inlines = (PurchaseOrderItemInline,)

    def has_add_permission(self, request):
        return False


class InvoiceItemInline(ReadOnlyInline):
    model = InvoiceItem
    readonly_fields = list(InvoiceItem.COMPUTED_FIELDS) + ["so_item"]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "sales_order", "billed_to_name", "invoice_date",
                    "sale_within_maharashtra", "total_amount")
    list_select_related = ("sales_order",)
    list_filter = ("sale_within_maharashtra",)
    search_fields = ("invoice_number", "billed_to_name", "sales_order__order_number")
    readonly_fields = ("invoice_number", "sales_order", "subtotal", "total_gst", "total_amount")
    inlines = (InvoiceItemInline,)

    def has_add_permission(self, request):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("payment_date", "type", "reference_number", "party_name", "amount", "payment_method")
    list_filter = ("type", "payment_method", ("payment_date", admin.DateFieldListFilter))
    search_fields = ("reference_number", "party_name", "transaction_id")

    # audit trail: read-only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(admin.ModelAdmin):
    list_display = ("series", "last_value", "updated_at")
    readonly_fields = ("updated_at",)
