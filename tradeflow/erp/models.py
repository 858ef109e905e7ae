# erp/models.py
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from .services.money import (
    ZERO, money_q, gst_rate_or_default, invoice_totals, order_totals,
    outstanding_for, payment_status_for,
)

# --------------------------------
# Common field presets
# --------------------------------
DECIMAL_12_2 = {"max_digits": 12, "decimal_places": 2}
DECIMAL_18_6 = {"max_digits": 18, "decimal_places": 6}  # qty, rates
PERCENT = {"max_digits": 5, "decimal_places": 2}
HALF_PERCENT = {"max_digits": 6, "decimal_places": 3}  # CGST/SGST carry half of a 2-place rate


# --------------------------------
# Core mixins
# --------------------------------
class TimeStampedBy(models.Model):
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="%(class)s_created"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="%(class)s_updated"
    )

    class Meta:
        abstract = True


class DocumentSequence(models.Model):
    """
    Last issued number per document series (SO / PO / INV).
    Bumped with an F() update, see services.numbering.
    """
    series = models.CharField(max_length=10, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.series} @ {self.last_value}"


# --------------------------------
# Parties
# --------------------------------
class PartyBase(TimeStampedBy):
    """
    Shared fields of Customers and Vendors.

    outstanding_balance is a denormalized running total. It is only ever
    changed by services.balance_service (atomic deltas or a full resync),
    so a regular save() never writes it back.
    """
    class Status(models.TextChoices):
        ACTIVE   = "active",   "Active"
        INACTIVE = "inactive", "Inactive"

    name           = models.CharField(max_length=255, db_index=True)
    email          = models.EmailField(blank=True, default="")
    phone          = models.CharField(max_length=50, blank=True, default="")
    contact_person = models.CharField(max_length=255, blank=True, default="")
    gst_number     = models.CharField(max_length=50, blank=True, default="")
    outstanding_balance = models.DecimalField(**DECIMAL_12_2, default=ZERO, editable=False)
    status         = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    class Meta:
        abstract = True
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self._state.adding and kwargs.get("update_fields") is None:
            kwargs["update_fields"] = [
                f.name for f in self._meta.concrete_fields
                if not f.primary_key and f.name != "outstanding_balance"
            ]
        super().save(*args, **kwargs)


def _join_address(*parts):
    return ", ".join(p for p in parts if p)


class Customer(PartyBase):
    billing_street   = models.CharField(max_length=255, blank=True, default="")
    billing_city     = models.CharField(max_length=100, blank=True, default="")
    billing_state    = models.CharField(max_length=100, blank=True, default="")
    billing_pincode  = models.CharField(max_length=20, blank=True, default="")
    billing_country  = models.CharField(max_length=100, blank=True, default="India")

    delivery_street  = models.CharField(max_length=255, blank=True, default="")
    delivery_city    = models.CharField(max_length=100, blank=True, default="")
    delivery_state   = models.CharField(max_length=100, blank=True, default="")
    delivery_pincode = models.CharField(max_length=20, blank=True, default="")
    delivery_country = models.CharField(max_length=100, blank=True, default="India")

    class Meta(PartyBase.Meta):
        indexes = [models.Index(fields=["status", "name"], name="erp_cust_status_name_idx")]

    @property
    def billing_address(self) -> str:
        return _join_address(self.billing_street, self.billing_city, self.billing_state, self.billing_pincode)

    @property
    def delivery_address(self) -> str:
        """Falls back to the billing address when no delivery address is on file."""
        text = _join_address(self.delivery_street, self.delivery_city, self.delivery_state, self.delivery_pincode)
        return text or self.billing_address


class Vendor(PartyBase):
    street  = models.CharField(max_length=255, blank=True, default="")
    city    = models.CharField(max_length=100, blank=True, default="")
    state   = models.CharField(max_length=100, blank=True, default="")
    pincode = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=100, blank=True, default="India")

    class Meta(PartyBase.Meta):
        indexes = [models.Index(fields=["status", "name"], name="erp_vend_status_name_idx")]

    @property
    def address(self) -> str:
        return _join_address(self.street, self.city, self.state, self.pincode)


# --------------------------------
# Orders
# --------------------------------
class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PARTIAL = "partial", "Partial"
    PAID    = "paid",    "Paid"


class OrderBase(TimeStampedBy):
    """
    Money state shared by sales and purchase orders.

    outstanding_amount and payment_status are never set by callers: save()
    derives them from total_amount and paid_amount every time.
    """
    SERIES = ""
    PARTY_FIELD = ""

    order_number       = models.CharField(max_length=30, unique=True, blank=True)
    order_date         = models.DateTimeField(default=timezone.now, db_index=True)

    subtotal           = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    total_gst          = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    total_amount       = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    paid_amount        = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    outstanding_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    payment_status     = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True,
    )

    notes = models.TextField(blank=True, default="")

    DERIVED_FIELDS = ("outstanding_amount", "payment_status", "updated_at")

    class Meta:
        abstract = True
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.order_number or f"{self.SERIES} #{self.pk or 'new'}"

    @property
    def party(self):
        return getattr(self, self.PARTY_FIELD)

    @property
    def party_id(self):
        return getattr(self, f"{self.PARTY_FIELD}_id")

    # ---- totals
    def recompute_totals(self):
        """Sum the stored line values. Lines are priced by the services layer."""
        self.subtotal, self.total_gst, self.total_amount = order_totals(self.items.all())

    def refresh_payment_state(self):
        self.outstanding_amount = outstanding_for(self.total_amount, self.paid_amount)
        self.payment_status = payment_status_for(self.total_amount, self.paid_amount)

    def _derived_fields(self):
        return self.DERIVED_FIELDS

    def save(self, *args, **kwargs):
        if not self.order_number:
            from .services.numbering import next_document_number
            self.order_number = next_document_number(self.SERIES)
        self.refresh_payment_state()

        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | set(self._derived_fields())
        super().save(*args, **kwargs)


class OrderItemBase(models.Model):
    description = models.CharField(max_length=255)
    quantity    = models.DecimalField(**DECIMAL_18_6, validators=[MinValueValidator(0)])
    rate        = models.DecimalField(**DECIMAL_18_6, validators=[MinValueValidator(0)])
    # amount / gst_amount stay NULL until priced; NULL means "unset", 0 is a real value
    amount      = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)
    gst_rate    = models.DecimalField(**PERCENT, default=Decimal("18.00"))
    gst_amount  = models.DecimalField(**DECIMAL_12_2, null=True, blank=True)

    class Meta:
        abstract = True
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity or 0} x {self.description}"

    def fill_missing_amounts(self) -> bool:
        """Price an unpriced line without touching values already stored."""
        changed = False
        if self.amount is None:
            self.amount = money_q((self.quantity or ZERO) * (self.rate or ZERO))
            changed = True
        if self.gst_amount is None:
            self.gst_amount = money_q(self.amount * gst_rate_or_default(self.gst_rate) / Decimal("100"))
            changed = True
        return changed


class SalesOrder(OrderBase):
    SERIES = "SO"
    PARTY_FIELD = "customer"

    class DeliveryStatus(models.TextChoices):
        PENDING    = "pending",    "Pending"
        PROCESSING = "processing", "Processing"
        DISPATCHED = "dispatched", "Dispatched"
        DELIVERED  = "delivered",  "Delivered"

    customer        = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="sales_orders")
    delivery_date   = models.DateField(null=True, blank=True)
    delivery_status = models.CharField(
        max_length=12, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING, db_index=True,
    )
    latest_invoice  = models.ForeignKey(
        "Invoice", null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )

    class Meta(OrderBase.Meta):
        indexes = [
            models.Index(fields=["customer", "payment_status", "created_at"], name="erp_so_open_orders_idx"),
        ]

    def refresh_delivery_status(self):
        """
        All lines delivered -> delivered; some -> at least dispatched.
        Never downgrades, and none delivered leaves the status alone.
        """
        if self.pk is None:
            return
        flags = list(self.items.values_list("is_delivered", flat=True))
        if flags and all(flags):
            self.delivery_status = self.DeliveryStatus.DELIVERED
        elif any(flags) and self.delivery_status not in (
            self.DeliveryStatus.DISPATCHED, self.DeliveryStatus.DELIVERED,
        ):
            self.delivery_status = self.DeliveryStatus.DISPATCHED

    def _derived_fields(self):
        return self.DERIVED_FIELDS + ("delivery_status",)

    def save(self, *args, **kwargs):
        self.refresh_delivery_status()
        super().save(*args, **kwargs)

    def delivered_items(self):
        return self.items.filter(is_delivered=True)


class SalesOrderItem(OrderItemBase):
    sales_order        = models.ForeignKey(SalesOrder, on_delete=models.CASCADE, related_name="items")
    hsn_code           = models.CharField(max_length=20, blank=True, default="8544")
    unit               = models.CharField(max_length=20, blank=True, default="Mtr")
    is_delivered       = models.BooleanField(default=False, db_index=True)
    delivered_date     = models.DateTimeField(null=True, blank=True)
    delivered_quantity = models.DecimalField(**DECIMAL_18_6, default=Decimal("0"))

    class Meta(OrderItemBase.Meta):
        pass

    def set_delivered(self, delivered: bool):
        self.is_delivered = delivered
        self.delivered_date = timezone.now() if delivered else None
        self.delivered_quantity = self.quantity if delivered else Decimal("0")


class PurchaseOrder(OrderBase):
    SERIES = "PO"
    PARTY_FIELD = "vendor"

    class Status(models.TextChoices):
        PENDING   = "pending",   "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        RECEIVED  = "received",  "Received"
        CANCELLED = "cancelled", "Cancelled"

    vendor        = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="purchase_orders")
    expected_date = models.DateField(null=True, blank=True)
    status        = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)

    class Meta(OrderBase.Meta):
        indexes = [
            models.Index(fields=["vendor", "payment_status", "created_at"], name="erp_po_open_orders_idx"),
        ]


class PurchaseOrderItem(OrderItemBase):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name="items")
    hsn_code       = models.CharField(max_length=20, blank=True, default="")
    unit           = models.CharField(max_length=20, blank=True, default="Kg")

    class Meta(OrderItemBase.Meta):
        pass


# ----------------------------
# INVOICE
# ----------------------------
class Invoice(TimeStampedBy):
    """
    Tax invoice projected from the delivered lines of a sales order.
    Party details are snapshotted at generation time.
    """
    SERIES = "INV"

    invoice_number = models.CharField(max_length=30, unique=True, blank=True)
    sales_order    = models.ForeignKey(
        SalesOrder, null=True, blank=True, on_delete=models.SET_NULL, related_name="invoices",
    )
    invoice_date   = models.DateTimeField(default=timezone.now)
    date_of_supply = models.DateTimeField(default=timezone.now)
    po_number      = models.CharField(max_length=50, blank=True, default="")
    po_date        = models.DateTimeField(null=True, blank=True)
    sale_within_maharashtra = models.BooleanField(default=False)

    transporter_name = models.CharField(max_length=255, blank=True, default="")
    lr_no            = models.CharField(max_length=50, blank=True, default="")
    vehicle_no       = models.CharField(max_length=50, blank=True, default="")
    lr_date          = models.DateField(null=True, blank=True)

    billed_to_name       = models.CharField(max_length=255, blank=True, default="")
    billed_to_address    = models.TextField(blank=True, default="")
    billed_to_state_code = models.CharField(max_length=10, blank=True, default="")
    billed_to_gst_number = models.CharField(max_length=50, blank=True, default="")
    billed_to_contact    = models.CharField(max_length=50, blank=True, default="")

    delivery_at_name    = models.CharField(max_length=255, blank=True, default="")
    delivery_at_address = models.TextField(blank=True, default="")
    delivery_at_contact = models.CharField(max_length=50, blank=True, default="")

    subtotal     = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    total_gst    = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    total_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)

    freight_charges   = models.CharField(max_length=50, blank=True, default="nil")
    packing_charges   = models.CharField(max_length=50, blank=True, default="nil")
    insurance_charges = models.CharField(max_length=50, blank=True, default="nil")
    other_charges     = models.CharField(max_length=50, blank=True, default="nil")
    special_remark    = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["sales_order", "created_at"], name="erp_inv_order_created_idx")]

    def __str__(self):
        return f"INV {self.invoice_number or 'new'}"

    def recompute_totals(self):
        self.subtotal, self.total_gst, self.total_amount = invoice_totals(self.items.all())

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            # assign once
            from .services.numbering import next_document_number
            self.invoice_number = next_document_number(self.SERIES)
        super().save(*args, **kwargs)


class InvoiceItem(models.Model):
    # values recomputed by the tax calculator; compared field-by-field when syncing
    COMPUTED_FIELDS = (
        "description", "hsn_code", "uom", "quantity", "rate", "total_value", "discount",
        "taxable_value", "gst_rate", "cgst_rate", "cgst_amount", "sgst_rate", "sgst_amount",
        "igst_rate", "igst_amount",
    )

    invoice     = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    so_item     = models.ForeignKey(
        SalesOrderItem, null=True, blank=True, on_delete=models.SET_NULL, related_name="invoice_lines",
    )
    description = models.CharField(max_length=255)
    hsn_code    = models.CharField(max_length=20, blank=True, default="8544")
    uom         = models.CharField(max_length=20, blank=True, default="METER")
    quantity    = models.DecimalField(**DECIMAL_18_6, validators=[MinValueValidator(0)])
    rate        = models.DecimalField(**DECIMAL_18_6, validators=[MinValueValidator(0)])

    total_value   = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    discount      = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    taxable_value = models.DecimalField(**DECIMAL_12_2, default=ZERO)

    gst_rate    = models.DecimalField(**PERCENT, default=Decimal("18.00"))
    cgst_rate   = models.DecimalField(**HALF_PERCENT, default=Decimal("0.000"))
    cgst_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    sgst_rate   = models.DecimalField(**HALF_PERCENT, default=Decimal("0.000"))
    sgst_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)
    igst_rate   = models.DecimalField(**PERCENT, default=Decimal("18.00"))
    igst_amount = models.DecimalField(**DECIMAL_12_2, default=ZERO)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity or 0} x {self.description}"

    @property
    def tax_amount(self) -> Decimal:
        return self.cgst_amount + self.sgst_amount + self.igst_amount


# --------------------------------
# Payments (immutable audit trail)
# --------------------------------
class Payment(models.Model):
    """
    One row per order actually settled by a receipt or payment.

    reference_* and party_* are tagged references: the *_kind column says
    which table the id belongs to, see ORDER_MODELS / PARTY_MODELS.
    """
    class Type(models.TextChoices):
        RECEIVED = "received", "Received"
        MADE     = "made",     "Made"

    class ReferenceKind(models.TextChoices):
        SALES_ORDER    = "sales_order",    "Sales Order"
        PURCHASE_ORDER = "purchase_order", "Purchase Order"

    class PartyKind(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        VENDOR   = "vendor",   "Vendor"

    class Method(models.TextChoices):
        CASH          = "cash",          "Cash"
        BANK_TRANSFER = "bank_transfer", "Bank Transfer"
        CHEQUE        = "cheque",        "Cheque"
        UPI           = "upi",           "UPI"

    type             = models.CharField(max_length=10, choices=Type.choices, db_index=True)
    reference_kind   = models.CharField(max_length=20, choices=ReferenceKind.choices)
    reference_id     = models.PositiveBigIntegerField()
    reference_number = models.CharField(max_length=30, blank=True, default="")
    party_kind       = models.CharField(max_length=10, choices=PartyKind.choices)
    party_id         = models.PositiveBigIntegerField()
    party_name       = models.CharField(max_length=255, blank=True, default="")
    amount           = models.DecimalField(**DECIMAL_12_2, validators=[MinValueValidator(Decimal("0.01"))])
    payment_method   = models.CharField(max_length=20, choices=Method.choices, default=Method.BANK_TRANSFER)
    transaction_id   = models.CharField(max_length=100, blank=True, default="")
    notes            = models.TextField(blank=True, default="")
    payment_date     = models.DateTimeField(default=timezone.now, db_index=True)
    created_at       = models.DateTimeField(default=timezone.now, db_index=True)
    created_by       = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="payments_recorded",
    )

    class Meta:
        ordering = ["-payment_date", "-id"]
        indexes = [
            models.Index(fields=["reference_kind", "reference_id"], name="erp_pay_reference_idx"),
            models.Index(fields=["party_kind", "party_id"], name="erp_pay_party_idx"),
        ]

    def __str__(self):
        return f"{self.get_type_display()} - {self.party_name} - {self.amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Payments are immutable once recorded.")
        super().save(*args, **kwargs)

    def resolve_reference(self):
        """The settled order, or None if it has since been deleted."""
        return ORDER_MODELS[self.reference_kind].objects.filter(pk=self.reference_id).first()

    def resolve_party(self):
        return PARTY_MODELS[self.party_kind].objects.filter(pk=self.party_id).first()


ORDER_MODELS = {
    Payment.ReferenceKind.SALES_ORDER: SalesOrder,
    Payment.ReferenceKind.PURCHASE_ORDER: PurchaseOrder,
}

PARTY_MODELS = {
    Payment.PartyKind.CUSTOMER: Customer,
    Payment.PartyKind.VENDOR: Vendor,
}

# order model -> (reference kind, party kind, payment type)
PAYMENT_TAGS = {
    SalesOrder: (Payment.ReferenceKind.SALES_ORDER, Payment.PartyKind.CUSTOMER, Payment.Type.RECEIVED),
    PurchaseOrder: (Payment.ReferenceKind.PURCHASE_ORDER, Payment.PartyKind.VENDOR, Payment.Type.MADE),
}

PARTY_ORDER_MODELS = {
    Payment.PartyKind.CUSTOMER: SalesOrder,
    Payment.PartyKind.VENDOR: PurchaseOrder,
}
