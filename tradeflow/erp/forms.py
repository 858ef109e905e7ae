# erp/forms.py
from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError

from .models import Customer, Vendor, SalesOrder, PurchaseOrder, Invoice, Payment


def _errors_to_validation_error(form, prefix=""):
    """Flatten a bound form's errors into a ValidationError keyed by field."""
    errors = {}
    for field, msgs in form.errors.items():
        key = f"{prefix}{field}" if field != "__all__" else (prefix.rstrip(".") or "__all__")
        errors[key] = list(msgs)
    return ValidationError(errors)


def clean_form(form, prefix=""):
    if not form.is_valid():
        raise _errors_to_validation_error(form, prefix)
    return form.cleaned_data


class ModelDefaultsMixin:
    """Listed fields may be left out; they then take the model field's default."""
    defaulted_fields = ()

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in self.defaulted_fields:
            self.fields[name].required = False

    def clean(self):
        cleaned = super().clean()
        for name in self.defaulted_fields:
            if cleaned.get(name) in (None, ""):
                cleaned[name] = self._meta.model._meta.get_field(name).get_default()
        return cleaned


# --------------------------------
# Parties
# --------------------------------
class CustomerForm(ModelDefaultsMixin, forms.ModelForm):
    defaulted_fields = ("status",)

    class Meta:
        model = Customer
        fields = [
            "name", "email", "phone", "contact_person", "gst_number", "status",
            "billing_street", "billing_city", "billing_state", "billing_pincode", "billing_country",
            "delivery_street", "delivery_city", "delivery_state", "delivery_pincode", "delivery_country",
        ]


class VendorForm(ModelDefaultsMixin, forms.ModelForm):
    defaulted_fields = ("status",)

    class Meta:
        model = Vendor
        fields = [
            "name", "email", "phone", "contact_person", "gst_number", "status",
            "street", "city", "state", "pincode", "country",
        ]


# --------------------------------
# Orders
# --------------------------------
class SalesOrderForm(ModelDefaultsMixin, forms.ModelForm):
    defaulted_fields = ("order_date", "delivery_status")

    class Meta:
        model = SalesOrder
        fields = ["customer", "order_date", "delivery_date", "delivery_status", "notes"]


class PurchaseOrderForm(ModelDefaultsMixin, forms.ModelForm):
    defaulted_fields = ("order_date", "status")

    class Meta:
        model = PurchaseOrder
        fields = ["vendor", "order_date", "expected_date", "status", "notes"]


class OrderLineForm(forms.Form):
    """One order line as submitted by a client. Money fields are priced server-side."""
    id          = forms.IntegerField(required=False)
    description = forms.CharField(max_length=255)
    hsn_code    = forms.CharField(max_length=20, required=False)
    quantity    = forms.DecimalField(max_digits=18, decimal_places=6, min_value=Decimal("0"))
    unit        = forms.CharField(max_length=20, required=False)
    rate        = forms.DecimalField(max_digits=18, decimal_places=6, min_value=Decimal("0"))
    gst_rate    = forms.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0"),
                                     max_value=Decimal("100"), required=False)


class InvoiceLineForm(forms.Form):
    so_item     = forms.IntegerField(required=False)
    description = forms.CharField(max_length=255)
    hsn_code    = forms.CharField(max_length=20, required=False)
    uom         = forms.CharField(max_length=20, required=False)
    quantity    = forms.DecimalField(max_digits=18, decimal_places=6, min_value=Decimal("0"))
    rate        = forms.DecimalField(max_digits=18, decimal_places=6, min_value=Decimal("0"))
    discount    = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False)
    gst_rate    = forms.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0"),
                                     max_value=Decimal("100"), required=False)

    def clean(self):
        cleaned = super().clean()
        qty = cleaned.get("quantity")
        rate = cleaned.get("rate")
        discount = cleaned.get("discount") or Decimal("0")
        if qty is not None and rate is not None and discount > qty * rate:
            raise ValidationError("Discount cannot exceed the line value.")
        return cleaned


def clean_lines(raw_items, form_class=OrderLineForm):
    """
    Validate a list of line dicts; returns their cleaned_data.
    Errors are reported as items.<index>.<field>.
    """
    if raw_items is None:
        return None
    if not isinstance(raw_items, (list, tuple)):
        raise ValidationError({"items": "Items must be a list."})
    cleaned = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError({f"items.{idx}": "Each item must be an object."})
        cleaned.append(clean_form(form_class(data=raw), prefix=f"items.{idx}."))
    return cleaned


# --------------------------------
# Invoices
# --------------------------------
class InvoiceHeaderForm(ModelDefaultsMixin, forms.ModelForm):
    defaulted_fields = ("invoice_date", "date_of_supply")

    class Meta:
        model = Invoice
        fields = [
            "invoice_date", "date_of_supply", "po_number", "po_date", "sale_within_maharashtra",
            "transporter_name", "lr_no", "vehicle_no", "lr_date",
            "billed_to_name", "billed_to_address", "billed_to_state_code", "billed_to_gst_number",
            "billed_to_contact", "delivery_at_name", "delivery_at_address", "delivery_at_contact",
            "freight_charges", "packing_charges", "insurance_charges", "other_charges", "special_remark",
        ]


class GenerateInvoiceForm(forms.Form):
    # absent -> decided from the customer's billing state
    sale_within_maharashtra = forms.NullBooleanField(required=False)


# --------------------------------
# Payments
# --------------------------------
class PaymentForm(forms.Form):
    amount         = forms.DecimalField(max_digits=14, decimal_places=2)
    payment_method = forms.ChoiceField(choices=Payment.Method.choices, required=False)
    transaction_id = forms.CharField(max_length=100, required=False)
    notes          = forms.CharField(required=False)
    payment_date   = forms.DateTimeField(required=False)

    def clean_payment_method(self):
        return self.cleaned_data.get("payment_method") or Payment.Method.BANK_TRANSFER
