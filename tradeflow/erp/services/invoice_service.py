"""
Tax invoices projected from the delivered lines of a sales order.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from erp.exceptions import NotFoundError
from erp.forms import InvoiceLineForm, clean_lines
from erp.models import Invoice, InvoiceItem, SalesOrder
from . import money
from .order_service import get_order
from .sync_service import latest_invoice_of, project_line, sync_order_from_invoice, uom_for

logger = logging.getLogger(__name__)


def get_invoice(invoice_id, for_update=False):
    qs = Invoice.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Invoice not found")


def _snapshot_party(invoice, customer):
    """Copy the customer's details onto the invoice as of today."""
    invoice.billed_to_name = customer.name or ""
    invoice.billed_to_address = customer.billing_address
    invoice.billed_to_state_code = (customer.billing_pincode or "")[:2]
    invoice.billed_to_gst_number = customer.gst_number or ""
    invoice.billed_to_contact = customer.phone or ""
    invoice.delivery_at_name = customer.name or ""
    invoice.delivery_at_address = customer.delivery_address
    invoice.delivery_at_contact = customer.phone or ""


@transaction.atomic
def generate_invoice(order_id, sale_within_maharashtra=None, user=None):
    order = get_order(SalesOrder, order_id, for_update=True)
    delivered = list(order.delivered_items())
    if not delivered:
        raise ValidationError(
            "No delivered items found. Please mark items as delivered before generating an invoice."
        )

    customer = order.customer
    if sale_within_maharashtra is None:
        within = money.is_home_state(customer.billing_state)
    else:
        within = bool(sale_within_maharashtra)

    now = timezone.now()
    invoice = Invoice(
        sales_order=order,
        sale_within_maharashtra=within,
        po_number=order.order_number,
        po_date=order.order_date,
        invoice_date=now,
        date_of_supply=now,
        created_by=user,
        updated_by=user,
    )
    _snapshot_party(invoice, customer)
    invoice.save()

    InvoiceItem.objects.bulk_create([
        InvoiceItem(invoice=invoice, so_item=item, **project_line(item, within, discount=money.ZERO))
        for item in delivered
    ])
    invoice.recompute_totals()
    invoice.save(update_fields=["subtotal", "total_gst", "total_amount", "updated_at"])

    order.latest_invoice = invoice
    order.save(update_fields=["latest_invoice"])

    logger.info("Invoice %s generated for SO %s (%d lines, within home state=%s, total %s)",
                invoice.invoice_number, order.order_number, len(delivered), within, invoice.total_amount)
    return invoice


def _line_from_input(invoice, data, within, so_items):
    so_item = None
    if data.get("so_item"):
        so_item = so_items.get(data["so_item"])
        if so_item is None:
            raise ValidationError({"items": f"Order item {data['so_item']} is not on this invoice's order."})
    values = money.invoice_line_amounts(
        data["quantity"], data["rate"], data.get("discount"), data.get("gst_rate"), within,
    )
    values.update(
        description=data["description"],
        hsn_code=data.get("hsn_code") or "8544",
        uom=data.get("uom") or uom_for(so_item.unit if so_item else None),
    )
    return InvoiceItem(invoice=invoice, so_item=so_item, **values)


@transaction.atomic
def update_invoice(invoice_id, items=None, sale_within_maharashtra=None, user=None, **fields):
    """
    Edit header fields and/or lines. Every line's tax split and every total
    is recomputed here from quantity, rate, discount and gst_rate; the
    edited values then flow back into the sales order.
    """
    invoice = get_invoice(invoice_id, for_update=True)
    lines = clean_lines(items, form_class=InvoiceLineForm)

    for name, value in fields.items():
        setattr(invoice, name, value)
    jurisdiction_changed = (
        sale_within_maharashtra is not None
        and bool(sale_within_maharashtra) != invoice.sale_within_maharashtra
    )
    if sale_within_maharashtra is not None:
        invoice.sale_within_maharashtra = bool(sale_within_maharashtra)
    within = invoice.sale_within_maharashtra

    if lines is not None:
        so_items = {}
        if invoice.sales_order_id:
            so_items = {it.pk: it for it in invoice.sales_order.items.all()}
        invoice.items.all().delete()
        InvoiceItem.objects.bulk_create([_line_from_input(invoice, data, within, so_items) for data in lines])
    elif jurisdiction_changed:
        # same lines, new tax split
        for line in invoice.items.all():
            values = money.invoice_line_amounts(line.quantity, line.rate, line.discount, line.gst_rate, within)
            for name, value in values.items():
                setattr(line, name, value)
            line.save()

    invoice.recompute_totals()
    invoice.updated_by = user
    invoice.save()

    sync_order_from_invoice(invoice)

    logger.info("Invoice %s updated: total %s", invoice.invoice_number, invoice.total_amount)
    return invoice


@transaction.atomic
def delete_invoice(invoice_id):
    """
    Delete only the invoice. If it was the order's latest, the pointer moves
    to the newest invoice left (or clears).
    """
    invoice = get_invoice(invoice_id, for_update=True)
    pk, number = invoice.pk, invoice.invoice_number
    order = invoice.sales_order
    invoice.delete()

    if order is not None and order.latest_invoice_id == pk:
        order.latest_invoice = latest_invoice_of(order)
        order.save(update_fields=["latest_invoice"])

    logger.info("Invoice %s deleted", number)
    return number


def latest_invoice_for_order(order_id):
    """Newest invoice of a sales order, or None."""
    order = get_order(SalesOrder, order_id)
    return latest_invoice_of(order)
