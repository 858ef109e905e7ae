"""
Order <-> invoice propagation.

sync_invoice_from_order: delivery toggles and order edits reshape the
order's newest invoice (lines follow the delivered items).

sync_order_from_invoice: an edited invoice is authoritative for the
delivered items it carries; their rate/quantity/amounts flow back into the
order, whose totals and party balance follow.

Both only write rows that actually change, so running either twice is a
no-op the second time.
"""
import logging

from django.db import transaction

from erp.exceptions import ConsistencyError
from erp.models import InvoiceItem, SalesOrder
from . import money

logger = logging.getLogger(__name__)


def uom_for(unit):
    if unit == "Mtr":
        return "METER"
    return (unit or "METER").upper()


def project_line(so_item, within_home_state, discount=None):
    """Invoice line values for one delivered sales-order item."""
    if discount is not None:
        # a kept discount never exceeds the line's current value
        discount = min(discount, money.money_q(so_item.quantity * so_item.rate))
    values = money.invoice_line_amounts(
        so_item.quantity, so_item.rate, discount, so_item.gst_rate, within_home_state,
    )
    values.update(
        description=so_item.description,
        hsn_code=so_item.hsn_code or "8544",
        uom=uom_for(so_item.unit),
    )
    return values


def latest_invoice_of(order):
    return order.invoices.order_by("-created_at", "-id").first()


def _write_totals(invoice):
    old = (invoice.subtotal, invoice.total_gst, invoice.total_amount)
    invoice.recompute_totals()
    if old == (invoice.subtotal, invoice.total_gst, invoice.total_amount):
        return False
    invoice.save(update_fields=["subtotal", "total_gst", "total_amount", "updated_at"])
    return True


@transaction.atomic
def sync_invoice_from_order(order):
    """
    Returns None when the order has no invoice, otherwise whether anything
    was written.
    """
    invoice = latest_invoice_of(order)
    if invoice is None:
        logger.debug("SO %s has no invoice to sync", order.order_number)
        return None

    within = invoice.sale_within_maharashtra
    delivered = {it.pk: it for it in order.items.filter(is_delivered=True)}
    kept = set()
    changed = False

    for line in invoice.items.all():
        so_item = delivered.get(line.so_item_id)
        if so_item is None or so_item.pk in kept:
            line.delete()
            changed = True
            continue
        kept.add(so_item.pk)

        values = project_line(so_item, within, discount=line.discount)
        dirty = [f for f in InvoiceItem.COMPUTED_FIELDS if getattr(line, f) != values[f]]
        if dirty:
            for f in dirty:
                setattr(line, f, values[f])
            line.save(update_fields=dirty)
            changed = True

    for pk, so_item in delivered.items():
        if pk not in kept:
            InvoiceItem.objects.create(invoice=invoice, so_item=so_item, **project_line(so_item, within))
            changed = True

    if _write_totals(invoice):
        changed = True

    logger.debug("Invoice %s synced from SO %s: changed=%s", invoice.invoice_number, order.order_number, changed)
    return changed


def _linked_order(invoice):
    if invoice.sales_order_id is None:
        raise ConsistencyError(f"Invoice {invoice.invoice_number} has no linked sales order")
    order = SalesOrder.objects.select_for_update().filter(pk=invoice.sales_order_id).first()
    if order is None:
        raise ConsistencyError(
            f"Invoice {invoice.invoice_number} points at missing sales order #{invoice.sales_order_id}"
        )
    return order


@transaction.atomic
def sync_order_from_invoice(invoice):
    """
    Mirror the invoice's delivered lines into the order. Returns the order,
    or None when the invoice is no longer linked to one.
    """
    try:
        order = _linked_order(invoice)
    except ConsistencyError as exc:
        logger.warning("Skipping order sync: %s", exc)
        return None

    lines = {ln.so_item_id: ln for ln in invoice.items.exclude(so_item__isnull=True)}

    for item in order.items.all():
        line = lines.get(item.pk)
        if item.is_delivered and line is not None:
            new = {
                "rate": line.rate,
                "quantity": line.quantity,
                "amount": line.taxable_value,
                "gst_amount": line.tax_amount,
            }
            dirty = [f for f, v in new.items() if getattr(item, f) != v]
            for f in dirty:
                setattr(item, f, new[f])
        else:
            # only NULL counts as unset; a stored 0 is kept
            before_amount, before_gst = item.amount, item.gst_amount
            item.fill_missing_amounts()
            dirty = [f for f, old in (("amount", before_amount), ("gst_amount", before_gst))
                     if old is None]
        if dirty:
            item.save(update_fields=dirty)

    old = (order.subtotal, order.total_gst, order.total_amount)
    order.recompute_totals()
    if old != (order.subtotal, order.total_gst, order.total_amount):
        order.save()

    logger.debug("SO %s synced from invoice %s: total %s -> %s",
                 order.order_number, invoice.invoice_number, old[2], order.total_amount)
    return order
