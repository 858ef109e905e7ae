"""
Order ledger operations for sales and purchase orders.

Every operation prices lines server-side, re-derives the order totals and
saves; erp.signals turns the change in outstanding_amount into a party
balance delta. Sales-order edits and delivery toggles then push the new
state into the linked invoice.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from erp.exceptions import NotFoundError
from erp.forms import clean_lines
from erp.models import SalesOrder, SalesOrderItem, PurchaseOrder, PurchaseOrderItem
from . import money
from .sync_service import sync_invoice_from_order

logger = logging.getLogger(__name__)

# order model -> (item model, FK on the item pointing at the order)
ITEM_LINKS = {
    SalesOrder: (SalesOrderItem, "sales_order"),
    PurchaseOrder: (PurchaseOrderItem, "purchase_order"),
}

# fields a client may set on a line; money fields are always derived
LINE_FIELDS = ("description", "hsn_code", "quantity", "unit", "rate", "gst_rate")


def get_order(order_model, order_id, for_update=False):
    qs = order_model.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=order_id)
    except (order_model.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{order_model._meta.verbose_name.title()} not found")


def _get_party(order_model, party):
    party_field = order_model._meta.get_field(order_model.PARTY_FIELD)
    party_model = party_field.related_model
    if party in (None, ""):
        raise ValidationError({order_model.PARTY_FIELD: f"{party_model._meta.verbose_name.title()} is required."})
    if isinstance(party, party_model):
        return party
    try:
        return party_model.objects.get(pk=party)
    except (party_model.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{party_model._meta.verbose_name.title()} not found")


def _price_line(item, data):
    """Copy client fields onto an item row and derive amount / gst_amount."""
    for field in LINE_FIELDS:
        value = data.get(field)
        if value in (None, "") and field in ("hsn_code", "unit"):
            continue
        if field == "gst_rate":
            value = money.gst_rate_or_default(value)
        setattr(item, field, value)
    item.amount, item.gst_amount = money.order_line_amounts(item.quantity, item.rate, item.gst_rate)
    return item


def _replace_lines(order, lines):
    """
    Lines with the id of an existing row update it in place (keeping its
    delivery flags and invoice links); others are created; rows not
    mentioned are deleted.
    """
    item_model, order_fk = ITEM_LINKS[type(order)]
    existing = {it.pk: it for it in order.items.all()}
    keep = set()

    for data in lines:
        item_id = data.get("id")
        if item_id:
            item = existing.get(item_id)
            if item is None:
                raise ValidationError({"items": f"Item {item_id} does not belong to order {order.order_number}."})
        else:
            item = item_model(**{order_fk: order})
        _price_line(item, data)
        item.save()
        keep.add(item.pk)

    stale = [pk for pk in existing if pk not in keep]
    if stale:
        order.items.filter(pk__in=stale).delete()


@transaction.atomic
def create_order(order_model, party, items, user=None, **fields):
    """
    Create an order with nothing paid. The party's balance grows by the
    order total (via the post_save receiver).
    """
    party = _get_party(order_model, party)
    lines = clean_lines(items or [])

    order = order_model(**fields)
    setattr(order, order_model.PARTY_FIELD, party)
    order.paid_amount = money.ZERO
    order.created_by = user
    order.updated_by = user
    order.save()

    _replace_lines(order, lines)
    order.recompute_totals()
    order.save()

    logger.info("%s %s created for %s: total %s", order_model.__name__, order.order_number, party, order.total_amount)
    return order


@transaction.atomic
def update_order(order_model, order_id, items=None, user=None, **fields):
    """
    Edit header fields and (optionally) replace the lines. paid_amount is
    kept; the party balance moves by the change in outstanding only.
    """
    order = get_order(order_model, order_id, for_update=True)
    lines = clean_lines(items)

    party = fields.pop(order_model.PARTY_FIELD, None)
    if party is not None:
        setattr(order, order_model.PARTY_FIELD, _get_party(order_model, party))
    for name, value in fields.items():
        setattr(order, name, value)

    if lines is not None:
        _replace_lines(order, lines)
        order.recompute_totals()

    order.updated_by = user
    order.save()

    if isinstance(order, SalesOrder):
        sync_invoice_from_order(order)

    logger.info("%s %s updated: total %s, outstanding %s",
                order_model.__name__, order.order_number, order.total_amount, order.outstanding_amount)
    return order


@transaction.atomic
def toggle_item_delivery(order_id, item_id, user=None):
    """Flip one sales-order line between delivered and not delivered."""
    order = get_order(SalesOrder, order_id, for_update=True)
    try:
        item = order.items.get(pk=item_id)
    except (SalesOrderItem.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Item not found")

    item.set_delivered(not item.is_delivered)
    item.save(update_fields=["is_delivered", "delivered_date", "delivered_quantity"])

    order.updated_by = user
    order.save()
    sync_invoice_from_order(order)

    logger.info("SO %s item %s delivered=%s, delivery status %s",
                order.order_number, item.pk, item.is_delivered, order.delivery_status)
    return order, item


@transaction.atomic
def delete_order(order_model, order_id):
    """
    Hard-delete an order. Only its unpaid remainder leaves the party
    balance; Payment records stay as the audit trail.
    """
    order = get_order(order_model, order_id, for_update=True)
    number = order.order_number
    order.delete()
    logger.info("%s %s deleted", order_model.__name__, number)
    return number
