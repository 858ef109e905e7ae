import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, F, OuterRef, Subquery, Sum, Value
from django.db.models.functions import Coalesce, Greatest
from django.utils import timezone

from erp.models import Customer, Vendor, SalesOrder, PurchaseOrder

logger = logging.getLogger(__name__)

BALANCE_FIELD = DecimalField(max_digits=12, decimal_places=2)

# party model -> (order model, FK on the order pointing at the party)
PARTY_ORDER_LINKS = {
    Customer: (SalesOrder, "customer_id"),
    Vendor: (PurchaseOrder, "vendor_id"),
}


def apply_party_delta(party_model, party_id, delta) -> int:
    """
    The one place a party's outstanding_balance is moved.

    Runs a single UPDATE ... SET balance = MAX(balance + delta, 0), so
    concurrent requests never lose each other's changes and the balance
    never goes negative. Returns the number of rows touched.
    """
    delta = Decimal(delta or 0)
    if not party_id or delta == 0:
        return 0

    updated = party_model.objects.filter(pk=party_id).update(
        outstanding_balance=Greatest(
            F("outstanding_balance") + Value(delta, output_field=BALANCE_FIELD),
            Value(Decimal("0.00"), output_field=BALANCE_FIELD),
            output_field=BALANCE_FIELD,
        ),
        updated_at=timezone.now(),
    )
    logger.debug("%s #%s balance %+.2f", party_model.__name__, party_id, delta)
    if not updated:
        logger.warning("Balance delta %s for missing %s #%s dropped", delta, party_model.__name__, party_id)
    return updated


def annotate_order_outstanding(qs):
    """
    Annotates a Customer or Vendor queryset with 'computed_balance', the sum
    of outstanding_amount over that party's orders.
    Uses Subquery to avoid join fan-out.
    """
    order_model, link_field = PARTY_ORDER_LINKS[qs.model]
    sub_qs = (
        order_model.objects.filter(**{link_field: OuterRef("pk")})
        .values(link_field)
        .annotate(total=Sum("outstanding_amount"))
        .values("total")
    )
    return qs.annotate(
        computed_balance=Coalesce(
            Subquery(sub_qs, output_field=BALANCE_FIELD),
            Value(Decimal("0.00"), output_field=BALANCE_FIELD),
            output_field=BALANCE_FIELD,
        )
    )


def resync_party_balances(party_model, batch_size=500):
    """
    Overwrite every cached balance of one party model with the sum of its
    orders' outstanding amounts. Returns (parties_examined, parties_drifted).
    """
    objs_to_update = []
    count = 0
    with transaction.atomic():
        qs = annotate_order_outstanding(party_model.objects.select_for_update())
        for party in qs:
            count += 1
            net = party.computed_balance or Decimal("0.00")
            if party.outstanding_balance == net:
                continue
            logger.warning(
                "%s #%s balance drifted: cached %s, orders say %s",
                party_model.__name__, party.pk, party.outstanding_balance, net,
            )
            party.outstanding_balance = net
            objs_to_update.append(party)

        for i in range(0, len(objs_to_update), batch_size):
            batch = objs_to_update[i:i + batch_size]
            party_model.objects.bulk_update(batch, ["outstanding_balance"])

    return count, len(objs_to_update)


def resync_all_balances():
    """
    Full recompute for customers and vendors; the repair tool for drift
    left behind by failed multi-record writes.
    """
    result = {}
    for party_model in (Customer, Vendor):
        examined, drifted = resync_party_balances(party_model)
        result[party_model.__name__.lower()] = {"examined": examined, "drifted": drifted}
    logger.info("Balances resynced: %s", result)
    return result
