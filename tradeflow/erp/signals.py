from decimal import Decimal

from django.db.models.signals import post_save, post_delete, pre_save
from django.dispatch import receiver

from .models import SalesOrder, PurchaseOrder, Customer, Vendor
from .services.balance_service import apply_party_delta

ORDER_PARTY_MODELS = {
    SalesOrder: Customer,
    PurchaseOrder: Vendor,
}

# ---------------------------------------------------------
# Party balances follow order outstanding amounts
# ---------------------------------------------------------

def capture_orig(instance, fields):
    """Stash the stored values of `fields` as _orig_<field> before a save."""
    row = None
    if instance.pk:
        row = instance.__class__.objects.filter(pk=instance.pk).values(*fields).first()
    for f in fields:
        setattr(instance, f"_orig_{f}", row[f] if row else None)


def _party_attname(instance):
    return f"{instance.PARTY_FIELD}_id"


@receiver(pre_save, sender=SalesOrder)
@receiver(pre_save, sender=PurchaseOrder)
def order_pre_save(sender, instance, raw=False, **kwargs):
    if raw:
        return
    capture_orig(instance, ["outstanding_amount", _party_attname(instance)])


@receiver(post_save, sender=SalesOrder)
@receiver(post_save, sender=PurchaseOrder)
def order_post_save(sender, instance, created, raw=False, **kwargs):
    """
    Push the change in outstanding_amount onto the party balance.
    Covers create (+total), edits and invoice resyncs (+/- delta) and
    payments (-applied) with one rule.
    """
    if raw:
        return
    party_model = ORDER_PARTY_MODELS[sender]
    attname = _party_attname(instance)

    old_out = getattr(instance, "_orig_outstanding_amount", None) or Decimal("0.00")
    old_party = getattr(instance, f"_orig_{attname}", None)
    new_out = instance.outstanding_amount or Decimal("0.00")
    new_party = getattr(instance, attname)

    if old_party and old_party != new_party:
        # order moved to another party; move its outstanding with it
        apply_party_delta(party_model, old_party, -old_out)
        apply_party_delta(party_model, new_party, new_out)
    else:
        apply_party_delta(party_model, new_party, new_out - old_out)


@receiver(post_delete, sender=SalesOrder)
@receiver(post_delete, sender=PurchaseOrder)
def order_post_delete(sender, instance, **kwargs):
    # paid portion already left the balance when it was paid
    if instance.outstanding_amount and instance.outstanding_amount > 0:
        apply_party_delta(ORDER_PARTY_MODELS[sender], getattr(instance, _party_attname(instance)), -instance.outstanding_amount)
