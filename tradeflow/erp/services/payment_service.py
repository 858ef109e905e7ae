"""
Receipts and payments against orders.

Paying an order raises its paid_amount; the order's post_save receiver then
takes the same amount off the party balance. One immutable Payment row is
written per order actually settled.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from erp.exceptions import NotFoundError
from erp.models import PARTY_MODELS, PARTY_ORDER_MODELS, PAYMENT_TAGS, Payment, PaymentStatus
from . import money
from .order_service import get_order

logger = logging.getLogger(__name__)


def _clean_amount(amount):
    amount = money.to_decimal(amount, field="amount")
    if amount is not None:
        amount = money.money_q(amount)
    if amount is None or amount <= 0:
        raise ValidationError({"amount": "Enter a valid amount."})
    return amount


def _record_payment(order, party, amount, method=None, transaction_id="", notes="",
                    payment_date=None, user=None):
    reference_kind, party_kind, payment_type = PAYMENT_TAGS[type(order)]
    return Payment.objects.create(
        type=payment_type,
        reference_kind=reference_kind,
        reference_id=order.pk,
        reference_number=order.order_number,
        party_kind=party_kind,
        party_id=party.pk,
        party_name=party.name,
        amount=amount,
        payment_method=method or Payment.Method.BANK_TRANSFER,
        transaction_id=transaction_id or "",
        notes=notes or "",
        payment_date=payment_date or timezone.now(),
        created_by=user,
    )


def _settle(order, amount, user):
    order.paid_amount = (order.paid_amount or money.ZERO) + amount
    order.updated_by = user
    order.save()


@transaction.atomic
def record_order_payment(order_model, order_id, amount, method=None, transaction_id="", notes="",
                         payment_date=None, user=None):
    """
    Pay (part of) one order. Returns (order, payment).
    """
    order = get_order(order_model, order_id, for_update=True)
    amount = _clean_amount(amount)
    if amount > order.outstanding_amount:
        raise ValidationError({"amount": f"Amount exceeds the outstanding {order.outstanding_amount} on {order.order_number}."})

    _settle(order, amount, user)
    payment = _record_payment(order, order.party, amount, method, transaction_id, notes, payment_date, user)

    logger.info("%s of %s recorded on %s; outstanding now %s",
                payment.get_type_display(), amount, order.order_number, order.outstanding_amount)
    return order, payment


@transaction.atomic
def allocate_party_payment(party_kind, party_id, amount, method=None, transaction_id="", notes="",
                           payment_date=None, user=None):
    """
    Spread one customer receipt / vendor payment over the party's open
    orders, oldest first.

    Returns (party, touched_orders, payments, applied_total). The party
    balance drops by applied_total; when the open orders owe less than the
    requested amount the rest is not applied anywhere.
    """
    try:
        party_model = PARTY_MODELS[party_kind]
        order_model = PARTY_ORDER_MODELS[party_kind]
    except KeyError:
        raise ValidationError({"party_kind": f"Unknown party kind '{party_kind}'."})

    try:
        party = party_model.objects.select_for_update().get(pk=party_id)
    except (party_model.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{party_model._meta.verbose_name.title()} not found")

    amount = _clean_amount(amount)
    if amount > party.outstanding_balance:
        raise ValidationError({"amount": f"Amount exceeds {party.name}'s outstanding balance of {party.outstanding_balance}."})

    open_orders = (
        order_model.objects.select_for_update()
        .filter(**{order_model.PARTY_FIELD: party},
                payment_status__in=[PaymentStatus.PENDING, PaymentStatus.PARTIAL])
        .order_by("created_at", "id")
    )

    remaining = amount
    touched, payments = [], []
    for order in open_orders:
        if remaining <= 0:
            break
        apply = min(remaining, order.outstanding_amount)
        if apply <= 0:
            continue
        _settle(order, apply, user)
        payments.append(_record_payment(order, party, apply, method, transaction_id, notes, payment_date, user))
        touched.append(order)
        remaining -= apply

    applied = amount - remaining
    if remaining > 0:
        logger.warning("%s %s: %s of %s could not be applied to any open order",
                       party_model.__name__, party.pk, remaining, amount)

    party.refresh_from_db(fields=["outstanding_balance"])
    logger.info("%s of %s applied to %d order(s) of %s; balance now %s",
                "Receipt" if party_kind == Payment.PartyKind.CUSTOMER else "Payment",
                applied, len(touched), party.name, party.outstanding_balance)
    return party, touched, payments, applied
