from django.db import transaction
from django.db.models import F
from django.utils import timezone


def next_document_number(series: str, when=None) -> str:
    """
    Issue the next number of a series, e.g. SO202610170007.

    The counter row is locked and bumped with an F() update, so two
    concurrent requests can never be handed the same number.
    """
    from erp.models import DocumentSequence

    ts = timezone.localtime(when) if when else timezone.localtime()
    with transaction.atomic():
        seq, _ = DocumentSequence.objects.select_for_update().get_or_create(series=series)
        DocumentSequence.objects.filter(pk=seq.pk).update(last_value=F("last_value") + 1)
        seq.refresh_from_db(fields=["last_value"])
    return f"{series}{ts.strftime('%Y%m%d')}{seq.last_value:04d}"
