# erp/exceptions.py
from django.core.exceptions import ObjectDoesNotExist, ValidationError

__all__ = ["ValidationError", "NotFoundError", "ConsistencyError"]


class NotFoundError(ObjectDoesNotExist):
    """A referenced order, invoice, party or line item does not exist."""


class ConsistencyError(Exception):
    """
    Two records disagree about a cross-reference (e.g. an invoice pointing
    at an order that is gone). Sync code logs these and carries on.
    """
