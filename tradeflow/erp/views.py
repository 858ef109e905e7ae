# ===============================
# Standard Library Imports
# ===============================
import functools
import json
import logging

# ===============================
# Django Core Imports
# ===============================
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError
from django.db.models import ProtectedError, Q
from django.forms.models import model_to_dict
from django.http import JsonResponse
from django.utils.dateparse import parse_date
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.http import require_GET, require_POST

# ===============================
# Local App Imports
# ===============================
from .exceptions import NotFoundError
from .forms import (
    CustomerForm, VendorForm, SalesOrderForm, PurchaseOrderForm,
    InvoiceHeaderForm, GenerateInvoiceForm, PaymentForm, clean_form,
)
from .models import Customer, Vendor, SalesOrder, PurchaseOrder, Invoice, Payment
from .serializers import (
    customer_dict, vendor_dict, party_dict, order_dict, invoice_dict, payment_dict,
)
from .services import invoice_service, order_service, payment_service
from .services.balance_service import resync_all_balances

logger = logging.getLogger(__name__)


# ===============================
# Envelope / error mapping
# ===============================
def api_response(data=None, message="", status=200, **extra):
    body = {"ok": 200 <= status < 300, "data": data, "message": message}
    body.update(extra)
    return JsonResponse(body, status=status)


def _validation_payload(exc):
    if hasattr(exc, "error_dict"):
        errors = exc.message_dict
        first = next(iter(errors.values()), [""])
        return (first[0] if first else "Invalid input."), errors
    return "; ".join(exc.messages), {}


def api_view(view):
    """
    Turn service exceptions into the JSON envelope:
    ValidationError -> 400, not found -> 404, storage failure -> 500.
    """
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ValidationError as exc:
            message, errors = _validation_payload(exc)
            return api_response(message=message, status=400, errors=errors)
        except ObjectDoesNotExist as exc:
            return api_response(message=str(exc) or "Not found", status=404)
        except DatabaseError:
            logger.exception("Storage failure on %s %s", request.method, request.path)
            return api_response(message="Server error", status=500)
    return wrapper


def parse_body(request):
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Request body is not valid JSON.")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _merged(instance, form_class, payload):
    """Stored values overlaid with the submitted ones, for partial PUTs."""
    data = model_to_dict(instance, fields=form_class._meta.fields)
    data.update({k: v for k, v in payload.items() if k in form_class._meta.fields})
    return data


def _get_or_404(model, pk):
    try:
        return model.objects.get(pk=pk)
    except model.DoesNotExist:
        raise NotFoundError(f"{model._meta.verbose_name.title()} not found")


def _apply_search(qs, request, fields):
    search = (request.GET.get("search") or "").strip()
    if search:
        cond = Q()
        for f in fields:
            cond |= Q(**{f"{f}__icontains": search})
        qs = qs.filter(cond)
    return qs


# ===============================
# Parties
# ===============================
@method_decorator(login_required, name="dispatch")
@method_decorator(api_view, name="dispatch")
class PartyCollectionView(View):
    model = None
    form_class = None
    to_dict = None

    def get(self, request):
        qs = _apply_search(self.model.objects.all(), request, ["name", "phone", "email"])
        status = request.GET.get("status")
        if status:
            qs = qs.filter(status=status)
        return api_response([self.to_dict(p) for p in qs])

    def post(self, request):
        form = self.form_class(data=parse_body(request))
        clean_form(form)
        party = form.save(commit=False)
        party.created_by = request.user
        party.updated_by = request.user
        party.save()
        logger.info("%s %s created", self.model.__name__, party.pk)
        return api_response(self.to_dict(party), f"{self.model.__name__} created", status=201)


@method_decorator(login_required, name="dispatch")
@method_decorator(api_view, name="dispatch")
class PartyDetailView(View):
    model = None
    form_class = None
    to_dict = None

    def get(self, request, pk):
        return api_response(self.to_dict(_get_or_404(self.model, pk)))

    def put(self, request, pk):
        party = _get_or_404(self.model, pk)
        form = self.form_class(data=_merged(party, self.form_class, parse_body(request)), instance=party)
        clean_form(form)
        party = form.save(commit=False)
        party.updated_by = request.user
        party.save()
        return api_response(self.to_dict(party), f"{self.model.__name__} updated")

    def delete(self, request, pk):
        party = _get_or_404(self.model, pk)
        try:
            party.delete()
        except ProtectedError:
            raise ValidationError(f"{party.name} has orders and cannot be deleted.")
        logger.info("%s %s deleted", self.model.__name__, pk)
        return api_response(message=f"{self.model.__name__} deleted")


class CustomerCollectionView(PartyCollectionView):
    model = Customer
    form_class = CustomerForm
    to_dict = staticmethod(customer_dict)


class CustomerDetailView(PartyDetailView):
    model = Customer
    form_class = CustomerForm
    to_dict = staticmethod(customer_dict)


class VendorCollectionView(PartyCollectionView):
    model = Vendor
    form_class = VendorForm
    to_dict = staticmethod(vendor_dict)


class VendorDetailView(PartyDetailView):
    model = Vendor
    form_class = VendorForm
    to_dict = staticmethod(vendor_dict)


@require_GET
@login_required
@api_view
def customer_ledger(request, pk):
    customer = _get_or_404(Customer, pk)
    orders = customer.sales_orders.order_by("-order_date", "-id").prefetch_related("items")
    return api_response([order_dict(o) for o in orders])


@require_GET
@login_required
@api_view
def vendor_open_orders(request, pk):
    vendor = _get_or_404(Vendor, pk)
    orders = (
        vendor.purchase_orders
        .filter(payment_status__in=["pending", "partial"])
        .order_by("created_at", "id")
        .prefetch_related("items")
    )
    return api_response([order_dict(o) for o in orders])


def _party_payment(request, party_kind, pk):
    form = PaymentForm(data=parse_body(request))
    cd = clean_form(form)
    party, orders, payments, applied = payment_service.allocate_party_payment(
        party_kind, pk, cd["amount"],
        method=cd["payment_method"], transaction_id=cd["transaction_id"], notes=cd["notes"],
        payment_date=cd["payment_date"], user=request.user,
    )
    return api_response(
        party_dict(party),
        f"Payment of {applied} applied to {len(orders)} order(s)",
        updated_orders=[order_dict(o, with_items=False) for o in orders],
        payments=[payment_dict(p) for p in payments],
    )


@require_POST
@login_required
@api_view
def customer_payment(request, pk):
    return _party_payment(request, Payment.PartyKind.CUSTOMER, pk)


@require_POST
@login_required
@api_view
def vendor_payment(request, pk):
    return _party_payment(request, Payment.PartyKind.VENDOR, pk)


# ===============================
# Orders
# ===============================
@method_decorator(login_required, name="dispatch")
@method_decorator(api_view, name="dispatch")
class OrderCollectionView(View):
    model = None
    form_class = None

    def get(self, request):
        qs = self.model.objects.select_related(self.model.PARTY_FIELD).prefetch_related("items")
        qs = _apply_search(qs, request, ["order_number", f"{self.model.PARTY_FIELD}__name"])
        status = request.GET.get("status")
        if status:
            qs = qs.filter(payment_status=status)
        return api_response([order_dict(o) for o in qs])

    def post(self, request):
        payload = parse_body(request)
        header = clean_form(self.form_class(data=payload))
        party = header.pop(self.model.PARTY_FIELD)
        order = order_service.create_order(
            self.model, party, payload.get("items") or [], user=request.user, **header,
        )
        return api_response(order_dict(order), f"Order {order.order_number} created", status=201)


@method_decorator(login_required, name="dispatch")
@method_decorator(api_view, name="dispatch")
class OrderDetailView(View):
    model = None
    form_class = None

    def get(self, request, pk):
        return api_response(order_dict(order_service.get_order(self.model, pk)))

    def put(self, request, pk):
        payload = parse_body(request)
        order = order_service.get_order(self.model, pk)
        header = clean_form(self.form_class(data=_merged(order, self.form_class, payload)))
        order = order_service.update_order(
            self.model, pk, items=payload.get("items"), user=request.user, **header,
        )
        return api_response(order_dict(order), f"Order {order.order_number} updated")

    def delete(self, request, pk):
        number = order_service.delete_order(self.model, pk)
        return api_response(message=f"Order {number} deleted")


class SalesOrderCollectionView(OrderCollectionView):
    model = SalesOrder
    form_class = SalesOrderForm


class SalesOrderDetailView(OrderDetailView):
    model = SalesOrder
    form_class = SalesOrderForm


class PurchaseOrderCollectionView(OrderCollectionView):
    model = PurchaseOrder
    form_class = PurchaseOrderForm


class PurchaseOrderDetailView(OrderDetailView):
    model = PurchaseOrder
    form_class = PurchaseOrderForm


@require_POST
@login_required
@api_view
def toggle_item_delivery(request, pk, item_id):
    order, item = order_service.toggle_item_delivery(pk, item_id, user=request.user)
    state = "delivered" if item.is_delivered else "not delivered"
    return api_response(order_dict(order), f"{item.description} marked {state}")


def _order_payment(request, model, pk):
    cd = clean_form(PaymentForm(data=parse_body(request)))
    order, payment = payment_service.record_order_payment(
        model, pk, cd["amount"],
        method=cd["payment_method"], transaction_id=cd["transaction_id"], notes=cd["notes"],
        payment_date=cd["payment_date"], user=request.user,
    )
    return api_response(order_dict(order), f"Payment of {payment.amount} recorded",
                        payment=payment_dict(payment))


@require_POST
@login_required
@api_view
def sales_order_payment(request, pk):
    return _order_payment(request, SalesOrder, pk)


@require_POST
@login_required
@api_view
def purchase_order_payment(request, pk):
    return _order_payment(request, PurchaseOrder, pk)


# ===============================
# Invoices
# ===============================
@require_GET
@login_required
@api_view
def invoice_list(request):
    qs = Invoice.objects.select_related("sales_order")
    qs = _apply_search(qs, request, ["invoice_number", "billed_to_name", "sales_order__order_number"])
    return api_response([invoice_dict(inv, with_items=False) for inv in qs])


@method_decorator(login_required, name="dispatch")
@method_decorator(api_view, name="dispatch")
class InvoiceDetailView(View):
    def get(self, request, pk):
        return api_response(invoice_dict(invoice_service.get_invoice(pk)))

    def put(self, request, pk):
        payload = parse_body(request)
        invoice = invoice_service.get_invoice(pk)
        header = clean_form(InvoiceHeaderForm(data=_merged(invoice, InvoiceHeaderForm, payload)))
        within = header.pop("sale_within_maharashtra")
        invoice = invoice_service.update_invoice(
            pk,
            items=payload.get("items"),
            sale_within_maharashtra=within if "sale_within_maharashtra" in payload else None,
            user=request.user,
            **header,
        )
        return api_response(invoice_dict(invoice), "Invoice saved and order totals synced")

    def delete(self, request, pk):
        number = invoice_service.delete_invoice(pk)
        return api_response(message=f"Invoice {number} deleted")


@require_POST
@login_required
@api_view
def generate_invoice(request, order_id):
    cd = clean_form(GenerateInvoiceForm(data=parse_body(request)))
    invoice = invoice_service.generate_invoice(
        order_id, sale_within_maharashtra=cd["sale_within_maharashtra"], user=request.user,
    )
    return api_response(invoice_dict(invoice), f"Invoice {invoice.invoice_number} generated", status=201)


@require_GET
@login_required
@api_view
def invoice_by_order(request, order_id):
    invoice = invoice_service.latest_invoice_for_order(order_id)
    return api_response(invoice_dict(invoice) if invoice else None)


# ===============================
# Payments / balances
# ===============================
@require_GET
@login_required
@api_view
def payment_list(request):
    qs = Payment.objects.all()
    ptype = request.GET.get("type")
    if ptype:
        qs = qs.filter(type=ptype)
    start = parse_date(request.GET.get("start_date") or "")
    end = parse_date(request.GET.get("end_date") or "")
    if start:
        qs = qs.filter(payment_date__date__gte=start)
    if end:
        qs = qs.filter(payment_date__date__lte=end)
    return api_response([payment_dict(p) for p in qs])


@require_POST
@login_required
@api_view
def resync_balances(request):
    result = resync_all_balances()
    return api_response(result, "Balances synced successfully")
