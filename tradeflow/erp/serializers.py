# erp/serializers.py
# Plain dict builders for the JSON views. Decimals and datetimes are left to
# DjangoJSONEncoder (Decimal -> string, datetime -> ISO 8601).
from .models import Customer, SalesOrder


def _party_common(p):
    return {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "phone": p.phone,
        "contact_person": p.contact_person,
        "gst_number": p.gst_number,
        "outstanding_balance": p.outstanding_balance,
        "status": p.status,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


def customer_dict(c):
    data = _party_common(c)
    data.update({
        "billing_address": {
            "street": c.billing_street,
            "city": c.billing_city,
            "state": c.billing_state,
            "pincode": c.billing_pincode,
            "country": c.billing_country,
        },
        "delivery_address": {
            "street": c.delivery_street,
            "city": c.delivery_city,
            "state": c.delivery_state,
            "pincode": c.delivery_pincode,
            "country": c.delivery_country,
        },
    })
    return data


def vendor_dict(v):
    data = _party_common(v)
    data["address"] = {
        "street": v.street,
        "city": v.city,
        "state": v.state,
        "pincode": v.pincode,
        "country": v.country,
    }
    return data


def party_dict(p):
    return customer_dict(p) if isinstance(p, Customer) else vendor_dict(p)


def order_item_dict(it):
    data = {
        "id": it.id,
        "description": it.description,
        "hsn_code": it.hsn_code,
        "quantity": it.quantity,
        "unit": it.unit,
        "rate": it.rate,
        "amount": it.amount,
        "gst_rate": it.gst_rate,
        "gst_amount": it.gst_amount,
    }
    if hasattr(it, "is_delivered"):
        data.update({
            "is_delivered": it.is_delivered,
            "delivered_date": it.delivered_date,
            "delivered_quantity": it.delivered_quantity,
        })
    return data


def order_dict(o, with_items=True):
    party = o.party
    data = {
        "id": o.id,
        "order_number": o.order_number,
        "order_date": o.order_date,
        o.PARTY_FIELD: {"id": party.id, "name": party.name} if party else None,
        "subtotal": o.subtotal,
        "total_gst": o.total_gst,
        "total_amount": o.total_amount,
        "paid_amount": o.paid_amount,
        "outstanding_amount": o.outstanding_amount,
        "payment_status": o.payment_status,
        "notes": o.notes,
        "created_at": o.created_at,
        "updated_at": o.updated_at,
    }
    if isinstance(o, SalesOrder):
        data.update({
            "delivery_date": o.delivery_date,
            "delivery_status": o.delivery_status,
            "latest_invoice": o.latest_invoice_id,
        })
    else:
        data.update({
            "expected_date": o.expected_date,
            "status": o.status,
        })
    if with_items:
        data["items"] = [order_item_dict(it) for it in o.items.all()]
    return data


def invoice_item_dict(it):
    return {
        "id": it.id,
        "so_item": it.so_item_id,
        "description": it.description,
        "hsn_code": it.hsn_code,
        "uom": it.uom,
        "quantity": it.quantity,
        "rate": it.rate,
        "total_value": it.total_value,
        "discount": it.discount,
        "taxable_value": it.taxable_value,
        "gst_rate": it.gst_rate,
        "cgst_rate": it.cgst_rate,
        "cgst_amount": it.cgst_amount,
        "sgst_rate": it.sgst_rate,
        "sgst_amount": it.sgst_amount,
        "igst_rate": it.igst_rate,
        "igst_amount": it.igst_amount,
    }


def invoice_dict(inv, with_items=True):
    data = {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "sales_order": (
            {"id": inv.sales_order_id, "order_number": inv.sales_order.order_number}
            if inv.sales_order_id else None
        ),
        "invoice_date": inv.invoice_date,
        "date_of_supply": inv.date_of_supply,
        "po_number": inv.po_number,
        "po_date": inv.po_date,
        "sale_within_maharashtra": inv.sale_within_maharashtra,
        "transport": {
            "transporter_name": inv.transporter_name,
            "lr_no": inv.lr_no,
            "vehicle_no": inv.vehicle_no,
            "lr_date": inv.lr_date,
        },
        "billed_to": {
            "name": inv.billed_to_name,
            "address": inv.billed_to_address,
            "state_code": inv.billed_to_state_code,
            "gst_number": inv.billed_to_gst_number,
            "contact": inv.billed_to_contact,
        },
        "delivery_at": {
            "name": inv.delivery_at_name,
            "address": inv.delivery_at_address,
            "contact": inv.delivery_at_contact,
        },
        "subtotal": inv.subtotal,
        "total_gst": inv.total_gst,
        "total_amount": inv.total_amount,
        "freight_charges": inv.freight_charges,
        "packing_charges": inv.packing_charges,
        "insurance_charges": inv.insurance_charges,
        "other_charges": inv.other_charges,
        "special_remark": inv.special_remark,
        "created_at": inv.created_at,
        "updated_at": inv.updated_at,
    }
    if with_items:
        data["items"] = [invoice_item_dict(it) for it in inv.items.all()]
    return data


def payment_dict(p):
    return {
        "id": p.id,
        "type": p.type,
        "reference": {"kind": p.reference_kind, "id": p.reference_id, "number": p.reference_number},
        "party": {"kind": p.party_kind, "id": p.party_id, "name": p.party_name},
        "amount": p.amount,
        "payment_method": p.payment_method,
        "transaction_id": p.transaction_id,
        "notes": p.notes,
        "payment_date": p.payment_date,
        "created_at": p.created_at,
    }
