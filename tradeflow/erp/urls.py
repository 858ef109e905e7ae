# erp/urls.py
from django.urls import path
from . import views

urlpatterns = [
    # Parties
    path("api/customers/", views.CustomerCollectionView.as_view(), name="customers_api"),
    path("api/customers/<int:pk>/", views.CustomerDetailView.as_view(), name="customer_api"),
    path("api/customers/<int:pk>/ledger/", views.customer_ledger, name="customer_ledger_api"),
    path("api/customers/<int:pk>/payment/", views.customer_payment, name="customer_payment_api"),
    path("api/vendors/", views.VendorCollectionView.as_view(), name="vendors_api"),
    path("api/vendors/<int:pk>/", views.VendorDetailView.as_view(), name="vendor_api"),
    path("api/vendors/<int:pk>/orders/", views.vendor_open_orders, name="vendor_orders_api"),
    path("api/vendors/<int:pk>/payment/", views.vendor_payment, name="vendor_payment_api"),

    # Sales orders
    path("api/sales-orders/", views.SalesOrderCollectionView.as_view(), name="sales_orders_api"),
    path("api/sales-orders/<int:pk>/", views.SalesOrderDetailView.as_view(), name="sales_order_api"),
    path("api/sales-orders/<int:pk>/items/<int:item_id>/delivery/",
         views.toggle_item_delivery, name="sales_order_item_delivery_api"),
    path("api/sales-orders/<int:pk>/payment/", views.sales_order_payment, name="sales_order_payment_api"),

    # Purchase orders
    path("api/purchase-orders/", views.PurchaseOrderCollectionView.as_view(), name="purchase_orders_api"),
    path("api/purchase-orders/<int:pk>/", views.PurchaseOrderDetailView.as_view(), name="purchase_order_api"),
    path("api/purchase-orders/<int:pk>/payment/", views.purchase_order_payment, name="purchase_order_payment_api"),

    # Invoices (fixed segments before <pk>)
    path("api/invoices/", views.invoice_list, name="invoices_api"),
    path("api/invoices/generate/<int:order_id>/", views.generate_invoice, name="invoice_generate_api"),
    path("api/invoices/by-order/<int:order_id>/", views.invoice_by_order, name="invoice_by_order_api"),
    path("api/invoices/<int:pk>/", views.InvoiceDetailView.as_view(), name="invoice_api"),

    # Payments / balances
    path("api/payments/", views.payment_list, name="payments_api"),
    path("api/balances/resync/", views.resync_balances, name="balances_resync_api"),
]
