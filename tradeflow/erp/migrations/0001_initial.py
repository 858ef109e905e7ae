# Initial schema for the erp app

from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def _stamps():
    return [
        ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
        ('updated_at', models.DateTimeField(auto_now=True, db_index=True)),
    ]


def _party_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        *_stamps(),
        ('name', models.CharField(db_index=True, max_length=255)),
        ('email', models.EmailField(blank=True, default='', max_length=254)),
        ('phone', models.CharField(blank=True, default='', max_length=50)),
        ('contact_person', models.CharField(blank=True, default='', max_length=255)),
        ('gst_number', models.CharField(blank=True, default='', max_length=50)),
        ('outstanding_balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), editable=False, max_digits=12)),
        ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive')], db_index=True, default='active', max_length=10)),
    ]


def _order_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        *_stamps(),
        ('order_number', models.CharField(blank=True, max_length=30, unique=True)),
        ('order_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
        ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
        ('total_gst', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
        ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
        ('paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
        ('outstanding_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
        ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('partial', 'Partial'), ('paid', 'Paid')], db_index=True, default='pending', max_length=10)),
        ('notes', models.TextField(blank=True, default='')),
    ]


def _item_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('description', models.CharField(max_length=255)),
        ('quantity', models.DecimalField(decimal_places=6, max_digits=18, validators=[django.core.validators.MinValueValidator(0)])),
        ('rate', models.DecimalField(decimal_places=6, max_digits=18, validators=[django.core.validators.MinValueValidator(0)])),
        ('amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
        ('gst_rate', models.DecimalField(decimal_places=2, default=Decimal('18.00'), max_digits=5)),
        ('gst_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
    ]


def _user_fk(related_name):
    return models.ForeignKey(
        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name, to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DocumentSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('series', models.CharField(max_length=10, unique=True)),
                ('last_value', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Customer',
            fields=[
                *_party_fields(),
                ('billing_street', models.CharField(blank=True, default='', max_length=255)),
                ('billing_city', models.CharField(blank=True, default='', max_length=100)),
                ('billing_state', models.CharField(blank=True, default='', max_length=100)),
                ('billing_pincode', models.CharField(blank=True, default='', max_length=20)),
                ('billing_country', models.CharField(blank=True, default='India', max_length=100)),
                ('delivery_street', models.CharField(blank=True, default='', max_length=255)),
                ('delivery_city', models.CharField(blank=True, default='', max_length=100)),
                ('delivery_state', models.CharField(blank=True, default='', max_length=100)),
                ('delivery_pincode', models.CharField(blank=True, default='', max_length=20)),
                ('delivery_country', models.CharField(blank=True, default='India', max_length=100)),
                ('created_by', _user_fk('%(class)s_created')),
                ('updated_by', _user_fk('%(class)s_updated')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'abstract': False,
                'indexes': [models.Index(fields=['status', 'name'], name='erp_cust_status_name_idx')],
            },
        ),
        migrations.CreateModel(
            name='Vendor',
            fields=[
                *_party_fields(),
                ('street', models.CharField(blank=True, default='', max_length=255)),
                ('city', models.CharField(blank=True, default='', max_length=100)),
                ('state', models.CharField(blank=True, default='', max_length=100)),
                ('pincode', models.CharField(blank=True, default='', max_length=20)),
                ('country', models.CharField(blank=True, default='India', max_length=100)),
                ('created_by', _user_fk('%(class)s_created')),
                ('updated_by', _user_fk('%(class)s_updated')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'abstract': False,
                'indexes': [models.Index(fields=['status', 'name'], name='erp_vend_status_name_idx')],
            },
        ),
        migrations.CreateModel(
            name='SalesOrder',
            fields=[
                *_order_fields(),
                ('delivery_date', models.DateField(blank=True, null=True)),
                ('delivery_status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('dispatched', 'Dispatched'), ('delivered', 'Delivered')], db_index=True, default='pending', max_length=12)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='sales_orders', to='erp.customer')),
                ('created_by', _user_fk('%(class)s_created')),
                ('updated_by', _user_fk('%(class)s_updated')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'abstract': False,
                'indexes': [models.Index(fields=['customer', 'payment_status', 'created_at'], name='erp_so_open_orders_idx')],
            },
        ),
        migrations.CreateModel(
            name='SalesOrderItem',
            fields=[
                *_item_fields(),
                ('hsn_code', models.CharField(blank=True, default='8544', max_length=20)),
                ('unit', models.CharField(blank=True, default='Mtr', max_length=20)),
                ('is_delivered', models.BooleanField(db_index=True, default=False)),
                ('delivered_date', models.DateTimeField(blank=True, null=True)),
                ('delivered_quantity', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18)),
                ('sales_order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='erp.salesorder')),
            ],
            options={
                'ordering': ['id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='PurchaseOrder',
            fields=[
                *_order_fields(),
                ('expected_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('received', 'Received'), ('cancelled', 'Cancelled')], default='pending', max_length=10)),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchase_orders', to='erp.vendor')),
                ('created_by', _user_fk('%(class)s_created')),
                ('updated_by', _user_fk('%(class)s_updated')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'abstract': False,
                'indexes': [models.Index(fields=['vendor', 'payment_status', 'created_at'], name='erp_po_open_orders_idx')],
            },
        ),
        migrations.CreateModel(
            name='PurchaseOrderItem',
            fields=[
                *_item_fields(),
                ('hsn_code', models.CharField(blank=True, default='', max_length=20)),
                ('unit', models.CharField(blank=True, default='Kg', max_length=20)),
                ('purchase_order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='erp.purchaseorder')),
            ],
            options={
                'ordering': ['id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                *_stamps(),
                ('invoice_number', models.CharField(blank=True, max_length=30, unique=True)),
                ('invoice_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('date_of_supply', models.DateTimeField(default=django.utils.timezone.now)),
                ('po_number', models.CharField(blank=True, default='', max_length=50)),
                ('po_date', models.DateTimeField(blank=True, null=True)),
                ('sale_within_maharashtra', models.BooleanField(default=False)),
                ('transporter_name', models.CharField(blank=True, default='', max_length=255)),
                ('lr_no', models.CharField(blank=True, default='', max_length=50)),
                ('vehicle_no', models.CharField(blank=True, default='', max_length=50)),
                ('lr_date', models.DateField(blank=True, null=True)),
                ('billed_to_name', models.CharField(blank=True, default='', max_length=255)),
                ('billed_to_address', models.TextField(blank=True, default='')),
                ('billed_to_state_code', models.CharField(blank=True, default='', max_length=10)),
                ('billed_to_gst_number', models.CharField(blank=True, default='', max_length=50)),
                ('billed_to_contact', models.CharField(blank=True, default='', max_length=50)),
                ('delivery_at_name', models.CharField(blank=True, default='', max_length=255)),
                ('delivery_at_address', models.TextField(blank=True, default='')),
                ('delivery_at_contact', models.CharField(blank=True, default='', max_length=50)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total_gst', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('freight_charges', models.CharField(blank=True, default='nil', max_length=50)),
                ('packing_charges', models.CharField(blank=True, default='nil', max_length=50)),
                ('insurance_charges', models.CharField(blank=True, default='nil', max_length=50)),
                ('other_charges', models.CharField(blank=True, default='nil', max_length=50)),
                ('special_remark', models.TextField(blank=True, default='')),
                ('sales_order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='erp.salesorder')),
                ('created_by', _user_fk('%(class)s_created')),
                ('updated_by', _user_fk('%(class)s_updated')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['sales_order', 'created_at'], name='erp_inv_order_created_idx')],
            },
        ),
        migrations.AddField(
            model_name='salesorder',
            name='latest_invoice',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='erp.invoice'),
        ),
        migrations.CreateModel(
            name='InvoiceItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.CharField(max_length=255)),
                ('hsn_code', models.CharField(blank=True, default='8544', max_length=20)),
                ('uom', models.CharField(blank=True, default='METER', max_length=20)),
                ('quantity', models.DecimalField(decimal_places=6, max_digits=18, validators=[django.core.validators.MinValueValidator(0)])),
                ('rate', models.DecimalField(decimal_places=6, max_digits=18, validators=[django.core.validators.MinValueValidator(0)])),
                ('total_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('taxable_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('gst_rate', models.DecimalField(decimal_places=2, default=Decimal('18.00'), max_digits=5)),
                ('cgst_rate', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=6)),
                ('cgst_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('sgst_rate', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=6)),
                ('sgst_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('igst_rate', models.DecimalField(decimal_places=2, default=Decimal('18.00'), max_digits=5)),
                ('igst_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='erp.invoice')),
                ('so_item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoice_lines', to='erp.salesorderitem')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('received', 'Received'), ('made', 'Made')], db_index=True, max_length=10)),
                ('reference_kind', models.CharField(choices=[('sales_order', 'Sales Order'), ('purchase_order', 'Purchase Order')], max_length=20)),
                ('reference_id', models.PositiveBigIntegerField()),
                ('reference_number', models.CharField(blank=True, default='', max_length=30)),
                ('party_kind', models.CharField(choices=[('customer', 'Customer'), ('vendor', 'Vendor')], max_length=10)),
                ('party_id', models.PositiveBigIntegerField()),
                ('party_name', models.CharField(blank=True, default='', max_length=255)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('bank_transfer', 'Bank Transfer'), ('cheque', 'Cheque'), ('upi', 'UPI')], default='bank_transfer', max_length=20)),
                ('transaction_id', models.CharField(blank=True, default='', max_length=100)),
                ('notes', models.TextField(blank=True, default='')),
                ('payment_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments_recorded', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-payment_date', '-id'],
                'indexes': [
                    models.Index(fields=['reference_kind', 'reference_id'], name='erp_pay_reference_idx'),
                    models.Index(fields=['party_kind', 'party_id'], name='erp_pay_party_idx'),
                ],
            },
        ),
    ]
