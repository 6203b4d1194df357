import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


TRANSACTION_TYPES = [('payable', 'A pagar'), ('receivable', 'A receber')]
USER_FK = dict(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)


def company_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
        ('company', models.ForeignKey(help_text='Company this record belongs to', on_delete=django.db.models.deletion.PROTECT, to='companies.company')),
        ('created_by', models.ForeignKey(**USER_FK)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('companies', '0001_initial'),
        ('budgeting', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Entity',
            fields=company_fields() + [
                ('entity_type', models.CharField(choices=[('supplier', 'Fornecedor'), ('client', 'Cliente'), ('both', 'Fornecedor e cliente')], default='supplier', max_length=10)),
                ('name', models.CharField(max_length=255, validators=[django.core.validators.MinLengthValidator(2)])),
                ('document', models.CharField(blank=True, help_text='CPF or CNPJ', max_length=20)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('address', models.CharField(blank=True, max_length=500)),
                ('bank_name', models.CharField(blank=True, max_length=100)),
                ('bank_agency', models.CharField(blank=True, max_length=20)),
                ('bank_account', models.CharField(blank=True, max_length=30)),
                ('pix_key', models.CharField(blank=True, max_length=120)),
                ('pix_key_type', models.CharField(blank=True, max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name_plural': 'entities',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['company', 'entity_type'], name='finance_ent_company_8f2d4c_idx')],
            },
        ),
        migrations.CreateModel(
            name='PaymentBatch',
            fields=company_fields() + [
                ('name', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('draft', 'Rascunho'), ('pending_approval', 'Aguardando aprovação'), ('approved', 'Aprovado'), ('approval_rejected', 'Rejeitado na aprovação'), ('pending_authorization', 'Aguardando autorização'), ('authorized', 'Autorizado'), ('authorization_rejected', 'Rejeitado na autorização'), ('executed', 'Executado')], db_index=True, default='draft', max_length=30)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18)),
                ('approval_token', models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ('approval_token_expires_at', models.DateTimeField(blank=True, null=True)),
                ('approver', models.ForeignKey(**USER_FK)),
                ('approver_email', models.EmailField(blank=True, max_length=254)),
                ('sent_for_approval_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by', models.ForeignKey(**USER_FK)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('approval_comment', models.TextField(blank=True)),
                ('authorizer', models.ForeignKey(**USER_FK)),
                ('authorizer_email', models.EmailField(blank=True, max_length=254)),
                ('sent_for_authorization_at', models.DateTimeField(blank=True, null=True)),
                ('authorized_by', models.ForeignKey(**USER_FK)),
                ('authorized_at', models.DateTimeField(blank=True, null=True)),
                ('authorization_comment', models.TextField(blank=True)),
                ('executed_by', models.ForeignKey(**USER_FK)),
                ('executed_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('rejected_at', models.DateTimeField(blank=True, null=True)),
                ('return_reason', models.TextField(blank=True, help_text='Reason given when the approver returned the batch to the manager')),
                ('rejected_transaction_ids', models.JSONField(blank=True, default=list)),
            ],
            options={
                'verbose_name_plural': 'payment batches',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['company', 'status'], name='finance_pay_company_1b7e3a_idx')],
            },
        ),
        migrations.CreateModel(
            name='RecurringTransactionTemplate',
            fields=company_fields() + [
                ('description', models.CharField(max_length=255, validators=[django.core.validators.MinLengthValidator(3)])),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('transaction_type', models.CharField(choices=TRANSACTION_TYPES, max_length=10)),
                ('frequency', models.CharField(choices=[('daily', 'Diária'), ('weekly', 'Semanal'), ('monthly', 'Mensal'), ('yearly', 'Anual')], default='monthly', max_length=10)),
                ('interval', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('next_due_date', models.DateField(db_index=True)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('active', models.BooleanField(default=True)),
                ('last_generated_at', models.DateTimeField(blank=True, null=True)),
                ('base_transaction_data', models.JSONField(blank=True, default=dict, help_text='Extra transaction fields copied into every occurrence')),
                ('cost_center', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='budgeting.costcenter')),
                ('entity', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recurring_templates', to='finance.entity')),
            ],
            options={
                'ordering': ['next_due_date'],
                'indexes': [models.Index(fields=['company', 'active', 'next_due_date'], name='finance_rec_company_6c0f9b_idx')],
            },
        ),
        migrations.CreateModel(
            name='Transaction',
            fields=company_fields() + [
                ('transaction_type', models.CharField(choices=TRANSACTION_TYPES, db_index=True, max_length=10)),
                ('description', models.CharField(max_length=255, validators=[django.core.validators.MinLengthValidator(3)])),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('final_amount', models.DecimalField(blank=True, decimal_places=2, help_text='Amount actually paid or received', max_digits=18, null=True)),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18)),
                ('interest', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18)),
                ('status', models.CharField(choices=[('draft', 'Rascunho'), ('pending_approval', 'Aguardando aprovação'), ('approved', 'Aprovado'), ('paid', 'Pago'), ('rejected', 'Rejeitado')], db_index=True, default='draft', max_length=20)),
                ('due_date', models.DateField()),
                ('payment_date', models.DateField(blank=True, null=True)),
                ('supplier_or_client', models.CharField(blank=True, max_length=255)),
                ('payment_method', models.CharField(blank=True, choices=[('pix', 'PIX'), ('boleto', 'Boleto'), ('transfer', 'Transferência'), ('credit_card', 'Cartão de crédito'), ('cash', 'Dinheiro')], max_length=20)),
                ('request_origin', models.CharField(blank=True, help_text='Requester name / department', max_length=255)),
                ('notes', models.TextField(blank=True)),
                ('attachment_url', models.URLField(blank=True)),
                ('installment_number', models.PositiveIntegerField(blank=True, null=True)),
                ('installments_total', models.PositiveIntegerField(blank=True, null=True)),
                ('installment_group', models.CharField(blank=True, max_length=64)),
                ('approved_by', models.ForeignKey(**USER_FK)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('released_by', models.ForeignKey(**USER_FK)),
                ('released_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('batch_adjusted_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ('batch_rejection_reason', models.TextField(blank=True)),
                ('batch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transactions', to='finance.paymentbatch')),
                ('cost_center', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transactions', to='budgeting.costcenter')),
                ('entity', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transactions', to='finance.entity')),
                ('recurring_template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='occurrences', to='finance.recurringtransactiontemplate')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='requested_transactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['due_date', 'id'],
                'indexes': [
                    models.Index(fields=['company', 'transaction_type', 'status'], name='finance_tra_company_2e5a8d_idx'),
                    models.Index(fields=['company', 'due_date'], name='finance_tra_company_9a3c6e_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('recurring_template__isnull', False)), fields=('recurring_template', 'due_date'), name='unique_occurrence_per_template_due_date'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TransactionAllocation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('percentage', models.DecimalField(decimal_places=2, max_digits=6)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18)),
                ('cost_center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='budgeting.costcenter')),
                ('transaction', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='allocations', to='finance.transaction')),
            ],
            options={
                'ordering': ['id'],
                'constraints': [models.UniqueConstraint(fields=('transaction', 'cost_center'), name='unique_allocation_per_cost_center')],
            },
        ),
        migrations.CreateModel(
            name='CompanyStats',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('current_balance', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=20)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('updated_by', models.CharField(blank=True, max_length=50)),
                ('company', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='stats', to='companies.company')),
            ],
            options={
                'verbose_name_plural': 'company stats',
            },
        ),
    ]
