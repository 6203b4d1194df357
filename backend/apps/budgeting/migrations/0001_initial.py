import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('companies', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CostCenter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255, validators=[django.core.validators.MinLengthValidator(3)])),
                ('code', models.CharField(max_length=30, validators=[django.core.validators.MinLengthValidator(2)])),
                ('description', models.TextField(blank=True)),
                ('budget', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Allocated budget for budget_year', max_digits=18, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('budget_year', models.PositiveIntegerField(blank=True, null=True)),
                ('budget_limit', models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ('approver_email', models.EmailField(blank=True, max_length=254)),
                ('releaser_email', models.EmailField(blank=True, max_length=254)),
                ('is_active', models.BooleanField(default=True)),
                ('allowed_users', models.ManyToManyField(blank=True, help_text='Users allowed to allocate transactions to this cost center (empty: everyone)', related_name='allowed_cost_centers', to=settings.AUTH_USER_MODEL)),
                ('company', models.ForeignKey(help_text='Company this record belongs to', on_delete=django.db.models.deletion.PROTECT, to='companies.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='children', to='budgeting.costcenter')),
            ],
            options={
                'ordering': ['code'],
                'indexes': [models.Index(fields=['company', 'is_active'], name='budgeting_c_company_3a9e51_idx')],
                'constraints': [models.UniqueConstraint(fields=('company', 'code'), name='unique_cost_center_code_per_company')],
            },
        ),
        migrations.CreateModel(
            name='Budget',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('year', models.PositiveIntegerField()),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cost_center', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='budgets', to='budgeting.costcenter')),
            ],
            options={
                'ordering': ['-year'],
                'constraints': [models.UniqueConstraint(fields=('cost_center', 'year'), name='unique_budget_per_cost_center_year')],
            },
        ),
        migrations.CreateModel(
            name='CostCenterUsage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('month_key', models.CharField(help_text='YYYY-MM', max_length=7)),
                ('amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cost_center_usage', to='companies.company')),
                ('cost_center', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='usage', to='budgeting.costcenter')),
            ],
            options={
                'ordering': ['cost_center', 'month_key'],
                'constraints': [models.UniqueConstraint(fields=('cost_center', 'month_key'), name='unique_usage_per_cost_center_month')],
            },
        ),
    ]
