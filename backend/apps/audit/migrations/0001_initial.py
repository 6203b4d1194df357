import django.db.models.deletion
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
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('timestamp', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('user_email', models.CharField(blank=True, help_text='Actor e-mail, kept when the user is deleted or anonymous', max_length=255)),
                ('entity_type', models.CharField(help_text="Type of entity affected (e.g., 'transaction', 'payment_batch', 'user')", max_length=100)),
                ('entity_id', models.CharField(help_text='ID of the entity affected', max_length=255)),
                ('action', models.CharField(choices=[('create', 'Criação'), ('update', 'Atualização'), ('delete', 'Exclusão'), ('login', 'Login'), ('approve', 'Aprovação'), ('reject', 'Rejeição'), ('authorize', 'Autorização'), ('execute', 'Execução')], max_length=20)),
                ('description', models.TextField(blank=True)),
                ('details', models.JSONField(blank=True, help_text='Changed fields, previous values or step metadata', null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=500)),
                ('company', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, to='companies.company')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Audit Log',
                'verbose_name_plural': 'Audit Logs',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['company', 'timestamp'], name='audit_audit_company_7c1f2a_idx'),
                    models.Index(fields=['company', 'entity_type', 'entity_id'], name='audit_audit_company_4e8b9d_idx'),
                ],
            },
        ),
    ]
