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
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('body', models.TextField(blank=True)),
                ('notification_type', models.CharField(choices=[('info', 'Info'), ('warning', 'Aviso'), ('success', 'Sucesso'), ('error', 'Erro')], default='info', max_length=10)),
                ('status', models.CharField(choices=[('unread', 'Não lida'), ('read', 'Lida')], default='unread', max_length=10)),
                ('link', models.CharField(blank=True, max_length=500)),
                ('entity_type', models.CharField(blank=True, max_length=100)),
                ('entity_id', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('company', models.ForeignKey(blank=True, help_text='Empty for system-wide notices such as feedback replies', null=True, on_delete=django.db.models.deletion.CASCADE, to='companies.company')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='notificatio_user_id_5b2c1e_idx'),
                    models.Index(fields=['user', 'created_at'], name='notificatio_user_id_9d4a7f_idx'),
                ],
            },
        ),
    ]
