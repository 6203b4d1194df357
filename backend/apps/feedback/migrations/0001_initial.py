import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Feedback',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_email', models.EmailField(blank=True, max_length=254)),
                ('user_name', models.CharField(blank=True, max_length=255)),
                ('feedback_type', models.CharField(choices=[('bug', 'Bug'), ('improvement', 'Melhoria'), ('question', 'Dúvida'), ('praise', 'Elogio')], max_length=20)),
                ('priority', models.CharField(choices=[('low', 'Baixa'), ('medium', 'Média'), ('high', 'Alta'), ('critical', 'Crítica')], default='medium', max_length=20)),
                ('related_features', models.JSONField(blank=True, default=list)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField()),
                ('screenshot_url', models.URLField(blank=True)),
                ('error_context', models.JSONField(blank=True, help_text='Error message, URL and time when sent from an error screen', null=True)),
                ('status', models.CharField(choices=[('pending', 'Pendente'), ('in_review', 'Em análise'), ('resolved', 'Resolvido'), ('wont_fix', 'Não será corrigido')], default='pending', max_length=20)),
                ('read', models.BooleanField(default=False)),
                ('admin_response', models.TextField(blank=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('responded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='feedbacks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='feedback_fe_status_3d7a2b_idx'),
                ],
            },
        ),
    ]
