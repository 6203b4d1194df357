from django.db import models


class Company(models.Model):
    """
    Tenant boundary. Every financial record belongs to exactly one company.
    """
    name = models.CharField(max_length=255)
    cnpj = models.CharField(max_length=20, blank=True, help_text="Tax identifier (CNPJ)")
    phone = models.CharField(max_length=30, blank=True)
    address = models.CharField(max_length=500, blank=True)
    logo_url = models.URLField(blank=True)
    batch_frequency_days = models.PositiveIntegerField(
        default=7,
        help_text="Suggested interval, in days, between payment batches",
    )
    last_batch_created_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'companies'
        ordering = ['name']
        verbose_name_plural = 'companies'

    def __str__(self):
        return self.name
