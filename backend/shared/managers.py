from django.db import models


class CompanyQuerySet(models.QuerySet):
    def for_company(self, company):
        """Filter by company"""
        return self.filter(company=company)

    def for_user(self, user):
        """Filter by the companies the user holds an active role in"""
        if getattr(user, "is_global_admin", False):
            return self
        return self.filter(
            company__user_roles__user=user,
            company__user_roles__is_active=True,
        ).distinct()


class CompanyManager(models.Manager.from_queryset(CompanyQuerySet)):
    pass
