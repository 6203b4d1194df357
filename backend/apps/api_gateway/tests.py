from rest_framework import status
from rest_framework.test import APITestCase

from apps.companies.models import Company
from apps.users.models import User, UserCompanyRole


class ApiRootTest(APITestCase):
    def test_api_root_lists_modules(self):
        response = self.client.get('/api/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        endpoints = response.json()['endpoints']
        self.assertEqual(endpoints['finance'], 'http://testserver/api/v1/finance/')
        self.assertIn('feedback', endpoints)

    def test_health_check(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['database']['details']['default'], 'connected')


class CompanyIsolationTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.client.force_authenticate(self.user)

    def test_company_list_requires_membership(self):
        company1 = Company.objects.create(name='Company 1')
        Company.objects.create(name='Company 2')
        UserCompanyRole.objects.create(user=self.user, company=company1, role='user')

        response = self.client.get('/api/v1/companies/')

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['name'], 'Company 1')

    def test_finance_endpoints_reject_foreign_company(self):
        foreign = Company.objects.create(name='Foreign')
        response = self.client.get('/api/v1/finance/transactions/', HTTP_X_COMPANY_ID=str(foreign.pk))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
