from __future__ import annotations

from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.template import TemplateDoesNotExist
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from apps.notifications.emails import EmailService, EmailType
from apps.notifications.models import Notification, NotificationStatus
from apps.notifications.services import NotificationService

User = get_user_model()


class NotificationAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="nina", password="pass12345")
        self.other = User.objects.create_user(username="otto", password="pass12345")
        self.client.force_authenticate(self.user)

    def test_list_returns_latest_twenty_of_current_user(self):
        for index in range(22):
            NotificationService.notify(self.user, f"Aviso {index}")
        NotificationService.notify(self.other, "Não é seu")

        response = self.client.get("/api/v1/notifications/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [row["title"] for row in response.json()]
        self.assertEqual(len(titles), 20)
        self.assertNotIn("Não é seu", titles)

    def test_unread_count_and_mark_read(self):
        first = NotificationService.notify(self.user, "Lote aprovado")
        NotificationService.notify(self.user, "Lote autorizado")

        self.assertEqual(self.client.get("/api/v1/notifications/unread-count/").json(), {"unread": 2})

        response = self.client.post(f"/api/v1/notifications/{first.pk}/read/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        first.refresh_from_db()
        self.assertEqual(first.status, NotificationStatus.READ)
        self.assertIsNotNone(first.read_at)
        self.assertEqual(self.client.get("/api/v1/notifications/unread-count/").json(), {"unread": 1})

    def test_cannot_mark_someone_elses_notification(self):
        foreign = NotificationService.notify(self.other, "Privado")
        response = self.client.post(f"/api/v1/notifications/{foreign.pk}/read/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_all_read(self):
        NotificationService.notify(self.user, "Um")
        NotificationService.notify(self.user, "Dois")
        NotificationService.notify(self.other, "Três")

        response = self.client.post("/api/v1/notifications/read-all/")

        self.assertEqual(response.json(), {"status": "ok", "updated": 2})
        self.assertEqual(Notification.objects.filter(status=NotificationStatus.UNREAD).count(), 1)

    def test_notify_admins_reaches_global_admins_only(self):
        admin = User.objects.create_user(username="root", password="pass12345", role="admin")
        created = NotificationService.notify_admins("Novo usuário")
        self.assertEqual(created, 1)
        self.assertTrue(Notification.objects.filter(user=admin).exists())


@override_settings(EMAIL_ENABLED=True, RESEND_API_KEY="re_test", APP_ENV="production", DEV_FALLBACK_EMAIL="")
class EmailServiceTests(TestCase):
    def test_renders_subject_and_sends(self):
        result = EmailService.send(
            EmailType.BATCH_APPROVAL_REQUEST,
            "aprovador@acme.test",
            {"batch_name": "Lote 12", "total": "R$ 1.150,00", "link": "http://app/approve-batch/abc"},
        )

        self.assertTrue(result.success)
        self.assertFalse(result.simulated)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, "Lote Aguardando Aprovação: Lote 12")
        self.assertEqual(mail.outbox[0].to, ["aprovador@acme.test"])

    @override_settings(APP_ENV="development", DEV_FALLBACK_EMAIL="dev@fincontrol.test")
    def test_redirects_to_fallback_outside_production(self):
        EmailService.send(EmailType.STATUS_UPDATE, ["cliente@acme.test"], {"description": "Conta de luz"})

        message = mail.outbox[0]
        self.assertEqual(message.to, ["dev@fincontrol.test"])
        self.assertTrue(message.subject.startswith("[TESTE - Original: cliente@acme.test]"))

    @override_settings(EMAIL_ENABLED=False)
    def test_disabled_delivery_is_simulated(self):
        result = EmailService.send(EmailType.STATUS_UPDATE, "x@acme.test", {"description": "Aluguel"})

        self.assertTrue(result.simulated)
        self.assertEqual(mail.outbox, [])

    def test_unknown_type_raises(self):
        with self.assertRaises(ValueError):
            EmailService.send("newsletter", "x@acme.test", {})

    def test_send_quietly_never_raises(self):
        result = EmailService.send_quietly(EmailType.STATUS_UPDATE, [], {})
        self.assertFalse(result.success)

    def test_send_quietly_swallows_template_errors(self):
        with mock.patch(
            "apps.notifications.emails.render_to_string",
            side_effect=TemplateDoesNotExist("notifications/email/status_update.html"),
        ), self.assertLogs("apps.notifications.emails", level="ERROR"):
            result = EmailService.send_quietly(EmailType.STATUS_UPDATE, "x@acme.test", {"description": "Aluguel"})

        self.assertFalse(result.success)
        self.assertEqual(result.recipients, ["x@acme.test"])
        self.assertEqual(mail.outbox, [])


@override_settings(EMAIL_ENABLED=False)
class SendEmailAPITests(APITestCase):
    url = "/api/v1/email/"

    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username="mail", password="pass12345")
        self.client.force_authenticate(self.user)

    def test_simulated_send(self):
        response = self.client.post(
            self.url,
            {"type": "approval_request", "to": "gestor@acme.test", "data": {"description": "Compra"}},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["success"], True)
        self.assertEqual(response.json()["simulated"], True)

    def test_invalid_type_is_rejected(self):
        response = self.client.post(self.url, {"type": "promo", "to": ["a@acme.test"]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("type", response.json())

    def test_rate_limited_per_client(self):
        payload = {"type": "status_update", "to": ["a@acme.test"], "data": {"description": "X"}}
        codes = [self.client.post(self.url, payload, format="json").status_code for _ in range(11)]

        self.assertEqual(codes[:10], [status.HTTP_200_OK] * 10)
        self.assertEqual(codes[10], status.HTTP_429_TOO_MANY_REQUESTS)
