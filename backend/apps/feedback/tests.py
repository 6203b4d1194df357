from __future__ import annotations

from unittest import mock

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from apps.feedback.models import Feedback, FeedbackStatus
from apps.notifications.models import Notification

User = get_user_model()

BASE = "/api/v1/feedback/"


class FeedbackAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin", password="pass12345", email="admin@fincontrol.test", role="admin"
        )
        self.user = User.objects.create_user(
            username="carla", password="pass12345", email="carla@acme.test", first_name="Carla"
        )
        self.payload = {
            "feedback_type": "bug",
            "priority": "high",
            "related_features": ["lotes", "dashboard"],
            "title": "Erro ao aprovar lote",
            "description": "O botão de aprovar não responde.",
            "error_context": {"message": "TypeError", "url": "/lotes/3"},
        }

    @mock.patch("apps.feedback.services.EmailService.send_quietly")
    def test_user_submits_feedback_and_admins_are_notified(self, send_quietly):
        self.client.force_authenticate(self.user)
        response = self.client.post(BASE, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.json())
        feedback = Feedback.objects.get()
        self.assertEqual(feedback.user_email, "carla@acme.test")
        self.assertEqual(feedback.status, FeedbackStatus.PENDING)
        self.assertEqual(feedback.error_context["message"], "TypeError")
        self.assertTrue(Notification.objects.filter(user=self.admin, entity_type="feedback").exists())
        send_quietly.assert_called_once()
        email_type, recipients, data = send_quietly.call_args.args
        self.assertEqual(email_type, "feedback_notification")
        self.assertEqual(recipients, ["admin@fincontrol.test"])
        self.assertEqual(data["feedback_type_label"], "Bug")

    def test_unknown_feature_is_rejected(self):
        self.client.force_authenticate(self.user)
        payload = {**self.payload, "related_features": ["estoque"]}
        response = self.client.post(BASE, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch("apps.feedback.services.EmailService.send_quietly")
    def test_users_only_list_their_own_feedback(self, _send):
        other = User.objects.create_user(username="davi", password="pass12345", email="davi@acme.test")
        Feedback.objects.create(user=other, feedback_type="question", title="Como exportar?", description="...")
        self.client.force_authenticate(self.user)
        self.client.post(BASE, self.payload, format="json")

        mine = self.client.get(BASE).json()
        self.assertEqual([row["title"] for row in mine], ["Erro ao aprovar lote"])

        self.client.force_authenticate(self.admin)
        self.assertEqual(len(self.client.get(BASE).json()), 2)

    def test_admin_response_resolves_and_notifies_author(self):
        feedback = Feedback.objects.create(
            user=self.user, feedback_type="improvement", title="Filtro por mês", description="Seria útil."
        )
        self.client.force_authenticate(self.admin)
        response = self.client.post(f"{BASE}{feedback.pk}/respond/", {"response": "Incluído na próxima versão."}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        feedback.refresh_from_db()
        self.assertEqual(feedback.status, FeedbackStatus.RESOLVED)
        self.assertTrue(feedback.read)
        self.assertEqual(feedback.responded_by, self.admin)
        self.assertTrue(Notification.objects.filter(user=self.user, title="Seu feedback foi respondido").exists())

    def test_regular_user_cannot_respond_or_change_status(self):
        feedback = Feedback.objects.create(user=self.user, feedback_type="bug", title="Falha", description="...")
        self.client.force_authenticate(self.user)

        respond = self.client.post(f"{BASE}{feedback.pk}/respond/", {"response": "ok"}, format="json")
        change = self.client.post(f"{BASE}{feedback.pk}/status/", {"status": "wont_fix"}, format="json")

        self.assertEqual(respond.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(change.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_updates_status_and_marks_read(self):
        feedback = Feedback.objects.create(user=self.user, feedback_type="bug", title="Falha", description="...")
        self.client.force_authenticate(self.admin)

        self.assertEqual(self.client.get(f"{BASE}unread-count/").json(), {"unread": 1})
        self.client.post(f"{BASE}{feedback.pk}/status/", {"status": "in_review"}, format="json")
        self.client.post(f"{BASE}{feedback.pk}/mark-read/")

        feedback.refresh_from_db()
        self.assertEqual(feedback.status, FeedbackStatus.IN_REVIEW)
        self.assertTrue(feedback.read)
        self.assertEqual(self.client.get(f"{BASE}unread-count/").json(), {"unread": 0})

    def test_anonymous_cannot_submit(self):
        response = self.client.post(BASE, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
