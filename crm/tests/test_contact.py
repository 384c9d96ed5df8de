"""
Contact inbox and newsletter tests.

Author: Agency Development Team
Version: 1.0.0
"""

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from core.accounts.models import Profile
from core.audit.models import AdminActivityLog
from crm.models import ContactMessage, ContactMessageReply, NewsletterSubscriber

User = get_user_model()


def make_user(username, role):
    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pw")
    user.profile.role = role
    user.profile.save()
    return user


@override_settings(ADMIN_NOTIFICATION_EMAIL="inbox@agency.test")
class ContactFlowTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)
        cls.staff = make_user("desk", Profile.Role.STAFF)

    def setUp(self):
        cache.clear()

    def test_submit_and_reply(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                "/api/contact/",
                {"name": "Jo", "email": "jo@x.com", "message": "Hello there"},
                format="json",
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertTrue(body["success"])
        contact = ContactMessage.objects.get(pk=body["id"])
        self.assertEqual(contact.status, ContactMessage.Status.NEW)
        self.assertFalse(contact.is_read)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["inbox@agency.test"])

        self.client.force_authenticate(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            reply = self.client.post(
                f"/api/admin/messages/{contact.pk}/reply/",
                {"body": "Thanks, we will call you."},
                format="json",
            )
        self.assertEqual(reply.status_code, status.HTTP_201_CREATED)

        contact.refresh_from_db()
        self.assertEqual(contact.status, ContactMessage.Status.REPLIED)
        self.assertIsNotNone(contact.replied_at)
        self.assertEqual(contact.replied_by, self.admin)
        self.assertTrue(contact.is_read)
        self.assertEqual(ContactMessageReply.objects.filter(contact_message=contact).count(), 1)
        self.assertEqual(mail.outbox[-1].to, ["jo@x.com"])
        self.assertTrue(
            AdminActivityLog.objects.filter(action="reply_contact_message", entity_id=str(contact.pk)).exists()
        )

    def test_blank_message_is_rejected(self):
        response = self.client.post(
            "/api/contact/", {"name": "Jo", "email": "jo@x.com", "message": "   "}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ContactMessage.objects.exists())

    def test_inbox_requires_staff(self):
        member = make_user("visitor", Profile.Role.MEMBER)
        self.client.force_authenticate(member)
        response = self.client.get("/api/admin/messages/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_detail_marks_message_read(self):
        contact = ContactMessage.objects.create(name="Ana", email="ana@x.com", message="Quote please")
        self.client.force_authenticate(self.staff)
        response = self.client.get(f"/api/admin/messages/{contact.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        contact.refresh_from_db()
        self.assertTrue(contact.is_read)
        self.assertEqual(contact.status, ContactMessage.Status.READ)

    def test_archived_messages_hidden_unless_requested(self):
        ContactMessage.objects.create(name="A", email="a@x.com", message="one")
        ContactMessage.objects.create(
            name="B", email="b@x.com", message="two", status=ContactMessage.Status.ARCHIVED
        )
        self.client.force_authenticate(self.staff)
        self.assertEqual(self.client.get("/api/admin/messages/").json()["total"], 1)
        archived = self.client.get("/api/admin/messages/?status=archived").json()
        self.assertEqual(archived["total"], 1)

    def test_delete_archives_and_permanent_delete_is_admin_only(self):
        contact = ContactMessage.objects.create(name="A", email="a@x.com", message="one")
        self.client.force_authenticate(self.staff)

        response = self.client.delete(f"/api/admin/messages/{contact.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        contact.refresh_from_db()
        self.assertEqual(contact.status, ContactMessage.Status.ARCHIVED)

        response = self.client.delete(f"/api/admin/messages/{contact.pk}/?permanent=true")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(ContactMessage.objects.filter(pk=contact.pk).exists())

        self.client.force_authenticate(self.admin)
        response = self.client.delete(f"/api/admin/messages/{contact.pk}/?permanent=true")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ContactMessage.objects.filter(pk=contact.pk).exists())


class NewsletterTests(TestCase):
    client_class = APIClient

    def setUp(self):
        cache.clear()

    def test_subscribe_then_duplicate(self):
        response = self.client.post("/api/newsletter/subscribe/", {"email": "Fan@Example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(NewsletterSubscriber.objects.filter(email="fan@example.com").exists())

        again = self.client.post("/api/newsletter/subscribe/", {"email": "fan@example.com"}, format="json")
        self.assertEqual(again.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(NewsletterSubscriber.objects.count(), 1)

    def test_unsubscribed_address_is_reactivated(self):
        self.client.post("/api/newsletter/subscribe/", {"email": "fan@example.com"}, format="json")
        response = self.client.post("/api/newsletter/unsubscribe/", {"email": "fan@example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        subscriber = NewsletterSubscriber.objects.get(email="fan@example.com")
        self.assertEqual(subscriber.status, NewsletterSubscriber.Status.UNSUBSCRIBED)
        self.assertIsNotNone(subscriber.unsubscribed_at)

        response = self.client.post("/api/newsletter/subscribe/", {"email": "fan@example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        subscriber.refresh_from_db()
        self.assertEqual(subscriber.status, NewsletterSubscriber.Status.ACTIVE)
        self.assertIsNone(subscriber.unsubscribed_at)
        self.assertEqual(NewsletterSubscriber.objects.count(), 1)

    def test_unsubscribe_unknown_address(self):
        response = self.client.post("/api/newsletter/unsubscribe/", {"email": "ghost@example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_export_is_csv(self):
        NewsletterSubscriber.objects.create(email="fan@example.com", name="Fan")
        self.client.force_authenticate(make_user("boss", Profile.Role.ADMIN))
        response = self.client.get("/api/admin/newsletter/export/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response["Content-Type"].startswith("text/csv"))
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0].split(",")[0], "email")
        self.assertIn("fan@example.com", lines[1])
