from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import RequestFactory, TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.accounts.models import Profile
from core.audit.models import AdminActivityLog, AdminAlert
from core.audit.services import client_ip, log_activity, raise_alert

User = get_user_model()


class ServiceTests(TestCase):
    def test_client_ip_prefers_first_forwarded_hop(self):
        factory = RequestFactory()
        proxied = factory.get("/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1", REMOTE_ADDR="10.0.0.1")
        self.assertEqual(client_ip(proxied), "203.0.113.7")
        self.assertEqual(client_ip(factory.get("/", REMOTE_ADDR="198.51.100.2")), "198.51.100.2")
        self.assertIsNone(client_ip(None))

    def test_raise_alert_once_per_related_object(self):
        first, created = raise_alert("payment_failed", "Paiement échoué", related_type="payment", related_id="pi_1")
        again, created_again = raise_alert("payment_failed", "Paiement échoué", related_type="payment", related_id="pi_1")
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.pk, again.pk)
        self.assertEqual(AdminAlert.objects.count(), 1)

    def test_alerts_without_related_object_are_not_merged(self):
        raise_alert("system", "Disk almost full")
        raise_alert("system", "Disk almost full")
        self.assertEqual(AdminAlert.objects.count(), 2)

    def test_log_activity_records_forwarded_ip(self):
        request = RequestFactory().post("/", HTTP_X_FORWARDED_FOR="203.0.113.9, 10.0.0.1")
        request.user = User.objects.create_user(username="boss", password="pw")
        entry = log_activity(request, "update_offer", request.user, "user", details={"fields": ["name"]})
        self.assertEqual(entry.ip_address, "203.0.113.9")
        self.assertEqual(entry.entity_id, str(request.user.pk))


class AuditEndpointTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(username="boss", password="pw")
        cls.admin.profile.role = Profile.Role.ADMIN
        cls.admin.profile.save()
        cls.editor = User.objects.create_user(username="ed", password="pw")
        cls.editor.profile.role = Profile.Role.EDITOR
        cls.editor.profile.save()

    def setUp(self):
        cache.clear()

    def test_logs_are_admin_only(self):
        self.client.force_authenticate(self.editor)
        self.assertEqual(self.client.get("/api/admin/logs/").status_code, status.HTTP_403_FORBIDDEN)

    def test_logs_filter_by_action(self):
        AdminActivityLog.objects.create(user=self.admin, action="create_article", entity_type="article", entity_id="1")
        AdminActivityLog.objects.create(user=self.admin, action="delete_offer", entity_type="offer", entity_id="2")
        self.client.force_authenticate(self.admin)

        body = self.client.get("/api/admin/logs/?action=delete_offer").json()
        self.assertEqual(body["total"], 1)
        self.assertEqual(body["results"][0]["entity_type"], "offer")

        stats = self.client.get("/api/admin/logs/stats/").json()
        self.assertEqual(stats["total"], 2)

    def test_superuser_counts_as_admin(self):
        root = User.objects.create_superuser(username="root", email="root@example.com", password="pw")
        self.client.force_authenticate(root)
        self.assertEqual(self.client.get("/api/admin/alerts/").status_code, status.HTTP_200_OK)

    def test_resolve_alert(self):
        alert, _ = raise_alert("payment_failed", "Paiement échoué", related_type="payment", related_id="pi_2")
        self.client.force_authenticate(self.admin)

        self.assertEqual(self.client.get("/api/admin/alerts/?resolved=false").json()["total"], 1)
        response = self.client.post(f"/api/admin/alerts/{alert.pk}/resolve/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        alert.refresh_from_db()
        self.assertTrue(alert.is_resolved)
        self.assertEqual(alert.resolved_by, self.admin)
        self.assertTrue(AdminActivityLog.objects.filter(action="resolve_alert").exists())
