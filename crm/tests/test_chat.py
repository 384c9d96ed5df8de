from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.accounts.models import Profile, UserNotification
from crm.models import ChatMessage

User = get_user_model()


def make_user(username, role=Profile.Role.MEMBER, **extra):
    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pw", **extra)
    user.profile.role = role
    user.profile.save()
    return user


class ClientChatTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)
        cls.staff = make_user("desk", Profile.Role.STAFF)
        cls.customer = make_user("lea", first_name="Léa", last_name="Martin")
        cls.other = make_user("paul")

    def setUp(self):
        cache.clear()

    def test_send_reaches_admin_and_notifies(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post("/api/messages/send/", {"message": "  Bonjour, où en est le site ?  "}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["message"], "Bonjour, où en est le site ?")
        self.assertEqual(body["receiver"], self.admin.pk)
        self.assertEqual(body["sender_name"], "Léa Martin")
        self.assertTrue(body["from_client"])

        notification = UserNotification.objects.get(user=self.admin)
        self.assertEqual(notification.title, "Nouveau message client")
        self.assertEqual(notification.message, "Nouveau message de lea@example.com")
        self.assertEqual((notification.related_type, notification.related_id), ("chat_message", str(body["id"])))

    def test_empty_message_is_rejected(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post("/api/messages/send/", {"message": "   "}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ChatMessage.objects.exists())

    def test_conversation_is_scoped_to_the_client(self):
        ChatMessage.objects.create(client=self.customer, sender=self.customer, receiver=self.admin, message="A")
        ChatMessage.objects.create(client=self.customer, sender=self.staff, receiver=self.customer, message="B")
        ChatMessage.objects.create(client=self.other, sender=self.other, receiver=self.admin, message="C")

        self.client.force_authenticate(self.customer)
        body = self.client.get("/api/messages/conversation/").json()
        self.assertEqual([m["message"] for m in body["results"]], ["A", "B"])
        self.assertEqual(body["unread_count"], 1)
        self.assertEqual(body["results"][1]["sender_role"], Profile.Role.STAFF)

    def test_mark_read_only_for_the_receiver(self):
        reply = ChatMessage.objects.create(client=self.customer, sender=self.admin, receiver=self.customer, message="Oui")
        self.client.force_authenticate(self.other)
        response = self.client.put(f"/api/messages/{reply.pk}/mark-read/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(self.customer)
        response = self.client.put(f"/api/messages/{reply.pk}/mark-read/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        reply.refresh_from_db()
        self.assertTrue(reply.is_read)
        self.assertIsNotNone(reply.read_at)

    def test_anonymous_gets_401(self):
        self.assertEqual(self.client.get("/api/messages/conversation/").status_code, status.HTTP_401_UNAUTHORIZED)
        response = self.client.post("/api/messages/send/", {"message": "Hi"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class TeamChatTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)
        cls.staff = make_user("desk", Profile.Role.STAFF)
        cls.customer = make_user("lea")
        cls.customer.profile.company_name = "Boulangerie Martin"
        cls.customer.profile.save()
        cls.other = make_user("paul")

    def setUp(self):
        cache.clear()

    def test_conversation_list_counts_unread_client_messages(self):
        ChatMessage.objects.create(client=self.customer, sender=self.customer, receiver=self.admin, message="1")
        ChatMessage.objects.create(client=self.customer, sender=self.customer, receiver=self.admin, message="2")
        ChatMessage.objects.create(client=self.customer, sender=self.admin, receiver=self.customer, message="3")
        ChatMessage.objects.create(client=self.other, sender=self.other, receiver=self.admin, message="4")

        self.client.force_authenticate(self.staff)
        response = self.client.get("/api/messages/admin/conversations/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["total"], 2)
        first, second = body["results"]
        self.assertEqual((first["id"], first["unread_count"], first["last_message"]), (self.other.pk, 1, "4"))
        self.assertEqual((second["id"], second["unread_count"], second["last_message"]), (self.customer.pk, 2, "3"))
        self.assertEqual(second["company_name"], "Boulangerie Martin")

    def test_viewing_thread_marks_client_messages_read(self):
        incoming = ChatMessage.objects.create(client=self.customer, sender=self.customer, receiver=self.admin, message="?")
        outgoing = ChatMessage.objects.create(client=self.customer, sender=self.admin, receiver=self.customer, message="!")

        self.client.force_authenticate(self.staff)
        body = self.client.get(f"/api/messages/admin/conversations/{self.customer.pk}/").json()
        self.assertEqual(body["total"], 2)
        incoming.refresh_from_db()
        outgoing.refresh_from_db()
        self.assertTrue(incoming.is_read)
        self.assertFalse(outgoing.is_read)

    def test_reply_notifies_the_client(self):
        self.client.force_authenticate(self.admin)
        text = "Votre maquette est prête. " * 8
        response = self.client.post(
            f"/api/messages/admin/conversations/{self.customer.pk}/", {"message": text}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        message = ChatMessage.objects.get()
        self.assertEqual((message.client, message.sender, message.receiver), (self.customer, self.admin, self.customer))

        notification = UserNotification.objects.get(user=self.customer)
        self.assertEqual(notification.title, "Nouveau message de l'équipe")
        self.assertEqual(notification.message, text.strip()[:100])

        self.client.force_authenticate(self.customer)
        self.assertEqual(self.client.get("/api/messages/conversation/").json()["unread_count"], 1)

    def test_unknown_client_is_404(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post("/api/messages/admin/conversations/999999/", {"message": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_team_routes_need_staff(self):
        self.client.force_authenticate(self.customer)
        self.assertEqual(
            self.client.get("/api/messages/admin/conversations/").status_code, status.HTTP_403_FORBIDDEN
        )
        self.assertEqual(
            self.client.get(f"/api/messages/admin/conversations/{self.other.pk}/").status_code,
            status.HTTP_403_FORBIDDEN,
        )
