"""
Account API Tests

Covers registration, login with cookie tokens, lockout after repeated
failures, the own-account endpoint, password reset and notifications.

Author: Agency Development Team
Version: 1.0.0
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework import status
from rest_framework.test import APIClient

from core.accounts.models import LoginAttempt, Profile, UserNotification
from core.accounts.notifications import notify

User = get_user_model()
PASSWORD = "S3cure-Passw0rd!"


class RegisterTests(TestCase):
    client_class = APIClient

    def setUp(self):
        cache.clear()

    def test_register_creates_user_profile_and_sets_cookies(self):
        response = self.client.post(
            "/api/auth/register/",
            {
                "username": "claire",
                "email": "Claire@Example.com",
                "password": PASSWORD,
                "company_name": "Atelier C",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn("access_token", response.cookies)
        self.assertIn("refresh_token", response.cookies)
        self.assertTrue(response.cookies["access_token"]["httponly"])
        self.assertNotIn("access", response.json())

        user = User.objects.get(username="claire")
        self.assertEqual(user.email, "claire@example.com")
        self.assertEqual(user.profile.role, Profile.Role.MEMBER)
        self.assertEqual(user.profile.company_name, "Atelier C")

    def test_register_rejects_duplicate_email(self):
        User.objects.create_user(username="first", email="dup@example.com", password=PASSWORD)
        response = self.client.post(
            "/api/auth/register/",
            {"username": "second", "email": "DUP@example.com", "password": PASSWORD},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", response.json())


class LoginTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username="max", email="max@example.com", password=PASSWORD
        )

    def setUp(self):
        cache.clear()

    def test_login_with_username_sets_cookies(self):
        response = self.client.post(
            "/api/auth/login/", {"username": "max", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["user"]["username"], "max")
        self.assertIn("access_token", response.cookies)

    def test_login_with_email(self):
        response = self.client.post(
            "/api/auth/login/", {"email": "MAX@example.com", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_wrong_password_is_401_and_journaled(self):
        response = self.client.post(
            "/api/auth/login/", {"username": "max", "password": "nope"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(LoginAttempt.objects.filter(identifier="max@example.com", success=False).count(), 1)
        self.assertEqual(response.json()["detail"], "Invalid credentials.")

    @override_settings(MAX_LOGIN_ATTEMPTS=3)
    def test_lockout_after_repeated_failures(self):
        for _ in range(3):
            self.client.post(
                "/api/auth/login/", {"username": "max", "password": "nope"}, format="json"
            )
        response = self.client.post(
            "/api/auth/login/", {"username": "max", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

    @override_settings(MAX_LOGIN_ATTEMPTS=4)
    def test_username_and_email_share_one_failure_budget(self):
        for payload in (
            {"username": "max", "password": "nope"},
            {"email": "max@example.com", "password": "nope"},
            {"username": "MAX", "password": "nope"},
            {"email": "Max@Example.com", "password": "nope"},
        ):
            response = self.client.post("/api/auth/login/", payload, format="json")
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        response = self.client.post(
            "/api/auth/login/", {"email": "max@example.com", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(
            LoginAttempt.objects.filter(identifier="max@example.com", success=False).count(), 4
        )

    def test_unknown_identifier_is_401(self):
        response = self.client.post(
            "/api/auth/login/", {"username": "ghost", "password": "nope"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertTrue(LoginAttempt.objects.filter(identifier="ghost", success=False).exists())

    def test_successful_login_clears_failures(self):
        self.client.post("/api/auth/login/", {"username": "max", "password": "nope"}, format="json")
        self.client.post("/api/auth/login/", {"username": "max", "password": PASSWORD}, format="json")
        self.assertFalse(
            LoginAttempt.objects.filter(identifier="max@example.com", success=False).exists()
        )

    def test_access_cookie_authenticates_me(self):
        login = self.client.post(
            "/api/auth/login/", {"username": "max", "password": PASSWORD}, format="json"
        )
        self.client.cookies["access_token"] = login.cookies["access_token"].value
        response = self.client.get("/api/auth/me/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["email"], "max@example.com")

    def test_logout_clears_cookies(self):
        self.client.post("/api/auth/login/", {"username": "max", "password": PASSWORD}, format="json")
        response = self.client.post("/api/auth/logout/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.cookies["access_token"].value, "")

    def test_refresh_without_cookie_is_400(self):
        response = self.client.post("/api/auth/refresh/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class MeTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(username="ana", email="ana@example.com", password=PASSWORD)

    def setUp(self):
        cache.clear()

    def test_me_requires_authentication(self):
        self.assertEqual(self.client.get("/api/auth/me/").status_code, status.HTTP_401_UNAUTHORIZED)

    def test_patch_updates_nested_profile_but_not_role(self):
        self.client.force_authenticate(self.user)
        response = self.client.patch(
            "/api/auth/me/",
            {"first_name": "Ana", "profile": {"bio": "Designer", "role": "admin"}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, "Ana")
        self.assertEqual(self.user.profile.bio, "Designer")
        self.assertEqual(self.user.profile.role, Profile.Role.MEMBER)


class PasswordResetTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(username="leo", email="leo@example.com", password=PASSWORD)

    def setUp(self):
        cache.clear()

    def test_forgot_password_sends_mail_for_known_address_only(self):
        response = self.client.post(
            "/api/auth/forgot-password/", {"email": "leo@example.com"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("reset-password?uid=", mail.outbox[0].body)

        response = self.client.post(
            "/api/auth/forgot-password/", {"email": "ghost@example.com"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)

    def test_reset_password_with_valid_token(self):
        payload = {
            "uid": urlsafe_base64_encode(force_bytes(self.user.pk)),
            "token": default_token_generator.make_token(self.user),
            "password": "An0ther-Str0ng-One",
        }
        response = self.client.post("/api/auth/reset-password/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("An0ther-Str0ng-One"))

    def test_reset_password_with_bad_token(self):
        payload = {
            "uid": urlsafe_base64_encode(force_bytes(self.user.pk)),
            "token": "bad-token",
            "password": "An0ther-Str0ng-One",
        }
        response = self.client.post("/api/auth/reset-password/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class NotificationTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(username="zoe", email="zoe@example.com", password=PASSWORD)

    def setUp(self):
        cache.clear()
        self.client.force_authenticate(self.user)

    def test_notify_is_idempotent_per_related_object(self):
        _, created = notify(self.user, "Paiement confirmé", related_type="payment", related_id="pi_1")
        _, created_again = notify(self.user, "Paiement confirmé", related_type="payment", related_id="pi_1")
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(UserNotification.objects.filter(user=self.user).count(), 1)

    def test_read_all_marks_own_notifications(self):
        notify(self.user, "One")
        notify(self.user, "Two")
        response = self.client.post("/api/notifications/read-all/")
        self.assertEqual(response.json()["updated"], 2)
        listing = self.client.get("/api/notifications/?unread=true")
        self.assertEqual(listing.json()["total"], 0)
