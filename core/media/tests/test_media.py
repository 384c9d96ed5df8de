"""
Media storage tests

The S3 client is always a mock; no request leaves the test process.

Author: Agency Development Team
Version: 1.0.0
"""

from unittest import mock

from botocore.exceptions import ClientError
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from core.accounts.models import Profile
from core.media.services import MediaFile, MediaStorageService, MediaValidationError, validate_upload

User = get_user_model()

STORAGE_SETTINGS = dict(
    MEDIA_STORAGE_BUCKET="agency-media",
    MEDIA_STORAGE_ENDPOINT_URL="https://s3.example.com",
    MEDIA_PUBLIC_BASE_URL="https://cdn.example.com",
    MEDIA_TRANSFORM_URL="https://img.example.com/?src={url}&w={width}&h={height}&c={crop}",
)


def png(name="photo.png", size=16):
    return SimpleUploadedFile(name, b"\x89PNG" + b"0" * (size - 4), content_type="image/png")


@override_settings(**STORAGE_SETTINGS)
class MediaStorageServiceTests(SimpleTestCase):
    def setUp(self):
        self.s3 = mock.Mock()
        self.service = MediaStorageService(client=self.s3)

    def test_upload_builds_prefixed_key_and_variants(self):
        media = self.service.upload(png("Mon Logo.PNG"), "avatars", presets=("AVATAR_SMALL",))
        self.assertTrue(media.key.startswith("agency/avatars/"))
        self.assertTrue(media.key.endswith(".png"))
        self.assertIn("mon-logo-", media.key)
        self.assertEqual(media.url, f"https://cdn.example.com/{media.key}")
        self.assertIn("w=64", media.variants["AVATAR_SMALL"])
        self.s3.put_object.assert_called_once()
        self.assertEqual(self.s3.put_object.call_args.kwargs["Bucket"], "agency-media")

    def test_keys_are_unique(self):
        first = self.service.upload(png(), "portfolio")
        second = self.service.upload(png(), "portfolio")
        self.assertNotEqual(first.key, second.key)

    def test_disallowed_type_is_rejected_before_upload(self):
        script = SimpleUploadedFile("x.sh", b"echo", content_type="application/x-sh")
        with self.assertRaises(MediaValidationError):
            self.service.upload(script, "portfolio")
        self.s3.put_object.assert_not_called()

    def test_size_limit_per_kind(self):
        big = mock.Mock(size=11 * 1024 * 1024, content_type="image/jpeg")
        big.name = "big.jpg"
        with self.assertRaises(MediaValidationError):
            validate_upload(big, kinds=("image",))

    def test_document_needs_document_kind(self):
        pdf = SimpleUploadedFile("a.pdf", b"%PDF", content_type="application/pdf")
        with self.assertRaises(MediaValidationError):
            validate_upload(pdf, kinds=("image",))
        self.assertEqual(validate_upload(pdf, kinds=("image", "document")), "document")

    def test_normalize_key_strips_bucket_prefix(self):
        self.assertEqual(
            self.service.normalize_key("/agency-media/agency%2Favatars%2Fa.png"), "agency/avatars/a.png"
        )

    def test_delete_reports_client_errors(self):
        self.s3.delete_object.side_effect = ClientError({"Error": {"Code": "500"}}, "DeleteObject")
        self.assertFalse(self.service.delete("agency/avatars/a.png"))
        self.assertFalse(self.service.delete(""))

    def test_metadata_missing_object(self):
        self.s3.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
        self.assertIsNone(self.service.metadata("agency/avatars/missing.png"))

    def test_search_skips_folder_markers(self):
        self.s3.list_objects_v2.return_value = {
            "Contents": [
                {"Key": "agency/portfolio/", "Size": 0},
                {"Key": "agency/portfolio/a.jpg", "Size": 10},
            ]
        }
        files = self.service.search("portfolio")
        self.assertEqual([f.key for f in files], ["agency/portfolio/a.jpg"])
        self.assertEqual(self.s3.list_objects_v2.call_args.kwargs["Prefix"], "agency/portfolio/")

    def test_presigned_url_normalizes_key(self):
        self.s3.generate_presigned_url.return_value = "https://s3.example.com/signed"
        url = self.service.presigned_url("/agency-media/agency/projects/3/plan.pdf", expires_seconds=600)
        self.assertEqual(url, "https://s3.example.com/signed")
        self.s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "agency-media", "Key": "agency/projects/3/plan.pdf"},
            ExpiresIn=600,
        )


class UploadViewTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(username="lina", email="lina@example.com", password="pw")

    def setUp(self):
        cache.clear()
        self.service = mock.Mock()
        self.service.upload.return_value = MediaFile(
            key="agency/avatars/new.png",
            url="https://cdn.example.com/agency/avatars/new.png",
            size=16,
            content_type="image/png",
            variants={"AVATAR_LARGE": "https://img.example.com/new-large.png"},
        )
        patcher = mock.patch("core.media.views.get_media_service", return_value=self.service)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_avatar_replaces_previous_object_after_commit(self):
        profile = self.user.profile
        profile.avatar_key = "agency/avatars/old.png"
        profile.save()

        self.client.force_authenticate(self.user)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post("/api/uploads/avatar/", {"file": png()}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["avatar_url"], "https://img.example.com/new-large.png")

        profile.refresh_from_db()
        self.assertEqual(profile.avatar_key, "agency/avatars/new.png")
        self.service.delete.assert_called_once_with("agency/avatars/old.png")

    def test_validation_error_becomes_400(self):
        self.service.upload.side_effect = MediaValidationError("File type text/x-sh is not allowed.")
        self.client.force_authenticate(self.user)
        response = self.client.post("/api/uploads/avatar/", {"file": png()}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("file", response.json())

    def test_article_image_requires_author_role(self):
        self.client.force_authenticate(self.user)
        response = self.client.post("/api/uploads/article-image/", {"file": png()}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.user.profile.role = Profile.Role.AUTHOR
        self.user.profile.save()
        response = self.client.post("/api/uploads/article-image/", {"file": png()}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_library_delete_is_admin_only_and_journaled(self):
        self.client.force_authenticate(self.user)
        response = self.client.delete("/api/uploads/?key=agency/portfolio/a.jpg")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.user.profile.role = Profile.Role.ADMIN
        self.user.profile.save()
        self.service.delete.return_value = True
        response = self.client.delete("/api/uploads/?key=agency/portfolio/a.jpg")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.service.delete.assert_called_once_with("agency/portfolio/a.jpg")
