from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from core.accounts.models import Profile
from core.media.services import MediaFile
from crm.models import ClientProject, ProjectFile

User = get_user_model()


def make_user(username, role=Profile.Role.MEMBER):
    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pw")
    user.profile.role = role
    user.profile.save()
    return user


def pdf_upload(name="brief.pdf"):
    return SimpleUploadedFile(name, b"%PDF-1.4 test", content_type="application/pdf")


class ClientProjectTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.staff = make_user("desk", Profile.Role.STAFF)
        cls.customer = make_user("client")
        cls.stranger = make_user("stranger")
        cls.project = ClientProject.objects.create(client=cls.customer, title="Site vitrine")

    def setUp(self):
        cache.clear()
        self.service = mock.Mock()
        self.service.upload.return_value = MediaFile(
            key="projects/1/brief.pdf",
            url="https://cdn.example.com/projects/1/brief.pdf",
            size=13,
            content_type="application/pdf",
        )
        patcher = mock.patch("crm.views.get_media_service", return_value=self.service)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_client_sees_only_own_projects(self):
        ClientProject.objects.create(client=self.stranger, title="Other")
        self.client.force_authenticate(self.customer)
        body = self.client.get("/api/projects/").json()
        self.assertEqual([p["title"] for p in body["results"]], ["Site vitrine"])

    def test_client_cannot_create_project(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post("/api/projects/", {"client": self.customer.pk, "title": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_client_uploads_project_file(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(
            f"/api/projects/{self.project.pk}/files/", {"file": pdf_upload()}, format="multipart"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.service.upload.assert_called_once()
        args, kwargs = self.service.upload.call_args
        self.assertEqual(args[1], f"projects/{self.project.pk}")
        self.assertIn("document", kwargs["kinds"])

        stored = ProjectFile.objects.get(project=self.project)
        self.assertEqual(stored.file_key, "projects/1/brief.pdf")
        self.assertEqual(stored.uploaded_by, self.customer)

        listing = self.client.get(f"/api/projects/{self.project.pk}/files/").json()
        self.assertEqual(listing["total"], 1)

    def test_stranger_cannot_reach_project(self):
        self.client.force_authenticate(self.stranger)
        response = self.client.get(f"/api/projects/{self.project.pk}/files/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.service.upload.assert_not_called()

    def test_upload_rolled_back_when_insert_fails(self):
        self.client.force_authenticate(self.staff)
        with mock.patch("crm.views.ProjectFile.objects.create", side_effect=RuntimeError("db down")):
            with self.assertRaises(RuntimeError):
                self.client.post(
                    f"/api/projects/{self.project.pk}/files/", {"file": pdf_upload()}, format="multipart"
                )
        self.service.delete.assert_called_once_with("projects/1/brief.pdf")

    def test_staff_deletes_file_after_commit(self):
        project_file = ProjectFile.objects.create(
            project=self.project,
            file_name="brief.pdf",
            file_key="projects/1/brief.pdf",
            file_url="https://cdn.example.com/projects/1/brief.pdf",
        )
        self.client.force_authenticate(self.staff)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(f"/api/projects/{self.project.pk}/files/{project_file.pk}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ProjectFile.objects.filter(pk=project_file.pk).exists())
        self.service.delete.assert_called_once_with("projects/1/brief.pdf")

    def test_client_cannot_delete_file(self):
        project_file = ProjectFile.objects.create(
            project=self.project, file_name="a.pdf", file_key="k", file_url="https://cdn.example.com/k"
        )
        self.client.force_authenticate(self.customer)
        response = self.client.delete(f"/api/projects/{self.project.pk}/files/{project_file.pk}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(ProjectFile.objects.filter(pk=project_file.pk).exists())

    @override_settings(MEDIA_PRESIGNED_EXPIRY_SECONDS=300)
    def test_client_gets_signed_download_link(self):
        project_file = ProjectFile.objects.create(
            project=self.project, file_name="plan.pdf", file_key="projects/1/plan.pdf",
            file_url="https://cdn.example.com/projects/1/plan.pdf",
        )
        self.service.presigned_url.return_value = "https://s3.example.com/signed"
        url = f"/api/projects/{self.project.pk}/files/{project_file.pk}/download/"

        self.client.force_authenticate(self.stranger)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(self.customer)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            response.json(),
            {"url": "https://s3.example.com/signed", "expires_in": 300, "file_name": "plan.pdf"},
        )
        self.service.presigned_url.assert_called_once_with("projects/1/plan.pdf", expires_seconds=300)
