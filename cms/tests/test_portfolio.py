import itertools
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from cms.models import PortfolioImage, PortfolioProject, Testimonial
from core.accounts.models import Profile
from core.audit.models import AdminActivityLog
from core.media.services import MediaFile, MediaValidationError

User = get_user_model()


def make_user(username, role=Profile.Role.MEMBER):
    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pw")
    user.profile.role = role
    user.profile.save()
    return user


def jpg(name="shot.jpg"):
    return SimpleUploadedFile(name, b"\xff\xd8\xff\xe0 test", content_type="image/jpeg")


class PortfolioImageTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)
        cls.editor = make_user("ed", Profile.Role.EDITOR)
        cls.project = PortfolioProject.objects.create(title="Boulangerie Martin", is_published=True)
        cls.draft = PortfolioProject.objects.create(title="Projet confidentiel")

    def setUp(self):
        cache.clear()
        counter = itertools.count(1)

        def fake_upload(uploaded, folder, kinds=("image",), presets=()):
            n = next(counter)
            key = f"agency/{folder}/img-{n}.jpg"
            return MediaFile(
                key=key,
                url=f"https://cdn.example.com/{key}",
                size=10,
                content_type="image/jpeg",
                variants={
                    "PORTFOLIO_MEDIUM": f"https://img.example.com/{n}-medium.jpg",
                    "THUMBNAIL": f"https://img.example.com/{n}-thumb.jpg",
                },
            )

        self.service = mock.Mock()
        self.service.upload.side_effect = fake_upload
        patcher = mock.patch("cms.views.get_media_service", return_value=self.service)
        patcher.start()
        self.addCleanup(patcher.stop)

    def add_image(self, project=None, order=0, key=None):
        project = project or self.project
        key = key or f"agency/portfolio/{project.pk}/seed-{order}.jpg"
        return PortfolioImage.objects.create(
            project=project, image_key=key, image_url=f"https://cdn.example.com/{key}", display_order=order
        )

    def test_public_sees_published_projects_only(self):
        body = self.client.get("/api/portfolio/").json()
        self.assertEqual([p["title"] for p in body["results"]], ["Boulangerie Martin"])
        self.assertEqual(
            self.client.get(f"/api/portfolio/{self.draft.pk}/images/").status_code, status.HTTP_404_NOT_FOUND
        )

        self.client.force_authenticate(self.admin)
        self.assertEqual(self.client.get("/api/portfolio/").json()["total"], 2)

    def test_admin_uploads_images_appended_in_order(self):
        self.add_image(order=4)
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f"/api/portfolio/{self.project.pk}/images/",
            {"images": [jpg("a.jpg"), jpg("b.jpg")]},
            format="multipart",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["total"], 2)
        self.assertEqual([i["display_order"] for i in body["results"]], [5, 6])
        self.assertEqual(body["results"][0]["thumbnail_url"], "https://img.example.com/1-thumb.jpg")
        self.assertEqual(body["results"][0]["medium_url"], "https://img.example.com/1-medium.jpg")

        args, kwargs = self.service.upload.call_args
        self.assertEqual(args[1], f"portfolio/{self.project.pk}")
        self.assertIn("PORTFOLIO_MEDIUM", kwargs["presets"])
        self.assertEqual(self.project.images.count(), 3)
        log = AdminActivityLog.objects.get(action="upload_portfolio_images")
        self.assertEqual(log.details, {"count": 2})

    def test_public_image_listing_is_ordered(self):
        self.add_image(order=2)
        self.add_image(order=1)
        body = self.client.get(f"/api/portfolio/{self.project.pk}/images/").json()
        self.assertEqual([i["display_order"] for i in body["results"]], [1, 2])

    def test_upload_needs_admin_and_at_most_ten_files(self):
        self.client.force_authenticate(self.editor)
        response = self.client.post(
            f"/api/portfolio/{self.project.pk}/images/", {"images": [jpg()]}, format="multipart"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f"/api/portfolio/{self.project.pk}/images/",
            {"images": [jpg(f"p{i}.jpg") for i in range(11)]},
            format="multipart",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f"/api/portfolio/{self.project.pk}/images/", {}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.service.upload.assert_not_called()

    def test_rejected_file_removes_already_stored_objects(self):
        stored = MediaFile(key="agency/portfolio/1/ok.jpg", url="https://cdn.example.com/ok.jpg",
                           size=10, content_type="image/jpeg")
        self.service.upload.side_effect = [stored, MediaValidationError("File type text/plain is not allowed.")]
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f"/api/portfolio/{self.project.pk}/images/",
            {"images": [jpg("ok.jpg"), jpg("bad.jpg")]},
            format="multipart",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.service.delete_many.assert_called_once_with(["agency/portfolio/1/ok.jpg"])
        self.assertFalse(PortfolioImage.objects.exists())

    def test_failed_insert_removes_stored_objects(self):
        self.client.force_authenticate(self.admin)
        with mock.patch("cms.views.PortfolioImage.objects.create", side_effect=RuntimeError("db down")):
            with self.assertRaises(RuntimeError):
                self.client.post(
                    f"/api/portfolio/{self.project.pk}/images/", {"images": [jpg()]}, format="multipart"
                )
        self.service.delete_many.assert_called_once_with([f"agency/portfolio/{self.project.pk}/img-1.jpg"])

    def test_reorder_assigns_list_positions(self):
        a, b, c = self.add_image(order=0), self.add_image(order=1), self.add_image(order=2)
        self.client.force_authenticate(self.admin)
        response = self.client.put(
            f"/api/portfolio/{self.project.pk}/images/reorder/", {"image_ids": [c.pk, a.pk, b.pk]}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([i["id"] for i in response.json()["results"]], [c.pk, a.pk, b.pk])
        c.refresh_from_db()
        b.refresh_from_db()
        self.assertEqual((c.display_order, b.display_order), (0, 2))
        self.assertTrue(AdminActivityLog.objects.filter(action="reorder_portfolio_images").exists())

    def test_reorder_rejects_foreign_or_duplicate_ids(self):
        own = self.add_image()
        foreign = self.add_image(project=self.draft)
        self.client.force_authenticate(self.admin)
        url = f"/api/portfolio/{self.project.pk}/images/reorder/"
        self.assertEqual(
            self.client.put(url, {"image_ids": [own.pk, foreign.pk]}, format="json").status_code,
            status.HTTP_400_BAD_REQUEST,
        )
        self.assertEqual(
            self.client.put(url, {"image_ids": [own.pk, own.pk]}, format="json").status_code,
            status.HTTP_400_BAD_REQUEST,
        )
        self.assertEqual(
            self.client.put(url, {"image_ids": []}, format="json").status_code, status.HTTP_400_BAD_REQUEST
        )
        foreign.refresh_from_db()
        self.assertEqual(foreign.display_order, 0)

    def test_patch_updates_caption_but_not_order(self):
        image = self.add_image(order=3)
        self.client.force_authenticate(self.admin)
        response = self.client.patch(
            f"/api/portfolio/{self.project.pk}/images/{image.pk}/",
            {"caption": "Vitrine en ligne", "alt_text": "Page d'accueil", "is_featured": True, "display_order": 0},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        image.refresh_from_db()
        self.assertEqual(image.caption, "Vitrine en ligne")
        self.assertTrue(image.is_featured)
        self.assertEqual(image.display_order, 3)

        cover = self.client.get(f"/api/portfolio/{self.project.pk}/").json()["cover_image_url"]
        self.assertEqual(cover, image.image_url)

    def test_delete_image_releases_object_after_commit(self):
        image = self.add_image(key="agency/portfolio/x/old.jpg")
        self.client.force_authenticate(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(f"/api/portfolio/{self.project.pk}/images/{image.pk}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PortfolioImage.objects.filter(pk=image.pk).exists())
        self.service.delete.assert_called_once_with("agency/portfolio/x/old.jpg")
        self.assertTrue(AdminActivityLog.objects.filter(action="delete_portfolio_image").exists())

    def test_image_of_another_project_is_404(self):
        foreign = self.add_image(project=self.draft)
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f"/api/portfolio/{self.project.pk}/images/{foreign.pk}/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.service.delete.assert_not_called()

    def test_deleting_project_releases_all_objects(self):
        self.add_image(project=self.draft, order=0, key="k/0.jpg")
        self.add_image(project=self.draft, order=1, key="k/1.jpg")
        Testimonial.objects.create(client_name="Jo", content="Top", portfolio_project=self.draft)
        self.client.force_authenticate(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(f"/api/portfolio/{self.draft.pk}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(sorted(self.service.delete_many.call_args.args[0]), ["k/0.jpg", "k/1.jpg"])
        self.assertIsNone(Testimonial.objects.get(client_name="Jo").portfolio_project)


class PortfolioProjectTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)

    def setUp(self):
        cache.clear()

    def test_create_derives_slug_and_rejects_duplicates(self):
        self.client.force_authenticate(self.admin)
        payload = {"title": "Refonte Atelier Bois", "technologies": ["django", "react"]}
        response = self.client.post("/api/portfolio/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["slug"], "refonte-atelier-bois")
        self.assertEqual(response.json()["cover_image_url"], "")
        self.assertTrue(AdminActivityLog.objects.filter(action="create_portfolio_project").exists())

        response = self.client.post("/api/portfolio/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_testimonial_shows_linked_project(self):
        project = PortfolioProject.objects.create(title="Cave du Port", is_published=True)
        Testimonial.objects.create(client_name="Ana", content="Super", is_approved=True,
                                   portfolio_project=project)
        body = self.client.get("/api/testimonials/").json()
        self.assertEqual(body["results"][0]["portfolio_project_title"], "Cave du Port")
