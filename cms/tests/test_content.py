"""
Content API Tests

Slug conflicts, limit/offset pagination with totals, comment threading and
moderation, rubrique deletion guard and the team page.

Author: Agency Development Team
Version: 1.0.0
"""

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from cms.models import Article, BlogPost, Comment, Offer, PublishStatus, Rubrique
from core.accounts.models import Profile
from core.audit.models import AdminActivityLog

User = get_user_model()


def make_user(username, role=Profile.Role.MEMBER, **extra):
    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pw", **extra)
    user.profile.role = role
    user.profile.save()
    return user


class ArticleTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.author = make_user("author", Profile.Role.AUTHOR)
        cls.editor = make_user("editor", Profile.Role.EDITOR)
        cls.reader = make_user("reader")
        cls.rubrique = Rubrique.objects.create(name="Développement Web")

    def setUp(self):
        cache.clear()

    def test_author_creates_article_with_derived_slug(self):
        self.client.force_authenticate(self.author)
        response = self.client.post(
            "/api/articles/",
            {"title": "Hello World", "content": "word " * 450, "rubrique": self.rubrique.slug},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["slug"], "hello-world")
        self.assertEqual(body["author"]["username"], "author")
        self.assertEqual(body["reading_time"], 3)
        self.assertTrue(
            AdminActivityLog.objects.filter(action="create_article", entity_id=str(body["id"])).exists()
        )

    def test_duplicate_slug_is_conflict(self):
        Article.objects.create(title="Hello World", author=self.author)
        self.client.force_authenticate(self.author)
        response = self.client.post("/api/articles/", {"title": "Hello World"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Article.objects.filter(slug="hello-world").count(), 1)

    def test_member_cannot_create_article(self):
        self.client.force_authenticate(self.reader)
        response = self.client.post("/api/articles/", {"title": "Nope"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_author_cannot_edit_foreign_article(self):
        other = make_user("other", Profile.Role.AUTHOR)
        article = Article.objects.create(title="Theirs", author=other, status=PublishStatus.PUBLISHED)
        self.client.force_authenticate(self.author)
        response = self.client.patch(f"/api/articles/{article.slug}/", {"title": "Mine"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_published_at_is_stamped_once(self):
        article = Article.objects.create(title="Draft", author=self.author)
        self.assertIsNone(article.published_at)
        article.status = PublishStatus.PUBLISHED
        article.save()
        first = article.published_at
        self.assertIsNotNone(first)
        article.save()
        self.assertEqual(article.published_at, first)

    def test_list_pagination_total_matches_independent_count(self):
        for i in range(5):
            Article.objects.create(title=f"Post {i}", author=self.author, status=PublishStatus.PUBLISHED)
        Article.objects.create(title="Hidden draft", author=self.author)

        response = self.client.get("/api/articles/?limit=2&offset=1")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(len(body["results"]), 2)
        self.assertEqual(body["limit"], 2)
        self.assertEqual(body["offset"], 1)
        self.assertEqual(body["total"], Article.objects.filter(status=PublishStatus.PUBLISHED).count())

    def test_retrieve_increments_views(self):
        article = Article.objects.create(title="Read me", author=self.author, status=PublishStatus.PUBLISHED)
        self.client.get(f"/api/articles/{article.slug}/")
        article.refresh_from_db()
        self.assertEqual(article.views_count, 1)


@override_settings(COMMENT_MODERATION=True)
class CommentTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.author = make_user("author", Profile.Role.AUTHOR)
        cls.editor = make_user("editor", Profile.Role.EDITOR)
        cls.article = Article.objects.create(
            title="Threads", author=cls.author, status=PublishStatus.PUBLISHED
        )

    def setUp(self):
        cache.clear()

    def test_anonymous_comment_requires_name_and_email(self):
        response = self.client.post(
            f"/api/articles/{self.article.slug}/comments/", {"content": "Hi"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("author_name", response.json())

    def test_comment_waits_for_moderation(self):
        response = self.client.post(
            f"/api/articles/{self.article.slug}/comments/",
            {"content": "Hi", "author_name": "Jo", "author_email": "jo@example.com"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.json()["is_approved"])

        public = self.client.get(f"/api/articles/{self.article.slug}/comments/").json()
        self.assertEqual(public["total"], 0)

        self.client.force_authenticate(self.editor)
        comment_id = response.json()["id"]
        approve = self.client.post(f"/api/comments/{comment_id}/approve/")
        self.assertEqual(approve.status_code, status.HTTP_200_OK)
        self.assertTrue(Comment.objects.get(pk=comment_id).is_approved)

    def test_comment_tree_nests_replies(self):
        root = Comment.objects.create(article=self.article, author_name="A", content="root", is_approved=True)
        Comment.objects.create(article=self.article, parent=root, author_name="B", content="reply", is_approved=True)
        Comment.objects.create(article=self.article, parent=root, author_name="C", content="hidden")

        body = self.client.get(f"/api/articles/{self.article.slug}/comments/").json()
        self.assertEqual(len(body["results"]), 1)
        self.assertEqual(body["results"][0]["content"], "root")
        self.assertEqual([r["content"] for r in body["results"][0]["replies"]], ["reply"])

    def test_reply_to_comment_of_other_article_is_rejected(self):
        other = Article.objects.create(title="Other", author=self.author, status=PublishStatus.PUBLISHED)
        foreign = Comment.objects.create(article=other, author_name="X", content="x", is_approved=True)
        self.client.force_authenticate(self.author)
        response = self.client.post(
            f"/api/articles/{self.article.slug}/comments/",
            {"content": "reply", "parent": foreign.pk},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class RubriqueTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)

    def setUp(self):
        cache.clear()
        self.client.force_authenticate(self.admin)

    def test_delete_blocked_while_articles_exist(self):
        rubrique = Rubrique.objects.create(name="Design")
        Article.objects.create(title="Logo", author=self.admin, rubrique=rubrique)
        response = self.client.delete(f"/api/rubriques/{rubrique.slug}/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Rubrique.objects.filter(pk=rubrique.pk).exists())

    def test_delete_empty_rubrique_is_journaled(self):
        rubrique = Rubrique.objects.create(name="SEO")
        response = self.client.delete(f"/api/rubriques/{rubrique.slug}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AdminActivityLog.objects.filter(action="delete_rubrique").exists())

    def test_duplicate_rubrique_slug_is_conflict(self):
        Rubrique.objects.create(name="SEO")
        response = self.client.post("/api/rubriques/", {"name": "SEO"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class BlogAndOfferTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)

    def setUp(self):
        cache.clear()

    def test_blog_tags_are_stored_and_listed(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            "/api/blog/",
            {"title": "Django tips", "status": "published", "category": "dev", "tags": ["Django", "Python"]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(sorted(response.json()["tags"]), ["Django", "Python"])

        self.client.force_authenticate(None)
        tags = self.client.get("/api/blog/tags/").json()
        self.assertEqual(tags["total"], 2)
        filtered = self.client.get("/api/blog/?tag=django").json()
        self.assertEqual(filtered["total"], 1)

    def test_duplicate_blog_slug_is_conflict(self):
        BlogPost.objects.create(title="Same", author=self.admin)
        self.client.force_authenticate(self.admin)
        response = self.client.post("/api/blog/", {"title": "Other", "slug": "same"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_duplicate_offer_slug_is_conflict(self):
        Offer.objects.create(name="Site vitrine")
        self.client.force_authenticate(self.admin)
        response = self.client.post("/api/offers/", {"name": "Site vitrine", "features": []}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_inactive_offers_hidden_from_public_list(self):
        Offer.objects.create(name="Active")
        Offer.objects.create(name="Retired", is_active=False)
        body = self.client.get("/api/offers/").json()
        self.assertEqual(body["total"], 1)


class TeamTests(TestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("boss", Profile.Role.ADMIN)
        cls.member = make_user("lina", Profile.Role.AUTHOR)
        cls.member.profile.is_team_member = True
        cls.member.profile.team_position = "Développeuse"
        cls.member.profile.save()

    def setUp(self):
        cache.clear()

    def test_team_list_shows_team_members_only(self):
        body = self.client.get("/api/team/").json()
        self.assertEqual([m["username"] for m in body["results"]], ["lina"])

    def test_admin_updates_member_role(self):
        self.client.force_authenticate(self.admin)
        response = self.client.patch(
            f"/api/team/members/{self.member.pk}/", {"role": "editor", "team_order": 2}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.member.profile.refresh_from_db()
        self.assertEqual(self.member.profile.role, Profile.Role.EDITOR)
        self.assertEqual(self.member.profile.team_order, 2)
