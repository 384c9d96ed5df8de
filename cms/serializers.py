"""
Editorial Content Serializers

Slug handling: the automatic UniqueValidator of slug fields is disabled and
replaced by ``UniqueSlugMixin`` which derives a missing slug from the title
(or name) and answers a taken slug with 409 Conflict instead of a field
validation error.

Author: Agency Development Team
Version: 1.0.0
"""

from typing import Any, Dict, List

from django.contrib.auth import get_user_model
from django.utils.text import slugify
from rest_framework import serializers

from backend.exceptions import Conflict
from core.accounts.models import Profile
from .models import (
    Article,
    BlogPost,
    BlogTag,
    Comment,
    Offer,
    PortfolioImage,
    PortfolioProject,
    PublishStatus,
    Rubrique,
    Testimonial,
)

User = get_user_model()


class UniqueSlugMixin:
    slug_source = "title"

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        attrs = super().validate(attrs)
        slug = attrs.get("slug")
        if not slug and self.instance is None:
            slug = slugify(attrs.get(self.slug_source, ""))
            if not slug:
                raise serializers.ValidationError(
                    {"slug": "A slug could not be derived; provide one explicitly."}
                )
        if slug:
            model = self.Meta.model
            taken = model.objects.filter(slug=slug)
            if self.instance is not None:
                taken = taken.exclude(pk=self.instance.pk)
            if taken.exists():
                raise Conflict(f"A {model._meta.verbose_name} with slug '{slug}' already exists.")
            attrs["slug"] = slug
        return attrs


class AuthorSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()
    avatar_url = serializers.CharField(source="profile.avatar_url", read_only=True, default="")

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "avatar_url"]

    def get_full_name(self, obj) -> str:
        return obj.get_full_name() or obj.username


class RubriqueSerializer(UniqueSlugMixin, serializers.ModelSerializer):
    slug_source = "name"
    articles_count = serializers.SerializerMethodField()

    class Meta:
        model = Rubrique
        fields = [
            "id",
            "name",
            "slug",
            "description",
            "image_url",
            "color",
            "icon",
            "display_order",
            "is_active",
            "articles_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = {"slug": {"required": False, "validators": []}}

    def get_articles_count(self, obj) -> int:
        count = getattr(obj, "articles_count", None)
        if count is None:
            count = obj.articles.filter(status=PublishStatus.PUBLISHED).count()
        return count


class ArticleSerializer(UniqueSlugMixin, serializers.ModelSerializer):
    author = AuthorSerializer(read_only=True)
    rubrique = serializers.SlugRelatedField(
        slug_field="slug",
        queryset=Rubrique.objects.all(),
        allow_null=True,
        required=False,
    )
    rubrique_name = serializers.CharField(source="rubrique.name", read_only=True, default=None)
    comments_count = serializers.SerializerMethodField()

    class Meta:
        model = Article
        fields = [
            "id",
            "title",
            "slug",
            "excerpt",
            "content",
            "featured_image_url",
            "rubrique",
            "rubrique_name",
            "author",
            "status",
            "is_featured",
            "views_count",
            "reading_time",
            "meta_title",
            "meta_description",
            "comments_count",
            "published_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "views_count",
            "reading_time",
            "published_at",
            "created_at",
            "updated_at",
        ]
        extra_kwargs = {"slug": {"required": False, "validators": []}}

    def get_comments_count(self, obj) -> int:
        count = getattr(obj, "comments_count", None)
        if count is None:
            count = obj.comments.filter(is_approved=True).count()
        return count


class CommentSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    author_email = serializers.EmailField(write_only=True, required=False, allow_blank=True)

    class Meta:
        model = Comment
        fields = [
            "id",
            "article",
            "parent",
            "user",
            "display_name",
            "author_name",
            "author_email",
            "content",
            "is_approved",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["article", "user", "is_approved", "created_at", "updated_at"]

    def validate_parent(self, parent):
        article = self.context.get("article")
        if parent is not None and article is not None and parent.article_id != article.pk:
            raise serializers.ValidationError("Parent comment belongs to another article.")
        return parent

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        request = self.context.get("request")
        anonymous = request is None or not request.user.is_authenticated
        if self.instance is None and anonymous:
            errors = {}
            if not attrs.get("author_name"):
                errors["author_name"] = "Name is required for anonymous comments."
            if not attrs.get("author_email"):
                errors["author_email"] = "Email is required for anonymous comments."
            if errors:
                raise serializers.ValidationError(errors)
        return attrs


def build_comment_tree(comments) -> List[Dict[str, Any]]:
    """
    Nest a flat, ordered comment list by ``parent``. Replies whose parent is
    not part of the list (e.g. not yet approved) are dropped.
    """
    nodes = {}
    roots = []
    for comment in comments:
        nodes[comment.pk] = {**CommentSerializer(comment).data, "replies": []}
    for comment in comments:
        node = nodes[comment.pk]
        if comment.parent_id is None:
            roots.append(node)
        elif comment.parent_id in nodes:
            nodes[comment.parent_id]["replies"].append(node)
    return roots


class TagListField(serializers.Field):
    """Tags as a list of names; stored as BlogTag rows."""

    def to_representation(self, value) -> List[str]:
        return [tag.name for tag in value.all()]

    def to_internal_value(self, data) -> List[str]:
        if isinstance(data, str):
            data = data.split(",")
        if not isinstance(data, (list, tuple)):
            raise serializers.ValidationError("Expected a list of tag names.")
        names = []
        for item in data:
            name = str(item).strip()
            if name and name.lower() not in [n.lower() for n in names]:
                names.append(name[:60])
        return names


class BlogPostSerializer(UniqueSlugMixin, serializers.ModelSerializer):
    author = AuthorSerializer(read_only=True)
    tags = TagListField(required=False)

    class Meta:
        model = BlogPost
        fields = [
            "id",
            "title",
            "slug",
            "excerpt",
            "content",
            "featured_image_url",
            "category",
            "tags",
            "author",
            "status",
            "is_featured",
            "views_count",
            "published_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["views_count", "published_at", "created_at", "updated_at"]
        extra_kwargs = {"slug": {"required": False, "validators": []}}

    def _set_tags(self, post: BlogPost, names: List[str]) -> None:
        tags = []
        for name in names:
            tag, _ = BlogTag.objects.get_or_create(slug=slugify(name)[:80], defaults={"name": name})
            tags.append(tag)
        post.tags.set(tags)

    def create(self, validated_data):
        names = validated_data.pop("tags", [])
        post = super().create(validated_data)
        self._set_tags(post, names)
        return post

    def update(self, instance, validated_data):
        names = validated_data.pop("tags", None)
        post = super().update(instance, validated_data)
        if names is not None:
            self._set_tags(post, names)
        return post


class OfferSerializer(UniqueSlugMixin, serializers.ModelSerializer):
    slug_source = "name"

    class Meta:
        model = Offer
        fields = [
            "id",
            "name",
            "slug",
            "description",
            "features",
            "price_starting_at",
            "currency",
            "duration_weeks",
            "category",
            "is_active",
            "display_order",
            "icon_name",
            "color_theme",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = {"slug": {"required": False, "validators": []}}

    def validate_features(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("features must be a list.")
        return value


class PortfolioImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = PortfolioImage
        fields = [
            "id",
            "project",
            "image_url",
            "thumbnail_url",
            "medium_url",
            "alt_text",
            "caption",
            "is_featured",
            "display_order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "project",
            "image_url",
            "thumbnail_url",
            "medium_url",
            "display_order",
            "created_at",
            "updated_at",
        ]


class PortfolioProjectSerializer(UniqueSlugMixin, serializers.ModelSerializer):
    images = PortfolioImageSerializer(many=True, read_only=True)
    cover_image_url = serializers.SerializerMethodField()

    class Meta:
        model = PortfolioProject
        fields = [
            "id",
            "title",
            "slug",
            "client_name",
            "category",
            "summary",
            "description",
            "project_url",
            "technologies",
            "completed_at",
            "is_published",
            "is_featured",
            "display_order",
            "cover_image_url",
            "images",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = {"slug": {"required": False, "validators": []}}

    def get_cover_image_url(self, obj) -> str:
        images = list(obj.images.all())
        cover = next((i for i in images if i.is_featured), images[0] if images else None)
        if cover is None:
            return ""
        return cover.medium_url or cover.image_url

    def validate_technologies(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("technologies must be a list.")
        return value


class PortfolioReorderSerializer(serializers.Serializer):
    image_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)

    def validate_image_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("Duplicate image ids.")
        return value


class TestimonialSerializer(serializers.ModelSerializer):
    portfolio_project_title = serializers.CharField(
        source="portfolio_project.title", read_only=True, default=None
    )

    class Meta:
        model = Testimonial
        fields = [
            "id",
            "user",
            "client_name",
            "client_company",
            "client_position",
            "client_photo_url",
            "content",
            "rating",
            "project_type",
            "portfolio_project",
            "portfolio_project_title",
            "is_featured",
            "is_approved",
            "display_order",
            "created_at",
        ]
        read_only_fields = ["user", "created_at"]


class PublicTestimonialSerializer(TestimonialSerializer):
    """Testimonial submitted by a client; moderation fields are not writable."""

    class Meta(TestimonialSerializer.Meta):
        read_only_fields = ["user", "is_featured", "is_approved", "display_order", "created_at"]


class TeamMemberSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()
    bio = serializers.CharField(source="profile.bio", read_only=True)
    avatar_url = serializers.CharField(source="profile.avatar_url", read_only=True)
    team_position = serializers.CharField(source="profile.team_position", read_only=True)
    team_order = serializers.IntegerField(source="profile.team_order", read_only=True)
    linkedin_url = serializers.CharField(source="profile.linkedin_url", read_only=True)
    github_url = serializers.CharField(source="profile.github_url", read_only=True)
    twitter_url = serializers.CharField(source="profile.twitter_url", read_only=True)
    articles_count = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "full_name",
            "bio",
            "avatar_url",
            "team_position",
            "team_order",
            "linkedin_url",
            "github_url",
            "twitter_url",
            "articles_count",
        ]

    def get_full_name(self, obj) -> str:
        return obj.get_full_name() or obj.username

    def get_articles_count(self, obj) -> int:
        count = getattr(obj, "articles_count", None)
        if count is None:
            count = obj.articles.filter(status=PublishStatus.PUBLISHED).count()
        return count


class TeamProfileUpdateSerializer(serializers.Serializer):
    """Fields a team member may edit on their own profile."""

    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    bio = serializers.CharField(required=False, allow_blank=True)
    linkedin_url = serializers.URLField(required=False, allow_blank=True)
    github_url = serializers.URLField(required=False, allow_blank=True)
    twitter_url = serializers.URLField(required=False, allow_blank=True)

    user_fields = ("first_name", "last_name")

    def update(self, instance, validated_data):
        profile = instance.profile
        for attr, value in validated_data.items():
            target = instance if attr in self.user_fields else profile
            setattr(target, attr, value)
        instance.save()
        profile.save()
        return instance


class AdminTeamMemberUpdateSerializer(TeamProfileUpdateSerializer):
    """Admins may additionally manage role and team placement."""

    role = serializers.ChoiceField(required=False, choices=Profile.Role.choices)
    is_team_member = serializers.BooleanField(required=False)
    team_position = serializers.CharField(required=False, allow_blank=True, max_length=120)
    team_order = serializers.IntegerField(required=False, min_value=0)
    avatar_url = serializers.URLField(required=False, allow_blank=True)
