"""
Editorial Content Models

Models:
- Rubrique: topical section grouping articles
- Article: editorial article written by authors, filed under a rubrique
- Comment: reader comment on an article, threaded through ``parent``
- BlogTag / BlogPost: agency blog with free categories and tags
- Offer: service offer shown on the pricing pages
- PortfolioProject / PortfolioImage: showcased work and its ordered images
- Testimonial: client testimonial, visible once approved

Slugs are unique per model; publishing stamps ``published_at`` once, on the
first transition to the published state.

Author: Agency Development Team
Version: 1.0.0
"""

import math

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.text import slugify
from django.utils.translation import gettext_lazy as _


class PublishStatus(models.TextChoices):
    DRAFT = "draft", _("Draft")
    PUBLISHED = "published", _("Published")
    ARCHIVED = "archived", _("Archived")


class PublishableModel(models.Model):
    """Abstract base for slugged content with a publish lifecycle."""

    title = models.CharField(max_length=255, verbose_name=_("Title"))
    slug = models.SlugField(max_length=280, unique=True)
    excerpt = models.TextField(blank=True)
    content = models.TextField(blank=True)
    featured_image_url = models.URLField(max_length=500, blank=True)
    status = models.CharField(
        max_length=20, choices=PublishStatus.choices, default=PublishStatus.DRAFT
    )
    is_featured = models.BooleanField(default=False)
    views_count = models.PositiveIntegerField(default=0)
    published_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def __str__(self) -> str:
        return self.title

    @property
    def is_published(self) -> bool:
        return self.status == PublishStatus.PUBLISHED

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.title)[:280]
        if self.is_published and self.published_at is None:
            self.published_at = timezone.now()
        super().save(*args, **kwargs)


class Rubrique(models.Model):
    name = models.CharField(max_length=120, verbose_name=_("Name"))
    slug = models.SlugField(max_length=140, unique=True)
    description = models.TextField(blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    color = models.CharField(max_length=20, blank=True)
    icon = models.CharField(max_length=50, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "name"]
        verbose_name = _("Rubrique")
        verbose_name_plural = _("Rubriques")

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:140]
        super().save(*args, **kwargs)


class Article(PublishableModel):
    rubrique = models.ForeignKey(
        Rubrique,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="articles",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="articles",
    )
    reading_time = models.PositiveIntegerField(default=1, help_text=_("Minutes"))
    meta_title = models.CharField(max_length=255, blank=True)
    meta_description = models.CharField(max_length=320, blank=True)

    class Meta:
        ordering = ["-published_at", "-created_at"]
        verbose_name = _("Article")
        verbose_name_plural = _("Articles")
        indexes = [
            models.Index(fields=["status", "-published_at"], name="article_status_pub_idx"),
            models.Index(fields=["is_featured"], name="article_featured_idx"),
        ]

    def save(self, *args, **kwargs):
        words = len(self.content.split())
        self.reading_time = max(1, math.ceil(words / 200))
        super().save(*args, **kwargs)


class Comment(models.Model):
    article = models.ForeignKey(Article, on_delete=models.CASCADE, related_name="comments")
    parent = models.ForeignKey(
        "self", on_delete=models.CASCADE, null=True, blank=True, related_name="replies"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="comments",
    )
    author_name = models.CharField(max_length=120, blank=True)
    author_email = models.EmailField(blank=True)
    content = models.TextField()
    is_approved = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [models.Index(fields=["article", "is_approved"], name="comment_article_approved_idx")]

    def __str__(self) -> str:
        return f"Comment #{self.pk} on {self.article_id}"

    @property
    def display_name(self) -> str:
        if self.user_id:
            return self.user.get_full_name() or self.user.username
        return self.author_name


class BlogTag(models.Model):
    name = models.CharField(max_length=60)
    slug = models.SlugField(max_length=80, unique=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class BlogPost(PublishableModel):
    category = models.CharField(max_length=80, blank=True, db_index=True)
    tags = models.ManyToManyField(BlogTag, blank=True, related_name="posts")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="blog_posts",
    )

    class Meta:
        ordering = ["-published_at", "-created_at"]
        verbose_name = _("Blog Post")
        verbose_name_plural = _("Blog Posts")
        indexes = [models.Index(fields=["status", "-published_at"], name="blogpost_status_pub_idx")]


class Offer(models.Model):
    class Category(models.TextChoices):
        VITRINE = "vitrine", _("Site vitrine")
        ECOMMERCE = "ecommerce", _("E-commerce")
        WEBAPP = "webapp", _("Application web")
        MAINTENANCE = "maintenance", _("Maintenance")

    name = models.CharField(max_length=150)
    slug = models.SlugField(max_length=170, unique=True)
    description = models.TextField(blank=True)
    features = models.JSONField(default=list, blank=True)
    price_starting_at = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default="EUR")
    duration_weeks = models.PositiveIntegerField(null=True, blank=True)
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.VITRINE)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)
    icon_name = models.CharField(max_length=50, blank=True)
    color_theme = models.CharField(max_length=30, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "name"]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:170]
        super().save(*args, **kwargs)


class PortfolioProject(models.Model):
    """Showcased client work; images are ordered through ``display_order``."""

    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=280, unique=True)
    client_name = models.CharField(max_length=150, blank=True)
    category = models.CharField(max_length=20, choices=Offer.Category.choices, blank=True)
    summary = models.TextField(blank=True)
    description = models.TextField(blank=True)
    project_url = models.URLField(max_length=500, blank=True)
    technologies = models.JSONField(default=list, blank=True)
    completed_at = models.DateField(null=True, blank=True)
    is_published = models.BooleanField(default=False)
    is_featured = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "-completed_at", "-created_at"]
        verbose_name = _("Portfolio Project")
        verbose_name_plural = _("Portfolio Projects")

    def __str__(self) -> str:
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.title)[:280]
        super().save(*args, **kwargs)


class PortfolioImage(models.Model):
    project = models.ForeignKey(PortfolioProject, on_delete=models.CASCADE, related_name="images")
    image_key = models.CharField(max_length=500)
    image_url = models.URLField(max_length=1000)
    thumbnail_url = models.URLField(max_length=1000, blank=True)
    medium_url = models.URLField(max_length=1000, blank=True)
    alt_text = models.CharField(max_length=255, blank=True)
    caption = models.CharField(max_length=500, blank=True)
    is_featured = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "id"]
        indexes = [
            models.Index(fields=["project", "display_order"], name="portfolio_image_order_idx")
        ]

    def __str__(self) -> str:
        return f"{self.project} #{self.display_order}"


class Testimonial(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="testimonials",
    )
    client_name = models.CharField(max_length=150)
    client_company = models.CharField(max_length=150, blank=True)
    client_position = models.CharField(max_length=150, blank=True)
    client_photo_url = models.URLField(max_length=500, blank=True)
    content = models.TextField()
    rating = models.PositiveSmallIntegerField(
        default=5, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    project_type = models.CharField(max_length=100, blank=True)
    portfolio_project = models.ForeignKey(
        PortfolioProject,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="testimonials",
    )
    is_featured = models.BooleanField(default=False)
    is_approved = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "-created_at"]

    def __str__(self) -> str:
        return f"{self.client_name} ({self.rating}/5)"
