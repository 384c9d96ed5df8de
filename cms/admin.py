from django.contrib import admin

from .models import (
    Article,
    BlogPost,
    BlogTag,
    Comment,
    Offer,
    PortfolioImage,
    PortfolioProject,
    Rubrique,
    Testimonial,
)


@admin.register(Rubrique)
class RubriqueAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "display_order", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name", "description"]
    prepopulated_fields = {"slug": ("name",)}
    ordering = ["display_order", "name"]


class CommentInline(admin.TabularInline):
    model = Comment
    extra = 0
    fields = ["display_name", "content", "is_approved", "created_at"]
    readonly_fields = ["display_name", "created_at"]


@admin.register(Article)
class ArticleAdmin(admin.ModelAdmin):
    list_display = ["title", "rubrique", "author", "status", "is_featured", "views_count", "published_at"]
    list_filter = ["status", "is_featured", "rubrique"]
    search_fields = ["title", "excerpt", "author__username"]
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ["views_count", "reading_time", "published_at", "created_at", "updated_at"]
    inlines = [CommentInline]

    fieldsets = (
        ("Inhalt", {"fields": ("title", "slug", "excerpt", "content", "featured_image_url")}),
        ("Veröffentlichung", {"fields": ("rubrique", "author", "status", "is_featured", "published_at")}),
        ("SEO", {"fields": ("meta_title", "meta_description"), "classes": ("collapse",)}),
        (
            "Statistik",
            {"fields": ("views_count", "reading_time", "created_at", "updated_at"), "classes": ("collapse",)},
        ),
    )


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ["article", "display_name", "is_approved", "created_at"]
    list_filter = ["is_approved", "created_at"]
    search_fields = ["content", "author_name", "author_email", "user__username"]
    actions = ["approve_comments"]

    @admin.action(description="Approve selected comments")
    def approve_comments(self, request, queryset):
        queryset.update(is_approved=True)


@admin.register(BlogTag)
class BlogTagAdmin(admin.ModelAdmin):
    list_display = ["name", "slug"]
    search_fields = ["name"]


@admin.register(BlogPost)
class BlogPostAdmin(admin.ModelAdmin):
    list_display = ["title", "category", "status", "is_featured", "views_count", "published_at"]
    list_filter = ["status", "category", "is_featured"]
    search_fields = ["title", "excerpt"]
    prepopulated_fields = {"slug": ("title",)}
    filter_horizontal = ["tags"]
    readonly_fields = ["views_count", "published_at", "created_at", "updated_at"]


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ["name", "category", "price_starting_at", "currency", "is_active", "display_order"]
    list_filter = ["category", "is_active"]
    search_fields = ["name", "description"]
    prepopulated_fields = {"slug": ("name",)}


class PortfolioImageInline(admin.TabularInline):
    model = PortfolioImage
    extra = 0
    fields = ["display_order", "image_url", "alt_text", "caption", "is_featured"]
    readonly_fields = ["image_url"]


@admin.register(PortfolioProject)
class PortfolioProjectAdmin(admin.ModelAdmin):
    list_display = ["title", "client_name", "category", "is_published", "is_featured", "display_order"]
    list_filter = ["is_published", "is_featured", "category"]
    search_fields = ["title", "client_name", "summary"]
    prepopulated_fields = {"slug": ("title",)}
    inlines = [PortfolioImageInline]


@admin.register(Testimonial)
class TestimonialAdmin(admin.ModelAdmin):
    list_display = ["client_name", "client_company", "portfolio_project", "rating", "is_approved", "is_featured"]
    list_filter = ["is_approved", "is_featured", "rating"]
    search_fields = ["client_name", "client_company", "content"]
