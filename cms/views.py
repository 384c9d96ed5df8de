"""
Editorial Content Views

ViewSets:
- RubriqueViewSet: public list/detail, admin CRUD, delete blocked while
  articles reference the rubrique
- ArticleViewSet: public published articles, author/editor/admin writes,
  threaded comments per article, own articles
- CommentViewSet: moderation (approve, pending) and owner edits
- BlogPostViewSet: public blog, admin CRUD, categories/tags, stats
- OfferViewSet: public offers, admin CRUD, stats
- PortfolioProjectViewSet: public published projects, admin CRUD, image
  upload/reorder/update/delete through the media host
- TestimonialViewSet: public approved testimonials, client submissions,
  admin moderation, stats

Views:
- TeamListView / TeamMemberDetailView / TeamMeView / AdminTeamMemberView

All list endpoints paginate with limit/offset and return the total of the
filtered queryset.

Author: Agency Development Team
Version: 1.0.0
"""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Avg, Count, F, Max, Q, QuerySet, Sum
from django.shortcuts import get_object_or_404
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.accounts.permissions import IsAdmin, IsAuthor, IsEditor, IsOwnerOrEditor, is_editor, is_admin
from core.audit.mixins import ActivityLogMixin
from core.audit.services import log_activity
from core.media.services import get_media_service
from core.media.views import upload_or_400
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
from .serializers import (
    AdminTeamMemberUpdateSerializer,
    ArticleSerializer,
    BlogPostSerializer,
    CommentSerializer,
    OfferSerializer,
    PortfolioImageSerializer,
    PortfolioProjectSerializer,
    PortfolioReorderSerializer,
    PublicTestimonialSerializer,
    RubriqueSerializer,
    TeamMemberSerializer,
    TeamProfileUpdateSerializer,
    TestimonialSerializer,
    build_comment_tree,
)

logger = logging.getLogger(__name__)
User = get_user_model()

PUBLISHED = PublishStatus.PUBLISHED
MAX_PORTFOLIO_IMAGES = 10


def _flag(value) -> bool:
    return value is not None and value.lower() in ("1", "true", "yes")


class RubriqueViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    serializer_class = RubriqueSerializer
    lookup_field = "slug"

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [AllowAny()]
        return [IsAdmin()]

    def get_queryset(self) -> QuerySet[Rubrique]:
        queryset = Rubrique.objects.annotate(
            articles_count=Count("articles", filter=Q(articles__status=PUBLISHED))
        )
        if not (is_admin(self.request.user) and _flag(self.request.query_params.get("all"))):
            queryset = queryset.filter(is_active=True)
        return queryset.order_by("display_order", "name")

    def destroy(self, request, *args, **kwargs):
        rubrique = self.get_object()
        if rubrique.articles.exists():
            return Response(
                {"detail": "Rubrique still contains articles and cannot be deleted."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        self.perform_destroy(rubrique)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ArticleViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    """
    Articles, addressed by slug.

    Readers see published articles only. Authors additionally see their own
    drafts, editors and admins see everything on detail routes.
    """

    serializer_class = ArticleSerializer
    lookup_field = "slug"

    def get_permissions(self):
        if self.action in ("list", "retrieve", "comments"):
            return [AllowAny()]
        if self.action == "destroy":
            return [IsAdmin()]
        if self.action == "mine":
            return [IsAuthenticated()]
        return [IsAuthor(), IsOwnerOrEditor()]

    def get_queryset(self) -> QuerySet[Article]:
        user = self.request.user
        params = self.request.query_params
        queryset = Article.objects.select_related("author", "author__profile", "rubrique").annotate(
            comments_count=Count("comments", filter=Q(comments__is_approved=True))
        )

        if self.action == "list" or not user.is_authenticated:
            queryset = queryset.filter(status=PUBLISHED)
        elif not is_editor(user):
            queryset = queryset.filter(Q(status=PUBLISHED) | Q(author=user))

        if self.action == "list":
            if params.get("rubrique"):
                queryset = queryset.filter(rubrique__slug=params["rubrique"])
            if params.get("author"):
                queryset = queryset.filter(author__username=params["author"])
            if params.get("featured") is not None:
                queryset = queryset.filter(is_featured=_flag(params.get("featured")))
            search = params.get("search")
            if search:
                queryset = queryset.filter(
                    Q(title__icontains=search)
                    | Q(excerpt__icontains=search)
                    | Q(content__icontains=search)
                )
        return queryset.order_by("-published_at", "-created_at")

    def get_create_kwargs(self) -> dict:
        return {"author": self.request.user}

    def retrieve(self, request, *args, **kwargs):
        article = self.get_object()
        if article.is_published:
            Article.objects.filter(pk=article.pk).update(views_count=F("views_count") + 1)
            article.views_count += 1
        return Response(self.get_serializer(article).data)

    @action(detail=False, methods=["get"])
    def mine(self, request):
        queryset = (
            Article.objects.filter(author=request.user)
            .select_related("rubrique")
            .annotate(comments_count=Count("comments", filter=Q(comments__is_approved=True)))
            .order_by("-created_at")
        )
        status_filter = request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @action(detail=True, methods=["get", "post"])
    def comments(self, request, slug=None):
        """
        GET: comment tree of the article. Editors see unapproved comments
        too. POST: add a comment (published articles only).
        """
        article = get_object_or_404(Article, slug=slug)

        if request.method == "GET":
            if not article.is_published and not is_editor(request.user):
                raise NotFound()
            comments = article.comments.select_related("user").order_by("created_at")
            if not is_editor(request.user):
                comments = comments.filter(is_approved=True)
            comments = list(comments)
            return Response({"results": build_comment_tree(comments), "total": len(comments)})

        if not article.is_published:
            raise ValidationError({"article": "Comments are only allowed on published articles."})

        serializer = CommentSerializer(
            data=request.data, context={"request": request, "article": article}
        )
        serializer.is_valid(raise_exception=True)
        user = request.user if request.user.is_authenticated else None
        approved = not settings.COMMENT_MODERATION or is_editor(user)
        comment = serializer.save(article=article, user=user, is_approved=approved)
        logger.info("Comment %s created on article %s (approved=%s)", comment.pk, article.pk, approved)
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class OwnerOrEditor(IsOwnerOrEditor):
    owner_field = "user"


class CommentViewSet(
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = CommentSerializer
    queryset = Comment.objects.select_related("article", "user").order_by("created_at")

    def get_permissions(self):
        if self.action in ("approve", "pending"):
            return [IsEditor()]
        if self.action == "retrieve":
            return [AllowAny()]
        return [IsAuthenticated(), OwnerOrEditor()]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == "retrieve" and not is_editor(self.request.user):
            queryset = queryset.filter(is_approved=True)
        return queryset

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        comment = self.get_object()
        with transaction.atomic():
            comment.is_approved = True
            comment.save(update_fields=["is_approved", "updated_at"])
            log_activity(request, "approve_comment", comment, "comment")
        return Response(self.get_serializer(comment).data)

    @action(detail=False, methods=["get"])
    def pending(self, request):
        queryset = self.get_queryset().filter(is_approved=False)
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)


class BlogPostViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    serializer_class = BlogPostSerializer
    lookup_field = "slug"

    def get_permissions(self):
        if self.action in ("list", "retrieve", "categories", "tags"):
            return [AllowAny()]
        return [IsAdmin()]

    def get_queryset(self) -> QuerySet[BlogPost]:
        params = self.request.query_params
        queryset = BlogPost.objects.select_related("author", "author__profile").prefetch_related("tags")

        if self.action == "all":
            if params.get("status"):
                queryset = queryset.filter(status=params["status"])
        elif not (self.action != "list" and is_admin(self.request.user)):
            queryset = queryset.filter(status=PUBLISHED)

        if params.get("category"):
            queryset = queryset.filter(category=params["category"])
        if params.get("tag"):
            queryset = queryset.filter(tags__slug=params["tag"])
        if params.get("featured") is not None:
            queryset = queryset.filter(is_featured=_flag(params.get("featured")))
        search = params.get("search")
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(excerpt__icontains=search))
        return queryset.order_by("-published_at", "-created_at")

    def get_create_kwargs(self) -> dict:
        return {"author": self.request.user}

    def retrieve(self, request, *args, **kwargs):
        post = self.get_object()
        if post.is_published:
            BlogPost.objects.filter(pk=post.pk).update(views_count=F("views_count") + 1)
            post.views_count += 1
        return Response(self.get_serializer(post).data)

    @action(detail=False, methods=["get"])
    def all(self, request):
        """Admin list including drafts."""
        return self.list(request)

    @action(detail=False, methods=["get"])
    def categories(self, request):
        rows = (
            BlogPost.objects.filter(status=PUBLISHED)
            .exclude(category="")
            .values("category")
            .annotate(count=Count("id"))
            .order_by("category")
        )
        return Response({"results": list(rows), "total": len(rows)})

    @action(detail=False, methods=["get"])
    def tags(self, request):
        rows = (
            BlogTag.objects.annotate(count=Count("posts", filter=Q(posts__status=PUBLISHED)))
            .filter(count__gt=0)
            .values("name", "slug", "count")
            .order_by("-count", "name")
        )
        return Response({"results": list(rows), "total": len(rows)})

    @action(detail=False, methods=["get"])
    def stats(self, request):
        posts = BlogPost.objects.all()
        return Response(
            {
                "total": posts.count(),
                "published": posts.filter(status=PUBLISHED).count(),
                "drafts": posts.filter(status=PublishStatus.DRAFT).count(),
                "featured": posts.filter(is_featured=True).count(),
                "total_views": posts.aggregate(total=Sum("views_count"))["total"] or 0,
            }
        )


class OfferViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    serializer_class = OfferSerializer
    lookup_field = "slug"

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [AllowAny()]
        return [IsAdmin()]

    def get_queryset(self) -> QuerySet[Offer]:
        queryset = Offer.objects.all()
        if self.action != "all" and not (self.action != "list" and is_admin(self.request.user)):
            queryset = queryset.filter(is_active=True)
        category = self.request.query_params.get("category")
        if category:
            queryset = queryset.filter(category=category)
        return queryset.order_by("display_order", "name")

    @action(detail=False, methods=["get"])
    def all(self, request):
        return self.list(request)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        offers = Offer.objects.all()
        by_category = offers.values("category").annotate(count=Count("id")).order_by("category")
        return Response(
            {
                "total": offers.count(),
                "active": offers.filter(is_active=True).count(),
                "by_category": list(by_category),
                "average_starting_price": offers.aggregate(avg=Avg("price_starting_at"))["avg"],
            }
        )


class PortfolioProjectViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    """
    Portfolio projects with their ordered images.

    Images live on the media host under ``portfolio/<id>``: every upload
    batch is stored first and inserted afterwards; if the insert fails the
    stored objects are removed again. Deleted rows release their objects
    once the transaction has committed.
    """

    serializer_class = PortfolioProjectSerializer
    lookup_value_regex = r"\d+"
    activity_entity_type = "portfolio_project"

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [AllowAny()]
        if self.action == "images" and self.request.method == "GET":
            return [AllowAny()]
        return [IsAdmin()]

    def get_throttles(self):
        if self.action == "images" and self.request.method == "POST":
            self.throttle_scope = "admin_uploads"
        return super().get_throttles()

    def get_queryset(self) -> QuerySet[PortfolioProject]:
        queryset = PortfolioProject.objects.prefetch_related("images")
        if not is_admin(self.request.user):
            queryset = queryset.filter(is_published=True)
        params = self.request.query_params
        if params.get("category"):
            queryset = queryset.filter(category=params["category"])
        if params.get("featured") is not None:
            queryset = queryset.filter(is_featured=_flag(params.get("featured")))
        return queryset.order_by("display_order", "-completed_at", "-created_at")

    def perform_destroy(self, instance):
        keys = list(instance.images.values_list("image_key", flat=True))
        super().perform_destroy(instance)
        if keys:
            transaction.on_commit(lambda: get_media_service().delete_many(keys))

    def _image_list(self, project) -> Response:
        images = project.images.order_by("display_order", "id")
        return Response(
            {"results": PortfolioImageSerializer(images, many=True).data, "total": images.count()}
        )

    @action(detail=True, methods=["get", "post"], parser_classes=[MultiPartParser, FormParser])
    def images(self, request, pk=None):
        """GET: images in display order. POST: upload up to 10 files in ``images``."""
        project = self.get_object()
        if request.method == "GET":
            return self._image_list(project)

        files = request.FILES.getlist("images")
        if not files:
            raise ValidationError({"images": "No images provided."})
        if len(files) > MAX_PORTFOLIO_IMAGES:
            raise ValidationError({"images": f"At most {MAX_PORTFOLIO_IMAGES} images per upload."})

        service = get_media_service()
        stored = []
        try:
            for f in files:
                stored.append(
                    upload_or_400(
                        service, f, f"portfolio/{project.pk}", presets=("PORTFOLIO_MEDIUM", "THUMBNAIL")
                    )
                )
            with transaction.atomic():
                last = project.images.aggregate(last=Max("display_order"))["last"] or 0
                created = [
                    PortfolioImage.objects.create(
                        project=project,
                        image_key=media.key,
                        image_url=media.url,
                        thumbnail_url=media.variants.get("THUMBNAIL", ""),
                        medium_url=media.variants.get("PORTFOLIO_MEDIUM", ""),
                        display_order=last + position,
                    )
                    for position, media in enumerate(stored, start=1)
                ]
                log_activity(request, "upload_portfolio_images", project, "portfolio_project",
                             details={"count": len(created)})
        except Exception:
            if stored:
                logger.warning("Portfolio upload for project %s failed, removing %d object(s)",
                               project.pk, len(stored))
                service.delete_many([m.key for m in stored])
            raise

        return Response(
            {"results": PortfolioImageSerializer(created, many=True).data, "total": len(created)},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["put"], url_path="images/reorder")
    def reorder_images(self, request, pk=None):
        """Body ``{"image_ids": [...]}``: position in the list becomes display_order."""
        project = self.get_object()
        serializer = PortfolioReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        image_ids = serializer.validated_data["image_ids"]

        images = {i.pk: i for i in project.images.filter(pk__in=image_ids)}
        unknown = [pk for pk in image_ids if pk not in images]
        if unknown:
            raise ValidationError({"image_ids": f"Not images of this project: {unknown}"})

        for position, image_id in enumerate(image_ids):
            images[image_id].display_order = position
        with transaction.atomic():
            PortfolioImage.objects.bulk_update(images.values(), ["display_order"])
            log_activity(request, "reorder_portfolio_images", project, "portfolio_project",
                         details={"image_ids": image_ids})
        return self._image_list(project)

    @action(detail=True, methods=["patch", "delete"], url_path=r"images/(?P<image_id>\d+)")
    def image_detail(self, request, pk=None, image_id=None):
        project = self.get_object()
        image = get_object_or_404(PortfolioImage, pk=image_id, project=project)

        if request.method == "PATCH":
            serializer = PortfolioImageSerializer(image, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            with transaction.atomic():
                serializer.save()
                log_activity(request, "update_portfolio_image", image, "portfolio_image",
                             details={"fields": sorted(serializer.validated_data)})
            return Response(serializer.data)

        key = image.image_key
        with transaction.atomic():
            log_activity(request, "delete_portfolio_image", image, "portfolio_image",
                         details={"key": key, "project": project.pk})
            image.delete()
        transaction.on_commit(lambda: get_media_service().delete(key))
        return Response(status=status.HTTP_204_NO_CONTENT)


class TestimonialViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    def get_serializer_class(self):
        if is_admin(self.request.user):
            return TestimonialSerializer
        return PublicTestimonialSerializer

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [AllowAny()]
        if self.action == "create":
            return [IsAuthenticated()]
        return [IsAdmin()]

    def get_queryset(self) -> QuerySet[Testimonial]:
        queryset = Testimonial.objects.all()
        params = self.request.query_params
        if self.action == "all":
            if params.get("approved") is not None:
                queryset = queryset.filter(is_approved=_flag(params.get("approved")))
        elif not (self.action != "list" and is_admin(self.request.user)):
            queryset = queryset.filter(is_approved=True)
        if params.get("featured") is not None:
            queryset = queryset.filter(is_featured=_flag(params.get("featured")))
        return queryset.order_by("display_order", "-created_at")

    def perform_create(self, serializer):
        # Submissions wait for moderation, whoever sends them
        serializer.save(user=self.request.user, is_approved=False)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        testimonial = self.get_object()
        with transaction.atomic():
            testimonial.is_approved = True
            testimonial.save(update_fields=["is_approved", "updated_at"])
            log_activity(request, "approve_testimonial", testimonial, "testimonial")
        return Response(TestimonialSerializer(testimonial).data)

    @action(detail=False, methods=["get"])
    def all(self, request):
        return self.list(request)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        testimonials = Testimonial.objects.all()
        return Response(
            {
                "total": testimonials.count(),
                "approved": testimonials.filter(is_approved=True).count(),
                "pending": testimonials.filter(is_approved=False).count(),
                "featured": testimonials.filter(is_featured=True).count(),
                "average_rating": testimonials.filter(is_approved=True).aggregate(
                    avg=Avg("rating")
                )["avg"],
            }
        )


# --- Team ---


def _team_queryset():
    return (
        User.objects.filter(is_active=True, profile__is_team_member=True)
        .select_related("profile")
        .annotate(articles_count=Count("articles", filter=Q(articles__status=PUBLISHED)))
        .order_by("profile__team_order", "username")
    )


class TeamListView(generics.ListAPIView):
    serializer_class = TeamMemberSerializer
    permission_classes = [AllowAny]

    def get_queryset(self):
        return _team_queryset()


class TeamMemberDetailView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, username):
        member = get_object_or_404(_team_queryset(), username=username)
        recent = (
            Article.objects.filter(author=member, status=PUBLISHED)
            .select_related("rubrique")
            .order_by("-published_at")[:5]
        )
        data = TeamMemberSerializer(member).data
        data["recent_articles"] = [
            {
                "title": a.title,
                "slug": a.slug,
                "excerpt": a.excerpt,
                "rubrique": a.rubrique.slug if a.rubrique else None,
                "published_at": a.published_at,
            }
            for a in recent
        ]
        return Response(data)


class TeamMeView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request):
        serializer = TeamProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            serializer.save()
        return Response(TeamMemberSerializer(request.user).data)


class AdminTeamMemberView(APIView):
    permission_classes = [IsAdmin]

    def patch(self, request, pk):
        member = get_object_or_404(User.objects.select_related("profile"), pk=pk)
        serializer = AdminTeamMemberUpdateSerializer(member, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            serializer.save()
            log_activity(
                request,
                "update_team_member",
                member,
                "user",
                details={"fields": sorted(serializer.validated_data.keys())},
            )
        return Response(TeamMemberSerializer(member).data)
