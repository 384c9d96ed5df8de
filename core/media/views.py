"""
Media Upload Views

Endpoints (/api/uploads/):
- article-image/   POST  author, editor, admin
- avatar/          POST  any authenticated user, replaces the own avatar
- team-photo/      POST  admin
- rubrique-image/  POST  admin
- (root)           GET   editor, admin: search by folder
- (root)           DELETE admin: delete by key

Files are uploaded to the media host first; database rows that reference
them are written afterwards inside a transaction. If that write fails, the
freshly uploaded object is removed again.

Author: Agency Development Team
Version: 1.0.0
"""

import logging

from django.db import transaction
from rest_framework import serializers, status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.accounts.permissions import IsAdmin, IsAuthor, IsEditor
from core.audit.services import log_activity
from .services import MediaValidationError, get_media_service

logger = logging.getLogger(__name__)


def _require_file(request, field: str = "file"):
    uploaded = request.FILES.get(field)
    if uploaded is None:
        raise serializers.ValidationError({field: "No file provided."})
    return uploaded


def upload_or_400(service, uploaded, folder, kinds=("image",), presets=()):
    try:
        return service.upload(uploaded, folder, kinds=kinds, presets=presets)
    except MediaValidationError as e:
        raise serializers.ValidationError({"file": str(e)})


class BaseUploadView(APIView):
    parser_classes = [MultiPartParser, FormParser]
    throttle_scope = "uploads"
    folder = ""
    presets = ()

    def post(self, request):
        service = get_media_service()
        media = upload_or_400(service, _require_file(request), self.folder, presets=self.presets)
        return Response(media.as_dict(), status=status.HTTP_201_CREATED)


class ArticleImageUploadView(BaseUploadView):
    permission_classes = [IsAuthor]
    folder = "articles"
    presets = ("ARTICLE_HERO", "ARTICLE_FEATURED", "ARTICLE_THUMBNAIL")


class TeamPhotoUploadView(BaseUploadView):
    permission_classes = [IsAdmin]
    throttle_scope = "admin_uploads"
    folder = "team"
    presets = ("TEAM_PHOTO", "AVATAR_MEDIUM")


class RubriqueImageUploadView(BaseUploadView):
    permission_classes = [IsAdmin]
    throttle_scope = "admin_uploads"
    folder = "rubriques"
    presets = ("RUBRIQUE_BANNER", "THUMBNAIL")


class AvatarUploadView(APIView):
    """
    Replace the avatar of the current user. The previous object is deleted
    from the media host once the profile update has committed.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    throttle_scope = "uploads"

    def post(self, request):
        service = get_media_service()
        media = upload_or_400(
            service,
            _require_file(request),
            "avatars",
            presets=("AVATAR_LARGE", "AVATAR_MEDIUM", "AVATAR_SMALL"),
        )

        profile = request.user.profile
        old_key = profile.avatar_key
        try:
            with transaction.atomic():
                profile.avatar_url = media.variants.get("AVATAR_LARGE", media.url)
                profile.avatar_key = media.key
                profile.save(update_fields=["avatar_url", "avatar_key", "updated_at"])
        except Exception:
            logger.exception("Avatar update failed, removing uploaded object %s", media.key)
            service.delete(media.key)
            raise

        if old_key and old_key != media.key:
            transaction.on_commit(lambda: service.delete(old_key))

        return Response(
            {"avatar_url": profile.avatar_url, **media.as_dict()},
            status=status.HTTP_201_CREATED,
        )


class MediaLibraryView(APIView):
    """
    GET: search the media host by folder. DELETE: remove an object by key.
    """

    def get_permissions(self):
        if self.request.method == "DELETE":
            return [IsAdmin()]
        return [IsEditor()]

    def get_throttles(self):
        self.throttle_scope = "deletes" if self.request.method == "DELETE" else "downloads"
        return super().get_throttles()

    def get(self, request):
        folder = request.query_params.get("folder", "")
        try:
            max_results = min(int(request.query_params.get("max_results", 100)), 500)
        except ValueError:
            raise serializers.ValidationError({"max_results": "Must be an integer."})
        files = get_media_service().search(folder, max_results=max_results)
        return Response({"results": [f.as_dict() for f in files], "total": len(files)})

    def delete(self, request):
        key = request.query_params.get("key") or request.data.get("key")
        if not key:
            raise serializers.ValidationError({"key": "key is required."})
        if not get_media_service().delete(key):
            return Response({"detail": "File could not be deleted."}, status=status.HTTP_502_BAD_GATEWAY)
        log_activity(request, "delete_media", entity_type="media", details={"key": key})
        return Response(status=status.HTTP_204_NO_CONTENT)
