"""
Media Storage Service

Façade over the S3 compatible object store (Wasabi by default) that hosts
every uploaded image and document. Views never talk to boto3 directly.

Features:
- Upload with generated, collision free keys under folder presets
- Single and batch delete
- Search by folder prefix (list_objects_v2)
- Object metadata (head_object) and presigned download URLs
- Named transformation presets rendered through a resize endpoint
- Size limits and MIME allow-lists per media kind

Author: Agency Development Team
Version: 1.0.0
"""

import logging
import mimetypes
import os
import urllib.parse
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from django.conf import settings
from django.utils import timezone
from django.utils.text import slugify

logger = logging.getLogger(__name__)

MB = 1024 * 1024

FOLDERS = {
    "articles": "agency/articles",
    "avatars": "agency/avatars",
    "team": "agency/team",
    "rubriques": "agency/rubriques",
    "portfolio": "agency/portfolio",
    "projects": "agency/projects",
}

# width, height, crop
TRANSFORMATIONS = {
    "ARTICLE_HERO": (1920, 1080, "fill"),
    "ARTICLE_FEATURED": (1200, 630, "fill"),
    "ARTICLE_THUMBNAIL": (600, 400, "fill"),
    "AVATAR_LARGE": (400, 400, "thumb"),
    "AVATAR_MEDIUM": (200, 200, "thumb"),
    "AVATAR_SMALL": (64, 64, "thumb"),
    "TEAM_PHOTO": (600, 600, "fill"),
    "RUBRIQUE_BANNER": (800, 400, "fill"),
    "PORTFOLIO_MEDIUM": (1200, 800, "fit"),
    "THUMBNAIL": (300, 300, "fill"),
}

SIZE_LIMITS = {
    "image": 10 * MB,
    "document": 50 * MB,
    "video": 100 * MB,
}

ALLOWED_MIME_TYPES = {
    "image": {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
    },
    "document": {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/zip",
        "text/plain",
        "text/csv",
    },
    "video": {"video/mp4", "video/webm", "video/quicktime"},
}


class MediaValidationError(ValueError):
    """Raised when a file violates the size or MIME rules of its kind."""


@dataclass
class MediaFile:
    """Repräsentiert eine Datei im Media Storage."""

    key: str
    url: str
    size: int
    content_type: str
    last_modified: Optional[datetime] = None
    variants: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "key": self.key,
            "url": self.url,
            "size": self.size,
            "content_type": self.content_type,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "variants": self.variants,
        }


def media_kind(content_type: str) -> Optional[str]:
    for kind, allowed in ALLOWED_MIME_TYPES.items():
        if content_type in allowed:
            return kind
    return None


def validate_upload(uploaded_file, kinds: Iterable[str] = ("image",)) -> str:
    """
    Check MIME type and size of an uploaded file against the given kinds.

    Returns:
        The detected kind ("image", "document" or "video")
    """
    content_type = getattr(uploaded_file, "content_type", None) or (
        mimetypes.guess_type(uploaded_file.name)[0] or "application/octet-stream"
    )
    kind = media_kind(content_type)
    if kind is None or kind not in kinds:
        raise MediaValidationError(f"File type {content_type} is not allowed.")
    if uploaded_file.size > SIZE_LIMITS[kind]:
        limit_mb = SIZE_LIMITS[kind] // MB
        raise MediaValidationError(f"File exceeds the {limit_mb} MB limit for {kind} files.")
    return kind


class MediaStorageService:
    """
    Service für Media Storage Operationen.

    Objects are stored publicly readable; the public URL is built from
    MEDIA_PUBLIC_BASE_URL (CDN) or, when unset, from the endpoint and bucket.
    """

    def __init__(self, client=None):
        self.bucket_name = settings.MEDIA_STORAGE_BUCKET
        self.endpoint_url = settings.MEDIA_STORAGE_ENDPOINT_URL
        self.public_base_url = settings.MEDIA_PUBLIC_BASE_URL
        self.transform_url = settings.MEDIA_TRANSFORM_URL
        self.client = client or self._create_client()

    def _create_client(self):
        return boto3.client(
            "s3",
            aws_access_key_id=settings.MEDIA_STORAGE_ACCESS_KEY_ID,
            aws_secret_access_key=settings.MEDIA_STORAGE_SECRET_ACCESS_KEY,
            region_name=settings.MEDIA_STORAGE_REGION,
            endpoint_url=self.endpoint_url,
            config=Config(s3={"addressing_style": "virtual"}),
        )

    # --- keys and URLs ---

    def normalize_key(self, key: str) -> str:
        """
        URL-decode, strip leading slashes and a duplicated bucket prefix.
        """
        if not key:
            return key
        trimmed = urllib.parse.unquote(key).lstrip("/")
        bucket_prefix = f"{self.bucket_name}/"
        if trimmed.startswith(bucket_prefix):
            trimmed = trimmed[len(bucket_prefix):]
        return trimmed

    def build_key(self, folder: str, filename: str) -> str:
        prefix = FOLDERS.get(folder, folder).strip("/")
        stem, ext = os.path.splitext(os.path.basename(filename))
        safe_stem = slugify(stem)[:60] or "file"
        stamp = timezone.now().strftime("%Y/%m")
        return f"{prefix}/{stamp}/{safe_stem}-{uuid.uuid4().hex[:12]}{ext.lower()}"

    def public_url(self, key: str) -> str:
        quoted = urllib.parse.quote(key)
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quoted}"
        return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{quoted}"

    def transformed_url(self, key: str, preset: str) -> str:
        """
        URL of a named transformation preset. Without a resize endpoint the
        original public URL is returned.
        """
        if preset not in TRANSFORMATIONS:
            raise KeyError(f"Unknown transformation preset: {preset}")
        url = self.public_url(key)
        if not self.transform_url:
            return url
        width, height, crop = TRANSFORMATIONS[preset]
        return self.transform_url.format(
            url=urllib.parse.quote(url, safe=""), width=width, height=height, crop=crop
        )

    def variants(self, key: str, presets: Iterable[str]) -> Dict[str, str]:
        return {preset: self.transformed_url(key, preset) for preset in presets}

    # --- operations ---

    def upload(
        self,
        uploaded_file,
        folder: str,
        kinds: Iterable[str] = ("image",),
        presets: Iterable[str] = (),
    ) -> MediaFile:
        """
        Validate and store an uploaded file.

        Raises:
            MediaValidationError: on size or MIME violations
            botocore.exceptions.ClientError: when the media host rejects it
        """
        validate_upload(uploaded_file, kinds)
        content_type = uploaded_file.content_type or "application/octet-stream"
        key = self.build_key(folder, uploaded_file.name)

        uploaded_file.seek(0)
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=uploaded_file.read(),
            ContentType=content_type,
            ACL="public-read",
        )
        logger.info("Uploaded %s (%s bytes) to %s", uploaded_file.name, uploaded_file.size, key)
        return MediaFile(
            key=key,
            url=self.public_url(key),
            size=uploaded_file.size,
            content_type=content_type,
            last_modified=timezone.now(),
            variants=self.variants(key, presets),
        )

    def delete(self, key: str) -> bool:
        key = self.normalize_key(key)
        if not key:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            logger.error("Fehler beim Löschen von %s: %s", key, e)
            return False
        logger.info("Deleted %s", key)
        return True

    def delete_many(self, keys: Iterable[str]) -> List[str]:
        """
        Batch delete. Returns the keys reported as deleted.
        """
        objects = [{"Key": self.normalize_key(k)} for k in keys if k]
        if not objects:
            return []
        response = self.client.delete_objects(
            Bucket=self.bucket_name, Delete={"Objects": objects, "Quiet": False}
        )
        for error in response.get("Errors", []):
            logger.error("Fehler beim Löschen von %s: %s", error.get("Key"), error.get("Message"))
        return [d["Key"] for d in response.get("Deleted", [])]

    def search(self, folder: str = "", max_results: int = 100) -> List[MediaFile]:
        prefix = FOLDERS.get(folder, folder).strip("/")
        params = {"Bucket": self.bucket_name, "MaxKeys": max_results}
        if prefix:
            params["Prefix"] = f"{prefix}/"
        response = self.client.list_objects_v2(**params)

        files = []
        for obj in response.get("Contents", []):
            if obj["Key"].endswith("/"):
                continue
            content_type = mimetypes.guess_type(obj["Key"])[0] or "application/octet-stream"
            files.append(
                MediaFile(
                    key=obj["Key"],
                    url=self.public_url(obj["Key"]),
                    size=obj.get("Size", 0),
                    content_type=content_type,
                    last_modified=obj.get("LastModified"),
                )
            )
        return files

    def metadata(self, key: str) -> Optional[MediaFile]:
        key = self.normalize_key(key)
        try:
            head = self.client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return None
            raise
        return MediaFile(
            key=key,
            url=self.public_url(key),
            size=head.get("ContentLength", 0),
            content_type=head.get("ContentType", "application/octet-stream"),
            last_modified=head.get("LastModified"),
        )

    def presigned_url(self, key: str, expires_seconds: int = 3600) -> str:
        return self.client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket_name, "Key": self.normalize_key(key)},
            ExpiresIn=expires_seconds,
        )


def get_media_service() -> MediaStorageService:
    return MediaStorageService()
