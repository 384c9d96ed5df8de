"""
Client Relationship Views

Views:
- NewsletterSubscribeView / NewsletterUnsubscribeView: public newsletter
- NewsletterSubscriberViewSet: admin list, stats, CSV export
- ContactMessageCreateView: public contact form
- ContactMessageViewSet: admin inbox (detail marks read, reply, status,
  archive or permanent delete, stats)
- ChatConversationView / ChatSendView / ChatMarkReadView: client chat
- ChatConversationListView / ChatConversationDetailView: team side of the chat
- ClientProjectViewSet: client projects with file attachments

Author: Agency Development Team
Version: 1.0.0
"""

import csv
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, F, OuterRef, Q, QuerySet, Subquery
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.accounts.models import Profile
from core.accounts.notifications import notify
from core.accounts.permissions import IsAdmin, IsAdminOrStaff, STAFF_ROLES, has_role
from core.audit.mixins import ActivityLogMixin
from core.audit.services import client_ip, log_activity
from core.media.services import get_media_service
from core.media.views import upload_or_400
from .emails import queue_contact_notification, queue_contact_reply
from .models import (
    ChatMessage,
    ClientProject,
    ContactMessage,
    ContactMessageReply,
    NewsletterSubscriber,
    ProjectFile,
)
from .serializers import (
    ChatConversationSerializer,
    ChatMessageSerializer,
    ClientProjectSerializer,
    ContactMessageCreateSerializer,
    ContactMessageListSerializer,
    ContactMessageReplySerializer,
    ContactMessageSerializer,
    NewsletterSubscribeSerializer,
    NewsletterSubscriberSerializer,
    ProjectFileSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()


# --- Newsletter ---


class NewsletterSubscribeView(APIView):
    """
    Subscribe an address. An active address is rejected, an unsubscribed one
    is re-activated.
    """

    permission_classes = [AllowAny]
    throttle_scope = "newsletter"

    def post(self, request):
        serializer = NewsletterSubscribeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        email = data["email"]

        with transaction.atomic():
            subscriber = (
                NewsletterSubscriber.objects.select_for_update().filter(email=email).first()
            )
            if subscriber is not None and subscriber.is_active:
                return Response(
                    {"detail": "This email is already subscribed."},
                    status=status.HTTP_400_BAD_REQUEST,
                )

            if subscriber is not None:
                subscriber.status = NewsletterSubscriber.Status.ACTIVE
                subscriber.unsubscribed_at = None
                subscriber.name = data.get("name") or subscriber.name
                subscriber.save(update_fields=["status", "unsubscribed_at", "name"])
                message = "Subscription re-activated."
            else:
                subscriber = NewsletterSubscriber.objects.create(
                    email=email,
                    name=data.get("name", ""),
                    source=data.get("source") or "website",
                    ip_address=client_ip(request),
                    user_agent=request.META.get("HTTP_USER_AGENT", "")[:500],
                )
                message = "Subscription confirmed."

        logger.info("Newsletter subscription for %s", email)
        return Response(
            {"success": True, "message": message, "id": subscriber.pk},
            status=status.HTTP_201_CREATED,
        )


class NewsletterUnsubscribeView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "newsletter"

    def post(self, request):
        email = (request.data.get("email") or "").strip().lower()
        if not email:
            raise serializers.ValidationError({"email": "This field is required."})
        subscriber = get_object_or_404(NewsletterSubscriber, email=email)
        if subscriber.is_active:
            subscriber.status = NewsletterSubscriber.Status.UNSUBSCRIBED
            subscriber.unsubscribed_at = timezone.now()
            subscriber.save(update_fields=["status", "unsubscribed_at"])
        return Response({"success": True, "message": "Unsubscribed."})


class NewsletterSubscriberViewSet(
    mixins.ListModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet
):
    serializer_class = NewsletterSubscriberSerializer
    permission_classes = [IsAdmin]

    def get_queryset(self) -> QuerySet[NewsletterSubscriber]:
        queryset = NewsletterSubscriber.objects.all()
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        search = params.get("search")
        if search:
            queryset = queryset.filter(Q(email__icontains=search) | Q(name__icontains=search))
        return queryset.order_by("-subscribed_at")

    def perform_destroy(self, instance):
        with transaction.atomic():
            log_activity(self.request, "delete_subscriber", instance, "newsletter_subscriber",
                         details={"email": instance.email})
            instance.delete()

    @action(detail=False, methods=["get"])
    def stats(self, request):
        subscribers = NewsletterSubscriber.objects.all()
        since = timezone.now() - timedelta(days=30)
        by_source = (
            subscribers.filter(status=NewsletterSubscriber.Status.ACTIVE)
            .values("source")
            .annotate(count=Count("id"))
            .order_by("-count")
        )
        return Response(
            {
                "total": subscribers.count(),
                "active": subscribers.filter(status=NewsletterSubscriber.Status.ACTIVE).count(),
                "unsubscribed": subscribers.filter(
                    status=NewsletterSubscriber.Status.UNSUBSCRIBED
                ).count(),
                "new_last_30_days": subscribers.filter(subscribed_at__gte=since).count(),
                "by_source": list(by_source),
            }
        )

    @action(detail=False, methods=["get"])
    def export(self, request):
        """CSV export of the (filtered) subscriber list."""
        response = HttpResponse(content_type="text/csv; charset=utf-8")
        filename = f"newsletter-subscribers-{timezone.now():%Y%m%d}.csv"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'

        writer = csv.writer(response)
        writer.writerow(["email", "name", "status", "source", "subscribed_at", "unsubscribed_at"])
        for sub in self.get_queryset().iterator():
            writer.writerow(
                [
                    sub.email,
                    sub.name,
                    sub.status,
                    sub.source,
                    sub.subscribed_at.isoformat(),
                    sub.unsubscribed_at.isoformat() if sub.unsubscribed_at else "",
                ]
            )
        return response


# --- Contact ---


class ContactMessageCreateView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "contact"

    def post(self, request):
        serializer = ContactMessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            contact = serializer.save(
                status=ContactMessage.Status.NEW,
                is_read=False,
                ip_address=client_ip(request),
                user_agent=request.META.get("HTTP_USER_AGENT", "")[:500],
            )
            queue_contact_notification(contact)

        logger.info("Contact message %s received from %s", contact.pk, contact.email)
        return Response(
            {"success": True, "message": "Message envoyé avec succès", "id": contact.pk},
            status=status.HTTP_200_OK,
        )


class ContactMessageViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Admin inbox for contact messages.

    - list: filters status, priority, assigned_to, search; archived messages
      only with ?status=archived
    - retrieve: full conversation, marks the message read
    - reply: stores the reply, sets status 'replied' and replied_at/by,
      emails the sender after commit
    - partial_update: status, priority, assigned_to
    - destroy: archives; ?permanent=true deletes
    """

    permission_classes = [IsAdminOrStaff]

    def get_serializer_class(self):
        if self.action == "list":
            return ContactMessageListSerializer
        return ContactMessageSerializer

    def get_queryset(self) -> QuerySet[ContactMessage]:
        queryset = ContactMessage.objects.select_related("assigned_to", "replied_by")
        if self.action != "list":
            return queryset.prefetch_related("replies__author")

        params = self.request.query_params
        status_filter = params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        else:
            queryset = queryset.exclude(status=ContactMessage.Status.ARCHIVED)
        if params.get("priority"):
            queryset = queryset.filter(priority=params["priority"])
        if params.get("assigned_to"):
            queryset = queryset.filter(assigned_to_id=params["assigned_to"])
        if params.get("unread") is not None and params["unread"].lower() in ("1", "true"):
            queryset = queryset.filter(is_read=False)
        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search)
                | Q(email__icontains=search)
                | Q(subject__icontains=search)
                | Q(message__icontains=search)
            )
        return queryset.order_by("is_read", "-created_at")

    def retrieve(self, request, *args, **kwargs):
        contact = self.get_object()
        if not contact.is_read:
            contact.is_read = True
            contact.read_at = timezone.now()
            fields = ["is_read", "read_at", "updated_at"]
            if contact.status == ContactMessage.Status.NEW:
                contact.status = ContactMessage.Status.READ
                fields.append("status")
            contact.save(update_fields=fields)
        return Response(self.get_serializer(contact).data)

    def perform_update(self, serializer):
        with transaction.atomic():
            contact = serializer.save()
            log_activity(
                self.request,
                "update_contact_message",
                contact,
                "contact_message",
                details={k: str(v) for k, v in serializer.validated_data.items()},
            )

    def destroy(self, request, *args, **kwargs):
        contact = self.get_object()
        permanent = request.query_params.get("permanent", "").lower() == "true"
        with transaction.atomic():
            if permanent:
                if not has_role(request.user, "admin"):
                    return Response(
                        {"detail": "Only admins may delete messages permanently."},
                        status=status.HTTP_403_FORBIDDEN,
                    )
                log_activity(request, "delete_contact_message", contact, "contact_message",
                             details={"email": contact.email})
                contact.delete()
                return Response(status=status.HTTP_204_NO_CONTENT)

            contact.status = ContactMessage.Status.ARCHIVED
            contact.save(update_fields=["status", "updated_at"])
            log_activity(request, "archive_contact_message", contact, "contact_message")
        return Response(self.get_serializer(contact).data)

    @action(detail=True, methods=["post"])
    def reply(self, request, pk=None):
        contact = self.get_object()
        serializer = ContactMessageReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            reply = serializer.save(contact_message=contact, author=request.user)
            now = timezone.now()
            contact.status = ContactMessage.Status.REPLIED
            contact.replied_at = now
            contact.replied_by = request.user
            contact.is_read = True
            contact.read_at = contact.read_at or now
            contact.save(
                update_fields=["status", "replied_at", "replied_by", "is_read", "read_at", "updated_at"]
            )
            log_activity(request, "reply_contact_message", contact, "contact_message",
                         details={"reply_id": reply.pk})
            if reply.send_email:
                queue_contact_reply(contact, reply)

        return Response(
            {
                "reply": ContactMessageReplySerializer(reply).data,
                "message": ContactMessageSerializer(contact).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"])
    def stats(self, request):
        messages = ContactMessage.objects.all()
        since = timezone.now() - timedelta(days=7)
        by_status = messages.values("status").annotate(count=Count("id")).order_by("status")
        return Response(
            {
                "total": messages.count(),
                "unread": messages.filter(is_read=False).count(),
                "replied": messages.filter(status=ContactMessage.Status.REPLIED).count(),
                "last_7_days": messages.filter(created_at__gte=since).count(),
                "by_status": list(by_status),
            }
        )


# --- Client chat ---


def _chat_desk_user():
    """The team member who receives client messages: the oldest active admin."""
    return (
        User.objects.filter(Q(is_superuser=True) | Q(profile__role=Profile.Role.ADMIN), is_active=True)
        .order_by("date_joined", "id")
        .first()
    )


class ChatConversationView(APIView):
    """The signed-in client's thread with the team, oldest first."""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        messages = ChatMessage.objects.filter(client=request.user).select_related("sender__profile")
        unread = messages.filter(receiver=request.user, is_read=False).count()
        data = ChatMessageSerializer(messages, many=True).data
        return Response({"results": data, "total": len(data), "unread_count": unread})


class ChatSendView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "chat"

    def post(self, request):
        serializer = ChatMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        desk = _chat_desk_user()
        with transaction.atomic():
            message = serializer.save(client=request.user, sender=request.user, receiver=desk)
            if desk is None:
                logger.warning("Chat message %s from user %s has no admin to receive it", message.pk, request.user.pk)
            else:
                notify(
                    desk,
                    "Nouveau message client",
                    f"Nouveau message de {request.user.email or request.user.username}",
                    related_type="chat_message",
                    related_id=message.pk,
                )
        return Response(ChatMessageSerializer(message).data, status=status.HTTP_201_CREATED)


class ChatMarkReadView(APIView):
    permission_classes = [IsAuthenticated]

    def put(self, request, pk):
        message = get_object_or_404(ChatMessage, pk=pk, receiver=request.user)
        if not message.is_read:
            message.is_read = True
            message.read_at = timezone.now()
            message.save(update_fields=["is_read", "read_at"])
        return Response(ChatMessageSerializer(message).data)


class ChatConversationListView(generics.ListAPIView):
    """Every client thread with its unread count, most recent first."""

    permission_classes = [IsAdminOrStaff]
    serializer_class = ChatConversationSerializer

    def get_queryset(self):
        latest = ChatMessage.objects.filter(client=OuterRef("pk")).order_by("-created_at", "-id")
        return (
            User.objects.select_related("profile")
            .annotate(
                message_count=Count("chat_messages"),
                unread_count=Count(
                    "chat_messages",
                    filter=Q(chat_messages__is_read=False, chat_messages__sender=F("id")),
                ),
            )
            .filter(message_count__gt=0)
            .annotate(
                last_message=Subquery(latest.values("message")[:1]),
                last_message_at=Subquery(latest.values("created_at")[:1]),
            )
            .order_by("-last_message_at", "id")
        )


class ChatConversationDetailView(APIView):
    """
    One client's thread for the team.

    GET marks the client's unread messages as read; POST replies and
    notifies the client.
    """

    permission_classes = [IsAdminOrStaff]
    throttle_scope = "chat"

    def get_throttles(self):
        if self.request.method != "POST":
            return []
        return super().get_throttles()

    def get(self, request, user_id):
        client = get_object_or_404(User, pk=user_id)
        ChatMessage.objects.filter(client=client, sender=client, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        messages = ChatMessage.objects.filter(client=client).select_related("sender__profile")
        data = ChatMessageSerializer(messages, many=True).data
        return Response({"results": data, "total": len(data)})

    def post(self, request, user_id):
        client = get_object_or_404(User, pk=user_id)
        serializer = ChatMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            message = serializer.save(client=client, sender=request.user, receiver=client)
            notify(
                client,
                "Nouveau message de l'équipe",
                message.message[:100],
                related_type="chat_message",
                related_id=message.pk,
            )
        logger.info("Chat reply %s sent to user %s by %s", message.pk, client.pk, request.user.pk)
        return Response(ChatMessageSerializer(message).data, status=status.HTTP_201_CREATED)


# --- Client projects ---


class ProjectAccess(IsAuthenticated):
    """
    Project readers: the client, the assigned user, admin or staff.
    Writes to the project itself: admin or staff.
    """

    def has_object_permission(self, request, view, obj) -> bool:
        if has_role(request.user, *STAFF_ROLES):
            return True
        if view.action not in ("retrieve", "files", "download_file"):
            return False
        if request.method not in ("GET", "HEAD", "OPTIONS") and view.action != "files":
            return False
        return request.user.id in (obj.client_id, obj.assigned_to_id)


class ClientProjectViewSet(ActivityLogMixin, viewsets.ModelViewSet):
    serializer_class = ClientProjectSerializer
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_permissions(self):
        if self.action in ("create", "update", "partial_update", "destroy"):
            return [IsAdminOrStaff()]
        return [ProjectAccess()]

    def get_queryset(self) -> QuerySet[ClientProject]:
        queryset = ClientProject.objects.select_related("client", "assigned_to", "offer")
        user = self.request.user
        if not has_role(user, *STAFF_ROLES):
            queryset = queryset.filter(Q(client=user) | Q(assigned_to=user))
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset.order_by("-created_at")

    @action(detail=True, methods=["get", "post"])
    def files(self, request, pk=None):
        """
        GET lists the project's files, POST uploads one. The object is
        uploaded first; if the database insert fails it is removed again.
        """
        project = self.get_object()
        if request.method == "GET":
            files = project.files.select_related("uploaded_by")
            return Response(
                {"results": ProjectFileSerializer(files, many=True).data, "total": files.count()}
            )

        uploaded = request.FILES.get("file")
        if uploaded is None:
            raise serializers.ValidationError({"file": "No file provided."})

        service = get_media_service()
        media = upload_or_400(
            service, uploaded, f"projects/{project.pk}", kinds=("image", "document", "video")
        )
        try:
            with transaction.atomic():
                project_file = ProjectFile.objects.create(
                    project=project,
                    uploaded_by=request.user,
                    file_name=uploaded.name[:255],
                    file_key=media.key,
                    file_url=media.url,
                    file_size=media.size,
                    content_type=media.content_type,
                )
        except Exception:
            logger.exception("Project file insert failed, removing %s", media.key)
            service.delete(media.key)
            raise

        return Response(ProjectFileSerializer(project_file).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path=r"files/(?P<file_id>\d+)/download")
    def download_file(self, request, pk=None, file_id=None):
        """Short-lived signed URL for a project file."""
        project = self.get_object()
        project_file = get_object_or_404(ProjectFile, pk=file_id, project=project)
        expires = settings.MEDIA_PRESIGNED_EXPIRY_SECONDS
        url = get_media_service().presigned_url(project_file.file_key, expires_seconds=expires)
        return Response({"url": url, "expires_in": expires, "file_name": project_file.file_name})

    @action(detail=True, methods=["delete"], url_path=r"files/(?P<file_id>\d+)")
    def delete_file(self, request, pk=None, file_id=None):
        project = self.get_object()
        if not has_role(request.user, *STAFF_ROLES):
            return Response(status=status.HTTP_403_FORBIDDEN)
        project_file = get_object_or_404(ProjectFile, pk=file_id, project=project)
        key = project_file.file_key
        with transaction.atomic():
            log_activity(request, "delete_project_file", project_file, "project_file",
                         details={"key": key})
            project_file.delete()
        transaction.on_commit(lambda: get_media_service().delete(key))
        return Response(status=status.HTTP_204_NO_CONTENT)
