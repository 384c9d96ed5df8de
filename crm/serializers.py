from django.contrib.auth import get_user_model
from rest_framework import serializers

from core.accounts.permissions import STAFF_ROLES, has_role
from .models import (
    ChatMessage,
    ClientProject,
    ContactMessage,
    ContactMessageReply,
    NewsletterSubscriber,
    ProjectFile,
)

User = get_user_model()


class NewsletterSubscribeSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    source = serializers.CharField(required=False, allow_blank=True, max_length=50)

    def validate_email(self, value: str) -> str:
        return value.strip().lower()


class NewsletterSubscriberSerializer(serializers.ModelSerializer):
    class Meta:
        model = NewsletterSubscriber
        fields = [
            "id",
            "email",
            "name",
            "status",
            "source",
            "subscribed_at",
            "unsubscribed_at",
        ]
        read_only_fields = fields


class ContactMessageCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContactMessage
        fields = ["name", "email", "phone", "company", "subject", "service", "message"]

    def validate_name(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("This field may not be blank.")
        return value

    def validate_email(self, value: str) -> str:
        return value.strip().lower()

    def validate_message(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("This field may not be blank.")
        return value


class ContactMessageReplySerializer(serializers.ModelSerializer):
    author_username = serializers.CharField(source="author.username", read_only=True, default=None)

    class Meta:
        model = ContactMessageReply
        fields = ["id", "body", "send_email", "author", "author_username", "created_at"]
        read_only_fields = ["author", "created_at"]


class ContactMessageSerializer(serializers.ModelSerializer):
    """
    Admin view of a contact message. Only status, priority and assignee are
    writable; everything else is what the sender submitted.
    """

    replies = ContactMessageReplySerializer(many=True, read_only=True)
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), allow_null=True, required=False
    )
    replied_by_username = serializers.CharField(source="replied_by.username", read_only=True, default=None)

    class Meta:
        model = ContactMessage
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "company",
            "subject",
            "service",
            "message",
            "status",
            "priority",
            "is_read",
            "read_at",
            "assigned_to",
            "replied_at",
            "replied_by",
            "replied_by_username",
            "replies",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "name",
            "email",
            "phone",
            "company",
            "subject",
            "service",
            "message",
            "is_read",
            "read_at",
            "replied_at",
            "replied_by",
            "created_at",
            "updated_at",
        ]

    def validate_assigned_to(self, user):
        if user is not None and not has_role(user, *STAFF_ROLES):
            raise serializers.ValidationError("Messages can only be assigned to admin or staff users.")
        return user


class ContactMessageListSerializer(ContactMessageSerializer):
    class Meta(ContactMessageSerializer.Meta):
        fields = [f for f in ContactMessageSerializer.Meta.fields if f not in ("replies", "message")]


class ProjectFileSerializer(serializers.ModelSerializer):
    uploaded_by_username = serializers.CharField(source="uploaded_by.username", read_only=True, default=None)

    class Meta:
        model = ProjectFile
        fields = [
            "id",
            "project",
            "file_name",
            "file_key",
            "file_url",
            "file_size",
            "content_type",
            "uploaded_by",
            "uploaded_by_username",
            "created_at",
        ]
        read_only_fields = fields


class ClientProjectSerializer(serializers.ModelSerializer):
    client_username = serializers.CharField(source="client.username", read_only=True)
    files_count = serializers.SerializerMethodField()

    class Meta:
        model = ClientProject
        fields = [
            "id",
            "client",
            "client_username",
            "title",
            "description",
            "offer",
            "status",
            "budget",
            "deposit_amount",
            "deposit_paid",
            "deposit_paid_at",
            "final_paid",
            "final_paid_at",
            "assigned_to",
            "start_date",
            "due_date",
            "files_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "deposit_paid",
            "deposit_paid_at",
            "final_paid",
            "final_paid_at",
            "created_at",
            "updated_at",
        ]

    def get_files_count(self, obj) -> int:
        return obj.files.count()

    def validate(self, attrs):
        start, due = attrs.get("start_date"), attrs.get("due_date")
        if start and due and due < start:
            raise serializers.ValidationError({"due_date": "Due date must not precede start date."})
        return attrs


class ChatMessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.SerializerMethodField()
    sender_role = serializers.CharField(source="sender.profile.role", read_only=True, default=None)
    from_client = serializers.BooleanField(read_only=True)

    class Meta:
        model = ChatMessage
        fields = [
            "id",
            "client",
            "sender",
            "sender_name",
            "sender_role",
            "receiver",
            "message",
            "from_client",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = [f for f in fields if f != "message"]

    def get_sender_name(self, obj):
        if obj.sender is None:
            return None
        return obj.sender.get_full_name() or obj.sender.username

    def validate_message(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("The message cannot be empty.")
        return value


class ChatConversationSerializer(serializers.Serializer):
    """One client thread in the team's chat overview (annotated user rows)."""

    id = serializers.IntegerField()
    name = serializers.SerializerMethodField()
    email = serializers.EmailField()
    company_name = serializers.CharField(source="profile.company_name", default="")
    unread_count = serializers.IntegerField()
    last_message = serializers.CharField()
    last_message_at = serializers.DateTimeField()

    def get_name(self, obj):
        return obj.get_full_name() or obj.username
