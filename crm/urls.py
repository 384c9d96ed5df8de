"""
CRM URLs

API Endpoints:
- /api/newsletter/subscribe/            Public subscribe
- /api/newsletter/unsubscribe/          Public unsubscribe
- /api/contact/                         Public contact form
- /api/admin/newsletter/                Subscribers, /stats/, /export/
- /api/admin/messages/                  Contact inbox, /stats/, /{id}/reply/
- /api/projects/                        Client projects, /{id}/files/
- /api/messages/conversation/           Client chat thread
- /api/messages/send/                   Client sends a chat message
- /api/messages/{id}/mark-read/         Mark a received chat message read
- /api/messages/admin/conversations/    Team: client threads, /{user_id}/ view or reply
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r"admin/newsletter", views.NewsletterSubscriberViewSet, basename="subscriber")
router.register(r"admin/messages", views.ContactMessageViewSet, basename="contact-message")
router.register(r"projects", views.ClientProjectViewSet, basename="project")

app_name = "crm"

urlpatterns = [
    path("newsletter/subscribe/", views.NewsletterSubscribeView.as_view(), name="newsletter-subscribe"),
    path("newsletter/unsubscribe/", views.NewsletterUnsubscribeView.as_view(), name="newsletter-unsubscribe"),
    path("contact/", views.ContactMessageCreateView.as_view(), name="contact"),
    path("messages/conversation/", views.ChatConversationView.as_view(), name="chat-conversation"),
    path("messages/send/", views.ChatSendView.as_view(), name="chat-send"),
    path("messages/<int:pk>/mark-read/", views.ChatMarkReadView.as_view(), name="chat-mark-read"),
    path("messages/admin/conversations/", views.ChatConversationListView.as_view(), name="chat-admin-list"),
    path(
        "messages/admin/conversations/<int:user_id>/",
        views.ChatConversationDetailView.as_view(),
        name="chat-admin-thread",
    ),
    path("", include(router.urls)),
]
