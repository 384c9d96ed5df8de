"""
Root URL Configuration

URL Structure:
- /admin/           Django admin (Jazzmin)
- /api/auth/        Authentication (JWT cookies), password reset
- /api/team/        Team pages and own profile
- /api/notifications/ User notifications
- /api/admin/       Activity logs, alerts, contact inbox
- /api/uploads/     Media host uploads
- /api/payments/    Payment intents, checkout, invoices, refunds, webhook
- /api/             Editorial content (cms) and client relations (crm)

Author: Agency Development Team
Version: 1.0.0
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("core.accounts.urls")),
    path("api/admin/", include("core.audit.urls")),
    path("api/uploads/", include("core.media.urls")),
    path("api/payments/", include("core.stripe_integration.urls")),
    path("api/", include("cms.urls")),
    path("api/", include("crm.urls")),
]

handler404 = "backend.exceptions.json_not_found"
handler500 = "backend.exceptions.json_server_error"
