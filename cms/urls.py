"""
CMS URLs

API Endpoints:
- /api/rubriques/                       Rubriques (slug)
- /api/articles/                        Articles (slug), /mine/, /{slug}/comments/
- /api/comments/                        Comment moderation, /pending/, /{id}/approve/
- /api/blog/                            Blog posts (slug), /categories/, /tags/, /all/, /stats/
- /api/offers/                          Offers (slug), /all/, /stats/
- /api/portfolio/                       Portfolio projects, /{id}/images/, /{id}/images/reorder/,
                                        /{id}/images/{image_id}/
- /api/testimonials/                    Testimonials, /{id}/approve/, /all/, /stats/
- /api/team/                            Team members
- /api/team/me/                         Own team profile
- /api/team/members/{id}/               Admin update of a member
- /api/team/{username}/                 Member detail with recent articles
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r"rubriques", views.RubriqueViewSet, basename="rubrique")
router.register(r"articles", views.ArticleViewSet, basename="article")
router.register(r"comments", views.CommentViewSet, basename="comment")
router.register(r"blog", views.BlogPostViewSet, basename="blogpost")
router.register(r"offers", views.OfferViewSet, basename="offer")
router.register(r"portfolio", views.PortfolioProjectViewSet, basename="portfolio")
router.register(r"testimonials", views.TestimonialViewSet, basename="testimonial")

app_name = "cms"

urlpatterns = [
    path("team/", views.TeamListView.as_view(), name="team-list"),
    path("team/me/", views.TeamMeView.as_view(), name="team-me"),
    path("team/members/<int:pk>/", views.AdminTeamMemberView.as_view(), name="team-admin-update"),
    path("team/<str:username>/", views.TeamMemberDetailView.as_view(), name="team-detail"),
    path("", include(router.urls)),
]
