from django.urls import path

from . import views

app_name = "media"

urlpatterns = [
    path("", views.MediaLibraryView.as_view(), name="library"),
    path("article-image/", views.ArticleImageUploadView.as_view(), name="article-image"),
    path("avatar/", views.AvatarUploadView.as_view(), name="avatar"),
    path("team-photo/", views.TeamPhotoUploadView.as_view(), name="team-photo"),
    path("rubrique-image/", views.RubriqueImageUploadView.as_view(), name="rubrique-image"),
]
