from django.urls import path

from .views import (
    ArtifactDownloadAPIView,
    DocumentDetailAPIView,
    DocumentListAPIView,
    IssueDocumentAPIView,
    RevokeDocumentAPIView,
)

app_name = "documents"

urlpatterns = [
    path("", DocumentListAPIView.as_view(), name="document-list"),
    path("artifacts/<str:token>/", ArtifactDownloadAPIView.as_view(), name="artifact-download"),
    path("<uuid:document_id>/", DocumentDetailAPIView.as_view(), name="document-detail"),
    path("<uuid:document_id>/revoke/", RevokeDocumentAPIView.as_view(), name="document-revoke"),
    path("<slug:doc_slug>/", IssueDocumentAPIView.as_view(), name="document-issue"),
]
