from django.urls import path

from .views_public import PublicVerifyAPIView, VerificationHistoryAPIView

urlpatterns = [
    path("<str:document_id>/", PublicVerifyAPIView.as_view(), name="public-verify"),
    path("<str:document_id>/history/", VerificationHistoryAPIView.as_view(), name="verification-history"),
]
