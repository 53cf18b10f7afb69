from django.contrib import admin

from .models import Document


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ("id", "doc_type", "subject", "issuer", "status", "issued_at", "download_count")
    list_filter = ("doc_type", "status")
    search_fields = ("id", "subject__student_number", "subject__user__last_name", "artifact_locator")
    readonly_fields = (
        "id",
        "doc_type",
        "subject",
        "issuer",
        "artifact_locator",
        "status",
        "issued_at",
        "metadata",
        "subject_snapshot",
        "revoked_at",
        "revoked_by",
        "revoked_reason",
        "download_count",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
