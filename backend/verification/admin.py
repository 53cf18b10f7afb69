from django.contrib import admin

from .models import VerificationEvent


@admin.register(VerificationEvent)
class VerificationEventAdmin(admin.ModelAdmin):
    list_display = ("created_at", "document_id", "doc_type", "outcome", "verifier", "ip_address")
    list_filter = ("outcome", "doc_type")
    search_fields = ("document_id", "ip_address")
    readonly_fields = ("created_at", "document_id", "doc_type", "outcome", "verifier", "ip_address", "user_agent")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
