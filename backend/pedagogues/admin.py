from django.contrib import admin

from .models import Pedagogue


@admin.register(Pedagogue)
class PedagogueAdmin(admin.ModelAdmin):
    list_display = ("user", "staff_number", "department", "academic_title")
    search_fields = ("user__username", "user__first_name", "user__last_name", "staff_number")
