from django.contrib import admin
from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('user', 'student_number', 'program', 'study_year', 'status')
    list_filter = ('status', 'program')
    search_fields = ('user__first_name', 'user__last_name', 'student_number')
