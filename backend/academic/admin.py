from django.contrib import admin

from .models import CourseEnrollment, Grade, Program, Subject


@admin.register(Program)
class ProgramAdmin(admin.ModelAdmin):
    list_display = ("name", "faculty", "degree_type", "total_credits")
    search_fields = ("name", "faculty")


@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "credits", "program", "pedagogue")
    list_filter = ("program",)
    search_fields = ("code", "name")


@admin.register(CourseEnrollment)
class CourseEnrollmentAdmin(admin.ModelAdmin):
    list_display = ("student", "subject", "academic_year", "semester")
    list_filter = ("academic_year", "semester")


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ("student", "subject", "value", "academic_year", "semester")
    list_filter = ("academic_year", "semester")
