from django.contrib import admin
from django.contrib.humanize.templatetags.humanize import naturaltime

from .models import ImportJob


@admin.register(ImportJob)
class ImportJobAdmin(admin.ModelAdmin):
    list_display = (
        "created",
        "modified",
        "file_name",
        "library_id",
        "created_by",
        "status",
        "progress",
        "success_count",
        "failed_count",
        "display_completed",
    )
    list_filter = ("status", "notification_sent")
    list_select_related = ("created_by",)
    search_fields = ("id", "file_name", "library_id", "created_by__username")
    date_hierarchy = "created"
    ordering = ("-created",)
    readonly_fields = [field.name for field in ImportJob._meta.fields]

    def has_add_permission(self, request):
        # Jobs are only created from uploaded files
        return False

    @admin.display(description="Progress")
    def progress(self, obj):
        return f"{obj.processed_chunks}/{obj.total_chunks} ({obj.progress_percent}%)"

    @admin.display(description="Completed", ordering="completed")
    def display_completed(self, obj):
        return naturaltime(obj.completed) if obj.completed else None
