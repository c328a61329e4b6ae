from django.contrib import admin

from projects.stats import reconcile_project_stats, reconcile_ticket_comment_count
from . import cascade
from .models import Comment, Ticket
from .state_machine import apply_status_transition


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ('title', 'project', 'status', 'priority', 'creator', 'estimated_date', 'comments_count')
    list_filter = ('status', 'priority', 'project')
    search_fields = ('title', 'description', 'creator__username', 'project__name')
    raw_id_fields = ('project', 'creator', 'assignees')
    readonly_fields = ('started_at', 'completed_at', 'comments_count', 'created_at', 'updated_at')

    def get_readonly_fields(self, request, obj=None):
        readonly = super().get_readonly_fields(request, obj)
        if obj is not None:
            # A ticket never moves between projects or changes creator
            return tuple(readonly) + ('project', 'creator')
        return readonly

    def save_model(self, request, obj, form, change):
        requested = obj.status
        if change:
            obj.status = Ticket.objects.values_list('status', flat=True).get(pk=obj.pk)
        apply_status_transition(obj, requested)
        super().save_model(request, obj, form, change)
        reconcile_project_stats(obj.project_id)

    def delete_model(self, request, obj):
        project_id = obj.project_id
        cascade.delete_ticket(obj.pk)
        reconcile_project_stats(project_id)

    def delete_queryset(self, request, queryset):
        for ticket_id, project_id in list(queryset.values_list('pk', 'project_id')):
            cascade.delete_ticket(ticket_id)
            reconcile_project_stats(project_id)


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ('ticket', 'author', 'is_edited', 'created_at')
    list_filter = ('is_edited', 'created_at')
    search_fields = ('content', 'author__username', 'ticket__title')
    raw_id_fields = ('ticket', 'author', 'parent')
    readonly_fields = ('is_edited', 'edited_at', 'created_at', 'updated_at')

    def get_readonly_fields(self, request, obj=None):
        readonly = super().get_readonly_fields(request, obj)
        if obj is not None:
            return tuple(readonly) + ('ticket', 'author')
        return readonly

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        reconcile_ticket_comment_count(obj.ticket_id)

    def delete_model(self, request, obj):
        ticket_id = obj.ticket_id
        super().delete_model(request, obj)
        reconcile_ticket_comment_count(ticket_id)

    def delete_queryset(self, request, queryset):
        ticket_ids = set(queryset.values_list('ticket_id', flat=True))
        super().delete_queryset(request, queryset)
        for ticket_id in ticket_ids:
            reconcile_ticket_comment_count(ticket_id)
