from django import forms
from django.contrib import admin
from django.forms.models import BaseInlineFormSet

from .models import Project, ProjectMembership


class ProjectMembershipFormSet(BaseInlineFormSet):
    def clean(self):
        super().clean()
        # The owner is implicit and never holds a membership row
        owner_id = self.instance.owner_id
        for form in self.forms:
            if not hasattr(form, 'cleaned_data') or form.cleaned_data.get('DELETE'):
                continue
            user = form.cleaned_data.get('user')
            if user is not None and owner_id is not None and user.pk == owner_id:
                raise forms.ValidationError("The project owner cannot also be an admin or member.")


class ProjectMembershipInline(admin.TabularInline):
    model = ProjectMembership
    formset = ProjectMembershipFormSet
    extra = 0
    raw_id_fields = ('user',)


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('name', 'owner', 'status', 'total_tickets', 'completed_tickets', 'active_members', 'updated_at')
    list_filter = ('status', 'created_at')
    search_fields = ('name', 'description', 'owner__username')
    raw_id_fields = ('owner',)
    readonly_fields = ('total_tickets', 'completed_tickets', 'active_members', 'archived_at', 'created_at', 'updated_at')
    inlines = [ProjectMembershipInline]

    def get_readonly_fields(self, request, obj=None):
        readonly = super().get_readonly_fields(request, obj)
        if obj is not None:
            # Ownership is fixed once the project exists
            return tuple(readonly) + ('owner',)
        return readonly

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # Membership rows may have changed; re-run the pre_save maintenance
        Project.objects.get(pk=form.instance.pk).save()

    def delete_model(self, request, obj):
        from tickets import cascade
        cascade.delete_project(obj.pk)

    def delete_queryset(self, request, queryset):
        from tickets import cascade
        for project_id in list(queryset.values_list('pk', flat=True)):
            cascade.delete_project(project_id)
