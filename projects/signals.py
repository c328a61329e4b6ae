import logging

from django.conf import settings
from django.db.models.signals import post_delete, pre_delete, pre_save
from django.dispatch import receiver
from django.utils import timezone

from .models import Project, ProjectMembership
from .stats import (
    reconcile_project_member_count,
    reconcile_project_members,
    reconcile_project_stats,
    reconcile_ticket_comment_count,
)

logger = logging.getLogger("tracker.projects")


@receiver(pre_save, sender=Project)
def maintain_project_invariants(sender, instance, raw=False, **kwargs):
    """
    Runs before every Project persist:
    - active_members is the deduplicated size of owner + admins + members
    - archived_at is set only while status is archived
    """
    if raw:
        return

    instance.active_members = reconcile_project_member_count(instance)

    if instance.status == Project.STATUS_ARCHIVED:
        if instance.archived_at is None:
            instance.archived_at = timezone.now()
    else:
        instance.archived_at = None


@receiver(pre_delete, sender=settings.AUTH_USER_MODEL)
def release_user_content(sender, instance, **kwargs):
    """
    Before a user row goes, remove what they own through the cascade
    coordinator and remember which counters their rows feed into.
    """
    from tickets import cascade
    from tickets.models import Comment, Ticket

    for project_id in list(Project.objects.filter(owner=instance).values_list("pk", flat=True)):
        cascade.delete_project(project_id)

    project_ids = set(
        ProjectMembership.objects.filter(user=instance).values_list("project_id", flat=True)
    )
    for ticket_id, project_id in list(
        Ticket.objects.filter(creator=instance).values_list("pk", "project_id")
    ):
        cascade.delete_ticket(ticket_id)
        project_ids.add(project_id)

    ticket_ids = set(Comment.objects.filter(author=instance).values_list("ticket_id", flat=True))

    instance._affected_counters = (project_ids, ticket_ids)
    logger.info(
        f"User removal: user={instance.pk}, projects={sorted(project_ids)}, tickets={sorted(ticket_ids)}"
    )


@receiver(post_delete, sender=settings.AUTH_USER_MODEL)
def reconcile_after_user_removal(sender, instance, **kwargs):
    from tickets.models import Ticket

    project_ids, ticket_ids = getattr(instance, "_affected_counters", (set(), set()))

    # Memberships and comments of the user are gone by now
    for project_id in Project.objects.filter(pk__in=project_ids).values_list("pk", flat=True):
        reconcile_project_stats(project_id)
        reconcile_project_members(project_id)
    for ticket_id in Ticket.objects.filter(pk__in=ticket_ids).values_list("pk", flat=True):
        reconcile_ticket_comment_count(ticket_id)
