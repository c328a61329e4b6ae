"""
Statistics reconciler.

Project.total_tickets / completed_tickets / active_members and
Ticket.comments_count are caches. They are always recomputed from the
rows they describe, never incremented in place, so running a reconcile
twice (or after a missed one) gives the same answer.

Reconciling is best effort: it runs after the triggering write has
already succeeded, and a failure here is logged and swallowed.
"""
import logging

from django.db import DatabaseError

from core.exceptions import ReconciliationFailed
from . import roles

logger = logging.getLogger("tracker.stats")


def count_matching(queryset, **filters) -> int:
    """Count rows of `queryset` matching `filters`. Safe to call repeatedly."""
    return queryset.filter(**filters).count()


def reconcile_project_stats(project_id):
    """
    Recompute total_tickets and completed_tickets for a project.

    Returns the persisted counters, or None when the recompute failed.
    """
    from projects.models import Project
    from tickets.models import Ticket

    try:
        tickets = Ticket.objects.all()
        total = count_matching(tickets, project_id=project_id)
        completed = count_matching(tickets, project_id=project_id, status=Ticket.STATUS_DONE)

        updated = Project.objects.filter(pk=project_id).update(
            total_tickets=total,
            completed_tickets=completed,
        )
        if not updated:
            raise ReconciliationFailed(f"project {project_id} no longer exists")
    except (ReconciliationFailed, DatabaseError) as exc:
        logger.warning(f"Project stats reconcile failed: project={project_id}, error={exc}")
        return None

    logger.debug(f"Project stats reconciled: project={project_id}, total={total}, completed={completed}")
    return {"total_tickets": total, "completed_tickets": completed}


def reconcile_ticket_comment_count(ticket_id):
    """
    Recompute comments_count for a ticket.

    Returns the persisted count, or None when the recompute failed.
    """
    from tickets.models import Comment, Ticket

    try:
        count = count_matching(Comment.objects.all(), ticket_id=ticket_id)
        updated = Ticket.objects.filter(pk=ticket_id).update(comments_count=count)
        if not updated:
            raise ReconciliationFailed(f"ticket {ticket_id} no longer exists")
    except (ReconciliationFailed, DatabaseError) as exc:
        logger.warning(f"Comment count reconcile failed: ticket={ticket_id}, error={exc}")
        return None

    logger.debug(f"Comment count reconciled: ticket={ticket_id}, count={count}")
    return count


def reconcile_project_member_count(project_or_roster) -> int:
    """
    Size of {owner} | admins | members. Pure; no query beyond the
    membership rows already loaded on the project.
    """
    if isinstance(project_or_roster, roles.ProjectRoster):
        roster = project_or_roster
    else:
        roster = roles.ProjectRoster.from_project(project_or_roster)
    return len(roster.all_ids())


def reconcile_project_members(project_id):
    """
    Persist active_members for a stored project. Used after membership
    rows change, since those writes do not go through Project.save().
    """
    from projects.models import Project

    try:
        project = Project.objects.prefetch_related("memberships").get(pk=project_id)
        count = reconcile_project_member_count(project)
        Project.objects.filter(pk=project_id).update(active_members=count)
    except (Project.DoesNotExist, DatabaseError) as exc:
        logger.warning(f"Member count reconcile failed: project={project_id}, error={exc}")
        return None
    return count
