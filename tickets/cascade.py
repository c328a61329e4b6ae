"""
Cascade deletion for projects and tickets.

Children go before parents: comments, then tickets, then the project.
Each step is a "delete everything matching" query, so re-running the
sequence after a partial failure is a no-op for the steps already done.
The steps also run inside one transaction where the database supports it.

Role checks (owner for projects, creator for tickets) belong to the caller.
"""
import logging

from django.db import DatabaseError, transaction

from .models import Comment, Ticket

logger = logging.getLogger("tracker.tickets")


def _deleted(queryset, model) -> int:
    """Rows of `model` removed by deleting `queryset` (ignores related rows)."""
    _, per_model = queryset.delete()
    return per_model.get(model._meta.label, 0)


def delete_ticket(ticket_id):
    """Delete a ticket and all of its comments. Returns deleted row counts."""
    try:
        with transaction.atomic():
            comments = _deleted(Comment.objects.filter(ticket_id=ticket_id), Comment)
            tickets = _deleted(Ticket.objects.filter(pk=ticket_id), Ticket)
    except DatabaseError:
        logger.exception(f"Ticket cascade delete failed: ticket={ticket_id}")
        raise

    logger.info(f"Ticket deleted: ticket={ticket_id}, comments={comments}")
    return {"tickets": tickets, "comments": comments}


def delete_project(project_id):
    """
    Delete a project, its tickets and their comments.
    Returns deleted row counts.
    """
    from projects.models import Project

    try:
        with transaction.atomic():
            ticket_ids = list(
                Ticket.objects.filter(project_id=project_id).values_list("pk", flat=True)
            )
            comments = _deleted(Comment.objects.filter(ticket_id__in=ticket_ids), Comment)
            # Assignee links go with the tickets through the M2M cascade
            Ticket.objects.filter(pk__in=ticket_ids).delete()
            projects = _deleted(Project.objects.filter(pk=project_id), Project)
    except DatabaseError:
        logger.exception(f"Project cascade delete failed: project={project_id}")
        raise

    logger.info(
        f"Project deleted: project={project_id}, tickets={len(ticket_ids)}, comments={comments}"
    )
    return {"projects": projects, "tickets": len(ticket_ids), "comments": comments}
