"""
Ticket and comment operations.

Same order as the project services: gate on the caller's role, write,
cascade if deleting, then reconcile the counters that the write could
have invalidated.
"""
import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.exceptions import Forbidden, NotFound, ValidationFailed
from projects.services import get_project
from projects.stats import reconcile_project_stats, reconcile_ticket_comment_count
from . import cascade
from .models import Comment, Ticket
from .state_machine import apply_status_transition

logger = logging.getLogger("tracker.tickets")

User = get_user_model()

TICKET_EDITABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "assignees",
    "estimated_date",
    "tags",
    "position",
)


def get_ticket(ticket_id) -> Ticket:
    try:
        return Ticket.objects.select_related("project", "creator").get(pk=ticket_id)
    except (Ticket.DoesNotExist, ValueError):
        raise NotFound("Ticket not found.")


def get_comment(ticket, comment_id) -> Comment:
    try:
        return Comment.objects.select_related("author").get(pk=comment_id, ticket=ticket)
    except (Comment.DoesNotExist, ValueError):
        raise NotFound("Comment not found.")


def _require_access(project, user, message="You do not have access to this project."):
    if not project.has_access(user):
        raise Forbidden(message)


# ----------------------------------------------------------------------
# Field validation
# ----------------------------------------------------------------------

def _validate_title(title):
    title = (title or "").strip()
    if not 3 <= len(title) <= 200:
        raise ValidationFailed("Ticket title must be between 3 and 200 characters.")
    return title


def _validate_description(description):
    description = description or ""
    if len(description) > 5000:
        raise ValidationFailed("Ticket description cannot exceed 5000 characters.")
    return description


def _validate_priority(priority):
    if priority not in dict(Ticket.PRIORITY_CHOICES):
        raise ValidationFailed(f"Invalid priority: {priority}")
    return priority


def _validate_estimated_date(value):
    if value is None or value == "":
        raise ValidationFailed("estimated_date is required.")
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValidationFailed(f"Invalid estimated_date: {value}")
        value = parsed
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def _validate_tags(tags):
    tags = tags or []
    if not isinstance(tags, (list, tuple)):
        raise ValidationFailed("tags must be a list of strings.")
    cleaned = []
    for tag in tags:
        tag = str(tag).strip()
        if not tag:
            continue
        if len(tag) > 50:
            raise ValidationFailed("A tag cannot exceed 50 characters.")
        cleaned.append(tag)
    return cleaned


def _validate_position(position):
    try:
        return int(position or 0)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid position: {position}")


def _validate_content(content):
    content = (content or "").strip()
    if not 1 <= len(content) <= 2000:
        raise ValidationFailed("Comment must be between 1 and 2000 characters.")
    return content


def _resolve_assignees(project, assignee_ids):
    """
    Every assignee must have access to the project right now. Checked
    only at assignment time; a later removal from the project is not
    propagated to existing tickets.
    """
    roster = project.roster()
    users = []
    for assignee_id in assignee_ids or []:
        if not roster.has_access(assignee_id):
            raise ValidationFailed(f"User {assignee_id} does not have access to this project.")
        try:
            users.append(User.objects.get(pk=assignee_id))
        except (User.DoesNotExist, ValueError):
            raise NotFound(f"User {assignee_id} not found.")
    return users


class TicketService:

    @staticmethod
    def create_ticket(*, project_id, user, title, estimated_date, description="", status=None,
                      priority=Ticket.PRIORITY_MEDIUM, assignees=None, tags=None, position=0) -> Ticket:
        project = get_project(project_id)
        _require_access(project, user)

        if status is None:
            status = (project.board_settings or {}).get("default_ticket_status", Ticket.STATUS_TODO)

        ticket = Ticket(
            project=project,
            creator=user,
            title=_validate_title(title),
            description=_validate_description(description),
            priority=_validate_priority(priority),
            estimated_date=_validate_estimated_date(estimated_date),
            tags=_validate_tags(tags),
            position=_validate_position(position),
        )
        assignee_users = _resolve_assignees(project, assignees)
        apply_status_transition(ticket, status)

        ticket.save()
        if assignee_users:
            ticket.assignees.set(assignee_users)

        logger.info(f"Ticket created: ticket={ticket.pk}, project={project.pk}, creator={user.pk}")

        reconcile_project_stats(project.pk)
        return ticket

    @staticmethod
    def update_ticket(*, ticket_id, user, **fields) -> Ticket:
        """
        Read-modify-write of the whole ticket. Concurrent updates are
        last-write-wins; there is no version check.
        """
        ticket = get_ticket(ticket_id)
        project = get_project(ticket.project_id)
        _require_access(project, user)

        unknown = set(fields) - set(TICKET_EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Cannot update fields: {', '.join(sorted(unknown))}")

        # Validate everything before touching the instance
        changes = {}
        if "title" in fields:
            changes["title"] = _validate_title(fields["title"])
        if "description" in fields:
            changes["description"] = _validate_description(fields["description"])
        if "priority" in fields:
            changes["priority"] = _validate_priority(fields["priority"])
        if "estimated_date" in fields:
            changes["estimated_date"] = _validate_estimated_date(fields["estimated_date"])
        if "tags" in fields:
            changes["tags"] = _validate_tags(fields["tags"])
        if "position" in fields:
            changes["position"] = _validate_position(fields["position"])
        assignee_users = None
        if "assignees" in fields:
            assignee_users = _resolve_assignees(project, fields["assignees"])

        status_changed = False
        if "status" in fields:
            ticket, status_changed = apply_status_transition(ticket, fields["status"])

        for name, value in changes.items():
            setattr(ticket, name, value)
        ticket.save()
        if assignee_users is not None:
            ticket.assignees.set(assignee_users)

        logger.info(f"Ticket updated: ticket={ticket.pk}, actor={user.pk}, fields={sorted(fields)}")

        if status_changed:
            reconcile_project_stats(ticket.project_id)
        return ticket

    @staticmethod
    def delete_ticket(*, ticket_id, user):
        ticket = get_ticket(ticket_id)
        if not ticket.is_creator(user):
            raise Forbidden("Only the creator can delete this ticket.")

        project_id = ticket.project_id
        result = cascade.delete_ticket(ticket.pk)
        reconcile_project_stats(project_id)
        return result

    @staticmethod
    def assign_users(*, ticket_id, user, user_ids) -> Ticket:
        ticket = get_ticket(ticket_id)
        project = get_project(ticket.project_id)
        _require_access(project, user)

        users = _resolve_assignees(project, user_ids)
        if users:
            ticket.assignees.add(*users)

        logger.info(f"Ticket assigned: ticket={ticket.pk}, users={[u.pk for u in users]}, actor={user.pk}")
        return ticket

    @staticmethod
    def unassign_user(*, ticket_id, user, target_id) -> Ticket:
        ticket = get_ticket(ticket_id)
        project = get_project(ticket.project_id)
        _require_access(project, user)

        if not ticket.is_assigned(target_id):
            raise ValidationFailed("User is not assigned to this ticket.")
        ticket.assignees.remove(target_id)

        logger.info(f"Ticket unassigned: ticket={ticket.pk}, user={target_id}, actor={user.pk}")
        return ticket

    @staticmethod
    def get_ticket_for(*, ticket_id, user) -> Ticket:
        ticket = get_ticket(ticket_id)
        _require_access(get_project(ticket.project_id), user)
        return ticket

    @staticmethod
    def list_tickets(*, project_id, user, status=None, priority=None, assignee=None, search=None):
        project = get_project(project_id)
        _require_access(project, user)

        qs = (
            Ticket.objects.filter(project=project)
            .select_related("creator")
            .prefetch_related("assignees")
        )
        if status:
            if status not in dict(Ticket.STATUS_CHOICES):
                raise ValidationFailed(f"Invalid status: {status}")
            qs = qs.filter(status=status)
        if priority:
            qs = qs.filter(priority=_validate_priority(priority))
        if assignee:
            try:
                qs = qs.filter(assignees__pk=int(assignee))
            except (TypeError, ValueError):
                raise ValidationFailed(f"Invalid assignee: {assignee}")
        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
        return qs.distinct().order_by("position", "-created_at")


class CommentService:

    @staticmethod
    def list_comments(*, ticket_id, user):
        ticket = get_ticket(ticket_id)
        _require_access(get_project(ticket.project_id), user)
        return (
            Comment.objects.filter(ticket=ticket)
            .select_related("author")
            .order_by("created_at")
        )

    @staticmethod
    def create_comment(*, ticket_id, user, content, parent_id=None) -> Comment:
        ticket = get_ticket(ticket_id)
        _require_access(get_project(ticket.project_id), user)

        content = _validate_content(content)
        parent = None
        if parent_id is not None:
            try:
                parent = Comment.objects.get(pk=parent_id)
            except (Comment.DoesNotExist, ValueError):
                raise NotFound("Parent comment not found.")
            if parent.ticket_id != ticket.pk:
                raise ValidationFailed("Parent comment belongs to another ticket.")

        comment = Comment.objects.create(
            ticket=ticket,
            author=user,
            content=content,
            parent=parent,
        )
        logger.info(f"Comment created: comment={comment.pk}, ticket={ticket.pk}, author={user.pk}")

        reconcile_ticket_comment_count(ticket.pk)
        return comment

    @staticmethod
    def update_comment(*, ticket_id, comment_id, user, content) -> Comment:
        ticket = get_ticket(ticket_id)
        comment = get_comment(ticket, comment_id)
        if not comment.is_author(user):
            raise Forbidden("Only the author can edit this comment.")

        content = _validate_content(content)
        if content != comment.content:
            comment.content = content
            comment.is_edited = True
            comment.edited_at = timezone.now()
            comment.save()

        return comment

    @staticmethod
    def delete_comment(*, ticket_id, comment_id, user):
        ticket = get_ticket(ticket_id)
        comment = get_comment(ticket, comment_id)
        if not comment.is_author(user):
            raise Forbidden("Only the author can delete this comment.")

        comment.delete()
        logger.info(f"Comment deleted: comment={comment_id}, ticket={ticket.pk}, author={user.pk}")

        reconcile_ticket_comment_count(ticket.pk)
