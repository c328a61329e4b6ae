"""
Project and membership operations.

Every mutation follows the same order: resolve the caller's role,
reject with Forbidden / NotFound / ValidationFailed before writing,
write, then let the reconciler refresh the counters.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q

from core.exceptions import Forbidden, NotFound, ValidationFailed
from .models import VISIBILITY_CHOICES, Project, ProjectMembership, default_board_settings
from .roles import ROLE_ADMIN, ROLE_MEMBER

logger = logging.getLogger("tracker.projects")

User = get_user_model()

EDITABLE_FIELDS = ("name", "description", "status", "board_settings")


def get_project(project_id) -> Project:
    try:
        return Project.objects.select_related("owner").prefetch_related("memberships__user").get(pk=project_id)
    except (Project.DoesNotExist, ValueError):
        raise NotFound("Project not found.")


def get_user(user_id):
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError):
        raise NotFound("User not found.")


def _validate_name(name):
    name = (name or "").strip()
    if not 3 <= len(name) <= 100:
        raise ValidationFailed("Project name must be between 3 and 100 characters.")
    return name


def _validate_description(description):
    description = description or ""
    if len(description) > 2000:
        raise ValidationFailed("Project description cannot exceed 2000 characters.")
    return description


def _validate_status(status):
    if status not in dict(Project.STATUS_CHOICES):
        raise ValidationFailed(f"Invalid project status: {status}")
    return status


def _merge_board_settings(current, incoming):
    from tickets.state_machine import is_valid_status

    merged = dict(current or default_board_settings())
    merged.update(incoming or {})

    visibility = merged.get("visibility")
    if visibility not in dict(VISIBILITY_CHOICES):
        raise ValidationFailed(f"Invalid visibility: {visibility}")
    if not is_valid_status(merged.get("default_ticket_status")):
        raise ValidationFailed(f"Invalid default ticket status: {merged.get('default_ticket_status')}")
    merged["allow_guest_comments"] = bool(merged.get("allow_guest_comments"))
    return merged


def _save_roster(project: Project):
    """
    Persist the project after its membership rows changed, so the
    pre_save maintenance recomputes active_members from fresh rows.
    """
    fresh = Project.objects.get(pk=project.pk)
    fresh.save()
    return get_project(project.pk)


def _persist_roster(project: Project, before, after) -> Project:
    """
    Write the membership rows that differ between two rosters. The
    roster mutators have already rejected owner and overlap cases.
    """
    with transaction.atomic():
        dropped = before.all_ids() - after.all_ids()
        if dropped:
            ProjectMembership.objects.filter(project=project, user_id__in=dropped).delete()
        for role, user_ids in ((ROLE_ADMIN, after.admin_ids), (ROLE_MEMBER, after.member_ids)):
            for user_id in user_ids:
                if before.role_of(user_id) != role:
                    ProjectMembership.objects.update_or_create(
                        project=project,
                        user_id=user_id,
                        defaults={"role": role},
                    )
        return _save_roster(project)


class ProjectService:

    @staticmethod
    def create_project(*, owner, name, description="", status=Project.STATUS_ACTIVE, board_settings=None) -> Project:
        project = Project(
            owner=owner,
            name=_validate_name(name),
            description=_validate_description(description),
            status=_validate_status(status),
            board_settings=_merge_board_settings(None, board_settings),
        )
        project.save()

        logger.info(f"Project created: project={project.pk}, owner={owner.pk}")
        return project

    @staticmethod
    def update_project(*, project_id, user, **fields) -> Project:
        project = get_project(project_id)
        if not project.can_manage(user):
            raise Forbidden("Only the owner or an admin can update this project.")

        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if "name" in fields:
            project.name = _validate_name(fields["name"])
        if "description" in fields:
            project.description = _validate_description(fields["description"])
        if "status" in fields:
            project.status = _validate_status(fields["status"])
        if "board_settings" in fields:
            project.board_settings = _merge_board_settings(project.board_settings, fields["board_settings"])

        # archived_at and active_members are settled by the pre_save receiver
        project.save()

        logger.info(f"Project updated: project={project.pk}, actor={user.pk}, fields={sorted(fields)}")
        return project

    @staticmethod
    def delete_project(*, project_id, user):
        from tickets import cascade

        project = get_project(project_id)
        if not project.is_owner(user):
            raise Forbidden("Only the owner can delete this project.")

        return cascade.delete_project(project.pk)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @staticmethod
    def add_admin(*, project_id, user, target_id) -> Project:
        project = get_project(project_id)
        if not project.is_owner(user):
            raise Forbidden("Only the owner can add admins.")

        target = get_user(target_id)
        roster = project.roster()
        current = roster.role_of(target)
        if current == ROLE_ADMIN:
            raise ValidationFailed("User is already an admin.")

        project = _persist_roster(project, roster, roster.with_admin(target))

        logger.info(f"Admin added: project={project.pk}, user={target.pk}, previous_role={current}")
        return project

    @staticmethod
    def remove_admin(*, project_id, user, target_id) -> Project:
        project = get_project(project_id)
        if not project.is_owner(user):
            raise Forbidden("Only the owner can remove admins.")

        roster = project.roster()
        if roster.role_of(target_id) != ROLE_ADMIN:
            raise ValidationFailed("User is not an admin of this project.")

        project = _persist_roster(project, roster, roster.without(target_id))

        logger.info(f"Admin removed: project={project.pk}, user={target_id}")
        return project

    @staticmethod
    def add_member(*, project_id, user, target_id) -> Project:
        project = get_project(project_id)
        if not project.can_manage(user):
            raise Forbidden("Only the owner or an admin can add members.")

        target = get_user(target_id)
        roster = project.roster()
        if roster.has_access(target):
            raise ValidationFailed("User is already part of this project.")

        project = _persist_roster(project, roster, roster.with_member(target))

        logger.info(f"Member added: project={project.pk}, user={target.pk}, actor={user.pk}")
        return project

    @staticmethod
    def remove_member(*, project_id, user, target_id) -> Project:
        project = get_project(project_id)
        if not project.can_manage(user):
            raise Forbidden("Only the owner or an admin can remove members.")

        roster = project.roster()
        # Checked first so the owner gets the roster's own error
        updated = roster.without(target_id)
        if roster.role_of(target_id) != ROLE_MEMBER:
            raise ValidationFailed("User is not a member of this project.")

        project = _persist_roster(project, roster, updated)

        logger.info(f"Member removed: project={project.pk}, user={target_id}, actor={user.pk}")
        return project

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def list_projects_for(*, user, status=None, search=None):
        qs = (
            Project.objects.filter(Q(owner=user) | Q(memberships__user=user))
            .select_related("owner")
            .prefetch_related("memberships__user")
            .distinct()
        )
        if status:
            qs = qs.filter(status=_validate_status(status))
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(description__icontains=search))
        return qs.order_by("-updated_at")

    @staticmethod
    def get_project_for(*, project_id, user) -> Project:
        project = get_project(project_id)
        if not project.has_access(user):
            raise Forbidden("You do not have access to this project.")
        return project
