from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models

from . import roles


VISIBILITY_PRIVATE = "private"
VISIBILITY_TEAM = "team"

VISIBILITY_CHOICES = [
    (VISIBILITY_PRIVATE, "Private"),
    (VISIBILITY_TEAM, "Team"),
]


def default_board_settings():
    return {
        "visibility": VISIBILITY_PRIVATE,
        "allow_guest_comments": False,
        "default_ticket_status": "todo",
    }


class Project(models.Model):
    """
    A board owned by one user, shared with admins and members.

    The stats columns are caches recomputed by projects.stats; the
    ticket and membership rows are the source of truth.
    """
    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_ARCHIVED = "archived"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
        (STATUS_ARCHIVED, "Archived"),
    ]

    name = models.CharField(max_length=100, validators=[MinLengthValidator(3)])
    description = models.TextField(max_length=2000, blank=True, default="")
    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owned_projects",
    )
    board_settings = models.JSONField(default=default_board_settings, blank=True)

    # Denormalized counters
    total_tickets = models.PositiveIntegerField(default=0)
    completed_tickets = models.PositiveIntegerField(default=0)
    active_members = models.PositiveIntegerField(default=1)

    archived_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["owner", "status"], name="projects_owner_status_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def stats(self):
        return {
            "total_tickets": self.total_tickets,
            "completed_tickets": self.completed_tickets,
            "active_members": self.active_members,
        }

    # ------------------------------------------------------------------
    # Role helpers (delegate to projects.roles)
    # ------------------------------------------------------------------

    def roster(self):
        return roles.ProjectRoster.from_project(self)

    def get_user_role(self, user_id):
        return roles.role_of(self, user_id)

    def has_access(self, user_id) -> bool:
        return roles.has_access(self, user_id)

    def can_manage(self, user_id) -> bool:
        return roles.can_manage(self, user_id)

    def is_owner(self, user_id) -> bool:
        return roles.role_of(self, user_id) == roles.ROLE_OWNER


class ProjectMembership(models.Model):
    """
    Admin or member seat on a project. One row per (project, user), so a
    user can never sit in both sets; the owner never gets a row.
    """
    ROLE_ADMIN = roles.ROLE_ADMIN
    ROLE_MEMBER = roles.ROLE_MEMBER

    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_MEMBER, "Member"),
    ]

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("project", "user")
        ordering = ["joined_at"]

    def __str__(self):
        return f"{self.user} @ {self.project} ({self.role})"
