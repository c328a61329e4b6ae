from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models
from django.utils import timezone

from . import state_machine


def default_tags():
    return []


class Ticket(models.Model):
    """
    A card on a project's board.

    started_at / completed_at are derived by tickets.state_machine and
    comments_count by projects.stats; callers never set them directly.
    """
    STATUS_TODO = state_machine.STATUS_TODO
    STATUS_INPROGRESS = state_machine.STATUS_INPROGRESS
    STATUS_REVIEW = state_machine.STATUS_REVIEW
    STATUS_DONE = state_machine.STATUS_DONE

    STATUS_CHOICES = state_machine.STATUS_CHOICES

    PRIORITY_LOW = "low"
    PRIORITY_MEDIUM = "medium"
    PRIORITY_HIGH = "high"
    PRIORITY_URGENT = "urgent"

    PRIORITY_CHOICES = [
        (PRIORITY_LOW, "Low"),
        (PRIORITY_MEDIUM, "Medium"),
        (PRIORITY_HIGH, "High"),
        (PRIORITY_URGENT, "Urgent"),
    ]

    project = models.ForeignKey(
        "projects.Project",
        on_delete=models.CASCADE,
        related_name="tickets",
    )
    title = models.CharField(max_length=200, validators=[MinLengthValidator(3)])
    description = models.TextField(max_length=5000, blank=True, default="")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_TODO)
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)

    assignees = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="assigned_tickets",
        blank=True,
    )
    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="created_tickets",
    )

    estimated_date = models.DateTimeField()
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    tags = models.JSONField(default=default_tags, blank=True)
    position = models.IntegerField(default=0)
    comments_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["position", "-created_at"]
        indexes = [
            models.Index(fields=["project", "status"], name="tickets_project_status_idx"),
            models.Index(fields=["project", "position"], name="tickets_project_pos_idx"),
        ]

    def __str__(self):
        return self.title

    def is_creator(self, user_id) -> bool:
        return str(self.creator_id) == str(getattr(user_id, "pk", user_id))

    def is_assigned(self, user_id) -> bool:
        uid = getattr(user_id, "pk", user_id)
        return self.assignees.filter(pk=uid).exists()

    def is_overdue(self, now=None) -> bool:
        if self.status == self.STATUS_DONE or self.estimated_date is None:
            return False
        return self.estimated_date < (now or timezone.now())

    def days_until_deadline(self, now=None):
        """Whole days left, rounded up; negative once the deadline has passed."""
        if self.estimated_date is None:
            return None
        diff = self.estimated_date - (now or timezone.now())
        seconds = diff.total_seconds()
        days, remainder = divmod(seconds, 86400)
        return int(days) + (1 if remainder > 0 else 0)


class Comment(models.Model):
    ticket = models.ForeignKey(
        Ticket,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ticket_comments",
    )
    content = models.TextField(max_length=2000)
    is_edited = models.BooleanField(default=False)
    edited_at = models.DateTimeField(null=True, blank=True)

    # Optional threading; replies survive their parent's deletion
    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["ticket", "created_at"], name="comments_ticket_created_idx"),
        ]

    def __str__(self):
        return f"Comment by {self.author} on {self.ticket}"

    def is_author(self, user_id) -> bool:
        return str(self.author_id) == str(getattr(user_id, "pk", user_id))
