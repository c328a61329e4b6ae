from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from projects.models import Project, ProjectMembership
from projects.services import ProjectService
from projects.stats import (
    count_matching,
    reconcile_project_member_count,
    reconcile_project_stats,
    reconcile_ticket_comment_count,
)
from tickets.models import Comment, Ticket
from tickets.services import TicketService
from users.models import User


class StatisticsReconcilerTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.project = ProjectService.create_project(owner=self.owner, name="Stats board")
        self.due = timezone.now() + timedelta(days=7)

    def make_ticket(self, title, status=Ticket.STATUS_TODO):
        # Straight to the table so the counters start out stale
        return Ticket.objects.create(
            project=self.project,
            creator=self.owner,
            title=title,
            status=status,
            estimated_date=self.due,
        )

    def test_scenario_reconcile_then_delete_completed_ticket(self):
        self.make_ticket("First")
        self.make_ticket("Second")
        done = self.make_ticket("Third", status=Ticket.STATUS_DONE)

        result = reconcile_project_stats(self.project.pk)
        self.assertEqual(result, {"total_tickets": 3, "completed_tickets": 1})
        self.project.refresh_from_db()
        self.assertEqual((self.project.total_tickets, self.project.completed_tickets), (3, 1))

        TicketService.delete_ticket(ticket_id=done.pk, user=self.owner)

        self.project.refresh_from_db()
        self.assertEqual((self.project.total_tickets, self.project.completed_tickets), (2, 0))

    def test_reconcile_is_idempotent(self):
        self.make_ticket("Only one")
        first = reconcile_project_stats(self.project.pk)
        second = reconcile_project_stats(self.project.pk)
        self.assertEqual(first, second)

    def test_count_matching(self):
        self.make_ticket("A")
        self.make_ticket("B", status=Ticket.STATUS_DONE)
        qs = Ticket.objects.all()
        self.assertEqual(count_matching(qs, project=self.project), 2)
        self.assertEqual(count_matching(qs, project=self.project, status=Ticket.STATUS_DONE), 1)

    def test_missing_project_is_logged_and_swallowed(self):
        with self.assertLogs("tracker.stats", level="WARNING"):
            self.assertIsNone(reconcile_project_stats(987654))

    def test_missing_ticket_is_logged_and_swallowed(self):
        with self.assertLogs("tracker.stats", level="WARNING"):
            self.assertIsNone(reconcile_ticket_comment_count(987654))

    def test_database_error_never_fails_the_ticket_create(self):
        with mock.patch.object(Project.objects, "filter", side_effect=DatabaseError("boom")):
            with self.assertLogs("tracker.stats", level="WARNING"):
                ticket = TicketService.create_ticket(
                    project_id=self.project.pk,
                    user=self.owner,
                    title="Survives",
                    estimated_date=self.due,
                )
        self.assertTrue(Ticket.objects.filter(pk=ticket.pk).exists())
        # Counter is stale now; the next trigger heals it
        self.project.refresh_from_db()
        self.assertEqual(self.project.total_tickets, 0)
        reconcile_project_stats(self.project.pk)
        self.project.refresh_from_db()
        self.assertEqual(self.project.total_tickets, 1)

    def test_comment_count_recomputed_from_rows(self):
        ticket = self.make_ticket("Commented")
        for i in range(3):
            Comment.objects.create(ticket=ticket, author=self.owner, content=f"note {i}")
        self.assertEqual(reconcile_ticket_comment_count(ticket.pk), 3)
        ticket.refresh_from_db()
        self.assertEqual(ticket.comments_count, 3)

    def test_member_count_is_deduplicated_size_of_roster(self):
        alice = User.objects.create_user(username="alice", email="alice@example.com", password="pass")
        bob = User.objects.create_user(username="bob", email="bob@example.com", password="pass")
        ProjectMembership.objects.create(project=self.project, user=alice, role=ProjectMembership.ROLE_ADMIN)
        ProjectMembership.objects.create(project=self.project, user=bob, role=ProjectMembership.ROLE_MEMBER)

        project = Project.objects.get(pk=self.project.pk)
        self.assertEqual(reconcile_project_member_count(project), 3)

        # Every persist recomputes it
        Project.objects.filter(pk=project.pk).update(active_members=42)
        project.refresh_from_db()
        project.save()
        project.refresh_from_db()
        self.assertEqual(project.active_members, 3)


class ReconcileCountersCommandTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.project = ProjectService.create_project(owner=self.owner, name="Drifted board")
        due = timezone.now() + timedelta(days=1)
        self.ticket = Ticket.objects.create(
            project=self.project,
            creator=self.owner,
            title="Drifted",
            status=Ticket.STATUS_DONE,
            estimated_date=due,
        )
        Comment.objects.create(ticket=self.ticket, author=self.owner, content="hello")
        Project.objects.filter(pk=self.project.pk).update(total_tickets=9, completed_tickets=9, active_members=9)

    def test_command_heals_drifted_counters(self):
        out = StringIO()
        call_command("reconcile_counters", stdout=out)

        self.project.refresh_from_db()
        self.ticket.refresh_from_db()
        self.assertEqual(self.project.stats, {"total_tickets": 1, "completed_tickets": 1, "active_members": 1})
        self.assertEqual(self.ticket.comments_count, 1)
        self.assertIn("Reconciled 1 project(s) and 1 ticket(s).", out.getvalue())

    def test_command_with_purge_orphans_and_project_filter(self):
        out = StringIO()
        call_command("reconcile_counters", project=self.project.pk, purge_orphans=True, stdout=out)
        self.assertIn("Purged 0 orphan comment(s) and 0 orphan ticket(s).", out.getvalue())
