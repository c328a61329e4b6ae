from django.core.management.base import BaseCommand, CommandError

from projects.models import Project
from projects.stats import (
    reconcile_project_members,
    reconcile_project_stats,
    reconcile_ticket_comment_count,
)
from tickets.models import Comment, Ticket


class Command(BaseCommand):
    help = "Recomputes project and ticket counters from the ticket, comment and membership rows"

    def add_arguments(self, parser):
        parser.add_argument("--project", type=int, help="Only reconcile this project id")
        parser.add_argument(
            "--purge-orphans",
            action="store_true",
            help="Delete comments whose ticket is gone and tickets whose project is gone first",
        )

    def handle(self, *args, **options):
        project_id = options.get("project")

        projects = Project.objects.all()
        if project_id is not None:
            projects = projects.filter(pk=project_id)
            if not projects.exists():
                raise CommandError(f"Project {project_id} does not exist")

        if options.get("purge_orphans"):
            self.purge_orphans()

        failed = 0
        project_count = 0
        ticket_count = 0

        for pid in projects.values_list("pk", flat=True):
            project_count += 1
            if reconcile_project_stats(pid) is None:
                failed += 1
            if reconcile_project_members(pid) is None:
                failed += 1

            for tid in Ticket.objects.filter(project_id=pid).values_list("pk", flat=True):
                ticket_count += 1
                if reconcile_ticket_comment_count(tid) is None:
                    failed += 1

        self.stdout.write(
            f"Reconciled {project_count} project(s) and {ticket_count} ticket(s)."
        )
        if failed:
            self.stdout.write(self.style.WARNING(f"{failed} reconcile step(s) failed, see the tracker.stats log."))
        else:
            self.stdout.write(self.style.SUCCESS("Counters are healthy."))

    def purge_orphans(self):
        orphan_comments = Comment.objects.exclude(ticket_id__in=Ticket.objects.values("pk"))
        comments, _ = orphan_comments.delete()

        orphan_tickets = Ticket.objects.exclude(project_id__in=Project.objects.values("pk"))
        orphan_ticket_ids = list(orphan_tickets.values_list("pk", flat=True))
        comments_of_orphans, _ = Comment.objects.filter(ticket_id__in=orphan_ticket_ids).delete()
        Ticket.objects.filter(pk__in=orphan_ticket_ids).delete()

        self.stdout.write(
            f"Purged {comments + comments_of_orphans} orphan comment(s) and {len(orphan_ticket_ids)} orphan ticket(s)."
        )
