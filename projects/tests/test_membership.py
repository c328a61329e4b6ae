from django.test import TestCase

from core.exceptions import Forbidden, NotFound, ValidationFailed
from projects.models import Project, ProjectMembership
from projects.roles import ROLE_ADMIN, ROLE_MEMBER, ROLE_OWNER, role_of
from projects.services import ProjectService
from users.models import User


class ProjectMembershipServiceTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.alice = User.objects.create_user(username="alice", email="alice@example.com", password="pass")
        self.bob = User.objects.create_user(username="bob", email="bob@example.com", password="pass")
        self.outsider = User.objects.create_user(username="outsider", email="out@example.com", password="pass")

        self.project = ProjectService.create_project(owner=self.owner, name="Board")

    def test_create_makes_caller_owner(self):
        self.assertEqual(self.project.owner, self.owner)
        self.assertEqual(self.project.active_members, 1)
        self.assertEqual(self.project.get_user_role(self.owner), ROLE_OWNER)
        self.assertEqual(self.project.board_settings["visibility"], "private")
        self.assertFalse(self.project.board_settings["allow_guest_comments"])
        self.assertEqual(self.project.board_settings["default_ticket_status"], "todo")

    def test_scenario_member_then_promoted_to_admin(self):
        project = ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        self.assertEqual(role_of(project, self.alice.pk), ROLE_MEMBER)
        self.assertEqual(project.active_members, 2)

        project = ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        self.assertEqual(role_of(project, self.alice.pk), ROLE_ADMIN)
        self.assertNotIn(str(self.alice.pk), project.roster().member_ids)
        self.assertEqual(project.active_members, 2)

        stored = Project.objects.get(pk=self.project.pk)
        self.assertEqual(stored.active_members, 2)
        self.assertEqual(ProjectMembership.objects.filter(project=stored, user=self.alice).count(), 1)

    def test_only_owner_manages_admins(self):
        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        with self.assertRaises(Forbidden):
            ProjectService.add_admin(project_id=self.project.pk, user=self.alice, target_id=self.bob.pk)
        with self.assertRaises(Forbidden):
            ProjectService.remove_admin(project_id=self.project.pk, user=self.alice, target_id=self.alice.pk)

    def test_owner_cannot_be_added_to_either_set(self):
        with self.assertRaises(ValidationFailed):
            ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.owner.pk)
        with self.assertRaises(ValidationFailed):
            ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.owner.pk)
        self.assertFalse(ProjectMembership.objects.filter(project=self.project).exists())

    def test_membership_rows_mirror_the_roster(self):
        ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)
        project = ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)

        rows = dict(ProjectMembership.objects.filter(project=self.project).values_list("user_id", "role"))
        self.assertEqual(rows, {self.alice.pk: ROLE_MEMBER, self.bob.pk: ROLE_ADMIN})
        self.assertEqual(project.roster().admin_ids, frozenset({str(self.bob.pk)}))
        self.assertEqual(project.roster().member_ids, frozenset({str(self.alice.pk)}))

        ProjectService.remove_admin(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)
        rows = dict(ProjectMembership.objects.filter(project=self.project).values_list("user_id", "role"))
        self.assertEqual(rows, {self.alice.pk: ROLE_MEMBER})

    def test_owner_errors_come_from_the_roster(self):
        with self.assertRaisesMessage(ValidationFailed, "The owner cannot be added as an admin."):
            ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.owner.pk)
        with self.assertRaisesMessage(ValidationFailed, "The owner cannot be removed from the project."):
            ProjectService.remove_member(project_id=self.project.pk, user=self.owner, target_id=self.owner.pk)

    def test_duplicate_adds_are_rejected(self):
        ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        with self.assertRaises(ValidationFailed):
            ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)

        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)
        with self.assertRaises(ValidationFailed):
            ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)
        with self.assertRaises(ValidationFailed):
            ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)

    def test_admin_can_add_and_remove_members(self):
        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        project = ProjectService.add_member(project_id=self.project.pk, user=self.alice, target_id=self.bob.pk)
        self.assertEqual(project.active_members, 3)

        project = ProjectService.remove_member(project_id=self.project.pk, user=self.alice, target_id=self.bob.pk)
        self.assertIsNone(role_of(project, self.bob.pk))
        self.assertEqual(project.active_members, 2)

    def test_member_cannot_manage_members(self):
        ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        with self.assertRaises(Forbidden):
            ProjectService.add_member(project_id=self.project.pk, user=self.alice, target_id=self.bob.pk)
        with self.assertRaises(Forbidden):
            ProjectService.add_member(project_id=self.project.pk, user=self.outsider, target_id=self.bob.pk)

    def test_remove_member_rejects_owner_and_admins(self):
        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        with self.assertRaises(ValidationFailed):
            ProjectService.remove_member(project_id=self.project.pk, user=self.owner, target_id=self.owner.pk)
        with self.assertRaises(ValidationFailed):
            ProjectService.remove_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        self.assertEqual(role_of(Project.objects.get(pk=self.project.pk), self.alice.pk), ROLE_ADMIN)

    def test_remove_admin(self):
        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        project = ProjectService.remove_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        self.assertIsNone(role_of(project, self.alice.pk))
        self.assertEqual(project.active_members, 1)

    def test_unknown_user_or_project(self):
        with self.assertRaises(NotFound):
            ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=987654)
        with self.assertRaises(NotFound):
            ProjectService.add_member(project_id=987654, user=self.owner, target_id=self.alice.pk)

    def test_update_archive_stamps_and_clears_archived_at(self):
        project = ProjectService.update_project(project_id=self.project.pk, user=self.owner, status="archived")
        self.assertIsNotNone(project.archived_at)

        project = ProjectService.update_project(project_id=self.project.pk, user=self.owner, status="active")
        self.assertIsNone(project.archived_at)

    def test_update_requires_manage_role(self):
        ProjectService.add_member(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        with self.assertRaises(Forbidden):
            ProjectService.update_project(project_id=self.project.pk, user=self.alice, name="Renamed")
        with self.assertRaises(ValidationFailed):
            ProjectService.update_project(project_id=self.project.pk, user=self.owner, name="ab")

    def test_delete_is_owner_only(self):
        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.alice.pk)
        with self.assertRaises(Forbidden):
            ProjectService.delete_project(project_id=self.project.pk, user=self.alice)
        ProjectService.delete_project(project_id=self.project.pk, user=self.owner)
        self.assertFalse(Project.objects.filter(pk=self.project.pk).exists())

    def test_list_projects_for_user(self):
        other = ProjectService.create_project(owner=self.alice, name="Alice board")
        ProjectService.add_member(project_id=other.pk, user=self.alice, target_id=self.bob.pk)
        ProjectService.add_admin(project_id=self.project.pk, user=self.owner, target_id=self.bob.pk)

        names = set(ProjectService.list_projects_for(user=self.bob).values_list("name", flat=True))
        self.assertEqual(names, {"Board", "Alice board"})
        self.assertEqual(ProjectService.list_projects_for(user=self.outsider).count(), 0)
        self.assertEqual(
            list(ProjectService.list_projects_for(user=self.bob, search="alice").values_list("name", flat=True)),
            ["Alice board"],
        )
