import json

from django.test import TestCase
from django.urls import reverse

from projects.models import Project, ProjectMembership
from projects.services import ProjectService
from users.models import User


class ProjectAdminTestCase(TestCase):
    def setUp(self):
        self.superuser = User.objects.create_superuser(
            username="root", email="root@example.com", password="pass"
        )
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.other = User.objects.create_user(username="other", email="other@example.com", password="pass")
        self.project = ProjectService.create_project(owner=self.owner, name="Admin board")
        self.client.force_login(self.superuser)
        self.url = reverse("admin:projects_project_change", args=[self.project.pk])

    def form_data(self, **extra):
        data = {
            "name": self.project.name,
            "description": "",
            "status": Project.STATUS_ACTIVE,
            "board_settings": json.dumps(self.project.board_settings),
            "memberships-TOTAL_FORMS": "0",
            "memberships-INITIAL_FORMS": "0",
            "memberships-MIN_NUM_FORMS": "0",
            "memberships-MAX_NUM_FORMS": "1000",
        }
        data.update(extra)
        return data

    def test_owner_is_read_only_on_change(self):
        resp = self.client.post(self.url, self.form_data(owner=self.other.pk))
        self.assertEqual(resp.status_code, 302)

        project = Project.objects.get(pk=self.project.pk)
        self.assertEqual(project.owner_id, self.owner.pk)
        self.assertEqual(project.active_members, 1)

    def test_owner_membership_row_is_rejected(self):
        resp = self.client.post(self.url, self.form_data(**{
            "memberships-TOTAL_FORMS": "1",
            "memberships-0-id": "",
            "memberships-0-project": str(self.project.pk),
            "memberships-0-user": str(self.owner.pk),
            "memberships-0-role": ProjectMembership.ROLE_MEMBER,
        }))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(ProjectMembership.objects.filter(project=self.project).exists())

    def test_inline_member_updates_active_members(self):
        resp = self.client.post(self.url, self.form_data(**{
            "memberships-TOTAL_FORMS": "1",
            "memberships-0-id": "",
            "memberships-0-project": str(self.project.pk),
            "memberships-0-user": str(self.other.pk),
            "memberships-0-role": ProjectMembership.ROLE_MEMBER,
        }))
        self.assertEqual(resp.status_code, 302)
        self.assertEqual(Project.objects.get(pk=self.project.pk).active_members, 2)
