from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework import status

from projects.models import Project
from users.models import User


class ProjectApiTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.alice = User.objects.create_user(username="alice", email="alice@example.com", password="pass")
        self.bob = User.objects.create_user(username="bob", email="bob@example.com", password="pass")

    def auth(self, user):
        self.client.force_authenticate(user=user)

    def create_project(self, name="API board", **extra):
        self.auth(self.owner)
        resp = self.client.post("/api/projects/", {"name": name, **extra}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        return resp.json()

    def test_requires_authentication(self):
        resp = self.client.get("/api/projects/")
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
        self.assertFalse(resp.json()["success"])

    def test_create_and_retrieve(self):
        data = self.create_project(description="Sprint work")
        self.assertEqual(data["owner"]["id"], self.owner.pk)
        self.assertEqual(data["stats"], {"total_tickets": 0, "completed_tickets": 0, "active_members": 1})
        self.assertEqual(data["user_role"], "owner")
        self.assertEqual(data["board_settings"]["default_ticket_status"], "todo")

        resp = self.client.get(f"/api/projects/{data['id']}/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["name"], "API board")

    def test_short_name_is_rejected_with_error_envelope(self):
        self.auth(self.owner)
        resp = self.client.post("/api/projects/", {"name": "ab"}, format="json")
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["status_code"], 400)
        self.assertIn("name", body["errors"])

    def test_membership_endpoints(self):
        project_id = self.create_project()["id"]

        resp = self.client.post(f"/api/projects/{project_id}/members/", {"user_id": self.alice.pk}, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual([m["id"] for m in resp.json()["members"]], [self.alice.pk])
        self.assertEqual(resp.json()["stats"]["active_members"], 2)

        resp = self.client.post(f"/api/projects/{project_id}/admins/", {"user_id": self.alice.pk}, format="json")
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual([a["id"] for a in body["admins"]], [self.alice.pk])
        self.assertEqual(body["members"], [])
        self.assertEqual(body["stats"]["active_members"], 2)

        # Admin adds a member, sees their own role
        self.auth(self.alice)
        resp = self.client.post(f"/api/projects/{project_id}/members/", {"user_id": self.bob.pk}, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["user_role"], "admin")

        resp = self.client.delete(f"/api/projects/{project_id}/members/{self.bob.pk}/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["stats"]["active_members"], 2)

        # Only the owner touches admins
        resp = self.client.delete(f"/api/projects/{project_id}/admins/{self.alice.pk}/")
        self.assertEqual(resp.status_code, 403)

        self.auth(self.owner)
        resp = self.client.delete(f"/api/projects/{project_id}/admins/{self.alice.pk}/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["admins"], [])

    def test_add_unknown_user_is_404(self):
        project_id = self.create_project()["id"]
        resp = self.client.post(f"/api/projects/{project_id}/members/", {"user_id": 987654}, format="json")
        self.assertEqual(resp.status_code, 404)

    def test_outsider_gets_403(self):
        project_id = self.create_project()["id"]
        self.auth(self.bob)
        self.assertEqual(self.client.get(f"/api/projects/{project_id}/").status_code, 403)
        self.assertEqual(
            self.client.patch(f"/api/projects/{project_id}/", {"name": "Mine now"}, format="json").status_code,
            403,
        )
        self.assertEqual(self.client.delete(f"/api/projects/{project_id}/").status_code, 403)

    def test_patch_archive_and_delete(self):
        project_id = self.create_project()["id"]
        resp = self.client.patch(f"/api/projects/{project_id}/", {"status": "archived"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertIsNotNone(resp.json()["archived_at"])

        resp = self.client.delete(f"/api/projects/{project_id}/")
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(Project.objects.filter(pk=project_id).exists())

    def test_list_is_scoped_and_paginated(self):
        for i in range(3):
            self.create_project(name=f"Board {i}")
        self.auth(self.alice)
        self.client.post("/api/projects/", {"name": "Alice only"}, format="json")

        self.auth(self.owner)
        resp = self.client.get("/api/projects/?limit=2&offset=0")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["count"], 3)
        self.assertEqual(body["limit"], 2)
        self.assertEqual(len(body["results"]), 2)

        resp = self.client.get("/api/projects/?limit=abc")
        self.assertEqual(resp.status_code, 400)
