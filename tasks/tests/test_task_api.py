from datetime import timedelta

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from projects.models import ProjectMembership
from projects.services import add_member, create_project
from realtime.tests.fakes import RecordingRelay
from tasks import lifecycle
from tasks.models import Subtask, Task
from users.models import User


@override_settings(REALTIME_RELAY_CLASS="realtime.tests.fakes.RecordingRelay")
class TaskApiTestCase(TestCase):
    def setUp(self):
        RecordingRelay.reset()
        self.client = APIClient()

        self.owner = User.objects.create_user(username="owner", password="pass", first_name="Olga")
        self.member = User.objects.create_user(username="member", password="pass")
        self.outsider = User.objects.create_user(username="outsider", password="pass")

        self.project = create_project(self.owner, {"name": "Board"})
        add_member(self.owner, self.project, self.member.id, ProjectMembership.ROLE_MEMBER)

        self.other_project = create_project(self.outsider, {"name": "Private"})

    def auth(self, user):
        self.client.force_authenticate(user=user)

    def make_task(self, project=None, reporter=None, **fields):
        fields.setdefault("title", "Task")
        task = lifecycle.prepare_new_task(project or self.project, reporter or self.owner, fields)
        task.save()
        return task

    # --- list ---

    def test_list_is_scoped_and_paginated(self):
        for i in range(12):
            self.make_task(title=f"Task {i}")
        self.make_task(project=self.other_project, reporter=self.outsider, title="Hidden")
        self.make_task(title="Archived", is_archived=True)

        self.auth(self.member)
        resp = self.client.get(reverse("task-list"), {"page": 2})
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)

        data = resp.json()
        self.assertEqual(len(data["tasks"]), 2)
        self.assertEqual(
            data["pagination"],
            {"current": 2, "pages": 2, "total": 12, "hasNext": False, "hasPrev": True},
        )
        titles = {t["title"] for t in data["tasks"]}
        self.assertNotIn("Hidden", titles)
        # newest first: the two oldest land on page 2
        self.assertEqual(titles, {"Task 0", "Task 1"})

    def test_list_filters(self):
        self.make_task(title="Login bug", priority=Task.PRIORITY_HIGH)
        self.make_task(title="Docs", assignee=self.member)

        self.auth(self.owner)
        resp = self.client.get(reverse("task-list"), {"search": "login"})
        self.assertEqual([t["title"] for t in resp.json()["tasks"]], ["Login bug"])

        resp = self.client.get(reverse("task-list"), {"assignee": self.member.id})
        self.assertEqual([t["title"] for t in resp.json()["tasks"]], ["Docs"])

        resp = self.client.get(reverse("task-list"), {"priority": "high", "project": self.project.id})
        self.assertEqual(resp.json()["pagination"]["total"], 1)

    def test_list_filter_on_foreign_project_is_denied(self):
        self.auth(self.member)
        resp = self.client.get(reverse("task-list"), {"project": self.other_project.id})
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        resp = self.client.get(reverse("task-list"), {"project": 999999})
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_rejects_bad_limit(self):
        self.auth(self.owner)
        resp = self.client.get(reverse("task-list"), {"limit": 101})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("limit", resp.json()["errors"])

    def test_requires_authentication(self):
        resp = self.client.get(reverse("task-list"))
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    # --- create / read ---

    def test_create_task(self):
        self.auth(self.member)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.post(
                reverse("task-list"),
                {
                    "title": "Write tests",
                    "project": self.project.id,
                    "assignee": self.owner.id,
                    "labels": [{"name": "qa"}],
                },
                format="json",
            )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        body = resp.json()
        self.assertEqual(body["message"], "Task created successfully")
        self.assertEqual(body["task"]["reporter"]["id"], self.member.id)
        self.assertEqual(body["task"]["status"], "todo")
        self.assertEqual(body["task"]["labels"], [{"name": "qa", "color": "#757575"}])

        self.assertEqual(RecordingRelay.events(), ["task-created"])
        project_id, _, payload = RecordingRelay.published[0]
        self.assertEqual(project_id, self.project.id)
        self.assertEqual(payload["task"]["title"], "Write tests")
        self.assertEqual(payload["project_id"], self.project.id)

    def test_create_in_foreign_project_is_denied(self):
        self.auth(self.member)
        resp = self.client.post(
            reverse("task-list"),
            {"title": "Sneaky", "project": self.other_project.id},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Task.objects.filter(title="Sneaky").exists())

    def test_create_reports_all_errors(self):
        self.auth(self.owner)
        resp = self.client.post(
            reverse("task-list"),
            {"title": "", "project": self.project.id, "progress": 120, "priority": "asap"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["status_code"], 400)
        for field in ("title", "progress", "priority"):
            self.assertIn(field, body["errors"])

    def test_create_reports_type_and_rule_errors_together(self):
        self.auth(self.owner)
        resp = self.client.post(
            reverse("task-list"),
            {
                "title": "x" * 201,
                "project": self.project.id,
                "estimated_hours": "lots",
                "due_date": "next tuesday",
                "priority": "asap",
                "labels": [{"name": ""}],
            },
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            set(resp.json()["errors"]),
            {"title", "estimated_hours", "due_date", "priority", "labels"},
        )
        self.assertFalse(Task.objects.filter(project=self.project).exists())

    def test_detail_includes_collections(self):
        task = self.make_task(due_date=timezone.now() - timedelta(days=1))
        for i in range(4):
            lifecycle.add_subtask(task, f"Step {i}")
        lifecycle.set_subtask_completed(task.subtasks.first(), True, self.owner)
        lifecycle.add_comment(task, self.member, "On it")

        self.auth(self.member)
        resp = self.client.get(reverse("task-detail", args=[task.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

        data = resp.json()
        self.assertTrue(data["is_overdue"])
        self.assertEqual(data["subtask_progress"], 25)
        self.assertEqual(len(data["subtasks"]), 4)
        self.assertEqual(data["comments"][0]["content"], "On it")

    def test_outsider_gets_403_everywhere(self):
        task = self.make_task()
        self.auth(self.outsider)

        calls = [
            ("get", reverse("task-detail", args=[task.id]), None),
            ("put", reverse("task-detail", args=[task.id]), {"title": "x"}),
            ("delete", reverse("task-detail", args=[task.id]), None),
            ("post", reverse("task-comments", args=[task.id]), {"content": "hi"}),
            ("post", reverse("task-subtasks", args=[task.id]), {"title": "hi"}),
            ("post", reverse("task-watch", args=[task.id]), None),
        ]
        for method, url, data in calls:
            resp = getattr(self.client, method)(url, data, format="json")
            self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, f"{method} {url}")

        self.assertTrue(Task.objects.filter(pk=task.pk).exists())

    def test_missing_task_is_404(self):
        self.auth(self.owner)
        resp = self.client.get(reverse("task-detail", args=[424242]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.json()["errors"]["detail"], "Task not found")

    # --- update ---

    def test_update_to_completed(self):
        task = self.make_task(progress=20)
        self.auth(self.member)

        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.put(
                reverse("task-detail", args=[task.id]),
                {"status": "completed"},
                format="json",
            )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        data = resp.json()["task"]
        self.assertEqual(data["progress"], 100)
        self.assertIsNotNone(data["completed_at"])
        self.assertEqual(RecordingRelay.events(), ["task-updated"])

        resp = self.client.put(
            reverse("task-detail", args=[task.id]), {"status": "review"}, format="json"
        )
        self.assertIsNone(resp.json()["task"]["completed_at"])

    def test_update_cannot_move_project(self):
        task = self.make_task()
        self.auth(self.owner)
        resp = self.client.put(
            reverse("task-detail", args=[task.id]),
            {"project": self.other_project.id},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        task.refresh_from_db()
        self.assertEqual(task.project_id, self.project.id)

    def test_update_reports_type_and_rule_errors_together(self):
        task = self.make_task(title="Keep me")
        self.auth(self.owner)
        resp = self.client.put(
            reverse("task-detail", args=[task.id]),
            {"progress": "abc", "status": "bogus", "title": "", "project": self.other_project.id},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        errors = resp.json()["errors"]
        self.assertEqual(set(errors), {"progress", "status", "title", "project"})

        task.refresh_from_db()
        self.assertEqual(task.title, "Keep me")
        self.assertEqual(task.status, Task.STATUS_TODO)

    def test_failed_update_emits_nothing(self):
        task = self.make_task()
        self.auth(self.owner)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.put(
                reverse("task-detail", args=[task.id]), {"progress": -1}, format="json"
            )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(RecordingRelay.published, [])

    # --- delete ---

    def test_delete_permissions(self):
        owners_task = self.make_task(reporter=self.owner)
        members_task = self.make_task(reporter=self.member)

        self.auth(self.member)
        resp = self.client.delete(reverse("task-detail", args=[owners_task.id]))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.delete(reverse("task-detail", args=[members_task.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(
            RecordingRelay.published,
            [(self.project.id, "task-deleted", {"task_id": members_task.id, "project_id": self.project.id})],
        )

        # project owner may delete anyone's task
        self.auth(self.owner)
        resp = self.client.delete(reverse("task-detail", args=[owners_task.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(Task.objects.exists())

    # --- comments and child collections ---

    def test_add_comment(self):
        task = self.make_task()
        self.auth(self.member)

        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.post(
                reverse("task-comments", args=[task.id]), {"content": "Nice"}, format="json"
            )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.json()["comment"]["author"]["username"], "member")
        self.assertEqual(RecordingRelay.events(), ["comment-added"])
        payload = RecordingRelay.published[0][2]
        self.assertEqual(payload["task_id"], task.id)
        self.assertEqual(payload["comment"]["content"], "Nice")

    def test_empty_comment_rejected(self):
        task = self.make_task()
        self.auth(self.member)
        resp = self.client.post(
            reverse("task-comments", args=[task.id]), {"content": "  "}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("content", resp.json()["errors"])

    def test_subtasks(self):
        task = self.make_task()
        self.auth(self.member)

        resp = self.client.post(reverse("task-subtasks", args=[task.id]), {"title": "Step"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        subtask_id = resp.json()["subtask"]["id"]

        resp = self.client.patch(
            reverse("task-subtask-detail", args=[task.id, subtask_id]),
            {"completed": True},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(Subtask.objects.get(pk=subtask_id).completed)

        resp = self.client.patch(
            reverse("task-subtask-detail", args=[task.id, 999999]),
            {"completed": True},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_dependency_requires_access_to_both_tasks(self):
        task = self.make_task()
        hidden = self.make_task(project=self.other_project, reporter=self.outsider)
        visible = self.make_task(title="Visible")

        self.auth(self.member)
        resp = self.client.post(
            reverse("task-dependencies", args=[task.id]), {"depends_on": hidden.id}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        resp = self.client.post(
            reverse("task-dependencies", args=[task.id]),
            {"depends_on": visible.id, "relation": "blocked-by"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)

        resp = self.client.post(
            reverse("task-dependencies", args=[task.id]), {"depends_on": visible.id}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_time_entries(self):
        task = self.make_task()
        self.auth(self.member)
        start = timezone.now() - timedelta(hours=1)

        resp = self.client.post(
            reverse("task-time-entries", args=[task.id]),
            {"start_time": start.isoformat(), "end_time": (start + timedelta(minutes=30)).isoformat()},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        self.assertEqual(resp.json()["time_entry"]["duration"], 30)

    def test_watch_and_unwatch(self):
        task = self.make_task()
        self.auth(self.member)

        resp = self.client.post(reverse("task-watch", args=[task.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(task.watchers.filter(pk=self.member.pk).exists())

        resp = self.client.delete(reverse("task-watch", args=[task.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(task.watchers.exists())
