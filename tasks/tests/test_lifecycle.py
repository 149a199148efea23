from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from core.exceptions import ConflictError, ValidationError
from projects.services import create_project
from tasks import lifecycle
from tasks.models import Task, TaskDependency
from users.models import User


class TaskLifecycleTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="pass")
        self.project = create_project(self.user, {"name": "Lifecycle"})
        self.now = timezone.now()

    def make_task(self, **fields):
        fields.setdefault("title", "A task")
        task = lifecycle.prepare_new_task(self.project, self.user, fields, now=self.now)
        task.save()
        return task

    # --- creation ---

    def test_new_task_defaults(self):
        task = self.make_task()
        self.assertEqual(task.status, Task.STATUS_TODO)
        self.assertEqual(task.reporter, self.user)
        self.assertEqual(task.progress, 0)
        self.assertIsNone(task.completed_at)

    def test_new_task_created_completed_is_stamped(self):
        task = self.make_task(status=Task.STATUS_COMPLETED, progress=10)
        self.assertEqual(task.completed_at, self.now)
        self.assertEqual(task.progress, 100)

    def test_new_task_requires_title(self):
        with self.assertRaises(ValidationError) as ctx:
            lifecycle.prepare_new_task(self.project, self.user, {"title": "   "})
        self.assertIn("title", ctx.exception.detail)

    # --- completion rules ---

    def test_completing_sets_completed_at_and_forces_progress(self):
        task = self.make_task(progress=40)
        lifecycle.apply_task_update(task, {"status": Task.STATUS_COMPLETED}, now=self.now)

        self.assertEqual(task.completed_at, self.now)
        self.assertEqual(task.progress, 100)

    def test_completion_overrides_progress_in_same_update(self):
        task = self.make_task()
        lifecycle.apply_task_update(
            task, {"status": Task.STATUS_COMPLETED, "progress": 30}, now=self.now
        )
        self.assertEqual(task.progress, 100)

    def test_reopening_clears_completed_at(self):
        task = self.make_task(status=Task.STATUS_COMPLETED)
        lifecycle.apply_task_update(task, {"status": Task.STATUS_IN_PROGRESS})

        self.assertIsNone(task.completed_at)
        self.assertEqual(task.status, Task.STATUS_IN_PROGRESS)

    def test_staying_completed_keeps_original_timestamp(self):
        task = self.make_task(status=Task.STATUS_COMPLETED)
        later = self.now + timedelta(hours=2)
        lifecycle.apply_task_update(task, {"title": "Renamed"}, now=later)
        self.assertEqual(task.completed_at, self.now)

    def test_archiving_sets_and_clears_archived_at(self):
        task = self.make_task()
        lifecycle.apply_task_update(task, {"is_archived": True}, now=self.now)
        self.assertEqual(task.archived_at, self.now)

        lifecycle.apply_task_update(task, {"is_archived": False})
        self.assertIsNone(task.archived_at)

    # --- validation ---

    def test_invalid_update_reports_every_field_and_leaves_task_untouched(self):
        task = self.make_task(title="Original")

        with self.assertRaises(ValidationError) as ctx:
            lifecycle.apply_task_update(task, {
                "title": "x" * 201,
                "progress": 150,
                "estimated_hours": 1001,
                "status": "done",
                "labels": [{"name": "", "color": "blue"}],
            })

        errors = ctx.exception.detail
        for field in ("title", "progress", "estimated_hours", "status", "labels"):
            self.assertIn(field, errors)
        self.assertEqual(task.title, "Original")
        self.assertEqual(task.progress, 0)

    def test_project_cannot_be_updated(self):
        task = self.make_task()
        with self.assertRaises(ValidationError) as ctx:
            lifecycle.apply_task_update(task, {"project": None})
        self.assertIn("project", ctx.exception.detail)

    def test_label_color_defaults(self):
        task = self.make_task(labels=[{"name": "bug"}])
        self.assertEqual(task.labels, [{"name": "bug", "color": "#757575"}])

    def test_title_is_sanitized(self):
        task = self.make_task(title="  Fix\nlogin\x07 page ")
        self.assertEqual(task.title, "Fix login page")

    # --- derived fields ---

    def test_overdue_until_completed(self):
        task = self.make_task(due_date=self.now - timedelta(days=1))
        self.assertTrue(lifecycle.is_overdue(task, now=self.now))

        lifecycle.apply_task_update(task, {"status": Task.STATUS_COMPLETED})
        self.assertFalse(lifecycle.is_overdue(task, now=self.now))

    def test_not_overdue_without_due_date(self):
        task = self.make_task()
        self.assertFalse(task.is_overdue)
        self.assertIsNone(task.days_remaining)

    def test_days_remaining_rounds_up(self):
        task = self.make_task(due_date=self.now + timedelta(days=2, hours=1))
        self.assertEqual(lifecycle.days_remaining(task, now=self.now), 3)

    def test_subtask_progress(self):
        task = self.make_task()
        self.assertEqual(task.subtask_progress, 0)

        subtasks = [lifecycle.add_subtask(task, f"Step {i}") for i in range(4)]
        lifecycle.set_subtask_completed(subtasks[0], True, self.user)

        self.assertEqual(lifecycle.subtask_progress(task), 25)

    # --- owned collections ---

    def test_add_comment(self):
        task = self.make_task()
        comment = lifecycle.add_comment(task, self.user, "<script>x</script>Looks <strong>good</strong>")

        self.assertEqual(comment.author, self.user)
        self.assertNotIn("<script>", comment.content)
        self.assertIn("<strong>good</strong>", comment.content)
        self.assertEqual(task.comments.count(), 1)

    def test_comment_bounds(self):
        task = self.make_task()
        with self.assertRaises(ValidationError):
            lifecycle.add_comment(task, self.user, "   ")
        with self.assertRaises(ValidationError):
            lifecycle.add_comment(task, self.user, "x" * 1001)
        self.assertEqual(task.comments.count(), 0)

    def test_uncompleting_subtask_clears_stamp(self):
        task = self.make_task()
        subtask = lifecycle.add_subtask(task, "Step")

        lifecycle.set_subtask_completed(subtask, True, self.user)
        self.assertIsNotNone(subtask.completed_at)
        self.assertEqual(subtask.completed_by, self.user)

        lifecycle.set_subtask_completed(subtask, False, self.user)
        subtask.refresh_from_db()
        self.assertIsNone(subtask.completed_at)
        self.assertIsNone(subtask.completed_by)

    def test_dependency_rules(self):
        task = self.make_task(title="First")
        other = self.make_task(title="Second")

        dep = lifecycle.add_dependency(task, other)
        self.assertEqual(dep.relation, TaskDependency.TYPE_RELATES_TO)

        with self.assertRaises(ConflictError):
            lifecycle.add_dependency(task, other, TaskDependency.TYPE_BLOCKS)
        with self.assertRaises(ValidationError):
            lifecycle.add_dependency(task, task)

    def test_deleting_a_task_drops_edges_but_not_dependents(self):
        task = self.make_task(title="First")
        other = self.make_task(title="Second")
        lifecycle.add_dependency(task, other, TaskDependency.TYPE_BLOCKED_BY)

        other.delete()

        self.assertTrue(Task.objects.filter(pk=task.pk).exists())
        self.assertFalse(TaskDependency.objects.filter(task=task).exists())

    def test_log_time_computes_minutes(self):
        task = self.make_task()
        entry = lifecycle.log_time(task, self.user, self.now, self.now + timedelta(minutes=95), "pairing")
        self.assertEqual(entry.duration, 95)

        with self.assertRaises(ValidationError):
            lifecycle.log_time(task, self.user, self.now, self.now - timedelta(minutes=1))

    def test_watch_is_idempotent(self):
        task = self.make_task()
        self.assertTrue(lifecycle.watch(task, self.user))
        self.assertFalse(lifecycle.watch(task, self.user))
        self.assertEqual(task.watchers.count(), 1)

        self.assertTrue(lifecycle.unwatch(task, self.user))
        self.assertFalse(lifecycle.unwatch(task, self.user))
