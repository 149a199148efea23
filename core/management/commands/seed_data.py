from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from core import datetime_utils
from projects.models import Project, ProjectMembership
from projects.services import create_project, delete_project_with_tasks
from tasks import lifecycle
from tasks.models import Task

User = get_user_model()

DEMO_PASSWORD = "password"


class Command(BaseCommand):
    help = "Seeds the database with demo users, a shared project and a handful of tasks"

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete the demo project first so the seed starts clean",
        )

    def _user(self, username, **defaults):
        user, created = User.objects.get_or_create(username=username, defaults=defaults)
        if created:
            user.set_password(DEMO_PASSWORD)
            user.save()
        return user

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding data...")
        now = datetime_utils.now()

        # 1. Users
        admin = self._user(
            "admin",
            email="admin@example.com",
            first_name="Ada",
            last_name="Admin",
            role=User.ROLE_ADMIN,
            is_staff=True,
            is_superuser=True,
        )
        alice = self._user(
            "alice",
            email="alice@example.com",
            first_name="Alice",
            last_name="Anders",
            role=User.ROLE_MANAGER,
            department="Engineering",
        )
        bob = self._user(
            "bob",
            email="bob@example.com",
            first_name="Bob",
            last_name="Brown",
            department="Design",
        )

        # 2. Project
        existing = Project.objects.filter(name="Website Relaunch", owner=alice).first()
        if existing and options["reset"]:
            delete_project_with_tasks(existing)
            existing = None

        if existing:
            self.stdout.write(self.style.WARNING("Demo project already present, nothing to do"))
            return

        project = create_project(
            alice,
            {
                "name": "Website Relaunch",
                "description": "New marketing site with a refreshed design system.",
                "status": Project.STATUS_ACTIVE,
                "priority": Project.PRIORITY_HIGH,
                "deadline": now + timedelta(days=30),
                "tags": ["web", "design"],
            },
        )
        for user, role in [(admin, ProjectMembership.ROLE_ADMIN), (bob, ProjectMembership.ROLE_MEMBER)]:
            ProjectMembership.objects.get_or_create(project=project, user=user, defaults={"role": role})
        self.stdout.write(f"Created project: {project.name}")

        # 3. Tasks
        tasks_data = [
            {
                "title": "Audit current content",
                "status": Task.STATUS_COMPLETED,
                "priority": Task.PRIORITY_MEDIUM,
                "assignee": alice,
            },
            {
                "title": "Design new landing page",
                "status": Task.STATUS_IN_PROGRESS,
                "priority": Task.PRIORITY_HIGH,
                "assignee": bob,
                "due_date": now + timedelta(days=5),
                "estimated_hours": 16,
                "labels": [{"name": "design", "color": "#E91E63"}],
            },
            {
                "title": "Set up analytics",
                "status": Task.STATUS_TODO,
                "priority": Task.PRIORITY_LOW,
                "due_date": now - timedelta(days=1),
            },
            {
                "title": "Review copy with marketing",
                "status": Task.STATUS_REVIEW,
                "priority": Task.PRIORITY_URGENT,
                "assignee": admin,
            },
        ]

        for data in tasks_data:
            task = lifecycle.prepare_new_task(project, alice, data, now=now)
            task.save()
            self.stdout.write(f"  Task: {task.title} [{task.status}]")

        landing = Task.objects.get(project=project, title="Design new landing page")
        for title in ["Wireframes", "Visual design", "Responsive pass", "Handoff"]:
            lifecycle.add_subtask(landing, title)
        lifecycle.set_subtask_completed(landing.subtasks.first(), True, bob, now=now)
        lifecycle.add_comment(landing, alice, "Please share the wireframes before Friday.")
        lifecycle.watch(landing, alice)

        self.stdout.write(self.style.SUCCESS("Seeding complete!"))
