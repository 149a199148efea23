from django.core.management.base import BaseCommand
from django.db.models import Exists, OuterRef

from projects.models import Project, ProjectMembership
from projects.services import ensure_owner_membership


class Command(BaseCommand):
    help = "Reports projects whose owner is missing from members (or not listed as owner)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--fix",
            action="store_true",
            help="Insert or correct the owner membership for every broken project",
        )

    def handle(self, *args, **options):
        owner_row = ProjectMembership.objects.filter(
            project=OuterRef("pk"),
            user=OuterRef("owner"),
            role=ProjectMembership.ROLE_OWNER,
        )
        broken = (
            Project.objects.annotate(has_owner_row=Exists(owner_row))
            .filter(has_owner_row=False)
            .select_related("owner")
        )
        count = broken.count()

        if count == 0:
            self.stdout.write(self.style.SUCCESS("All projects list their owner. Data is healthy."))
            return

        self.stdout.write(f"Found {count} project(s) without a correct owner membership.")

        fixed = 0
        for project in broken:
            self.stdout.write(f"  Project {project.id} '{project.name}' (owner: {project.owner.username})")
            if options["fix"] and ensure_owner_membership(project):
                fixed += 1

        if options["fix"]:
            self.stdout.write(self.style.SUCCESS(f"Fixed {fixed}/{count} projects."))
        else:
            self.stdout.write("Run again with --fix to repair them.")
