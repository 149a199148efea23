# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_USER = "user"
    ROLE_MANAGER = "manager"
    ROLE_ADMIN = "admin"

    ROLE_CHOICES = (
        (ROLE_USER, "User"),
        (ROLE_MANAGER, "Manager"),
        (ROLE_ADMIN, "Admin"),
    )

    role = models.CharField(
        max_length=30,
        choices=ROLE_CHOICES,
        default=ROLE_USER,
    )
    department = models.CharField(max_length=100, blank=True, default="")
    avatar = models.CharField(max_length=1024, blank=True, null=True)

    class Meta:
        ordering = ["first_name", "last_name", "username"]

    @property
    def full_name(self) -> str:
        """Display name; falls back to the username when no name is set."""
        return self.get_full_name() or self.username

    def __str__(self):
        return self.username
