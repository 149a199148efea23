from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from users.models import User


class UserAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.me = User.objects.create_user(username="me", password="pass", email="me@example.com")
        self.ada = User.objects.create_user(
            username="ada", password="pass", first_name="Ada", last_name="Lovelace",
            email="ada@example.com", department="Research",
        )
        self.gone = User.objects.create_user(username="gone", password="pass", is_active=False)
        self.client.force_authenticate(user=self.me)

    def test_list_active_users(self):
        resp = self.client.get(reverse("user-list"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        usernames = {u["username"] for u in resp.json()}
        self.assertEqual(usernames, {"me", "ada"})

    def test_search(self):
        for term in ("love", "ADA@", "Ada"):
            resp = self.client.get(reverse("user-list"), {"search": term})
            self.assertEqual([u["username"] for u in resp.json()], ["ada"], term)

        resp = self.client.get(reverse("user-list"), {"search": "gone"})
        self.assertEqual(resp.json(), [])

    def test_limit(self):
        for i in range(5):
            User.objects.create_user(username=f"extra{i}", password="pass")

        resp = self.client.get(reverse("user-list"), {"limit": 3})
        self.assertEqual(len(resp.json()), 3)

        resp = self.client.get(reverse("user-list"), {"limit": 51})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("limit", resp.json()["errors"])

    def test_retrieve(self):
        resp = self.client.get(reverse("user-detail", args=[self.ada.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual(data["full_name"], "Ada Lovelace")
        self.assertEqual(data["department"], "Research")
        self.assertNotIn("password", data)

    def test_retrieve_missing_or_inactive(self):
        resp = self.client.get(reverse("user-detail", args=[999999]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.json()["errors"]["detail"], "User not found")

        resp = self.client.get(reverse("user-detail", args=[self.gone.id]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.json()["errors"]["detail"], "User account is deactivated")

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get(reverse("user-list"))
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_stats_route(self):
        resp = self.client.get(reverse("user-me-stats"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["task_stats"]["total"], 0)

    def test_health_route_loads_alongside_user_routes(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get(reverse("health-check"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
