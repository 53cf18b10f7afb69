from django.test import TestCase
from rest_framework.test import APIClient, APIRequestFactory
from rest_framework import status
from .models import User
from .permissions import IsAdmin, IsPedagogue, IsStudent


class TokenAuthTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.student = User.objects.create_user(
            username="student", password="password", role=User.ROLE_STUDENT
        )

    def test_token_obtain_returns_access_and_refresh(self):
        response = self.client.post(
            "/api/token/", {"username": "student", "password": "password"}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

    def test_token_obtain_rejects_wrong_password(self):
        response = self.client.post(
            "/api/token/", {"username": "student", "password": "wrong"}
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["code"], "no_active_account")

    def test_health_is_public(self):
        response = self.client.get("/api/health/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "ok")


class RolePermissionTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.admin = User.objects.create_user(username="admin", password="password", role=User.ROLE_ADMIN)
        self.pedagogue = User.objects.create_user(
            username="pedagogue", password="password", role=User.ROLE_PEDAGOGUE
        )
        self.student = User.objects.create_user(username="student", password="password", role=User.ROLE_STUDENT)

    def _request_as(self, user):
        request = self.factory.get("/")
        request.user = user
        return request

    def test_role_permissions_match_only_their_role(self):
        cases = [
            (IsAdmin(), self.admin, True),
            (IsAdmin(), self.pedagogue, False),
            (IsPedagogue(), self.pedagogue, True),
            (IsPedagogue(), self.student, False),
            (IsStudent(), self.student, True),
            (IsStudent(), self.admin, False),
        ]
        for permission, user, expected in cases:
            with self.subTest(permission=type(permission).__name__, role=user.role):
                self.assertEqual(permission.has_permission(self._request_as(user), None), expected)
