from django.test import TestCase
from rest_framework.test import APITestCase

from users.models import User

from .models import AuditLog
from .services import record_event


class RecordEventTests(TestCase):
	def setUp(self):
		self.admin = User.objects.create_user(username="admin1", password="pass", role=User.ROLE_ADMIN)

	def test_record_event_without_request(self):
		entry = record_event(
			actor=self.admin,
			event_type=AuditLog.EVENT_DOCUMENT_ISSUED,
			object_type="document",
			object_id="abc",
			metadata={"type": "transcript"},
		)
		self.assertEqual(entry.actor_id, self.admin.id)
		self.assertEqual(entry.metadata, {"type": "transcript"})
		self.assertEqual(entry.path, "")

	def test_entries_are_append_only(self):
		entry = record_event(event_type=AuditLog.EVENT_DOCUMENT_VIEWED, object_type="document", object_id="x")
		entry.object_id = "y"
		with self.assertRaises(ValueError):
			entry.save()
		with self.assertRaises(ValueError):
			entry.delete()
		self.assertEqual(AuditLog.objects.get(pk=entry.pk).object_id, "x")


class AuditLogAPITests(APITestCase):
	def setUp(self):
		self.admin = User.objects.create_user(username="admin1", password="pass", role=User.ROLE_ADMIN)
		self.student = User.objects.create_user(username="student1", password="pass", role=User.ROLE_STUDENT)
		record_event(actor=self.admin, event_type=AuditLog.EVENT_DOCUMENT_REVOKED, object_type="document", object_id="d1")
		record_event(actor=self.admin, event_type=AuditLog.EVENT_DOCUMENT_ISSUED, object_type="document", object_id="d2")

	def test_admin_can_list_and_filter_by_document(self):
		self.client.force_authenticate(user=self.admin)
		res = self.client.get("/api/audit-logs/", {"document": "d1"})
		self.assertEqual(res.status_code, 200)
		rows = res.data["results"] if isinstance(res.data, dict) else res.data
		self.assertEqual([r["object_id"] for r in rows], ["d1"])
		self.assertEqual(rows[0]["event_type"], "document.revoked")

	def test_non_admin_is_forbidden(self):
		self.client.force_authenticate(user=self.student)
		res = self.client.get("/api/audit-logs/")
		self.assertEqual(res.status_code, 403)
		self.assertEqual(res.data["code"], "forbidden")
