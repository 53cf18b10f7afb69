import uuid

from django.core.cache import cache
from django.test import TestCase
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from documents.testing import UniversityFixtures

from .models import VerificationEvent
from .payload_policy import _mask_document_number, public_subject_summary, sanitize_public_metadata


class PublicVerifyTests(UniversityFixtures, APITestCase):
    def setUp(self):
        super().setUp()
        cache.clear()

    def _issue(self, slug, user, body=None):
        self.client.force_authenticate(user=user)
        res = self.client.post(f"/api/documents/{slug}/", body or {}, format="json")
        self.assertEqual(res.status_code, 200)
        self.client.force_authenticate(user=None)
        return res.data["documentId"]

    def test_issued_document_verifies_as_valid(self):
        doc_id = self._issue("transcript", self.student_user)

        res = self.client.get(f"/api/verify/{doc_id}/", HTTP_ACCEPT="application/json")
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertTrue(data["valid"])
        self.assertEqual(data["document"]["id"], doc_id)
        self.assertEqual(data["document"]["type"], "transcript")
        self.assertEqual(data["document"]["issuer"], "Arta Krasniqi")
        self.assertEqual(
            data["document"]["subject"],
            {
                "name": "Arta Krasniqi",
                "studentNumber": "****4001",
                "program": "Computer Engineering",
                "faculty": "Faculty of Information Technology",
            },
        )
        self.assertEqual(data["document"]["metadata"]["gpa"], "7.00")

        events = VerificationEvent.objects.filter(document_id=doc_id)
        self.assertEqual(events.count(), 1)
        self.assertEqual(events.get().outcome, VerificationEvent.Outcome.VALID)
        self.assertIsNone(events.get().verifier)

    def test_unknown_identifier_is_a_negative_verdict(self):
        unknown = uuid.uuid4()
        res = self.client.get(f"/api/verify/{unknown}/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"valid": False, "reason": "not_found", "message": "Document not found"})

        event = VerificationEvent.objects.get(document_id=unknown)
        self.assertEqual(event.outcome, VerificationEvent.Outcome.NOT_FOUND)
        self.assertEqual(event.doc_type, "")

    def test_malformed_identifier_is_404(self):
        res = self.client.get("/api/verify/not-a-uuid/")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["code"], "not_found")
        self.assertEqual(VerificationEvent.objects.count(), 0)

    def test_revoked_document_is_invalid(self):
        doc_id = self._issue("transcript", self.student_user)
        self.client.force_authenticate(user=self.admin_user)
        self.client.put(f"/api/documents/{doc_id}/revoke/", {"reason": "Issued in error"}, format="json")
        self.client.force_authenticate(user=None)

        data = self.client.get(f"/api/verify/{doc_id}/").json()
        self.assertFalse(data["valid"])
        self.assertEqual(data["reason"], "revoked")
        self.assertEqual(data["document"], {"id": doc_id, "type": "transcript", "status": "revoked"})
        self.assertEqual(
            VerificationEvent.objects.get(document_id=doc_id).outcome,
            VerificationEvent.Outcome.INVALID,
        )

    def test_purpose_is_not_disclosed(self):
        doc_id = self._issue("verification-letter", self.student_user, {"purpose": "Visa application for Germany"})
        data = self.client.get(f"/api/verify/{doc_id}/").json()
        self.assertTrue(data["valid"])
        self.assertNotIn("purpose", data["document"]["metadata"])
        self.assertNotIn("Visa application", str(data))
        self.assertEqual(data["document"]["metadata"]["enrollmentStatus"], "Active")

    def test_authenticated_verifier_is_recorded(self):
        doc_id = self._issue("enrollment-certificate", self.student_user)
        access = str(RefreshToken.for_user(self.other_pedagogue_user).access_token)

        res = self.client.get(f"/api/verify/{doc_id}/", HTTP_AUTHORIZATION=f"Bearer {access}")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(VerificationEvent.objects.get(document_id=doc_id).verifier, self.other_pedagogue_user)

    def test_invalid_bearer_token_is_ignored(self):
        doc_id = self._issue("enrollment-certificate", self.student_user)
        res = self.client.get(f"/api/verify/{doc_id}/", HTTP_AUTHORIZATION="Bearer garbage")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()["valid"])
        self.assertIsNone(VerificationEvent.objects.get(document_id=doc_id).verifier)

    def test_records_client_address(self):
        doc_id = self._issue("transcript", self.student_user)
        self.client.get(f"/api/verify/{doc_id}/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1", HTTP_USER_AGENT="QR/1.0")
        event = VerificationEvent.objects.get(document_id=doc_id)
        self.assertEqual(event.ip_address, "203.0.113.7")
        self.assertEqual(event.user_agent, "QR/1.0")

    def test_tolerates_percent_encoded_whitespace_in_path(self):
        doc_id = uuid.uuid4()
        res = self.client.get(f"/api/%20%20verify/{doc_id}/", follow=False)
        self.assertIn(res.status_code, {301, 308})
        self.assertEqual(res["Location"], f"/api/verify/{doc_id}/")

    def test_strips_newlines_from_identifier(self):
        doc_id = uuid.uuid4()
        res = self.client.get(f"/api/verify/{doc_id}%0A/", follow=False)
        self.assertIn(res.status_code, {301, 308})
        self.assertEqual(res["Location"], f"/api/verify/{doc_id}/")

    @override_settings(PUBLIC_VERIFY_THROTTLE_RATE="2/min")
    def test_public_verify_throttles(self):
        doc_id = uuid.uuid4()
        self.assertEqual(self.client.get(f"/api/verify/{doc_id}/").status_code, 200)
        self.assertEqual(self.client.get(f"/api/verify/{doc_id}/").status_code, 200)
        res = self.client.get(f"/api/verify/{doc_id}/")
        self.assertEqual(res.status_code, 429)
        self.assertEqual(res.json()["code"], "throttled")


class VerificationHistoryTests(UniversityFixtures, APITestCase):
    def setUp(self):
        super().setUp()
        cache.clear()
        self.client.force_authenticate(user=self.student_user)
        res = self.client.post("/api/documents/transcript/", {}, format="json")
        self.doc_id = res.data["documentId"]
        self.client.force_authenticate(user=None)

    def test_requires_authentication(self):
        res = self.client.get(f"/api/verify/{self.doc_id}/history/")
        self.assertEqual(res.status_code, 401)

    def test_newest_first(self):
        self.client.get(f"/api/verify/{self.doc_id}/", HTTP_X_FORWARDED_FOR="198.51.100.1")
        self.client.get(f"/api/verify/{self.doc_id}/", HTTP_X_FORWARDED_FOR="198.51.100.2")

        self.client.force_authenticate(user=self.admin_user)
        res = self.client.get(f"/api/verify/{self.doc_id}/history/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["documentId"], self.doc_id)
        self.assertEqual(
            [entry["ipAddress"] for entry in res.data["verifications"]],
            ["198.51.100.2", "198.51.100.1"],
        )
        self.assertEqual(res.data["verifications"][0]["outcome"], "valid")

    @override_settings(VERIFICATION_HISTORY_PAGE_SIZE=3)
    def test_history_is_capped(self):
        for _ in range(5):
            self.client.get(f"/api/verify/{self.doc_id}/")

        self.client.force_authenticate(user=self.student_user)
        res = self.client.get(f"/api/verify/{self.doc_id}/history/")
        self.assertEqual(len(res.data["verifications"]), 3)
        self.assertEqual(VerificationEvent.objects.filter(document_id=self.doc_id).count(), 5)

    def test_unknown_document_has_empty_history(self):
        self.client.force_authenticate(user=self.admin_user)
        res = self.client.get(f"/api/verify/{uuid.uuid4()}/history/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["verifications"], [])


class VerificationEventTests(TestCase):
    def test_events_are_append_only(self):
        event = VerificationEvent.objects.create(document_id=uuid.uuid4(), outcome=VerificationEvent.Outcome.NOT_FOUND)

        event.outcome = VerificationEvent.Outcome.VALID
        with self.assertRaises(ValueError):
            event.save()
        with self.assertRaises(ValueError):
            event.delete()
        with self.assertRaises(ValueError):
            VerificationEvent.objects.filter(pk=event.pk).update(outcome=VerificationEvent.Outcome.VALID)
        with self.assertRaises(ValueError):
            VerificationEvent.objects.all().delete()
        self.assertEqual(VerificationEvent.objects.get(pk=event.pk).outcome, VerificationEvent.Outcome.NOT_FOUND)


class PayloadPolicyTests(TestCase):
    def test_mask_document_number(self):
        self.assertEqual(_mask_document_number("S2024001"), "****4001")
        self.assertEqual(_mask_document_number("ABCDEF"), "****CDEF")
        self.assertEqual(_mask_document_number(""), "")

    def test_sanitize_public_metadata_uses_per_type_whitelist(self):
        metadata = {"purpose": "Bank loan", "academicYear": " 2024-2025 ", "enrollmentStatus": "Active", "x": 1}
        self.assertEqual(
            sanitize_public_metadata("verification_letter", metadata),
            {"academicYear": "2024-2025", "enrollmentStatus": "Active"},
        )
        self.assertEqual(sanitize_public_metadata("unknown", metadata), {})
        self.assertEqual(sanitize_public_metadata("transcript", None), {})

    def test_public_subject_summary(self):
        self.assertEqual(
            public_subject_summary({"name": "Arta", "studentNumber": "S2024001", "email": "a@b.c"}),
            {"name": "Arta", "studentNumber": "****4001", "program": "", "faculty": ""},
        )
