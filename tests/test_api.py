"""
HTTP surface: camelCase responses with the derived view, the full lifecycle through the
action endpoints, error bodies and optimistic concurrency.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import unittest

from fastapi.testclient import TestClient

from main import app


class TestLoanApi(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._client_cm = TestClient(app)
        cls.client = cls._client_cm.__enter__()

    @classmethod
    def tearDownClass(cls):
        cls._client_cm.__exit__(None, None, None)

    def _create(self, **overrides):
        body = {
            "borrowerName": "Budi",
            "company": ["PT Alpha", "PT Beta"],
            "outDate": "2025-01-01",
            "returnDate": "2025-01-10",
            "isDraft": False,
        }
        body.update(overrides)
        resp = self.client.post("/api/loans", json=body, headers={"X-Actor": "budi"})
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()

    def _post(self, loan_id, path, body, actor="system"):
        return self.client.post(f"/api/loans/{loan_id}/{path}", json=body, headers={"X-Actor": actor})

    def _borrowed(self):
        loan = self._create()
        loan = self._post(loan["id"], "approve", {"company": "PT Alpha", "approved": True, "version": 1}).json()["loan"]
        loan = self._post(loan["id"], "approve", {"company": "PT Beta", "approved": True, "version": 2}).json()["loan"]
        loan = self._post(loan["id"], "warehouse", {"action": "process", "version": 3}, actor="gudang").json()["loan"]
        self.assertEqual(loan["view"]["status"], "BORROWED")
        return loan

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_create_draft(self):
        loan = self._create(isDraft=True)
        self.assertTrue(loan["isDraft"])
        self.assertEqual(loan["version"], 1)
        self.assertEqual(loan["borrowerId"], "budi")
        self.assertEqual(loan["view"]["status"], "DRAFT")
        self.assertEqual(loan["view"]["statusLabel"], "Draft")

        submitted = self._post(loan["id"], "submit", {"version": 1}).json()["loan"]
        self.assertFalse(submitted["isDraft"])
        self.assertEqual(submitted["view"]["status"], "PENDING_APPROVAL")

    def test_get_and_list(self):
        loan = self._create()
        detail = self.client.get(f"/api/loans/{loan['id']}").json()
        self.assertEqual(detail["id"], loan["id"])
        self.assertIn("PT Alpha", detail["approvals"])
        self.assertIn("effectiveReturnDate", detail["view"])
        ids = [row["id"] for row in self.client.get("/api/loans").json()]
        self.assertIn(loan["id"], ids)

    def test_not_found(self):
        resp = self.client.get("/api/loans/loan-missing")
        self.assertEqual(resp.status_code, 404)
        self.assertIn("message", resp.json())

    def test_full_return_lifecycle(self):
        loan = self._borrowed()
        self.assertEqual(loan["warehouseStatus"]["status"], "Dipinjam")
        self.assertEqual(loan["approvals"]["PT Alpha"]["approved"], True)

        resp = self._post(loan["id"], "request-return", {"note": "Selesai dipakai", "version": loan["version"]}, "budi")
        self.assertEqual(resp.status_code, 200, resp.text)
        loan = resp.json()["loan"]
        self.assertEqual(loan["view"]["status"], "RETURN_REQUESTED")
        self.assertTrue(loan["view"]["canWarehouseActOnReturn"])
        request_id = loan["view"]["openReturnRequest"]["id"]

        loan = self._post(
            loan["id"],
            "request-return-action",
            {"action": "accept", "requestId": request_id, "version": loan["version"]},
            "gudang",
        ).json()["loan"]
        self.assertEqual(loan["view"]["status"], "RETURN_ACCEPTED")
        self.assertEqual(loan["view"]["latestAcceptedReturn"]["id"], request_id)

        loan = self._post(
            loan["id"], "request-return-action", {"action": "complete", "version": loan["version"]}, "gudang"
        ).json()["loan"]
        self.assertEqual(loan["view"]["status"], "COMPLETED")
        self.assertFalse(loan["view"]["isActive"])
        self.assertEqual(len(loan["returnRequest"]), 1)
        self.assertEqual(loan["returnStatus"]["status"], "completed")

    def test_extension_flow(self):
        loan = self._borrowed()
        loan = self._post(
            loan["id"], "extend", {"requestedReturnDate": "2025-01-25", "note": "Proyek mundur", "version": loan["version"]}
        ).json()["loan"]
        self.assertEqual(loan["view"]["pendingExtension"]["requestedReturnDate"], "2025-01-25")
        self.assertEqual(loan["view"]["extensionSummary"]["label"], "Perpanjang Diajukan")
        self.assertEqual(loan["view"]["effectiveReturnDate"], "2025-01-10")

        loan = self._post(loan["id"], "extend/decision", {"action": "approve", "version": loan["version"]}).json()["loan"]
        self.assertIsNone(loan["view"]["pendingExtension"])
        self.assertEqual(loan["view"]["effectiveReturnDate"], "2025-01-25")
        self.assertEqual(loan["view"]["duration"]["days"], 25)

    def test_validation_error_body(self):
        loan = self._create()
        resp = self._post(loan["id"], "approve", {"company": "PT Alpha", "approved": False, "version": 1})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("reason", resp.json()["message"])

    def test_state_conflict(self):
        loan = self._create()
        resp = self._post(loan["id"], "request-return", {"note": "too early", "version": 1})
        self.assertEqual(resp.status_code, 409)
        self.assertNotIn("retryable", resp.json())

    def test_stale_version_is_retryable_conflict(self):
        loan = self._create()
        first = self._post(loan["id"], "approve", {"company": "PT Alpha", "approved": True, "version": 1})
        self.assertEqual(first.status_code, 200)
        stale = self._post(loan["id"], "approve", {"company": "PT Beta", "approved": True, "version": 1})
        self.assertEqual(stale.status_code, 409)
        self.assertTrue(stale.json()["retryable"])
        current = self.client.get(f"/api/loans/{loan['id']}").json()
        self.assertIsNone(current["approvals"]["PT Beta"]["approved"])
        self.assertEqual(current["version"], 2)

    def test_actor_header_is_recorded(self):
        loan = self._create()
        loan = self._post(
            loan["id"], "approve", {"company": "PT Alpha", "approved": True, "version": 1}, actor="ani"
        ).json()["loan"]
        self.assertEqual(loan["approvals"]["PT Alpha"]["approvedBy"], "ani")

    def test_stats_and_fine_recompute(self):
        self._borrowed()
        stats = self.client.get("/api/loans/stats").json()
        self.assertGreaterEqual(stats["totalLoans"], 1)
        self.assertIn("overdueLoans", stats)

        report = self.client.post("/api/loans/fines/recompute").json()
        self.assertGreaterEqual(report["scanned"], 1)
        self.assertGreaterEqual(report["updated"], 1)
        self.assertEqual(report["failed"], 0)


if __name__ == "__main__":
    unittest.main()
