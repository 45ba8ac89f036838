"""
Read-time repair of legacy loan shapes.
"""
import copy
import unittest

from services.normalization import normalize_loan
from services.status_resolver import resolve_status
from services.statuses import LoanStatus


def _legacy_loan():
    return {
        "id": "loan-legacy",
        "isDraft": False,
        "company": ["PT Alpha"],
        "returnDate": "2025-01-10",
        "approvals": {"companies": {"PT Alpha": {"approved": True, "approvedBy": "ani"}}},
        "extendStatus": {"requestedReturnDate": "2025-01-20", "approveStatus": "Disetujui"},
        "warehouseStatus": {
            "status": "Dikembalikan",
            "processedBy": "gudang",
            "returnedAt": "2025-01-19T08:00:00Z",
            "returnedBy": "gudang",
            "returnStatus": {"status": "Dikembalikan"},
        },
        "returnStatus": {"status": "Dikembalikan", "previousStatus": "Dipinjam"},
        "returnRequest": [
            {"id": "a", "status": "returnRequested", "note": "selesai", "requestedBy": "budi"},
            {
                "requestId": "a",
                "status": "returnAccepted",
                "processedAt": "2025-01-19T08:00:00Z",
                "processedBy": "gudang",
                "processedNote": "ok",
            },
        ],
    }


class TestNormalizeLoan(unittest.TestCase):
    def test_keys_become_snake_case(self):
        loan = normalize_loan(_legacy_loan())
        self.assertFalse(loan["is_draft"])
        self.assertEqual(loan["return_date"], "2025-01-10")

    def test_approvals_unwrapped_and_company_keys_kept(self):
        loan = normalize_loan(_legacy_loan())
        self.assertEqual(list(loan["approvals"]), ["PT Alpha"])
        self.assertEqual(loan["approvals"]["PT Alpha"]["approved_by"], "ani")

    def test_single_extension_becomes_list_with_canonical_decision(self):
        loan = normalize_loan(_legacy_loan())
        self.assertEqual(len(loan["extend_status"]), 1)
        self.assertEqual(loan["extend_status"][0]["approve_status"], "approved")
        self.assertEqual(loan["extend_status"][0]["id"], "ext-1")

    def test_outcome_entry_is_folded_into_its_request(self):
        entries = normalize_loan(_legacy_loan())["return_request"]
        self.assertEqual(len(entries), 1)
        entry = entries[0]
        self.assertEqual(entry["id"], "a")
        self.assertEqual(entry["root_id"], "a")
        self.assertEqual(entry["status"], "accepted")
        self.assertEqual(entry["processed_by"], "gudang")
        self.assertEqual([h["status"] for h in entry["history"]], ["accepted"])

    def test_warehouse_status_loses_return_fields_and_is_restored(self):
        warehouse = normalize_loan(_legacy_loan())["warehouse_status"]
        self.assertEqual(warehouse["status"], "Dipinjam")
        self.assertEqual(warehouse["processed_by"], "gudang")
        for field in ("returned_at", "returned_by", "return_status"):
            self.assertNotIn(field, warehouse)

    def test_normalized_legacy_loan_resolves_from_history(self):
        self.assertEqual(resolve_status(normalize_loan(_legacy_loan())).status, LoanStatus.RETURN_ACCEPTED)

    def test_input_is_not_mutated_and_result_is_stable(self):
        raw = _legacy_loan()
        before = copy.deepcopy(raw)
        once = normalize_loan(raw)
        self.assertEqual(raw, before)
        self.assertEqual(normalize_loan(once), once)

    def test_unknown_return_status_is_treated_as_requested(self):
        raw = {"id": "x", "returnRequest": [{"id": "r1", "status": "lost in transit"}]}
        with self.assertLogs("services.normalization", level="WARNING"):
            entries = normalize_loan(raw)["return_request"]
        self.assertEqual(entries[0]["status"], "requested")

    def test_malformed_sub_objects_become_empty(self):
        raw = {"id": "x", "approvals": "oops", "extendStatus": ["bad"], "returnStatus": 5, "warehouseStatus": []}
        with self.assertLogs("services.normalization", level="WARNING"):
            loan = normalize_loan(raw)
        self.assertEqual(loan["approvals"], {})
        self.assertEqual(loan["extend_status"], [])
        self.assertIsNone(loan["return_status"])
        self.assertIsNone(loan["warehouse_status"])

    def test_none_and_unknown_types(self):
        self.assertEqual(normalize_loan(None), {})
        with self.assertLogs("services.normalization", level="WARNING"):
            self.assertEqual(normalize_loan(42), {})


if __name__ == "__main__":
    unittest.main()
