import unittest
from datetime import date, datetime, timezone

from services.due_dates import effective_due_date_for_loan
from services.errors import StateConflictError, ValidationError
from services.extensions import (
    decide_extension,
    extension_summary,
    latest_decision,
    pending_extension,
    submit_extension,
)

NOW = datetime(2025, 1, 8, 2, tzinfo=timezone.utc)


def _borrowed_loan(**overrides):
    loan = {
        "id": "loan-1",
        "is_draft": False,
        "company": ["PT Alpha"],
        "approvals": {"PT Alpha": {"approved": True}},
        "warehouse_status": {"status": "Dipinjam"},
        "return_date": "2025-01-10",
        "return_request": [],
        "extend_status": [],
    }
    loan.update(overrides)
    return loan


def _apply(loan, changes):
    return {**loan, **changes}


class TestSubmitExtension(unittest.TestCase):
    def test_submit_creates_pending_entry(self):
        loan = _apply(_borrowed_loan(), submit_extension(_borrowed_loan(), "2025-01-20", "Proyek mundur", "budi", NOW))
        entry = pending_extension(loan["extend_status"])
        self.assertIsNotNone(entry)
        self.assertEqual(entry["requested_return_date"], "2025-01-20")
        self.assertEqual(entry["previous_status"], "BORROWED")
        self.assertIsNone(entry["approve_status"])
        # Pending extensions do not move the due date
        self.assertEqual(effective_due_date_for_loan(loan), date(2025, 1, 10))

    def test_accepts_day_first_dates(self):
        changes = submit_extension(_borrowed_loan(), "20/01/2025", "Proyek mundur", "budi", NOW)
        self.assertEqual(changes["extend_status"][0]["requested_return_date"], "2025-01-20")

    def test_validation(self):
        with self.assertRaises(ValidationError):
            submit_extension(_borrowed_loan(), "2025-01-20", "", "budi", NOW)
        with self.assertRaises(ValidationError):
            submit_extension(_borrowed_loan(), "next week", "Proyek mundur", "budi", NOW)

    def test_only_one_pending(self):
        loan = _apply(_borrowed_loan(), submit_extension(_borrowed_loan(), "2025-01-20", "a", "budi", NOW))
        with self.assertRaises(StateConflictError):
            submit_extension(loan, "2025-01-25", "b", "budi", NOW)

    def test_requires_outstanding_loan(self):
        with self.assertRaises(StateConflictError):
            submit_extension(_borrowed_loan(warehouse_status=None), "2025-01-20", "a", "budi", NOW)
        with self.assertRaises(StateConflictError):
            submit_extension(_borrowed_loan(loan_status="COMPLETED"), "2025-01-20", "a", "budi", NOW)


class TestDecideExtension(unittest.TestCase):
    def _pending_loan(self):
        loan = _borrowed_loan()
        return _apply(loan, submit_extension(loan, "2025-01-20", "Proyek mundur", "budi", NOW))

    def test_approve_moves_due_date(self):
        loan = self._pending_loan()
        loan = _apply(loan, decide_extension(loan, "approve", "marketing", NOW, note="OK"))
        self.assertIsNone(pending_extension(loan["extend_status"]))
        self.assertEqual(latest_decision(loan["extend_status"])["approve_status"], "approved")
        self.assertEqual(effective_due_date_for_loan(loan), date(2025, 1, 20))
        self.assertEqual(len(loan["extend_status"]), 1)

    def test_reject_keeps_due_date(self):
        loan = self._pending_loan()
        loan = _apply(loan, decide_extension(loan, "reject", "marketing", NOW))
        self.assertEqual(effective_due_date_for_loan(loan), date(2025, 1, 10))
        # A new request may follow a decision
        changes = submit_extension(loan, "2025-01-15", "Coba lagi", "budi", NOW)
        self.assertEqual(len(changes["extend_status"]), 2)

    def test_decision_needs_pending_entry(self):
        with self.assertRaises(StateConflictError):
            decide_extension(_borrowed_loan(), "approve", "marketing", NOW)

    def test_invalid_decision(self):
        with self.assertRaises(ValidationError):
            decide_extension(self._pending_loan(), "maybe", "marketing", NOW)


class TestExtensionSummary(unittest.TestCase):
    def test_pending_badge(self):
        loan = _borrowed_loan(extend_status=[{"requested_return_date": "2025-01-20", "approve_status": None}])
        self.assertEqual(extension_summary(loan)["label"], "Perpanjang Diajukan")

    def test_approved_badge_counts(self):
        loan = _borrowed_loan(
            extend_status=[
                {"requested_return_date": "2025-01-20", "approve_status": "approved"},
                {"requested_return_date": "2025-01-25", "approve_status": "approved"},
            ]
        )
        summary = extension_summary(loan)
        self.assertEqual(summary["label"], "Diperpanjang (2x)")
        self.assertEqual(summary["approved_count"], 2)
        self.assertIn("2025-01-25", summary["tooltip"])

    def test_rejected_badge(self):
        loan = _borrowed_loan(extend_status=[{"requested_return_date": "2025-01-20", "approve_status": "rejected"}])
        summary = extension_summary(loan)
        self.assertEqual(summary["label"], "Dipinjam")
        self.assertEqual(summary["rejected_count"], 1)

    def test_no_badge_for_closed_or_unextended_loans(self):
        self.assertIsNone(extension_summary(_borrowed_loan()))
        closed = _borrowed_loan(
            loan_status="COMPLETED",
            extend_status=[{"requested_return_date": "2025-01-20", "approve_status": "approved"}],
        )
        self.assertIsNone(extension_summary(closed))


if __name__ == "__main__":
    unittest.main()
