"""
Loan lifecycle against a real (in-memory) database: creation with ledger mirror,
payoff reversal, overdue transition, deletion cascade, listing and stats.
Run from project root: python -m pytest tests/test_loans.py -v
"""
import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from exceptions import AlreadyPaid, InvalidAmount, InvalidRange, LedgerWriteFailed, NotFound, ValidationError
from models import Expense, Income, Loan, Notification
from services import loans as loan_service
from tests.support import OTHER_USER, USER, DatabaseTestCase, loan_payload, make_loan

PAID_AT = datetime(2024, 4, 10, 8, 30, tzinfo=timezone.utc)


class LoanTestCase(DatabaseTestCase):
    async def create(self, **overrides) -> Loan:
        async with self.sessionmaker() as session:
            async with session.begin():
                return await loan_service.create_loan(session, USER, loan_payload(**overrides))


class TestCreateLoan(LoanTestCase):
    async def test_lending_computes_terms_and_mirrors_expense(self):
        loan = await self.create()
        self.assertEqual(loan.status, "pending")
        self.assertEqual(loan.total_interest, Decimal("600.00"))
        self.assertEqual(loan.total_payable, Decimal("10600.00"))
        # Borrowing-only fields are dropped for a lending loan
        self.assertIsNone(loan.lender_name)
        self.assertIsNone(loan.category)

        expenses = await self.all(Expense)
        self.assertEqual(len(expenses), 1)
        self.assertEqual(expenses[0].amount, Decimal("10000"))
        self.assertEqual(expenses[0].category, "Lending")
        self.assertEqual(expenses[0].name, "Lent to Asha")
        self.assertEqual(expenses[0].date, date(2024, 1, 15))
        self.assertIn(loan.id, expenses[0].notes)
        self.assertEqual(await self.count(Income), 0)

    async def test_borrowing_mirrors_income(self):
        loan = await self.create(type="borrowing", category=None)
        self.assertIsNone(loan.borrower_name)
        self.assertEqual(loan.category, "Friends")

        incomes = await self.all(Income)
        self.assertEqual(len(incomes), 1)
        self.assertEqual(incomes[0].amount, Decimal("10000"))
        self.assertEqual(incomes[0].category, "Loan")
        self.assertEqual(incomes[0].source, "Borrowed from Ravi")
        self.assertEqual(await self.count(Expense), 0)

    async def test_initial_due_notification(self):
        loan = await self.create()
        notifications = await self.all(Notification, Notification.loan_id == loan.id)
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].type, "loan_reminder")
        self.assertEqual(notifications[0].reminder_date, date(2024, 4, 15))
        self.assertFalse(notifications[0].is_read)

    async def test_validation_failures_write_nothing(self):
        bad_inputs = [
            ({"type": "gift"}, ValidationError),
            ({"amount": Decimal("0")}, InvalidAmount),
            ({"interest_rate": Decimal("-1")}, InvalidAmount),
            ({"due_date": date(2024, 1, 15)}, InvalidRange),
            ({"type": "borrowing", "category": "Cousins"}, ValidationError),
        ]
        for overrides, error in bad_inputs:
            with self.subTest(overrides=overrides):
                with self.assertRaises(error):
                    await self.create(**overrides)
        self.assertEqual(await self.count(Loan), 0)
        self.assertEqual(await self.count(Expense), 0)
        self.assertEqual(await self.count(Income), 0)
        self.assertEqual(await self.count(Notification), 0)

    async def test_terms_are_stored_at_column_precision(self):
        loan = await self.create(amount=Decimal("100.005"), interest_rate=Decimal("0"))
        stored = (await self.all(Loan, Loan.id == loan.id))[0]
        self.assertEqual(stored.amount, Decimal("100.01"))
        self.assertEqual(stored.total_payable, stored.amount + stored.total_interest)

        async with self.sessionmaker() as session:
            async with session.begin():
                await loan_service.mark_paid(session, loan.id, USER, now=PAID_AT)
        incomes = await self.all(Income)
        self.assertEqual(len(incomes), 1)
        self.assertEqual(incomes[0].amount, stored.total_payable)

    async def test_rate_is_rounded_before_interest_is_computed(self):
        loan = await self.create(interest_rate=Decimal("1.23456"))
        stored = (await self.all(Loan, Loan.id == loan.id))[0]
        self.assertEqual(stored.interest_rate, Decimal("1.2346"))
        self.assertEqual(stored.total_interest, Decimal("370.38"))
        self.assertEqual(stored.total_payable, stored.amount + stored.total_interest)

    async def test_ledger_failure_rolls_back_loan(self):
        async def fail(session, loan):
            raise LedgerWriteFailed(loan.id, "expense", "disk full")

        with patch("services.loans.mirror_forward", new=fail):
            with self.assertRaises(LedgerWriteFailed):
                await self.create()
        self.assertEqual(await self.count(Loan), 0)

    async def test_initial_notification_failure_keeps_loan(self):
        with patch(
            "services.loans.Notification",
            side_effect=OperationalError("INSERT", {}, Exception("locked")),
        ):
            loan = await self.create()
        self.assertEqual(await self.count(Loan, Loan.id == loan.id), 1)
        self.assertEqual(await self.count(Expense), 1)
        self.assertEqual(await self.count(Notification), 0)


class TestMarkPaid(LoanTestCase):
    async def pay(self, loan_id: str, user_id: str = USER) -> Loan:
        async with self.sessionmaker() as session:
            async with session.begin():
                return await loan_service.mark_paid(session, loan_id, user_id, now=PAID_AT)

    async def test_lending_payoff_writes_income_with_interest(self):
        loan = await self.create()
        paid = await self.pay(loan.id)
        self.assertEqual(paid.status, "paid")
        self.assertIsNotNone(paid.paid_at)

        incomes = await self.all(Income)
        self.assertEqual(len(incomes), 1)
        self.assertEqual(incomes[0].amount, Decimal("10600.00"))
        self.assertEqual(incomes[0].category, "Repayment")
        self.assertEqual(incomes[0].source, "Repaid by Asha")
        self.assertEqual(incomes[0].date, date(2024, 4, 10))

    async def test_borrowing_payoff_writes_expense(self):
        loan = await self.create(type="borrowing")
        await self.pay(loan.id)
        expenses = await self.all(Expense)
        self.assertEqual(len(expenses), 1)
        self.assertEqual(expenses[0].amount, Decimal("10600.00"))
        self.assertEqual(expenses[0].category, "Repayment")
        self.assertEqual(expenses[0].name, "Paid to Ravi")

    async def test_second_payoff_does_not_reverse_again(self):
        loan = await self.create()
        await self.pay(loan.id)
        with self.assertRaises(AlreadyPaid):
            await self.pay(loan.id)
        self.assertEqual(await self.count(Income), 1)

    async def test_overdue_loan_can_be_paid(self):
        loan = await self.create()
        async with self.sessionmaker() as session:
            async with session.begin():
                self.assertTrue(await loan_service.mark_overdue(session, loan.id))
        paid = await self.pay(loan.id)
        self.assertEqual(paid.status, "paid")

    async def test_other_users_loan_is_not_found(self):
        loan = await self.create()
        with self.assertRaises(NotFound):
            await self.pay(loan.id, user_id=OTHER_USER)
        self.assertEqual(await self.count(Income), 0)

    async def test_reverse_failure_keeps_loan_unpaid(self):
        loan = await self.create()

        async def fail(session, loan, paid_on):
            raise LedgerWriteFailed(loan.id, "income")

        with patch("services.loans.mirror_reverse", new=fail):
            with self.assertRaises(LedgerWriteFailed):
                await self.pay(loan.id)
        stored = await self.all(Loan, Loan.id == loan.id)
        self.assertEqual(stored[0].status, "pending")


class TestStatusTransitions(LoanTestCase):
    async def update(self, loan_id: str, status: str) -> Loan:
        async with self.sessionmaker() as session:
            async with session.begin():
                return await loan_service.update_status(session, loan_id, USER, status, now=PAID_AT)

    async def test_mark_overdue_is_idempotent(self):
        loan = await self.create()
        async with self.sessionmaker() as session:
            async with session.begin():
                self.assertTrue(await loan_service.mark_overdue(session, loan.id))
                self.assertFalse(await loan_service.mark_overdue(session, loan.id))
        stored = await self.all(Loan, Loan.id == loan.id)
        self.assertEqual(stored[0].status, "overdue")

    async def test_mark_overdue_leaves_paid_loan(self):
        loan = await self.create()
        await self.update(loan.id, "paid")
        async with self.sessionmaker() as session:
            async with session.begin():
                self.assertFalse(await loan_service.mark_overdue(session, loan.id))
        stored = await self.all(Loan, Loan.id == loan.id)
        self.assertEqual(stored[0].status, "paid")

    async def test_pending_on_pending_is_noop(self):
        loan = await self.create()
        updated = await self.update(loan.id, "pending")
        self.assertEqual(updated.status, "pending")

    async def test_no_transition_out_of_paid(self):
        loan = await self.create()
        await self.update(loan.id, "paid")
        with self.assertRaises(ValidationError):
            await self.update(loan.id, "pending")

    async def test_unknown_status_rejected(self):
        loan = await self.create()
        with self.assertRaises(ValidationError):
            await self.update(loan.id, "overdue")


class TestDeleteLoan(LoanTestCase):
    async def test_delete_cascades_notifications_keeps_ledger(self):
        loan = await self.create()
        async with self.sessionmaker() as session:
            async with session.begin():
                await loan_service.mark_paid(session, loan.id, USER, now=PAID_AT)
        self.assertEqual(await self.count(Notification, Notification.loan_id == loan.id), 1)

        async with self.sessionmaker() as session:
            async with session.begin():
                await loan_service.delete_loan(session, loan.id, USER)

        self.assertEqual(await self.count(Loan), 0)
        self.assertEqual(await self.count(Notification), 0)
        self.assertEqual(await self.count(Expense), 1)
        self.assertEqual(await self.count(Income), 1)

    async def test_delete_requires_owner(self):
        loan = await self.create()
        async with self.sessionmaker() as session:
            with self.assertRaises(NotFound):
                await loan_service.delete_loan(session, loan.id, OTHER_USER)
        self.assertEqual(await self.count(Loan), 1)


class TestListAndStats(LoanTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        async with self.sessionmaker() as session:
            async with session.begin():
                session.add_all(
                    [
                        make_loan(date(2024, 3, 1), type="lending", amount=Decimal("1000")),
                        make_loan(date(2024, 2, 1), type="lending", amount=Decimal("2000"), status="paid"),
                        make_loan(date(2024, 1, 1), type="borrowing", amount=Decimal("3000"), status="overdue"),
                        make_loan(date(2024, 1, 1), user_id=OTHER_USER),
                    ]
                )

    async def test_list_orders_by_due_date_and_totals(self):
        async with self.sessionmaker() as session:
            result = await loan_service.list_loans(session, USER)
        self.assertEqual(result["total"], 3)
        self.assertEqual(result["pages"], 1)
        self.assertEqual([l.due_date for l in result["loans"]], [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)])
        self.assertEqual(result["totals"]["amount"], Decimal("6000"))

    async def test_list_filters_and_paginates(self):
        async with self.sessionmaker() as session:
            lending = await loan_service.list_loans(session, USER, type="lending")
            page_two = await loan_service.list_loans(session, USER, page=2, limit=2)
        self.assertEqual(lending["total"], 2)
        self.assertEqual(page_two["pages"], 2)
        self.assertEqual(len(page_two["loans"]), 1)

    async def test_list_treats_blank_filters_as_absent(self):
        async with self.sessionmaker() as session:
            result = await loan_service.list_loans(session, USER, type="", status="")
        self.assertEqual(result["total"], 3)

    async def test_list_rejects_unknown_filter(self):
        async with self.sessionmaker() as session:
            with self.assertRaises(ValidationError):
                await loan_service.list_loans(session, USER, status="late")

    async def test_stats_group_by_status_and_type(self):
        async with self.sessionmaker() as session:
            stats = await loan_service.loan_stats(session, USER)
        self.assertEqual(stats["by_status"]["pending"]["count"], 1)
        self.assertEqual(stats["by_status"]["paid"]["count"], 1)
        self.assertEqual(stats["by_status"]["overdue"]["count"], 1)
        self.assertEqual(stats["by_type"]["lending"]["count"], 2)
        self.assertEqual(stats["by_type"]["lending"]["amount"], Decimal("3000"))
        self.assertEqual(stats["by_type"]["borrowing"]["amount"], Decimal("3000"))


if __name__ == "__main__":
    unittest.main()
