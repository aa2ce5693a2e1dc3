"""Tests for the summary calculations behind the dashboard, budgets, goals and EMIs."""

from datetime import date, datetime
from decimal import Decimal

from fintra.models.finance import (
    EMI,
    Account,
    CategoryBudget,
    EmiPayment,
    Expense,
    Goal,
    RecurringIncome,
    TopUp,
)
from fintra.summaries import (
    CategoryProgress,
    account_totals,
    budget_progress,
    convert_amount,
    emi_is_completed,
    emi_total_paid,
    goal_progress,
    monthly_cash_flow,
    monthly_income_per_account,
    spending_by_category,
)


def expense(expense_id, amount, category="Other", day=None):
    return Expense(id=expense_id, title=expense_id, amount=Decimal(amount), category=category, date=day)


class TestAccountSummaries:
    """Tests for account totals and income."""

    def test_totals(self):
        """Test assets, liabilities and net worth."""
        totals = account_totals([
            Account(id="a", name="Bank", type="Checking", balance=Decimal("1000")),
            Account(id="b", name="Card", type="Credit Card", balance=Decimal("200")),
            Account(id="c", name="Mortgage", type="Loan", balance=Decimal("500")),
        ])
        assert totals.assets == Decimal("1000")
        assert totals.liabilities == Decimal("700")
        assert totals.net_worth == Decimal("300")

    def test_empty_totals(self):
        """Test totals with no accounts."""
        assert account_totals([]).net_worth == Decimal("0")

    def test_monthly_income(self):
        """Test that inactive incomes are skipped and the rest summed per account."""
        incomes = [
            RecurringIncome(id="1", account_id="a", name="Pay", amount=Decimal("100"), day_of_month=1),
            RecurringIncome(id="2", account_id="a", name="Rent", amount=Decimal("50"), day_of_month=3),
            RecurringIncome(id="3", account_id="b", name="Old", amount=Decimal("9"), day_of_month=3,
                            is_active=False),
        ]
        assert monthly_income_per_account(incomes) == {"a": Decimal("150")}


class TestBudgetSummaries:
    """Tests for budget progress."""

    def test_spending_by_category(self):
        """Test grouping of expense amounts."""
        assert spending_by_category([
            expense("1", "10", "Dining"),
            expense("2", "5", "Dining"),
            expense("3", "7", "Transport"),
        ]) == {"Dining": Decimal("15"), "Transport": Decimal("7")}

    def test_progress_includes_unbudgeted_spending(self):
        """Test that spending without a budget still appears."""
        progress = budget_progress(
            [CategoryBudget(year=2024, month=5, category="Dining", amount=Decimal("50"))],
            [expense("1", "60", "Dining"), expense("2", "20", "Shopping")],
        )

        assert [c.category for c in progress.categories] == ["Dining", "Shopping"]
        dining, shopping = progress.categories
        assert dining.over_budget
        assert dining.remaining == Decimal("-10")
        assert dining.percent == Decimal("120.00")
        assert shopping.budgeted == Decimal("0")
        assert shopping.percent == Decimal("0")
        assert not shopping.over_budget
        assert progress.total_budgeted == Decimal("50")
        assert progress.total_spent == Decimal("80")

    def test_percent_rounding(self):
        """Test that percentages have two decimals."""
        progress = CategoryProgress(category="Dining", budgeted=Decimal("3"), spent=Decimal("1"))
        assert progress.percent == Decimal("33.33")


class TestGoalAndEmiSummaries:
    """Tests for goal and EMI progress."""

    def test_goal_progress(self):
        """Test rounding and the 100% cap."""
        goal = Goal(id="g", title="Trip", target_amount=Decimal("300"), current_amount=Decimal("100"))
        assert goal_progress(goal) == 33
        goal = Goal(id="g", title="Trip", target_amount=Decimal("200"), current_amount=Decimal("1"))
        assert goal_progress(goal) == 1
        goal = Goal(id="g", title="Trip", target_amount=Decimal("100"), current_amount=Decimal("250"))
        assert goal_progress(goal) == 100

    def test_goal_without_target(self):
        """Test that a zero target does not divide by zero."""
        goal = Goal(id="g", title="Trip", target_amount=Decimal("0"))
        assert goal_progress(goal) == 0

    def test_emi_completion(self):
        """Test paid totals and completion."""
        emi = EMI(
            id="m", name="Car", total_amount=Decimal("300"), monthly_payment=Decimal("100"),
            due_date_of_month=1, start_date=date(2024, 1, 1), end_date=date(2024, 3, 1),
            emi_payments=[
                EmiPayment(id="1", emi_id="m", amount=Decimal("100"), payment_date=date(2024, 1, 1)),
                EmiPayment(id="2", emi_id="m", amount=Decimal("150"), payment_date=date(2024, 2, 1)),
            ],
        )
        assert emi_total_paid(emi) == Decimal("250")
        assert not emi_is_completed(emi)

        emi.emi_payments.append(
            EmiPayment(id="3", emi_id="m", amount=Decimal("50"), payment_date=date(2024, 3, 1))
        )
        assert emi_is_completed(emi)


class TestCashFlowAndConversion:
    """Tests for cash flow and currency conversion."""

    def test_monthly_cash_flow(self):
        """Test per-month income and spending, oldest first."""
        flows = monthly_cash_flow(
            [expense("1", "30", day=date(2024, 2, 10)), expense("2", "5"), expense("3", "20", day=date(2024, 1, 2))],
            [TopUp(id="t", account_id="a", amount=Decimal("100"), name="Pay",
                   topup_time=datetime(2024, 2, 1, 8, 0))],
        )
        assert [(f.month, f.income, f.expense, f.net) for f in flows] == [
            ("2024-01", Decimal("0"), Decimal("20"), Decimal("-20")),
            ("2024-02", Decimal("100"), Decimal("30"), Decimal("70")),
        ]

    def test_convert_amount(self):
        """Test conversion and the missing-rate case."""
        assert convert_amount(Decimal("10"), Decimal("0.923")) == Decimal("9.23")
        assert convert_amount(Decimal("10"), None) is None
