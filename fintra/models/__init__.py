"""
Data Models Package

Pydantic models for workspaces, financial records, receipt extraction and
sync-layer audit events.
"""

from fintra.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from fintra.models.finance import (
    ACCOUNT_TYPES,
    EMI,
    EXPENSE_CATEGORIES,
    LIABILITY_ACCOUNT_TYPES,
    Account,
    BudgetInput,
    CategoryBudget,
    EmiPayment,
    Expense,
    ExpenseItem,
    Goal,
    GoalPayment,
    GoalStatus,
    NetWorthPoint,
    NewAccount,
    NewEmi,
    NewExpense,
    NewExpenseItem,
    NewGoal,
    NewPayment,
    NewRecurringIncome,
    NewTopUp,
    PaymentType,
    PredictedBudget,
    RecurringIncome,
    TimeInterval,
    TopUp,
)
from fintra.models.receipt import ExpenseDraft, ReceiptDetails, ReceiptItem
from fintra.models.workspace import (
    OrganizationMember,
    UserProfile,
    Workspace,
    WorkspaceRole,
    WorkspaceType,
)

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Financial models
    "ACCOUNT_TYPES",
    "EMI",
    "EXPENSE_CATEGORIES",
    "LIABILITY_ACCOUNT_TYPES",
    "Account",
    "BudgetInput",
    "CategoryBudget",
    "EmiPayment",
    "Expense",
    "ExpenseItem",
    "Goal",
    "GoalPayment",
    "GoalStatus",
    "NetWorthPoint",
    "NewAccount",
    "NewEmi",
    "NewExpense",
    "NewExpenseItem",
    "NewGoal",
    "NewPayment",
    "NewRecurringIncome",
    "NewTopUp",
    "PaymentType",
    "PredictedBudget",
    "RecurringIncome",
    "TimeInterval",
    "TopUp",
    # Receipt models
    "ExpenseDraft",
    "ReceiptDetails",
    "ReceiptItem",
    # Workspace models
    "OrganizationMember",
    "UserProfile",
    "Workspace",
    "WorkspaceRole",
    "WorkspaceType",
]
