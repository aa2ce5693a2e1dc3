"""Financial goals page: goals by status with their payment history."""

from fintra.models.finance import Account, Goal, GoalStatus, NewGoal, NewPayment
from fintra.pages.base import WorkspacePage
from fintra.sync import BatchRead, MutationResult, with_nested_item_removed


STATUS_ORDER = (GoalStatus.IN_PROGRESS, GoalStatus.PENDING, GoalStatus.COMPLETED)


class GoalsPage(WorkspacePage):
    feature = "financial_goals"

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        return [
            BatchRead("goals", lambda: self._remote.get_goals(ws)),
            BatchRead("accounts", lambda: self._remote.get_accounts(ws)),
        ]

    def goals(self) -> list[Goal]:
        return self._collection("goals", Goal)

    def accounts(self) -> list[Account]:
        return self._collection("accounts", Account)

    def board(self) -> dict[GoalStatus, list[Goal]]:
        """Goals grouped by status, in display order."""
        board: dict[GoalStatus, list[Goal]] = {status: [] for status in STATUS_ORDER}
        for goal in self.goals():
            board[goal.status].append(goal)
        return board

    async def add_goal(self, goal: NewGoal) -> None:
        await self._create(
            lambda: self._remote.add_goal(self.workspace_id, self.user_id, goal),
            f"add goal {goal.title}",
        )

    async def update_goal(self, goal_id: str, goal: NewGoal) -> None:
        await self._create(
            lambda: self._remote.update_goal(goal_id, goal),
            f"update goal {goal_id}",
        )

    async def delete_goal(self, goal_id: str) -> MutationResult:
        return await self._delete_optimistically(
            "goals",
            goal_id,
            lambda: self._remote.delete_goal(goal_id),
            f"delete goal {goal_id}",
        )

    async def add_payment(self, goal_id: str, payment: NewPayment) -> None:
        """Pay towards a goal; the server books a "Goal: <title>" expense."""
        goal = self._find("goals", goal_id) or {}
        title = f"Goal: {goal.get('title', '')}".strip()
        await self._create(
            lambda: self._remote.add_goal_payment(goal_id, self.user_id, payment, title),
            f"add payment to goal {goal_id}",
        )

    async def update_payment(self, payment_id: str, payment: NewPayment) -> None:
        await self._create(
            lambda: self._remote.update_goal_payment(payment_id, payment),
            f"update goal payment {payment_id}",
        )

    async def delete_payment(self, goal_id: str, payment_id: str) -> MutationResult:
        return await self.resource.mutate(
            lambda s: with_nested_item_removed(s, "goals", goal_id, "goal_payments", payment_id),
            lambda: self._remote.delete_goal_payment(payment_id),
            f"delete goal payment {payment_id}",
        )
