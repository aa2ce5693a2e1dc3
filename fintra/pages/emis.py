"""EMI page: installment loans split into an Active and a Completed board."""

from fintra.models.finance import EMI, Account, NewEmi, NewPayment
from fintra.pages.base import WorkspacePage
from fintra.summaries import emi_is_completed
from fintra.sync import BatchRead, MutationResult, with_nested_item_removed


class EmiPage(WorkspacePage):
    feature = "emis"

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        return [
            BatchRead("emis", lambda: self._remote.get_emis(ws), label="EMIs"),
            BatchRead("accounts", lambda: self._remote.get_accounts(ws)),
        ]

    def emis(self) -> list[EMI]:
        return self._collection("emis", EMI)

    def accounts(self) -> list[Account]:
        return self._collection("accounts", Account)

    def board(self) -> dict[str, list[EMI]]:
        board: dict[str, list[EMI]] = {"Active": [], "Completed": []}
        for emi in self.emis():
            board["Completed" if emi_is_completed(emi) else "Active"].append(emi)
        return board

    async def add_emi(self, emi: NewEmi) -> None:
        await self._create(
            lambda: self._remote.add_emi(self.workspace_id, self.user_id, emi),
            f"add EMI {emi.name}",
        )

    async def delete_emi(self, emi_id: str) -> MutationResult:
        return await self._delete_optimistically(
            "emis",
            emi_id,
            lambda: self._remote.delete_emi(emi_id),
            f"delete EMI {emi_id}",
        )

    async def add_payment(self, emi_id: str, payment: NewPayment) -> None:
        emi = self._find("emis", emi_id) or {}
        title = f"EMI: {emi.get('name', '')}".strip()
        await self._create(
            lambda: self._remote.add_emi_payment(emi_id, self.user_id, payment, title),
            f"add payment to EMI {emi_id}",
        )

    async def update_payment(self, payment_id: str, payment: NewPayment) -> None:
        await self._create(
            lambda: self._remote.update_emi_payment(payment_id, payment),
            f"update EMI payment {payment_id}",
        )

    async def delete_payment(self, emi_id: str, payment_id: str) -> MutationResult:
        return await self.resource.mutate(
            lambda s: with_nested_item_removed(s, "emis", emi_id, "emi_payments", payment_id),
            lambda: self._remote.delete_emi_payment(payment_id),
            f"delete EMI payment {payment_id}",
        )
