"""
Main Orchestrator for Fintra

Ties the components together and defines the receipt-to-expense flow:

    photo → size/format check → Gemini → advisory draft → user edits → confirm → add_expense

DESIGN DECISION: The AI suggests, the human confirms.
- Nothing is saved without an explicit `confirm`
- Every extracted field is only a prefill and can be overridden
- Failures are audited and shown; the user can always enter the expense by hand

`create_app_components` is the single place where settings, the remote
data service, the sync layer and the services are wired, so the Streamlit
shell and the tests build the application the same way.
"""

import base64
from collections.abc import MutableMapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import PurePath
from typing import Any, Optional

from fintra.audit import AuditLogger, RecentEventsSink, configure_logging
from fintra.config import AppSettings, Settings, get_settings
from fintra.models.audit import AuditEventBuilder
from fintra.models.finance import EXPENSE_CATEGORIES, NewExpense, NewExpenseItem
from fintra.models.receipt import ExpenseDraft, ReceiptDetails
from fintra.pages.dashboard import DashboardPage
from fintra.profile import ProfileStore
from fintra.services.exchange_rates import ExchangeRateService
from fintra.services.receipt import (
    GeminiReceiptExtractor,
    ImageRejectedError,
    ReceiptExtractionError,
)
from fintra.services.remote import RemoteDataService, SupabaseClient, SupabaseDataService
from fintra.sync import SyncService
from fintra.workspaces import WorkspaceManager


def draft_from_receipt(
    details: ReceiptDetails,
    today: Optional[date] = None,
    account_id: Optional[str] = None,
) -> ExpenseDraft:
    """
    Prefill an expense form from an extraction result.

    - Missing or negative amount → 0
    - Missing or invalid date → today
    - Category outside the known list → "Other", kept as a suggestion
    - Items need a name and a price; quantity defaults to 1
    """
    amount = details.amount if details.amount is not None and details.amount >= 0 else Decimal("0")

    category = "Other"
    suggested = None
    if details.category:
        match = next(
            (c for c in EXPENSE_CATEGORIES if c.lower() == details.category.lower()),
            None,
        )
        if match:
            category = match
        else:
            suggested = details.category

    expense_date = today or date.today()
    if details.date:
        try:
            expense_date = date.fromisoformat(details.date)
        except ValueError:
            pass

    items = []
    for item in details.items:
        if not item.name or item.price is None or item.price < 0:
            continue
        quantity = item.quantity if item.quantity is not None and item.quantity > 0 else Decimal("1")
        items.append(NewExpenseItem(name=item.name, price=item.price, quantity=quantity))

    return ExpenseDraft(
        title=details.title or "",
        amount=amount,
        category=category,
        suggested_category=suggested,
        date=expense_date,
        time=details.time,
        description=details.description,
        account_id=account_id,
        items=items,
    )


def _fields_found(details: ReceiptDetails) -> list[str]:
    found = [
        name for name in ("title", "amount", "category", "date", "time", "description")
        if getattr(details, name) is not None
    ]
    if details.items:
        found.append("items")
    return found


class ReceiptExpenseFlow:
    """
    Orchestrates the receipt upload flow.

    Flow:
    1. Check → size and format against AppSettings
    2. Extract → Gemini reads the photo (advisory only)
    3. Draft → prefill an editable ExpenseDraft
    4. Confirm → user explicitly approves; only then is the expense added
    """

    def __init__(
        self,
        extractor: Optional[GeminiReceiptExtractor] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._extractor = extractor or GeminiReceiptExtractor()
        self._app_settings = app_settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

    def check_image(self, image_bytes: bytes, filename: str, mime_type: str) -> None:
        """
        Raises:
            ImageRejectedError: If the upload is empty, too large or not a
                supported image format
        """
        if not image_bytes:
            raise ImageRejectedError("The uploaded file is empty.")
        if len(image_bytes) > self._app_settings.max_upload_size_bytes:
            raise ImageRejectedError(
                f"Image is larger than {self._app_settings.max_upload_size_mb} MB."
            )

        extension = PurePath(filename).suffix.lstrip(".").lower()
        subtype = mime_type.split("/")[-1].lower() if mime_type else ""
        supported = self._app_settings.supported_formats_list
        if extension not in supported and subtype not in supported:
            raise ImageRejectedError(
                f"Unsupported image format. Please upload one of: {', '.join(supported)}."
            )

    async def extract_draft(
        self,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        account_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> ExpenseDraft:
        """
        Read a receipt photo into an editable draft. Nothing is saved.

        Raises:
            ImageRejectedError: If the upload fails the size/format check
            ReceiptExtractionError: If the photo could not be read
        """
        try:
            self.check_image(image_bytes, filename, mime_type)
            details = await self._extractor.extract(
                base64.b64encode(image_bytes).decode("ascii"),
                mime_type,
            )
        except ReceiptExtractionError as e:
            self._audit.log(AuditEventBuilder.receipt_extraction_failed(filename, str(e)))
            raise

        self._audit.log(AuditEventBuilder.receipt_extracted(filename, _fields_found(details)))
        return draft_from_receipt(details, today=today, account_id=account_id)

    async def confirm(
        self,
        draft: ExpenseDraft,
        page: DashboardPage,
        overrides: Optional[dict[str, Any]] = None,
    ) -> NewExpense:
        """
        Save the user-approved draft as an expense.

        Raises:
            pydantic.ValidationError: If the edited draft is not a valid expense
            MutationError: If the server rejects it
        """
        if overrides:
            draft = ExpenseDraft.model_validate({**draft.model_dump(), **overrides})
        expense = draft.to_new_expense()
        await page.add_expense(expense)
        return expense


@dataclass
class AppComponents:
    """Everything the shell needs, wired once per session."""

    settings: Settings
    remote: RemoteDataService
    audit_logger: AuditLogger
    recent_events: RecentEventsSink
    sync: SyncService
    workspaces: WorkspaceManager
    profile: ProfileStore
    receipts: ReceiptExpenseFlow
    exchange_rates: ExchangeRateService
    user_id: str

    async def secondary_rate(self) -> Optional[tuple[str, Decimal]]:
        """
        Rate from the profile's currency to its secondary currency.

        Returns:
            (secondary currency, rate), or None if no secondary currency is
            set or no rate is available
        """
        profile = self.profile.profile
        if profile is None or not profile.secondary_currency:
            return None
        rate = await self.exchange_rates.get_rate(profile.currency, profile.secondary_currency)
        if rate is None:
            return None
        return profile.secondary_currency, rate


def create_app_components(
    session_storage: MutableMapping[str, str],
    preferences: MutableMapping[str, str],
    user_id: str,
    settings: Optional[Settings] = None,
    remote: Optional[RemoteDataService] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        session_storage: Storage that lives as long as the session (cache,
            profile)
        preferences: Storage that outlives the session (current workspace)
        user_id: Id of the signed-in user
        settings: Settings to use; defaults to get_settings()
        remote: Remote data service; defaults to Supabase

    Returns:
        AppComponents
    """
    settings = settings or get_settings()
    app_settings = settings.app
    sync_settings = settings.sync
    configure_logging(app_settings.log_level)

    recent_events = RecentEventsSink()
    audit_logger = AuditLogger([recent_events])

    if remote is None:
        remote = SupabaseDataService(
            SupabaseClient(settings.supabase, timeout=sync_settings.fetch_timeout_seconds)
        )

    return AppComponents(
        settings=settings,
        remote=remote,
        audit_logger=audit_logger,
        recent_events=recent_events,
        sync=SyncService.from_settings(session_storage, sync_settings, audit_logger),
        workspaces=WorkspaceManager(remote, preferences, audit_logger),
        profile=ProfileStore(remote, session_storage),
        receipts=ReceiptExpenseFlow(app_settings=app_settings, audit_logger=audit_logger),
        exchange_rates=ExchangeRateService(settings.exchange_rates),
        user_id=user_id,
    )
