"""
Streamlit Frontend for Fintra

The application shell. It owns the refresh counter (through SyncService)
and the current workspace, keeps mounted pages across reruns, and renders
each page's loading, refreshing and error states.

DESIGN PRINCIPLES:
1. Cached data paints first; fresh data replaces it when it arrives
2. A failed load keeps the last good data on screen with a banner
3. Deletes feel instant and are undone, with the server's message, if they fail
4. The sidebar refresh button is the only thing that forces a global re-fetch
5. A receipt is never saved until the user presses "Save expense"
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from fintra.config import get_settings, validate_all_settings
from fintra.models.finance import EXPENSE_CATEGORIES, GoalStatus, NewEmi, NewGoal, NewPayment, PaymentType
from fintra.models.workspace import WorkspaceRole, WorkspaceType
from fintra.orchestrator import AppComponents, create_app_components
from fintra.pages import (
    AccountSharing,
    AccountsPage,
    AnalyticsPage,
    BudgetingPage,
    DashboardPage,
    EmiPage,
    GoalsPage,
    MembersPage,
    TransactionsPage,
    WorkspacePage,
)
from fintra.pages.transactions import SORT_OPTIONS
from fintra.services.receipt import ReceiptExtractionError
from fintra.services.remote import PermissionDeniedError, RemoteServiceError
from fintra.summaries import convert_amount, emi_total_paid, goal_progress
from fintra.sync import MutationError
from fintra.workspaces import WorkspaceError


st.set_page_config(
    page_title="Fintra",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

PERIODS = {"All time": "all", "This week": "week", "This month": "month", "This year": "year"}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _run_and_close(components: AppComponents, coro):
    # The HTTP client must not outlive this rerun's event loop.
    try:
        return await coro
    finally:
        await components.remote.aclose()


def run(components: AppComponents, coro):
    return run_async(_run_and_close(components, coro))


def get_components() -> AppComponents:
    """Get or create this session's components."""
    if "components" not in st.session_state:
        user_id = get_settings().supabase.user_id or ""
        st.session_state.session_storage = {}
        st.session_state.preferences = {}
        components = create_app_components(
            session_storage=st.session_state.session_storage,
            preferences=st.session_state.preferences,
            user_id=user_id,
        )
        run(components, components.workspaces.load())
        if user_id:
            run(components, components.profile.load(user_id))
        st.session_state.components = components
        st.session_state.pages = {}
    return st.session_state.components


def get_page(components: AppComponents, page_cls: type[WorkspacePage], **kwargs) -> WorkspacePage:
    """Return the mounted page for the current workspace, mounting it if needed."""
    workspace = components.workspaces.current
    key = (page_cls.__name__, workspace.id, tuple(sorted(kwargs.items())))
    pages = st.session_state.pages
    if key not in pages:
        if page_cls is MembersPage:
            page = MembersPage(components.sync, components.remote, workspace, components.user_id)
        else:
            page = page_cls(components.sync, components.remote, workspace.id, components.user_id, **kwargs)
        page.mount()
        pages[key] = page
    return pages[key]


def open_page(components: AppComponents, page_cls: type[WorkspacePage], **kwargs) -> WorkspacePage:
    page = get_page(components, page_cls, **kwargs)
    run(components, page.settle())
    return page


def unmount_other_workspaces(components: AppComponents) -> None:
    current_id = components.workspaces.current_id
    pages = st.session_state.pages
    for key in [k for k in pages if k[1] != current_id]:
        pages.pop(key).unmount()


def render_state(page: WorkspacePage) -> bool:
    """Render loading and error states. Returns True if data can be shown."""
    state = page.state
    if state.loading:
        st.info("⏳ Loading...")
        return False
    if state.blocking_error:
        st.error(f"❌ {state.blocking_error}")
        return False
    if state.error_banner:
        st.warning(f"⚠️ {state.error_banner} (showing last loaded data)")
    if state.refreshing:
        st.caption("🔄 Refreshing...")
    if state.mutation_error:
        col1, col2 = st.columns([5, 1])
        col1.error(state.mutation_error)
        if col2.button("Dismiss", key=f"dismiss_{page.feature_key()}"):
            page.dismiss_mutation_error()
            st.rerun()
    return state.data is not None


def render_sidebar(components: AppComponents) -> str:
    st.sidebar.title("💰 Fintra")

    manager = components.workspaces
    if manager.error:
        st.sidebar.error(manager.error)
    if manager.workspaces:
        ids = [w.id for w in manager.workspaces]
        selected = st.sidebar.selectbox(
            "Workspace",
            options=ids,
            index=ids.index(manager.current_id) if manager.current_id in ids else 0,
            format_func=lambda wid: manager.get(wid).name,
        )
        if selected != manager.current_id:
            manager.switch(selected)
            unmount_other_workspaces(components)
            st.rerun()

    if st.sidebar.button("🔄 Refresh data"):
        components.sync.refresh_all()

    st.sidebar.markdown("---")
    return st.sidebar.radio(
        "Navigate to:",
        list(PAGES) + ["📷 Scan Receipt", "🏢 Workspaces", "⚙️ Settings"],
        index=0,
    )


def money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def secondary_rate(components: AppComponents):
    """Exchange rate into the secondary currency, looked up once per currency pair."""
    profile = components.profile.profile
    if profile is None or not profile.secondary_currency:
        return None
    pair = (profile.currency, profile.secondary_currency)
    cached = st.session_state.get("secondary_rate")
    if cached is None or cached[0] != pair:
        st.session_state.secondary_rate = (pair, run(components, components.secondary_rate()))
    return st.session_state.secondary_rate[1]


def render_dashboard(components: AppComponents):
    st.title("🏠 Dashboard")
    page = open_page(components, DashboardPage)
    if not render_state(page):
        return

    totals = page.totals()
    col1, col2, col3 = st.columns(3)
    col1.metric("Assets", money(totals.assets))
    col2.metric("Liabilities", money(totals.liabilities))
    col3.metric("Net worth", money(totals.net_worth))

    secondary = secondary_rate(components)
    if secondary is not None:
        currency, rate = secondary
        st.caption(f"≈ {money(convert_amount(totals.net_worth, rate))} {currency}")

    st.markdown("### Recent expenses")
    expenses = page.recent_expenses(10)
    if not expenses:
        st.info("No expenses yet.")
    for expense in expenses:
        col1, col2, col3 = st.columns([4, 2, 1])
        col1.write(f"**{expense.title}** · {expense.category} · {expense.date or ''}")
        col2.write(money(expense.amount))
        if col3.button("🗑️", key=f"del_exp_{expense.id}", disabled=page.state.mutating):
            run(components, page.delete_expense(expense.id))
            st.rerun()

    predictions = page.predicted_budgets()
    if predictions:
        st.markdown("### Predicted budgets")
        st.table({p.category: money(p.predicted_amount) for p in predictions})


def render_accounts(components: AppComponents):
    st.title("🏦 Accounts")
    page = open_page(components, AccountsPage)
    if not render_state(page):
        return

    income = page.monthly_income()
    for account in page.accounts():
        col1, col2, col3 = st.columns([4, 2, 1])
        label = f"**{account.name}** ({account.type})"
        if account.id in income:
            label += f" · monthly income {money(income[account.id])}"
        col1.write(label)
        col2.write(money(account.balance))
        if col3.button("🗑️", key=f"del_acc_{account.id}", disabled=page.state.mutating):
            run(components, page.delete_account(account.id))
            st.rerun()


def render_transactions(components: AppComponents):
    st.title("💸 Transactions")
    page = open_page(components, TransactionsPage)
    if not render_state(page):
        return

    col1, col2, col3, col4 = st.columns([3, 1, 1, 1])
    search = col1.text_input("Search")
    kind = col2.selectbox("Type", ["all", "expense", "topup"])
    period = col3.selectbox("Period", list(PERIODS))
    sort = col4.selectbox("Sort", SORT_OPTIONS)

    entries = page.feed(search=search, kind=kind, period=PERIODS[period], sort=sort)
    if not entries:
        st.info("No transactions match.")
    for entry in entries:
        col1, col2, col3 = st.columns([4, 2, 1])
        sign = "-" if entry.kind == "expense" else "+"
        col1.write(f"**{entry.title}** · {entry.category or entry.kind} · {entry.when or ''}")
        col2.write(f"{sign}{money(entry.amount)}")
        if col3.button("🗑️", key=f"del_{entry.kind}_{entry.id}", disabled=page.state.mutating):
            if entry.kind == "expense":
                run(components, page.delete_expense(entry.id))
            else:
                run(components, page.delete_topup(entry.id))
            st.rerun()

    items = page.item_summary(search)
    if items:
        st.markdown("### Items")
        st.table([
            {"item": i.name, "quantity": str(i.total_quantity), "spent": money(i.total_spent)}
            for i in items
        ])


def render_budgeting(components: AppComponents):
    st.title("📊 Budgeting")
    today = date.today()
    col1, col2 = st.columns(2)
    year = col1.number_input("Year", min_value=2000, max_value=2100, value=today.year, step=1)
    month = col2.selectbox("Month", list(range(1, 13)), index=today.month - 1)
    page = open_page(components, BudgetingPage, year=int(year), month=int(month))
    if not render_state(page):
        return

    progress = page.progress()
    col1, col2 = st.columns(2)
    col1.metric("Budgeted", money(progress.total_budgeted))
    col2.metric("Spent", money(progress.total_spent))
    for row in progress.categories:
        label = f"**{row.category}**: {money(row.spent)} of {money(row.budgeted)}"
        if row.over_budget:
            label += " ⚠️ over budget"
        st.write(label)
        st.progress(float(min(row.percent, 100)) / 100)

    predictions = {p.category: p.predicted_amount for p in page.predicted_budgets()}
    with st.form(f"budgets_{year}_{month}"):
        values = {}
        for category, current in page.form_values().items():
            hint = f" (predicted {money(predictions[category])})" if category in predictions else ""
            values[category] = st.text_input(f"{category}{hint}", value=current)
        if st.form_submit_button("💾 Save budgets", disabled=page.state.mutating):
            run(components, page.save_budgets(values))
            st.rerun()


def render_goals(components: AppComponents):
    st.title("🎯 Goals")
    page = open_page(components, GoalsPage)
    if not render_state(page):
        return

    accounts = page.accounts()
    for status, goals in page.board().items():
        st.markdown(f"### {status.value}")
        for goal in goals:
            col1, col2, col3 = st.columns([4, 2, 1])
            col1.write(f"**{goal.title}** · due {goal.target_date or '-'}")
            col2.write(f"{money(goal.current_amount)} / {money(goal.target_amount)}")
            if col3.button("🗑️", key=f"del_goal_{goal.id}", disabled=page.state.mutating):
                run(components, page.delete_goal(goal.id))
                st.rerun()
            st.progress(goal_progress(goal) / 100)
            for payment in goal.goal_payments:
                pcol1, pcol2 = st.columns([5, 1])
                pcol1.caption(f"{payment.payment_date} · {money(payment.amount)}")
                if pcol2.button("✖", key=f"del_gpay_{payment.id}", disabled=page.state.mutating):
                    run(components, page.delete_payment(goal.id, payment.id))
                    st.rerun()
            if accounts:
                render_payment_form(components, f"goal_{goal.id}", accounts,
                                    lambda p, gid=goal.id: page.add_payment(gid, p))

    with st.form("add_goal"):
        st.markdown("### New goal")
        title = st.text_input("Title")
        description = st.text_area("Description")
        target = st.number_input("Target amount", min_value=0.0, step=100.0)
        target_date = st.date_input("Target date", value=date.today())
        status = st.selectbox("Status", list(GoalStatus), format_func=lambda s: s.value)
        if st.form_submit_button("Add goal"):
            try:
                goal = NewGoal(
                    title=title,
                    description=description,
                    target_amount=Decimal(str(target)),
                    target_date=target_date,
                    status=status,
                )
                run(components, page.add_goal(goal))
            except MutationError as e:
                st.error(f"❌ Could not add goal: {e}")
            except ValueError as e:
                st.error(f"❌ Please check the form: {e}")
            else:
                st.rerun()


def render_payment_form(components: AppComponents, key: str, accounts, add):
    with st.expander("Add payment"):
        with st.form(f"pay_{key}"):
            ids = [a.id for a in accounts]
            account_id = st.selectbox(
                "From account", ids, format_func=lambda aid: next(a.name for a in accounts if a.id == aid)
            )
            amount = st.number_input("Amount", min_value=0.0, step=10.0)
            payment_type = st.selectbox("Type", list(PaymentType), format_func=lambda t: t.value)
            payment_date = st.date_input("Date", value=date.today())
            if st.form_submit_button("Pay"):
                try:
                    payment = NewPayment(
                        account_id=account_id,
                        amount=Decimal(str(amount)),
                        payment_type=payment_type,
                        payment_date=payment_date,
                    )
                    run(components, add(payment))
                except MutationError as e:
                    st.error(f"❌ Could not save payment: {e}")
                except ValueError as e:
                    st.error(f"❌ Please check the form: {e}")
                else:
                    st.rerun()


def render_emis(components: AppComponents):
    st.title("🧾 EMIs")
    page = open_page(components, EmiPage)
    if not render_state(page):
        return

    accounts = page.accounts()
    for column, emis in page.board().items():
        st.markdown(f"### {column}")
        for emi in emis:
            col1, col2, col3 = st.columns([4, 2, 1])
            col1.write(f"**{emi.name}** · due on day {emi.due_date_of_month} · ends {emi.end_date}")
            col2.write(f"{money(emi_total_paid(emi))} / {money(emi.total_amount)}")
            if col3.button("🗑️", key=f"del_emi_{emi.id}", disabled=page.state.mutating):
                run(components, page.delete_emi(emi.id))
                st.rerun()
            for payment in emi.emi_payments:
                pcol1, pcol2 = st.columns([5, 1])
                pcol1.caption(f"{payment.payment_date} · {money(payment.amount)}")
                if pcol2.button("✖", key=f"del_epay_{payment.id}", disabled=page.state.mutating):
                    run(components, page.delete_payment(emi.id, payment.id))
                    st.rerun()
            if accounts and column == "Active":
                render_payment_form(components, f"emi_{emi.id}", accounts,
                                    lambda p, eid=emi.id: page.add_payment(eid, p))

    with st.form("add_emi"):
        st.markdown("### New EMI")
        name = st.text_input("Name")
        total = st.number_input("Total amount", min_value=0.0, step=100.0)
        monthly = st.number_input("Monthly payment", min_value=0.0, step=10.0)
        due_day = st.number_input("Due day of month", min_value=1, max_value=31, value=1, step=1)
        start = st.date_input("Start date", value=date.today())
        end = st.date_input("End date", value=date.today())
        if st.form_submit_button("Add EMI"):
            try:
                emi = NewEmi(
                    name=name,
                    total_amount=Decimal(str(total)),
                    monthly_payment=Decimal(str(monthly)),
                    due_date_of_month=int(due_day),
                    start_date=start,
                    end_date=end,
                )
                run(components, page.add_emi(emi))
            except MutationError as e:
                st.error(f"❌ Could not add EMI: {e}")
            except ValueError as e:
                st.error(f"❌ Please check the form: {e}")
            else:
                st.rerun()


def render_analytics(components: AppComponents):
    st.title("📈 Analytics")
    page = open_page(components, AnalyticsPage)
    if not render_state(page):
        return

    breakdown = page.category_breakdown()
    st.markdown("### Spending by category")
    if breakdown:
        st.bar_chart({category: float(amount) for category, amount in breakdown.items()})
    else:
        st.info("No expenses in the last year.")

    st.markdown("### Cash flow")
    st.table([
        {"month": row.month, "income": money(row.income), "expense": money(row.expense), "net": money(row.net)}
        for row in page.cash_flow()
    ])

    history = page.net_worth_history()
    if history:
        st.markdown("### Net worth")
        st.line_chart({point.snapshot_date.isoformat(): float(point.net_worth) for point in history})


def render_members(components: AppComponents):
    st.title("👥 Members")
    page = open_page(components, MembersPage)
    if not page.workspace.is_organization:
        st.info("Members can only be managed in organization workspaces.")
        return
    if not render_state(page):
        return

    for member in page.members():
        col1, col2, col3 = st.columns([4, 2, 1])
        col1.write(f"**{member.display_name}**")
        if page.can_manage and member.id != components.user_id:
            roles = list(WorkspaceRole)
            role = col2.selectbox(
                "Role",
                roles,
                index=roles.index(member.role),
                key=f"role_{member.id}",
                format_func=lambda r: r.value.title(),
                label_visibility="collapsed",
            )
            if role != member.role:
                run(components, page.update_role(member.id, role))
                st.rerun()
            if col3.button("🗑️", key=f"del_member_{member.id}", disabled=page.state.mutating):
                run(components, page.remove_member(member.id))
                st.rerun()
        else:
            col2.write(member.role.value.title())

    if page.can_manage:
        with st.form("add_member"):
            email = st.text_input("Email")
            role = st.selectbox("Role", list(WorkspaceRole), format_func=lambda r: r.value.title())
            if st.form_submit_button("Add member"):
                try:
                    run(components, page.add_member(email, role))
                except (MutationError, PermissionDeniedError) as e:
                    st.error(f"❌ {e}")
                else:
                    st.rerun()


def render_receipt_page(components: AppComponents):
    st.title("📷 Scan Receipt")
    st.markdown("Upload a receipt photo. Review the details, then save.")

    dashboard = open_page(components, DashboardPage)
    uploaded = st.file_uploader(
        "Receipt photo",
        type=components.settings.app.supported_formats_list,
    )
    if uploaded and st.button("🔍 Read receipt"):
        try:
            st.session_state.draft = run(components, components.receipts.extract_draft(
                image_bytes=uploaded.read(),
                filename=uploaded.name,
                mime_type=uploaded.type or "",
                account_id=components.profile.profile.default_expense_account_id
                if components.profile.profile else None,
            ))
        except ReceiptExtractionError as e:
            st.error(f"❌ {e} You can still enter the expense by hand.")

    draft = st.session_state.get("draft")
    if draft is None:
        return
    if draft.suggested_category:
        st.info(f"Suggested category: {draft.suggested_category}")

    accounts = dashboard.accounts()
    with st.form("confirm_expense"):
        title = st.text_input("Title", value=draft.title)
        amount = st.number_input("Amount", value=float(draft.amount), min_value=0.0, step=0.01)
        category = st.selectbox(
            "Category",
            EXPENSE_CATEGORIES,
            index=EXPENSE_CATEGORIES.index(draft.category) if draft.category in EXPENSE_CATEGORIES else 0,
        )
        expense_date = st.date_input("Date", value=draft.date or date.today())
        account_ids = [a.id for a in accounts]
        account_id = st.selectbox(
            "Account",
            options=account_ids,
            index=account_ids.index(draft.account_id) if draft.account_id in account_ids else 0,
            format_func=lambda aid: next(a.name for a in accounts if a.id == aid),
        ) if accounts else None
        description = st.text_area("Description", value=draft.description or "")
        if draft.items:
            st.table([{"name": i.name, "price": str(i.price), "quantity": str(i.quantity)} for i in draft.items])
        save = st.form_submit_button("✅ Save expense")

    if save:
        try:
            run(components, components.receipts.confirm(draft, dashboard, {
                "title": title,
                "amount": Decimal(str(amount)),
                "category": category,
                "date": expense_date,
                "account_id": account_id,
                "description": description or None,
            }))
        except MutationError as e:
            st.error(f"❌ Could not save: {e}")
        except ValueError as e:
            st.error(f"❌ Please check the form: {e}")
        else:
            st.session_state.draft = None
            st.success("Expense saved.")


def render_workspaces_page(components: AppComponents):
    st.title("🏢 Workspaces")
    manager = components.workspaces
    for workspace in manager.workspaces:
        marker = " (current)" if workspace.id == manager.current_id else ""
        st.write(f"**{workspace.name}** · {workspace.type.value} · {workspace.role.value}{marker}")

    with st.form("create_workspace"):
        name = st.text_input("New workspace name")
        kind = st.selectbox("Type", list(WorkspaceType), format_func=lambda t: t.value.title())
        if st.form_submit_button("Create"):
            try:
                run(components, manager.create(name, kind))
            except WorkspaceError as e:
                st.error(str(e))
            else:
                unmount_other_workspaces(components)
                st.rerun()


def render_settings_page(components: AppComponents):
    st.title("⚙️ Settings")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Supabase (Data)", "supabase"),
        ("Gemini (Receipts)", "gemini"),
        ("Sync", "sync"),
        ("Exchange rates", "exchange_rates"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    render_preferences(components)
    render_account_sharing(components)

    st.markdown("### Recent activity")
    for event in components.recent_events.recent(20):
        st.caption(f"{event.timestamp:%H:%M:%S} · {event.event_type.value} · {event.description}")




def render_preferences(components: AppComponents):
    profile = components.profile.profile
    if profile is None:
        return
    st.markdown("### Preferences")
    with st.form("preferences"):
        currency = st.text_input("Currency", value=profile.currency)
        secondary = st.text_input("Secondary currency", value=profile.secondary_currency or "")
        if st.form_submit_button("Save"):
            try:
                run(components, components.profile.update({
                    "currency": currency.strip().upper(),
                    "secondary_currency": secondary.strip().upper() or None,
                }))
            except RemoteServiceError as e:
                st.error(f"❌ Could not save: {e}")
            except ValueError as e:
                st.error(f"❌ Please check the form: {e}")
            else:
                st.success("Preferences saved.")


def render_account_sharing(components: AppComponents):
    st.markdown("### Account sharing")
    sharing = st.session_state.get("sharing")
    if sharing is None or st.button("Reload sharing"):
        sharing = AccountSharing(components.remote, components.workspaces.workspaces)
        run(components, sharing.load())
        st.session_state.sharing = sharing

    if not sharing.accounts:
        st.info("No personal accounts to share.")
        return
    ids = [s.account.id for s in sharing.accounts]
    selected = st.selectbox(
        "Account",
        ids,
        index=ids.index(sharing.selected_account_id) if sharing.selected_account_id in ids else 0,
        format_func=lambda aid: next(s.label for s in sharing.accounts if s.account.id == aid),
    )
    if selected != sharing.selected_account_id:
        run(components, sharing.select_account(selected))

    for workspace in sharing.organization_workspaces():
        checked = st.checkbox(
            workspace.name,
            value=workspace.id in sharing.shared_with,
            key=f"share_{selected}_{workspace.id}",
            disabled=sharing.toggling,
        )
        if checked != (workspace.id in sharing.shared_with):
            run(components, sharing.toggle(workspace.id))
            st.rerun()
    if sharing.message:
        st.caption(sharing.message)


PAGES = {
    "🏠 Dashboard": render_dashboard,
    "🏦 Accounts": render_accounts,
    "💸 Transactions": render_transactions,
    "📊 Budgeting": render_budgeting,
    "🎯 Goals": render_goals,
    "🧾 EMIs": render_emis,
    "📈 Analytics": render_analytics,
    "👥 Members": render_members,
}


def main():
    """Main application entry point."""
    components = get_components()
    choice = render_sidebar(components)

    if components.workspaces.current is None:
        st.warning("No workspace available. Create one on the Workspaces page.")
        if choice == "🏢 Workspaces":
            render_workspaces_page(components)
        return

    if choice in PAGES:
        PAGES[choice](components)
    elif choice == "📷 Scan Receipt":
        render_receipt_page(components)
    elif choice == "🏢 Workspaces":
        render_workspaces_page(components)
    else:
        render_settings_page(components)


if __name__ == "__main__":
    main()
