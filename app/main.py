"""
Streamlit Frontend for Finance Tracker

One app for two ledgers: household finances and a small service
business, plus goals, remittances abroad and debts.

DESIGN PRINCIPLES:
1. Every number on screen comes from the aggregation engine
2. Nothing is saved without an explicit "Save" action
3. Validation problems are shown in plain language
4. Archiving a month is a deliberate, confirmed step

Each signed-in user only ever sees their own records: the storage view
handed to the flows is partitioned by the session email.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st

from finance_tracker.agents import ChatMessage
from finance_tracker.models import (
    Classification,
    Currency,
    Debt,
    DebtReason,
    DebtStatus,
    Expense,
    ExpenseType,
    Goal,
    GoalStep,
    GoalStepType,
    Income,
    MonthlyBudgetLine,
    Remittance,
    UserSession,
)
from finance_tracker.orchestrator import (
    BUSINESS,
    PERSONAL,
    AppComponents,
    LedgerScope,
    RecordValidationError,
    create_app_components,
    create_backend,
)
from finance_tracker.services.storage import StorageKeys


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

STATUS_ICONS = {"red": "🔴", "yellow": "🟡", "green": "🟢"}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_backend():
    """Shared storage backend (cached across sessions)."""
    return create_backend()


def get_components() -> AppComponents:
    backend, audit_storage = get_backend()
    return create_app_components(
        session=st.session_state.get("session"),
        backend=backend,
        audit_storage=audit_storage,
    )


def money(value: Decimal) -> str:
    return f"{value:,.2f}"


def main():
    """Main application entry point."""
    st.sidebar.title("💰 Finance Tracker")

    if "session" not in st.session_state:
        render_login()
        return

    components = get_components()
    st.sidebar.markdown(f"Signed in as **{st.session_state.session.email}**")
    if st.sidebar.button("Sign out"):
        del st.session_state["session"]
        st.rerun()

    st.sidebar.markdown("---")
    page = st.sidebar.radio(
        "Navigate to:",
        [
            "📊 Dashboard",
            "🏢 Business",
            "✏️ Entries",
            "🎯 Goals",
            "🌍 Remittances",
            "💳 Debts",
            "🗂️ History",
            "🤖 Assistant",
            "⚙️ Settings",
        ],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(components, PERSONAL)
    elif page == "🏢 Business":
        render_dashboard_page(components, BUSINESS)
    elif page == "✏️ Entries":
        render_entries_page(components)
    elif page == "🎯 Goals":
        render_goals_page(components)
    elif page == "🌍 Remittances":
        render_remittances_page(components)
    elif page == "💳 Debts":
        render_debts_page(components)
    elif page == "🗂️ History":
        render_history_page(components)
    elif page == "🤖 Assistant":
        render_assistant_page(components)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_login():
    st.title("Welcome")
    st.markdown("Sign in with your email to open your ledgers.")
    email = st.text_input("Email")
    if st.button("Sign in", type="primary"):
        try:
            st.session_state.session = UserSession(email=email)
            st.rerun()
        except ValueError:
            st.error("Please enter a valid email address.")


def save_record(components: AppComponents, key: str, record, update: bool = False) -> bool:
    """Validate and save (or replace, with `update`); show the outcome."""
    action = components.ledger.update_record if update else components.ledger.add_record
    try:
        result = run_async(action(key, record))
    except RecordValidationError as e:
        st.error(components.ledger.summarize_validation(e.result))
        return False
    if result.warnings:
        st.warning(components.ledger.summarize_validation(result))
    st.success("Changes saved." if update else "Saved.")
    return True


def edited(record, changes: dict):
    """A validated copy of `record` with `changes` applied."""
    return type(record).model_validate({**record.model_dump(), **changes})


def confirmed_button(label: str, key: str) -> bool:
    """A destructive button that stays disabled until its box is ticked."""
    confirmed = st.checkbox("I'm sure", key=f"confirm_{key}")
    return st.button(label, key=f"btn_{key}", disabled=not confirmed)


def record_label(record) -> str:
    name = (
        getattr(record, "description", None)
        or getattr(record, "creditor", None)
        or getattr(record, "destination", None)
        or record.id
    )
    amount = getattr(record, "amount", None)
    if amount is None:
        amount = getattr(record, "average_amount", None) or getattr(record, "total_amount", None)
    return f"{name} · {money(amount)}" if amount is not None else name


def goal_picker(goals: list, current=None, key: str = "goal"):
    """Select box over goals; returns the chosen goal id or None."""
    names = {goal.id: f"{goal.icon} {goal.name}" for goal in goals}
    options = [None] + list(names)
    index = options.index(current) if current in options else 0
    return st.selectbox(
        "Linked goal",
        options,
        index=index,
        format_func=lambda gid: "-" if gid is None else names[gid],
        key=key,
        help="Counts this entry towards the goal even if the goal is renamed",
    )


def edit_fields(record, goals: list, key: str) -> dict:
    """Form widgets for the editable fields of `record`; returns the new values."""
    def k(name: str) -> str:
        return f"{name}_{key}"

    if isinstance(record, (Income, Expense)):
        changes = {
            "description": st.text_input(
                "Description", value=record.description, key=k("description")
            ),
            "amount": Decimal(str(st.number_input(
                "Amount", min_value=0.0, step=0.01, value=float(record.amount), key=k("amount")
            ))),
            "entry_date": st.date_input(
                "Date", value=record.entry_date or date.today(), key=k("date")
            ),
            "category": st.text_input("Category", value=record.category, key=k("category")),
        }
        if isinstance(record, Expense):
            types = list(ExpenseType)
            changes["expense_type"] = st.selectbox(
                "Type", types,
                index=types.index(record.expense_type) if record.expense_type else 0,
                format_func=lambda t: t.value,
                key=k("type"),
            )
            changes["goal_id"] = goal_picker(goals, record.goal_id, key=k("goal"))
        return changes
    if isinstance(record, MonthlyBudgetLine):
        description = st.text_input(
            "Category / description", value=record.description, key=k("description")
        )
        average = st.number_input(
            "Average monthly amount", min_value=0.0, step=0.01,
            value=float(record.average_amount), key=k("average"),
        )
        ideal = st.number_input(
            "Ideal % (0 for the default)", min_value=0.0, max_value=100.0,
            value=float(record.ideal_percent or 0), key=k("ideal"),
        )
        due_day = st.number_input(
            "Due day (0 for none)", min_value=0, max_value=31,
            value=record.due_day or 0, key=k("due"),
        )
        return {
            "description": description,
            "average_amount": Decimal(str(average)),
            "ideal_percent": ideal or None,
            "due_day": int(due_day) or None,
        }
    if isinstance(record, Debt):
        statuses = list(DebtStatus)
        return {
            "creditor": st.text_input("Creditor", value=record.creditor, key=k("creditor")),
            "installment_amount": Decimal(str(st.number_input(
                "Installment", min_value=0.0, step=0.01,
                value=float(record.installment_amount), key=k("installment"),
            ))),
            "installments_paid": int(st.number_input(
                "Installments paid", min_value=0,
                max_value=record.installments_total or None,
                value=record.installments_paid, step=1, key=k("paid"),
            )),
            "status": st.selectbox(
                "Status", statuses, index=statuses.index(record.status),
                format_func=lambda s: s.value, key=k("status"),
            ),
        }
    if isinstance(record, Remittance):
        return {
            "remittance_date": st.date_input(
                "Date", value=record.remittance_date, key=k("date")
            ),
            "amount": Decimal(str(st.number_input(
                "Amount", min_value=0.0, step=0.01, value=float(record.amount), key=k("amount")
            ))),
            "destination": st.text_input(
                "Destination", value=record.destination, key=k("destination")
            ),
            "note": st.text_area("Notes", value=record.note or "", key=k("note")) or None,
        }
    return {}


def render_dashboard_page(components: AppComponents, scope: LedgerScope):
    title = "🏢 Business" if scope is BUSINESS else "📊 Personal Dashboard"
    st.title(title)

    dashboard = run_async(components.reports.dashboard(scope))
    balance = dashboard.balance

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", money(balance.total_income))
    col2.metric("Expenses", money(balance.total_expense))
    col3.metric("Balance", money(balance.balance))
    col4.metric("Margin", f"{balance.margin:.1f}%")

    if dashboard.advice:
        advice = dashboard.advice
        st.info(f"**{advice.status}** {advice.message}\n\n{advice.detail}\n\n{advice.recommendation}")

    if dashboard.profitability and dashboard.profitability.services:
        st.subheader("Profitability by service")
        st.dataframe([
            {
                "Service": line.service,
                "Revenue": float(line.revenue),
                "Direct cost": float(line.direct_cost),
                "Fixed share": float(line.fixed_share),
                "Profit": float(line.profit),
                "Margin %": round(line.margin, 1),
                "Tier": line.tier.value,
            }
            for line in dashboard.profitability.services
        ], use_container_width=True)
        unattributed = dashboard.profitability.unattributed_variable_cost
        if unattributed > 0:
            st.caption(f"Variable costs not linked to any service: {money(unattributed)}")

    st.subheader("Spending by category")
    if dashboard.distribution.is_empty:
        st.info("No expenses yet. Add some on the Entries page.")
    else:
        for share in dashboard.distribution.categories:
            icon = STATUS_ICONS[share.status.color]
            trend = f"{share.trend_percent:+.1f}% vs last report" if share.trend_percent else ""
            st.markdown(
                f"{icon} **{share.category}**: {money(share.total)} "
                f"({share.actual_percent:.1f}% of spend, ideal {share.ideal_percent:.0f}%) "
                f"· {share.status.label} {trend}"
            )
            if share.saving_insight > 0:
                st.caption(f"Cutting 10% here saves {money(share.saving_insight)}")

    st.subheader("Essential vs non-essential")
    cols = st.columns(len(dashboard.classification) or 1)
    for col, item in zip(cols, dashboard.classification):
        col.metric(item.classification.value, money(item.total), f"{item.percent:.1f}%")

    st.markdown("---")
    confirm = st.checkbox("I understand this empties this month's incomes and expenses")
    if st.button("🗂️ Archive this month", disabled=not confirm):
        report = run_async(components.reports.archive_period(scope))
        st.success(f"Archived as {report.period_label}.")
        st.rerun()


def render_entries_page(components: AppComponents):
    st.title("✏️ Entries")

    scope_name = st.radio("Ledger", ["Personal", "Business"], horizontal=True)
    scope = BUSINESS if scope_name == "Business" else PERSONAL

    goals = run_async(components.ledger.list_records(StorageKeys.GOALS, Goal))
    income_tab, expense_tab, budget_tab = st.tabs(["Income", "Expense", "Monthly plan"])

    with income_tab:
        with st.form("income_form", clear_on_submit=True):
            description = st.text_input("Description *")
            amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
            entry_date = st.date_input("Date", value=date.today())
            currency = st.selectbox("Currency", list(Currency), format_func=lambda c: c.value)
            category = st.text_input("Category", value="Outros")
            if st.form_submit_button("Save income", type="primary"):
                save_record(components, scope.incomes_key, Income(
                    description=description,
                    amount=Decimal(str(amount)),
                    entry_date=entry_date,
                    currency=currency,
                    category=category,
                ))

    with expense_tab:
        with st.expander("📷 Fill from a receipt photo"):
            if not components.assistant.is_configured:
                st.info("Receipt reading needs the assistant to be configured.")
            else:
                uploaded = st.file_uploader("Receipt", type=["jpg", "jpeg", "png", "webp"])
                if uploaded and st.button("Read receipt"):
                    categories = run_async(components.ledger.known_categories(scope.expenses_key))
                    with st.spinner("Reading your receipt..."):
                        extraction = run_async(components.assistant.read_receipt(
                            uploaded.read(), uploaded.type, categories,
                        ))
                    if extraction is None:
                        st.error("The receipt could not be read. Please type the details in.")
                    else:
                        st.session_state.receipt = extraction
                        st.success("Receipt read. Check the form below before saving.")

        receipt = st.session_state.get("receipt")
        with st.form("expense_form", clear_on_submit=True):
            description = st.text_input(
                "Description *",
                value=(receipt and receipt.description) or "",
                help="For business costs, use the service name to attribute it",
            )
            amount = st.number_input(
                "Amount *", min_value=0.0, step=0.01, format="%.2f",
                value=float(receipt.amount) if receipt and receipt.amount else 0.0,
            )
            entry_date = st.date_input(
                "Date", value=(receipt and receipt.entry_date) or date.today()
            )
            currency = st.selectbox("Currency", list(Currency), format_func=lambda c: c.value)
            category = st.text_input(
                "Category", value=(receipt and receipt.suggested_category) or "Outros"
            )
            expense_type = st.selectbox("Type", list(ExpenseType), format_func=lambda t: t.value)
            classification = st.selectbox(
                "Classification", list(Classification), format_func=lambda c: c.value
            )
            payment_method = st.text_input("Payment method")
            goal_id = goal_picker(goals, key="expense_goal")
            if st.form_submit_button("Save expense", type="primary"):
                saved = save_record(components, scope.expenses_key, Expense(
                    description=description,
                    amount=Decimal(str(amount)),
                    entry_date=entry_date,
                    currency=currency,
                    category=category,
                    expense_type=expense_type,
                    classification=classification,
                    payment_method=payment_method or None,
                    goal_id=goal_id,
                ))
                if saved:
                    st.session_state.pop("receipt", None)

    with budget_tab:
        with st.form("budget_form", clear_on_submit=True):
            description = st.text_input("Category / description *")
            average = st.number_input("Average monthly amount", min_value=0.0, step=0.01)
            ideal = st.number_input(
                "Ideal % of spending (0 to use the default)", min_value=0.0, max_value=100.0
            )
            due_day = st.number_input("Due day (0 for none)", min_value=0, max_value=31)
            if st.form_submit_button("Save plan line", type="primary"):
                save_record(components, scope.budget_key, MonthlyBudgetLine(
                    description=description,
                    average_amount=Decimal(str(average)),
                    ideal_percent=ideal or None,
                    due_day=due_day or None,
                ))

    st.markdown("---")
    render_record_table(components, scope.incomes_key, Income, "Incomes")
    render_record_table(components, scope.expenses_key, Expense, "Expenses", goals=goals)
    render_record_table(components, scope.budget_key, MonthlyBudgetLine, "Monthly plan")


def render_record_table(
    components: AppComponents,
    key: str,
    model,
    title: str,
    goals: Optional[list] = None,
):
    """Table of a collection with edit-then-save and confirmed delete."""
    records = run_async(components.ledger.list_records(key, model))
    st.subheader(f"{title} ({len(records)})")
    if not records:
        return
    st.dataframe(
        [record.model_dump(mode="json") for record in records],
        use_container_width=True,
    )

    by_id = {record.id: record for record in records}
    selected = st.selectbox(
        f"Edit or delete from {title.lower()}",
        options=[None] + list(by_id),
        format_func=lambda rid: "-" if rid is None else record_label(by_id[rid]),
        key=f"select_{key}",
    )
    if selected is None:
        return
    record = by_id[selected]

    with st.form(f"edit_{key}_{record.id}"):
        changes = edit_fields(record, goals or [], key=f"{key}_{record.id}")
        if st.form_submit_button("Save changes", type="primary"):
            try:
                updated = edited(record, changes)
            except ValueError as e:
                st.error(f"❌ {e}")
            else:
                if save_record(components, key, updated, update=True):
                    st.rerun()

    if confirmed_button("Delete", key=f"delete_{key}_{record.id}"):
        run_async(components.ledger.delete_record(key, model, record.id))
        st.rerun()


def render_goals_page(components: AppComponents):
    st.title("🎯 Goals")

    with st.form("goal_form", clear_on_submit=True):
        name = st.text_input("Goal name *")
        icon = st.text_input("Icon", value="🎯")
        if st.form_submit_button("Create goal", type="primary") and name:
            save_record(components, StorageKeys.GOALS, Goal(name=name, icon=icon or "🎯"))

    balances = run_async(components.reports.goal_balances())
    goals = {g.id: g for g in run_async(components.ledger.list_records(StorageKeys.GOALS, Goal))}

    for balance in balances:
        goal = goals.get(balance.goal_id)
        if goal is None:
            continue
        with st.expander(f"{goal.icon} {goal.name}: {money(balance.balance)}"):
            st.markdown(
                f"Contributions {money(balance.total_contributions)} "
                f"(from entries {money(balance.external_contributions)}), "
                f"withdrawals {money(balance.withdrawals)}"
            )
            with st.form(f"step_{goal.id}", clear_on_submit=True):
                amount = st.number_input("Amount", min_value=0.0, step=0.01)
                step_type = st.selectbox(
                    "Type", list(GoalStepType), format_func=lambda t: t.value
                )
                method = st.text_input("How")
                if st.form_submit_button("Add step"):
                    try:
                        run_async(components.ledger.add_goal_step(goal, GoalStep(
                            amount=Decimal(str(amount)),
                            step_type=step_type,
                            method=method or None,
                            step_date=date.today(),
                        )))
                        st.rerun()
                    except RecordValidationError as e:
                        st.error(components.ledger.summarize_validation(e.result))
            with st.form(f"rename_{goal.id}"):
                new_name = st.text_input("Name", value=goal.name)
                new_icon = st.text_input("Icon", value=goal.icon)
                st.caption("Entries linked to this goal keep counting after a rename.")
                if st.form_submit_button("Save changes"):
                    try:
                        run_async(components.ledger.rename_goal(goal, new_name, new_icon))
                        st.rerun()
                    except ValueError:
                        st.error("❌ A goal needs a name.")
            if confirmed_button("Delete goal", key=f"del_goal_{goal.id}"):
                run_async(components.ledger.delete_goal(goal.id))
                st.rerun()


def render_remittances_page(components: AppComponents):
    st.title("🌍 Remittances")

    with st.form("remittance_form", clear_on_submit=True):
        remittance_date = st.date_input("Date", value=date.today())
        amount = st.number_input("Amount *", min_value=0.0, step=0.01)
        currency = st.selectbox("Currency", list(Currency), format_func=lambda c: c.value)
        destination = st.text_input("Destination *")
        note = st.text_area("Notes")
        if st.form_submit_button("Save remittance", type="primary"):
            save_record(components, StorageKeys.REMITTANCES, Remittance(
                remittance_date=remittance_date,
                amount=Decimal(str(amount)),
                currency=currency,
                destination=destination,
                note=note or None,
            ))

    summary = run_async(components.reports.remittance_summary())
    st.metric(
        f"Sent in {summary.current_year}",
        money(summary.current.total),
        f"{summary.current.count} remittances",
    )
    for year in summary.upcoming:
        st.caption(f"Scheduled for {year.year}: {money(year.total)}")
    for year in summary.historical:
        with st.expander(f"{year.year}: {money(year.total)} ({year.count})"):
            for item in year.items:
                st.markdown(f"- {item.remittance_date:%d/%m} · {money(item.amount)} → {item.destination}")

    st.markdown("---")
    render_record_table(components, StorageKeys.REMITTANCES, Remittance, "Remittances")


def render_debts_page(components: AppComponents):
    st.title("💳 Debts")

    with st.form("debt_form", clear_on_submit=True):
        creditor = st.text_input("Creditor *")
        col1, col2 = st.columns(2)
        with col1:
            total = st.number_input("Total amount *", min_value=0.0, step=0.01)
            installment = st.number_input("Installment", min_value=0.0, step=0.01)
            start_date = st.date_input("Start", value=date.today())
        with col2:
            status = st.selectbox("Status", list(DebtStatus), format_func=lambda s: s.value)
            reason = st.selectbox("Reason", list(DebtReason), format_func=lambda r: r.value)
            installments_total = st.number_input("Installments", min_value=0, step=1)
        if st.form_submit_button("Save debt", type="primary"):
            save_record(components, StorageKeys.DEBTS, Debt(
                creditor=creditor,
                total_amount=Decimal(str(total)),
                installment_amount=Decimal(str(installment)),
                start_date=start_date,
                status=status,
                reason=reason,
                installments_total=int(installments_total),
            ))

    summary = run_async(components.reports.debt_summary())
    col1, col2, col3 = st.columns(3)
    col1.metric("Total debt", money(summary.total_debt))
    col2.metric("Outstanding", money(summary.outstanding))
    col3.metric("Monthly commitment", money(summary.monthly_commitment))

    render_record_table(components, StorageKeys.DEBTS, Debt, "Debts")


def render_history_page(components: AppComponents):
    st.title("🗂️ History")

    scope_name = st.radio("Ledger", ["Personal", "Business"], horizontal=True)
    scope = BUSINESS if scope_name == "Business" else PERSONAL

    reports = run_async(components.reports.history(scope))
    if not reports:
        st.info("No archived months yet.")
        return

    for report in reports:
        with st.expander(f"{report.period_label} · {report.file_name}"):
            st.json(report.data)
            if confirmed_button("Delete report", key=f"del_report_{report.id}"):
                run_async(components.reports.delete_report(report.id, scope))
                st.rerun()


def render_assistant_page(components: AppComponents):
    st.title("🤖 Assistant")

    if not components.assistant.is_configured:
        st.warning("The assistant isn't configured. Add GEMINI_API_KEY to your .env file.")
        return

    if "chat_history" not in st.session_state:
        st.session_state.chat_history = []

    mode = st.radio(
        "Mode",
        ["Chat", "Analyze my month", "Search the web", "Complex question"],
        horizontal=True,
    )

    for turn in st.session_state.chat_history:
        with st.chat_message("user" if turn.sender == "user" else "assistant"):
            st.markdown(turn.text)
            for source in turn.sources:
                st.caption(f"[{source.title}]({source.uri})")

    prompt = st.chat_input("Ask something about your finances")
    if not prompt:
        return

    with st.spinner("Thinking..."):
        if mode == "Chat":
            completion = run_async(
                components.assistant.chat(st.session_state.chat_history, prompt)
            )
        elif mode == "Analyze my month":
            payload = run_async(components.reports.report_payload(PERSONAL))
            completion = run_async(components.assistant.analyze(payload, prompt))
        elif mode == "Search the web":
            completion = run_async(components.assistant.search(prompt))
        else:
            completion = run_async(components.assistant.ask_complex(prompt))

    st.session_state.chat_history.append(ChatMessage(sender="user", text=prompt))
    st.session_state.chat_history.append(
        ChatMessage(sender="bot", text=completion.text, sources=completion.sources)
    )
    st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from finance_tracker.config import validate_all_settings

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (Assistant)", "gemini"),
        ("Analysis thresholds", "analysis"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
