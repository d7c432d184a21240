"""
Streamlit Frontend for the Expense Tracker

This is the user interface for recording income and expenses,
seeing where the money goes, and asking for spending advice.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before destructive actions
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

The UI is a thin consumer of the core:
- Every change goes through the MutationCoordinator
- Every number shown comes from the coordinator's current summary
- Nothing is computed here
"""

import asyncio
import html
from datetime import date, datetime, time

import streamlit as st

from src.audit import create_correlation_id
from src.export import format_amount
from src.ledger import NothingToExportError
from src.models.transaction import Category, Transaction, TransactionDraft
from src.orchestrator import InsightFlow, MutationCoordinator, create_app_components
from src.services.storage import StorageError
from src.validation import TransactionValidationError


# Page configuration
st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
        white-space: pre-wrap;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def load_ledger(coordinator: MutationCoordinator, force: bool = False) -> None:
    """List transactions once per session (or when forced)."""
    if force or not st.session_state.get("ledger_loaded"):
        try:
            run_async(coordinator.refresh(create_correlation_id()))
            st.session_state.ledger_loaded = True
        except StorageError as e:
            st.error(f"Couldn't load your transactions: {e}")


def money(amount) -> str:
    return f"{format_amount(amount)}"


def main():
    """Main application entry point."""
    # Initialize components
    coordinator, insight_flow, _ = get_components()
    load_ledger(coordinator)

    # Sidebar navigation
    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "📝 Transactions", "💡 AI Insights", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("🔄 Refresh"):
        load_ledger(coordinator, force=True)

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(coordinator)
    elif page == "📝 Transactions":
        render_transactions_page(coordinator)
    elif page == "💡 AI Insights":
        render_insights_page(coordinator, insight_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_dashboard_page(coordinator: MutationCoordinator):
    """Render totals, charts and the category drill-down."""
    st.title("📊 Dashboard")

    summary = coordinator.summary

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Income", money(summary.totals.income))
    col2.metric("Total Expenses", money(summary.totals.expense))
    col3.metric("Balance", money(summary.totals.balance))

    if not summary.series:
        st.info("📋 No expenses yet. Add one on the Transactions page.")
        return

    chart_data = [
        {
            "category": point.category.value,
            "label": point.label,
            "amount": float(point.amount),
        }
        for point in summary.series
    ]
    color_scale = {
        "domain": [point.category.value for point in summary.series],
        "range": [point.color for point in summary.series],
    }

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Expenses by Category")
        st.vega_lite_chart(
            {"values": chart_data},
            {
                "mark": "bar",
                "encoding": {
                    "x": {"field": "label", "type": "nominal", "sort": None, "title": None},
                    "y": {"field": "amount", "type": "quantitative", "title": "Amount"},
                    "color": {"field": "category", "type": "nominal",
                              "scale": color_scale, "legend": None},
                    "tooltip": [{"field": "category"}, {"field": "amount"}],
                },
            },
            use_container_width=True,
        )

    with col2:
        st.subheader("Expense Distribution")
        st.vega_lite_chart(
            {"values": chart_data},
            {
                "mark": {"type": "arc", "innerRadius": 50},
                "encoding": {
                    "theta": {"field": "amount", "type": "quantitative"},
                    "color": {"field": "category", "type": "nominal",
                              "scale": color_scale, "sort": None},
                    "tooltip": [{"field": "category"}, {"field": "amount"}],
                },
            },
            use_container_width=True,
        )

    st.markdown("---")
    st.subheader("🔍 Category Details")
    selected = st.selectbox(
        "Category",
        options=[point.category for point in summary.series],
        format_func=lambda c: c.value,
    )
    detail = coordinator.detail(selected)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total", money(detail.amount))
    col2.metric("Transactions", detail.count)
    col3.metric("Average", money(detail.average))
    col4.metric("Share of Expenses", f"{detail.percent_of_total_expense:.1f}%")

    st.dataframe(
        [transaction_row(t) for t in detail.records],
        use_container_width=True,
        hide_index=True,
    )


def transaction_row(transaction: Transaction) -> dict:
    return {
        "Date": transaction.day.isoformat(),
        "Category": transaction.category,
        "Type": transaction.type.label,
        "Amount": money(transaction.amount),
        "Note": transaction.note or "",
    }


def render_transaction_form(coordinator: MutationCoordinator):
    """Add a new transaction or edit the selected one."""
    editing: Transaction = st.session_state.get("editing")
    categories = Category.choices(editing.category if editing else None)

    if editing:
        st.subheader("✏️ Edit Transaction")
        default_idx = categories.index(editing.category)
        if editing.known_category is None:
            st.caption(
                f"'{editing.category}' is not a standard category. "
                "It is kept unless you pick another one."
            )
    else:
        st.subheader("➕ Add Transaction")
        default_idx = 0

    with st.form("transaction_form", clear_on_submit=not editing):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.text_input(
                "Amount *",
                value=str(editing.amount) if editing else "",
                placeholder="e.g. 75.50",
            )
            category = st.selectbox(
                "Category *",
                options=categories,
                index=default_idx,
            )
        with col2:
            day = st.date_input(
                "Date *",
                value=editing.day if editing else date.today(),
            )
            note = st.text_area(
                "Note (optional)",
                value=(editing.note or "") if editing else "",
            )

        submitted = st.form_submit_button(
            "💾 Save Changes" if editing else "➕ Add Transaction",
            type="primary",
        )

    if editing and st.button("Cancel Editing"):
        st.session_state.editing = None
        st.rerun()

    if not submitted:
        return

    draft = TransactionDraft(
        amount=amount,
        category=category,
        date=datetime.combine(day, time()),
        note=note,
    )

    try:
        if editing:
            run_async(coordinator.update(editing.id, draft))
            st.session_state.editing = None
            st.success("✅ Transaction updated")
        else:
            run_async(coordinator.create(draft))
            st.success("✅ Transaction added")
        warnings = coordinator.validator.validate(draft).warnings
        for warning in warnings:
            st.warning(f"⚠️ {warning}")
    except TransactionValidationError as e:
        st.error(coordinator.validator.get_user_friendly_summary(e.result))
    except StorageError as e:
        st.error(f"Couldn't save the transaction: {e}")


def render_transactions_page(coordinator: MutationCoordinator):
    """Render the form, the transaction table and the bulk actions."""
    st.title("📝 Transactions")

    render_transaction_form(coordinator)

    st.markdown("---")
    st.subheader("📋 All Transactions")

    transactions = coordinator.transactions
    if not transactions:
        st.info("📋 Your transactions will appear here once you add them.")
        return

    st.dataframe(
        [transaction_row(t) for t in transactions],
        use_container_width=True,
        hide_index=True,
    )

    by_id = {t.id: t for t in transactions}
    selected_id = st.selectbox(
        "Select a transaction",
        options=list(by_id),
        format_func=lambda i: (
            f"{by_id[i].day.isoformat()} · {by_id[i].category} · {money(by_id[i].amount)}"
        ),
    )

    col1, col2, col3 = st.columns(3)

    with col1:
        if st.button("✏️ Edit"):
            st.session_state.editing = by_id[selected_id]
            st.rerun()

    with col2:
        if st.button("🗑️ Delete"):
            try:
                run_async(coordinator.delete(selected_id))
                st.rerun()
            except StorageError as e:
                st.error(f"Couldn't delete the transaction: {e}")

    with col3:
        try:
            csv_text, filename = run_async(coordinator.export_csv())
            st.download_button(
                "⬇️ Export CSV",
                data=csv_text,
                file_name=filename,
                mime="text/csv",
            )
        except NothingToExportError as e:
            st.info(str(e))

    st.markdown("---")
    with st.expander("⚠️ Delete All Transactions"):
        confirmed = st.checkbox(
            "I understand this deletes every transaction and cannot be undone"
        )
        if st.button("Delete All", type="primary"):
            try:
                deleted = run_async(coordinator.clear_all(confirm=lambda: confirmed))
                if deleted is None:
                    st.warning("Tick the confirmation box first.")
                else:
                    st.success(f"Deleted {deleted} transactions")
                    st.rerun()
            except StorageError as e:
                st.error(f"Couldn't delete transactions: {e}")


def render_insights_page(coordinator: MutationCoordinator, insight_flow: InsightFlow):
    """Render the AI insights page."""
    st.title("💡 AI Insights")
    st.markdown("Get advice based on your recorded transactions.")

    if st.button("✨ Analyze My Spending", type="primary"):
        with st.spinner("Analyzing your spending patterns..."):
            response = run_async(
                insight_flow.general_insights(
                    coordinator.transactions,
                    correlation_id=create_correlation_id(),
                )
            )
        st.session_state.insight_text = response.text

    if st.session_state.get("insight_text"):
        st.markdown(
            f'<div class="info-box">{html.escape(st.session_state.insight_text)}</div>',
            unsafe_allow_html=True,
        )

    st.markdown("---")
    st.subheader("❓ Ask a Question")
    question = st.text_input(
        "Your question:",
        placeholder="e.g., Where can I cut back on dining out?",
    )

    if st.button("🔍 Ask"):
        with st.spinner("Asking..."):
            try:
                response = run_async(
                    insight_flow.ask(
                        coordinator.transactions,
                        question,
                        correlation_id=create_correlation_id(),
                    )
                )
                st.markdown(
                    f'<div class="info-box">{html.escape(response.text)}</div>',
                    unsafe_allow_html=True,
                )
            except TransactionValidationError as e:
                st.error(str(e))


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    # Check services
    from src.config import validate_all_settings

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI Insights)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables. Without Google Sheets, "
        "transactions are kept in memory until the app restarts."
    )


if __name__ == "__main__":
    main()
