"""
Streamlit Frontend for Expense Assistant

The chat page users talk to, plus a live view of their ledger.

DESIGN PRINCIPLES:
1. Conversation first: type what you spent or what you want to know
2. The expense list refreshes after every exchange
3. Each failure class gets its own, plain-language banner
4. No hidden state: the conversation lives in the session, not the server
"""

from decimal import Decimal

import streamlit as st

from expense_assistant.audit import create_correlation_id
from expense_assistant.models.conversation import (
    ChatReply,
    Conversation,
    ExchangeStatus,
    Message,
)
from expense_assistant.orchestrator import ExpenseChatFlow, create_app_components
from expense_assistant.runner import LoopRunner
from expense_assistant.services.storage import LedgerInterface


# Page configuration
st.set_page_config(
    page_title="Expense Assistant",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

GREETING = (
    "Hi! I'm your expense tracking assistant. I can help you add expenses, "
    "view your spending, and analyze your finances. What would you like to do?"
)

QUICK_ACTIONS = [
    ("➕ Add Expense", "I want to add an expense"),
    ("📅 Today's Expenses", "Show me today's expenses"),
    ("📈 This Month", "How much did I spend this month?"),
    ("🥧 By Category", "Show expenses by category"),
]


@st.cache_resource
def get_runner() -> LoopRunner:
    """One event loop for the whole process; cached clients are bound to it."""
    return LoopRunner()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_runner().run(coro)


@st.cache_resource
def get_components() -> tuple[ExpenseChatFlow, LedgerInterface]:
    """Get or create application components (cached)."""
    return create_app_components()


def main():
    """Main application entry point."""
    chat_flow, ledger = get_components()

    st.sidebar.title("💰 Expense Assistant")
    st.sidebar.markdown("---")

    # Authentication is handled by the hosting platform; locally the owner
    # is whatever identity the user enters here.
    owner_id = st.sidebar.text_input(
        "Signed in as",
        value=st.session_state.get("owner_id", ""),
        help="Leave empty to chat without access to a ledger",
    ).strip() or None
    st.session_state.owner_id = owner_id

    page = st.sidebar.radio(
        "Navigate to:",
        ["💬 Chat", "⚙️ Settings"],
        index=0,
    )

    if page == "💬 Chat":
        render_chat_page(chat_flow, ledger, owner_id)
    else:
        render_settings_page()


def send_message(chat_flow: ExpenseChatFlow, text: str, owner_id) -> ChatReply:
    """Run one exchange and fold the result into the session."""
    conversation: Conversation = st.session_state.conversation
    reply = run_async(
        chat_flow.handle(
            user_message=text,
            conversation_history=conversation,
            owner_id=owner_id,
            correlation_id=create_correlation_id(),
        )
    )

    if reply.is_error:
        # Keep the failed turn visible, but out of the model's history
        st.session_state.transcript.extend([
            Message.user(text),
            Message.assistant(reply.reply),
        ])
        st.session_state.last_error = reply.status
    else:
        st.session_state.conversation = reply.conversation
        st.session_state.transcript.extend(reply.conversation.messages[-2:])
        st.session_state.last_error = None

    st.session_state.last_degraded = reply.degraded
    return reply


def render_chat_page(chat_flow: ExpenseChatFlow, ledger: LedgerInterface, owner_id):
    """Render the chat page with the ledger beside it."""
    if "conversation" not in st.session_state:
        st.session_state.conversation = Conversation.of([Message.assistant(GREETING)])
        st.session_state.transcript = [Message.assistant(GREETING)]
        st.session_state.last_error = None
        st.session_state.last_degraded = False

    chat_col, ledger_col = st.columns([3, 2])

    with chat_col:
        st.title("💬 Chat")

        cols = st.columns(len(QUICK_ACTIONS))
        pending = None
        for col, (label, prompt) in zip(cols, QUICK_ACTIONS):
            if col.button(label):
                pending = prompt

        for message in st.session_state.transcript:
            with st.chat_message(message.role.value):
                st.markdown(message.content)

        typed = st.chat_input("e.g. I spent 250 on food today")
        pending = typed or pending

        if pending:
            with st.spinner("Thinking..."):
                send_message(chat_flow, pending, owner_id)
            # Redraw the transcript and the ledger column
            st.rerun()

        render_status_banner()

    with ledger_col:
        render_ledger(ledger, owner_id)


def render_status_banner():
    """Different guidance for each failure class."""
    status = st.session_state.get("last_error")
    if status == ExchangeStatus.RATE_LIMITED:
        st.warning("⏳ Too many requests right now. Wait a moment and try again.")
    elif status == ExchangeStatus.PAYMENT_REQUIRED:
        st.error("💳 AI credits are exhausted. Add credits to keep chatting.")
    elif status == ExchangeStatus.UPSTREAM_ERROR:
        st.error("⚠️ The assistant is unavailable. Please try again.")
    elif st.session_state.get("last_degraded"):
        st.info("ℹ️ Your request was carried out, but the summary may be incomplete.")


def render_ledger(ledger: LedgerInterface, owner_id):
    """Render the owner's expenses and running total."""
    st.subheader("📊 Your Expenses")

    if not owner_id:
        st.info("Sign in from the sidebar to see your expenses.")
        return

    try:
        expenses = run_async(ledger.list_expenses(owner_id))
    except Exception as e:
        st.error(f"Could not load expenses: {e}")
        return

    total = sum((e.amount for e in expenses), Decimal("0"))
    st.metric("Total spent", f"₹{total:,.2f}")

    if not expenses:
        st.markdown("No expenses yet. Tell the assistant what you spent!")
        return

    st.dataframe(
        [
            {
                "Date": e.date.isoformat(),
                "Category": e.category.value.title(),
                "Amount": float(e.amount),
                "Description": e.description or "",
                "ID": e.id,
            }
            for e in expenses
        ],
        hide_index=True,
        use_container_width=True,
    )


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from expense_assistant.config import validate_all_settings

    status = validate_all_settings()

    services = [
        ("Completion gateway (AI)", "completion"),
        ("Google Sheets (Storage)", "google_sheets"),
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
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
