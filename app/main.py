import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
from dataclasses import asdict
from datetime import date

import streamlit as st
import pandas as pd
import numpy as np
import plotly.express as px
import plotly.graph_objects as go

from fintrack.allocation import remaining
from fintrack.config import load_settings
from fintrack.domain import BILL_CATEGORIES, SUBSCRIPTION, TRANSACTION_KINDS
from fintrack.events import (
    BILL_PAID,
    BILL_SKIPPED,
    CYCLE_COMPLETED,
    EMI_PAID,
    EMI_SKIPPED,
    TRANSACTION_ADDED,
    EventBus,
    history_row,
    register_default_handlers,
)
from fintrack.insights import DAYS_PER_MONTH
from fintrack.services import FinanceService
from fintrack.storage import JsonStore

st.set_page_config(page_title="Finance Autopilot", layout="wide")

settings = load_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
CUR = settings.currency


class StreamlitDisplay:
    """Keeps the latest cycle output in session state; the page renders it."""

    def show(self, totals, insights):
        st.session_state.totals = totals
        st.session_state.insights = insights

    def list_transactions(self, items):
        st.session_state.transactions = items

    def list_emis(self, items):
        st.session_state.emis = items

    def list_goals(self, items):
        st.session_state.goals = items

    def list_bills(self, items):
        st.session_state.bills = items

    def notify(self, message, duration_ms):
        st.session_state.toasts.append((message, duration_ms))


def records_df(items, columns):
    if not items:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([asdict(i) for i in items])[columns]


def money(x):
    return f"{CUR}{x:,.0f}"


def build_service():
    bus = EventBus()
    register_default_handlers(bus)

    def log_event(event, payload):
        row = history_row(event, payload)
        st.session_state.event_history.append(row)
        return row

    for name in (TRANSACTION_ADDED, EMI_PAID, EMI_SKIPPED, BILL_PAID, BILL_SKIPPED, CYCLE_COMPLETED):
        bus.subscribe(name, log_event)

    return FinanceService(
        settings=settings,
        store=JsonStore(settings.data_dir),
        display=StreamlitDisplay(),
        bus=bus,
    )


def remember(report):
    st.session_state.alerts = report.alerts
    st.session_state.display_balance = report.display_balance


if "service" not in st.session_state:
    st.session_state.toasts = []
    st.session_state.event_history = []
    st.session_state.service = build_service()
    remember(st.session_state.service.start())

service = st.session_state.service


def handle(result, ok_message):
    """Show a validation error, or remember the cycle's alerts and rerun."""
    if result.is_left():
        st.error(f"❌ {result.get_error()['message']}")
        return
    remember(result.get_or_else(None))
    st.success(ok_message)
    st.rerun()


for message, duration_ms in st.session_state.toasts:
    st.toast(message)
st.session_state.toasts = []

st.sidebar.markdown("### ⚙️ Autopilot")
st.sidebar.caption(f"Protected minimum: **{money(settings.min_balance)}**")
if settings.record_bill_payments:
    st.sidebar.caption("Bill autopay is recorded in the transaction log")
if st.sidebar.button("🔄 Run update cycle"):
    remember(service.run_cycle())
    st.rerun()

menu = st.sidebar.radio(
    "Menu",
    ["🏠 Overview", "🧾 Transactions", "🏦 EMIs", "🎯 Goals", "📅 Bills", "📜 Events"]
)

totals = st.session_state.totals
insights = st.session_state.insights

for alert in st.session_state.alerts:
    st.warning(f"⚠️ {alert}")

if menu == "🏠 Overview":
    st.title("🏠 Overview")

    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Income", money(totals.income))
    k2.metric("Expense", money(totals.expense))
    k3.metric("Balance", money(totals.balance))
    k4.metric("Savings", money(totals.savings))

    k5, k6, k7 = st.columns(3)
    k5.metric("Health Score", f"{insights.health_score} / 100")
    k6.metric("Survival Days", insights.survival_days)
    k7.metric("Month-end Forecast", money(insights.forecast))
    st.progress(max(0, min(insights.health_score, 100)) / 100)

    col_left, col_right = st.columns(2)
    with col_left:
        fig = px.bar(
            x=["Income", "Expense", "Savings"],
            y=[totals.income, totals.expense, totals.savings],
            labels={"x": "", "y": f"Amount ({CUR})"},
            title="Income vs Expense",
            template="plotly_dark",
        )
        st.plotly_chart(fig, use_container_width=True)

    with col_right:
        today = date.today()
        days_left = max(DAYS_PER_MONTH - today.day, 0)
        days = np.arange(today.day, today.day + days_left + 1)
        projected = np.linspace(totals.balance, insights.forecast, len(days))
        fig_fc = go.Figure()
        fig_fc.add_trace(go.Scatter(x=days, y=projected, mode="lines+markers", name="Projected balance"))
        fig_fc.add_hline(y=settings.min_balance, line_dash="dash", annotation_text="Protected minimum")
        fig_fc.update_layout(title="Balance projection", xaxis_title="Day of month", template="plotly_dark")
        st.plotly_chart(fig_fc, use_container_width=True)

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")

    with st.form("tx_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            desc = st.text_input("Description")
            amount = st.number_input(f"Amount ({CUR})", min_value=0.0, step=100.0, format="%.2f")
        with col2:
            kind = st.selectbox("Type", TRANSACTION_KINDS)
            tx_date = st.date_input("Date")
        if st.form_submit_button("Add Transaction"):
            handle(service.add_transaction(desc, amount, kind, tx_date), "✅ Transaction added!")

    df = records_df(st.session_state.transactions, ["date", "description", "amount", "kind"])
    if not df.empty:
        disp = df.sort_values("date", ascending=False).assign(amount=lambda x: x["amount"].map(money))
        st.table(disp.reset_index(drop=True))
        st.download_button("⬇ Download CSV", df.to_csv(index=False), file_name="transactions.csv")
    else:
        st.info("No transactions yet.")

elif menu == "🏦 EMIs":
    st.title("🏦 EMIs")

    with st.form("emi_form", clear_on_submit=True):
        name = st.text_input("Loan Name")
        emi_amount = st.number_input(f"EMI Amount ({CUR})", min_value=0.0, step=500.0)
        next_due = st.date_input("Next Due")
        if st.form_submit_button("Add EMI"):
            handle(service.add_emi(name, emi_amount, next_due), "✅ EMI added!")

    df = records_df(st.session_state.emis, ["name", "amount", "next_due"])
    if not df.empty:
        st.table(df.assign(amount=lambda x: x["amount"].map(money)).rename(columns={"next_due": "Next Due"}))
    else:
        st.info("No EMIs yet.")

elif menu == "🎯 Goals":
    st.title("🎯 Goals")

    with st.form("goal_form", clear_on_submit=True):
        name = st.text_input("Goal Name")
        target = st.number_input(f"Target ({CUR})", min_value=0.0, step=1000.0)
        if st.form_submit_button("Add Goal"):
            handle(service.add_goal(name, target), "✅ Goal added!")

    goals = st.session_state.goals
    if goals:
        for g in goals:
            st.write(f"**{g.name}**: {money(g.saved)} / {money(g.target)} ({money(remaining(g))} to go)")
            st.progress(g.progress)
        df_goals = pd.DataFrame([{"Goal": g.name, "Saved": g.saved, "Remaining": remaining(g)} for g in goals])
        fig = px.bar(df_goals, x="Goal", y=["Saved", "Remaining"], title="Goal funding", template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("No goals yet.")

elif menu == "📅 Bills":
    st.title("📅 Bills")

    with st.form("bill_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Bill Name")
            bill_amount = st.number_input(f"Amount ({CUR})", min_value=0.0, step=100.0)
        with col2:
            bill_date = st.date_input("Due Date")
            category = st.selectbox("Category", BILL_CATEGORIES)
        autopay = st.checkbox("Autopay")
        if st.form_submit_button("Add Bill"):
            handle(service.add_bill(name, bill_amount, bill_date, category, autopay), "✅ Bill added!")

    bills = st.session_state.bills
    if bills:
        for bill in bills:
            icon = "📺" if bill.category == SUBSCRIPTION else "🧾"
            status = "Autopay ON" if bill.autopay else "Autopay OFF"
            st.write(f"{icon} **{bill.name}**: {money(bill.amount)} | Due: {bill.date} | {status}")
    else:
        st.info("No bills yet.")
    st.caption(f"Balance after autopay: {money(st.session_state.display_balance)}")

elif menu == "📜 Events":
    st.title("📜 Event History")
    if st.session_state.event_history:
        st.dataframe(pd.DataFrame(st.session_state.event_history), use_container_width=True)
        if st.button("Clear History"):
            st.session_state.event_history = []
            st.rerun()
    else:
        st.info("No events yet.")
