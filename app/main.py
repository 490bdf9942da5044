import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
from dataclasses import asdict
from datetime import date

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from spendwise import aggregation, config, trends
from spendwise.events import BUDGET_ALERT
from spendwise.formatting import format_currency, format_percentage
from spendwise.prices import MARKET_PRICES, compare_price, market_price, user_spending_for
from spendwise.savings import GOAL_ACHIEVED, GOAL_NOT_POSSIBLE, savings_rate
from spendwise.services import build_services
from spendwise.session import Session

st.set_page_config(page_title="SpendWise", layout="centered")


@st.cache_resource
def get_services():
    config.configure_logging()
    services = build_services()
    services.bus.subscribe(BUDGET_ALERT, _queue_alert)
    return services


def _queue_alert(event, payload):
    st.session_state.setdefault("pending_alerts", []).append(payload["alert"])
    return {"queued": True}


def run(coro):
    return asyncio.run(coro)


def expenses_df(expenses):
    rows = [
        {
            "Date": e.expense_date,
            "Category": e.category,
            "Description": e.description,
            "Amount": e.amount,
            "Essential": "Yes" if e.is_essential else "No",
        }
        for e in expenses
    ]
    df = pd.DataFrame(rows, columns=["Date", "Category", "Description", "Amount", "Essential"])
    if not df.empty:
        df["Amount"] = df["Amount"].map(format_currency)
    return df


def show_alert(alert):
    if alert is None:
        return
    box = {"danger": st.error, "warning": st.warning, "info": st.info, "success": st.success}[alert.type]
    box(f"**{alert.title}** {alert.message}")


services = get_services()

if "session" not in st.session_state:
    st.session_state.session = Session()
session: Session = st.session_state.session


def login_page():
    st.title("💸 SpendWise")
    tab_login, tab_register = st.tabs(["Login", "Register"])

    with tab_login:
        with st.form("login"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Login")
        if submitted:
            result = run(services.auth.login(username, password, session))
            if result.success:
                st.rerun()
            st.error(result.message)

    with tab_register:
        with st.form("register"):
            full_name = st.text_input("Full name")
            email = st.text_input("Email")
            username = st.text_input("Username", key="reg_username")
            password = st.text_input("Password", type="password", key="reg_password")
            confirm = st.text_input("Confirm password", type="password")
            submitted = st.form_submit_button("Create account")
        if submitted:
            result = run(services.auth.register(full_name, email, username, password, confirm))
            (st.success if result.success else st.error)(result.message)


def dashboard_page():
    st.title(f"Hello, {session.full_name or session.username}! 👋")
    result = run(services.dashboard.load_dashboard(session.user_id))
    if not result.success:
        st.error(result.message)
        return
    dash = result.data
    s = dash.summary

    st.metric("Total Budget", format_currency(s.total_budget))
    c1, c2 = st.columns(2)
    c1.metric("Total Spent", format_currency(s.total_spent))
    c2.metric("Remaining", format_currency(s.remaining))
    c3, c4 = st.columns(2)
    c3.metric("Weekly", format_currency(s.weekly_spent), help="Spent this week")
    c4.metric("Monthly", format_currency(s.monthly_spent), help="Spent this month")

    if dash.budget is None:
        st.info("No active budget yet. Set one to start tracking.")
    show_alert(dash.alert)
    if dash.exhaustion is not None:
        st.caption(f"At this pace the budget runs out in {dash.exhaustion.days} day(s), "
                   f"around {dash.exhaustion.date:%b %d}.")

    if dash.goal is not None:
        st.subheader("Goal Progress")
        st.write(f"{dash.goal.goal_name}: {format_percentage(dash.goal_progress.percentage)}")
        st.progress(min(dash.goal_progress.percentage, 100) / 100)

    st.subheader("Recent expenses")
    df = expenses_df(dash.recent_expenses)
    if df.empty:
        st.info("No expenses recorded yet.")
    else:
        st.table(df)


def add_expense_page():
    st.title("➕ Add Expense")
    with st.form("expense"):
        amount = st.number_input(f"Amount ({config.CURRENCY_SYMBOL})", min_value=0.0, step=10.0)
        expense_date = st.date_input("Date", value=date.today())
        category = st.selectbox("Category", services.expenses.expense_categories())
        description = st.text_input("Description")
        is_essential = st.toggle("Essential", value=True)
        submitted = st.form_submit_button("Save Expense")
    if submitted:
        result = run(services.expenses.create_expense(
            session.user_id, amount, description, expense_date, category, is_essential,
        ))
        (st.success if result.success else st.error)(result.message)
        for alert in st.session_state.pop("pending_alerts", []):
            show_alert(alert)


def set_budget_page():
    st.title("💰 Set Budget")
    active = run(services.budgets.get_active_budget(session.user_id))
    current = active.data if active.success else None
    if current is not None:
        st.caption(f"Active: {format_currency(current.amount)} per {current.timeframe}, "
                   f"{current.start_date} to {current.end_date}")

    with st.form("budget"):
        timeframe = st.radio("Time Frame", ["week", "month"], horizontal=True, format_func=str.title)
        amount = st.number_input(f"Budget Amount ({config.CURRENCY_SYMBOL})", min_value=0.0, step=100.0)
        mode = st.radio("Action", ["Start new budget", "Edit active budget"], horizontal=True,
                        disabled=current is None)
        submitted = st.form_submit_button("Save Budget")
    if submitted:
        if current is not None and mode == "Edit active budget":
            result = run(services.budgets.edit_active_budget(session.user_id, amount, timeframe))
        else:
            goal = run(services.goals.get_or_create_default_goal(session.user_id))
            goal_id = goal.data.id if goal.success else None
            result = run(services.budgets.create_budget(session.user_id, amount, timeframe, goal_id))
        (st.success if result.success else st.error)(result.message)


def savings_goal_page():
    st.title("🎯 Savings Goal")
    result = run(services.goals.get_or_create_default_goal(session.user_id))
    if not result.success:
        st.error(result.message)
        return
    goal = result.data
    progress = services.goals.calculate_progress(goal)

    st.subheader(goal.goal_name)
    c1, c2, c3 = st.columns(3)
    c1.metric("Target Amount", format_currency(goal.target_amount))
    c2.metric("Saved Amount", format_currency(goal.current_amount))
    c3.metric("Remaining", format_currency(progress.remaining))
    st.progress(min(progress.percentage, 100) / 100, text=f"Progress {format_percentage(progress.percentage)}")
    if progress.achieved:
        st.success("Goal achieved! 🎉")
    else:
        st.caption(f"Save {format_currency(round(savings_rate(goal, 'weekly'), 2))} a week "
                   f"or {format_currency(round(savings_rate(goal, 'monthly'), 2))} a month to get there.")

    with st.expander("Edit Goal"):
        with st.form("goal"):
            name = st.text_input("Goal name", value=goal.goal_name)
            target = st.number_input("Target amount", min_value=0.0, value=float(goal.target_amount))
            saved = st.number_input("Saved amount", min_value=0.0, value=float(goal.current_amount))
            submitted = st.form_submit_button("Save Goal")
        if submitted:
            edit = run(services.goals.edit_goal(goal.id, name, target, saved))
            (st.success if edit.success else st.error)(edit.message)

    if st.button("Reset Goal"):
        reset = run(services.goals.reset_goal(goal.id))
        (st.success if reset.success else st.error)(reset.message)


def spending_split_page():
    st.title("🧮 Spending Split")
    result = run(services.expenses.get_all_expenses(session.user_id))
    if not result.success:
        st.error(result.message)
        return
    expenses = result.data
    split = aggregation.essential_split(expenses)

    c1, c2 = st.columns(2)
    c1.metric("Essential", format_currency(split.essential))
    c2.metric("Non-Essential", format_currency(split.non_essential))

    fig = go.Figure(go.Pie(
        labels=["Essential", "Non-Essential"],
        values=[split.essential_percentage, 100 - split.essential_percentage],
        hole=0.6,
        sort=False,
    ))
    fig.update_layout(margin=dict(t=10, b=10, l=10, r=10), showlegend=True)
    st.plotly_chart(fig, use_container_width=True)

    for label, flag in (("Essential Expenses", True), ("Non-Essential Expenses", False)):
        st.subheader(label)
        df = expenses_df(services.expenses.filter_expenses_by_type(expenses, flag))
        if df.empty:
            st.info(f"No {label.lower()} yet")
        else:
            st.table(df)


def analytics_page():
    st.title("📊 Visual Analytics")
    granularity = st.radio("Trend", list(trends.GRANULARITIES), index=1, horizontal=True, format_func=str.title)
    essential_only = st.toggle("Essential only")
    result = run(services.dashboard.load_analytics(session.user_id, granularity, essential_only))
    if not result.success:
        st.error(result.message)
        return
    data = result.data

    st.subheader("Spending Breakdown")
    if data.categories:
        colors = {stop.category: stop.color for stop in data.donut.stops}
        df_cat = pd.DataFrame([asdict(c) for c in data.categories])
        fig = px.pie(df_cat, values="amount", names="category", hole=0.55,
                     color="category", color_discrete_map=colors)
        st.plotly_chart(fig, use_container_width=True)
        if data.donut.overflow_count:
            st.caption(f"+{data.donut.overflow_count} more categories")
        top = [c.category for c in data.categories[:2]]
        st.info(f"Most of your expenses are from {' and '.join(top)}.")
    else:
        st.info("No expenses to analyse yet.")

    st.subheader("Spending Trends")
    df_trend = pd.DataFrame([asdict(p) for p in data.trend])
    fig_trend = px.line(df_trend, x="period", y="amount", markers=True)
    st.plotly_chart(fig_trend, use_container_width=True)
    st.info(data.trend_message)

    st.subheader("Budget vs Actual")
    s = data.summary
    fig_bva = go.Figure(go.Bar(x=[s.total_budget, s.total_spent], y=["Budget", "Spent"], orientation="h"))
    fig_bva.update_layout(height=200, margin=dict(t=10, b=10, l=10, r=10))
    st.plotly_chart(fig_bva, use_container_width=True)
    st.write(f"Remaining: **{format_currency(s.remaining)}**")

    if data.goal is not None:
        st.subheader("Savings Goal")
        months = data.months_to_goal
        if months == GOAL_ACHIEVED:
            st.success("Goal achieved!")
        elif months == GOAL_NOT_POSSIBLE:
            st.warning("No budget left over this month to put towards the goal.")
        else:
            st.info(f"If you stay within budget, you can reach your goal in approximately {months} month(s).")

    st.subheader("Alerts")
    for alert in data.alerts:
        show_alert(alert)


def price_comparison_page():
    st.title("🛒 Price Comparison")
    c1, c2 = st.columns(2)
    category = c1.selectbox("Category", list(MARKET_PRICES))
    item = c2.selectbox("Item", list(MARKET_PRICES[category]))

    expenses = run(services.expenses.get_all_expenses(session.user_id))
    spent = user_spending_for(expenses.data or [], item)
    if not spent:
        st.info(f"No expenses mention {item} yet.")
        return

    comparison = compare_price(category, item, spent, market_price(category, item))
    c1.metric("Your Spending", format_currency(comparison.user_spending))
    c2.metric("Avg Market Price", format_currency(comparison.market_price))
    sign = "+" if comparison.is_overpaying else "-"
    st.metric("Variance", f"{sign} {format_currency(abs(comparison.variance))}")
    (st.warning if comparison.is_overpaying else st.success)(comparison.message)


menu_pages = {
    "🏠 Dashboard": dashboard_page,
    "➕ Add Expense": add_expense_page,
    "💰 Set Budget": set_budget_page,
    "🎯 Savings Goal": savings_goal_page,
    "🧮 Spending Split": spending_split_page,
    "📊 Analytics": analytics_page,
    "🛒 Price Comparison": price_comparison_page,
}

if not services.auth.is_authenticated(session):
    login_page()
else:
    st.sidebar.markdown(f"### 👤 {session.full_name or session.username}")
    st.sidebar.caption(session.email)
    menu = st.sidebar.radio("Menu", list(menu_pages))
    if st.sidebar.button("Logout"):
        services.auth.logout(session)
        st.rerun()
    menu_pages[menu]()
