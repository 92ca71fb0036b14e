import os

import pandas as pd
import streamlit as st
from dotenv import load_dotenv

from easysplit import (
    CalculationMode,
    SelectionStyle,
    SplitBillError,
    UploadedFile,
    Workflow,
    WorkflowStep,
)
from easysplit.client import ApiClient
from easysplit.config import load_settings
from easysplit.money import format_currency

load_dotenv()

API_KEY = os.environ.get("API_KEY")
CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "$")

st.set_page_config(
    page_title="EasySplit",
    page_icon="🧾",
    layout="centered",
    initial_sidebar_state="auto"
)


def money(value) -> str:
    return format_currency(value, CURRENCY_SYMBOL)


# --- SESSION STATE INITIALIZATION ---
if 'workflow' not in st.session_state:
    client = ApiClient(api_key=API_KEY)
    st.session_state.workflow = Workflow(
        extract=client.process_receipt,
        interpret=client.interpret_receipt,
        settings=load_settings(),
    )
if 'last_uploaded_file_info' not in st.session_state: st.session_state.last_uploaded_file_info = None
# --- END SESSION STATE INITIALIZATION ---

workflow: Workflow = st.session_state.workflow


def run_action(action, *args):
    """Run a workflow action, showing recoverable errors instead of crashing the page."""
    try:
        result = action(*args)
    except SplitBillError as e:
        st.error(f"**{e.title}**: {e.message}")
        return None
    st.rerun()
    return result


def start_over():
    st.session_state.last_uploaded_file_info = None
    workflow.start_over()


def render_progress():
    labels = ["Upload Receipt", "Choose Method", "Calculate"]
    if workflow.mode != CalculationMode.INDIVIDUAL:
        labels.append("Summary")
    current = workflow.step_number
    cols = st.columns(len(labels))
    for i, (col, label) in enumerate(zip(cols, labels), start=1):
        marker = "🔵" if i == current else ("✅" if i < current else "⚪")
        col.markdown(f"{marker} **{i}. {label}**" if i == current else f"{marker} {i}. {label}")


def render_receipt_summary(show_rates: bool = False):
    receipt = workflow.receipt
    with st.expander("Receipt Summary", expanded=True):
        rows = [("Subtotal", money(receipt.subtotal)), ("Tax", money(receipt.tax)), ("Tip", money(receipt.tip)), ("Total", money(receipt.total))]
        if show_rates and workflow.breakdown is not None:
            rows[1] = ("Tax", f"{money(receipt.tax)} ({workflow.breakdown.tax_rate * 100:.1f}%)")
            rows[2] = ("Tip", f"{money(receipt.tip)} ({workflow.breakdown.tip_rate * 100:.1f}%)")
        st.table(pd.DataFrame(rows, columns=["", "Amount"]).set_index(""))


def render_upload():
    st.header("Step 1: Upload Receipt")
    uploaded_file = st.file_uploader("Select a receipt image", type=["jpg", "jpeg", "png", "pdf"], label_visibility="collapsed")
    if uploaded_file is not None:
        current_file_info = (uploaded_file.name, uploaded_file.size)
        if st.session_state.last_uploaded_file_info != current_file_info:
            with st.spinner('⚙️ Processing receipt...'):
                try:
                    workflow.upload(UploadedFile(uploaded_file.name, uploaded_file.type, uploaded_file.getvalue()))
                except SplitBillError as e:
                    st.error(f"**{e.title}**: {e.message}")
                    st.stop()
            st.session_state.last_uploaded_file_info = current_file_info
            st.success("Receipt parsed successfully, please choose calculation method")
            st.rerun()
    if workflow.receipt is not None:
        if st.button("Proceed with current receipt", type="primary"): run_action(workflow.proceed_with_current_receipt)


def render_amendment(label: str):
    st.header(f"Add {label} Information")
    st.info(f"We couldn't detect {label.lower()} on your receipt. Please add it manually, or skip.")
    render_receipt_summary()
    kind = st.radio(f"{label} type", ["Percentage (%)", "Amount"], horizontal=True, key=f"{label}_kind")
    value = st.text_input(f"{label} value", key=f"{label}_value", placeholder="e.g. 8.5")
    col_back, col_skip, col_next = st.columns(3)
    with col_back:
        if st.button("⬅️ Back", use_container_width=True): run_action(workflow.back)
    with col_skip:
        if st.button("Skip", use_container_width=True): run_action(workflow.skip_amendment)
    with col_next:
        if st.button("Continue ➡️", type="primary", use_container_width=True):
            run_action(workflow.submit_amendment, value, kind.startswith("Percentage"))


def render_mode_select():
    st.header("Step 2: Choose Calculation Method")
    render_receipt_summary()
    if st.button("🧮 Individual Item Calculation", use_container_width=True, help="Exact cost of every item including proportional tax and tip"):
        run_action(workflow.select_mode, CalculationMode.INDIVIDUAL)
    if st.button("👥 Select My Items", type="primary", use_container_width=True, help="Pick what you had, split shared items, and get your total"):
        run_action(workflow.select_mode, CalculationMode.SHARED)
    if st.button("⬅️ Back", use_container_width=True): run_action(workflow.back)


def render_individual_breakdown():
    st.header("Step 3: Individual Item Costs")
    render_receipt_summary(show_rates=True)
    rows = [
        {"Item": row.name, "Base price": money(row.unit_price), "+ Tax": money(row.item_tax), "+ Tip": money(row.item_tip), "Total": money(row.item_total)}
        for row in workflow.breakdown.items
    ]
    if rows:
        df = pd.DataFrame(rows)
        df.index = pd.RangeIndex(start=1, stop=len(df) + 1, step=1); df.index.name = "No."
        st.dataframe(df, use_container_width=True)
    else:
        st.warning("No items extracted from this receipt.")
    col_back, col_again = st.columns(2)
    with col_back:
        if st.button("⬅️ Back", use_container_width=True): run_action(workflow.back)
    with col_again:
        if st.button("Calculate Another Receipt", type="primary", use_container_width=True): start_over(); st.rerun()


def render_item_selection():
    st.header("Step 3: Select Your Items")
    render_receipt_summary()
    shared = st.toggle("Split items with others", value=workflow.selection_style == SelectionStyle.SHARED)
    style = SelectionStyle.SHARED if shared else SelectionStyle.EXACT
    if style != workflow.selection_style: workflow.set_selection_style(style)

    for item in workflow.items:
        col_check, col_share = st.columns([0.7, 0.3])
        with col_check:
            checked = st.checkbox(f"{item.name} — {money(item.price)}", value=item.selected, key=f"sel_{item.id}")
            if checked != item.selected: workflow.toggle_item(item.id)
        with col_share:
            if shared and item.selected:
                raw = st.text_input("Split between", value=str(item.share_count), key=f"share_{item.id}", label_visibility="collapsed")
                workflow.set_share_count(item.id, raw)

    custom = st.text_input("Or enter your amount directly:", value=workflow.custom_amount_input, placeholder="e.g. 25.50")
    if custom != workflow.custom_amount_input: workflow.set_custom_amount(custom)
    st.caption("If you know the exact amount, you can enter it here")

    subtotal = workflow.selection_subtotal()
    if subtotal > 0: st.markdown(f"Your subtotal: **{money(subtotal)}**")

    col_back, col_clear, col_calc = st.columns(3)
    with col_back:
        if st.button("⬅️ Back", use_container_width=True): run_action(workflow.back)
    with col_clear:
        if st.button("Clear selection", use_container_width=True, disabled=subtotal <= 0):
            workflow.clear_selection()
            for key in [k for k in st.session_state.keys() if str(k).startswith(("sel_", "share_"))]: del st.session_state[key]
            st.rerun()
    with col_calc:
        if st.button("🧮 Calculate My Share", type="primary", use_container_width=True, disabled=subtotal <= 0):
            run_action(workflow.confirm_selection)


def render_summary():
    totals = workflow.totals
    st.header("🎉 Payment Summary 🎉")
    st.metric("You need to pay", money(totals.user_share))
    rows = [("Your items subtotal", money(totals.subtotal))]
    if totals.tax > 0: rows.append(("Your share of tax", money(totals.tax)))
    if totals.tip > 0: rows.append(("Your share of tip", money(totals.tip)))
    rows.append(("Total", money(totals.total)))
    st.table(pd.DataFrame(rows, columns=["", "Amount"]).set_index(""))
    if totals.selected_items:
        st.subheader("🧾 Your Items")
        df = pd.DataFrame([
            {"Item": line.name, "Price": money(line.price), "Split": line.share_count, "Your Cost": money(line.item_share)}
            for line in totals.selected_items
        ])
        df.index = pd.RangeIndex(start=1, stop=len(df) + 1, step=1); df.index.name = "No."
        st.dataframe(df, use_container_width=True)
    if totals.custom_amount:
        st.caption(f"Includes a custom amount of {money(totals.custom_amount)}")
    st.markdown("---")
    col_back, col_new = st.columns(2)
    with col_back:
        if st.button("⬅️ Change Selection", use_container_width=True): run_action(workflow.back)
    with col_new:
        if st.button("✨ Start Over", type="primary", use_container_width=True): start_over(); st.rerun()


def main_app_flow():
    st.title("🧾 EasySplit")
    st.caption("Split restaurant bills fairly with AI-powered receipt scanning")

    if not API_KEY:
        st.error("API_KEY environment variable is not set. Please set it to connect to the backend API.")
        st.stop()

    render_progress()
    st.markdown("---")

    renderers = {
        WorkflowStep.UPLOAD: render_upload,
        WorkflowStep.TAX_AMENDMENT: lambda: render_amendment("Tax"),
        WorkflowStep.TIP_AMENDMENT: lambda: render_amendment("Tip"),
        WorkflowStep.MODE_SELECT: render_mode_select,
        WorkflowStep.INDIVIDUAL_BREAKDOWN: render_individual_breakdown,
        WorkflowStep.ITEM_SELECTION: render_item_selection,
        WorkflowStep.SETTLEMENT_SUMMARY: render_summary,
    }
    renderers[workflow.step]()


if __name__ == "__main__":
    main_app_flow()
