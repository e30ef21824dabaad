import time
import streamlit as st
import plotly.graph_objects as go
from sunquote_engine.calculation_engine import build_savings_projection
from sunquote_engine.form_state import (
    BILL_AMOUNT, BILL_FREQUENCY, CONSENT, EMAIL_ADDRESS, ENERGY_PRICE,
    FIRST_NAME, PHONE_NUMBER
)
from sunquote_engine.location_service import SuggestionDebouncer
from sunquote_engine.step_catalog import label_for_value
from sunquote_engine.utils import TOOLTIPS, generate_progress_bar_markdown
from sunquote_engine.wizard import REQUEST_LOCATION, REQUEST_REPORT

WIDGET_PREFIX = "wizard_"
SUGGESTION_WIDGET_KEY = "address_suggestion"

SPINNER_TEXT = {
    REQUEST_LOCATION: "Checking your location...",
    REQUEST_REPORT: "Calculating your solar report...",
}


# ---- Widget <-> Form State plumbing ----
def _widget_key(field_id):
    return f"{WIDGET_PREFIX}{field_id}"


def _seed_widget(machine, field_id, default=None):
    """Widgets own their value between reruns; seed them from Form State when (re)created."""
    key = _widget_key(field_id)
    if key not in st.session_state:
        st.session_state[key] = machine.session.form_data.get(field_id, default)
    return key


def _on_field_change(machine, field_id):
    key = _widget_key(field_id)
    machine.edit(field_id, st.session_state[key])
    stored = machine.session.form_data.get(field_id)
    if isinstance(stored, list) and stored != st.session_state[key]:
        # Multi-select normalisation ("None of the above") is written back to the widget
        st.session_state[key] = stored


def _on_advance(machine):
    machine.advance()


def _on_retreat(machine):
    machine.retreat()


def _on_restart(machine):
    machine.reset()
    for key in list(st.session_state.keys()):
        if key.startswith(WIDGET_PREFIX) or key == "suggestion_debouncer":
            del st.session_state[key]


def _option_labels(step):
    return {option.value: option.label for option in step.options}


# ---- Shared chrome ----
def render_header(machine):
    step = machine.current_step
    st.title(step.title)
    progress = machine.progress()
    if progress:
        position, total = progress
        titles = [s.title.split("–")[-1].strip() for s in machine.steps[1:total + 1]]
        st.markdown(generate_progress_bar_markdown(titles, position), unsafe_allow_html=True)
        st.markdown("---")
    if step.question:
        st.markdown(f"**{step.question}**")
    if step.hint:
        st.caption(step.hint)


def render_errors(machine):
    session = machine.session
    if session.validation_error:
        st.warning(session.validation_error, icon="✏️")
    if session.service_error:
        st.error(session.service_error, icon="🚨")


def render_navigation(machine, next_label="Next ➡️"):
    st.markdown("---")
    nav_col1, nav_col2 = st.columns(2)
    busy = machine.session.pending is not None
    with nav_col1:
        if machine.session.current_step_index > 0:
            st.button("⬅️ Back", use_container_width=True, key="nav_back",
                      on_click=_on_retreat, args=(machine,), disabled=busy)
    with nav_col2:
        st.button(next_label, type="primary", use_container_width=True, key="nav_next",
                  on_click=_on_advance, args=(machine,), disabled=busy or not machine.can_advance())


# ---- Step renderers ----
def display_intro_step(machine):
    st.markdown("✅ Personalised system size  \n✅ Rebates and certificates for your state  \n✅ Payback and CO₂ savings")
    st.button("Get Started ☀️", type="primary", use_container_width=True, key="nav_start",
              on_click=_on_advance, args=(machine,))


def display_address_step(machine):
    step = machine.current_step
    key = _seed_widget(machine, step.id, "")
    if not step.free_text:
        st.text_input("📍 Postcode", key=key, max_chars=4, placeholder="e.g. 2000",
                      help=TOOLTIPS.get("postcode"), on_change=_on_field_change, args=(machine, step.id))
        render_navigation(machine)
        return

    # Free-text street address with debounced autocomplete
    if "suggestion_debouncer" not in st.session_state:
        st.session_state.suggestion_debouncer = SuggestionDebouncer()
    debouncer = st.session_state.suggestion_debouncer

    def _on_address_change():
        _on_field_change(machine, step.id)
        debouncer.keystroke(st.session_state[key])

    def _on_suggestion_pick():
        choice = st.session_state.get(SUGGESTION_WIDGET_KEY)
        if choice is None:
            return
        machine.select_suggestion(debouncer.suggestions[choice])
        debouncer.suggestions = []
        st.session_state[key] = machine.session.form_data.get(step.id, "")

    st.text_input("📍 Street address", key=key, placeholder="Start typing your address",
                  on_change=_on_address_change)
    if debouncer.has_pending:
        # A new keystroke interrupts this run and restarts the wait
        time.sleep(debouncer.seconds_until_due())
    debouncer.poll()
    if debouncer.suggestions:
        labels = [candidate.display_name for candidate in debouncer.suggestions]
        st.selectbox("Suggestions", options=range(len(labels)), format_func=lambda i: labels[i],
                     index=None, key=SUGGESTION_WIDGET_KEY, placeholder="Pick your address",
                     on_change=_on_suggestion_pick)
    render_navigation(machine)


def display_choice_step(machine):
    step = machine.current_step
    labels = _option_labels(step)
    values = list(labels)

    if step.type == "checkbox" and step.multi_select:
        key = _seed_widget(machine, step.id, [])
        st.multiselect("Select all that apply", options=values, format_func=labels.get, key=key,
                       on_change=_on_field_change, args=(machine, step.id))
    elif step.type == "checkbox":
        key = _seed_widget(machine, step.id, False)
        st.checkbox(step.question, key=key, on_change=_on_field_change, args=(machine, step.id))
    elif step.type == "select":
        key = _seed_widget(machine, step.id)
        st.selectbox("Choose one", options=values, format_func=labels.get, index=None, key=key,
                     placeholder="Choose an option", on_change=_on_field_change, args=(machine, step.id))
    else:
        key = _seed_widget(machine, step.id)
        st.radio("Choose one", options=values, format_func=labels.get, index=None, key=key,
                 label_visibility="collapsed", on_change=_on_field_change, args=(machine, step.id))

    if step.optional:
        st.caption("This question is optional.")
    render_navigation(machine)


def display_text_step(machine):
    step = machine.current_step
    key = _seed_widget(machine, step.id, "")
    st.text_input(step.question or step.title, key=key, on_change=_on_field_change, args=(machine, step.id))
    render_navigation(machine)


def display_energy_step(machine):
    step = machine.current_step
    labels = _option_labels(step)
    col1, col2 = st.columns(2)
    with col1:
        st.text_input("💵 Bill amount ($)", key=_seed_widget(machine, BILL_AMOUNT, ""), placeholder="e.g. 300",
                      help=TOOLTIPS.get("billAmount"), on_change=_on_field_change, args=(machine, BILL_AMOUNT))
    with col2:
        st.radio("🗓️ Billed", options=list(labels), format_func=labels.get, index=None,
                 key=_seed_widget(machine, BILL_FREQUENCY), help=TOOLTIPS.get("billFrequency"),
                 on_change=_on_field_change, args=(machine, BILL_FREQUENCY))
    st.text_input("⚡ Energy price ($/kWh, optional)", key=_seed_widget(machine, ENERGY_PRICE, ""),
                  placeholder="e.g. 0.32", help=TOOLTIPS.get("energyPrice"),
                  on_change=_on_field_change, args=(machine, ENERGY_PRICE))
    render_navigation(machine)


def display_lead_step(machine):
    st.text_input("First name", key=_seed_widget(machine, FIRST_NAME, ""),
                  on_change=_on_field_change, args=(machine, FIRST_NAME))
    st.text_input("Email address *", key=_seed_widget(machine, EMAIL_ADDRESS, ""),
                  on_change=_on_field_change, args=(machine, EMAIL_ADDRESS))
    st.text_input("Phone number", key=_seed_widget(machine, PHONE_NUMBER, ""),
                  on_change=_on_field_change, args=(machine, PHONE_NUMBER))
    st.checkbox("I agree to be contacted about my solar quote *", key=_seed_widget(machine, CONSENT, False),
                help=TOOLTIPS.get("consent"), on_change=_on_field_change, args=(machine, CONSENT))
    render_navigation(machine, next_label="Show My Report 📊")


def _render_input_summary(machine):
    form_data = machine.session.form_data
    with st.expander("📝 Your answers"):
        for step in machine.steps:
            if step.type in ("radio", "select", "checkbox"):
                st.write(f"**{step.question}** {label_for_value(step, form_data.get(step.id))}")
            elif step.type == "address":
                st.write(f"**Location:** {form_data.get(step.id, 'N/A')}")
            elif step.type == "customEnergyInput":
                amount = form_data.get(BILL_AMOUNT)
                frequency = label_for_value(step, form_data.get(BILL_FREQUENCY))
                st.write(f"**Electricity bill:** ${amount} ({frequency})" if amount else "**Electricity bill:** N/A")


def display_results_step(machine):
    report = machine.session.report
    if report is None:
        st.warning("Your report is no longer available. Please go back and submit your details again.")
        render_navigation(machine)
        return
    fields = report.display_fields()

    st.subheader("☀️ Your System")
    sys1, sys2, sys3 = st.columns(3)
    sys1.metric("Recommended Size", fields["recommendedSystemSize"])
    sys2.metric("Annual Production", fields["estimatedAnnualProduction"])
    sys3.metric("Roof Area", fields["requiredRoofArea"])
    st.caption(f"{fields['systemType']} · Estimated usage {fields['estimatedConsumption']} · {fields['locationUsed']}")

    st.subheader("💰 Costs & Incentives")
    cost1, cost2, cost3 = st.columns(3)
    cost1.metric("System Cost", fields["estimatedSystemCost"])
    cost2.metric("Total Incentives", fields["totalIncentives"],
                 help=f"STCs: {fields['certificateCount']} ({fields['certificateValue']}) + "
                      f"state rebate {fields['governmentRebate']}")
    cost3.metric("Net Cost", fields["netCost"])

    st.subheader("📈 Savings")
    sav1, sav2, sav3 = st.columns(3)
    sav1.metric("Bill Savings / yr", fields["annualSavings"], help=f"At {fields['energyPriceUsed']}")
    sav2.metric("Feed-in Income / yr", fields["feedInIncome"], help=f"At {fields['feedInRateUsed']}")
    sav3.metric("Payback", fields["paybackTime"])

    st.subheader("🌏 Environmental Impact")
    env1, env2 = st.columns(2)
    env1.metric("CO₂ Reduction", fields["co2Reduction"])
    env2.metric("Equivalent Trees", fields["equivalentTrees"])
    if report.battery_incentive:
        st.info(f"🔋 {report.battery_incentive}")

    projection_df = build_savings_projection(report)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=projection_df["Year"], y=projection_df["Net Position ($)"], name="Net Position",
                         marker_color=["#2E8B57" if v >= 0 else "#DC143C" for v in projection_df["Net Position ($)"]]))
    fig.add_trace(go.Scatter(x=projection_df["Year"], y=projection_df["Cumulative Benefit ($)"],
                             mode="lines", name="Cumulative Benefit", line=dict(dash="dot", color="orange")))
    fig.update_layout(title_text="Cumulative Savings Over 25 Years", xaxis_title="Year", yaxis_title="Amount ($)")
    st.plotly_chart(fig, use_container_width=True)

    _render_input_summary(machine)
    render_navigation(machine, next_label="Request My Quote ✅")


def display_thankyou_step(machine):
    st.success("We've received your details.", icon="✅")
    st.button("Start a New Quote", use_container_width=True, key="nav_restart",
              on_click=_on_restart, args=(machine,))


STEP_RENDERERS = {
    "intro": display_intro_step,
    "address": display_address_step,
    "radio": display_choice_step,
    "select": display_choice_step,
    "checkbox": display_choice_step,
    "text": display_text_step,
    "customEnergyInput": display_energy_step,
    "lead": display_lead_step,
    "results": display_results_step,
    "thankyou": display_thankyou_step,
}


def render_wizard(machine):
    render_header(machine)
    render_errors(machine)
    STEP_RENDERERS[machine.current_step.type](machine)
