import streamlit as st
import logging, os
from sunquote_engine.location_service import NOMINATIM_CONFIG
from sunquote_engine.production_service import NREL_API_KEY_HOLDER
from sunquote_engine.submission import LEAD_CAPTURE_CONFIG
from sunquote_engine.ui_screens import SPINNER_TEXT, render_wizard
from sunquote_engine.wizard import WizardMachine, WizardSession

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
app_logger = logging.getLogger('sunquote_app')

st.set_page_config(page_title="☀️ SunQuote Solar Calculator", page_icon="☀️")


def read_secret(name):
    """`st.secrets` first, then the environment."""
    try:
        value = st.secrets.get(name)
    except Exception as e:  # No secrets.toml at all raises rather than returning None
        app_logger.info(f"Secrets unavailable for {name}: {e}")
        value = None
    return value or os.getenv(name)


# --- API Keys & Collaborator Setup ---
NREL_API_KEY_HOLDER["key"] = read_secret("NREL_API_KEY")
LEAD_CAPTURE_CONFIG["url"] = read_secret("LEAD_CAPTURE_URL")
NOMINATIM_CONFIG["user_agent"] = read_secret("NOMINATIM_USER_AGENT") or NOMINATIM_CONFIG["user_agent"]

if not NREL_API_KEY_HOLDER["key"] and 'nrel_key_warning_shown' not in st.session_state:
    st.toast("NREL_API_KEY not found in secrets.toml. Reports cannot be calculated.", icon="🚫")
    st.session_state.nrel_key_warning_shown = True

# --- Session State Initialization ---
if 'wizard_session' not in st.session_state:
    st.session_state.wizard_session = WizardSession()


# ====== Main App Router ======
if __name__ == "__main__":
    machine = WizardMachine(st.session_state.wizard_session)

    # --- Pending location / report requests started by the last button press ---
    pending = machine.session.pending
    if pending is not None:
        with st.spinner(SPINNER_TEXT[pending.kind]):
            machine.process_pending()
        st.rerun()

    render_wizard(machine)
