import streamlit as st
import requests
import os

# --- Configuration ---
# Prioritize Secrets -> Environment Variable -> Localhost
try:
    API_URL = st.secrets["BACKEND_URL"]
except (KeyError, FileNotFoundError):
    API_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")

REQUEST_TIMEOUT_SEC = 120

st.set_page_config(page_title="Roteirizando", page_icon="🧭", layout="centered")

# --- CSS / Aesthetics ---
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        border-radius: 8px;
        height: 3em;
        background-color: #FF5656;
        color: #FFF;
    }
</style>
""", unsafe_allow_html=True)

# --- Session State Management ---
if 'loading' not in st.session_state:
    st.session_state.loading = False
if 'result' not in st.session_state:
    st.session_state.result = None  # markdown to show
if 'error' not in st.session_state:
    st.session_state.error = None
if 'warning' not in st.session_state:
    st.session_state.warning = None


# --- API Helpers ---
def request_plan(city, days):
    """
    Returns (markdown, error). Exactly one of them is set.
    """
    url = f"{API_URL}/plan"
    try:
        response = requests.post(
            url, json={"city": city, "days": days}, timeout=REQUEST_TIMEOUT_SEC
        )
    except requests.exceptions.ConnectionError:
        return None, f"Could not connect to backend at {API_URL}. Is the server running?"
    except requests.exceptions.Timeout:
        return None, "The itinerary request timed out. Please try again."

    if response.status_code != 200:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        return None, f"{response.status_code}: {detail}"

    return response.json()["markdown"], None


def start_loading():
    st.session_state.loading = True


# --- Views ---
def render_planner():
    st.title("🧭 Roteirizando")

    city = st.text_input(
        "Destination city",
        placeholder="Ex: Campo Grande, MS",
        disabled=st.session_state.loading,
    )
    days = st.slider(
        "Length of stay (days)",
        min_value=1,
        max_value=7,
        value=3,
        disabled=st.session_state.loading,
    )

    st.button(
        "Generate itinerary",
        type="primary",
        on_click=start_loading,
        disabled=st.session_state.loading,
    )

    if st.session_state.loading:
        st.session_state.result = None
        st.session_state.error = None
        st.session_state.warning = None
        if not city.strip():
            st.session_state.warning = "Please enter a city name."
        else:
            with st.spinner("Loading itinerary..."):
                markdown, error = request_plan(city.strip(), days)
            st.session_state.result = markdown
            st.session_state.error = error
        st.session_state.loading = False
        st.rerun()

    if st.session_state.warning:
        st.warning(st.session_state.warning)
    elif st.session_state.error:
        st.error(f"❌ Error: {st.session_state.error}")
    elif st.session_state.result:
        st.markdown(st.session_state.result)

    st.caption("The model is called by the backend; the API key never reaches this page.")


# --- Main App ---
render_planner()
