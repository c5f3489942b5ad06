# app.py
import logging
import os
from datetime import date, timedelta

import streamlit as st

import config
from cad_data import fetch_close_approaches, records_frame
from filters import DEFAULT_THRESHOLDS, RANGE_BOUNDS, FilterThresholds, apply_filters, sync_range_pair
from placement import PlacementSession, load_batch
from scene import UiState, build_figure, entry_key, entry_label, format_popup

config.setup_logging()
logger = logging.getLogger(__name__)

# =================== CONFIG ===================
st.set_page_config(
    page_title="Asteroid Close Approaches ☄️",
    page_icon="🌍",
    layout="wide"
)

# custom CSS theme
st.markdown(
    """
    <style>
    .block-container {
        background-color: #0e1525;
        color: #f5f5f5;
        padding-top: 1.25rem;
        padding-bottom: 2rem;
    }
    section[data-testid="stSidebar"] {
        background-color: #151b2e;
    }
    h1, h2, h3, h4, h5, h6 {
        color: #e0e0e0;
    }
    div[data-testid="stMetric"] {
        background-color: #121a2e;
        border-radius: 12px;
        padding: 12px;
        margin: 6px 0;
        border: 1px solid #26365e33;
    }
    input, textarea, select {
        background-color: #1b2235 !important;
        color: #f5f5f5 !important;
        border-radius: 8px !important;
        border: 1px solid #30406b !important;
    }
    </style>
    """,
    unsafe_allow_html=True
)

try:
    PROXY_URL = os.getenv("ASTEROID_PROXY_URL") or st.secrets.get("ASTEROID_PROXY_URL", "")
except st.errors.StreamlitSecretNotFoundError:
    PROXY_URL = config.ASTEROID_PROXY_URL

today = date.today()
default_start = today
default_end = today + timedelta(days=30)

RANGE_LABELS = {
    "diameter": "Diameter (m)",
    "speed": "Speed (km/s)",
    "distance": "Distance (LD)",
}


@st.cache_data(ttl=3600, show_spinner=False)
def load_payload(start, end, proxy_url):
    return fetch_close_approaches(start, end, proxy_url=proxy_url)


def fetch_window(start, end):
    return load_payload(start, end, PROXY_URL)


# ------------------- Range pair callbacks -------------------
def _set_pair(name, lo, hi):
    st.session_state[f"min_{name}"] = lo
    st.session_state[f"max_{name}"] = hi
    st.session_state[f"{name}_slider"] = (lo, hi)


def on_slider_change(name):
    lo, hi = st.session_state[f"{name}_slider"]
    source = "min" if lo != st.session_state[f"min_{name}"] else "max"
    _set_pair(name, *sync_range_pair(lo, hi, source, *RANGE_BOUNDS[name]))


def on_number_change(name, source):
    lo, hi = sync_range_pair(
        st.session_state[f"min_{name}"],
        st.session_state[f"max_{name}"],
        source,
        *RANGE_BOUNDS[name],
    )
    _set_pair(name, lo, hi)


def reset_filters():
    _set_pair("diameter", DEFAULT_THRESHOLDS.min_diameter, DEFAULT_THRESHOLDS.max_diameter)
    _set_pair("speed", DEFAULT_THRESHOLDS.min_speed, DEFAULT_THRESHOLDS.max_speed)
    _set_pair("distance", DEFAULT_THRESHOLDS.min_distance, DEFAULT_THRESHOLDS.max_distance)


def init_state():
    if "session" not in st.session_state:
        st.session_state.session = PlacementSession()
    if "ui" not in st.session_state:
        st.session_state.ui = UiState()
    if "min_diameter" not in st.session_state:
        reset_filters()


def range_pair(name):
    lower, upper = RANGE_BOUNDS[name]
    st.sidebar.markdown(f"**{RANGE_LABELS[name]}**")
    st.sidebar.slider(
        RANGE_LABELS[name],
        min_value=lower,
        max_value=upper,
        step=1.0,
        key=f"{name}_slider",
        on_change=on_slider_change,
        args=(name,),
        label_visibility="collapsed",
    )
    col_min, col_max = st.sidebar.columns(2)
    col_min.number_input("Min", key=f"min_{name}", on_change=on_number_change, args=(name, "min"))
    col_max.number_input("Max", key=f"max_{name}", on_change=on_number_change, args=(name, "max"))


def main():
    init_state()
    session = st.session_state.session
    ui = st.session_state.ui

    # =================== SIDEBAR ==================
    st.sidebar.title("⚙️ Filters")
    start_date = st.sidebar.date_input("Start date", default_start, key="startDate")
    end_date = st.sidebar.date_input("End date", default_end, key="endDate")
    apply_dates = st.sidebar.button("Apply dates", type="primary")

    for name in ("diameter", "speed", "distance"):
        range_pair(name)
    st.sidebar.button("Reset filters", on_click=reset_filters)

    if start_date > end_date:
        st.sidebar.error("Start date must be before end date")
        st.stop()

    # =================== FETCH DATA ==================
    if apply_dates or not session.fetch_attempted:
        with st.spinner("Fetching close-approach data from NASA…"):
            if load_batch(session, start_date, end_date, fetch_window):
                logger.info("Showing %d asteroids for %s", len(session.tracked), session.last_range)

    thresholds = FilterThresholds.from_inputs(
        st.session_state["min_diameter"],
        st.session_state["max_diameter"],
        st.session_state["min_speed"],
        st.session_state["max_speed"],
        st.session_state["min_distance"],
        st.session_state["max_distance"],
    )
    apply_filters(session.tracked, thresholds)
    df = records_frame(session.tracked, visible_only=True)

    # =================== HEADER ==================
    st.markdown(
        """
        <div style="padding: 12px 16px; background: linear-gradient(90deg,#0b1224,#0f1a36); border:1px solid #26365e33; border-radius: 12px;">
          <h1 style="margin:0">🌍 Asteroid Close Approaches</h1>
          <p style="margin: 4px 0 0 0; color:#cfd8ff">Near-Earth objects passing within 70 lunar distances, placed around a rotating Earth.</p>
        </div>
        """,
        unsafe_allow_html=True,
    )

    # =================== METRICS ==================
    col1, col2, col3, col4 = st.columns(4)
    if not df.empty:
        largest = df.loc[df["diameter_m"].idxmax()]
        closest = df.loc[df["distance_ld"].idxmin()]
        col1.metric("Visible objects", f"{len(df)} / {len(session.tracked)}")
        col2.metric("Largest", f'{largest["diameter_m"]:.0f} m', largest["name"])
        col3.metric("Closest", f'{closest["distance_ld"]:.3f} LD', closest["name"])
        col4.metric("Avg speed", f'{df["velocity_km_s"].mean():.2f} km/s')
    else:
        st.info("No asteroids match the current filters.")

    tab_scene, tab_data, tab_about = st.tabs(["3D View", "Data", "About"])

    with tab_scene:
        col_plot, col_info = st.columns([4, 1])
        with col_info:
            labels = {
                entry_key(entry.record): entry_label(entry.record)
                for entry in session.tracked
                if entry.body.visible
            }
            options = [None] + list(labels)
            current = ui.selected_key if ui.selected_key in labels else None
            choice = st.selectbox(
                "Selected asteroid",
                options,
                index=options.index(current),
                format_func=lambda key: "(none)" if key is None else labels[key],
            )
            ui.select(choice)

            entry = ui.selected_entry(session.tracked)
            if entry is not None:
                info = format_popup(entry.record)
                st.markdown(
                    f"**{info['name']}**  \n"
                    f"Distance: {info['distance']}  \n"
                    f"Diameter: {info['diameter']}  \n"
                    f"Speed: {info['speed']}  \n"
                    f"Close-Approach Date: {info['date']}"
                )
        with col_plot:
            st.plotly_chart(build_figure(session, ui), use_container_width=True)

    with tab_data:
        st.subheader("📋 Visible close approaches")
        st.dataframe(df, use_container_width=True)
        if not df.empty:
            csv = df.to_csv(index=False).encode("utf-8")
            st.download_button("Download CSV", csv, file_name="close_approaches.csv", mime="text/csv")

    with tab_about:
        st.markdown(
            """
            - Data source: **JPL SSD close-approach data API** (`cad.api`), limited to 70 LD.
            - Missing diameters are estimated from absolute magnitude with an albedo of 0.14.
            - Positions are illustrative: distance from Earth is to scale in LD, direction and height are random.
            - Set `ASTEROID_PROXY_URL` to route requests through `proxy_server.py` or `edge_worker.py`.
            """
        )


if __name__ == "__main__":
    main()
