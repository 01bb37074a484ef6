
import os
import requests
import pandas as pd
import streamlit as st
import pydeck as pdk

from dotenv import load_dotenv
load_dotenv()

st.set_page_config(page_title="Philippine Earthquake Monitor", layout="wide")

# ------------------------
# Config
# ------------------------
DEFAULT_API_BASE = os.getenv("API_BASE_URL", "http://localhost:3000")
st.sidebar.title("⚙️ Settings")
api_base = st.sidebar.text_input("API Base URL", value=DEFAULT_API_BASE, help=f"Proxy base URL {DEFAULT_API_BASE}")

mode = st.sidebar.radio("Query Mode", ["Latest", "All"])
feed = st.sidebar.selectbox(
    "USGS fallback window",
    ["all_hour", "all_day", "all_week"],
    index=1,
    help="Only used when PHIVOLCS is unreachable"
)
highlight_biggest = st.sidebar.checkbox("Highlight biggest quake", value=True)
if st.sidebar.button("Refresh now"):
    st.cache_data.clear()

# ------------------------
# Helpers
# ------------------------
class ApiError(Exception):
    pass


@st.cache_data(show_spinner=False, ttl=60)
def fetch_quakes(api_base: str, mode: str, feed: str):
    path = "/api/quakes/all" if mode == "All" else "/api/quakes"
    r = requests.get(f"{api_base.rstrip('/')}{path}", params={"feed": feed}, timeout=30)
    if r.status_code >= 500:
        try:
            message = r.json().get("error", r.text)
        except ValueError:
            message = r.text
        raise ApiError(message)
    r.raise_for_status()
    return r.json(), r.headers.get("X-Data-Source", "")


def to_dataframe(items):
    cols = ["datetime", "latitude", "longitude", "depth", "magnitude", "location", "source"]
    if not items:
        return pd.DataFrame(columns=cols)
    df = pd.DataFrame(items)
    for col in ["magnitude", "latitude", "longitude"]:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def color_from_mag(m):
    m = 0 if pd.isna(m) else float(m)
    if m < 2:   return [80, 160, 255]
    if m < 4:   return [255, 200, 80]
    if m < 6:   return [255, 140, 60]
    return [255, 70, 70]

# ------------------------
# UI/UX
# ------------------------
st.title("🌏 Philippine Earthquake Monitor")

with st.expander("About this dashboard", expanded=False):
    st.write("""
    Data comes from the proxy API, which scrapes **PHIVOLCS** and falls back
    to **USGS** when PHIVOLCS is down:
    - `GET /api/quakes` (latest 10)
    - `GET /api/quakes/all` (latest 50)
    """)
    st.code(f"export API_BASE_URL={DEFAULT_API_BASE}", language="bash")

try:
    data, source = fetch_quakes(api_base, mode, feed)
    df = to_dataframe(data)
    status_ok = True
    error_msg = ""
except (ApiError, requests.RequestException) as e:
    df = to_dataframe([])
    source = ""
    status_ok = False
    error_msg = str(e)

left, right = st.columns([1, 3])

with left:
    st.subheader("Summary")
    st.metric("Events", len(df))
    if source:
        st.metric("Source", source)
    if len(df):
        st.metric("Max Magnitude", f"{df['magnitude'].max():.1f}")
        st.metric("Latest", df["datetime"].iloc[0])
    if source == "USGS":
        st.warning("PHIVOLCS is unreachable, showing USGS data.")
    if not status_ok:
        st.error(f"Failed to fetch data: {error_msg}")

with right:
    st.subheader("Map")
    # unparseable coordinates come back as 0.0
    plotted = df[(df["latitude"] != 0) | (df["longitude"] != 0)].copy() if len(df) else df
    if len(plotted):
        plotted["_size_m"] = plotted["magnitude"].fillna(0).apply(lambda m: 8000 + (m * 12000))
        plotted["_color"] = plotted["magnitude"].apply(color_from_mag)

        layers = [pdk.Layer(
            "ScatterplotLayer",
            data=plotted,
            get_position='[longitude, latitude]',
            get_radius="_size_m",
            pickable=True,
            filled=True,
            get_fill_color="_color",
            stroked=True,
            get_line_color=[255, 255, 255],
            line_width_min_pixels=1,
            radius_min_pixels=4,
            radius_max_pixels=60
        )]

        if highlight_biggest:
            biggest = plotted.loc[[plotted["magnitude"].idxmax()]]
            layers.append(pdk.Layer(
                "ScatterplotLayer",
                data=biggest,
                get_position='[longitude, latitude]',
                get_radius=biggest["_size_m"].iloc[0] * 1.4,
                pickable=False,
                filled=False,
                stroked=True,
                get_line_color=[255, 255, 0],
                line_width_min_pixels=3,
                radius_min_pixels=10
            ))

        view_state = pdk.ViewState(latitude=12.5, longitude=122.0, zoom=4.5)

        tooltip = {
            "html": "<b>Mag:</b> {magnitude}<br/><b>Location:</b> {location}<br/><b>Time:</b> {datetime}<br/><b>Depth:</b> {depth}",
            "style": {"backgroundColor": "rgba(0,0,0,0.7)", "color": "white"}
        }

        st.pydeck_chart(pdk.Deck(layers=layers, initial_view_state=view_state, tooltip=tooltip))
    else:
        st.info("No data to plot.")


st.subheader("Table")
st.dataframe(df, use_container_width=True)

st.caption("Data sources: PHIVOLCS (earthquake.phivolcs.dost.gov.ph), USGS FDSN event service as fallback.")
