"""Streamlit operator console for the venue crawler.

The operator enters a location, picks a venue kind, whether the browser
should run headless, whether to crawl room pages and reviews, and
optionally caps the number of venues.  The console calls into the
pipeline, shows the progress log, the venue and room tables and a map of
the found venues, and offers an Excel download.
"""

from __future__ import annotations

import io
import os
import datetime
import logging
import traceback
from typing import Dict, Optional, Tuple

import pandas as pd
import streamlit as st

import folium  # for map rendering
from streamlit_folium import st_folium
from geopy.geocoders import Nominatim

from heuristics import VENUE_KINDS
from models import ScrapeResult
from pipeline import run_location
from repository import InMemoryVenueRepository
from scraper import normalize_max_results


DEFAULT_CENTRE = (34.0522, -118.2437)  # Los Angeles


# ----------------------------- Geocoding ------------------------------------
def geocode_address(query: str) -> Tuple[float, float]:
    try:
        geolocator = Nominatim(user_agent="venue_crawler_app")
        loc = geolocator.geocode(query)
        if loc:
            return float(loc.latitude), float(loc.longitude)
    except Exception:
        logging.getLogger("venue_crawler_app").warning("Geocoding failed for %s", query)
    return DEFAULT_CENTRE


# ----------------------------- Logging --------------------------------------
def setup_logging() -> logging.Logger:
    logs_dir = os.path.join(os.path.dirname(__file__), "logs")
    os.makedirs(logs_dir, exist_ok=True)
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    logfile = os.path.join(logs_dir, f"app_{ts}.log")

    logger = logging.getLogger("venue_crawler_app")
    logger.setLevel(logging.INFO)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    fmt = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    fh = logging.FileHandler(logfile, encoding="utf-8")
    fh.setFormatter(fmt)
    logger.addHandler(fh)
    return logger


# ----------------------------- Excel helper ---------------------------------
def dataframes_to_excel_bytes(sheets: Dict[str, pd.DataFrame]) -> bytes:
    """Write each DataFrame to its own sheet with columns sized to content."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for sheet_name, df in sheets.items():
            df.to_excel(writer, index=False, sheet_name=sheet_name)
            ws = writer.sheets[sheet_name]
            for i, col in enumerate(df.columns, start=1):
                max_len = max([len(str(x)) for x in df[col].tolist()] + [len(str(col))])
                ws.column_dimensions[ws.cell(row=1, column=i).column_letter].width = min(max_len + 2, 80)
    return output.getvalue()


# ----------------------------- Map ------------------------------------------
def venues_map(result: ScrapeResult, centre: Tuple[float, float]) -> folium.Map:
    m = folium.Map(location=list(centre), zoom_start=11)
    for venue in result.venues:
        if venue.latitude is None or venue.longitude is None:
            continue
        rating = f"{venue.rating:.1f}" if venue.rating is not None else "N/A"
        folium.Marker(
            [venue.latitude, venue.longitude],
            tooltip=venue.name,
            popup=f"{venue.name}<br>{venue.address or ''}<br>Rating: {rating}",
        ).add_to(m)
    return m


# ----------------------------------- UI -------------------------------------
def main() -> None:
    st.set_page_config(page_title="Venue Crawler", layout="wide")
    st.title("Venue Crawler")

    col1, col2 = st.columns([1, 2], gap="small")

    with col1:
        st.header("Settings")
        location = st.text_input(
            "Location", value="Los Angeles", help="City or area to search, e.g. 'Los Angeles'."
        )
        kind = st.selectbox("Venue kind", options=list(VENUE_KINDS), index=0)
        headless = st.checkbox("Headless browser", value=True)
        crawl_rooms = st.checkbox("Crawl venue websites for rooms", value=True)
        extract_reviews = st.checkbox("Extract reviews", value=False)
        max_input = st.text_input(
            "Max venues (blank or 0 for no limit)", value="20",
            help="Upper bound of venues accepted across all query variants",
        )
        max_results: Optional[int] = normalize_max_results(max_input)
        execute = st.button("Run crawl")

    if "centre" not in st.session_state or st.session_state.get("centre_for") != location:
        st.session_state.centre = geocode_address(location) if location.strip() else DEFAULT_CENTRE
        st.session_state.centre_for = location

    log_placeholder = st.empty()
    data_placeholder = st.container()
    download_placeholder = st.empty()

    result: Optional[ScrapeResult] = None
    if execute and location.strip():
        logger = setup_logging()
        try:
            with st.spinner("Crawling... please wait."):
                result = run_location(
                    location,
                    max_results=max_results,
                    kind=kind,
                    headless=headless,
                    crawl_rooms=crawl_rooms,
                    extract_reviews=extract_reviews,
                    repository=InMemoryVenueRepository(),
                    logger=logger,
                )
        except Exception as e:
            st.error("The crawl failed. Check the log file for details.")
            with st.expander("Exception (developer)"):
                st.code("".join(traceback.format_exception_only(type(e), e)).strip())
            return

    with col2:
        try:
            m = venues_map(result, st.session_state.centre) if result else folium.Map(
                location=list(st.session_state.centre), zoom_start=11
            )
            st_folium(m, key="folium_map", width="100%", height=400)
        except Exception as e:
            st.error("Could not render the map. Make sure folium and streamlit-folium are installed.")
            with st.expander("Details (developer)"):
                st.code("".join(traceback.format_exception_only(type(e), e)).strip())

    if result is None:
        return

    log_placeholder.text_area("Progress log", "\n".join(result.log_lines), height=200, disabled=True)
    summary = result.summary
    st.caption(
        f"Status: {summary.status} | variants {summary.variants_run} "
        f"({summary.variants_abandoned} abandoned) | processed {summary.processed} | "
        f"duplicates {summary.skipped_duplicate} | filtered {summary.filtered} | "
        f"errors {summary.errors} | rooms {summary.rooms_found}"
    )

    venues_df = result.dataframe
    rooms_df = result.rooms_dataframe
    if venues_df.empty:
        st.warning("No venues found. Try another location.")
        return

    st.success(f"Collected {len(venues_df)} venues and {len(rooms_df)} rooms.")
    with data_placeholder:
        st.subheader("Venues")
        st.dataframe(venues_df, use_container_width=True)
        if not rooms_df.empty:
            st.subheader("Rooms")
            st.dataframe(rooms_df, use_container_width=True)

    excel_bytes = dataframes_to_excel_bytes({"venues": venues_df, "rooms": rooms_df})
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    download_placeholder.download_button(
        label="Download Excel",
        data=excel_bytes,
        file_name=f"venues_{kind}_{ts}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


if __name__ == "__main__":
    main()
