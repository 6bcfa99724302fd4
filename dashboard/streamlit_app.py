import os
import requests
import pandas as pd
import streamlit as st
from datetime import date

API_BASE_DEFAULT = os.getenv("API_BASE", "http://127.0.0.1:8000")

BUCKET_LABELS = {
    "move_to_milking": "Move to Milking",
    "about_to_deliver": "About to Deliver",
    "pd_overdue": "PD Overdue",
    "pd_due": "PD Due",
    "flagged_for_move": "Flagged for Move",
    "others": "Others",
}

st.set_page_config(page_title="Cow Breeding Monitor", layout="wide")
st.title("🐄 Cow Breeding Monitor")
st.caption("AI tracking, PD and delivery windows, prioritized herd view.")

with st.sidebar:
    st.header("API")
    api_base = st.text_input("API Base URL", API_BASE_DEFAULT)
    as_of = st.date_input("As of", value=date.today())

def get_json(url: str, params: dict | None = None):
    r = requests.get(url, params=params, timeout=25)
    r.raise_for_status()
    return r.json()

def post_json(url: str, payload: dict | None = None):
    r = requests.post(url, json=payload or {}, timeout=30)
    if r.status_code == 409:
        raise RuntimeError(r.json().get("detail", "Conflict"))
    r.raise_for_status()
    return r.json()

try:
    cows = get_json(f"{api_base}/cows")
    cow_map = {c["cow_number"]: c for c in cows}
    cow_numbers = list(cow_map)
except Exception as e:
    st.error(f"Could not fetch cows from API: {e}")
    st.stop()

tabs = st.tabs(["Herd View", "Add AI Record", "Record PD / Delivery", "Add Cow", "Alerts", "Settings"])

# --------------------
# Herd View
# --------------------
with tabs[0]:
    st.subheader("Herd View")
    st.caption("Cows grouped by urgency, soonest deadline first.")

    colF1, colF2 = st.columns(2)
    with colF1:
        view = st.selectbox(
            "Filter",
            ["all", "about_to_deliver", "pd_due", "flagged"],
            format_func=lambda v: {"all": "All Cows", "about_to_deliver": "About to Deliver",
                                   "pd_due": "PD Due", "flagged": "Flagged for Move"}[v],
        )
    with colF2:
        include_delivered = st.toggle("Include Delivered", value=True)

    try:
        rows = get_json(
            f"{api_base}/summaries",
            params={"view": view, "include_delivered": str(include_delivered).lower(), "today": as_of.isoformat()},
        )
        df = pd.DataFrame(rows)
        if df.empty:
            st.info("No cows found matching the selected filters")
        else:
            df["bucket"] = df["bucket"].map(BUCKET_LABELS)
            df["badges"] = df["badges"].apply(", ".join)
            st.dataframe(
                df[["bucket", "cow_number", "status", "service_number", "latest_ai_date",
                    "expected_delivery_date", "day_count", "badges"]],
                use_container_width=True,
            )
            st.download_button(
                "Download herd table CSV",
                df.to_csv(index=False).encode("utf-8"),
                file_name="herd_view.csv",
                mime="text/csv",
            )

            st.divider()
            st.subheader("Milking group move")
            choice = st.selectbox("Cow", options=df["cow_number"].tolist())
            cow = cow_map.get(choice)
            if cow:
                state = cow["milking_state"]
                st.write(f"Current state: **{state}**")
                c1, c2, c3 = st.columns(3)
                if state == "normal" and c1.button("Flag: Needs Move"):
                    post_json(f"{api_base}/cows/{cow['id']}/flag-move")
                    st.rerun()
                if state == "flagged_for_move":
                    if c2.button("Undo Flag"):
                        post_json(f"{api_base}/cows/{cow['id']}/undo-flag")
                        st.rerun()
                    if c3.button("Mark as Moved"):
                        post_json(f"{api_base}/cows/{cow['id']}/mark-moved")
                        st.rerun()
    except Exception as e:
        st.error(f"Could not load herd view: {e}")

# --------------------
# Add AI Record
# --------------------
with tabs[1]:
    st.subheader("Add AI Record")
    cow_for_ai = st.selectbox("Cow", options=cow_numbers, key="cow_for_ai")

    if cow_for_ai:
        cow_id = cow_map[cow_for_ai]["id"]
        guard = get_json(f"{api_base}/cows/{cow_id}/can-start-cycle")
        if not guard["allowed"]:
            blocking = guard["blocking_record"]
            st.warning(
                f"Service #{blocking['service_number']} from {blocking['ai_date']} has no PD yet. "
                "Record its PD first (Record PD / Delivery tab)."
            )
        else:
            st.caption(f"Next service number: #{guard['next_service_number']}")
            with st.form("ai_form"):
                ai_date = st.date_input("AI date", value=date.today())
                ai_status = st.selectbox("AI status", ["done", "pending", "failed"])
                semen_batch = st.text_input("Semen batch")
                technician = st.text_input("Technician name")
                notes = st.text_area("Notes")
                submitted = st.form_submit_button("Create AI record")

            if submitted:
                try:
                    resp = post_json(f"{api_base}/cycles", {
                        "cow_id": cow_id,
                        "ai_date": ai_date.isoformat(),
                        "ai_status": ai_status,
                        "semen_batch": semen_batch or None,
                        "technician_name": technician or None,
                        "notes": notes or None,
                    })
                    st.success(f"Created service #{resp['service_number']}")
                except Exception as e:
                    st.error(f"Cannot add AI record: {e}")

# --------------------
# Record PD / Delivery
# --------------------
with tabs[2]:
    st.subheader("Update breeding cycle")
    cow_for_update = st.selectbox("Cow", options=cow_numbers, key="cow_for_update")
    if cow_for_update:
        cycles = get_json(f"{api_base}/cows/{cow_map[cow_for_update]['id']}/cycles")
        if not cycles:
            st.info("No AI records for this cow.")
        else:
            st.dataframe(pd.DataFrame(cycles), use_container_width=True)
            current = cycles[-1]
            if not current["pd_done"]:
                with st.form("pd_form"):
                    pd_result = st.selectbox("PD result", ["positive", "negative", "inconclusive"])
                    pd_date = st.date_input("PD date", value=date.today())
                    if st.form_submit_button("Save PD"):
                        try:
                            post_json(f"{api_base}/cycles/{current['id']}/pd",
                                      {"pd_result": pd_result, "pd_date": pd_date.isoformat()})
                            st.success("PD recorded.")
                        except Exception as e:
                            st.error(f"PD update failed: {e}")
            elif current["pd_result"] == "positive" and not current["actual_delivery_date"]:
                with st.form("delivery_form"):
                    delivery_date = st.date_input("Actual delivery date", value=date.today())
                    calf_gender = st.selectbox("Calf gender", ["female", "male"])
                    notes = st.text_area("Notes")
                    if st.form_submit_button("Record delivery"):
                        try:
                            post_json(f"{api_base}/cycles/{current['id']}/delivery", {
                                "actual_delivery_date": delivery_date.isoformat(),
                                "calf_gender": calf_gender,
                                "notes": notes or None,
                            })
                            st.success("Delivery recorded.")
                        except Exception as e:
                            st.error(f"Delivery update failed: {e}")

# --------------------
# Add Cow
# --------------------
with tabs[3]:
    st.subheader("Register New Cow")
    with st.form("cow_form"):
        cow_number = st.text_input("Cow number (unique)", value="")
        breed = st.text_input("Breed", value="Holstein")
        submitted = st.form_submit_button("Create cow")

    if submitted:
        try:
            resp = post_json(f"{api_base}/cows", {"cow_number": cow_number.strip(), "breed": breed.strip()})
            st.success(resp)
            st.info("Refresh the page to see the cow in dropdowns.")
        except Exception as e:
            st.error(f"Create cow failed: {e}")

# --------------------
# Alerts
# --------------------
with tabs[4]:
    st.subheader("Alerts")
    try:
        data = get_json(f"{api_base}/alerts", params={"today": as_of.isoformat()})
        if not data["alerts"]:
            st.info("No alerts.")
        for alert in data["alerts"]:
            st.warning(f"**{alert['title']}**: {alert['body']}")
    except Exception as e:
        st.error(f"Load alerts failed: {e}")

# --------------------
# Settings
# --------------------
with tabs[5]:
    st.subheader("Alert settings")
    current = get_json(f"{api_base}/settings/alerts")
    with st.form("settings_form"):
        pd_days = st.number_input("PD alert after (days from AI)", min_value=1, value=int(current["pd_alert_days"]))
        delivery_days = st.number_input(
            "Expected delivery (days from AI)", min_value=1, value=int(current["delivery_expected_days"])
        )
        if st.form_submit_button("Save"):
            r = requests.put(
                f"{api_base}/settings/alerts",
                json={"pd_alert_days": int(pd_days), "delivery_expected_days": int(delivery_days)},
                timeout=30,
            )
            r.raise_for_status()
            st.success("Settings saved")
