from datetime import datetime, time as dtime, timedelta, timezone

import streamlit as st
from streamlit_autorefresh import st_autorefresh

from cloudcapsule.client import API_BASE, ApiError, CapsuleClient


# ============================================================
# SESSION STATE INIT
# ============================================================
def init_state():
    defaults = {
        "token": None,
        "user": None,
    }
    for k, v in defaults.items():
        if k not in st.session_state:
            st.session_state[k] = v


def client() -> CapsuleClient:
    return CapsuleClient(API_BASE, token=st.session_state.token)


# ============================================================
# HELPERS
# ============================================================
def lock_icon(capsule: dict) -> str:
    return "🔓" if capsule["is_open"] else "🔒"


def time_left(open_date: str) -> str:
    delta = datetime.fromisoformat(open_date) - datetime.now(timezone.utc)
    if delta.total_seconds() <= 0:
        return "open"
    days, rem = divmod(int(delta.total_seconds()), 86400)
    hours, rem = divmod(rem, 3600)
    return f"{days}d {hours}h {rem // 60}m"


def photo_url(ref: str) -> str:
    return ref if ref.startswith("http") else f"{API_BASE}{ref}"


# ============================================================
# APP START
# ============================================================
st.set_page_config(page_title="Cloud Capsule", layout="wide")
init_state()

st.title("☁️ Cloud Capsule")


# ============================================================
# SIDEBAR
# ============================================================
with st.sidebar:
    st.header("🧬 Identity")

    if st.session_state.user:
        st.success(f"Signed in as {st.session_state.user['username']}")
        if st.button("Log out"):
            st.session_state.token = None
            st.session_state.user = None
            st.rerun()
    else:
        tab1, tab2 = st.tabs(["Login", "Register"])
        with tab1:
            e = st.text_input("email", key="login_email")
            p = st.text_input("password", type="password", key="login_pass")
            if st.button("Login"):
                try:
                    c = client()
                    st.session_state.user = c.login(e, p)
                    st.session_state.token = c.token
                    st.rerun()
                except ApiError as err:
                    st.error(err.detail)
        with tab2:
            u = st.text_input("username", key="reg_user")
            e2 = st.text_input("email ", key="reg_email")
            p2 = st.text_input("password ", type="password", key="reg_pass")
            if st.button("Register"):
                try:
                    c = client()
                    st.session_state.user = c.register(u, e2, p2)
                    st.session_state.token = c.token
                    st.rerun()
                except ApiError as err:
                    st.error(err.detail)

if not st.session_state.token:
    st.info("Log in or register to see your capsules.")
    st.stop()

# poll for capsules that opened since the last check
st_autorefresh(interval=60_000, key="capsule_refresh")
try:
    for opened in client().check_opened(only_new=True):
        st.toast(f"🎉 Your capsule \"{opened['title']}\" is ready to open!")
except ApiError as err:
    st.warning(err.detail)


# ============================================================
# MAIN LAYOUT
# ============================================================
left, right = st.columns([0.6, 0.4], gap="large")


# ------------------------------------------------------------
# LEFT: CAPSULES
# ------------------------------------------------------------
with left:
    st.subheader("📦 Your Capsules")

    try:
        capsules = client().list_capsules()
    except ApiError as err:
        st.error(err.detail)
        capsules = []

    if not capsules:
        st.info("No capsules yet. Seal one on the right.")

    for cap in capsules:
        with st.container(border=True):
            st.markdown(f"### {lock_icon(cap)} {cap['title']}")
            st.caption(f"Opens {cap['open_date']} · {time_left(cap['open_date'])}")

            if cap["is_open"]:
                st.markdown(f"**Letter**\n\n{cap['letter'] or '—'}")
                st.markdown(f"**Secret**: {cap['secret'] or '—'}")
                st.markdown(f"**Feeling**: {cap['feeling']} · **Rating**: {'⭐' * (cap['rating'] or 0)}")
                if cap["song"]:
                    st.markdown(f"**Song**: {cap['song']}")
                if cap["photo_refs"]:
                    st.image([photo_url(ref) for ref in cap["photo_refs"]], width=160)
            else:
                st.write("Sealed until its open date.")

            if st.button("Delete", key=f"delete_{cap['id']}"):
                try:
                    client().delete_capsule(cap["id"])
                    st.rerun()
                except ApiError as err:
                    st.error(err.detail)


# ------------------------------------------------------------
# RIGHT: CREATE
# ------------------------------------------------------------
with right:
    st.subheader("✍️ Seal a Capsule")

    with st.form("create_capsule", clear_on_submit=True):
        title = st.text_input("Title")
        day = st.date_input("Open on", value=datetime.now(timezone.utc).date() + timedelta(days=30))
        at = st.time_input("at (UTC)", value=dtime(9, 0))
        letter = st.text_area("Letter to the future")
        secret = st.text_input("A secret")
        feeling = st.selectbox("Feeling", ["happy", "hopeful", "nostalgic", "sad", "excited"])
        rating = st.slider("Rating", 0, 5, 0)
        song = st.text_input("Song")
        photos = st.file_uploader("Photos", type=["png", "jpg", "jpeg", "gif", "webp"], accept_multiple_files=True)

        if st.form_submit_button("Seal it"):
            try:
                c = client()
                refs = c.upload_photos([(f.name, f.getvalue(), f.type) for f in photos or []])
                open_at = datetime.combine(day, at, tzinfo=timezone.utc)
                c.create_capsule({
                    "title": title,
                    "open_date": open_at.isoformat(),
                    "letter": letter,
                    "secret": secret,
                    "feeling": feeling,
                    "rating": rating,
                    "song": song,
                    "photo_refs": refs,
                })
                st.success("Sealed ✅")
                st.rerun()
            except ApiError as err:
                st.error(err.detail)
