# Run from project root: streamlit run app/ui.py
# UI talks to backend API (POST /chat, POST /chat/{thread_id}). Chat history is stored on server by thread_id.

import os

import requests
import streamlit as st

API_BASE = os.environ.get("API_BASE", "http://localhost:8000")


def send_message(thread_id: str | None, message: str) -> tuple[str | None, str, bool]:
    """
    POST one message; start a thread when thread_id is None.
    Returns (thread_id, text to show, ok). Failed turns still return the server's safe text.
    """
    url = f"{API_BASE}/chat/{thread_id}" if thread_id else f"{API_BASE}/chat"
    r = requests.post(url, json={"message": message}, timeout=90)
    is_json = r.headers.get("content-type", "").startswith("application/json")
    data = r.json() if is_json else {}
    if "response" in data:
        return data.get("thread_id") or thread_id, data["response"] or "No answer.", r.ok
    return thread_id, f"Error {r.status_code}: {data.get('detail') or r.text[:200]}", False


st.title("HR Employee Assistant")
st.caption("Ask about people, skills, departments and locations. Answers come from the HR employee directory.")

try:
    health = requests.get(f"{API_BASE}/health", timeout=10)
    if not health.ok:
        st.warning(f"Backend unhealthy (HTTP {health.status_code}).")
except requests.RequestException:
    st.warning("Backend not reachable, start the API first.")

# thread_id is assigned by the server on the first message of a conversation
st.session_state.setdefault("thread_id", None)
st.session_state.setdefault("history", [])

if st.sidebar.button("Start new conversation", key="reset_thread"):
    st.session_state.thread_id = None
    st.session_state.history = []
    st.rerun()
if st.session_state.thread_id:
    st.sidebar.caption(f"Thread `{st.session_state.thread_id[:8]}...`")

for turn in st.session_state.history:
    with st.chat_message(turn["role"]):
        if turn.get("failed"):
            st.error(turn["content"])
        else:
            st.markdown(turn["content"])

if question := st.chat_input("e.g. Who has Python skills in Engineering?"):
    st.session_state.history.append({"role": "user", "content": question})
    with st.chat_message("user"):
        st.markdown(question)
    with st.chat_message("assistant"):
        with st.spinner("Searching employee records..."):
            try:
                thread_id, text, ok = send_message(st.session_state.thread_id, question)
            except requests.RequestException as e:
                thread_id, text, ok = st.session_state.thread_id, f"Connection failed: {e}", False
        st.session_state.thread_id = thread_id
        if ok:
            st.markdown(text)
        else:
            st.error(text)
    st.session_state.history.append({"role": "assistant", "content": text, "failed": not ok})
