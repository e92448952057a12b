import hashlib

import streamlit as st

from api_client import BackendClient
from config import configure_logging, get_settings
from display import (
    MOST_EFFECTIVE_LABEL,
    NO_CONDITIONS,
    NO_REMEDIES,
    conditions_frame,
    order_remedies_for_display,
)
from sequencer import SymptomChecker
from voice_input import (
    Available,
    VoiceInputError,
    VoiceSettings,
    append_transcript,
    probe_voice_capability,
)

configure_logging()
settings = get_settings()

st.set_page_config(page_title="Home Remedy Symptom Checker", page_icon="🌿", layout="centered")

# one checker and one voice probe per browser session
if "checker" not in st.session_state:
    client = BackendClient()
    st.session_state.checker = SymptomChecker(client.analyze_symptoms, client.remedy_recommendation)
if "voice" not in st.session_state:
    st.session_state.voice = probe_voice_capability(
        hasattr(st, "audio_input"), VoiceSettings(language=settings.voice_language)
    )
for key, default in {"symptoms_text": "", "location_text": "", "listening": False,
                     "voice_error": None, "last_audio_digest": None}.items():
    if key not in st.session_state:
        st.session_state[key] = default

checker = st.session_state.checker
voice = st.session_state.voice


def _dismiss_voice_error():
    st.session_state.voice_error = None


st.title("🌿 Home Remedy Symptom Checker")
st.info("This tool is for educational purposes only. It does not provide medical advice.")

# --- Symptom analysis ---
st.subheader("🩺 Symptom Analysis")
st.caption("Describe your symptoms, and our AI will suggest possible conditions.")

if isinstance(voice, Available):
    st.toggle("🎙️ Voice input", key="listening")
    if st.session_state.listening:
        audio = st.audio_input("Record your symptoms", key="symptom_audio")
        if audio is not None:
            data = audio.getvalue()
            digest = hashlib.sha256(data).hexdigest()
            # reruns hand back the same recording; transcribe it once
            if digest != st.session_state.last_audio_digest:
                st.session_state.last_audio_digest = digest
                try:
                    transcript = voice.handle.transcribe(data)
                except VoiceInputError as exc:
                    st.session_state.voice_error = exc.message
                else:
                    st.session_state.symptoms_text = append_transcript(
                        st.session_state.symptoms_text, transcript
                    )
                    st.session_state.voice_error = None
else:
    st.caption(voice.reason)

if st.session_state.voice_error:
    col_msg, col_btn = st.columns([5, 1])
    col_msg.warning(st.session_state.voice_error, icon="🎙️")
    col_btn.button("Dismiss", key="dismiss_voice_error", on_click=_dismiss_voice_error)

with st.form("symptom_form"):
    st.text_area(
        "Your Symptoms",
        key="symptoms_text",
        placeholder="e.g., I have a headache, fever, and a runny nose...",
        height=120,
    )
    if checker.state.field_errors.get("symptoms"):
        st.error(checker.state.field_errors["symptoms"])
    analyze_clicked = st.form_submit_button(
        "✨ Analyze Symptoms",
        disabled=checker.state.is_loading_analysis,
    )

if analyze_clicked:
    with st.spinner("Analyzing symptoms..."):
        checker.submit_symptoms(st.session_state.symptoms_text)
    st.rerun()

state = checker.state

if state.error:
    st.error(f"**Error:** {state.error}")

if state.analysis_result is not None:
    st.subheader("💊 Possible Conditions")
    st.caption("Based on your symptoms, here are some possible conditions. This is not a medical diagnosis.")
    if state.analysis_result.conditions:
        st.dataframe(
            conditions_frame(state.analysis_result.conditions),
            hide_index=True,
            column_config={
                "Likelihood": st.column_config.ProgressColumn(
                    "Likelihood", format="%d%%", min_value=0, max_value=100
                ),
            },
        )
    else:
        st.markdown(NO_CONDITIONS)

    # --- Remedy recommendation ---
    st.subheader("📍 Remedy Recommendation")
    st.caption("Enter your location to get personalized home remedy suggestions.")
    with st.form("location_form"):
        st.text_input(
            "Your Location",
            key="location_text",
            placeholder="e.g., New York, USA or rural village, India",
        )
        if state.field_errors.get("location"):
            st.error(state.field_errors["location"])
        remedies_clicked = st.form_submit_button(
            "✨ Get Remedies",
            disabled=state.is_loading_remedies,
        )

    if remedies_clicked:
        with st.spinner("Finding home remedies..."):
            checker.submit_location(st.session_state.location_text)
        st.rerun()

if state.remedy_result is not None:
    st.subheader("🍃 Recommended Home Remedies")
    st.caption("These are suggestions and not medical advice. "
               "Consult a healthcare professional for any health concerns.")
    remedies = order_remedies_for_display(state.remedy_result.remedies)
    if not remedies:
        st.markdown(NO_REMEDIES)
    for remedy in remedies:
        if remedy.most_effective:
            st.success(f"**⭐ {MOST_EFFECTIVE_LABEL}: {remedy.name}**\n\n{remedy.explanation}")
        else:
            with st.container(border=True):
                st.markdown(f"**{remedy.name}**")
                st.write(remedy.explanation)

    if state.remedy_result.optional_ingredients:
        st.markdown("**🧂 Optional Ingredients**")
        for ing in state.remedy_result.optional_ingredients:
            line = f"• **{ing.name}**: {ing.reasoning}"
            if ing.availability_note:
                line += f"  \n  _{ing.availability_note}_"
            st.markdown(line)

st.sidebar.header("⚙️ Backend")
st.sidebar.caption(f"API: {settings.api_base_url}")
