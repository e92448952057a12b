"""
Optional voice dictation for the symptom field.

``probe_voice_capability`` is called once per UI session and returns either
``Available(handle)`` or ``Unavailable(reason)``; callers never assume the
capability exists. The handle turns one recorded utterance (WAV bytes from the
browser) into a single final transcript. Recognition is single-shot: no
continuous listening and no interim results.
"""

from __future__ import annotations

import importlib.util
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

logger = logging.getLogger(__name__)

UNAVAILABLE_NOTE = (
    "Voice input is not available in this browser. You can type your symptoms instead."
)


class VoiceErrorKind(str, Enum):
    NO_SPEECH = "no-speech"
    LANGUAGE_NOT_SUPPORTED = "language-not-supported"
    PERMISSION_DENIED = "not-allowed"
    OTHER = "other"


VOICE_ERROR_MESSAGES = {
    VoiceErrorKind.NO_SPEECH: "No speech was detected. Please try again.",
    VoiceErrorKind.LANGUAGE_NOT_SUPPORTED: "The selected language is not supported for voice input.",
    VoiceErrorKind.PERMISSION_DENIED: (
        "Microphone access was denied. Please allow microphone access "
        "in your browser settings to use voice input."
    ),
    VoiceErrorKind.OTHER: "Voice input failed. Please try again or type your symptoms.",
}


class VoiceInputError(Exception):
    def __init__(self, kind: VoiceErrorKind, detail: str = ""):
        super().__init__(detail or VOICE_ERROR_MESSAGES[kind])
        self.kind = kind
        self.detail = detail

    @property
    def message(self) -> str:
        return VOICE_ERROR_MESSAGES[self.kind]


@dataclass(frozen=True)
class VoiceSettings:
    language: str = "en-US"


def classify_voice_error(exc: BaseException) -> VoiceErrorKind:
    import speech_recognition as sr

    if isinstance(exc, VoiceInputError):
        return exc.kind
    if isinstance(exc, (sr.UnknownValueError, sr.WaitTimeoutError)):
        return VoiceErrorKind.NO_SPEECH
    if isinstance(exc, PermissionError):
        return VoiceErrorKind.PERMISSION_DENIED
    if isinstance(exc, sr.RequestError):
        text = str(exc).lower()
        # the web recognizer answers an unknown language code with HTTP 400
        if "bad request" in text or "language" in text:
            return VoiceErrorKind.LANGUAGE_NOT_SUPPORTED
    return VoiceErrorKind.OTHER


class SpeechTranscriber:
    """Wraps a ``speech_recognition.Recognizer`` for single-utterance dictation."""

    def __init__(self, settings: VoiceSettings | None = None) -> None:
        import speech_recognition as sr

        self.settings = settings or VoiceSettings()
        self.recognizer = sr.Recognizer()

    def _load_audio(self, audio_bytes: bytes):
        import speech_recognition as sr

        with sr.AudioFile(io.BytesIO(audio_bytes)) as source:
            return self.recognizer.record(source)

    def transcribe(self, audio_bytes: bytes) -> str:
        """
        Return the final transcript for one recording.

        Raises:
            VoiceInputError: with the kind matching the failure.
        """
        if not audio_bytes:
            raise VoiceInputError(VoiceErrorKind.NO_SPEECH, "empty recording")
        try:
            audio = self._load_audio(audio_bytes)
            text = self.recognizer.recognize_google(audio, language=self.settings.language)
        except Exception as exc:
            kind = classify_voice_error(exc)
            logger.warning("Voice recognition failed (%s): %s", kind.value, exc)
            raise VoiceInputError(kind, str(exc)) from exc
        text = (text or "").strip()
        if not text:
            raise VoiceInputError(VoiceErrorKind.NO_SPEECH, "empty transcript")
        return text


@dataclass(frozen=True)
class Available:
    handle: SpeechTranscriber


@dataclass(frozen=True)
class Unavailable:
    reason: str = UNAVAILABLE_NOTE


VoiceCapability = Union[Available, Unavailable]


def probe_voice_capability(audio_capture_supported: bool,
                           settings: VoiceSettings | None = None) -> VoiceCapability:
    if not audio_capture_supported:
        logger.info("Voice input disabled: UI cannot capture audio")
        return Unavailable()
    if importlib.util.find_spec("speech_recognition") is None:
        logger.info("Voice input disabled: SpeechRecognition is not installed")
        return Unavailable()
    return Available(SpeechTranscriber(settings))


def append_transcript(existing: str, transcript: str) -> str:
    transcript = transcript.strip()
    if not transcript:
        return existing
    if not existing:
        return transcript
    sep = "" if existing.endswith((" ", "\n")) else " "
    return f"{existing}{sep}{transcript}"
