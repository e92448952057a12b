"""
LLM boundary for the symptom checker.

Provides:
- render_prompt: substitutes {placeholders} in a prompt template
- call_openai_llm: calls OpenAI (or the mock when MOCK_LLM is set); logs raw outputs
- parse_and_validate_json: robust JSON extraction + pydantic validation
- analyze_symptoms / remedy_recommendation: the two AI operations

A call that cannot produce schema-valid output raises an LLMError subclass.
Nothing here fabricates a response on failure.
"""

import json
import logging
import os
import re
from typing import Dict, Optional, Type, TypeVar

import openai
from pydantic import BaseModel, ValidationError

from config import Settings, get_settings
from pydantic_models import RemedyRequest, RemedyResponse, SymptomAnalysisResponse

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ANALYSIS_FLOW = "symptom_analysis"
REMEDY_FLOW = "remedy_recommendation"

SYSTEM_MSG = (
    "You are a careful educational health assistant. "
    "Output ONLY valid JSON with no extra text."
)

ANALYSIS_PROMPT_TEMPLATE = """
You are a medical expert specializing in diagnosing possible conditions based on a user's symptoms.

You will receive a description of symptoms from the user and return a list of possible medical conditions, ranked by likelihood (most likely first).

Symptoms: {symptoms}

Output ONLY a JSON object of this shape (no commentary, no code fences):
{
  "conditions": [
    {"condition": "The name of the possible medical condition", "likelihood": 0.0}
  ]
}
"likelihood" is a number between 0 and 1 indicating the likelihood of the condition.
"""

REMEDY_PROMPT_TEMPLATE = """
You are an expert in recommending home remedies based on symptoms, location, and possible conditions. You have access to both traditional and modern medical knowledge.

Symptoms: {symptoms}
Location: {location}
Possible Conditions: {possibleConditions}

Recommend home remedies that are suitable for the user's location and symptoms, drawing from both traditional and modern medical knowledge.
List the most effective remedy first.
Consider the availability of ingredients in the specified location when relevant for a remedy.
Provide a detailed explanation of each recommended remedy, including its purpose, how to prepare it, and how it addresses the symptoms and possible conditions.
Ensure the remedies are safe and effective.
You may also suggest optional ingredients that could enhance the remedies, with a short reasoning and a note on availability in {location}.

Output ONLY a JSON object of this shape (no commentary, no code fences):
{
  "remedies": [
    {"name": "Name of the remedy", "explanation": "Purpose, preparation, usage instructions, and notes on ingredient availability for the location: {location}."}
  ],
  "optionalIngredients": [
    {"name": "Ingredient name", "reasoning": "Why it helps", "availabilityNote": "Where to find it near {location} (optional)"}
  ]
}
"""

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class LLMError(RuntimeError):
    """Base class for failures of an AI call."""


class LLMUnavailableError(LLMError):
    """Raised when the provider cannot be reached or is not configured."""


class LLMOutputError(LLMError):
    """Raised when the provider reply is missing or does not match the schema."""


def render_prompt(template: str, values: Dict[str, str]) -> str:
    # single pass, so user text containing "{location}" etc. is left alone
    return _PLACEHOLDER.sub(lambda m: str(values.get(m.group(1), m.group(0))), template)


# Mock LLM: returns well-formed JSON strings for offline demos (MOCK_LLM=1)
def mock_llm(flow: str, values: Dict[str, str]) -> str:
    if flow == ANALYSIS_FLOW:
        out = {
            "conditions": [
                {"condition": "Common Cold", "likelihood": 0.7},
                {"condition": "Flu", "likelihood": 0.3},
            ]
        }
    elif flow == REMEDY_FLOW:
        location = values.get("location", "your area")
        out = {
            "remedies": [
                {"name": "Ginger and honey tea",
                 "explanation": "Steep fresh ginger slices in hot water for 10 minutes, add a spoon of honey. "
                                f"Soothes the throat and helps with congestion. Ginger is widely sold in {location}."},
                {"name": "Steam inhalation",
                 "explanation": "Breathe steam from a bowl of hot water under a towel for 5-10 minutes to loosen congestion."},
                {"name": "Rest and fluids",
                 "explanation": "Sleep well and drink water or clear broth through the day to support recovery."},
            ],
            "optionalIngredients": [
                {"name": "Lemon", "reasoning": "Adds vitamin C and flavour to the tea.",
                 "availabilityNote": f"Common in grocery stores in {location}."}
            ],
        }
    else:
        raise ValueError(f"Unknown flow '{flow}'")
    return json.dumps(out, ensure_ascii=False)


def _ensure_log_dir(path: str):
    d = os.path.dirname(path)
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _log_raw(settings: Settings, tag: str, text: str):
    try:
        _ensure_log_dir(settings.raw_log_path)
        with open(settings.raw_log_path, "a", encoding="utf-8") as f:
            f.write(f"----{tag}----\n")
            f.write(text + "\n")
    except OSError as exc:
        logger.warning("Could not write raw LLM log '%s': %s", settings.raw_log_path, exc)


def _client(settings: Settings) -> openai.OpenAI:
    if not settings.openai_api_key:
        raise LLMUnavailableError("OPENAI_API_KEY is not configured")
    return openai.OpenAI(api_key=settings.openai_api_key, timeout=settings.openai_timeout)


def call_openai_llm(flow: str, template: str, values: Dict[str, str],
                    settings: Optional[Settings] = None) -> str:
    """
    Render the prompt and return the raw reply text from OpenAI (or the mock).
    Always appends the raw output, or the provider error, to the raw log.
    """
    settings = settings or get_settings()

    if settings.use_mock_llm:
        raw = mock_llm(flow, values)
        _log_raw(settings, f"MOCK CALL {flow}", raw)
        return raw

    user_msg = render_prompt(template, values)
    client = _client(settings)
    try:
        resp = client.chat.completions.create(
            model=settings.openai_model,
            messages=[{"role": "system", "content": SYSTEM_MSG},
                      {"role": "user", "content": user_msg}],
            temperature=0.0,
            response_format={"type": "json_object"},
        )
    except openai.OpenAIError as exc:
        _log_raw(settings, f"OPENAI_ERROR {flow}", f"{type(exc).__name__}: {exc}")
        if isinstance(exc, openai.RateLimitError):
            raise LLMUnavailableError(f"OpenAI rate limit exceeded: {exc}") from exc
        if isinstance(exc, openai.AuthenticationError):
            raise LLMUnavailableError(f"Invalid OpenAI API key: {exc}") from exc
        if isinstance(exc, openai.APITimeoutError):
            raise LLMUnavailableError(
                f"OpenAI request timed out after {settings.openai_timeout}s; "
                "consider raising OPENAI_TIMEOUT."
            ) from exc
        raise LLMUnavailableError(f"OpenAI API error: {exc}") from exc

    text = resp.choices[0].message.content if resp.choices else None
    _log_raw(settings, f"CALL {flow}", text or "<empty>")
    if not text or not text.strip():
        raise LLMOutputError(f"Empty reply from model for {flow}")
    return text


def _scan_json(text: str):
    """Return (value, span) for the longest JSON value that starts at a '{' or '['."""
    decoder = json.JSONDecoder()
    best, best_span, pos = None, 0, 0
    for m in re.finditer(r"[{\[]", text):
        if m.start() < pos:
            continue  # inside a value already decoded
        try:
            value, end = decoder.raw_decode(text, m.start())
        except json.JSONDecodeError:
            continue
        if end - m.start() > best_span:
            best, best_span = value, end - m.start()
        pos = end
    return best, best_span


def extract_json(raw_text: str):
    """Load the JSON object or array in raw_text, tolerating fences and surrounding prose."""
    raw = raw_text.strip()
    # strip triple-backtick fences if present
    if raw.startswith("```") and raw.endswith("```"):
        raw = "\n".join([l for l in raw.splitlines() if not l.strip().startswith("```")]).strip()

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass

    value, span = _scan_json(raw)
    repaired = re.sub(r",\s*([}\]])", r"\1", raw)  # remove trailing commas
    if repaired != raw:
        fixed_value, fixed_span = _scan_json(repaired)
        if fixed_span > span:
            value, span = fixed_value, fixed_span
    if not span:
        raise ValueError("Could not locate JSON in LLM output")
    return value


def parse_and_validate_json(raw_text: str, model: Type[M], list_key: Optional[str] = None) -> M:
    """
    Extract JSON from raw_text and validate it against model.

    When list_key is given, a bare JSON array is accepted as the value of that key.
    """
    if not raw_text or not raw_text.strip():
        raise LLMOutputError("LLM returned no output")
    try:
        parsed = extract_json(raw_text)
    except ValueError as exc:  # JSONDecodeError is a ValueError
        raise LLMOutputError(f"Malformed JSON in LLM output: {exc}") from exc

    if isinstance(parsed, list) and list_key:
        logger.info("Wrapping bare JSON array as '%s'", list_key)
        parsed = {list_key: parsed}
    if not isinstance(parsed, dict):
        raise LLMOutputError(f"Expected a JSON object, got {type(parsed).__name__}")

    try:
        return model.model_validate(parsed)
    except ValidationError as exc:
        raise LLMOutputError(f"LLM output does not match {model.__name__}: {exc}") from exc


def analyze_symptoms(symptoms: str, settings: Optional[Settings] = None) -> SymptomAnalysisResponse:
    values = {"symptoms": symptoms}
    raw = call_openai_llm(ANALYSIS_FLOW, ANALYSIS_PROMPT_TEMPLATE, values, settings)
    result = parse_and_validate_json(raw, SymptomAnalysisResponse, list_key="conditions")
    logger.info("Symptom analysis returned %d condition(s)", len(result.conditions))
    return result


def remedy_recommendation(request: RemedyRequest, settings: Optional[Settings] = None) -> RemedyResponse:
    values = {
        "symptoms": request.symptoms,
        "location": request.location,
        "possibleConditions": request.possible_conditions,
    }
    raw = call_openai_llm(REMEDY_FLOW, REMEDY_PROMPT_TEMPLATE, values, settings)
    result = parse_and_validate_json(raw, RemedyResponse)
    logger.info("Remedy recommendation returned %d remedy(ies)", len(result.remedies))
    return result
