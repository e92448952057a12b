import json
from types import SimpleNamespace

import openai
import pytest

import llm_wrapper
from config import Settings
from llm_wrapper import (
    ANALYSIS_FLOW,
    ANALYSIS_PROMPT_TEMPLATE,
    REMEDY_PROMPT_TEMPLATE,
    LLMOutputError,
    LLMUnavailableError,
    analyze_symptoms,
    call_openai_llm,
    parse_and_validate_json,
    remedy_recommendation,
    render_prompt,
)
from pydantic_models import RemedyRequest, RemedyResponse, SymptomAnalysisResponse


class FakeOpenAI:
    """Stands in for openai.OpenAI; records the last request."""

    reply = '{"conditions": []}'
    error = None
    last_kwargs = None

    def __init__(self, **kwargs):
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        FakeOpenAI.last_kwargs = kwargs
        if FakeOpenAI.error is not None:
            raise FakeOpenAI.error
        message = SimpleNamespace(content=FakeOpenAI.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_openai(monkeypatch):
    FakeOpenAI.reply = '{"conditions": []}'
    FakeOpenAI.error = None
    FakeOpenAI.last_kwargs = None
    monkeypatch.setattr(llm_wrapper.openai, "OpenAI", FakeOpenAI)
    return FakeOpenAI


def test_render_prompt_substitutes_once():
    out = render_prompt("S: {symptoms} L: {location}", {"symptoms": "pain {location}", "location": "Oslo"})
    assert out == "S: pain {location} L: Oslo"


def test_templates_keep_json_examples():
    text = render_prompt(REMEDY_PROMPT_TEMPLATE, {
        "symptoms": "cough", "location": "Lima", "possibleConditions": "Cold, Flu",
    })
    assert "Possible Conditions: Cold, Flu" in text
    assert "{location}" not in text
    assert '"remedies"' in text
    assert "Symptoms: fever" in render_prompt(ANALYSIS_PROMPT_TEMPLATE, {"symptoms": "fever"})


def test_parse_handles_code_fences_and_trailing_commas():
    raw = '```json\n{"conditions": [{"condition": "Flu", "likelihood": 0.4},]}\n```'
    result = parse_and_validate_json(raw, SymptomAnalysisResponse)
    assert result.condition_names() == ["Flu"]


def test_parse_finds_json_inside_prose():
    raw = 'Sure! Here you go: {"remedies": [{"name": "Tea", "explanation": "Hot."}]} Stay well.'
    result = parse_and_validate_json(raw, RemedyResponse)
    assert result.remedies[0].name == "Tea"


def test_parse_keeps_braces_inside_strings():
    raw = '{"remedies": [{"name": "Tea", "explanation": "Close the lid :} and steep"}]}'
    result = parse_and_validate_json(raw, RemedyResponse)
    assert result.remedies[0].explanation == "Close the lid :} and steep"

    wrapped = 'Here it is: {"remedies": [{"name": "Soup {hot}", "explanation": "Sip { slowly"}]} Get well.'
    assert parse_and_validate_json(wrapped, RemedyResponse).remedies[0].name == "Soup {hot}"


def test_parse_keeps_apostrophes():
    raw = '{"remedies": [{"name": "Grandma\'s broth", "explanation": "It\'s warm."},]}'
    result = parse_and_validate_json(raw, RemedyResponse)
    assert result.remedies[0].name == "Grandma's broth"
    assert result.remedies[0].explanation == "It's warm."


def test_parse_wraps_bare_array_when_asked():
    raw = '[{"condition": "Cold", "likelihood": 0.9}]'
    result = parse_and_validate_json(raw, SymptomAnalysisResponse, list_key="conditions")
    assert result.conditions[0].likelihood == 0.9
    with pytest.raises(LLMOutputError):
        parse_and_validate_json(raw, SymptomAnalysisResponse)


@pytest.mark.parametrize("raw", ["", "   ", "no json here", '{"conditions": "nope"}', '{"remedies": [{"name": "x"}]}'])
def test_parse_rejects_missing_or_malformed_output(raw):
    model = RemedyResponse if "remedies" in raw else SymptomAnalysisResponse
    with pytest.raises(LLMOutputError):
        parse_and_validate_json(raw, model)


def test_missing_api_key_is_unavailable(tmp_path):
    settings = Settings(openai_api_key="", raw_log_path=str(tmp_path / "raw.txt"))
    with pytest.raises(LLMUnavailableError):
        analyze_symptoms("I have a headache", settings)


def test_analyze_symptoms_calls_openai_in_json_mode(fake_openai, settings):
    fake_openai.reply = json.dumps({"conditions": [
        {"condition": "Common Cold", "likelihood": 0.7},
        {"condition": "Flu", "likelihood": 0.3},
    ]})
    result = analyze_symptoms("I have a headache, fever, and a runny nose", settings)

    assert result.condition_names() == ["Common Cold", "Flu"]
    kwargs = fake_openai.last_kwargs
    assert kwargs["model"] == settings.openai_model
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "I have a headache, fever, and a runny nose" in kwargs["messages"][1]["content"]


def test_remedy_prompt_receives_request_fields(fake_openai, settings):
    fake_openai.reply = '{"remedies": [{"name": "Tea", "explanation": "Hot."}]}'
    req = RemedyRequest(symptoms="cough", location="New York", possible_conditions="Common Cold, Flu")
    result = remedy_recommendation(req, settings)

    assert result.remedies[0].name == "Tea"
    assert result.optional_ingredients is None
    prompt = fake_openai.last_kwargs["messages"][1]["content"]
    assert "Location: New York" in prompt
    assert "Possible Conditions: Common Cold, Flu" in prompt


def test_empty_reply_fails(fake_openai, settings):
    fake_openai.reply = None
    with pytest.raises(LLMOutputError):
        analyze_symptoms("I have a headache", settings)


def test_provider_error_is_wrapped_and_logged(fake_openai, settings, tmp_path):
    fake_openai.error = openai.OpenAIError("connection reset")
    with pytest.raises(LLMUnavailableError, match="connection reset"):
        analyze_symptoms("I have a headache", settings)
    log = (tmp_path / "raw.txt").read_text(encoding="utf-8")
    assert "OPENAI_ERROR symptom_analysis" in log


def test_raw_replies_are_logged(fake_openai, settings, tmp_path):
    call_openai_llm(ANALYSIS_FLOW, ANALYSIS_PROMPT_TEMPLATE, {"symptoms": "x"}, settings)
    log = (tmp_path / "raw.txt").read_text(encoding="utf-8")
    assert "----CALL symptom_analysis----" in log
    assert '{"conditions": []}' in log


def test_mock_provider_needs_no_key(tmp_path):
    settings = Settings(use_mock_llm=True, raw_log_path=str(tmp_path / "raw.txt"))
    analysis = analyze_symptoms("I have a headache", settings)
    assert analysis.condition_names() == ["Common Cold", "Flu"]

    req = RemedyRequest(symptoms="cough", location="Lima", possible_conditions="Common Cold, Flu")
    remedies = remedy_recommendation(req, settings)
    assert len(remedies.remedies) == 3
    assert "Lima" in remedies.optional_ingredients[0].availability_note
