import pytest

from config import Settings, get_settings
from pydantic_models import (
    ConditionLikelihood,
    Remedy,
    RemedyResponse,
    SymptomAnalysisResponse,
)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path):
    return Settings(openai_api_key="sk-test", raw_log_path=str(tmp_path / "raw.txt"))


@pytest.fixture
def cold_analysis():
    return SymptomAnalysisResponse(conditions=[
        ConditionLikelihood(condition="Common Cold", likelihood=0.7),
        ConditionLikelihood(condition="Flu", likelihood=0.3),
    ])


@pytest.fixture
def three_remedies():
    return RemedyResponse(remedies=[
        Remedy(name="Ginger tea", explanation="Steep ginger."),
        Remedy(name="Steam", explanation="Inhale steam."),
        Remedy(name="Rest", explanation="Sleep well."),
    ])
