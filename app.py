# app.py: Flask backend exposing the two AI operations
import logging

from flask import Flask, jsonify, request
from pydantic import ValidationError

import llm_wrapper
from config import configure_logging, get_settings
from llm_wrapper import LLMError
from pydantic_models import (
    LocationForm,
    RemedyRequest,
    SymptomAnalysisRequest,
    SymptomForm,
    field_errors,
)
from sequencer import ANALYSIS_FAILED, REMEDIES_FAILED

logger = logging.getLogger(__name__)

app = Flask(__name__)


def _bad_request(message, fields=None):
    return jsonify({"error": message, "fields": fields or {}}), 400


@app.route("/", methods=["GET"])
def index():
    return ("Home Remedy Symptom Checker: POST /api/analyze-symptoms with {'symptoms':'...'}, "
            "then POST /api/remedy-recommendation with {'symptoms','location','possibleConditions'}")


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "provider": get_settings().provider})


@app.route("/api/analyze-symptoms", methods=["POST"])
def analyze_symptoms():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict) or "symptoms" not in data:
        return _bad_request("Please POST JSON with 'symptoms' field.")
    try:
        form = SymptomForm(symptoms=data["symptoms"])
        req = SymptomAnalysisRequest(symptoms=form.symptoms)
    except ValidationError as exc:
        return _bad_request("Invalid symptoms.", field_errors(exc))

    try:
        result = llm_wrapper.analyze_symptoms(req.symptoms)
    except LLMError:
        logger.exception("Symptom analysis error")
        return jsonify({"error": ANALYSIS_FAILED}), 502
    return jsonify(result.to_wire())


@app.route("/api/remedy-recommendation", methods=["POST"])
def remedy_recommendation():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return _bad_request("Please POST JSON with 'symptoms', 'location' and 'possibleConditions'.")
    try:
        req = RemedyRequest.model_validate(data)
        LocationForm(location=req.location)
    except ValidationError as exc:
        return _bad_request("Invalid remedy request.", field_errors(exc))

    try:
        result = llm_wrapper.remedy_recommendation(req)
    except LLMError:
        logger.exception("Remedy recommendation error")
        return jsonify({"error": REMEDIES_FAILED}), 502
    return jsonify(result.to_wire())


if __name__ == "__main__":
    configure_logging()
    app.run(host="0.0.0.0", port=5000)
