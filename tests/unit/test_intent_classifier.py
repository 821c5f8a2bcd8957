"""Unit tests for IntentClassifier."""

import pytest

from reminder_engine.application.services.intent_classifier import (
    IntentClassifier,
    KeywordRule,
    normalize_text,
)
from reminder_engine.domain.value_objects.intent import MessageIntent


@pytest.fixture
def classifier():
    return IntentClassifier()


class TestClassify:
    """Tests for the default Spanish/Portuguese rules."""

    @pytest.mark.parametrize(
        "text",
        [
            "Sí", "si", "SI!!", "CONFIRMO", "Confirmado, gracias", "ok", "Dale",
            "Ahí estaré", "Asisto", "✅", "👍", "Sim",
        ],
    )
    def test_confirmations(self, classifier, text):
        assert classifier.classify(text).intent == MessageIntent.CONFIRMED

    @pytest.mark.parametrize(
        "text",
        [
            "No puedo ese día",
            "Quiero reagendar",
            "¿Puedo cambiar el horario?",
            "Necesito otra fecha",
            "no voy a poder",
            "Não posso amanhã",
            "No",
            "NO",
            "Imposible",
            "Impossível",
            "Estoy ocupada ese día",
            "Tengo un conflicto de horario",
            "No estoy seguro",
        ],
    )
    def test_reschedule_requests(self, classifier, text):
        result = classifier.classify(text)
        assert result.intent == MessageIntent.RESCHEDULE_REQUESTED
        assert result.rule == "reschedule"

    @pytest.mark.parametrize("text", ["Quiero cancelar", "Anulo el turno"])
    def test_cancellations_route_to_reschedule(self, classifier, text):
        result = classifier.classify(text)
        assert result.intent == MessageIntent.RESCHEDULE_REQUESTED
        assert result.rule == "cancel"

    @pytest.mark.parametrize("text", ["Hola, gracias", "¿Dónde queda la clínica?", "", "   ", None])
    def test_unrecognized(self, classifier, text):
        result = classifier.classify(text)
        assert result.intent == MessageIntent.UNRECOGNIZED
        assert result.is_recognized is False

    def test_reschedule_wins_over_confirm(self, classifier):
        result = classifier.classify("Sí, pero otro día")
        assert result.intent == MessageIntent.RESCHEDULE_REQUESTED
        assert result.matched_keyword == "otro dia"

    def test_negative_beats_confirmation_keyword(self, classifier):
        result = classifier.classify("No estoy seguro")
        assert result.intent == MessageIntent.RESCHEDULE_REQUESTED
        assert result.matched_keyword == "no"

        assert classifier.classify("Mañana no puedo").matched_keyword == "no puedo"

    def test_keyword_inside_word_does_not_match(self, classifier):
        assert classifier.classify("Voy a asistir").intent == MessageIntent.CONFIRMED
        assert classifier.classify("asistir").intent == MessageIntent.UNRECOGNIZED

    def test_matched_keyword_is_reported(self, classifier):
        result = classifier.classify("¡Confirmo!")
        assert result.matched_keyword == "confirmo"
        assert result.rule == "confirm"


class TestCustomRules:
    def test_priority_order(self):
        rules = [
            KeywordRule(name="low", intent=MessageIntent.CONFIRMED, priority=1, keywords=["turno"]),
            KeywordRule(name="high", intent=MessageIntent.RESCHEDULE_REQUESTED, priority=10, keywords=["turno"]),
        ]
        classifier = IntentClassifier(rules)

        assert classifier.list_rules() == ["high", "low"]
        assert classifier.classify("mi turno").rule == "high"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("  Sí,   CONFIRMO!! ", "si confirmo"),
        ("¿Otro día?", "otro dia"),
        ("Não posso", "nao posso"),
    ],
)
def test_normalize_text(raw, expected):
    assert normalize_text(raw) == expected
