# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Table-driven classifier for inbound patient replies.
# ============================================================================
"""Intent Classifier.

Maps a free-text WhatsApp reply to Confirmed, RescheduleRequested or
Unrecognized. Rules are checked in priority order (reschedule > cancel >
confirm), so "Sí, pero otro día" is a reschedule request and a bare
"No" or "No estoy seguro" never counts as a confirmation.

Keywords match whole words or phrases after normalization, so "si" inside
"asistir" never counts as a confirmation.

Usage:
    classifier = IntentClassifier()
    result = classifier.classify("Sí, confirmo!")
    result.intent  # MessageIntent.CONFIRMED
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field

from ...domain.value_objects.intent import ClassificationResult, MessageIntent

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace.

    Emoji survive (they are symbols, not punctuation).
    """
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    text = "".join(" " if unicodedata.category(c).startswith("P") else c for c in text)
    return " ".join(text.split())


@dataclass
class KeywordRule:
    """A group of keywords that yields one intent.

    Attributes:
        name: Rule name reported in ClassificationResult.rule.
        intent: Intent returned when any keyword matches.
        priority: Higher is checked first.
        keywords: Words or phrases (accents and case are normalized).
        symbols: Emoji matched by containment.
    """

    name: str
    intent: MessageIntent
    priority: int
    keywords: list[str]
    symbols: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        words = sorted({normalize_text(k) for k in self.keywords if normalize_text(k)}, key=len, reverse=True)
        alternation = "|".join(re.escape(w) for w in words)
        self._pattern = re.compile(rf"(?<!\w)(?:{alternation})(?!\w)") if words else None
        self._symbols = [normalize_text(s) for s in self.symbols]

    def match(self, normalized: str) -> str | None:
        """Return the matched keyword, or None."""
        if self._pattern is not None:
            found = self._pattern.search(normalized)
            if found:
                return found.group(0)
        for symbol in self._symbols:
            if symbol and symbol in normalized:
                return symbol
        return None


RESCHEDULE_RULE = KeywordRule(
    name="reschedule",
    intent=MessageIntent.RESCHEDULE_REQUESTED,
    priority=100,
    keywords=[
        # Spanish
        "reagendar", "reagenda", "reagendo", "reagendame", "reagendamiento",
        "reprogramar", "reprograma", "reprogramo",
        "cambiar", "cambio", "cambiame",
        "otro día", "otra fecha", "otra hora", "otro horario", "otro turno",
        "mover", "posponer", "aplazar", "postergar", "modificar",
        "no puedo", "no podré", "no voy", "no voy a poder", "no iré",
        "no consigo", "no me va", "no me queda", "no confirmo", "no asistiré",
        "no", "imposible", "ocupado", "ocupada", "conflicto", "problema",
        # Portuguese
        "não posso", "não vou", "não consigo", "impossível", "outro dia", "outra hora", "outro horário",
        "adiar", "remarcar", "desmarcar",
    ],
)

CANCEL_RULE = KeywordRule(
    name="cancel",
    intent=MessageIntent.RESCHEDULE_REQUESTED,
    priority=90,
    keywords=["cancelar", "cancela", "cancelo", "cancelación", "anular", "anula", "anulo"],
)

CONFIRM_RULE = KeywordRule(
    name="confirm",
    intent=MessageIntent.CONFIRMED,
    priority=50,
    keywords=[
        "sí", "si", "sim", "yes", "ok", "okay", "okey",
        "confirmo", "confirma", "confirmar", "confirmado", "confirmada", "confirmadísimo",
        "vale", "claro", "seguro", "de acuerdo", "dale", "listo", "perfecto",
        "voy", "asisto", "ahí estaré", "estaré", "allí estaré", "asistiré", "iré",
        "estarei", "vou",
    ],
    symbols=["✅", "👍", "✔", "👌"],
)

DEFAULT_RULES = [RESCHEDULE_RULE, CANCEL_RULE, CONFIRM_RULE]


class IntentClassifier:
    """Deterministic keyword classifier with explicit precedence."""

    def __init__(self, rules: list[KeywordRule] | None = None):
        self._rules = sorted(rules or DEFAULT_RULES, key=lambda r: r.priority, reverse=True)

    def classify(self, text: str | None) -> ClassificationResult:
        normalized = normalize_text(text or "")
        if not normalized:
            return ClassificationResult(MessageIntent.UNRECOGNIZED)

        for rule in self._rules:
            keyword = rule.match(normalized)
            if keyword is not None:
                logger.debug(f"Intent '{rule.intent.value}' by rule '{rule.name}' (keyword: {keyword!r})")
                return ClassificationResult(rule.intent, matched_keyword=keyword, rule=rule.name)

        return ClassificationResult(MessageIntent.UNRECOGNIZED)

    def list_rules(self) -> list[str]:
        return [rule.name for rule in self._rules]
