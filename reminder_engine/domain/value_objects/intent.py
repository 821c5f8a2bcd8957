"""Inbound message intent."""

from dataclasses import dataclass
from enum import Enum


class MessageIntent(str, Enum):
    CONFIRMED = "confirmed"
    RESCHEDULE_REQUESTED = "reschedule_requested"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ClassificationResult:
    """Resultado de clasificar un mensaje entrante.

    Attributes:
        intent: Intención detectada
        matched_keyword: Palabra clave (normalizada) que decidió la intención
        rule: Grupo de palabras clave que coincidió ("reschedule", "cancel", "confirm")
    """

    intent: MessageIntent
    matched_keyword: str | None = None
    rule: str | None = None

    @property
    def is_recognized(self) -> bool:
        return self.intent != MessageIntent.UNRECOGNIZED
