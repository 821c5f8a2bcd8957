"""Reminder message catalogue.

Spanish (Paraguay) texts with ``str.format`` placeholders. The tone escalates
from educational (two days before) to firm (the afternoon before) and turns
motivational once the patient confirmed.
"""

import string
from dataclasses import dataclass
from typing import Any

from reminder_engine.core.domain.exceptions import MissingVariable


@dataclass(frozen=True)
class ReminderTemplate:
    """Plantilla de recordatorio.

    Attributes:
        name: Identificador estable (se guarda en el log de mensajes)
        body: Texto con placeholders {patient_name}, {appointment_date}, ...
    """

    name: str
    body: str

    @property
    def placeholders(self) -> tuple[str, ...]:
        fields = []
        for _, field_name, _, _ in string.Formatter().parse(self.body):
            if field_name and field_name not in fields:
                fields.append(field_name)
        return tuple(fields)

    def render(self, variables: dict[str, Any]) -> str:
        """Reemplazar placeholders.

        Raises:
            MissingVariable: Si un placeholder no tiene valor (ausente o None).
        """
        values = {}
        for name in self.placeholders:
            value = variables.get(name)
            if value is None or value == "":
                raise MissingVariable(name, self.name)
            values[name] = value
        return self.body.format(**values)


# ---------------------------------------------------------------------------
# 2 days before: educational, same family for every patient
# ---------------------------------------------------------------------------

REMINDER_2DAYS_10H = ReminderTemplate(
    name="reminder_2days_10h",
    body=(
        "{greeting} {patient_name}! 😊\n\n"
        "Te escribimos de {clinic_name} para recordarte tu cita del {appointment_date} "
        "a las {appointment_time}.\n\n"
        "Asistir a tus controles mantiene tu salud bucal en óptimas condiciones. 🦷✨\n\n"
        'Si todavía no confirmaste, respondé "Sí". ¡Te esperamos! 💙'
    ),
)

REMINDER_2DAYS_15H = ReminderTemplate(
    name="reminder_2days_15h",
    body=(
        "{greeting} {patient_name}! 🌟\n\n"
        "Tu cita en {clinic_name} es el {appointment_date} a las {appointment_time}.\n\n"
        "Completar tu tratamiento previene problemas mayores y cuida tu sonrisa. 😊\n\n"
        'Si aún no lo hiciste, confirmanos respondiendo "Sí". ¡Gracias! 💚'
    ),
)

REMINDER_2DAYS_19H = ReminderTemplate(
    name="reminder_2days_19h",
    body=(
        "{greeting} {patient_name}! 🌙\n\n"
        "La doctora de {clinic_name} te espera el {appointment_date} a las {appointment_time}.\n\n"
        'Tu salud bucal lo necesita. Si todavía no confirmaste, respondé "Sí". 💙'
    ),
)

# ---------------------------------------------------------------------------
# 1 day before, not confirmed: escalating firmness 1-5
# ---------------------------------------------------------------------------

REMINDER_1DAY_07H = ReminderTemplate(
    name="reminder_1day_07h",
    body=(
        "{greeting} {patient_name}! ⏰\n\n"
        "Mañana {appointment_date} a las {appointment_time} tenés tu cita en {clinic_name}.\n\n"
        "Todavía no recibimos tu confirmación y necesitamos reservar tu espacio.\n\n"
        'Respondé "Sí" para confirmar. ¡Gracias! 🙏'
    ),
)

REMINDER_1DAY_08H = ReminderTemplate(
    name="reminder_1day_08h",
    body=(
        "{patient_name}, tu cita es mañana {appointment_date} a las {appointment_time} "
        "en {clinic_name}. ⏰\n\n"
        'Necesitamos tu confirmación para asegurar tu lugar. Respondé "Sí". 💙'
    ),
)

REMINDER_1DAY_10H = ReminderTemplate(
    name="reminder_1day_10h",
    body=(
        "{patient_name}, ¿confirmás tu cita de mañana {appointment_date} a las "
        "{appointment_time} en {clinic_name}? 🦷\n\n"
        'Respondé "Sí" para confirmar.'
    ),
)

REMINDER_1DAY_12H = ReminderTemplate(
    name="reminder_1day_12h",
    body=(
        "{patient_name}, la doctora te espera mañana {appointment_date} a las "
        "{appointment_time} en {clinic_name}. ⏰\n\n"
        'Sin confirmación no podemos garantizar tu horario. Respondé "Sí".'
    ),
)

REMINDER_1DAY_14H = ReminderTemplate(
    name="reminder_1day_14h",
    body=(
        "{patient_name}, tu cita es mañana {appointment_date} a las {appointment_time}. 🦷\n\n"
        'Confirmá ahora respondiendo "Sí" para mantener tu lugar en {clinic_name}.'
    ),
)

REMINDER_1DAY_16H = ReminderTemplate(
    name="reminder_1day_16h",
    body=(
        "{patient_name}, mañana {appointment_date} a las {appointment_time} tenés cita "
        "en {clinic_name} y seguimos sin tu confirmación. ⏰\n\n"
        '¿Confirmás? Respondé "Sí".'
    ),
)

REMINDER_1DAY_18H = ReminderTemplate(
    name="reminder_1day_18h",
    body=(
        "{patient_name}, última oportunidad para confirmar tu cita de mañana "
        "{appointment_date} a las {appointment_time} en {clinic_name}. 🙏\n\n"
        'Respondé "Sí" ahora o escribinos si necesitás otro horario.'
    ),
)

# ---------------------------------------------------------------------------
# Same day
# ---------------------------------------------------------------------------

REMINDER_SAME_DAY_07H = ReminderTemplate(
    name="reminder_same_day_07h",
    body=(
        "{greeting} {patient_name}! 🌅\n\n"
        "HOY {appointment_date} a las {appointment_time} tenés tu cita en {clinic_name}.\n\n"
        'Todavía no recibimos tu confirmación. Respondé "Sí" si vas a asistir. 💙'
    ),
)

REMINDER_SAME_DAY_2H_BEFORE = ReminderTemplate(
    name="reminder_same_day_2h_before",
    body=(
        "{patient_name}, en 2 horas ({appointment_time}) tenés tu cita en {clinic_name}. ⏰\n\n"
        'Es tu última oportunidad para confirmar. Respondé "Sí" si venís. 🦷'
    ),
)

# ---------------------------------------------------------------------------
# Confirmed patients
# ---------------------------------------------------------------------------

REMINDER_CONFIRMED_REINFORCEMENT = ReminderTemplate(
    name="reminder_confirmed_reinforcement",
    body=(
        "{greeting} {patient_name}! 😊\n\n"
        "¡Gracias por confirmar tu cita del {appointment_date} a las {appointment_time} "
        "en {clinic_name}!\n\n"
        "Te esperamos puntualmente. 🦷✨"
    ),
)

REMINDER_CONFIRMED_SAME_DAY = ReminderTemplate(
    name="reminder_confirmed_same_day",
    body=(
        "{greeting} {patient_name}! 🌅\n\n"
        "¡HOY es tu cita! {appointment_date} a las {appointment_time} en {clinic_name}.\n\n"
        "Vamos a cuidar tu sonrisa. ¡Nos vemos pronto! 💙"
    ),
)

# ---------------------------------------------------------------------------
# Reschedule hand-off
# ---------------------------------------------------------------------------

RESCHEDULE_ACK = ReminderTemplate(
    name="reschedule_ack",
    body="La secretaria te escribe ahora para reagendarte. ¡Gracias {patient_name}! 😊",
)

RESCHEDULE_CORPORATE_NOTICE = ReminderTemplate(
    name="reschedule_corporate_notice",
    body=(
        "🔔 *SOLICITUD DE REAGENDAMIENTO*\n\n"
        "👤 Paciente: {patient_name}\n"
        "📱 Teléfono: {patient_phone}\n"
        "💬 WhatsApp: {whatsapp_link}\n"
        "📅 Cita original: {appointment_date} a las {appointment_time}\n\n"
        "Mensaje del paciente:\n"
        '"{detected_message}"'
    ),
)

# ---------------------------------------------------------------------------
# Unconfirmed appointment about to start
# ---------------------------------------------------------------------------

NO_CONFIRMATION_NOTICE = ReminderTemplate(
    name="no_confirmation_notice",
    body=(
        "{severity_label}: *CITA SIN CONFIRMAR*\n\n"
        "👤 Paciente: {patient_name}\n"
        "📱 Teléfono: {patient_phone}\n"
        "💬 WhatsApp: {whatsapp_link}\n"
        "🕐 Hora de la cita: {appointment_time}\n"
        "⏳ Faltan {minutes_until} minutos\n"
        "📋 Estado: {status_label}\n\n"
        "{recommended_action}"
    ),
)
