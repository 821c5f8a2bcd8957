from typing import Any

import pytz
from pydantic import Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración del motor de recordatorios utilizando Pydantic BaseSettings.
    Lee las variables de entorno y el archivo .env.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Clinic Reminder Engine"
    PROJECT_DESCRIPTION: str = "Recordatorios y confirmaciones de turnos por WhatsApp"
    VERSION: str = "0.1.0"

    # Application Settings
    DEBUG: bool = Field(False, description="Modo de depuración")
    ENVIRONMENT: str = Field("production", description="Entorno de ejecución")
    LOG_LEVEL: str = Field("INFO", description="Nivel de logging")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Orígenes permitidos para CORS")
    SENTRY_DSN: str | None = Field(None, description="DSN de Sentry para el seguimiento de errores")

    # Clinic Settings
    CLINIC_NAME: str = Field("Clínica Dental", description="Nombre de la clínica usado en los mensajes")
    CLINIC_TIMEZONE: str = Field("America/Asuncion", description="Zona horaria local de la clínica")
    DEFAULT_COUNTRY_CODE: str = Field("595", description="Código de país para normalizar teléfonos locales")
    CORPORATE_WHATSAPP_NUMBER: str | None = Field(
        None, description="Número corporativo que recibe las solicitudes de reagendamiento"
    )

    # Reminder Cadence Settings
    REMINDER_SCHEDULER_ENABLED: bool = Field(True, description="Habilitar el scheduler de recordatorios")
    REMINDER_CUTOFF_HOUR: int = Field(19, description="Hora local a partir de la cual no se envían mensajes")
    REMINDER_MAX_ATTEMPTS: int = Field(5, description="Máximo de recordatorios por turno")
    REMINDER_HISTORY_SIZE: int = Field(50, description="Cantidad de ejecuciones guardadas en el historial")

    # Secretary alerts for appointments about to start without confirmation
    NO_CONFIRMATION_ALERTS_ENABLED: bool = Field(True, description="Avisar a la secretaria de citas sin confirmar")
    NO_CONFIRMATION_WINDOW_MINUTES: int = Field(60, description="Minutos antes de la cita en que empieza el aviso")
    NO_CONFIRMATION_CRITICAL_MINUTES: int = Field(30, description="Minutos restantes para un aviso crítico")
    NO_CONFIRMATION_CHECK_INTERVAL_MINUTES: int = Field(10, description="Frecuencia del chequeo de citas sin confirmar")

    # Anti-block pacing (seconds between sends on the same channel)
    REMINDER_PACING_MIN_SECONDS: float = Field(3.0, description="Pausa mínima entre recordatorios")
    REMINDER_PACING_MAX_SECONDS: float = Field(5.0, description="Pausa máxima entre recordatorios")
    BULK_PACING_MIN_SECONDS: float = Field(30.0, description="Pausa mínima en envíos masivos manuales")
    BULK_PACING_MAX_SECONDS: float = Field(90.0, description="Pausa máxima en envíos masivos manuales")
    CONVERSATIONAL_PACING_MIN_SECONDS: float = Field(1.0, description="Pausa mínima en respuestas automáticas")
    CONVERSATIONAL_PACING_MAX_SECONDS: float = Field(3.0, description="Pausa máxima en respuestas automáticas")
    SEND_TIMEOUT_SECONDS: float = Field(20.0, description="Timeout de cada envío al proveedor")

    # Channel governor
    CHANNEL_DAILY_LIMIT: int = Field(1000, description="Mensajes diarios máximos por canal")
    CHANNEL_PAUSE_THRESHOLD_HEALTH: int = Field(20, description="Salud mínima antes de pausar el canal")
    HEALTH_WINDOW_SIZE: int = Field(100, description="Envíos considerados en la ventana de salud")
    HEALTH_MIN_SAMPLES: int = Field(20, description="Muestras mínimas antes de recalcular la salud")

    # Evolution API
    EVOLUTION_API_URL: str = Field("http://localhost:8080", description="URL base de Evolution API")
    EVOLUTION_API_KEY: str | None = Field(None, description="API key de Evolution API")
    EVOLUTION_DEFAULT_INSTANCE: str = Field("clinic", description="Instancia usada si no hay canales registrados")
    EVOLUTION_REQUEST_TIMEOUT: float = Field(30.0, description="Timeout HTTP hacia Evolution API")

    # Storage
    DATABASE_URL: str | None = Field(None, description="URL async de SQLAlchemy (postgresql+asyncpg://...)")
    DB_ECHO: bool = Field(False, description="Log SQL queries (solo para debug)")
    REDIS_URL: str | None = Field(None, description="URL de Redis para el registro de envíos")
    REMINDER_LEDGER_TTL_SECONDS: int = Field(3 * 24 * 3600, description="TTL de las marcas de envío")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignorar campos extras en lugar de generar un error
    )

    def __init__(self, **data: Any):
        super().__init__(**data)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("CLINIC_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v):
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown time zone: {v}")
        return v

    @field_validator("REMINDER_CUTOFF_HOUR")
    @classmethod
    def validate_cutoff_hour(cls, v):
        if not 0 <= v <= 24:
            raise ValueError("REMINDER_CUTOFF_HOUR must be between 0 and 24")
        return v

    @field_validator("REMINDER_MAX_ATTEMPTS", "CHANNEL_DAILY_LIMIT", "HEALTH_WINDOW_SIZE")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("NO_CONFIRMATION_CHECK_INTERVAL_MINUTES")
    @classmethod
    def validate_check_interval(cls, v):
        # Used as a cron minute step
        if not 1 <= v <= 59:
            raise ValueError("NO_CONFIRMATION_CHECK_INTERVAL_MINUTES must be between 1 and 59")
        return v

    @field_validator("CHANNEL_PAUSE_THRESHOLD_HEALTH")
    @classmethod
    def validate_health_threshold(cls, v):
        if not 0 <= v <= 100:
            raise ValueError("CHANNEL_PAUSE_THRESHOLD_HEALTH must be between 0 and 100")
        return v

    @model_validator(mode="after")
    def validate_pacing_ranges(self):
        ranges = {
            "REMINDER_PACING": (self.REMINDER_PACING_MIN_SECONDS, self.REMINDER_PACING_MAX_SECONDS),
            "BULK_PACING": (self.BULK_PACING_MIN_SECONDS, self.BULK_PACING_MAX_SECONDS),
            "CONVERSATIONAL_PACING": (
                self.CONVERSATIONAL_PACING_MIN_SECONDS,
                self.CONVERSATIONAL_PACING_MAX_SECONDS,
            ),
        }
        for name, (low, high) in ranges.items():
            if low < 0 or low > high:
                raise ValueError(f"{name} range is invalid: min={low}, max={high}")
        if self.HEALTH_MIN_SAMPLES > self.HEALTH_WINDOW_SIZE:
            raise ValueError("HEALTH_MIN_SAMPLES cannot exceed HEALTH_WINDOW_SIZE")
        if not 0 < self.NO_CONFIRMATION_CRITICAL_MINUTES < self.NO_CONFIRMATION_WINDOW_MINUTES:
            raise ValueError("NO_CONFIRMATION_CRITICAL_MINUTES must be between 1 and the alert window")
        return self

    @computed_field
    @property
    def is_development(self) -> bool:
        """Determina si está en modo desarrollo"""
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @computed_field
    @property
    def uses_database(self) -> bool:
        """Indica si los registros se persisten con SQLAlchemy"""
        return bool(self.DATABASE_URL)


# Instancia única por proceso
_settings_instance = None


def get_settings() -> Settings:
    """Configuración compartida por el proceso (se lee una sola vez)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
