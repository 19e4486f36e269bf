import os


def _getenv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.environment = (_getenv("ENVIRONMENT", "development") or "development").lower()
        self.log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()

        self.store_backend = (_getenv("STORE_BACKEND", "sql") or "sql").lower()
        self.database_url = _getenv("DATABASE_URL", "sqlite:///./support_desk.db") or "sqlite:///./support_desk.db"
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)
        self.cors_allow_origins = _getenv("CORS_ALLOW_ORIGINS")

        self.analyze_api_url = _getenv("ANALYZE_API_URL")
        self.analyze_timeout_s = _getenv_float("ANALYZE_TIMEOUT_S", 60.0)
        self.analyze_cache_ttl_s = max(0, _getenv_int("ANALYZE_CACHE_TTL_S", 0))

        self.llm_api_key = _getenv("LLM_API_KEY") or _getenv("OPENAI_API_KEY")
        self.llm_base_url = _getenv("LLM_BASE_URL")
        self.llm_model = _getenv("LLM_MODEL")
        self.llm_temperature = _getenv_float("LLM_TEMPERATURE", 0.2)
        self.llm_max_retries = max(1, _getenv_int("LLM_MAX_RETRIES", 3))
        self.llm_retry_base_s = _getenv_float("LLM_RETRY_BASE_S", 0.7)

        self.default_agent_max_chats = max(1, _getenv_int("DEFAULT_AGENT_MAX_CHATS", 5))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def llm_enabled(self) -> bool:
        return bool(self.llm_api_key and self.llm_model)

    def resolved_cors_origins(self) -> list[str]:
        raw = self.cors_allow_origins
        if raw is None:
            return ["http://localhost:3000", "http://localhost:8000"]
        if raw.strip() == "*":
            return ["*"]
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        return origins


settings = Settings()
