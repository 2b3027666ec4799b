"""Application configuration.

Settings are read from environment variables. An optional ``.env.<environment>``
file (falling back to ``.env``) is loaded first so local development does not
need exported variables.
"""

import json
import os
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
)

from dotenv import load_dotenv


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Get the current environment from ``APP_ENV``.

    Returns:
        Environment: The current environment (development by default).
    """
    match os.getenv("APP_ENV", "development").lower():
        case "production" | "prod":
            return Environment.PRODUCTION
        case "staging" | "stage":
            return Environment.STAGING
        case "test":
            return Environment.TEST
        case _:
            return Environment.DEVELOPMENT


def load_env_file() -> None:
    """Load the environment-specific .env file if one exists."""
    env = get_environment()
    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

    for candidate in (f".env.{env.value}.local", f".env.{env.value}", ".env.local", ".env"):
        env_file = os.path.join(base_dir, candidate)
        if os.path.isfile(env_file):
            load_dotenv(dotenv_path=env_file)
            return


load_env_file()


def parse_list_from_env(env_key: str, default: List[str] | None = None) -> List[str]:
    """Parse a comma-separated (or JSON array) environment variable into a list."""
    value = os.getenv(env_key)
    if not value:
        return default or []

    value = value.strip()
    if value.startswith("["):
        try:
            return [str(v) for v in json.loads(value)]
        except json.JSONDecodeError:
            pass
    return [v.strip() for v in value.split(",") if v.strip()]


def _bool_env(env_key: str, default: str = "false") -> bool:
    return os.getenv(env_key, default).lower() in ("true", "1", "t", "yes")


class Settings:
    """Application settings populated from environment variables."""

    def __init__(self):
        """Initialize settings from environment variables."""
        self.ENVIRONMENT = get_environment()

        # Application
        self.PROJECT_NAME = os.getenv("PROJECT_NAME", "Nodeflow Workflow Engine")
        self.VERSION = os.getenv("VERSION", "1.0.0")
        self.API_V1_STR = os.getenv("API_V1_STR", "/api/v1")
        self.DEBUG = _bool_env("DEBUG")
        self.ALLOWED_ORIGINS = parse_list_from_env("ALLOWED_ORIGINS", ["*"])
        self.HOST = os.getenv("HOST", "0.0.0.0")
        self.PORT = int(os.getenv("PORT", "8000"))

        # Rate limiting
        self.RATE_LIMIT_DEFAULT = parse_list_from_env("RATE_LIMIT_DEFAULT", ["200 per day", "50 per hour"])
        self.RATE_LIMIT_ENDPOINTS = {
            "execute": parse_list_from_env("RATE_LIMIT_EXECUTE", ["30 per minute"]),
            "webhook": parse_list_from_env("RATE_LIMIT_WEBHOOK", ["60 per minute"]),
        }

        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if self.DEBUG else "INFO")
        self.LOG_FORMAT = os.getenv(
            "LOG_FORMAT", "console" if self.ENVIRONMENT == Environment.DEVELOPMENT else "json"
        )

        # Collaborator storage
        self.WORKFLOWS_DIR = os.getenv("WORKFLOWS_DIR", "workflows")
        self.CREDENTIALS_FILE = os.getenv("CREDENTIALS_FILE", "credentials.yaml")
        self.MEMORY_BACKEND = os.getenv("MEMORY_BACKEND", "memory")
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.MEMORY_MAX_TURNS = int(os.getenv("MEMORY_MAX_TURNS", "50"))

        # Scheduler
        self.WORKFLOW_JOIN_MODE = os.getenv("WORKFLOW_JOIN_MODE", "first_arrival")
        self.MAX_SUBWORKFLOW_DEPTH = int(os.getenv("MAX_SUBWORKFLOW_DEPTH", "5"))

        # Agent
        self.AGENT_MAX_ITERATIONS = int(os.getenv("AGENT_MAX_ITERATIONS", "10"))
        self.AGENT_DEFAULT_GEMINI_MODEL = os.getenv("AGENT_DEFAULT_GEMINI_MODEL", "gemini-2.0-flash")
        self.AGENT_DEFAULT_OPENAI_MODEL = os.getenv("AGENT_DEFAULT_OPENAI_MODEL", "gpt-4o-mini")
        self.AGENT_DEFAULT_MAX_TOKENS = int(os.getenv("AGENT_DEFAULT_MAX_TOKENS", "1000"))
        self.LANGFUSE_TRACING_ENABLED = _bool_env("LANGFUSE_TRACING_ENABLED")

        # Sandbox (Judge0)
        self.JUDGE0_API_KEY = os.getenv("JUDGE0_API_KEY", "")
        self.JUDGE0_BASE_URL = os.getenv("JUDGE0_BASE_URL", "https://judge0-ce.p.rapidapi.com")
        self.JUDGE0_HOST = os.getenv("JUDGE0_HOST", "judge0-ce.p.rapidapi.com")
        self.SANDBOX_MAX_POLL_ATTEMPTS = int(os.getenv("SANDBOX_MAX_POLL_ATTEMPTS", "15"))
        self.SANDBOX_POLL_BASE_DELAY = float(os.getenv("SANDBOX_POLL_BASE_DELAY", "1.0"))
        self.SANDBOX_POLL_DELAY_STEP = float(os.getenv("SANDBOX_POLL_DELAY_STEP", "0.5"))
        self.SANDBOX_SUBMIT_TIMEOUT = float(os.getenv("SANDBOX_SUBMIT_TIMEOUT", "20"))
        self.SANDBOX_POLL_TIMEOUT = float(os.getenv("SANDBOX_POLL_TIMEOUT", "15"))

        # Messaging / outbound HTTP
        self.HTTP_TOOL_TIMEOUT = float(os.getenv("HTTP_TOOL_TIMEOUT", "30"))
        self.TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")
        self.SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
        self.SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", "30"))

        self.apply_environment_settings()

    def apply_environment_settings(self):
        """Apply environment-specific overrides unless explicitly set."""
        env_settings: Dict[Environment, Dict[str, Any]] = {
            Environment.DEVELOPMENT: {"DEBUG": True, "LOG_LEVEL": "DEBUG"},
            Environment.STAGING: {"DEBUG": False, "LOG_LEVEL": "INFO"},
            Environment.PRODUCTION: {"DEBUG": False, "LOG_LEVEL": "WARNING"},
            Environment.TEST: {"DEBUG": True, "LOG_LEVEL": "DEBUG", "SANDBOX_POLL_BASE_DELAY": 0.0},
        }

        current_env_settings = env_settings.get(self.ENVIRONMENT, {})
        for key, value in current_env_settings.items():
            if key.upper() not in os.environ:
                setattr(self, key, value)


settings = Settings()
