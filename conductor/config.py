# conductor/config.py
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Mongo
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "conductor"

    # Keyword research / search console / Google OAuth
    KEYWORD_API_URL: str = "https://api.seranking.com/v1"
    KEYWORD_API_KEY: Optional[str] = None
    SEARCH_CONSOLE_URL: str = "https://www.googleapis.com/webmasters/v3"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None

    # Messaging
    RABBITMQ_URL: Optional[str] = None
    RABBITMQ_EXCHANGE: str = "conductor.events"
    EVENTS_ORG: str = "pilot"
    WEBHOOK_URL: Optional[str] = None

    # LLM config
    MODEL_ID: str = "openai:gpt-4o-mini"
    OPENAI_API_KEY: Optional[str] = None

    # Pipeline tuning
    GRAPH_ID: str = "conductor-v1"
    DRAFT_CONCURRENCY: int = 2
    MAX_DRAFTS_PER_RUN: Optional[int] = None
    SCHOLAR_TOPIC_LIMIT: int = 5
    MAX_CONCURRENT_RUNS: int = 4
    STALE_RUN_MINUTES: int = 120

    # Compliance review of drafted content
    COMPLIANCE_LLM_REVIEW: bool = True
    MAX_COMPLIANCE_REWRITES: int = 2

    # Service metadata
    SERVICE_NAME: str = "conductor-service"
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_S: int = 60

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("MONGO_URI")
    @classmethod
    def _no_placeholder_uri(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError("MONGO_URI must be a valid connection string")
        return v

    @field_validator("DRAFT_CONCURRENCY", "MAX_CONCURRENT_RUNS", "SCHOLAR_TOPIC_LIMIT")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("MAX_COMPLIANCE_REWRITES")
    @classmethod
    def _not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v


settings = Settings()
