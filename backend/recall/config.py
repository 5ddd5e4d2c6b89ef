from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".recall" / "data"
    sqlite_filename: str = "recall.db"

    environment: str = "development"  # development | production | test
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    # Hosted OpenAI-compatible chat completions API (Groq by default)
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_api_key: str = ""
    llm_timeout: float = 60.0
    question_model: str = "openai/gpt-oss-20b"
    evaluation_model: str = "openai/gpt-oss-20b"
    categorizer_model: str = "llama-3.1-8b-instant"
    chat_model: str = "llama-3.3-70b-versatile"
    memory_model: str = "llama-3.1-8b-instant"

    # Local fallback
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = ""

    # Bearer token for GET /cron/memory; empty = only allowed in development
    cron_secret: str = ""

    model_config = {"env_prefix": "RECALL_"}


settings = Settings()
