"""Configuration management for Lecture Scribe."""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field


class GeminiConfig(BaseModel):
    """Generative AI backend configuration."""
    api_key: Optional[str] = Field(default=None, description="Gemini API key")
    model_name: str = Field(default="gemini-3-pro-preview", description="Model used for transcription and notes")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL"
    )
    transcription_thinking_budget: int = Field(default=32768, description="Thinking token budget for transcription")
    notes_thinking_budget: int = Field(default=16384, description="Thinking token budget for study notes")
    timeout_seconds: int = Field(default=1800, description="Timeout for a single generateContent request")
    max_retries: int = Field(default=2, description="Number of attempts per gateway call")
    retry_delay: float = Field(default=2.0, description="Base delay between retries in seconds")


class IngestConfig(BaseModel):
    """Upload handling configuration."""
    max_file_size_mb: float = Field(default=200.0, description="Maximum size of a single uploaded file in MB")


class LibraryConfig(BaseModel):
    """Library and course catalog configuration."""
    courses_file: Path = Field(default=Path("data/courses.json"), description="Where the course list is persisted")


class ServerConfig(BaseModel):
    """FastAPI server configuration."""
    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: list[str] = Field(default=["*"], description="CORS allowed origins")


class AppConfig(BaseModel):
    """Main application configuration."""
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    library: LibraryConfig = Field(default_factory=LibraryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """Load configuration from environment variables."""
        config = cls()

        # Gemini settings
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        if api_key:
            config.gemini.api_key = api_key
        if os.getenv("GEMINI_MODEL"):
            config.gemini.model_name = os.getenv("GEMINI_MODEL")
        if os.getenv("GEMINI_BASE_URL"):
            config.gemini.base_url = os.getenv("GEMINI_BASE_URL")
        if os.getenv("GEMINI_TIMEOUT"):
            config.gemini.timeout_seconds = int(os.getenv("GEMINI_TIMEOUT"))

        # Upload settings
        if os.getenv("MAX_UPLOAD_MB"):
            config.ingest.max_file_size_mb = float(os.getenv("MAX_UPLOAD_MB"))

        # Library settings
        if os.getenv("COURSES_FILE"):
            config.library.courses_file = Path(os.getenv("COURSES_FILE"))

        # Server settings
        if os.getenv("SERVER_HOST"):
            config.server.host = os.getenv("SERVER_HOST")
        if os.getenv("SERVER_PORT"):
            config.server.port = int(os.getenv("SERVER_PORT"))
        if os.getenv("DEBUG"):
            config.server.debug = os.getenv("DEBUG").lower() == "true"
        if os.getenv("LOG_LEVEL"):
            config.server.log_level = os.getenv("LOG_LEVEL").upper()

        return config

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.library.courses_file.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
config = AppConfig.load_from_env()
