"""Configuration management for ChatFTC application."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

DEFAULT_INDEX_URLS = (
    "https://ftctechnh.github.io/ftc_app/doc/javadoc/index.html,"
    "https://learnroadrunner.com/"
)


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()
    HTTPX_LOG_LEVEL: str = os.getenv("HTTPX_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Chunking and Embedding Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "100"))

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4.1-nano-2025-04-14")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "800"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.0"))
    CHAT_MAX_RETRIES: int = int(os.getenv("CHAT_MAX_RETRIES", "2"))

    # Retrieval Configuration
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "4"))
    CONTEXT_CHAR_BUDGET: int = int(os.getenv("CONTEXT_CHAR_BUDGET", "5000"))
    MAX_HISTORY_TURNS: int = int(os.getenv("MAX_HISTORY_TURNS", "10"))
    MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "1000"))
    CONTEXT_MAX_AGE_SECONDS: float = float(
        os.getenv("CONTEXT_MAX_AGE_SECONDS", "3600")
    )
    REQUIRE_CONTEXT: bool = os.getenv("REQUIRE_CONTEXT", "false").lower() in {
        "1",
        "true",
        "yes",
    }

    # Timeouts (seconds) and fetch limits
    FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "15"))
    LOAD_TIMEOUT: float = float(os.getenv("LOAD_TIMEOUT", "60"))
    EMBEDDING_TIMEOUT: float = float(os.getenv("EMBEDDING_TIMEOUT", "30"))
    CHAT_TIMEOUT: float = float(os.getenv("CHAT_TIMEOUT", "60"))
    FETCH_CONCURRENCY: int = int(os.getenv("FETCH_CONCURRENCY", "8"))
    MAX_PAGES_PER_INDEX: int = int(os.getenv("MAX_PAGES_PER_INDEX", "100"))

    # Knowledge Sources
    MANUAL_PDF_PATH: Path = Path(
        os.getenv("MANUAL_PDF_PATH", "public/GameManual.pdf")
    )
    PROGRAMMING_INDEX_URLS: tuple[str, ...] = _split_csv(
        os.getenv("PROGRAMMING_INDEX_URLS", DEFAULT_INDEX_URLS)
    )

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "ChatFTC/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If OPENAI_API_KEY is not set or chunking is misconfigured.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)
        if cls.CHUNK_SIZE <= 0 or not 0 <= cls.CHUNK_OVERLAP < cls.CHUNK_SIZE:
            msg = (
                f"Invalid chunking configuration: CHUNK_SIZE={cls.CHUNK_SIZE}, "
                f"CHUNK_OVERLAP={cls.CHUNK_OVERLAP}"
            )
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with console output,
        a simple format and a level taken from the environment.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )
        logging.getLogger("httpx").setLevel(
            getattr(logging, cls.HTTPX_LOG_LEVEL, logging.WARNING)
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound HTTP requests.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
