"""Configuration management for ManasX governance."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_EXTENSIONS = [".js", ".ts", ".jsx", ".tsx"]
DEFAULT_IGNORE_DIRS = [
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    ".nuxt",
    "coverage",
    ".manasx",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    watch_directory: str = Field(
        default=".",
        description="Root directory watched by the continuous monitor",
    )
    extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        description="File extensions that are learned, checked and watched",
    )
    ignore_dirs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_DIRS),
        description="Directory names (or fnmatch patterns) skipped during traversal",
    )
    debounce_ms: int = Field(
        default=1000,
        description="Quiet period after the last change before a file is analyzed",
    )
    log_dir: str = Field(
        default=".manasx",
        description="Directory for context, daily, violations and summary logs",
    )
    max_log_size: int = Field(
        default=10 * 1024 * 1024,
        description="Byte size above which a log file is rotated",
    )
    patterns_file: str = Field(
        default="patterns.json",
        description="Learned pattern profile, relative to the watch directory",
    )
    rules_file: str = Field(
        default="manasx-rules.json",
        description="Rule configuration file name, searched upward from the watch directory",
    )
    max_files: int = Field(
        default=1000,
        description="Maximum number of files analyzed by one learning pass",
    )
    enable_ai_detection: bool = Field(default=True, description="Run AI-code detection")
    enable_drift_detection: bool = Field(default=True, description="Run drift detection")
    enable_rule_checking: bool = Field(default=True, description="Run organizational rules")
    recent_limit: int = Field(
        default=5,
        description="Number of recent analyses included in the organizational context",
    )
    classifier_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible classifier endpoint",
    )
    classifier_api_url: str = Field(
        default="https://api.groq.com/openai/v1/chat/completions",
        description="Chat completions endpoint used for AI-code classification",
    )
    classifier_model: str = Field(
        default="llama3-70b-8192",
        description="Model identifier sent to the classifier endpoint",
    )
    classifier_timeout: float = Field(
        default=30.0,
        description="Classifier request timeout in seconds",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MANASX_"
        extra = "ignore"

    def __init__(self, **kwargs):
        # Fall back to a .env next to the project root when the cwd has none
        if "_env_file" not in kwargs and not os.path.exists(".env"):
            current_dir = os.path.dirname(os.path.abspath(__file__))
            project_root = os.path.abspath(os.path.join(current_dir, "../.."))
            env_path = os.path.join(project_root, ".env")
            if os.path.exists(env_path):
                kwargs["_env_file"] = env_path
        super().__init__(**kwargs)


def get_settings(**overrides) -> Settings:
    """Get application settings, loading from environment."""
    return Settings(**overrides)
