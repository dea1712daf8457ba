"""Configuration management with environment variables and CLI overrides."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.table import Table

# Lowest inter-chapter delay accepted from the operator, in ms.
MIN_DELAY_MS = 1000

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class CrawlerConfig(BaseSettings):
    """Crawler configuration."""

    model_config = SettingsConfigDict(env_prefix="CRAWLER_")

    delay_ms: int = Field(
        default=MIN_DELAY_MS, description="Delay between chapter downloads in ms (rate limiting)"
    )
    page_delay_ms: int = Field(
        default=2000, description="Delay before each extra listing page fetch in ms"
    )
    max_retries: int = Field(default=3, description="Max retry attempts on timeouts")
    timeout_seconds: int = Field(default=30, description="Request timeout in seconds")
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        description="User agent string",
    )


class DownloadConfig(BaseSettings):
    """Download session configuration."""

    model_config = SettingsConfigDict(env_prefix="DOWNLOAD_")

    output_format: Literal["txt", "zip"] = Field(
        default="txt", description="Output format: txt or zip"
    )
    captcha_prompt_timeout_seconds: int = Field(
        default=0,
        description="Seconds to wait for the CAPTCHA retry answer (0 = wait forever)",
    )


# ---------------------------------------------------------------------------
# Main AppConfig
# ---------------------------------------------------------------------------


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")
    output_dir: Path = Field(default=Path("downloads"), description="Output directory")

    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "AppConfig":
        """Load configuration from environment and .env file."""
        from dotenv import load_dotenv

        if env_file and env_file.exists():
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            crawler=CrawlerConfig(),
            download=DownloadConfig(),
        )


# ---------------------------------------------------------------------------
# Global config singleton
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def print_config_summary(console: Optional[Console] = None) -> None:
    """Print the effective crawler and download settings as a table."""
    console = console or Console()
    app_config = get_config()

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Env", style="dim", no_wrap=True)

    rows = [
        ("Output dir", str(app_config.output_dir), "OUTPUT_DIR"),
        ("Chapter delay (ms)", str(app_config.crawler.delay_ms), "CRAWLER_DELAY_MS"),
        ("Page delay (ms)", str(app_config.crawler.page_delay_ms), "CRAWLER_PAGE_DELAY_MS"),
        ("Max retries", str(app_config.crawler.max_retries), "CRAWLER_MAX_RETRIES"),
        ("Timeout (s)", str(app_config.crawler.timeout_seconds), "CRAWLER_TIMEOUT_SECONDS"),
        ("Output format", app_config.download.output_format, "DOWNLOAD_OUTPUT_FORMAT"),
        (
            "CAPTCHA prompt timeout (s)",
            str(app_config.download.captcha_prompt_timeout_seconds),
            "DOWNLOAD_CAPTCHA_PROMPT_TIMEOUT_SECONDS",
        ),
    ]
    for row in rows:
        table.add_row(*row)

    console.print(table)
