"""
Application configuration and settings.
"""

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings

# Built-in config directory (prompts, models.yaml) shipped next to the package
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Inference endpoint
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    analysis_model: str = "gemini-3-pro-preview"
    llm_timeout: int = 300
    upload_timeout: int = 3600

    # Ingestion
    max_file_size_mb: int = 2000  # Hard ceiling, checked before strategy selection
    inline_limit_mb: int = 20  # Larger files go through the upload protocol

    # Remote processing
    poll_interval: float = 2.0
    poll_timeout: float = 900.0  # Give up on PROCESSING after 15 minutes

    # Inference retry
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0  # Delay before retry k = 2**k * base

    # Cosmetic progress ticker
    progress_interval: float = 0.4

    # Paths
    config_dir: Path = DEFAULT_CONFIG_DIR
    prompts_dir: Path | None = None  # External prompts directory (overrides built-in)

    # Logging
    log_level: str = "INFO"
    log_format: str = "structured"  # "simple" or "structured"

    # Per-module log levels (optional overrides)
    log_level_gemini_client: str | None = None
    log_level_pipeline: str | None = None
    log_level_upload: str | None = None
    log_level_inference: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def max_file_size_bytes(self) -> int:
        """Hard size ceiling in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def inline_limit_bytes(self) -> int:
        """Inline/remote threshold in bytes."""
        return self.inline_limit_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def check_config_dir(settings: Settings | None = None) -> None:
    """
    Fail fast if the prompt/model configuration cannot be found.

    Raises:
        FileNotFoundError: config_dir lacks models.yaml or the analysis prompt
    """
    if settings is None:
        settings = get_settings()

    required = [
        settings.config_dir / "models.yaml",
        settings.config_dir / "prompts" / "analysis" / "instructions.md",
    ]
    missing = [str(p) for p in required if not p.is_file()]
    if missing:
        raise FileNotFoundError(
            f"Configuration not found: {missing}. "
            f"Set CONFIG_DIR to the directory holding models.yaml and prompts/."
        )


def load_prompt(
    stage: str,
    component: str,
    model: str | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Load a prompt template with external folder priority and model-specific fallback.

    Lookup order (first found wins):
    1. prompts_dir/{stage}/{component}_{model_family}.md (external, model-specific)
    2. prompts_dir/{stage}/{component}.md (external, generic)
    3. config_dir/prompts/{stage}/{component}_{model_family}.md (built-in, model-specific)
    4. config_dir/prompts/{stage}/{component}.md (built-in, generic)

    Model family is the model name without its trailing release tag:
    - "gemini-3-pro-preview" -> "gemini-3-pro"
    - "gemini-2.5-flash" -> "gemini-2.5-flash"

    Args:
        stage: Pipeline stage ("analysis")
        component: Prompt component ("instructions")
        model: Model name for model-specific prompts (optional)
        settings: Optional settings instance

    Returns:
        Prompt template content

    Raises:
        FileNotFoundError: If no matching prompt file is found
    """
    if settings is None:
        settings = get_settings()

    model_family = get_model_family(model) if model else None

    paths_to_check: list[Path] = []

    # External prompts directory (highest priority)
    if settings.prompts_dir and settings.prompts_dir.exists():
        if model_family:
            paths_to_check.append(
                settings.prompts_dir / stage / f"{component}_{model_family}.md"
            )
        paths_to_check.append(settings.prompts_dir / stage / f"{component}.md")

    # Built-in prompts directory (fallback)
    builtin_prompts_dir = settings.config_dir / "prompts"
    if model_family:
        paths_to_check.append(builtin_prompts_dir / stage / f"{component}_{model_family}.md")
    paths_to_check.append(builtin_prompts_dir / stage / f"{component}.md")

    for path in paths_to_check:
        if path.exists():
            return path.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Prompt not found: stage={stage}, component={component}, model={model}. "
        f"Checked paths: {[str(p) for p in paths_to_check]}"
    )


def get_model_family(model: str) -> str:
    """Strip release tags ("-preview", "-exp", "-latest") from a model name."""
    family = model.lower()
    for suffix in ("-preview", "-exp", "-latest"):
        if family.endswith(suffix):
            family = family[: -len(suffix)]
    return family


def load_models_config(settings: Settings | None = None) -> dict:
    """
    Load model configurations from config/models.yaml.

    Args:
        settings: Optional settings instance

    Returns:
        Models configuration dictionary with per-model settings
    """
    if settings is None:
        settings = get_settings()

    models_path = settings.config_dir / "models.yaml"
    with open(models_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_model_config(model: str, stage: str, settings: Settings | None = None) -> dict:
    """
    Load model-specific configuration for a pipeline stage.

    Model-specific values are layered over the defaults, so a model entry
    only needs to list what it changes.

    Args:
        model: Full model name (e.g., "gemini-3-pro-preview")
        stage: Pipeline stage ("analysis")
        settings: Optional settings instance

    Returns:
        Configuration dictionary for the stage
    """
    config = load_models_config(settings)
    stage_config = dict(config.get("defaults", {}).get(stage, {}))

    model_family = get_model_family(model)
    model_entry = config.get("models", {}).get(model_family, {})
    stage_config.update(model_entry.get(stage, {}))

    return stage_config
