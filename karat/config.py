"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. Explicit path (--config flag or KARAT_CONFIG_PATH)
2. ./karat.yaml (working directory)
3. ~/.karat/config.yaml (user home)

Environment variables override YAML: KARAT_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
With no file present, defaults apply.
"""

import logging
import os
import re
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class CompletionConfig(BaseModel):
    """Settings for the external completion provider."""

    model: str | None = None
    timeout_seconds: float = 30.0
    max_tokens: int = 1024
    temperature: float = 0.3
    history_limit: int = 10


class RateLimitConfig(BaseModel):
    """Per-mode request ceilings within a fixed window."""

    guest: int = 20
    help: int = 30
    assistant: int = 100
    window_seconds: int = 3600

    def limit_for(self, mode: str) -> int:
        """Return the ceiling for a mode name, falling back to guest."""
        return getattr(self, mode, self.guest)


class ContentFilterConfig(BaseModel):
    """Inbound message gate settings."""

    max_batch_count: int = 5
    max_message_length: int = 2000


class ValidationConfig(BaseModel):
    """Business-rule thresholds applied by the action validator.

    Per-gram prices outside [min, max] produce warnings, not errors.
    """

    min_price_per_gram: Decimal = Decimal("100")
    max_price_per_gram: Decimal = Decimal("10000")
    max_items_per_invoice: int = 20
    default_tax_percentage: Decimal = Decimal("3")

    @model_validator(mode="after")
    def price_band_ordered(self) -> "ValidationConfig":
        """Ensure the price band is not inverted."""
        if self.min_price_per_gram > self.max_price_per_gram:
            raise ValueError("min_price_per_gram must not exceed max_price_per_gram")
        return self


class ExecutionConfig(BaseModel):
    """Action execution settings."""

    auto_confirm: bool = False
    invoice_prefix: str = "INV"
    number_padding: int = 3
    max_number_attempts: int = 3


class BillsConfig(BaseModel):
    """Purchase-bill upload limits."""

    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: [
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/webp",
            "application/pdf",
        ]
    )


class KaratConfig(BaseModel):
    """Top-level configuration for the Karat assistant."""

    completion: CompletionConfig = CompletionConfig()
    rate_limits: RateLimitConfig = RateLimitConfig()
    content_filter: ContentFilterConfig = ContentFilterConfig()
    validation: ValidationConfig = ValidationConfig()
    execution: ExecutionConfig = ExecutionConfig()
    bills: BillsConfig = BillsConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    candidates = [
        Path.cwd() / "karat.yaml",
        Path.cwd() / "karat.yml",
        Path.home() / ".karat" / "config.yaml",
        Path.home() / ".karat" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce_env_value(value: str) -> Any:
    """Coerce an env override to int, float, bool, or leave as string."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply KARAT_<SECTION>_<KEY> env var overrides to config data.

    Matches section names by longest prefix so multi-word section names
    like ``rate_limits`` are handled correctly. For example,
    ``KARAT_RATE_LIMITS_GUEST`` maps to section ``rate_limits``, field
    ``guest``.
    """
    prefix = "KARAT_"
    known_sections = sorted(KaratConfig.model_fields.keys(), key=len, reverse=True)
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if matched_section not in data:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            data[matched_section][matched_field] = _coerce_env_value(value)
    return data


def load_config(config_path: str | None = None) -> KaratConfig:
    """Load Karat configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, uses
            KARAT_CONFIG_PATH, then searches standard locations.

    Returns:
        Parsed and validated KaratConfig. Defaults when no file is found.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
    """
    config_path = config_path or os.environ.get("KARAT_CONFIG_PATH") or None
    raw_data: dict[str, Any] = {}
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return KaratConfig(**data)


_config: KaratConfig | None = None


def get_config() -> KaratConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: KaratConfig | None) -> None:
    """Replace the process-wide configuration (None forces a reload)."""
    global _config
    _config = config
