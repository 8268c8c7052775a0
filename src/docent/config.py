"""Configuration management for Docent."""

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

# Use tomllib on Python 3.11+, fall back to tomli for 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from .layout import (
    DEFAULT_HORIZONTAL_SPLIT,
    DEFAULT_MAX_FRACTION,
    DEFAULT_MIN_FRACTION,
    DEFAULT_VERTICAL_SPLIT,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "anthropic/claude-sonnet-4-20250514"
DEFAULT_KEY_SEQUENCE_TIMEOUT_MS = 500


class VimMode(Enum):
    """Whether vim-style modal input is on. AUTO follows ~/.inputrc."""
    AUTO = "auto"
    ENABLED = "enabled"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: str) -> "VimMode":
        """Parse a vim mode, accepting always/never and on/off aliases.

        Raises:
            ValueError: If the value is not recognised.
        """
        normalized = value.strip().lower()
        aliases = {
            "always": cls.ENABLED, "on": cls.ENABLED, "true": cls.ENABLED,
            "never": cls.DISABLED, "off": cls.DISABLED, "false": cls.DISABLED,
        }
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


@dataclass
class LLMConfig:
    """Model configuration for walkthrough generation and chat.

    The model string encodes the provider using litellm conventions:
    - "anthropic/claude-sonnet-4-20250514" → Anthropic API
    - "openai/gpt-4o" → OpenAI API
    - "ollama/qwen2.5:7b" → Ollama (native litellm support)
    - "claude-code/sonnet" → Claude Code CLI subprocess (special case)
    """

    model: str = DEFAULT_MODEL
    api_base: str | None = None  # For local providers or custom endpoints
    api_key: str | None = None  # Explicit API key (litellm also reads env vars)

    @property
    def is_claude_code(self) -> bool:
        return self.model.startswith("claude-code/")


@dataclass
class EditorConfig:
    vim_mode: VimMode = VimMode.AUTO


@dataclass
class LayoutConfig:
    """Initial split ratios and their bounds."""

    vertical_split: float = DEFAULT_VERTICAL_SPLIT
    horizontal_split: float = DEFAULT_HORIZONTAL_SPLIT
    min_fraction: float = DEFAULT_MIN_FRACTION
    max_fraction: float = DEFAULT_MAX_FRACTION


@dataclass
class InputConfig:
    key_sequence_timeout_ms: int = DEFAULT_KEY_SEQUENCE_TIMEOUT_MS

    @property
    def key_sequence_timeout(self) -> float:
        return self.key_sequence_timeout_ms / 1000


@dataclass
class Config:
    """Docent configuration."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    editor: EditorConfig = field(default_factory=EditorConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    input: InputConfig = field(default_factory=InputConfig)
    debug_logging: bool = field(default=False)  # Enable debug logging to file (opt-in)


# Config file path
CONFIG_DIR = Path.home() / ".docent"
CONFIG_FILE = CONFIG_DIR / "config.toml"
INPUTRC_FILE = Path.home() / ".inputrc"


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _load_vim_mode(value: Any, default: VimMode) -> VimMode:
    if not isinstance(value, str):
        return default
    try:
        return VimMode.parse(value)
    except ValueError:
        logger.warning(f"Ignoring unknown vim_mode {value!r}; using {default.value}")
        return default


def _load_layout(data: dict) -> LayoutConfig:
    defaults = LayoutConfig()
    values = {}
    for name in ("vertical_split", "horizontal_split", "min_fraction", "max_fraction"):
        value = data.get(name, getattr(defaults, name))
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0.0 < value < 1.0:
            logger.warning(f"Ignoring invalid layout.{name}={value!r}")
            value = getattr(defaults, name)
        values[name] = float(value)
    if values["min_fraction"] > values["max_fraction"]:
        logger.warning("layout.min_fraction exceeds layout.max_fraction; using default bounds")
        values["min_fraction"] = defaults.min_fraction
        values["max_fraction"] = defaults.max_fraction
    return LayoutConfig(**values)


def _load_timeout(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    logger.warning(f"Ignoring invalid input.key_sequence_timeout_ms={value!r}")
    return DEFAULT_KEY_SEQUENCE_TIMEOUT_MS


def load_config() -> Config:
    """Load configuration from environment, file, or defaults.

    Priority (highest to lowest):
    1. Environment variables (DOCENT_*)
    2. Config file (~/.docent/config.toml)
    3. Hardcoded defaults

    API keys for litellm providers are read from standard env vars
    (ANTHROPIC_API_KEY, OPENAI_API_KEY, etc.) by litellm automatically.
    """
    config = Config()

    data: dict = {}
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Could not read {CONFIG_FILE}: {e}; using defaults")

    llm_data = data.get("llm", {})
    config.llm.model = llm_data.get("model", config.llm.model)
    config.llm.api_base = llm_data.get("api_base", config.llm.api_base)
    config.debug_logging = bool(data.get("debug_logging", config.debug_logging))

    editor_data = data.get("editor", {})
    if "vim_mode" in editor_data:
        config.editor.vim_mode = _load_vim_mode(editor_data["vim_mode"], config.editor.vim_mode)

    if data.get("layout"):
        config.layout = _load_layout(data["layout"])

    input_data = data.get("input", {})
    if "key_sequence_timeout_ms" in input_data:
        config.input.key_sequence_timeout_ms = _load_timeout(input_data["key_sequence_timeout_ms"])

    # Environment variables override everything
    config.llm.api_base = os.getenv("DOCENT_LLM_API_BASE", config.llm.api_base)
    config.llm.model = os.getenv("DOCENT_LLM_MODEL", config.llm.model)
    vim_mode_env = os.getenv("DOCENT_VIM_MODE")
    if vim_mode_env is not None:
        config.editor.vim_mode = _load_vim_mode(vim_mode_env, config.editor.vim_mode)
    debug_logging_env = os.getenv("DOCENT_DEBUG_LOGGING")
    if debug_logging_env is not None:
        config.debug_logging = _parse_bool(debug_logging_env)

    return config


def save_config(config: Config) -> None:
    """Save configuration to file.

    Note: API keys are never saved to the config file.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {
        "llm": {
            "model": config.llm.model,
        },
        "editor": {
            "vim_mode": config.editor.vim_mode.value,
        },
        "debug_logging": config.debug_logging,
    }

    # Save api_base when set (for local/custom endpoints)
    if config.llm.api_base:
        data["llm"]["api_base"] = config.llm.api_base

    # Save layout and input only if non-default
    if config.layout != LayoutConfig():
        data["layout"] = {
            "vertical_split": config.layout.vertical_split,
            "horizontal_split": config.layout.horizontal_split,
            "min_fraction": config.layout.min_fraction,
            "max_fraction": config.layout.max_fraction,
        }
    if config.input != InputConfig():
        data["input"] = {"key_sequence_timeout_ms": config.input.key_sequence_timeout_ms}

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)


def detect_vim_from_inputrc(path: Path | None = None) -> bool:
    """Check whether readline is configured with ``set editing-mode vi``."""
    path = path or INPUTRC_FILE
    try:
        contents = path.read_text()
    except OSError:
        return False
    for line in contents.splitlines():
        words = line.strip().lower().split()
        if not words or words[0].startswith("#"):
            continue
        if words[:3] == ["set", "editing-mode", "vi"]:
            return True
    return False


def resolve_vim_enabled(mode: VimMode, inputrc: Path | None = None) -> bool:
    """Resolve a vim mode setting to on/off, once, at startup."""
    if mode is VimMode.ENABLED:
        return True
    if mode is VimMode.DISABLED:
        return False
    enabled = detect_vim_from_inputrc(inputrc)
    logger.debug(f"vim_mode=auto resolved to {enabled} from inputrc")
    return enabled
