"""
Configuration Management for Mnemo

Loads configuration from ~/.mnemo/config.json and environment variables.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger("mnemo.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".mnemo"
CONFIG_PATH = CONFIG_DIR / "config.json"
DEFAULT_STORAGE_PATH = CONFIG_DIR / "memory.json"


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "femb"  # fastembed (on-device) or "openai"
    model: str = ""  # empty picks the default for the mode
    dimensions: Optional[int] = None
    openai_api_key: str = ""


@dataclass
class LLMConfig:
    """LLM provider configuration"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    temperature: float = 0.1
    max_tokens: int = 4096

    @property
    def model(self) -> str:
        """Model name for the selected provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")


@dataclass
class IndexConfig:
    """Hybrid index configuration"""
    semantic_top_k: int = 25
    keyword_top_k: int = 5
    structured_top_k: int = 5
    semantic_weight: float = 0.6  # alpha
    lexical_weight: float = 0.3  # beta
    symbolic_weight: float = 0.1  # gamma, a bonus not a share
    bm25_k1: float = 1.2
    bm25_b: float = 0.75


@dataclass
class RetrievalConfig:
    """Adaptive retrieval configuration"""
    base_k: int = 3
    complexity_delta: float = 2.0
    enable_planning: bool = True
    enable_reflection: bool = True
    max_reflection_rounds: int = 2


@dataclass
class StorageConfig:
    """Storage backend configuration"""
    backend: str = "memory"  # "memory" or "file"
    path: str = str(DEFAULT_STORAGE_PATH)


@dataclass
class MnemoConfig:
    """Main Mnemo configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_section(cls, data: dict, name: str):
    """Build a section dataclass from its dict, ignoring unknown keys"""
    section = data.get(name) or {}
    names = {f.name for f in fields(cls)}
    known = {k: v for k, v in section.items() if k in names}
    return cls(**known)


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    return _parse_section(EmbeddingConfig, data, "embedding")


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    return _parse_section(LLMConfig, data, "llm")


def _parse_index_config(data: dict) -> IndexConfig:
    """Parse index section from config dict"""
    return _parse_section(IndexConfig, data, "index")


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    """Parse retrieval section from config dict"""
    return _parse_section(RetrievalConfig, data, "retrieval")


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    return _parse_section(StorageConfig, data, "storage")


# env var -> (section, attribute, type)
_ENV_MAP = {
    "ANTHROPIC_API_KEY": ("llm", "anthropic_api_key", str),
    "ANTHROPIC_MODEL": ("llm", "anthropic_model", str),
    "OPENAI_API_KEY": ("llm", "openai_api_key", str),
    "OPENAI_MODEL": ("llm", "openai_model", str),
    "GOOGLE_API_KEY": ("llm", "google_api_key", str),
    "GEMINI_API_KEY": ("llm", "google_api_key", str),
    "GOOGLE_MODEL": ("llm", "google_model", str),
    "MNEMO_LLM_PROVIDER": ("llm", "provider", str),
    "MNEMO_EMBEDDING_MODE": ("embedding", "mode", str),
    "MNEMO_EMBEDDING_MODEL": ("embedding", "model", str),
    "MNEMO_STORAGE_BACKEND": ("storage", "backend", str),
    "MNEMO_STORAGE_PATH": ("storage", "path", str),
    "MNEMO_BASE_K": ("retrieval", "base_k", int),
    "MNEMO_MAX_REFLECTION_ROUNDS": ("retrieval", "max_reflection_rounds", int),
}

_API_KEY_FIELDS = {"anthropic_api_key", "openai_api_key", "google_api_key"}


def load_config(path: Optional[Path] = None) -> MnemoConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (a local .env file is loaded first)
    2. Config file (~/.mnemo/config.json)
    3. Default values
    """
    config = MnemoConfig()
    config_path = Path(path) if path else CONFIG_PATH

    # Load from config file if exists
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.index = _parse_index_config(data)
            config.retrieval = _parse_retrieval_config(data)
            config.storage = _parse_storage_config(data)
            logger.info("Loaded config from %s", config_path)
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load config file %s: %s", config_path, e)

    load_dotenv()

    for env_var, (section, attr, cast) in _ENV_MAP.items():
        val = os.getenv(env_var)
        if not val:
            continue
        try:
            setattr(getattr(config, section), attr, cast(val))
        except ValueError:
            logger.warning("Ignoring invalid value for %s: %r", env_var, val)
            continue
        config._env_sourced_keys.add(attr)

    # The embedding service shares the OpenAI key unless one is set explicitly
    if not config.embedding.openai_api_key and config.llm.openai_api_key:
        config.embedding.openai_api_key = config.llm.openai_api_key
        if "openai_api_key" in config._env_sourced_keys:
            config._env_sourced_keys.add("embedding.openai_api_key")

    return config


def save_config(config: MnemoConfig, path: Optional[Path] = None) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    config_path = Path(path) if path else CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = dict(vars(config.llm))
    for key in _API_KEY_FIELDS:
        if key in env_sourced:
            llm_section[key] = ""

    embedding_section = dict(vars(config.embedding))
    if "embedding.openai_api_key" in env_sourced:
        embedding_section["openai_api_key"] = ""

    data = {
        "embedding": embedding_section,
        "llm": llm_section,
        "index": dict(vars(config.index)),
        "retrieval": dict(vars(config.retrieval)),
        "storage": dict(vars(config.storage)),
    }

    with open(config_path, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    config_path.chmod(0o600)

