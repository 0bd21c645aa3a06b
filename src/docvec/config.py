"""docvec configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (DOCVEC_EMBEDDING_MODEL, DOCVEC_RERANK_MODEL, DOCVEC_LOG_LEVEL)
  3. Per-project docvec.yaml  (next to .docvec.db)
  4. Global ~/.docvec/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docvec"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docvec.yaml"

_SILICONFLOW_API_BASE = "https://api.siliconflow.cn/v1"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_chunk_size or final_top_n.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "rate_limit", "chunking", "retrieval", "rerank", "retry", "log_level"]
)

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (docvec.yaml: embedding:)."""

    model: str = "openai/BAAI/bge-large-zh-v1.5"
    batch_size: int = 300
    encoding_format: str = "float"
    api_base: str | None = _SILICONFLOW_API_BASE
    dimensions: int | None = None


@dataclass
class RateLimitCfg:
    """Outbound call gate shared by embedding and rerank (docvec.yaml: rate_limit:)."""

    max_concurrent_requests: int = 1
    min_interval_ms: float = 500
    call_timeout_s: float = 60.0


@dataclass
class ChunkingCfg:
    """Chunk size and overlap in characters (docvec.yaml: chunking:)."""

    max_chunk_size: int = 2000
    overlap_size: int = 200


@dataclass
class RetrievalCfg:
    """Similarity search configuration (docvec.yaml: retrieval:)."""

    threshold: float = 0.5
    final_top_n: int = 5
    initial_candidates: int = 50


@dataclass
class RerankCfg:
    """Cross-encoder rerank configuration (docvec.yaml: rerank:)."""

    enabled: bool = False
    model: str = "cohere/BAAI/bge-reranker-v2-m3"
    api_base: str | None = _SILICONFLOW_API_BASE


@dataclass
class RetryCfg:
    """Backoff for rate-limited embedding batches (docvec.yaml: retry:)."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 30.0


@dataclass
class DocvecConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    rate_limit: RateLimitCfg = field(default_factory=RateLimitCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    rerank: RerankCfg = field(default_factory=RerankCfg)
    retry: RetryCfg = field(default_factory=RetryCfg)
    log_level: str = "WARNING"


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: DocvecConfig) -> None:
    """Raise ConfigError for out-of-range values."""
    checks: list[tuple[bool, str]] = [
        (cfg.embedding.batch_size >= 1, "embedding.batch_size must be >= 1"),
        (
            cfg.rate_limit.max_concurrent_requests >= 1,
            "rate_limit.max_concurrent_requests must be >= 1",
        ),
        (cfg.rate_limit.min_interval_ms >= 0, "rate_limit.min_interval_ms must be >= 0"),
        (cfg.rate_limit.call_timeout_s > 0, "rate_limit.call_timeout_s must be > 0"),
        (cfg.chunking.max_chunk_size >= 1, "chunking.max_chunk_size must be >= 1"),
        (cfg.chunking.overlap_size >= 0, "chunking.overlap_size must be >= 0"),
        (-1.0 <= cfg.retrieval.threshold <= 1.0, "retrieval.threshold must be in [-1, 1]"),
        (cfg.retrieval.final_top_n >= 1, "retrieval.final_top_n must be >= 1"),
        (
            cfg.retrieval.initial_candidates >= 1,
            "retrieval.initial_candidates must be >= 1",
        ),
        (cfg.retry.max_retries >= 0, "retry.max_retries must be >= 0"),
        (cfg.retry.base_delay_s >= 0, "retry.base_delay_s must be >= 0"),
        (cfg.retry.max_delay_s >= 0, "retry.max_delay_s must be >= 0"),
        (cfg.log_level in _LOG_LEVELS, f"log level must be one of {sorted(_LOG_LEVELS)}"),
    ]
    for ok, message in checks:
        if not ok:
            raise ConfigError(message)


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict[str, Any]:
    """Parse *path* with yaml.safe_load(); an empty file yields an empty dict."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config '{path}' must be a mapping at the top level.")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _cfg_from_dict(data: dict[str, Any]) -> DocvecConfig:
    """Build a *DocvecConfig* from a merged raw YAML dict."""
    cfg = DocvecConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            encoding_format=str(e.get("encoding_format", cfg.embedding.encoding_format)),
            api_base=e.get("api_base", cfg.embedding.api_base),
            dimensions=e.get("dimensions", cfg.embedding.dimensions),
        )

    if "rate_limit" in data:
        rl = data["rate_limit"] or {}
        cfg.rate_limit = RateLimitCfg(
            max_concurrent_requests=int(
                rl.get("max_concurrent_requests", cfg.rate_limit.max_concurrent_requests)
            ),
            min_interval_ms=float(rl.get("min_interval_ms", cfg.rate_limit.min_interval_ms)),
            call_timeout_s=float(rl.get("call_timeout_s", cfg.rate_limit.call_timeout_s)),
        )

    if "chunking" in data:
        ch = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            max_chunk_size=int(ch.get("max_chunk_size", cfg.chunking.max_chunk_size)),
            overlap_size=int(ch.get("overlap_size", cfg.chunking.overlap_size)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            threshold=float(r.get("threshold", cfg.retrieval.threshold)),
            final_top_n=int(r.get("final_top_n", cfg.retrieval.final_top_n)),
            initial_candidates=int(
                r.get("initial_candidates", cfg.retrieval.initial_candidates)
            ),
        )

    if "rerank" in data:
        rr = data["rerank"] or {}
        cfg.rerank = RerankCfg(
            enabled=_as_bool(rr.get("enabled", cfg.rerank.enabled)),
            model=str(rr.get("model", cfg.rerank.model)),
            api_base=rr.get("api_base", cfg.rerank.api_base),
        )

    if "retry" in data:
        rt = data["retry"] or {}
        cfg.retry = RetryCfg(
            max_retries=int(rt.get("max_retries", cfg.retry.max_retries)),
            base_delay_s=float(rt.get("base_delay_s", cfg.retry.base_delay_s)),
            max_delay_s=float(rt.get("max_delay_s", cfg.retry.max_delay_s)),
        )

    if data.get("log_level"):
        cfg.log_level = str(data["log_level"]).upper()

    return cfg


def _apply_env_overrides(cfg: DocvecConfig) -> DocvecConfig:
    """Apply DOCVEC_* environment variable overrides (layer 2)."""
    if model := os.environ.get("DOCVEC_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("DOCVEC_RERANK_MODEL"):
        cfg.rerank.model = model
    if level := os.environ.get("DOCVEC_LOG_LEVEL"):
        cfg.log_level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocvecConfig:
    """Load and return a merged *DocvecConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docvec.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
