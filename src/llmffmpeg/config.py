from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Literal, Any
import os
import tempfile

from .executor import DEFAULT_SILENT_FAILURE_PHRASES, extend_phrases

Provider = Literal["openai", "compat"]

# Defaults / keys
DEFAULT_MODEL_COMPAT = "gpt-oss:20b"
DEFAULT_MODEL_OPENAI = "gpt-4o"
DEFAULT_TEMPLATE_NAME = "default"
DEFAULT_URL = "http://localhost:11434"
DEFAULT_HISTORY_LIMIT = 50

CONFIG_HOME = Path.home() / ".llm-ffmpeg"
DEFAULT_CONFIG_PATH = CONFIG_HOME / "config.env"
DEFAULT_HISTORY_PATH = CONFIG_HOME / "history"
DEFAULT_TEMPLATE_DIR = CONFIG_HOME / "templates"
DEFAULT_SCRATCH_DIR = Path(tempfile.gettempdir()) / "llm-ffmpeg"

ENV_PREFIX = "LLM_FFMPEG_"

# Keys that are safe to accept from a config file.
CONFIG_KEYS: set[str] = {
    "model",
    "provider",
    "base_url",
    "openai_api_key",
    "bearer_token",
    "template",
    "history_limit",
    "history_path",
    "scratch_dir",
    "ffmpeg",
    "silent_failure_phrases",
}

# Keys we persist by default (avoid secrets).
PERSIST_KEYS: set[str] = {
    "model",
    "provider",
    "base_url",
    "template",
    "history_limit",
    "ffmpeg",
}

_PATH_KEYS = ("history_path", "scratch_dir")


@dataclass(frozen=True)
class AppConfig:
    # llm endpoint/auth (resolved)
    model: str
    provider: Provider
    base_url: Optional[str]          # normalized, includes /v1 for compat
    openai_api_key: Optional[str]
    bearer_token: Optional[str]

    # prompt template
    template: str = DEFAULT_TEMPLATE_NAME
    template_dir: Path = DEFAULT_TEMPLATE_DIR

    # media tool
    ffmpeg: str = "ffmpeg"
    silent_failure_phrases: tuple[str, ...] = DEFAULT_SILENT_FAILURE_PHRASES

    # persisted state
    history_limit: int = DEFAULT_HISTORY_LIMIT
    history_path: Path = DEFAULT_HISTORY_PATH
    scratch_dir: Path = DEFAULT_SCRATCH_DIR

    @property
    def token(self) -> str:
        """Invocation token generated commands must start with."""
        return Path(self.ffmpeg).name


def _env_nonempty(name: str) -> Optional[str]:
    v = os.environ.get(ENV_PREFIX + name)
    if v is None:
        return None
    v = v.strip()
    return v if v else None


def normalize_base_url(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "http://" + url
    url = url.rstrip("/")
    if not url.endswith("/v1"):
        url += "/v1"
    return url


def _coerce_value(key: str, raw: str) -> Any:
    v = raw.strip()
    if v.lower() in ("none", "null"):
        return None
    if key == "history_limit":
        n = int(v)
        if n < 1:
            raise ValueError(f"history_limit must be >= 1, got {n}")
        return n
    if key in _PATH_KEYS:
        return Path(v).expanduser()
    if key == "silent_failure_phrases":
        return tuple(p.strip() for p in v.split(",") if p.strip())
    return v


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load a simple key=value config file.

    - Ignores blank lines and lines starting with '#'
    - Coerces known types (int/path/list/None)
    - Returns a dict of keys -> coerced values
    """
    path = path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}

    out: dict[str, Any] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        k = k.strip()
        if k not in CONFIG_KEYS:
            continue
        out[k] = _coerce_value(k, v)
    return out


def save_config(cfg: AppConfig, path: Path | None = None, keys: set[str] | None = None) -> Path:
    """Persist selected non-secret config keys to a file."""
    path = path or DEFAULT_CONFIG_PATH
    keys = keys or PERSIST_KEYS
    path.parent.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    for k in sorted(keys):
        v = getattr(cfg, k)
        if v is None:
            continue
        if isinstance(v, tuple):
            v = ",".join(v)
        lines.append(f"{k}={v}")
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    return path


# args/env/file/defaults
def resolve_config(args, *, config_path: Path | None = None) -> AppConfig:
    """Resolve config using the precedence:
        CLI args > env vars > config file > defaults
    """
    file_cfg = load_config(config_path)

    openai_api_key = getattr(args, "api_key", None) or _env_nonempty("OPENAI_API_KEY") or file_cfg.get("openai_api_key")
    bearer_token = getattr(args, "bearer_token", None) or _env_nonempty("BEARER_TOKEN") or file_cfg.get("bearer_token")
    url_arg = getattr(args, "url", None)
    url_raw = url_arg or _env_nonempty("LLM_API_URL") or file_cfg.get("base_url") or DEFAULT_URL

    provider_raw = (
        getattr(args, "provider", None)
        or _env_nonempty("PROVIDER")
        or file_cfg.get("provider")
    )
    provider: Provider
    if provider_raw:
        provider = str(provider_raw).lower()  # type: ignore[assignment]
    elif openai_api_key and not url_arg:
        # use openai if API key set and no explicit compat URL
        provider = "openai"
    else:
        provider = "compat"
    if provider not in ("openai", "compat"):
        raise ValueError(f"Unknown provider: {provider} (expected 'openai' or 'compat')")

    base_url: Optional[str]
    if provider == "openai":
        base_url = None
    else:
        base_url = normalize_base_url(str(url_raw))

    # args > env > file > provider-default
    model = (
        getattr(args, "model", None)
        or _env_nonempty("MODEL")
        or file_cfg.get("model")
        or (DEFAULT_MODEL_OPENAI if provider == "openai" else DEFAULT_MODEL_COMPAT)
    )

    template = (
        getattr(args, "template", None)
        or _env_nonempty("TEMPLATE")
        or file_cfg.get("template")
        or DEFAULT_TEMPLATE_NAME
    )

    history_limit = getattr(args, "history_limit", None)
    if history_limit is None:
        env_limit = _env_nonempty("HISTORY_LIMIT")
        history_limit = (
            _coerce_value("history_limit", env_limit)
            if env_limit
            else file_cfg.get("history_limit") or DEFAULT_HISTORY_LIMIT
        )
    if int(history_limit) < 1:
        raise ValueError(f"history_limit must be >= 1, got {history_limit}")

    return AppConfig(
        model=str(model),
        provider=provider,
        base_url=base_url,
        openai_api_key=openai_api_key,
        bearer_token=bearer_token,
        template=str(template),
        template_dir=getattr(args, "template_dir", None) or DEFAULT_TEMPLATE_DIR,
        ffmpeg=file_cfg.get("ffmpeg") or "ffmpeg",
        silent_failure_phrases=extend_phrases(file_cfg.get("silent_failure_phrases") or ()),
        history_limit=int(history_limit),
        history_path=file_cfg.get("history_path") or DEFAULT_HISTORY_PATH,
        scratch_dir=file_cfg.get("scratch_dir") or DEFAULT_SCRATCH_DIR,
    )
