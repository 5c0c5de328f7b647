import os
from dataclasses import dataclass, field
from typing import FrozenSet, List

from dotenv import load_dotenv


load_dotenv()

DEFAULT_MAX_UPLOAD_BYTES = 1024 * 1024 * 1024  # ~1 GiB
DEFAULT_MAX_JSON_BYTES = 1024 * 1024  # 1 MiB


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


@dataclass(frozen=True)
class UploadConfig:
    """Limits applied to a single multipart upload call."""

    max_total_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    allowed_content_types: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # accept any iterable of types from callers
        object.__setattr__(self, "allowed_content_types", frozenset(self.allowed_content_types))

    @classmethod
    def from_env(cls) -> "UploadConfig":
        return cls(
            max_total_bytes=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_UPLOAD_BYTES),
            allowed_content_types=frozenset(_env_list("ALLOWED_FILE_TYPES")),
        )

    def allows(self, content_type: str) -> bool:
        if not self.allowed_content_types:
            return True
        wanted = content_type.lower()
        return any(wanted == allowed.lower() for allowed in self.allowed_content_types)


@dataclass(frozen=True)
class JSONConfig:
    """Limits applied when decoding a JSON request body."""

    max_body_bytes: int = DEFAULT_MAX_JSON_BYTES
    allow_unknown_fields: bool = False

    @classmethod
    def from_env(cls) -> "JSONConfig":
        return cls(
            max_body_bytes=_env_int("MAX_JSON_SIZE", DEFAULT_MAX_JSON_BYTES),
            allow_unknown_fields=_env_bool("ALLOW_JSON_UNKNOWN_FIELDS"),
        )


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables.

    Used by the demo service; the helpers themselves only take
    UploadConfig / JSONConfig values.
    """

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    DOWNLOAD_DIR: str = os.getenv("DOWNLOAD_DIR", "./files")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")
    REMOTE_SERVICE_URL: str = os.getenv("REMOTE_SERVICE_URL", "http://localhost:8080/simulated-service")

    @staticmethod
    def allowed_origins(extra_origins: List[str] | None = None) -> List[str]:
        merged = _env_list("CORS_ALLOWED_ORIGINS") or ["http://localhost:3000"]
        if extra_origins:
            merged.extend(extra_origins)
        # Deduplicate while preserving order
        seen = set()
        result: List[str] = []
        for origin in merged:
            if origin not in seen:
                seen.add(origin)
                result.append(origin)
        return result

    @classmethod
    def validate(cls) -> None:
        if not cls.UPLOAD_DIR:
            raise ValueError("UPLOAD_DIR environment variable must not be empty")
        if UploadConfig.from_env().max_total_bytes <= 0:
            raise ValueError("MAX_FILE_SIZE must be a positive number of bytes")
        if JSONConfig.from_env().max_body_bytes <= 0:
            raise ValueError("MAX_JSON_SIZE must be a positive number of bytes")
