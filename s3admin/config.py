from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Optional

from .bulk import BULK_CONCURRENCY, MAX_RECURSIVE_CONCURRENCY, RECURSIVE_CONCURRENCY
from .s3 import MAX_PAGE_SIZE

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
PAGE_SIZE_CHOICES = (10, 20, 50, 100, 200)


@dataclass(frozen=True)
class AppConfig:
    profile: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    public_base_url: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    bulk_concurrency: int = BULK_CONCURRENCY
    recursive_concurrency: int = RECURSIVE_CONCURRENCY

    def merged(self, **overrides) -> "AppConfig":
        values = {key: value for key, value in overrides.items() if value is not None}
        return _normalized(replace(self, **values))


def config_base_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        base = Path(config_home).expanduser()
    else:
        base = Path.home() / ".config"
    return base / "s3admin"


def default_config_path() -> Path:
    return config_base_dir() / "config.json"


def _decode_str(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


def _decode_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return default


def _normalized(config: AppConfig) -> AppConfig:
    bulk = max(1, int(config.bulk_concurrency))
    # Recursive deletes never run narrower than multi-select deletes.
    recursive = max(int(config.recursive_concurrency), bulk)
    return replace(
        config,
        page_size=max(1, min(MAX_PAGE_SIZE, int(config.page_size))),
        bulk_concurrency=bulk,
        recursive_concurrency=max(1, min(MAX_RECURSIVE_CONCURRENCY, recursive)),
    )


def _read_payload(path: Path) -> dict[str, object]:
    try:
        payload = json.loads(path.read_text())
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        log.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        return {}
    return payload


def load_config(path: Optional[Path] = None) -> AppConfig:
    payload = _read_payload(path or default_config_path())
    defaults = AppConfig()
    return _normalized(
        AppConfig(
            profile=_decode_str(payload.get("profile")),
            region=_decode_str(payload.get("region")),
            endpoint_url=_decode_str(payload.get("endpoint_url")),
            public_base_url=_decode_str(payload.get("public_base_url")),
            page_size=_decode_int(payload.get("page_size"), defaults.page_size),
            bulk_concurrency=_decode_int(
                payload.get("bulk_concurrency"), defaults.bulk_concurrency
            ),
            recursive_concurrency=_decode_int(
                payload.get("recursive_concurrency"),
                defaults.recursive_concurrency,
            ),
        )
    )


def save_config(config: AppConfig, path: Optional[Path] = None) -> bool:
    target = path or default_config_path()
    payload = _read_payload(target)
    payload.update(asdict(config))
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_suffix(".tmp")
        temp_path.write_text(json.dumps(payload, indent=2))
        temp_path.replace(target)
    except OSError as exc:
        log.warning("could not save config %s: %s", target, exc)
        return False
    return True
