# src/bookmeter/infrastructure/services/settings_service.py
"""
Enrichment settings.

Library targets and tuning live in ``config/libraries.yaml``; credentials
and per-run overrides come from the environment:

    CINII_API_APPID, GOOGLE_BOOKS_API_KEY, ISBNDB_API_KEY
    BOOKMETER_LIBRARIES_PATH, BOOKMETER_CONCURRENCY,
    BOOKMETER_PACING_BASE_SECONDS, BOOKMETER_BACKFILL_POLICY
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from loguru import logger as loguru_logger

from bookmeter.domain.errors import ConfigError
from bookmeter.domain.library import LIBRARY_TAGS, BackfillPolicy, LibraryTarget
from bookmeter.infrastructure.libraries.math_library_source import DEFAULT_MATH_LIBRARY_PDFS

logger = logging.getLogger(__name__)

DEFAULT_TARGETS = (
    LibraryTarget(tag="utokyo", cinii_kid="KI000221", opac_base_url="https://opac.dl.itc.u-tokyo.ac.jp"),
    LibraryTarget(tag="sophia", cinii_kid="KI00209X", opac_base_url="https://www.lib.sophia.ac.jp"),
)


@dataclass(frozen=True)
class EnrichmentSettings:
    targets: Tuple[LibraryTarget, ...] = DEFAULT_TARGETS
    math_library_tag: Optional[str] = "sophia"
    math_library_pdfs: Tuple[str, ...] = DEFAULT_MATH_LIBRARY_PDFS
    concurrency: int = 5
    pacing_base_seconds: float = 1.5
    pacing_jitter: Tuple[float, float] = (0.8, 1.2)
    bulk_chunk_size: int = 100
    backfill_policy: BackfillPolicy = BackfillPolicy.FILL_GAPS
    cinii_app_id: Optional[str] = field(default=None, repr=False)
    google_books_api_key: Optional[str] = field(default=None, repr=False)
    isbndb_api_key: Optional[str] = field(default=None, repr=False)


class SettingsService:
    """Loads and validates ``libraries.yaml``."""

    def __init__(self, config_path: Optional[str] = None):
        if config_path is None:
            config_path = os.getenv("BOOKMETER_LIBRARIES_PATH")
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent.parent.parent
            config_path = project_root / "config" / "libraries.yaml"
        self.config_path = Path(config_path)
        self._config: Optional[Dict[str, Any]] = None

    def load_config(self) -> Dict[str, Any]:
        if self._config is not None:
            return self._config

        if not self.config_path.exists():
            logger.warning(f"Library config not found at {self.config_path}, using built-in targets")
            self._config = {}
            return self._config

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}") from e

        self._validate_config()
        logger.info(f"Loaded library config from {self.config_path}")
        return self._config

    def _validate_config(self) -> None:
        config = self._config or {}
        libraries = config.get("libraries") or {}
        targets = libraries.get("targets") or []
        seen = set()
        for i, target in enumerate(targets):
            tag = target.get("tag")
            if not tag:
                raise ConfigError(f"Library target at index {i} missing 'tag'")
            if tag not in LIBRARY_TAGS:
                raise ConfigError(f"Unknown library tag {tag!r}; expected one of {LIBRARY_TAGS}")
            if tag in seen:
                raise ConfigError(f"Library tag {tag!r} configured twice")
            seen.add(tag)
            for key in ("cinii_kid", "opac_base_url"):
                if not target.get(key):
                    raise ConfigError(f"Library target {tag!r} missing {key!r}")

        math_library = libraries.get("math_library") or {}
        math_tag = math_library.get("tag")
        if math_tag is not None and math_tag not in LIBRARY_TAGS:
            raise ConfigError(f"Unknown math library tag {math_tag!r}")

        settings = config.get("settings") or {}
        concurrency = settings.get("concurrency")
        if concurrency is not None and int(concurrency) < 1:
            raise ConfigError(f"concurrency must be >= 1, got {concurrency}")
        pacing = settings.get("pacing_base_seconds")
        if pacing is not None and float(pacing) < 0:
            raise ConfigError(f"pacing_base_seconds must be >= 0, got {pacing}")
        policy = settings.get("backfill_policy")
        if policy is not None:
            _parse_policy(policy)

    def get_targets(self) -> List[LibraryTarget]:
        libraries = self.load_config().get("libraries") or {}
        targets = libraries.get("targets")
        if not targets:
            return list(DEFAULT_TARGETS)
        return [
            LibraryTarget(
                tag=t["tag"],
                cinii_kid=t["cinii_kid"],
                opac_base_url=t["opac_base_url"],
                record_marker=t.get("record_marker") or "bibid",
            )
            for t in targets
        ]

    def get_settings(self) -> EnrichmentSettings:
        config = self.load_config()
        libraries = config.get("libraries") or {}
        math_library = libraries.get("math_library") or {}
        tuning = config.get("settings") or {}

        settings = EnrichmentSettings(targets=tuple(self.get_targets()))
        updates: Dict[str, Any] = {}
        if "tag" in math_library:
            updates["math_library_tag"] = math_library.get("tag")
        if math_library.get("pdf_urls") is not None:
            updates["math_library_pdfs"] = tuple(math_library["pdf_urls"])
        if tuning.get("concurrency") is not None:
            updates["concurrency"] = int(tuning["concurrency"])
        if tuning.get("pacing_base_seconds") is not None:
            updates["pacing_base_seconds"] = float(tuning["pacing_base_seconds"])
        if tuning.get("pacing_jitter") is not None:
            low, high = tuning["pacing_jitter"]
            updates["pacing_jitter"] = (float(low), float(high))
        if tuning.get("bulk_chunk_size") is not None:
            updates["bulk_chunk_size"] = int(tuning["bulk_chunk_size"])
        if tuning.get("backfill_policy") is not None:
            updates["backfill_policy"] = _parse_policy(tuning["backfill_policy"])
        return replace(settings, **updates)


def _parse_policy(value: Any) -> BackfillPolicy:
    try:
        return BackfillPolicy(str(value).strip().lower())
    except ValueError as e:
        raise ConfigError(f"Invalid backfill_policy: {value!r}") from e


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}")
    return value


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must be >= 0, got {value}")
    return value


def load_settings(config_path: Optional[str] = None) -> EnrichmentSettings:
    """File settings with environment overrides and credentials applied."""
    settings = SettingsService(config_path).get_settings()
    updates: Dict[str, Any] = {
        "cinii_app_id": os.getenv("CINII_API_APPID") or None,
        "google_books_api_key": os.getenv("GOOGLE_BOOKS_API_KEY") or None,
        "isbndb_api_key": os.getenv("ISBNDB_API_KEY") or None,
    }

    concurrency = _env_int("BOOKMETER_CONCURRENCY")
    if concurrency is not None:
        updates["concurrency"] = concurrency
    pacing = _env_float("BOOKMETER_PACING_BASE_SECONDS")
    if pacing is not None:
        updates["pacing_base_seconds"] = pacing
    policy = os.getenv("BOOKMETER_BACKFILL_POLICY", "").strip()
    if policy:
        updates["backfill_policy"] = _parse_policy(policy)

    if not updates["cinii_app_id"]:
        loguru_logger.warning("CINII_API_APPID is not set; every holdings search will report not held")
    if not updates["isbndb_api_key"]:
        loguru_logger.warning("ISBNDB_API_KEY is not set; ISBNdb lookups are skipped")
    return replace(settings, **updates)
