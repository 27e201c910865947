from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%m/%d/%Y"

_LOADED = False


def load_env(candidates: Optional[list[Path]] = None) -> Optional[Path]:
    """Load the first existing .env file into ``os.environ`` (once per process)."""
    global _LOADED
    if _LOADED:
        return None
    _LOADED = True

    if candidates is None:
        base_dir = Path(__file__).resolve().parent
        candidates = [Path.cwd() / ".env", base_dir.parent / ".env"]

    for path in candidates:
        if not path.exists():
            continue
        # Real environment variables win over the file.
        load_dotenv(dotenv_path=path, override=False)
        logger.debug("Environment loaded from %s", path)
        return path
    return None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RuntimeConfig:
    debug: bool
    data_dir: Path
    db_url: str
    log_dir: Path
    date_format: str = DEFAULT_DATE_FORMAT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeConfig":
        env = os.environ if environ is None else environ
        data_dir = Path(env.get("INVOICEDESK_DATA_DIR") or "./data")
        db_url = env.get("INVOICEDESK_DB_URL") or f"sqlite:///{data_dir / 'invoicedesk.db'}"
        log_dir = Path(env.get("INVOICEDESK_LOG_DIR") or data_dir / "logs")
        return cls(
            debug=_flag(env.get("INVOICEDESK_DEBUG")),
            data_dir=data_dir,
            db_url=db_url,
            log_dir=log_dir,
            date_format=env.get("INVOICEDESK_DATE_FORMAT") or DEFAULT_DATE_FORMAT,
        )
