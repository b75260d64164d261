"""Maintenance script to audit (and optionally repair) denormalized counters.

Usage:
    python scripts/reconcile_counters.py

Environment overrides:
    RECONCILE_APPLY=false
    RECONCILE_POST_IDS=1,2,3
    RECONCILE_MAX_REPAIRS=1000
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from time import perf_counter

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from core import configure_logging, settings  # noqa: E402
from db.session import AsyncSessionMaker  # noqa: E402
from services.integrity import find_counter_drift, repair_counter_drift  # noqa: E402

APPLY_ENV = "RECONCILE_APPLY"
POST_IDS_ENV = "RECONCILE_POST_IDS"
MAX_REPAIRS_ENV = "RECONCILE_MAX_REPAIRS"
DEFAULT_MAX_REPAIRS = 1000
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
FALSE_VALUES = frozenset({"0", "false", "no", "off"})

logger = logging.getLogger("scripts.reconcile_counters")


def _parse_bool(raw_value: str | None, *, default: bool, label: str) -> bool:
    if raw_value is None or raw_value.strip() == "":
        return default
    normalized = raw_value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{label} must be a boolean")


def _parse_positive_int(raw_value: str | None, *, default: int, label: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        parsed = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{label} must be an integer") from exc
    if parsed <= 0:
        raise ValueError(f"{label} must be positive")
    return parsed


def _parse_id_list(raw_value: str | None, *, label: str) -> list[int] | None:
    if raw_value is None or raw_value.strip() == "":
        return None
    ids: list[int] = []
    for chunk in raw_value.split(","):
        candidate = chunk.strip()
        if not candidate:
            continue
        ids.append(_parse_positive_int(candidate, default=0, label=label))
    return ids or None


async def run() -> int:
    apply = _parse_bool(os.getenv(APPLY_ENV), default=False, label=APPLY_ENV)
    post_ids = _parse_id_list(os.getenv(POST_IDS_ENV), label=POST_IDS_ENV)
    max_repairs = _parse_positive_int(
        os.getenv(MAX_REPAIRS_ENV),
        default=DEFAULT_MAX_REPAIRS,
        label=MAX_REPAIRS_ENV,
    )

    started_at = perf_counter()
    async with AsyncSessionMaker() as session:
        drift = await find_counter_drift(session, post_ids=post_ids)
        for item in drift:
            logger.info(
                "Counter drift %s id=%s stored=%s actual=%s",
                item.kind.value,
                item.row_id,
                item.stored,
                item.actual,
            )

        repaired = 0
        if apply and drift:
            repaired = await repair_counter_drift(session, drift[:max_repairs])

    elapsed_ms = int((perf_counter() - started_at) * 1000)
    logger.info(
        "Counter reconcile complete: drift_found=%s, repaired=%s, apply=%s, elapsed_ms=%s",
        len(drift),
        repaired,
        apply,
        elapsed_ms,
    )
    return len(drift) - repaired


def main() -> None:
    configure_logging(settings.log_level, settings.log_format)
    remaining = asyncio.run(run())
    if remaining > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
