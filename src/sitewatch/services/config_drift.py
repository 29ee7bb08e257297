# src/sitewatch/services/config_drift.py

"""
Application-pool configuration drift.

Compares every pool against a baseline pool and reports the settings that
differ. Which pool is the baseline is a policy:

- explicit: the caller names the baseline pool
- "most_common": the pool whose compared settings are shared by the most
  pools (ties go to the earliest in inventory order)
- "first": the first pool in inventory order
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sitewatch.models.inventory import AppPool
from sitewatch.services.inventory_provider import format_timespan

logger = logging.getLogger(__name__)


class BaselinePolicy(str, Enum):
    MOST_COMMON = "most_common"
    FIRST = "first"


@dataclass(frozen=True)
class ConfigDifference:
    setting: str
    base_value: str
    current_value: str


# (label, extractor) in report order
COMPARED_SETTINGS: List[Tuple[str, Callable[[AppPool], str]]] = [
    ("Runtime Version", lambda p: p.managed_runtime_version),
    ("Pipeline Mode", lambda p: p.managed_pipeline_mode),
    ("32-bit Mode", lambda p: str(p.enable_32bit_app_on_win64)),
    ("Identity Type", lambda p: p.process_model.identity_type),
    ("Idle Timeout", lambda p: format_timespan(p.process_model.idle_timeout)),
]


def config_fingerprint(pool: AppPool) -> Tuple[str, ...]:
    return tuple(extract(pool) for _, extract in COMPARED_SETTINGS)


def diff_pool(baseline: AppPool, pool: AppPool) -> List[ConfigDifference]:
    diffs = []
    for label, extract in COMPARED_SETTINGS:
        base_value = extract(baseline)
        current_value = extract(pool)
        if base_value != current_value:
            diffs.append(ConfigDifference(label, base_value, current_value))
    return diffs


def select_baseline(
    pools: Sequence[AppPool],
    baseline: Optional[str] = None,
    policy: BaselinePolicy = BaselinePolicy.MOST_COMMON,
) -> Optional[AppPool]:
    """
    Pick the baseline pool.

    Raises:
        KeyError: if `baseline` names a pool that is not in `pools`
    """
    if not pools:
        return None

    if baseline is not None:
        for pool in pools:
            if pool.name == baseline:
                return pool
        raise KeyError(baseline)

    if BaselinePolicy(policy) == BaselinePolicy.FIRST:
        return pools[0]

    counts = Counter(config_fingerprint(pool) for pool in pools)
    best = max(counts.values())
    for pool in pools:
        if counts[config_fingerprint(pool)] == best:
            return pool
    return pools[0]


def compare_pools(
    pools: Sequence[AppPool],
    baseline: Optional[str] = None,
    policy: BaselinePolicy = BaselinePolicy.MOST_COMMON,
) -> Tuple[Optional[str], Dict[str, List[ConfigDifference]]]:
    """
    Diff every pool against the baseline.

    Returns:
        (baseline pool name or None, {pool name: differences}); pools with
        no differences, and the baseline itself, are left out
    """
    base = select_baseline(pools, baseline=baseline, policy=policy)
    if base is None:
        return None, {}

    differences: Dict[str, List[ConfigDifference]] = {}
    for pool in pools:
        if pool is base:
            continue
        diffs = diff_pool(base, pool)
        if diffs:
            differences[pool.name] = diffs

    logger.debug(f"Config drift against {base.name}: {len(differences)} pools differ")
    return base.name, differences
