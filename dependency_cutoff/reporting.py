"""
Reporting and export utilities.
"""

from __future__ import annotations

import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO

import pandas as pd

from .models import Decision, DecisionStatus
from .time_utils import format_timestamp


logger = logging.getLogger(__name__)

DECISION_COLUMNS = [
    "package",
    "installed_version",
    "installed_published",
    "status",
    "recommended_version",
    "recommended_published",
    "remediation",
    "reason",
]


def remediation_command(decision: Decision) -> Optional[str]:
    """``npm install`` command pinning the recommended version, if any."""
    if decision.status is not DecisionStatus.DOWNGRADE or not decision.recommended_version:
        return None
    return (
        f"npm install --save-{decision.save_type} "
        f"{decision.package_name}@{decision.recommended_version}"
    )


def format_decision(decision: Decision) -> List[str]:
    """Render a decision as ``#``-prefixed status lines plus the remediation."""
    pkg = f"{decision.package_name}@{decision.installed_version}"

    if decision.status is DecisionStatus.INCONCLUSIVE:
        return [f"#! {pkg}: inconclusive ({decision.reason})."]

    lines = [f"#  {pkg}: {format_timestamp(decision.installed_published)}."]
    if decision.status is DecisionStatus.PASS:
        lines.append(f"#  {pkg}: OK!")
        return lines

    lines.append(f"#! {pkg}: downgrade required.")
    if decision.status is DecisionStatus.NO_ALTERNATIVE:
        lines.append(f"#! {pkg}: no version published before the date ({decision.reason}).")
        return lines

    lines.append(
        f"#  {decision.package_name}@{decision.recommended_version}: "
        f"{format_timestamp(decision.recommended_published)}."
    )
    lines.append(remediation_command(decision))
    return lines


def print_decisions(decisions: Iterable[Decision], stream: TextIO = sys.stdout) -> None:
    for decision in decisions:
        for line in format_decision(decision):
            print(line, file=stream)


def summarize(decisions: Iterable[Decision]) -> Dict[str, int]:
    counts = Counter(decision.status.value for decision in decisions)
    return {status.value: counts.get(status.value, 0) for status in DecisionStatus}


def print_summary(decisions: List[Decision]) -> None:
    summary = summarize(decisions)
    logger.info("=" * 60)
    logger.info("Packages checked: %d", len(decisions))
    for status, count in summary.items():
        logger.info("  %-15s %d", status, count)
    logger.info("=" * 60)


def decisions_to_frame(decisions: Iterable[Decision]) -> pd.DataFrame:
    records = [
        {
            "package": decision.package_name,
            "installed_version": decision.installed_version,
            "installed_published": decision.installed_published,
            "status": decision.status.value,
            "recommended_version": decision.recommended_version,
            "recommended_published": decision.recommended_published,
            "remediation": remediation_command(decision),
            "reason": decision.reason,
        }
        for decision in decisions
    ]
    df = pd.DataFrame(records, columns=DECISION_COLUMNS)
    return df.sort_values("package", kind="stable").reset_index(drop=True)


def export_decisions_csv(decisions: Iterable[Decision], output_file: Path) -> Path:
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    df = decisions_to_frame(decisions)
    df.to_csv(output_file, index=False)
    return output_file
