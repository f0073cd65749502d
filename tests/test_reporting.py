from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from dependency_cutoff.models import Decision, DecisionStatus
from dependency_cutoff.reporting import (
    export_decisions_csv,
    format_decision,
    print_decisions,
    remediation_command,
    summarize,
)


DECISIONS = [
    Decision(
        package_name="lodash",
        installed_version="4.17.21",
        status=DecisionStatus.DOWNGRADE,
        installed_published=datetime(2021, 2, 20, 15, 42, 16, tzinfo=timezone.utc),
        recommended_version="4.17.15",
        recommended_published=datetime(2019, 10, 28, 11, 12, 3, tzinfo=timezone.utc),
    ),
    Decision(
        package_name="debug",
        installed_version="4.3.1",
        status=DecisionStatus.PASS,
        installed_published=datetime(2019, 1, 1, tzinfo=timezone.utc),
        save_type="peer",
    ),
    Decision(
        package_name="ghost",
        installed_version="1.0.0",
        status=DecisionStatus.INCONCLUSIVE,
        reason="npm info exited with 1",
    ),
    Decision(
        package_name="brand-new",
        installed_version="1.0.0",
        status=DecisionStatus.NO_ALTERNATIVE,
        installed_published=datetime(2021, 1, 1, tzinfo=timezone.utc),
        reason="every candidate is newer than the cutoff",
    ),
]


def test_downgrade_lines_end_with_remediation() -> None:
    lines = format_decision(DECISIONS[0])

    assert lines[0] == "#  lodash@4.17.21: 2021-02-20T15:42:16.000Z."
    assert lines[1] == "#! lodash@4.17.21: downgrade required."
    assert lines[-1] == "npm install --save-exact lodash@4.17.15"


def test_other_statuses_have_no_remediation() -> None:
    assert format_decision(DECISIONS[1])[-1] == "#  debug@4.3.1: OK!"
    assert format_decision(DECISIONS[2]) == [
        "#! ghost@1.0.0: inconclusive (npm info exited with 1)."
    ]
    assert format_decision(DECISIONS[3])[-1].startswith("#! brand-new@1.0.0: no version")
    assert all(remediation_command(d) is None for d in DECISIONS[1:])


def test_print_and_summarize(capsys) -> None:
    print_decisions(DECISIONS)

    out = capsys.readouterr().out
    assert "npm install --save-exact lodash@4.17.15" in out
    assert summarize(DECISIONS) == {
        "pass": 1,
        "downgrade": 1,
        "no-alternative": 1,
        "inconclusive": 1,
    }


def test_export_decisions_csv(tmp_path: Path) -> None:
    csv_file = export_decisions_csv(DECISIONS, tmp_path / "out" / "decisions.csv")

    df = pd.read_csv(csv_file)
    assert csv_file.exists()
    assert list(df["package"]) == ["brand-new", "debug", "ghost", "lodash"]
    assert df.loc[df["package"] == "lodash", "remediation"].item() == "npm install --save-exact lodash@4.17.15"
