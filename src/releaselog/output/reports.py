"""Diagnostic dumps of a finished run."""

import json
from pathlib import Path
from typing import Any, Dict, List

import structlog
from pydantic import BaseModel

from releaselog.resolution.engine import ChangelogEngine

logger = structlog.get_logger(__name__)


def _dump(models: List[BaseModel]) -> List[Dict[str, Any]]:
    return [model.model_dump(mode="json") for model in models]


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)


def save_reports(engine: ChangelogEngine, output_dir: Path) -> List[Path]:
    """Write the resolved tables of ``engine`` into ``output_dir``.

    Args:
        engine: Engine after ``discover_changes``
        output_dir: Target directory, created if missing

    Returns:
        Paths of the files written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    issues = sorted(engine.issues.values(), key=lambda issue: issue.num)
    commits = sorted(engine.commits.values(), key=lambda commit: commit.sha)

    reports = {
        "authors-scan.json": _dump(list(engine.authors)),
        "change-issues.json": _dump(issues),
        "change-issues-relevant.json": _dump(engine.relevant_issues()),
        "change-commits.json": _dump(commits),
        "change-groups.json": _dump(engine.changes),
    }

    written = []
    for name, data in reports.items():
        path = output_dir / name
        _write_json(path, data)
        written.append(path)

    paths_log = output_dir / "change-paths.log"
    changed = engine.changed_files()
    paths_log.write_text("".join(f"{name}\n" for name in changed), encoding="utf-8")
    written.append(paths_log)

    logger.info("reports_written", directory=str(output_dir), files=len(written), changed_paths=len(changed))
    return written
