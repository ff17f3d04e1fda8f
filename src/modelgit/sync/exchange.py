"""
History File Exchange

브랜치 히스토리를 사람이 읽을 수 있는 JSON 파일로 주고받기:
- export_branch_history: 브랜치 커밋을 <branch>.json 으로 (main은 <main>_history.json)
- load_commit_batch: 히스토리 파일 읽기 + 스키마 검증
- apply_latest_commit: 가장 최근 커밋의 변경만 워크스페이스에 적용

사용 예시:
    path = export_branch_history(store, "feature/deck", "./exchange")
    commits = load_commit_batch(path)
    summary = apply_latest_commit(workspace, commits)
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Any, Optional, Union, TYPE_CHECKING

from ..config import DEFAULT_MAIN_BRANCH
from ..exceptions import HistoryCorruptionError
from ..storage.schemas import dump_history, parse_history
from ..versioning.models import ChangeType, Commit, latest_commit
from ..versioning.workspace import Workspace

if TYPE_CHECKING:
    from ..storage.commit_store import CommitStore

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[\\/:*?\"<>|]")


@dataclass
class ImportSummary:
    """최신 커밋 적용 결과"""
    commit_id: str
    branch_name: str
    added: int = 0
    updated: int = 0
    deleted: int = 0
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commit_id": self.commit_id,
            "branch_name": self.branch_name,
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "failed": self.failed,
        }


def default_export_path(
    directory: Union[str, Path],
    branch_name: str,
    main_branch: str = DEFAULT_MAIN_BRANCH,
) -> Path:
    """브랜치 히스토리 파일 경로"""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", branch_name)
    if branch_name == main_branch:
        return Path(directory) / f"{safe_name}_history.json"
    return Path(directory) / f"{safe_name}.json"


def export_branch_history(
    store: "CommitStore",
    branch_name: str,
    directory: Union[str, Path],
    main_branch: str = DEFAULT_MAIN_BRANCH,
) -> Optional[Path]:
    """
    브랜치 커밋을 파일로 내보내기 (히스토리 저장 순서)

    Returns:
        작성된 파일 경로 (브랜치 커밋이 없으면 None)
    """
    commits = [c for c in store.get_history() if c.branch_name == branch_name]
    if not commits:
        logger.warning(f"No history found for branch '{branch_name}'")
        return None

    path = default_export_path(directory, branch_name, main_branch)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(dump_history(commits), f, ensure_ascii=False, indent=2)
        f.write("\n")
    os.replace(tmp, path)

    logger.info(f"Branch '{branch_name}' history pushed to {path} ({len(commits)} commits)")
    return path


def load_commit_batch(path: Union[str, Path]) -> List[Commit]:
    """
    히스토리 파일 읽기

    Returns:
        커밋 목록 (파일이 없으면 빈 목록)

    Raises:
        HistoryCorruptionError: JSON 또는 스키마 오류
    """
    path = Path(path)
    if not path.exists():
        logger.error(f"File not found: {path}")
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise HistoryCorruptionError(
            f"Unreadable history file '{path}': {e}",
            key=str(path),
            cause=e,
        )

    commits = parse_history(data, key=str(path))
    logger.info(f"Loaded {len(commits)} commits from {path}")
    return commits


def apply_latest_commit(workspace: Workspace, commits: List[Commit]) -> Optional[ImportSummary]:
    """
    가장 최근 커밋(타임스탬프 기준)의 변경을 워크스페이스에 적용

    Added → 추가, Modified → 교체, Deleted → 존재하는 경우 삭제.

    Returns:
        ImportSummary (커밋이 없으면 None)
    """
    latest = latest_commit(commits)
    if latest is None:
        logger.error("No valid history found")
        return None

    summary = ImportSummary(commit_id=latest.commit_id, branch_name=latest.branch_name)
    existing = set(workspace.current_objects())

    for change in latest.changes:
        if change.change_type == ChangeType.DELETED and change.id not in existing:
            continue
        try:
            workspace.apply_change(change)
        except Exception as e:
            logger.warning(f"Failed to import object {change.id}: {e}")
            summary.failed.append(change.id)
            continue

        if change.change_type == ChangeType.ADDED:
            summary.added += 1
        elif change.change_type == ChangeType.MODIFIED:
            summary.updated += 1
        else:
            summary.deleted += 1

    logger.info(
        f"Imported latest model from branch: {summary.branch_name}, Commit: {summary.commit_id}"
    )
    logger.info(
        f"Added: {summary.added}, Updated: {summary.updated}, Deleted: {summary.deleted} objects"
    )
    return summary
