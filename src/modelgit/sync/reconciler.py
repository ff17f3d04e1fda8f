"""
Sync Reconciler

외부에서 받은 커밋 히스토리를 로컬 Commit Store에 병합:
- INCREMENTAL: 새 커밋 삽입 (부모 누락 시 보정), 기존 커밋 갱신, 카탈로그 합집합
- REPLACE: 해당 브랜치 커밋 전체를 원격 히스토리로 교체 (main 통합 브랜치)

부모 보정 규칙:
- 선언된 부모가 로컬/배치에 있으면 그대로 유지
- 없으면 원격 커밋보다 이른 로컬 커밋 중 가장 최근 것을 부모로 (로그 남김)
- 후보도 없으면 빈 부모로 삽입하고 경고
- relink_parents=True면 전체 히스토리를 타임스탬프 순으로 다시 연결 (레거시 동작)

사용 예시:
    reconciler = SyncReconciler(repo)
    result = reconciler.ingest(remote_commits)
    for adjustment in result.reparented:
        print(adjustment.commit_id, adjustment.adjusted_parent)
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Any, Optional, Set, Union

from ..branching.branch_manager import BranchManager
from ..exceptions import ModelGitError
from ..versioning.models import Branch, Commit, latest_commit
from ..versioning.repository import OperationStatus, Repository
from .exchange import export_branch_history, load_commit_batch

logger = logging.getLogger(__name__)


class IngestMode(str, Enum):
    """히스토리 병합 모드"""
    INCREMENTAL = "incremental"
    REPLACE = "replace"


@dataclass
class ParentAdjustment:
    """부모 커밋 보정 기록"""
    commit_id: str
    declared_parent: str
    adjusted_parent: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commit_id": self.commit_id,
            "declared_parent": self.declared_parent,
            "adjusted_parent": self.adjusted_parent,
        }


@dataclass
class IngestResult:
    """히스토리 병합 결과"""
    status: OperationStatus
    branch_name: str
    mode: IngestMode

    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    reparented: List[ParentAdjustment] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    reconstructed_commit_id: Optional[str] = None
    ingested_at: str = field(default_factory=lambda: datetime.now().isoformat())
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def reset_counts(self) -> None:
        self.added.clear()
        self.updated.clear()
        self.removed.clear()
        self.reparented.clear()
        self.unresolved.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "branch_name": self.branch_name,
            "mode": self.mode.value,
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "reparented": [a.to_dict() for a in self.reparented],
            "unresolved": self.unresolved,
            "reconstructed_commit_id": self.reconstructed_commit_id,
            "ingested_at": self.ingested_at,
            "message": self.message,
        }


class SyncReconciler:
    """
    히스토리 동기화

    원격 커밋 객체는 변경하지 않고 복사본을 저장한다.
    """

    def __init__(
        self,
        repository: Repository,
        branch_manager: Optional[BranchManager] = None,
    ):
        self.repo = repository
        self.branch_manager = branch_manager or BranchManager(repository)

        logger.info("SyncReconciler initialized")

    @property
    def store(self):
        return self.repo.store

    def ingest(
        self,
        remote_commits: List[Commit],
        mode: Optional[IngestMode] = None,
        branch_name: Optional[str] = None,
        reconstruct: bool = False,
        relink_parents: bool = False,
    ) -> IngestResult:
        """
        원격 커밋 배치 병합

        Args:
            remote_commits: 원격 커밋 (원격 순서)
            mode: 병합 모드 (기본: main 브랜치면 REPLACE, 아니면 INCREMENTAL)
            branch_name: 대상 브랜치 (기본: 첫 원격 커밋의 branchName)
            reconstruct: 병합 후 원격의 최신 커밋으로 워크스페이스 재구성
            relink_parents: 전체 히스토리를 타임스탬프 순으로 다시 연결 (INCREMENTAL)

        Returns:
            IngestResult
        """
        remote_commits = list(remote_commits or [])
        branch_name = branch_name or (remote_commits[0].branch_name if remote_commits else "")
        if mode is None:
            mode = (
                IngestMode.REPLACE
                if branch_name == self.repo.config.main_branch
                else IngestMode.INCREMENTAL
            )

        result = IngestResult(status=OperationStatus.FAILED, branch_name=branch_name, mode=mode)

        if not remote_commits:
            result.message = "No valid history found in the remote batch"
            logger.error(result.message)
            return result

        if not branch_name:
            result.message = "Remote batch has no branch name"
            logger.error(result.message)
            return result

        with self.store.lock():
            try:
                if mode == IngestMode.REPLACE:
                    applied = self._ingest_replace(remote_commits, branch_name, result)
                else:
                    applied = self._ingest_incremental(
                        remote_commits, branch_name, result, relink_parents
                    )
            except Exception as e:
                result.message = f"Failed to ingest history for branch '{branch_name}': {e}"
                logger.error(result.message)
                return result

            if reconstruct and applied:
                latest = latest_commit(applied)
                if self.repo.active_branch and self.repo.has_pending_changes():
                    logger.warning(
                        f"Discarding uncommitted changes on branch '{self.repo.active_branch}' "
                        f"for reconstruction after ingest"
                    )
                if self.repo.active_branch != branch_name:
                    self.repo.active_branch = branch_name
                reconstructed = self.branch_manager.reconstruct_workspace(latest.commit_id)
                if reconstructed.is_success:
                    result.reconstructed_commit_id = latest.commit_id
                else:
                    logger.warning(f"Reconstruction after ingest failed: {reconstructed.message}")

        result.status = OperationStatus.SUCCESS
        if mode == IngestMode.REPLACE:
            result.message = (
                f"Branch '{branch_name}' history replaced with {len(result.added)} commits"
            )
        else:
            result.message = (
                f"Branch '{branch_name}' history pulled and merged "
                f"({len(result.added)} added, {len(result.updated)} updated)"
            )
        logger.info(result.message)

        self.repo.events.log_event("history_ingested", {
            "branch": branch_name,
            "mode": mode.value,
            "added": len(result.added),
            "updated": len(result.updated),
            "removed": len(result.removed),
            "reparented": [a.to_dict() for a in result.reparented],
            "unresolved": result.unresolved,
            "reconstructed_commit_id": result.reconstructed_commit_id,
        })

        return result

    # === History File Exchange ===

    def pull_file(
        self,
        path: Union[str, Path],
        mode: Optional[IngestMode] = None,
        reconstruct: bool = False,
        relink_parents: bool = False,
    ) -> IngestResult:
        """히스토리 파일 읽기 + ingest"""
        try:
            remote_commits = load_commit_batch(path)
        except ModelGitError as e:
            result = IngestResult(
                status=OperationStatus.FAILED,
                branch_name="",
                mode=mode or IngestMode.INCREMENTAL,
                message=f"Failed to read history file '{path}': {e}",
            )
            logger.error(result.message)
            return result

        return self.ingest(
            remote_commits,
            mode=mode,
            reconstruct=reconstruct,
            relink_parents=relink_parents,
        )

    def push_branch(self, branch_name: str, directory: Union[str, Path]) -> Optional[Path]:
        """브랜치 히스토리를 파일로 내보내기"""
        try:
            return export_branch_history(
                self.store,
                branch_name,
                directory,
                main_branch=self.repo.config.main_branch,
            )
        except (ModelGitError, OSError) as e:
            logger.error(f"Failed to push branch '{branch_name}': {e}")
            return None

    # === Helpers ===

    @staticmethod
    def find_suitable_parent(history: List[Commit], commit: Commit) -> Optional[Commit]:
        """commit보다 이른 커밋 중 가장 최근 커밋"""
        candidates = [c for c in history if c.timestamp < commit.timestamp]
        return latest_commit(candidates)

    @staticmethod
    def relink_history(history: List[Commit]) -> None:
        """타임스탬프 순서대로 각 커밋의 부모를 직전 커밋으로 재설정"""
        for previous, commit in zip(history, history[1:]):
            commit.parent_commit = previous.commit_id

    # === Private Methods ===

    def _ingest_incremental(
        self,
        remote_commits: List[Commit],
        branch_name: str,
        result: IngestResult,
        relink_parents: bool,
    ) -> List[Commit]:
        batch_ids: Set[str] = {c.commit_id for c in remote_commits}

        def _merge(history: List[Commit]) -> List[Commit]:
            result.reset_counts()
            by_id: Dict[str, Commit] = {c.commit_id: c for c in history}
            known_ids = set(by_id) | batch_ids
            processed: Set[str] = set()

            for remote in remote_commits:
                if remote.commit_id in processed:
                    continue
                processed.add(remote.commit_id)

                existing = by_id.get(remote.commit_id)
                if existing is None:
                    commit = _copy_commit(remote)
                    self._resolve_parent(history, commit, known_ids, result)
                    history.append(commit)
                    by_id[commit.commit_id] = commit
                    result.added.append(commit.commit_id)
                    logger.info(f"Added new commit: {commit.commit_id}")
                    continue

                parent = remote.parent_commit
                if parent and parent not in known_ids:
                    # 이전 ingest에서 보정된 부모 유지
                    parent = existing.parent_commit

                if _commit_differs(existing, remote, parent):
                    existing.changes = [c.copy() for c in remote.changes]
                    existing.timestamp = remote.timestamp
                    existing.message = remote.message
                    existing.author = remote.author
                    existing.parent_commit = parent
                    result.updated.append(existing.commit_id)
                    logger.info(f"Updated existing commit: {existing.commit_id}")

            history.sort(key=lambda c: c.timestamp)
            if relink_parents:
                self.relink_history(history)
            return history

        history = self.store.update_history(_merge)
        self.store.update_branches(lambda branches: _union_catalog(branches, remote_commits))

        merged_ids = {c.commit_id for c in remote_commits if c.branch_name == branch_name}
        return [c for c in history if c.commit_id in merged_ids]

    def _ingest_replace(
        self,
        remote_commits: List[Commit],
        branch_name: str,
        result: IngestResult,
    ) -> List[Commit]:
        incoming: List[Commit] = []
        seen: Set[str] = set()
        for remote in remote_commits:
            if remote.branch_name != branch_name or remote.commit_id in seen:
                continue
            seen.add(remote.commit_id)
            incoming.append(remote)

        ignored = len(remote_commits) - len(incoming)
        if ignored:
            logger.warning(f"Ignored {ignored} remote commits not on branch '{branch_name}'")

        def _replace(history: List[Commit]) -> List[Commit]:
            result.reset_counts()
            kept: List[Commit] = []
            for commit in history:
                if commit.branch_name == branch_name:
                    result.removed.append(commit.commit_id)
                elif commit.commit_id in seen:
                    logger.warning(
                        f"Dropped local commit {commit.commit_id} of branch "
                        f"'{commit.branch_name}' (id collides with remote)"
                    )
                    result.removed.append(commit.commit_id)
                else:
                    kept.append(commit)

            copies = [_copy_commit(c) for c in incoming]
            result.added.extend(c.commit_id for c in copies)
            return sorted(kept + copies, key=lambda c: c.timestamp)

        self.store.update_history(_replace)

        def _overwrite(branches: List[Branch]) -> List[Branch]:
            branch = _find_or_create(branches, branch_name)
            branch.commits = [c.commit_id for c in incoming]
            for other in branches:
                if other.name != branch_name:
                    other.commits = [i for i in other.commits if i not in seen]
            return branches

        self.store.update_branches(_overwrite)

        return incoming

    def _resolve_parent(
        self,
        history: List[Commit],
        commit: Commit,
        known_ids: Set[str],
        result: IngestResult,
    ) -> None:
        declared = commit.parent_commit
        if not declared or declared in known_ids:
            return

        parent = self.find_suitable_parent(history, commit)
        if parent is not None:
            commit.parent_commit = parent.commit_id
            result.reparented.append(ParentAdjustment(
                commit_id=commit.commit_id,
                declared_parent=declared,
                adjusted_parent=parent.commit_id,
            ))
            logger.info(f"Adjusted parent commit for {commit.commit_id} to {parent.commit_id}")
        else:
            commit.parent_commit = ""
            result.unresolved.append(commit.commit_id)
            logger.warning(f"No suitable parent found for commit {commit.commit_id}")


def _copy_commit(commit: Commit) -> Commit:
    return replace(commit, changes=[c.copy() for c in commit.changes])


def _commit_differs(existing: Commit, remote: Commit, parent: str) -> bool:
    return (
        existing.timestamp != remote.timestamp
        or existing.message != remote.message
        or existing.author != remote.author
        or existing.parent_commit != parent
        or [c.to_dict() for c in existing.changes] != [c.to_dict() for c in remote.changes]
    )


def _find_or_create(branches: List[Branch], name: str) -> Branch:
    branch = next((b for b in branches if b.name == name), None)
    if branch is None:
        branch = Branch(name=name)
        branches.append(branch)
        logger.info(f"Created new branch: {name}")
    return branch


def _union_catalog(branches: List[Branch], remote_commits: List[Commit]) -> List[Branch]:
    """
    브랜치별 commitId 합집합

    로컬에만 있는 ID가 먼저, 이후 원격 순서.
    """
    remote_by_branch: Dict[str, List[str]] = {}
    for commit in remote_commits:
        ids = remote_by_branch.setdefault(commit.branch_name, [])
        if commit.commit_id not in ids:
            ids.append(commit.commit_id)

    for name, remote_ids in remote_by_branch.items():
        if not name:
            continue
        branch = _find_or_create(branches, name)
        order = {commit_id: index for index, commit_id in enumerate(remote_ids)}

        combined: List[str] = []
        for commit_id in branch.commits + remote_ids:
            if commit_id not in combined:
                combined.append(commit_id)

        new_count = len(combined) - len(branch.commits)
        branch.commits = sorted(combined, key=lambda c: order.get(c, -1))
        logger.info(f"Updated branch '{name}' with {new_count} new commits")

    return branches
