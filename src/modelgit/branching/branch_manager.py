"""
Branch Manager

데이터셋 브랜치 관리:
- 브랜치 생성/목록/조회
- 브랜치 전환 (전환 전 자동 저장, 새 브랜치의 첫 커밋 생성)
- 워크스페이스 재구성 (커밋 단위 / 히스토리 재생)
- 브랜치 비교 (최신 커밋 기준)

사용 예시:
    manager = BranchManager(repo)
    manager.create_branch("feature/deck")
    result = manager.switch_branch("feature/deck")

    comparison = manager.compare_branches("main", "feature/deck")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any, Optional

from ..exceptions import ModelGitError
from ..versioning.models import Branch, ChangeType, Commit, ObjectChange
from ..versioning.repository import OperationStatus, Repository

logger = logging.getLogger(__name__)

AUTO_SAVE_MESSAGE = "Auto-save before switching to branch '{branch}'"
INITIAL_COMMIT_MESSAGE = "Initial commit for branch '{branch}'"


@dataclass
class ReconstructResult:
    """워크스페이스 재구성 결과"""
    status: OperationStatus
    commit_id: str
    applied: int = 0
    skipped: List[str] = field(default_factory=list)
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "commit_id": self.commit_id,
            "applied": self.applied,
            "skipped": self.skipped,
            "message": self.message,
        }


@dataclass
class SwitchResult:
    """브랜치 전환 결과"""
    status: OperationStatus
    branch_name: str
    previous_branch: Optional[str] = None

    # 전환 중 생성된 커밋
    auto_save_commit_id: Optional[str] = None
    initial_commit_id: Optional[str] = None

    reconstruct: Optional[ReconstructResult] = None
    switched_at: str = field(default_factory=lambda: datetime.now().isoformat())
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "branch_name": self.branch_name,
            "previous_branch": self.previous_branch,
            "auto_save_commit_id": self.auto_save_commit_id,
            "initial_commit_id": self.initial_commit_id,
            "reconstruct": self.reconstruct.to_dict() if self.reconstruct else None,
            "switched_at": self.switched_at,
            "message": self.message,
        }


@dataclass
class BranchComparison:
    """두 브랜치의 최신 커밋 비교"""
    base_branch: str
    other_branch: str
    base_commit_id: str = ""
    other_commit_id: str = ""

    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def has_differences(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_branch": self.base_branch,
            "other_branch": self.other_branch,
            "base_commit_id": self.base_commit_id,
            "other_commit_id": self.other_commit_id,
            "added": self.added,
            "modified": self.modified,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "has_differences": self.has_differences,
        }


class BranchManager:
    """
    브랜치 관리자

    상태 (데이터셋 단위): 활성 브랜치 없음 | 활성 브랜치 X
    활성 브랜치와 baseline은 Repository가 소유한다.
    """

    def __init__(self, repository: Repository, replay_on_switch: bool = False):
        """
        Args:
            repository: 작업 핸들
            replay_on_switch: 전환 시 히스토리 재생으로 재구성 (기본: 최신 커밋 변경만 적용)
        """
        self.repo = repository
        self.replay_on_switch = replay_on_switch

        logger.info("BranchManager initialized")

    @property
    def store(self):
        return self.repo.store

    # === Catalog ===

    def create_branch(self, name: str) -> bool:
        """
        빈 브랜치 생성

        Returns:
            성공 여부 (이미 존재하면 False)
        """
        name = (name or "").strip()
        if not name:
            logger.error("Branch name is empty")
            return False

        try:
            created = self.store.create_branch(name)
        except ModelGitError as e:
            logger.error(f"Failed to create branch '{name}': {e}")
            return False

        if not created:
            logger.warning(f"Branch '{name}' already exists")
            return False

        self.repo.events.log_event("branch_created", {"branch": name})
        logger.info(f"Created branch: {name}")
        return True

    def list_branches(self) -> List[Branch]:
        return self.store.get_branches()

    def get_branch(self, name: str) -> Optional[Branch]:
        return self.store.get_branch(name)

    def get_current_branch(self) -> Optional[str]:
        return self.repo.active_branch

    # === Switch ===

    def switch_branch(self, name: str, create_initial_commit: bool = True) -> SwitchResult:
        """
        브랜치 전환

        1. 현재 브랜치에 미커밋 변경이 있으면 자동 저장 커밋
        2. 대상 브랜치에 커밋이 없으면 첫 커밋 생성 (create_initial_commit)
        3. 활성 브랜치 변경
        4. 대상 브랜치의 최신 커밋(타임스탬프 기준)으로 워크스페이스 재구성

        Args:
            name: 대상 브랜치
            create_initial_commit: 커밋 없는 브랜치에 첫 커밋 생성

        Returns:
            SwitchResult
        """
        previous = self.repo.active_branch
        result = SwitchResult(
            status=OperationStatus.FAILED,
            branch_name=name,
            previous_branch=previous,
        )

        if name == previous:
            result.status = OperationStatus.NO_CHANGES
            result.message = f"Already on branch '{name}'"
            return result

        with self.store.lock():
            try:
                if self.store.get_branch(name) is None:
                    result.message = f"Branch '{name}' does not exist"
                    logger.error(result.message)
                    return result

                if previous:
                    auto_save = self._auto_save(previous, name)
                    if auto_save is not None:
                        result.auto_save_commit_id = auto_save.commit_id

                if create_initial_commit and not self.store.get_branch_commits(name):
                    initial = self.create_first_commit_for_branch(name, parent_branch=previous)
                    if initial is not None:
                        result.initial_commit_id = initial.commit_id

                self.repo.active_branch = name
                logger.info(f"Switched to branch: {name}")

                latest = self.store.get_latest_commit(name)
                if latest is None:
                    result.message = f"No commits found in branch '{name}'"
                    logger.error(result.message)
                    return result

                result.reconstruct = self.reconstruct_workspace(
                    latest.commit_id, replay=self.replay_on_switch
                )
            except Exception as e:
                result.message = f"Failed to switch to branch '{name}': {e}"
                logger.error(result.message)
                return result

        if not result.reconstruct.is_success:
            result.message = result.reconstruct.message
            return result

        result.status = OperationStatus.SUCCESS
        result.message = f"Switched to branch '{name}'"

        self.repo.events.log_event("branch_switched", {
            "from": previous,
            "to": name,
            "auto_save_commit_id": result.auto_save_commit_id,
            "initial_commit_id": result.initial_commit_id,
            "reconstructed_commit_id": latest.commit_id,
        })

        return result

    def create_first_commit_for_branch(
        self,
        name: str,
        parent_branch: Optional[str] = None,
    ) -> Optional[Commit]:
        """
        커밋 없는 브랜치의 첫 커밋 생성

        - 부모 브랜치에 커밋이 있으면 그 최신 커밋의 변경 목록을 그대로 복사
        - 없으면 현재 워크스페이스의 모든 객체를 Added로 기록 (루트 브랜치)

        Returns:
            생성된 커밋 (이미 커밋이 있으면 None)
        """
        if self.store.get_branch_commits(name):
            return None

        parent_branch = parent_branch or self.repo.active_branch
        parent_id = self.store.get_last_commit_id(parent_branch) if parent_branch else ""
        parent = self.store.get_commit(parent_id)

        if parent is not None:
            changes = [c.copy() for c in parent.changes]
        else:
            parent_id = ""
            changes = self._snapshot_changes()

        commit = self.repo.record_commit(
            changes,
            INITIAL_COMMIT_MESSAGE.format(branch=name),
            author=self.repo.config.default_author,
            branch=name,
            parent=parent_id,
        )
        logger.info(f"Created initial commit {commit.commit_id} for branch '{name}'")
        return commit

    # === Reconstruct ===

    def reconstruct_workspace(self, commit_id: str, replay: bool = False) -> ReconstructResult:
        """
        워크스페이스를 커밋 시점으로 재구성

        replay=False: 대상 커밋의 Deleted가 아닌 변경만 적용
        replay=True: 부모 체인 전체를 재생한 상태 적용

        이후 활성 브랜치 baseline은 적용된 페이로드로 교체된다.
        """
        result = ReconstructResult(status=OperationStatus.FAILED, commit_id=commit_id)

        try:
            commit = self.store.get_commit(commit_id)
            if commit is None:
                result.message = f"Commit {commit_id} not found"
                logger.error(result.message)
                return result

            if replay:
                changes = list(self.repo.replay_state(commit_id).values())
            else:
                changes = [c.copy(ChangeType.ADDED) for c in commit.changes if not c.is_deleted]

            self.repo.workspace.clear()
        except Exception as e:
            result.message = f"Failed to reconstruct commit {commit_id}: {e}"
            logger.error(result.message)
            return result

        applied = self._apply_changes(changes, result.skipped)
        self.repo.set_baseline(applied)

        result.status = OperationStatus.SUCCESS
        result.applied = len(applied)
        result.message = f"Reconstructed model to commit {commit_id}"
        logger.info(f"{result.message} ({result.applied} objects, {len(result.skipped)} skipped)")
        return result

    # === Compare ===

    def compare_branches(
        self,
        base: str,
        other: str,
        replay: bool = False,
    ) -> Optional[BranchComparison]:
        """
        두 브랜치의 최신 커밋 비교

        Returns:
            BranchComparison (브랜치 또는 커밋이 없으면 None)
        """
        base_commit = self.store.get_latest_commit(base)
        other_commit = self.store.get_latest_commit(other)

        if base_commit is None or other_commit is None:
            missing = base if base_commit is None else other
            logger.error(f"No commits found in branch '{missing}'")
            return None

        base_state = self._commit_state(base_commit, replay)
        other_state = self._commit_state(other_commit, replay)

        comparison = BranchComparison(
            base_branch=base,
            other_branch=other,
            base_commit_id=base_commit.commit_id,
            other_commit_id=other_commit.commit_id,
        )

        for object_id, payload in other_state.items():
            if object_id not in base_state:
                comparison.added.append(object_id)
            elif base_state[object_id] != payload:
                comparison.modified.append(object_id)
            else:
                comparison.unchanged.append(object_id)

        comparison.deleted = [i for i in base_state if i not in other_state]

        return comparison

    # === Private Methods ===

    def _auto_save(self, current: str, target: str) -> Optional[Commit]:
        """미커밋 변경이 있으면 현재 전체 상태를 자동 저장"""
        if not self.repo.has_pending_changes():
            return None

        changes = self._snapshot_changes()
        commit = self.repo.record_commit(
            changes,
            AUTO_SAVE_MESSAGE.format(branch=target),
            author=self.repo.config.default_author,
            branch=current,
        )
        self.repo.set_baseline({c.id: c.serialized_payload for c in changes}, current)

        logger.info(f"Auto-saved {len(changes)} objects on branch '{current}'")
        return commit

    def _snapshot_changes(self) -> List[ObjectChange]:
        """현재 워크스페이스 전체를 Added 변경으로"""
        return self.repo.differ.diff({}, update_baseline=False).changes

    def _apply_changes(self, changes: List[ObjectChange], skipped: List[str]) -> Dict[str, str]:
        applied: Dict[str, str] = {}
        for change in changes:
            try:
                self.repo.workspace.apply_change(change)
            except Exception as e:
                logger.warning(f"Failed to apply change for object {change.id}: {e}")
                skipped.append(change.id)
                continue
            applied[change.id] = change.serialized_payload
        return applied

    def _commit_state(self, commit: Commit, replay: bool) -> Dict[str, str]:
        if replay:
            return {
                object_id: change.serialized_payload
                for object_id, change in self.repo.replay_state(commit.commit_id).items()
            }
        return {c.id: c.serialized_payload for c in commit.changes if not c.is_deleted}
