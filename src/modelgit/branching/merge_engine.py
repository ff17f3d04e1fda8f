"""
Merge Engine

분기점 기반 브랜치 머지:
1. 소스 브랜치의 분기점 탐색 (가장 이른 커밋의 부모, 타임스탬프 기준)
2. 분기점 이후 양쪽 변경 수집
3. 변경 결합 (소스 우선, 소스 삭제는 최종)
4. 충돌 감지 (ConflictDetector)
5. 콘텐츠 해시 기반 중복 객체 제거
6. 워크스페이스 적용 (전체 clear + 재추가) 후 타겟 브랜치에 머지 커밋

사용 예시:
    engine = MergeEngine(repo)
    result = engine.merge("feature/deck", "main", author="kim")
    if result.is_success:
        print(result.commit_id)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional, Set, Tuple

from ..exceptions import AncestryError, BranchNotFoundError, MergeConflictError
from ..versioning.models import Commit, ObjectChange
from ..versioning.repository import Repository
from .conflict_resolver import ConflictDetector, ConflictReport, NoOpConflictDetector

logger = logging.getLogger(__name__)

MERGE_MESSAGE = "Merge branch '{source}' into '{target}'"


class MergeStatus(str, Enum):
    """머지 상태"""
    SUCCESS = "success"
    CONFLICTS = "conflicts"
    FAILED = "failed"
    NO_CHANGES = "no_changes"


@dataclass
class MergePlan:
    """머지 계산 결과 (워크스페이스/저장소 변경 전)"""
    source_branch: str
    target_branch: str
    branch_point: Commit
    source_changes: List[ObjectChange] = field(default_factory=list)
    target_changes: List[ObjectChange] = field(default_factory=list)
    merged_changes: List[ObjectChange] = field(default_factory=list)
    duplicates_removed: List[str] = field(default_factory=list)
    conflicts: ConflictReport = field(default_factory=ConflictReport)


@dataclass
class MergeResult:
    """머지 결과"""
    status: MergeStatus
    source_branch: str
    target_branch: str

    # 결과 커밋
    commit_id: Optional[str] = None
    branch_point_id: Optional[str] = None

    # 변경 통계
    counts: Dict[str, int] = field(default_factory=dict)
    duplicates_removed: int = 0

    # 충돌 정보
    conflicts: ConflictReport = field(default_factory=ConflictReport)

    # 메타데이터
    merged_at: str = field(default_factory=lambda: datetime.now().isoformat())
    message: str = ""

    @property
    def has_conflicts(self) -> bool:
        return self.conflicts.has_conflicts

    @property
    def is_success(self) -> bool:
        return self.status == MergeStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "source_branch": self.source_branch,
            "target_branch": self.target_branch,
            "commit_id": self.commit_id,
            "branch_point_id": self.branch_point_id,
            "counts": self.counts,
            "duplicates_removed": self.duplicates_removed,
            "conflicts": self.conflicts.to_dict(),
            "has_conflicts": self.has_conflicts,
            "merged_at": self.merged_at,
            "message": self.message,
        }


class MergeEngine:
    """
    머지 엔진

    충돌 정책: 기본은 소스 우선 (NoOpConflictDetector).
    """

    def __init__(
        self,
        repository: Repository,
        conflict_detector: Optional[ConflictDetector] = None,
        carry_base_state: Optional[bool] = None,
        skip_unchanged_since_fork: bool = True,
    ):
        """
        Args:
            repository: 작업 핸들
            conflict_detector: 충돌 감지기 (기본: NoOpConflictDetector)
            carry_base_state: 양쪽 모두 건드리지 않은 분기점 객체를 머지 결과에 포함
                (기본: skip_unchanged_since_fork를 따름)
            skip_unchanged_since_fork: 분기점 상태와 동일한 페이로드를 다시 기록한 변경 무시
                (첫 커밋 복사 / 자동 저장 스냅샷)
        """
        self.repo = repository
        self.conflict_detector = conflict_detector or NoOpConflictDetector()
        if carry_base_state is None:
            carry_base_state = skip_unchanged_since_fork
        self.carry_base_state = carry_base_state
        self.skip_unchanged_since_fork = skip_unchanged_since_fork

        logger.info("MergeEngine initialized")

    @property
    def store(self):
        return self.repo.store

    def merge(
        self,
        source_branch: str,
        target_branch: str,
        author: Optional[str] = None,
    ) -> MergeResult:
        """
        소스 브랜치를 타겟 브랜치에 머지

        Args:
            source_branch: 소스 브랜치
            target_branch: 타겟 브랜치
            author: 머지 커밋 작성자

        Returns:
            MergeResult
        """
        result = MergeResult(
            status=MergeStatus.FAILED,
            source_branch=source_branch,
            target_branch=target_branch,
        )

        logger.info(f"Merging '{source_branch}' into '{target_branch}'")

        with self.store.lock():
            try:
                plan = self.plan_merge(source_branch, target_branch)
            except MergeConflictError as e:
                result.status = MergeStatus.CONFLICTS
                result.conflicts = e.context.get("report", ConflictReport())
                result.message = str(e)
                logger.warning(f"Conflicts detected, merge aborted: {e.object_ids}")
                return result
            except Exception as e:
                result.message = f"Merge failed: {e}"
                logger.error(result.message)
                return result

            result.branch_point_id = plan.branch_point.commit_id
            result.duplicates_removed = len(plan.duplicates_removed)

            if not plan.source_changes:
                result.status = MergeStatus.NO_CHANGES
                result.message = f"No changes on '{source_branch}' since {plan.branch_point.commit_id}"
                logger.info(result.message)
                return result

            try:
                commit = self._apply_and_commit(plan, author)
            except Exception as e:
                result.message = f"Merge failed: {e}"
                logger.error(result.message)
                return result

        result.status = MergeStatus.SUCCESS
        result.commit_id = commit.commit_id
        result.counts = commit.change_counts
        result.message = f"Merge completed. New commit: {commit.commit_id}"
        logger.info(result.message)

        self.repo.events.log_event("merge_completed", {
            "source": source_branch,
            "target": target_branch,
            "commit_id": commit.commit_id,
            "branch_point": plan.branch_point.commit_id,
            "changes": result.counts,
            "duplicates_removed": result.duplicates_removed,
        })

        return result

    def plan_merge(self, source_branch: str, target_branch: str) -> MergePlan:
        """
        머지 계산 (저장소/워크스페이스 변경 없음)

        Raises:
            BranchNotFoundError / AncestryError / MergeConflictError
        """
        for name in (source_branch, target_branch):
            if self.store.get_branch(name) is None:
                raise BranchNotFoundError(name)

        branch_point = self.find_branch_point(source_branch, target_branch)
        logger.info(f"Branch point: {branch_point.commit_id}")

        # 소스 삭제는 이후 재추가와 무관하게 최종
        source_changes = _latest_per_object(
            self.collect_changes_since(source_branch, branch_point), sticky_deletes=True
        )
        target_changes = _latest_per_object(self.collect_changes_since(target_branch, branch_point))

        base_state: Dict[str, ObjectChange] = {}
        if self.skip_unchanged_since_fork or self.carry_base_state:
            base_state = self.repo.replay_state(branch_point.commit_id)

        if self.skip_unchanged_since_fork:
            source_changes = _drop_unchanged(source_changes, base_state)
            target_changes = _drop_unchanged(target_changes, base_state)

        plan = MergePlan(
            source_branch=source_branch,
            target_branch=target_branch,
            branch_point=branch_point,
            source_changes=source_changes,
            target_changes=target_changes,
        )

        plan.conflicts = self.conflict_detector.detect(source_changes, target_changes)
        if plan.conflicts.has_conflicts:
            raise MergeConflictError(
                f"Conflicts detected between '{source_branch}' and '{target_branch}'",
                object_ids=plan.conflicts.object_ids,
                context={"report": plan.conflicts},
            )

        merged = self.combine_changes(source_changes, target_changes)

        if self.carry_base_state:
            touched = {c.id for c in source_changes} | {c.id for c in target_changes}
            carried = [c for object_id, c in base_state.items() if object_id not in touched]
            merged = carried + merged

        plan.merged_changes, plan.duplicates_removed = self.remove_duplicate_objects(merged)
        return plan

    def find_branch_point(self, branch_name: str, other_branch: Optional[str] = None) -> Commit:
        """
        분기점 탐색

        브랜치의 가장 이른 커밋(타임스탬프 기준)의 부모 커밋.
        브랜치가 루트에서 시작하면 other_branch의 분기점을 사용한다.

        Raises:
            AncestryError: 분기점을 찾을 수 없음
        """
        try:
            return self._branch_point_of(branch_name)
        except AncestryError as e:
            if not other_branch or other_branch == branch_name:
                raise
            logger.info(f"{e.message}; trying branch point of '{other_branch}'")
            return self._branch_point_of(other_branch)

    def collect_changes_since(self, branch_name: str, branch_point: Commit) -> List[ObjectChange]:
        """분기점 이후(타임스탬프 초과) 브랜치 커밋의 변경 (시간 순)"""
        changes: List[ObjectChange] = []
        for commit in self.store.get_branch_commits(branch_name):
            if commit.timestamp > branch_point.timestamp:
                changes.extend(commit.changes)
        return changes

    @staticmethod
    def combine_changes(
        source_changes: List[ObjectChange],
        target_changes: List[ObjectChange],
    ) -> List[ObjectChange]:
        """
        변경 결합

        타겟 변경에서 시작해 소스 변경으로 같은 객체를 교체한다.
        소스가 삭제한 객체는 타겟의 이후 수정과 무관하게 결과에서 제거된다.
        """
        merged: List[ObjectChange] = list(target_changes)
        processed: Set[int] = set()

        for source_change in source_changes:
            if id(source_change) in processed:
                continue

            existing = next((c for c in merged if c.id == source_change.id), None)
            if existing is not None:
                merged.remove(existing)
                if not source_change.is_deleted:
                    merged.append(source_change)
            else:
                merged.append(source_change)

            processed.add(id(source_change))

        deleted_ids = {c.id for c in source_changes if c.is_deleted}
        return [c for c in merged if c.id not in deleted_ids]

    @staticmethod
    def remove_duplicate_objects(changes: List[ObjectChange]) -> Tuple[List[ObjectChange], List[str]]:
        """
        콘텐츠 해시 기반 중복 제거

        Deleted가 아닌 변경 중 페이로드 해시가 같은 것은 처음 것만 유지.

        Returns:
            (유지된 변경, 제거된 객체 ID)
        """
        unique: List[ObjectChange] = []
        removed: List[str] = []
        seen: Dict[str, str] = {}

        for change in changes:
            if change.is_deleted:
                unique.append(change)
                continue

            digest = change.content_hash()
            if digest in seen:
                logger.info(f"Duplicate object found and removed: {change.id} (same as {seen[digest]})")
                removed.append(change.id)
                continue

            seen[digest] = change.id
            unique.append(change)

        return unique, removed

    # === Private Methods ===

    def _branch_point_of(self, branch_name: str) -> Commit:
        commits = self.store.get_branch_commits(branch_name)
        if not commits:
            raise AncestryError(f"Branch '{branch_name}' has no commits", branch_name=branch_name)

        first = commits[0]
        if first.is_root:
            raise AncestryError(
                f"Branch '{branch_name}' starts at root commit {first.commit_id}",
                branch_name=branch_name,
                commit_id=first.commit_id,
            )

        branch_point = self.store.get_commit(first.parent_commit)
        if branch_point is None:
            raise AncestryError(
                f"Could not find branch point {first.parent_commit} of '{branch_name}'",
                branch_name=branch_name,
                commit_id=first.parent_commit,
            )
        return branch_point

    def _apply_and_commit(self, plan: MergePlan, author: Optional[str]) -> Commit:
        repo = self.repo
        target = plan.target_branch

        if repo.active_branch and repo.has_pending_changes():
            logger.warning(
                f"Discarding uncommitted changes on branch '{repo.active_branch}' for merge"
            )

        repo.workspace.clear()
        applied: Dict[str, str] = {}
        for change in plan.merged_changes:
            if change.is_deleted:
                continue
            try:
                repo.workspace.apply_change(change)
            except Exception as e:
                logger.warning(f"Failed to apply merged change for object {change.id}: {e}")
                continue
            applied[change.id] = change.serialized_payload

        if repo.active_branch != target:
            logger.info(f"Activating merge target branch '{target}'")
            repo.active_branch = target
        repo.set_baseline(applied, target)

        return repo.record_commit(
            plan.merged_changes,
            MERGE_MESSAGE.format(source=plan.source_branch, target=target),
            author=author,
            branch=target,
        )


def _latest_per_object(
    changes: List[ObjectChange],
    sticky_deletes: bool = False,
) -> List[ObjectChange]:
    """
    객체당 마지막 변경만 유지 (마지막 등장 순서)

    sticky_deletes=True면 한 번이라도 삭제된 객체는 마지막 Deleted 변경으로 남는다.
    """
    latest: Dict[str, ObjectChange] = {}
    for change in changes:
        previous = latest.pop(change.id, None)
        if sticky_deletes and previous is not None and previous.is_deleted and not change.is_deleted:
            change = previous
        latest[change.id] = change
    return list(latest.values())


def _drop_unchanged(
    changes: List[ObjectChange],
    base_state: Dict[str, ObjectChange],
) -> List[ObjectChange]:
    """분기점 페이로드를 그대로 다시 기록한 변경 제거"""
    kept: List[ObjectChange] = []
    for change in changes:
        base = base_state.get(change.id)
        if (
            not change.is_deleted
            and base is not None
            and base.serialized_payload == change.serialized_payload
        ):
            continue
        kept.append(change)
    return kept
