"""
Repository

데이터셋 하나에 대한 작업 핸들:
- 활성 브랜치 포인터
- 브랜치별 baseline {branch: {id: payload}} (메모리 전용, 영속화하지 않음)
- 커밋 (디프 → 커밋 → 저장)
- 히스토리 조회 / 히스토리 재생

사용 예시:
    repo = Repository(workspace, store)
    repo.initialize_baseline()

    # 커밋
    result = repo.commit("Add column grid", author="kim")

    # 로그
    history = repo.log(limit=10)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Any, Optional, TYPE_CHECKING

from ..common.utils.logger import OperationLogger
from ..config import VCSConfig
from ..exceptions import CommitNotFoundError
from .differ import DiffResult, SnapshotDiffer
from .models import ChangeType, Commit, ObjectChange, new_commit_id, now
from .workspace import Workspace

if TYPE_CHECKING:
    from ..storage.commit_store import CommitStore

logger = logging.getLogger(__name__)


class OperationStatus(str, Enum):
    """작업 결과 상태"""
    SUCCESS = "success"
    NO_CHANGES = "no_changes"
    CONFLICTS = "conflicts"
    FAILED = "failed"


@dataclass
class CommitResult:
    """커밋 결과"""
    status: OperationStatus
    branch_name: str
    commit_id: Optional[str] = None
    message: str = ""
    diff: Optional[DiffResult] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "branch_name": self.branch_name,
            "commit_id": self.commit_id,
            "message": self.message,
            "diff_summary": self.diff.get_summary() if self.diff else None,
            "created_at": self.created_at,
        }


class Repository:
    """
    데이터셋 작업 핸들

    BranchManager / MergeEngine / SyncReconciler가 공유하는 상태의 소유자.
    """

    def __init__(
        self,
        workspace: Workspace,
        store: "CommitStore",
        config: Optional[VCSConfig] = None,
        branch: Optional[str] = None,
        events: Optional[OperationLogger] = None,
        clock: Callable[[], datetime] = now,
    ):
        """
        Args:
            workspace: 호스트 워크스페이스
            store: 커밋 저장소
            config: 설정 (기본: VCSConfig())
            branch: 초기 활성 브랜치 (기본: main 브랜치)
            events: 작업 이벤트 로거
            clock: 커밋 타임스탬프 소스
        """
        self.workspace = workspace
        self.store = store
        self.config = config or VCSConfig()
        self.differ = SnapshotDiffer(workspace)
        self.events = events or OperationLogger(self.config.event_log_path, store.dataset_id)
        self.clock = clock

        # 활성 브랜치 (None = 활성 브랜치 없음)
        self.active_branch: Optional[str] = branch or self.config.main_branch

        # 브랜치별 baseline
        self.baselines: Dict[str, Dict[str, str]] = {}

        self._last_timestamp: Optional[datetime] = None

        logger.info(
            f"Repository opened for dataset '{store.dataset_id}' on branch '{self.active_branch}'"
        )

    @property
    def dataset_id(self) -> str:
        return self.store.dataset_id

    # === Baseline ===

    def baseline(self, branch: Optional[str] = None) -> Dict[str, str]:
        """브랜치 baseline (없으면 빈 baseline 생성)"""
        branch = branch or self.active_branch
        return self.baselines.setdefault(branch, {})

    def set_baseline(self, state: Dict[str, str], branch: Optional[str] = None) -> None:
        baseline = self.baseline(branch)
        baseline.clear()
        baseline.update(state)

    def initialize_baseline(self, branch: Optional[str] = None) -> int:
        """현재 워크스페이스로 baseline 초기화"""
        branch = branch or self.active_branch
        self.set_baseline(self.differ.snapshot(), branch)
        count = len(self.baselines[branch])
        logger.info(
            f"Initialized baseline with {count} objects on branch '{branch}' "
            f"for dataset '{self.dataset_id}'"
        )
        return count

    def bind(self, store: "CommitStore") -> bool:
        """
        다른 데이터셋 저장소로 전환

        데이터셋이 바뀌면 모든 baseline을 버리고 현재 워크스페이스로 다시 초기화한다.
        """
        if store.dataset_id == self.store.dataset_id:
            self.store = store
            return False

        logger.info(f"Dataset changed: '{self.store.dataset_id}' -> '{store.dataset_id}'")
        self.store = store
        self.events.dataset_id = store.dataset_id
        self.baselines.clear()
        self.initialize_baseline()
        return True

    # === Status / Commit ===

    def status(self) -> DiffResult:
        """커밋되지 않은 변경 (baseline 변경 없음)"""
        return self.differ.preview(self.baseline())

    def has_pending_changes(self) -> bool:
        return self.status().has_changes

    def commit(
        self,
        message: str,
        author: Optional[str] = None,
        allow_empty: bool = True,
    ) -> CommitResult:
        """
        현재 변경을 활성 브랜치에 커밋

        Args:
            message: 커밋 메시지
            author: 작성자 (기본: 설정의 default_author)
            allow_empty: 변경이 없어도 커밋 생성

        Returns:
            CommitResult
        """
        branch = self.active_branch
        if not branch:
            return CommitResult(
                status=OperationStatus.FAILED,
                branch_name="",
                message="No active branch",
            )

        with self.store.lock():
            baseline = self.baseline(branch)
            previous = dict(baseline)

            try:
                diff = self.differ.diff(baseline)

                if not diff.has_changes and not allow_empty:
                    return CommitResult(
                        status=OperationStatus.NO_CHANGES,
                        branch_name=branch,
                        message="Nothing to commit",
                        diff=diff,
                    )

                commit = self.record_commit(diff.changes, message, author, branch)
            except Exception as e:
                # 저장 실패 시 변경을 다시 대기 상태로
                self.set_baseline(previous, branch)
                logger.error(f"Error saving model state: {e}")
                return CommitResult(
                    status=OperationStatus.FAILED,
                    branch_name=branch,
                    message=str(e),
                )

        return CommitResult(
            status=OperationStatus.SUCCESS,
            branch_name=branch,
            commit_id=commit.commit_id,
            message=message,
            diff=diff,
        )

    def record_commit(
        self,
        changes: List[ObjectChange],
        message: str,
        author: Optional[str] = None,
        branch: Optional[str] = None,
        parent: Optional[str] = None,
    ) -> Commit:
        """
        커밋 생성 및 저장 (BranchManager / MergeEngine 공용)

        parent가 None이면 브랜치의 마지막 커밋을 부모로 한다.
        """
        branch = branch or self.active_branch
        if parent is None:
            parent = self.store.get_last_commit_id(branch)

        commit = Commit(
            commit_id=new_commit_id(),
            changes=list(changes),
            timestamp=self._next_timestamp(),
            message=message,
            author=author or self.config.default_author,
            branch_name=branch,
            parent_commit=parent,
        )
        self.store.append_commit(commit)

        self.events.log_event("commit_created", {
            "commit_id": commit.commit_id,
            "branch": branch,
            "parent": parent,
            "message": message,
            "changes": commit.change_counts,
        })

        return commit

    # === History ===

    def log(
        self,
        branch: Optional[str] = None,
        limit: Optional[int] = 50,
    ) -> List[Commit]:
        """
        커밋 히스토리 조회

        Args:
            branch: 브랜치 (None이면 전체 히스토리)
            limit: 최대 조회 개수 (None이면 전체)

        Returns:
            커밋 리스트 (최신순)
        """
        history = self.store.get_history()
        if branch:
            history = [c for c in history if c.branch_name == branch]

        history = sorted(history, key=lambda c: c.timestamp, reverse=True)
        return history[:limit] if limit is not None else history

    def replay_state(self, commit_id: str) -> Dict[str, ObjectChange]:
        """
        부모 체인을 따라 히스토리를 재생한 전체 객체 상태

        Returns:
            {id: ObjectChange(Added)}: commit 시점에 존재하는 객체

        Raises:
            CommitNotFoundError: commit_id 없음
        """
        by_id = {c.commit_id: c for c in self.store.get_history()}
        if commit_id not in by_id:
            raise CommitNotFoundError(commit_id)

        chain: List[Commit] = []
        seen = set()
        current = commit_id
        while current and current not in seen:
            commit = by_id.get(current)
            if commit is None:
                logger.warning(
                    f"Parent commit {current} not found while replaying {commit_id}; "
                    f"replaying from the available history"
                )
                break
            chain.append(commit)
            seen.add(current)
            current = commit.parent_commit

        state: Dict[str, ObjectChange] = {}
        for commit in reversed(chain):
            for change in commit.changes:
                if change.is_deleted:
                    state.pop(change.id, None)
                else:
                    state[change.id] = change.copy(ChangeType.ADDED)

        return state

    # === Private Methods ===

    def _next_timestamp(self) -> datetime:
        """단조 증가 타임스탬프"""
        timestamp = self.clock()
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = timestamp
        return timestamp
