"""
Commit Store

데이터셋별 영속 상태:
- 히스토리 로그: Commit 레코드 목록 (model_history_<dataset>.json)
- 브랜치 카탈로그: {name, commits[]} 목록 (branches_<dataset>.json)

모든 쓰기는 문서 전체 read-modify-write이며,
- 데이터셋 단위 락으로 같은 프로세스 내 writer를 직렬화하고
- 버전 토큰 불일치(StaleDocumentError) 시 다시 읽고 재시도한다.

사용 예시:
    store = CommitStore.open(config, dataset_id="bridge_model")
    store.append_commit(commit)
    last_id = store.get_last_commit_id("main")
"""

import logging
import threading
from typing import Callable, List, Optional, Tuple, TypeVar, Any

from ..config import CorruptionPolicy, VCSConfig
from ..exceptions import DuplicateCommitError, HistoryCorruptionError, StaleDocumentError
from ..versioning.models import Branch, Commit, latest_commit, sort_by_timestamp
from .backend import DocumentBackend, JsonFileBackend
from .schemas import dump_branches, dump_history, parse_branches, parse_history

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CommitStore:
    """
    커밋 저장소

    기능:
    - 커밋 추가 (히스토리 + 브랜치 카탈로그 갱신)
    - 히스토리/브랜치 조회 (문서 없으면 빈 목록)
    - 브랜치별 마지막 커밋 조회 (타임스탬프 기준)
    """

    def __init__(
        self,
        backend: DocumentBackend,
        dataset_id: str,
        corruption_policy: CorruptionPolicy = CorruptionPolicy.ABORT,
        write_retries: int = 3,
        config: Optional[VCSConfig] = None,
    ):
        """
        Args:
            backend: 문서 저장소
            dataset_id: 데이터셋 식별자
            corruption_policy: 손상 문서에 대한 쓰기 정책
            write_retries: 버전 충돌 시 재시도 횟수
            config: 문서 키 생성용 설정
        """
        self.backend = backend
        self.dataset_id = dataset_id
        self.corruption_policy = corruption_policy
        self.write_retries = max(0, write_retries)

        config = config or VCSConfig()
        self.history_key = config.history_key(dataset_id)
        self.branches_key = config.branches_key(dataset_id)

        # 데이터셋 단위 상호 배제
        self._lock = threading.RLock()

        logger.info(f"CommitStore initialized for dataset '{dataset_id}'")

    @classmethod
    def open(
        cls,
        config: VCSConfig,
        dataset_id: str,
        backend: Optional[DocumentBackend] = None,
    ) -> "CommitStore":
        """설정 기반 저장소 생성 (기본: 작업 폴더의 JSON 파일)"""
        return cls(
            backend=backend or JsonFileBackend(config.working_folder),
            dataset_id=dataset_id,
            corruption_policy=config.corruption_policy,
            write_retries=config.write_retries,
            config=config,
        )

    def lock(self) -> threading.RLock:
        """여러 단계 작업을 묶기 위한 데이터셋 락"""
        return self._lock

    # === Reads ===

    def get_history(self) -> List[Commit]:
        """전체 히스토리 (저장 순서)"""
        history, _ = self._read_document(self.history_key, parse_history, for_write=False)
        return history

    def get_branches(self) -> List[Branch]:
        """브랜치 카탈로그"""
        branches, _ = self._read_document(self.branches_key, parse_branches, for_write=False)
        return branches

    def get_branch(self, name: str) -> Optional[Branch]:
        for branch in self.get_branches():
            if branch.name == name:
                return branch
        return None

    def get_commit(self, commit_id: str) -> Optional[Commit]:
        """commitId로 커밋 조회"""
        if not commit_id:
            return None
        for commit in self.get_history():
            if commit.commit_id == commit_id:
                return commit
        return None

    def get_branch_commits(self, branch_name: str) -> List[Commit]:
        """branchName이 일치하는 커밋 (타임스탬프 순)"""
        return sort_by_timestamp([
            c for c in self.get_history() if c.branch_name == branch_name
        ])

    def get_latest_commit(self, branch_name: str) -> Optional[Commit]:
        return latest_commit([
            c for c in self.get_history() if c.branch_name == branch_name
        ])

    def get_last_commit_id(self, branch_name: str) -> str:
        """브랜치의 최신 커밋 ID (없으면 빈 문자열)"""
        commit = self.get_latest_commit(branch_name)
        return commit.commit_id if commit else ""

    # === Writes ===

    def append_commit(self, commit: Commit) -> Commit:
        """
        커밋 추가

        히스토리에 추가한 뒤 브랜치 카탈로그의 해당 브랜치에 commitId를 추가한다
        (브랜치가 없으면 생성).

        Raises:
            DuplicateCommitError: 같은 commitId가 이미 존재
            HistoryCorruptionError: ABORT 정책에서 기존 문서 손상
        """
        def _append(history: List[Commit]) -> List[Commit]:
            if any(c.commit_id == commit.commit_id for c in history):
                raise DuplicateCommitError(commit.commit_id)
            history.append(commit)
            return history

        with self._lock:
            self.update_history(_append)
            self.add_to_branch(commit.branch_name, commit.commit_id)

        logger.info(
            f"Saved commit {commit.commit_id} on branch '{commit.branch_name}' "
            f"({len(commit.changes)} changes)"
        )
        return commit

    def add_to_branch(self, branch_name: str, commit_id: str) -> Branch:
        """브랜치 카탈로그에 commitId 추가 (중복 무시)"""
        def _add(branches: List[Branch]) -> List[Branch]:
            branch = next((b for b in branches if b.name == branch_name), None)
            if branch is None:
                branch = Branch(name=branch_name)
                branches.append(branch)
            branch.add_commit(commit_id)
            return branches

        branches = self.update_branches(_add)
        return next(b for b in branches if b.name == branch_name)

    def create_branch(self, name: str) -> bool:
        """빈 브랜치 생성 (이미 있으면 False)"""
        with self._lock:
            if self.get_branch(name) is not None:
                return False

            def _create(branches: List[Branch]) -> List[Branch]:
                if not any(b.name == name for b in branches):
                    branches.append(Branch(name=name))
                return branches

            self.update_branches(_create)
        return True

    def update_history(self, mutate: Callable[[List[Commit]], Optional[List[Commit]]]) -> List[Commit]:
        """
        히스토리 read-modify-write

        mutate는 버전 충돌 재시도 시 다시 호출될 수 있다.
        None을 반환하면 전달받은 목록을 그대로 저장한다.
        """
        return self._update_document(
            self.history_key, parse_history, dump_history, mutate
        )

    def update_branches(self, mutate: Callable[[List[Branch]], Optional[List[Branch]]]) -> List[Branch]:
        """브랜치 카탈로그 read-modify-write"""
        return self._update_document(
            self.branches_key, parse_branches, dump_branches, mutate
        )

    def save_history(self, history: List[Commit]) -> None:
        """히스토리 전체 덮어쓰기"""
        self.update_history(lambda _: list(history))

    def save_branches(self, branches: List[Branch]) -> None:
        """브랜치 카탈로그 전체 덮어쓰기"""
        self.update_branches(lambda _: list(branches))

    # === Private Methods ===

    def _read_document(
        self,
        key: str,
        parser: Callable[[Any, Optional[str]], List[T]],
        for_write: bool,
    ) -> Tuple[List[T], Optional[str]]:
        try:
            snapshot = self.backend.read(key)
        except HistoryCorruptionError as e:
            return self._handle_corruption(e, for_write)

        try:
            return parser(snapshot.data, key), snapshot.version
        except HistoryCorruptionError as e:
            e.version = snapshot.version
            return self._handle_corruption(e, for_write)

    def _handle_corruption(
        self,
        error: HistoryCorruptionError,
        for_write: bool,
    ) -> Tuple[list, Optional[str]]:
        if not for_write:
            logger.error(f"Error reading '{error.key}': {error.message}")
            return [], error.version

        if self.corruption_policy == CorruptionPolicy.RESET:
            logger.error(
                f"Error reading '{error.key}', treating it as empty and overwriting: "
                f"{error.message}"
            )
            return [], error.version

        logger.error(f"Refusing to overwrite unreadable document '{error.key}'")
        raise error

    def _update_document(
        self,
        key: str,
        parser: Callable[[Any, Optional[str]], List[T]],
        dumper: Callable[[List[T]], list],
        mutate: Callable[[List[T]], Optional[List[T]]],
    ) -> List[T]:
        attempts = self.write_retries + 1
        last_error: Optional[StaleDocumentError] = None

        with self._lock:
            for attempt in range(1, attempts + 1):
                items, version = self._read_document(key, parser, for_write=True)
                result = mutate(items)
                if result is None:
                    result = items

                try:
                    self.backend.write(key, dumper(result), version)
                    return result
                except StaleDocumentError as e:
                    last_error = e
                    logger.warning(
                        f"Stale write to '{key}' (attempt {attempt}/{attempts}), retrying"
                    )

        raise last_error
