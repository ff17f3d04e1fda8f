"""
Storage Module

데이터셋별 히스토리 로그 / 브랜치 카탈로그 영속화:
- 버전 토큰 기반 문서 저장소 (메모리 / JSON 파일)
- Pydantic 스키마 검증
- Commit Store

사용 예시:
    store = CommitStore(JsonFileBackend("./data/modelgit"), dataset_id="bridge_model")
    store.append_commit(commit)
"""

from .backend import (
    DocumentBackend,
    DocumentSnapshot,
    InMemoryBackend,
    JsonFileBackend,
)

from .schemas import (
    ObjectChangeRecord,
    CommitRecord,
    BranchRecord,
    parse_history,
    parse_branches,
    dump_history,
    dump_branches,
)

from .commit_store import CommitStore

__all__ = [
    # Backends
    "DocumentBackend",
    "DocumentSnapshot",
    "InMemoryBackend",
    "JsonFileBackend",
    # Schemas
    "ObjectChangeRecord",
    "CommitRecord",
    "BranchRecord",
    "parse_history",
    "parse_branches",
    "dump_history",
    "dump_branches",
    # Commit Store
    "CommitStore",
]
