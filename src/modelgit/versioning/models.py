"""
Commit Data Model

객체 변경 이력의 기본 단위:
- ObjectChange: 단일 객체의 원자적 변경 (Added / Modified / Deleted)
- Commit: 변경 목록 + 메타데이터 (불변, append-only)
- Branch: 이름 + 커밋 ID 목록

직렬화 필드명은 영속 문서 형식(camelCase)을 따른다:
    commitId, changes[], timestamp, message, branchName, parentCommit, author
    changes[]: id, changeType, serializedPayload, transform
"""

import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional
from datetime import datetime
from enum import Enum

from ..exceptions import UnknownChangeTypeError


class ChangeType(str, Enum):
    """변경 유형"""
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"

    @classmethod
    def parse(cls, value: Any) -> "ChangeType":
        """
        태그 문자열을 ChangeType으로 정규화

        대소문자는 무시하고, 알 수 없는 태그는 거부한다.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        raise UnknownChangeTypeError(value)


def now() -> datetime:
    """타임존 포함 현재 시각"""
    return datetime.now().astimezone()


def content_hash(payload: Optional[str]) -> str:
    """직렬화 페이로드의 SHA-256 다이제스트"""
    return hashlib.sha256((payload or "").encode("utf-8")).hexdigest()


def new_commit_id() -> str:
    """전역 고유 커밋 ID 생성"""
    return uuid.uuid4().hex


@dataclass
class ObjectChange:
    """단일 객체 변경"""
    id: str
    change_type: ChangeType
    # Deleted인 경우 삭제 직전 상태 (tombstone)
    serialized_payload: Optional[str] = None
    transform: Optional[Any] = None

    @property
    def is_deleted(self) -> bool:
        return self.change_type == ChangeType.DELETED

    def content_hash(self) -> str:
        return content_hash(self.serialized_payload)

    def copy(self, change_type: Optional[ChangeType] = None) -> "ObjectChange":
        return ObjectChange(
            id=self.id,
            change_type=change_type or self.change_type,
            serialized_payload=self.serialized_payload,
            transform=self.transform,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "changeType": self.change_type.value,
            "serializedPayload": self.serialized_payload,
            "transform": self.transform,
        }


@dataclass
class Commit:
    """커밋 (불변 레코드)"""
    commit_id: str
    changes: List[ObjectChange] = field(default_factory=list)
    timestamp: datetime = field(default_factory=now)
    message: str = ""
    author: str = ""
    branch_name: str = ""
    parent_commit: str = ""  # 루트 커밋이면 빈 문자열

    @property
    def is_root(self) -> bool:
        return not self.parent_commit

    @property
    def change_counts(self) -> Dict[str, int]:
        counts = {ct.value: 0 for ct in ChangeType}
        for change in self.changes:
            counts[change.change_type.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commitId": self.commit_id,
            "changes": [c.to_dict() for c in self.changes],
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "branchName": self.branch_name,
            "parentCommit": self.parent_commit,
            "author": self.author,
        }


@dataclass
class Branch:
    """브랜치 (커밋 ID 목록)"""
    name: str
    commits: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.commits

    def add_commit(self, commit_id: str) -> bool:
        """커밋 추가 (이미 있으면 무시)"""
        if commit_id in self.commits:
            return False
        self.commits.append(commit_id)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "commits": list(self.commits),
        }


def sort_by_timestamp(commits: List[Commit]) -> List[Commit]:
    """타임스탬프 순 정렬 (동일 시각은 입력 순서 유지)"""
    return sorted(commits, key=lambda c: c.timestamp)


def latest_commit(commits: List[Commit]) -> Optional[Commit]:
    """가장 최근 커밋 (동일 시각이면 목록상 뒤쪽)"""
    latest: Optional[Commit] = None
    for commit in commits:
        if latest is None or commit.timestamp >= latest.timestamp:
            latest = commit
    return latest
