"""
영속 문서용 Pydantic 스키마

히스토리 로그 / 브랜치 카탈로그 JSON 문서를 읽을 때 검증에 사용됩니다.
- camelCase 필드명 (commitId, serializedPayload, ...)
- 기존 PascalCase 파일 호환 (CommitId, SerializedGeometry, ...)
- changeType 정규화, 알 수 없는 태그 거부
"""

from datetime import datetime
from typing import List, Optional, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from ..exceptions import HistoryCorruptionError
from ..versioning.models import Branch, ChangeType, Commit, ObjectChange


# ============================================================
# History Log Schemas
# ============================================================

class ObjectChangeRecord(BaseModel):
    """ObjectChange 레코드"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(
        validation_alias=AliasChoices("id", "Id"),
        description="객체 식별자 (데이터셋 내 고유)"
    )
    change_type: ChangeType = Field(
        validation_alias=AliasChoices("changeType", "ChangeType"),
        description="Added | Modified | Deleted"
    )
    serialized_payload: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "serializedPayload", "SerializedPayload", "SerializedGeometry"
        ),
        description="직렬화된 객체 상태 (opaque)"
    )
    transform: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("transform", "Transform"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None:
            return value
        return str(value)

    @field_validator("change_type", mode="before")
    @classmethod
    def _normalize_change_type(cls, value: Any) -> ChangeType:
        return ChangeType.parse(value)

    def to_model(self) -> ObjectChange:
        return ObjectChange(
            id=self.id,
            change_type=self.change_type,
            serialized_payload=self.serialized_payload,
            transform=self.transform,
        )


class CommitRecord(BaseModel):
    """Commit 레코드"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    commit_id: str = Field(validation_alias=AliasChoices("commitId", "CommitId"))
    changes: List[ObjectChangeRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("changes", "Changes"),
    )
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "Timestamp"))
    message: str = Field(default="", validation_alias=AliasChoices("message", "Message"))
    branch_name: str = Field(default="", validation_alias=AliasChoices("branchName", "BranchName"))
    parent_commit: str = Field(
        default="",
        validation_alias=AliasChoices("parentCommit", "ParentCommit"),
    )
    author: str = Field(default="", validation_alias=AliasChoices("author", "Author"))

    @field_validator("changes", mode="before")
    @classmethod
    def _null_changes(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("message", "branch_name", "parent_commit", "author", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        # naive 시각은 로컬 시간으로 간주 (aware/naive 혼합 비교 방지)
        if isinstance(value, str):
            value = datetime.fromisoformat(value.strip())
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.astimezone()
        return value

    def to_model(self) -> Commit:
        return Commit(
            commit_id=self.commit_id,
            changes=[c.to_model() for c in self.changes],
            timestamp=self.timestamp,
            message=self.message,
            author=self.author,
            branch_name=self.branch_name,
            parent_commit=self.parent_commit,
        )


# ============================================================
# Branch Catalog Schemas
# ============================================================

class BranchRecord(BaseModel):
    """Branch 레코드"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(validation_alias=AliasChoices("name", "Name"))
    commits: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("commits", "Commits"),
    )

    @field_validator("commits", mode="before")
    @classmethod
    def _null_commits(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_model(self) -> Branch:
        return Branch(name=self.name, commits=list(self.commits))


_history_adapter = TypeAdapter(List[CommitRecord])
_branches_adapter = TypeAdapter(List[BranchRecord])


def parse_history(data: Any, key: Optional[str] = None) -> List[Commit]:
    """히스토리 문서 → Commit 목록 (None이면 빈 목록)"""
    if data is None:
        return []
    try:
        records = _history_adapter.validate_python(data)
    except ValidationError as e:
        raise HistoryCorruptionError(
            f"Invalid history document: {e.error_count()} validation error(s)",
            key=key,
            cause=e,
        )
    return [r.to_model() for r in records]


def parse_branches(data: Any, key: Optional[str] = None) -> List[Branch]:
    """브랜치 카탈로그 문서 → Branch 목록 (None이면 빈 목록)"""
    if data is None:
        return []
    try:
        records = _branches_adapter.validate_python(data)
    except ValidationError as e:
        raise HistoryCorruptionError(
            f"Invalid branch catalog: {e.error_count()} validation error(s)",
            key=key,
            cause=e,
        )
    return [r.to_model() for r in records]


def dump_history(commits: List[Commit]) -> List[dict]:
    return [c.to_dict() for c in commits]


def dump_branches(branches: List[Branch]) -> List[dict]:
    return [b.to_dict() for b in branches]
