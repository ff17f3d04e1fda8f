"""
modelgit Exception Hierarchy

구조화된 예외 체계:
- 에러 원인 명확화
- 복구 전략 제시
- 이벤트 로그 기록 지원

사용 예:
    try:
        store.append_commit(commit)
    except HistoryCorruptionError as e:
        # 전략: 쓰기 중단 후 호출자에게 실패 보고
        logger.error(f"History unreadable: {e}")
    except StaleDocumentError as e:
        # 전략: 다시 읽고 재시도
        logger.warning(f"Stale read: {e}")
"""

from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(str, Enum):
    """에러 심각도"""
    WARNING = "warning"      # 계속 진행 가능
    ERROR = "error"          # 현재 작업 실패, 다음 작업 가능
    CRITICAL = "critical"    # 데이터 손실 위험, 쓰기 중단 필요
    FATAL = "fatal"          # 저장소 사용 불가


class RecoveryStrategy(str, Enum):
    """복구 전략"""
    SKIP = "skip"                    # 현재 항목 건너뛰기
    RETRY = "retry"                  # 재시도
    USE_DEFAULT = "use_default"      # 기본값 사용
    ABORT = "abort"                  # 중단


# === Base Exception ===

class ModelGitError(Exception):
    """
    modelgit 기본 예외

    모든 엔진 예외의 부모 클래스
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        recovery: RecoveryStrategy = RecoveryStrategy.SKIP,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.recovery = recovery
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """이벤트 로그용 딕셔너리 변환"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recovery_strategy": self.recovery.value,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.message}"


# === Storage Exceptions ===

class StorageError(ModelGitError):
    """저장소 기본 예외"""
    pass


class HistoryCorruptionError(StorageError):
    """히스토리/브랜치 문서 파싱 실패"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        version: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            recovery=RecoveryStrategy.ABORT,
            **kwargs
        )
        self.key = key
        # 손상된 문서의 버전 토큰 (RESET 정책에서 덮어쓰기에 사용)
        self.version = version
        self.context["key"] = key


class StaleDocumentError(StorageError):
    """버전 토큰 불일치 (다른 writer가 먼저 기록함)"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        expected_version: Optional[str] = None,
        actual_version: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            recovery=RecoveryStrategy.RETRY,
            **kwargs
        )
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.context.update({
            "key": key,
            "expected_version": expected_version,
            "actual_version": actual_version,
        })


class DuplicateCommitError(StorageError):
    """commitId 중복"""

    def __init__(self, commit_id: str, **kwargs):
        super().__init__(
            f"Commit already exists: {commit_id}",
            severity=ErrorSeverity.ERROR,
            recovery=RecoveryStrategy.SKIP,
            **kwargs
        )
        self.commit_id = commit_id
        self.context["commit_id"] = commit_id


# === Workspace Exceptions ===

class SerializationError(ModelGitError):
    """개별 객체 직렬화/역직렬화 실패"""

    def __init__(
        self,
        message: str,
        object_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            recovery=RecoveryStrategy.SKIP,
            **kwargs
        )
        self.object_id = object_id
        self.context["object_id"] = object_id


class UnknownChangeTypeError(ModelGitError, ValueError):
    """허용되지 않은 changeType 태그"""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            f"Unknown change type: {value!r}",
            severity=ErrorSeverity.ERROR,
            recovery=RecoveryStrategy.ABORT,
            **kwargs
        )
        self.value = value
        self.context["value"] = repr(value)


# === History Exceptions ===

class BranchNotFoundError(ModelGitError):
    """브랜치 없음"""

    def __init__(self, branch_name: str, **kwargs):
        super().__init__(f"Branch not found: {branch_name}", **kwargs)
        self.branch_name = branch_name
        self.context["branch_name"] = branch_name


class CommitNotFoundError(ModelGitError):
    """커밋 없음"""

    def __init__(self, commit_id: str, **kwargs):
        super().__init__(f"Commit not found: {commit_id}", **kwargs)
        self.commit_id = commit_id
        self.context["commit_id"] = commit_id


class AncestryError(ModelGitError):
    """분기점/부모 커밋 탐색 실패"""

    def __init__(
        self,
        message: str,
        branch_name: Optional[str] = None,
        commit_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.ERROR,
            recovery=RecoveryStrategy.ABORT,
            **kwargs
        )
        self.branch_name = branch_name
        self.commit_id = commit_id
        self.context.update({
            "branch_name": branch_name,
            "commit_id": commit_id,
        })


class MergeConflictError(ModelGitError):
    """머지 충돌"""

    def __init__(
        self,
        message: str,
        object_ids: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.ERROR,
            recovery=RecoveryStrategy.ABORT,
            **kwargs
        )
        self.object_ids = object_ids or []
        self.context["object_ids"] = self.object_ids


__all__ = [
    "ErrorSeverity",
    "RecoveryStrategy",
    "ModelGitError",
    "StorageError",
    "HistoryCorruptionError",
    "StaleDocumentError",
    "DuplicateCommitError",
    "SerializationError",
    "UnknownChangeTypeError",
    "BranchNotFoundError",
    "CommitNotFoundError",
    "AncestryError",
    "MergeConflictError",
]
