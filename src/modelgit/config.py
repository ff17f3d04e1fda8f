"""
modelgit 설정

환경변수(.env 포함) 기반 설정입니다.

사용 예시:
    from modelgit.config import VCSConfig

    config = VCSConfig.from_env()
    store = CommitStore.open(config, dataset_id="bridge_model")
"""

import os
import logging
from enum import Enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class CorruptionPolicy(str, Enum):
    """손상된 히스토리 문서 처리 정책"""
    ABORT = "abort"    # 쓰기 중단, 실패 보고
    RESET = "reset"    # 빈 히스토리로 간주하고 덮어쓰기 (레거시 동작)


# 기본값 (환경변수로 오버라이드 가능)
DEFAULT_WORKING_FOLDER = "./data/modelgit"
DEFAULT_MAIN_BRANCH = "main"
DEFAULT_AUTHOR = "System"
DEFAULT_WRITE_RETRIES = 3

HISTORY_FILE_TEMPLATE = "model_history_{dataset_id}.json"
BRANCHES_FILE_TEMPLATE = "branches_{dataset_id}.json"


def _parse_policy(value: Optional[str]) -> CorruptionPolicy:
    if not value:
        return CorruptionPolicy.ABORT
    try:
        return CorruptionPolicy(value.strip().lower())
    except ValueError:
        logger.warning(f"Unknown corruption policy '{value}', falling back to 'abort'")
        return CorruptionPolicy.ABORT


def _parse_int(value: Optional[str], default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer setting '{value}', using {default}")
        return default


@dataclass
class VCSConfig:
    """버전 관리 엔진 설정"""
    # 저장소 설정
    working_folder: str = DEFAULT_WORKING_FOLDER
    corruption_policy: CorruptionPolicy = CorruptionPolicy.ABORT
    write_retries: int = DEFAULT_WRITE_RETRIES

    # 브랜치 설정
    main_branch: str = DEFAULT_MAIN_BRANCH
    default_author: str = DEFAULT_AUTHOR

    # 로깅 설정
    event_log_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if isinstance(self.corruption_policy, str):
            self.corruption_policy = _parse_policy(self.corruption_policy)
        if self.write_retries < 0:
            self.write_retries = 0

    @classmethod
    def from_env(cls) -> "VCSConfig":
        """환경변수에서 설정 로드"""
        return cls(
            working_folder=os.environ.get("MODELGIT_WORKING_FOLDER", DEFAULT_WORKING_FOLDER),
            corruption_policy=_parse_policy(os.environ.get("MODELGIT_CORRUPTION_POLICY")),
            write_retries=_parse_int(os.environ.get("MODELGIT_WRITE_RETRIES"), DEFAULT_WRITE_RETRIES),
            main_branch=os.environ.get("MODELGIT_MAIN_BRANCH", DEFAULT_MAIN_BRANCH),
            default_author=os.environ.get("MODELGIT_DEFAULT_AUTHOR", DEFAULT_AUTHOR),
            event_log_path=os.environ.get("MODELGIT_EVENT_LOG") or None,
            log_level=os.environ.get("MODELGIT_LOG_LEVEL", "INFO"),
        )

    def history_key(self, dataset_id: str) -> str:
        """히스토리 문서 키 (파일명)"""
        return HISTORY_FILE_TEMPLATE.format(dataset_id=dataset_id)

    def branches_key(self, dataset_id: str) -> str:
        """브랜치 카탈로그 문서 키 (파일명)"""
        return BRANCHES_FILE_TEMPLATE.format(dataset_id=dataset_id)

    @property
    def working_path(self) -> Path:
        return Path(self.working_folder)
