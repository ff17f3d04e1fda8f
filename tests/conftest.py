"""
공용 테스트 픽스처

- 메모리 문서 저장소 / Commit Store
- 메모리 워크스페이스
- 고정 시계 (커밋마다 1초씩 진행)
- Repository / BranchManager / MergeEngine / SyncReconciler
"""

import pytest

from modelgit.branching import BranchManager, MergeEngine
from modelgit.config import VCSConfig
from modelgit.storage import CommitStore, InMemoryBackend
from modelgit.sync import SyncReconciler
from modelgit.versioning import InMemoryWorkspace, Repository

from factories import DATASET_ID, FakeClock


@pytest.fixture
def config(tmp_path):
    return VCSConfig(
        working_folder=str(tmp_path / "modelgit"),
        event_log_path=str(tmp_path / "events.jsonl"),
    )


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def store(backend, config):
    return CommitStore(backend, DATASET_ID, config=config)


@pytest.fixture
def workspace():
    return InMemoryWorkspace()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo(workspace, store, config, clock):
    return Repository(workspace, store, config, clock=clock)


@pytest.fixture
def branches(repo):
    return BranchManager(repo)


@pytest.fixture
def merger(repo):
    return MergeEngine(repo)


@pytest.fixture
def reconciler(repo, branches):
    return SyncReconciler(repo, branch_manager=branches)
