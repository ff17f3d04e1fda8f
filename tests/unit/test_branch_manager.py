"""
Branch Manager 테스트

- 브랜치 생성 / 조회
- 브랜치 전환 (자동 저장, 첫 커밋, 재구성)
- 워크스페이스 재구성 (커밋 단위 / 히스토리 재생)
- 브랜치 비교
"""

from modelgit.branching import BranchManager
from modelgit.versioning import ChangeType, OperationStatus


def payload(workspace, obj):
    return workspace.serialize(obj)


class TestCreateBranch:
    """브랜치 생성 테스트"""

    def test_create_branch(self, branches):
        assert branches.create_branch("feature") is True
        assert branches.get_branch("feature").is_empty

    def test_duplicate_branch_is_reported(self, branches):
        branches.create_branch("feature")

        assert branches.create_branch("feature") is False
        assert [b.name for b in branches.list_branches()] == ["feature"]

    def test_empty_name_is_rejected(self, branches):
        assert branches.create_branch("  ") is False
        assert branches.list_branches() == []

    def test_branch_created_event(self, repo, branches):
        branches.create_branch("feature")

        assert repo.events.read_events()[-1]["event_type"] == "branch_created"


class TestSwitchBranch:
    """브랜치 전환 테스트"""

    def test_switch_to_current_branch_is_noop(self, repo, branches):
        result = branches.switch_branch("main")

        assert result.status == OperationStatus.NO_CHANGES
        assert repo.store.get_history() == []

    def test_switch_to_unknown_branch_fails(self, repo, branches):
        result = branches.switch_branch("nope")

        assert result.status == OperationStatus.FAILED
        assert branches.get_current_branch() == "main"

    def test_switch_creates_initial_commit_from_parent(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        base = repo.commit("base")
        branches.create_branch("feature")

        result = branches.switch_branch("feature")

        assert result.is_success
        assert result.auto_save_commit_id is None
        initial = repo.store.get_commit(result.initial_commit_id)
        assert initial.branch_name == "feature"
        assert initial.parent_commit == base.commit_id
        assert initial.message == "Initial commit for branch 'feature'"
        assert initial.author == "System"
        assert [c.to_dict() for c in initial.changes] == [
            c.to_dict() for c in repo.store.get_commit(base.commit_id).changes
        ]
        assert branches.get_current_branch() == "feature"
        assert workspace.objects == {"a": {"v": 1}}

    def test_initial_commit_without_parent_state_uses_workspace(self, repo, workspace, branches):
        repo.active_branch = None
        workspace.put("a", {"v": 1})
        branches.create_branch("feature")

        result = branches.switch_branch("feature")

        assert result.is_success
        initial = repo.store.get_commit(result.initial_commit_id)
        assert initial.is_root
        assert [(c.id, c.change_type) for c in initial.changes] == [("a", ChangeType.ADDED)]

    def test_switch_without_initial_commit_reports_empty_branch(self, repo, branches):
        branches.create_branch("feature")

        result = branches.switch_branch("feature", create_initial_commit=False)

        assert result.status == OperationStatus.FAILED
        assert "No commits" in result.message

    def test_auto_save_only_with_pending_changes(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        repo.commit("base")
        branches.create_branch("feature")
        branches.switch_branch("feature")

        clean = branches.switch_branch("main")
        assert clean.auto_save_commit_id is None

        workspace.put("b", {"v": 1})
        dirty = branches.switch_branch("feature")

        auto_save = repo.store.get_commit(dirty.auto_save_commit_id)
        assert auto_save.branch_name == "main"
        assert auto_save.message == "Auto-save before switching to branch 'feature'"
        assert auto_save.author == "System"
        assert sorted(c.id for c in auto_save.changes) == ["a", "b"]

    def test_auto_save_parent_is_last_commit(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        base = repo.commit("base")
        branches.create_branch("feature")
        workspace.put("a", {"v": 2})

        result = branches.switch_branch("feature")

        auto_save = repo.store.get_commit(result.auto_save_commit_id)
        assert auto_save.parent_commit == base.commit_id
        # 새 브랜치는 자동 저장된 상태에서 시작
        initial = repo.store.get_commit(result.initial_commit_id)
        assert initial.parent_commit == auto_save.commit_id
        assert workspace.objects == {"a": {"v": 2}}

    def test_switch_resets_baseline(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        repo.commit("base")
        branches.create_branch("feature")

        branches.switch_branch("feature")

        assert not repo.has_pending_changes()
        assert repo.baseline("feature") == {"a": payload(workspace, {"v": 1})}

    def test_switch_event(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        repo.commit("base")
        branches.create_branch("feature")
        branches.switch_branch("feature")

        event = repo.events.read_events()[-1]
        assert event["event_type"] == "branch_switched"
        assert event["data"]["from"] == "main"
        assert event["data"]["to"] == "feature"


class TestReconstruct:
    """워크스페이스 재구성 테스트"""

    def test_applies_only_target_commit_delta(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        repo.commit("add a")
        workspace.put("b", {"v": 1})
        workspace.remove("a")
        second = repo.commit("add b, drop a")

        result = branches.reconstruct_workspace(second.commit_id)

        assert result.is_success
        assert result.applied == 1
        assert workspace.objects == {"b": {"v": 1}}
        assert repo.baseline() == {"b": payload(workspace, {"v": 1})}

    def test_replay_reconstructs_full_state(self, repo, workspace, branches):
        workspace.put("a", {"v": 1})
        workspace.put("b", {"v": 1})
        first = repo.commit("add a, b")
        workspace.put("c", {"v": 1})
        workspace.remove("b")
        repo.commit("add c, drop b")
        workspace.clear()

        branches.reconstruct_workspace(repo.store.get_last_commit_id("main"), replay=True)

        assert workspace.objects == {"a": {"v": 1}, "c": {"v": 1}}

        branches.reconstruct_workspace(first.commit_id, replay=True)
        assert workspace.objects == {"a": {"v": 1}, "b": {"v": 1}}

    def test_unknown_commit_fails_without_touching_workspace(self, workspace, branches):
        workspace.put("a", {"v": 1})

        result = branches.reconstruct_workspace("missing")

        assert result.status == OperationStatus.FAILED
        assert workspace.objects == {"a": {"v": 1}}

    def test_replay_on_switch(self, repo, workspace):
        manager = BranchManager(repo, replay_on_switch=True)
        workspace.put("a", {"v": 1})
        repo.commit("add a")
        workspace.put("b", {"v": 1})
        repo.commit("add b")
        manager.create_branch("feature")

        manager.switch_branch("feature")
        workspace.put("c", {"v": 1})
        repo.commit("add c")
        manager.switch_branch("main")

        assert workspace.objects == {"a": {"v": 1}, "b": {"v": 1}}


class TestCompareBranches:
    """브랜치 비교 테스트"""

    def test_compare_latest_commits(self, repo, workspace, branches):
        workspace.put("same", {"v": 1})
        workspace.put("edit", {"v": 1})
        workspace.put("gone", {"v": 1})
        repo.commit("base")
        branches.create_branch("feature")
        branches.switch_branch("feature")

        workspace.put("edit", {"v": 2})
        workspace.remove("gone")
        workspace.put("new", {"v": 1})
        branches.switch_branch("main")

        comparison = branches.compare_branches("main", "feature")

        assert comparison.added == ["new"]
        assert comparison.modified == ["edit"]
        assert comparison.deleted == ["gone"]
        assert comparison.unchanged == ["same"]
        assert comparison.has_differences

    def test_compare_with_empty_branch(self, repo, branches):
        repo.commit("base")
        branches.create_branch("feature")

        assert branches.compare_branches("main", "feature") is None
