"""
Tests for Schemas

Path safety of file actions and the run state machine.
"""
import pytest
from pydantic import TypeAdapter, ValidationError

from pluginforge.errors import InvalidTransitionError
from pluginforge.schemas import (
    BuildRequest,
    CreateFile,
    DeleteFile,
    FileAction,
    ProjectState,
    ProjectStatus,
    RenameFile,
    validate_relative_path,
)


class TestFileActions:
    """Test file action path validation"""

    def test_normalizes_relative_paths(self):
        assert validate_relative_path("./src\\main/./plugin.yml") == "src/main/plugin.yml"

    @pytest.mark.parametrize("path", ["/etc/passwd", "C:\\Windows\\x.txt", "../outside.txt", "src/../../x", "", "."])
    def test_rejects_unsafe_paths(self, path):
        with pytest.raises(ValidationError):
            CreateFile(path=path, content="x")

    def test_rename_checks_both_paths(self):
        with pytest.raises(ValidationError):
            RenameFile(old_path="a.txt", new_path="../b.txt")

    def test_discriminated_union(self):
        adapter = TypeAdapter(FileAction)
        action = adapter.validate_python({"kind": "delete", "path": "old/File.java"})
        assert isinstance(action, DeleteFile)


class TestBuildRequest:
    """Test build request validation"""

    def test_valid_request(self):
        request = BuildRequest(name="Greeter", prompt="welcome players on join")
        assert request.name == "Greeter"

    @pytest.mark.parametrize("name", ["", "../evil", "has space", "1starts-with-digit"])
    def test_rejects_bad_names(self, name):
        with pytest.raises(ValidationError):
            BuildRequest(name=name, prompt="x")


class TestProjectState:
    """Test the run state machine"""

    def _compiling(self) -> ProjectState:
        state = ProjectState()
        for status in (ProjectStatus.EXTRACTING, ProjectStatus.GENERATING,
                       ProjectStatus.MUTATING, ProjectStatus.COMPILING):
            state.transition(status)
        return state

    def test_happy_path(self):
        state = self._compiling()
        state.transition(ProjectStatus.VERIFIED)

        assert state.is_terminal
        assert [s for s, _ in state.history][-1] == ProjectStatus.VERIFIED

    def test_recompile_only_path(self):
        state = ProjectState()
        state.transition(ProjectStatus.COMPILING)
        assert state.status == ProjectStatus.COMPILING

    def test_no_skipping_forward(self):
        state = ProjectState()
        with pytest.raises(InvalidTransitionError):
            state.transition(ProjectStatus.MUTATING)

    def test_no_going_back(self):
        state = self._compiling()
        with pytest.raises(InvalidTransitionError):
            state.transition(ProjectStatus.GENERATING)

    def test_repairing_only_through_begin_repair(self):
        state = self._compiling()
        with pytest.raises(InvalidTransitionError):
            state.transition(ProjectStatus.REPAIRING)

    def test_repair_budget(self):
        state = self._compiling()

        assert state.begin_repair(max_fix_attempts=2) is True
        state.transition(ProjectStatus.COMPILING)
        assert state.begin_repair(max_fix_attempts=2) is True
        state.transition(ProjectStatus.COMPILING)
        assert state.begin_repair(max_fix_attempts=2) is False

        assert state.attempt == 2
        assert state.status == ProjectStatus.COMPILING

    def test_zero_budget_never_repairs(self):
        state = self._compiling()
        assert state.begin_repair(max_fix_attempts=0) is False
        assert state.attempt == 0

    def test_fail_from_any_non_terminal_status(self):
        state = ProjectState()
        state.transition(ProjectStatus.EXTRACTING)
        state.fail("archive missing")

        assert state.status == ProjectStatus.FAILED
        assert all(at.tzinfo is not None for _, at in state.history)
        assert state.last_error == "archive missing"

    def test_terminal_is_final(self):
        state = ProjectState()
        state.fail("boom")
        with pytest.raises(InvalidTransitionError):
            state.fail("again")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
