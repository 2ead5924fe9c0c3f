"""
Tests for GenerationOracleClient

LangChain fake chat models stand in for Gemini.
"""
import time

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.runnables import RunnableLambda

from pluginforge.core import GenerationOracleClient
from pluginforge.errors import OracleParseError
from pluginforge.schemas import CreateFile, DeleteFile, ModifyFile, RenameFile

from conftest import GREETER_JAVA, greeter_response, oracle_json


def unreachable(_):
    raise ConnectionError("Failed to establish a new connection")


class TestParseResponse:
    """Test raw response parsing"""

    @pytest.fixture
    def client(self):
        return GenerationOracleClient(llm=FakeListChatModel(responses=["unused"]))

    def test_fenced_block(self, client):
        actions = client.parse_response(greeter_response())

        assert [type(a) for a in actions] == [CreateFile, CreateFile, CreateFile]
        assert actions[0].path == "src/main/java/com/greeter/Greeter.java"

    def test_bare_object_with_prose(self, client):
        text = 'Sure! {"createdFiles": [{"path": "a.txt", "content": "uses {braces} and \\"quotes\\""}]} Bye.'
        actions = client.parse_response(text)

        assert actions == [CreateFile(path="a.txt", content='uses {braces} and "quotes"')]

    def test_trailing_commas(self, client):
        text = '{"createdFiles": [{"path": "a.txt", "content": "x"},], "deletedFiles": ["b.txt",],}'
        actions = client.parse_response(text)

        assert [a.kind for a in actions] == ["create", "delete"]

    def test_repair_shape_and_renames(self, client):
        text = (
            '{"created": {"src/New.java": "class New {}"},'
            ' "updated": {"src/Old.java": "class Old {}"},'
            ' "deleted": ["src/Gone.java"],'
            ' "renamedFiles": [{"oldPath": "a.yml", "newPath": "src/main/resources/a.yml"}]}'
        )
        actions = client.parse_response(text)

        assert {type(a) for a in actions} == {CreateFile, ModifyFile, DeleteFile, RenameFile}

    def test_unsafe_entries_are_dropped(self, client):
        text = oracle_json(created={"../evil.sh": "rm -rf /", "ok.txt": "fine"})
        actions = client.parse_response(text)

        assert [a.path for a in actions] == ["ok.txt"]

    def test_unencodable_entries_are_dropped(self, client):
        # json.dumps escapes the lone surrogate; json.loads restores it
        text = oracle_json(created={"config.yml": "bad: \ud800", "ok.txt": "fine"})
        actions = client.parse_response(text)

        assert [a.path for a in actions] == ["ok.txt"]

    @pytest.mark.parametrize("text", [
        "",
        "I cannot help with that.",
        '{"createdFiles": [{"path": "a.txt", "content": "trunc',
        '{"answer": 42}',
        "```json\n[1, 2, 3]\n```",
    ])
    def test_malformed(self, client, text):
        with pytest.raises(OracleParseError):
            client.parse_response(text)


class TestGenerate:
    """Test generation and the fallback path"""

    def test_well_formed(self):
        client = GenerationOracleClient(llm=FakeListChatModel(responses=[greeter_response()]))
        result = client.generate("welcome players on join", "File: README.md\n...", plugin_name="Greeter")

        assert result.well_formed
        assert result.error is None
        assert result.action_count == 3
        assert "extends JavaPlugin" in result.raw_response

    @pytest.mark.parametrize("response", [
        "no json here",
        '{"createdFiles": []}',
        oracle_json(created={"src/main/java/com/greeter/Greeter.java": GREETER_JAVA}),
        oracle_json(created={"src/main/resources/plugin.yml": "name: Greeter"}),
    ])
    def test_unusable_output_falls_back(self, response):
        client = GenerationOracleClient(llm=FakeListChatModel(responses=[response]))
        result = client.generate("welcome players on join", "", plugin_name="Greeter")

        assert not result.well_formed
        assert result.error
        assert result.raw_response == response
        paths = [a.path for a in result.actions]
        assert "src/main/java/com/greeter/Greeter.java" in paths
        assert "src/main/resources/plugin.yml" in paths
        assert "src/main/resources/config.yml" in paths

    def test_unreachable_falls_back(self):
        client = GenerationOracleClient(llm=RunnableLambda(unreachable))
        result = client.generate("welcome players on join", "", plugin_name="Greeter")

        assert not result.well_formed
        assert result.raw_response == ""
        assert "Failed to establish" in result.error
        assert "extends JavaPlugin" in result.actions[0].content

    def test_no_llm_configured(self):
        client = GenerationOracleClient(llm=None)
        client.llm = None
        result = client.generate("welcome players on join", "", plugin_name="Greeter")

        assert not result.well_formed
        assert "GEMINI_API_KEY" in result.error

    def test_timeout_falls_back(self):
        def slow(_):
            time.sleep(2)
            return greeter_response()

        client = GenerationOracleClient(llm=RunnableLambda(slow), timeout=0.2)
        result = client.generate("welcome players on join", "", plugin_name="Greeter")

        assert not result.well_formed
        assert "timed out" in result.error

    def test_snapshot_file_is_read(self, temp_dir):
        seen = []

        def record(prompt_value):
            seen.append(prompt_value.to_string())
            return greeter_response()

        snapshot = temp_dir / "compiled_files.txt"
        snapshot.write_text("File: src/main/java/com/example/basic/BasicPlugin.java\nMARKER")

        GenerationOracleClient(llm=RunnableLambda(record)).generate("welcome", snapshot, plugin_name="Greeter")

        assert "MARKER" in seen[0]
        assert "welcome" in seen[0]
        assert "Greeter" in seen[0]


class TestRepair:
    """Test repair prompts and the repair fallback"""

    @pytest.fixture
    def project(self, temp_dir):
        root = temp_dir / "Greeter"
        java = root / "src" / "main" / "java" / "com" / "greeter"
        java.mkdir(parents=True)
        (java / "Greeter.java").write_text("class Greeter { CORRELATED }")
        (java / "Helper.java").write_text("class Helper {}")
        resources = root / "src" / "main" / "resources"
        resources.mkdir(parents=True)
        (resources / "plugin.yml").write_text("name: Greeter\nmain: com.greeter.Greeter")
        return root

    DIAGNOSTICS = (
        "[ERROR] /x/src/main/java/com/greeter/Greeter.java:[3,17] cannot find symbol\n"
        "  symbol:   variable ChatColor"
    )

    def test_prompt_includes_correlated_files(self, project):
        seen = []

        def record(prompt_value):
            seen.append(prompt_value.to_string())
            return oracle_json(modified={"src/main/java/com/greeter/Greeter.java": "fixed"})

        result = GenerationOracleClient(llm=RunnableLambda(record)).repair(self.DIAGNOSTICS, "snapshot", project)

        assert result.well_formed
        assert result.actions == [ModifyFile(path="src/main/java/com/greeter/Greeter.java", content="fixed")]
        prompt = seen[0]
        assert "CORRELATED" in prompt
        assert "class Helper" not in prompt
        assert "main: com.greeter.Greeter" in prompt
        assert "cannot find symbol" in prompt

    def test_diagnostics_are_bounded(self, project):
        seen = []

        def record(prompt_value):
            seen.append(prompt_value.to_string())
            return oracle_json(modified={"a.txt": "x"})

        GenerationOracleClient(llm=RunnableLambda(record)).repair("x" * 10000, "", project)

        assert "x" * 3000 in seen[0]
        assert "x" * 3001 not in seen[0]

    def test_empty_repair_falls_back(self, project):
        client = GenerationOracleClient(llm=FakeListChatModel(responses=['{"createdFiles": []}']))
        result = client.repair(self.DIAGNOSTICS, "", project, request_prompt="welcome players on join")

        assert not result.well_formed
        deleted = [a.path for a in result.actions if isinstance(a, DeleteFile)]
        assert deleted == ["src/main/java/com/greeter/Helper.java"]

    def test_unreachable_repair_replaces_sources(self, project):
        result = GenerationOracleClient(llm=RunnableLambda(unreachable)).repair(self.DIAGNOSTICS, "", project)

        created = {a.path: a.content for a in result.actions if isinstance(a, CreateFile)}
        assert "extends JavaPlugin" in created["src/main/java/com/greeter/Greeter.java"]
        # the scaffold overwrites Greeter.java instead of deleting it
        assert DeleteFile(path="src/main/java/com/greeter/Greeter.java") not in result.actions


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
