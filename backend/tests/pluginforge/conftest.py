"""
Shared fixtures and fakes for pluginforge tests

ScriptedBuilder stands in for Maven: it "compiles" by checking the Java
sources for a few known mistakes and "packages" by zipping the resources
into target/<name>-1.0.0.jar.
"""
import json
import shutil
import tempfile
import zipfile
from pathlib import Path

import pytest

from pluginforge.core import DiagnosticExtractor
from pluginforge.schemas import BuildResult
from pluginforge.tools import derive_coordinates, generate_minimal_pom


GREETER_JAVA = """package com.greeter;

import org.bukkit.ChatColor;
import org.bukkit.event.EventHandler;
import org.bukkit.event.Listener;
import org.bukkit.event.player.PlayerJoinEvent;
import org.bukkit.plugin.java.JavaPlugin;

public class Greeter extends JavaPlugin implements Listener {
    @Override
    public void onEnable() {
        saveDefaultConfig();
        getServer().getPluginManager().registerEvents(this, this);
    }

    @EventHandler
    public void onJoin(PlayerJoinEvent event) {
        event.getPlayer().sendMessage(ChatColor.GREEN + getConfig().getString("welcome"));
    }
}
"""

GREETER_YML = "name: Greeter\nversion: 1.0.0\nmain: com.greeter.Greeter\napi-version: '1.13'\n"
GREETER_CONFIG = 'welcome: "Welcome to the server!"\n'


def oracle_json(created=None, modified=None, deleted=None) -> str:
    """An oracle answer wrapped in prose and a fenced block"""
    payload = {
        "createdFiles": [{"path": p, "content": c} for p, c in (created or {}).items()],
        "modifiedFiles": [{"path": p, "content": c} for p, c in (modified or {}).items()],
        "deletedFiles": list(deleted or []),
    }
    return "Here is your plugin:\n```json\n" + json.dumps(payload, indent=2) + "\n```\nEnjoy!"


def greeter_response(java: str = GREETER_JAVA) -> str:
    return oracle_json(created={
        "src/main/java/com/greeter/Greeter.java": java,
        "src/main/resources/plugin.yml": GREETER_YML,
        "src/main/resources/config.yml": GREETER_CONFIG,
    })


def missing_import_check(root: Path):
    """Compile check: a JavaPlugin entry point must exist and ChatColor must be imported"""
    sources = sorted((root / "src" / "main" / "java").rglob("*.java"))
    if not any("extends JavaPlugin" in p.read_text() for p in sources):
        return "[ERROR] No plugin main class found"
    for path in sources:
        text = path.read_text()
        if "ChatColor." in text and "import org.bukkit.ChatColor;" not in text:
            line = next(i for i, l in enumerate(text.splitlines(), 1) if "ChatColor." in l)
            return (
                f"[ERROR] {path}:[{line},38] cannot find symbol\n"
                "[ERROR]   symbol:   variable ChatColor\n"
                f"[ERROR]   location: class {path.stem}"
            )
    return None


class ScriptedBuilder:
    """Fake BuildToolRunner with Maven-shaped output"""

    def __init__(self, check=missing_import_check):
        self.check = check
        self.calls = []
        self.results = []
        self.diagnostics = DiagnosticExtractor()

    def build(self, root: Path, auto_fix: bool = True) -> BuildResult:
        self.calls.append(auto_fix)
        result = self._build(Path(root))
        self.results.append(result)
        return result

    def _build(self, root: Path) -> BuildResult:
        generate_minimal_pom(root, *derive_coordinates(root.name))

        error = self.check(root)
        if error:
            raw_log = (
                "[INFO] Scanning for projects...\n"
                "[INFO] BUILD FAILURE\n"
                f"{error}\n"
                "[ERROR] Failed to execute goal org.apache.maven.plugins:maven-compiler-plugin:3.11.0:compile\n"
                "[ERROR] -> [Help 1]\n"
            )
            return BuildResult(success=False, raw_log=raw_log, diagnostics=self.diagnostics.extract(raw_log), exit_code=1)

        jar = package_jar(root)
        return BuildResult(success=True, artifact_path=str(jar), raw_log="[INFO] BUILD SUCCESS\n", exit_code=0)


def package_jar(root: Path) -> Path:
    """Zip src/main/resources and one .class per Java source into target/"""
    target = root / "target"
    target.mkdir(exist_ok=True)
    jar = target / f"{root.name.lower()}-1.0.0.jar"
    with zipfile.ZipFile(jar, "w") as z:
        resources = root / "src" / "main" / "resources"
        if resources.is_dir():
            for path in resources.rglob("*"):
                if path.is_file():
                    z.write(path, path.relative_to(resources).as_posix())
        sources = root / "src" / "main" / "java"
        for path in sources.rglob("*.java"):
            rel = path.relative_to(sources).with_suffix(".class").as_posix()
            z.writestr(rel, b"\xca\xfe\xba\xbe")
    return jar


def make_jar(path: Path, entries) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as z:
        for name in entries:
            z.writestr(name, "")
    return path


@pytest.fixture
def temp_dir():
    """Create temporary directory"""
    temp = Path(tempfile.mkdtemp())
    yield temp
    if temp.exists():
        shutil.rmtree(temp)


@pytest.fixture
def scaffold_archive(temp_dir):
    """A small Spigot scaffold zipped the way templates/basic.zip is laid out"""
    source = temp_dir / "scaffold_src"
    files = {
        "basic/README.md": "# Basic plugin scaffold\n",
        "basic/src/main/java/com/example/basic/BasicPlugin.java":
            "package com.example.basic;\n\npublic class BasicPlugin extends org.bukkit.plugin.java.JavaPlugin {}\n",
        "basic/src/main/resources/plugin.yml": "name: Basic\nmain: com.example.basic.BasicPlugin\nversion: 1.0\n",
        "basic/notes/empty/.keep": "",
    }
    for rel, content in files.items():
        path = source / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)

    archive = Path(shutil.make_archive(str(temp_dir / "basic"), "zip", root_dir=source))
    shutil.rmtree(source)
    return archive
