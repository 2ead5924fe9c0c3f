"""
POM Tool - Maven build descriptor for Spigot plugins

This tool writes a minimal pom.xml for a plugin project and patches an
existing one so that src/main/resources is packaged into the JAR.
"""
import re
import logging
from pathlib import Path
from typing import Dict, Any, Tuple

from pluginforge.config import (
    BUILD_DESCRIPTOR,
    RESOURCES_DIR,
    MINECRAFT_API_VERSION,
    JAVA_VERSION,
)

logger = logging.getLogger(__name__)

# Reserved words and literals that cannot be a Java package segment
JAVA_RESERVED = frozenset("""
abstract assert boolean break byte case catch char class const continue default
do double else enum extends final finally float for goto if implements import
instanceof int interface long native new package private protected public return
short static strictfp super switch synchronized this throw throws transient try
void volatile while true false null _
""".split())

RESOURCES_BLOCK = f"""<resources>
            <resource>
                <directory>{RESOURCES_DIR}</directory>
                <filtering>true</filtering>
            </resource>
        </resources>"""

POM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>

    <groupId>{group_id}</groupId>
    <artifactId>{artifact_id}</artifactId>
    <version>{version}</version>
    <packaging>jar</packaging>

    <properties>
        <maven.compiler.source>{java_version}</maven.compiler.source>
        <maven.compiler.target>{java_version}</maven.compiler.target>
        <project.build.sourceEncoding>UTF-8</project.build.sourceEncoding>
    </properties>

    <repositories>
        <repository>
            <id>spigot-repo</id>
            <url>https://hub.spigotmc.org/nexus/content/repositories/snapshots/</url>
        </repository>
    </repositories>

    <dependencies>
        <dependency>
            <groupId>org.spigotmc</groupId>
            <artifactId>spigot-api</artifactId>
            <version>{api_version}</version>
            <scope>provided</scope>
        </dependency>
    </dependencies>

    <build>
        {resources}
        <plugins>
            <plugin>
                <groupId>org.apache.maven.plugins</groupId>
                <artifactId>maven-compiler-plugin</artifactId>
                <version>3.11.0</version>
                <configuration>
                    <source>{java_version}</source>
                    <target>{java_version}</target>
                </configuration>
            </plugin>
        </plugins>
    </build>
</project>
"""


def derive_coordinates(name: str) -> Tuple[str, str]:
    """
    Derive Maven coordinates from a plugin name

    Returns:
        (group_id, artifact_id), e.g. ("com.greeter", "greeter")
    """
    artifact_id = re.sub(r"[^a-z0-9_-]", "", name.lower()) or "plugin"
    group_segment = re.sub(r"[^a-z0-9_]", "", artifact_id.replace("-", "_")) or "plugin"
    if group_segment[0].isdigit():
        group_segment = f"p{group_segment}"
    if group_segment in JAVA_RESERVED:
        group_segment = f"{group_segment}_"
    return f"com.{group_segment}", artifact_id


def generate_minimal_pom(
    project_root: Path,
    group_id: str,
    artifact_id: str,
    version: str = "1.0.0",
) -> Dict[str, Any]:
    """
    Write a minimal Spigot plugin pom.xml if the project has none

    Args:
        project_root: Plugin project directory
        group_id: Maven groupId
        artifact_id: Maven artifactId
        version: Project version

    Returns:
        Dictionary with status and pom_path; status is "skipped" if a pom exists
    """
    pom_path = Path(project_root) / BUILD_DESCRIPTOR
    if pom_path.exists():
        return {"status": "skipped", "pom_path": str(pom_path)}

    pom_path.parent.mkdir(parents=True, exist_ok=True)
    pom_path.write_text(
        POM_TEMPLATE.format(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            java_version=JAVA_VERSION,
            api_version=MINECRAFT_API_VERSION,
            resources=RESOURCES_BLOCK,
        ),
        encoding="utf-8",
    )
    logger.info(f"[POM] Generated minimal pom.xml for {group_id}:{artifact_id}")

    return {"status": "success", "pom_path": str(pom_path)}


def ensure_resources_declared(pom_path: Path) -> bool:
    """
    Make sure the pom packages src/main/resources

    The patch is textual: a <resources> section is inserted right after an
    existing <build> tag, or a new <build> section is added before </project>.

    Returns:
        True if the file was changed
    """
    pom_path = Path(pom_path)
    if not pom_path.exists():
        return False

    content = pom_path.read_text(encoding="utf-8", errors="replace")
    if "<resources>" in content and RESOURCES_DIR in content:
        return False
    if "<resources>" in content:
        # A resources section exists but does not list our directory
        patched = content.replace(
            "<resources>",
            "<resources>\n            <resource>\n"
            f"                <directory>{RESOURCES_DIR}</directory>\n"
            "                <filtering>true</filtering>\n"
            "            </resource>",
            1,
        )
    elif re.search(r"<build>\s*", content):
        patched = re.sub(r"<build>\s*", f"<build>\n        {RESOURCES_BLOCK}\n        ", content, count=1)
    elif "</project>" in content:
        patched = content.replace(
            "</project>",
            f"    <build>\n        {RESOURCES_BLOCK}\n    </build>\n</project>",
            1,
        )
    else:
        logger.warning(f"[POM] Cannot patch {pom_path}: no <build> or </project> tag")
        return False

    pom_path.write_text(patched, encoding="utf-8")
    logger.info(f"[POM] Declared {RESOURCES_DIR} as a resource directory in {pom_path.name}")
    return True


__all__ = ["derive_coordinates", "generate_minimal_pom", "ensure_resources_declared"]
