"""
Configuration for the Plugin Forge build-repair pipeline
"""
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# API Configuration
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
if not GEMINI_API_KEY:
    logger.warning(
        "[Config] GEMINI_API_KEY not found in environment variables. "
        "The oracle is unreachable; the fallback generator will be used."
    )

# Paths
BASE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = BASE_DIR / "templates"
GENERATED_DIR = Path(os.getenv("PLUGINFORGE_GENERATED_DIR", str(BASE_DIR / "generated")))
TEMPLATE_ARCHIVE = Path(os.getenv("PLUGINFORGE_TEMPLATE_ARCHIVE", str(TEMPLATES_DIR / "basic.zip")))

# AI Configuration - Using Gemini
AI_MODEL = os.getenv("AI_MODEL", "gemini-2.0-flash")
AI_TEMPERATURE = float(os.getenv("AI_TEMPERATURE", "0.2"))
AI_REQUEST_TIMEOUT = float(os.getenv("AI_REQUEST_TIMEOUT", "120"))
AI_MAX_RETRIES = int(os.getenv("AI_MAX_RETRIES", "2"))

# Repair loop policy
MAX_FIX_ATTEMPTS = int(os.getenv("MAX_FIX_ATTEMPTS", "2"))
CLEANUP_PASS_CAP = int(os.getenv("CLEANUP_PASS_CAP", "5"))

# Build tool (Maven)
BUILD_COMMAND = os.getenv("BUILD_COMMAND", "mvn clean package -B")
BUILD_TIMEOUT = float(os.getenv("BUILD_TIMEOUT", "600"))  # 10 minutes
BUILD_DESCRIPTOR = "pom.xml"
BUILD_OUTPUT_DIR = "target"
RESOURCES_DIR = "src/main/resources"
JAVA_SOURCES_DIR = "src/main/java"

# Prompt size control
DIAGNOSTIC_CHAR_BUDGET = 4000
REPAIR_PROMPT_DIAGNOSTIC_CHARS = 3000
SNAPSHOT_PROMPT_CHARS = 60000

# Minecraft/Spigot Configuration (override via environment variables to match your server)
MINECRAFT_API_VERSION = os.getenv("MINECRAFT_API_VERSION", "1.20.4-R0.1-SNAPSHOT")
JAVA_VERSION = os.getenv("JAVA_VERSION", "17")

# Host-required resources inside the plugin JAR
MANIFEST_FILE = "plugin.yml"
SETTINGS_FILE = "config.yml"
REQUIRED_ARTIFACT_ENTRIES = (MANIFEST_FILE, SETTINGS_FILE)

# Files the pipeline itself writes into the project root
SNAPSHOT_FILE = "compiled_files.txt"
BUILD_LOG_FILE = "build.log"
ORACLE_RESPONSE_FILE = "oracle_response.txt"
ORACLE_REPAIR_FILE = "oracle_repair_{attempt}.txt"
