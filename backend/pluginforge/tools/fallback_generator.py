"""
Fallback Generator - Deterministic plugin scaffold

Used whenever the oracle is unreachable or its answer is unusable. The
output is keyword-driven but fixed for a given (prompt, plugin_name) pair and
always compiles against the Spigot API:
- one entry-point class extending JavaPlugin (also a Listener and CommandExecutor)
- src/main/resources/plugin.yml
- src/main/resources/config.yml
"""
import re
from typing import List, Optional

from pluginforge.config import JAVA_SOURCES_DIR, RESOURCES_DIR, MANIFEST_FILE, SETTINGS_FILE
from pluginforge.schemas import CreateFile, FileAction
from pluginforge.tools.pom_tool import derive_coordinates

DEFAULT_PLUGIN_NAME = "FallbackPlugin"

NAME_PATTERNS = [
    re.compile(r"plugin\s+(?:called|named)\s+['\"]?([a-zA-Z][a-zA-Z0-9_-]*)['\"]?", re.IGNORECASE),
    re.compile(r"create\s+(?:an?\s+)?['\"]?([a-zA-Z][a-zA-Z0-9_-]*)['\"]?\s+plugin", re.IGNORECASE),
    re.compile(r"['\"]([a-zA-Z][a-zA-Z0-9_-]*)['\"]\s+plugin", re.IGNORECASE),
]

# keyword group -> (import lines, handler source, config lines)
FEATURES = {
    "join": (
        ["org.bukkit.event.player.PlayerJoinEvent"],
        """    @EventHandler
    public void onPlayerJoin(PlayerJoinEvent event) {
        String message = getConfig().getString("messages.join", "Welcome, %player%!");
        event.getPlayer().sendMessage(colorize(message.replace("%player%", event.getPlayer().getName())));
    }
""",
        ['  join: "&aWelcome to the server, %player%!"'],
    ),
    "quit": (
        ["org.bukkit.event.player.PlayerQuitEvent"],
        """    @EventHandler
    public void onPlayerQuit(PlayerQuitEvent event) {
        String message = getConfig().getString("messages.quit", "%player% left the game");
        getLogger().info(message.replace("%player%", event.getPlayer().getName()));
    }
""",
        ['  quit: "%player% left the game"'],
    ),
    "chat": (
        ["org.bukkit.event.player.AsyncPlayerChatEvent"],
        """    @EventHandler
    public void onPlayerChat(AsyncPlayerChatEvent event) {
        if (getConfig().getBoolean("chat.log", true)) {
            getLogger().info("[Chat] " + event.getPlayer().getName() + ": " + event.getMessage());
        }
    }
""",
        [],
    ),
    "block": (
        ["org.bukkit.event.block.BlockBreakEvent"],
        """    @EventHandler
    public void onBlockBreak(BlockBreakEvent event) {
        String message = getConfig().getString("messages.block-break", "You broke %block%");
        event.getPlayer().sendMessage(colorize(message.replace("%block%", event.getBlock().getType().name())));
    }
""",
        ['  block-break: "&7You broke %block%"'],
    ),
    "death": (
        ["org.bukkit.event.entity.PlayerDeathEvent"],
        """    @EventHandler
    public void onPlayerDeath(PlayerDeathEvent event) {
        String message = getConfig().getString("messages.death", "%player% has fallen");
        getLogger().info(message.replace("%player%", event.getEntity().getName()));
    }
""",
        ['  death: "%player% has fallen"'],
    ),
}

KEYWORDS = {
    "join": ("join", "welcome", "greet"),
    "quit": ("quit", "leave", "goodbye"),
    "chat": ("chat",),
    "block": ("block break", "break block", "breaks a block", "mining", "mine "),
    "death": ("death", "die", "dies", "killed"),
}


def extract_plugin_name(prompt: str) -> Optional[str]:
    """Find a plugin name mentioned in the prompt, if any"""
    for pattern in NAME_PATTERNS:
        match = pattern.search(prompt or "")
        if match:
            return match.group(1)
    return None


def to_class_name(name: str) -> str:
    """Turn a plugin name into a valid Java class identifier (PascalCase)"""
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", name or "") if p]
    class_name = "".join(p[0].upper() + p[1:] for p in parts)
    if not class_name:
        return DEFAULT_PLUGIN_NAME
    if class_name[0].isdigit():
        class_name = f"Plugin{class_name}"
    return class_name


def detect_features(prompt: str) -> List[str]:
    """Keyword groups present in the prompt, in a fixed order"""
    lowered = (prompt or "").lower()
    features = [key for key, words in KEYWORDS.items() if any(w in lowered for w in words)]
    # A plugin with no listeners still greets players so it does something visible
    return features or ["join"]


def generate_fallback_actions(prompt: str, plugin_name: Optional[str] = None) -> List[FileAction]:
    """
    Build a minimal, compilable plugin from keywords in the prompt

    Args:
        prompt: The user's request
        plugin_name: Request name; a name found in the prompt is used when absent

    Returns:
        Create actions for the entry-point class, plugin.yml and config.yml
    """
    class_name = to_class_name(plugin_name or extract_plugin_name(prompt) or DEFAULT_PLUGIN_NAME)
    group_id, artifact_id = derive_coordinates(class_name)
    command = artifact_id.replace("-", "")
    features = detect_features(prompt)

    java_path = f"{JAVA_SOURCES_DIR}/{group_id.replace('.', '/')}/{class_name}.java"
    return [
        CreateFile(path=java_path, content=_java_source(group_id, class_name, command, features)),
        CreateFile(path=f"{RESOURCES_DIR}/{MANIFEST_FILE}", content=_plugin_yml(group_id, class_name, command, prompt)),
        CreateFile(path=f"{RESOURCES_DIR}/{SETTINGS_FILE}", content=_config_yml(class_name, features)),
    ]


def _java_source(package: str, class_name: str, command: str, features: List[str]) -> str:
    imports = {
        "org.bukkit.ChatColor",
        "org.bukkit.command.Command",
        "org.bukkit.command.CommandExecutor",
        "org.bukkit.command.CommandSender",
        "org.bukkit.event.EventHandler",
        "org.bukkit.event.Listener",
        "org.bukkit.plugin.java.JavaPlugin",
    }
    handlers = []
    for feature in features:
        feature_imports, handler, _ = FEATURES[feature]
        imports.update(feature_imports)
        handlers.append(handler)

    import_lines = "\n".join(f"import {name};" for name in sorted(imports))
    handler_source = "\n".join(handlers)

    return f"""package {package};

{import_lines}

public class {class_name} extends JavaPlugin implements Listener, CommandExecutor {{

    @Override
    public void onEnable() {{
        saveDefaultConfig();
        getServer().getPluginManager().registerEvents(this, this);
        if (getCommand("{command}") != null) {{
            getCommand("{command}").setExecutor(this);
        }}
        getLogger().info("{class_name} has been enabled!");
    }}

    @Override
    public void onDisable() {{
        getLogger().info("{class_name} has been disabled!");
    }}

{handler_source}
    @Override
    public boolean onCommand(CommandSender sender, Command command, String label, String[] args) {{
        if (!command.getName().equalsIgnoreCase("{command}")) {{
            return false;
        }}
        if (args.length > 0 && args[0].equalsIgnoreCase("reload")) {{
            if (!sender.hasPermission("{command}.admin")) {{
                sender.sendMessage(ChatColor.RED + "You do not have permission to do that.");
                return true;
            }}
            reloadConfig();
            sender.sendMessage(ChatColor.GREEN + "{class_name} configuration reloaded.");
            return true;
        }}
        sender.sendMessage(colorize(getConfig().getString("messages.info", "{class_name} is running.")));
        return true;
    }}

    private String colorize(String message) {{
        return ChatColor.translateAlternateColorCodes('&', message);
    }}
}}
"""


def _plugin_yml(package: str, class_name: str, command: str, prompt: str) -> str:
    description = re.sub(r"[\r\n\"\\]+", " ", prompt or "").strip()[:120] or "A Minecraft plugin"
    return f"""name: {class_name}
version: 1.0.0
main: {package}.{class_name}
api-version: '1.13'
description: "{description}"
commands:
  {command}:
    description: Show {class_name} info or reload its configuration
    usage: /{command} [reload]
permissions:
  {command}.admin:
    description: Allows reloading the {class_name} configuration
    default: op
"""


def _config_yml(class_name: str, features: List[str]) -> str:
    message_lines = [f'  info: "&e{class_name} is running."']
    for feature in features:
        message_lines.extend(FEATURES[feature][2])

    lines = [f"# Configuration for {class_name}", "enabled: true", "messages:"] + message_lines
    if "chat" in features:
        lines += ["chat:", "  log: true"]
    return "\n".join(lines) + "\n"


__all__ = ["generate_fallback_actions", "extract_plugin_name", "to_class_name", "detect_features"]
