"""
Plugin Forge - AI-assisted build-repair pipeline for Bukkit/Spigot plugins

Usage:
    from pluginforge.pipeline import generate_plugin_from_prompt
    result = generate_plugin_from_prompt("Greeter", "welcome players on join")
"""
