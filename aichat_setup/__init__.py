"""
Installer and configurator for the aichat CLI: package install, default config,
system-aware role document and shell profile integration.
"""

__all__ = ["cli", "installer", "plan", "profile_blocks", "role", "system_state"]
__version__ = "0.1.0"
