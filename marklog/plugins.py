"""
marklog plugin architecture: mutation hooks.

Plugins observe and shape mutations at fixed points around each transaction:

- pre hooks run immediately before the transaction opens. They may rewrite
  the pending draft/request in place, or veto the command by returning
  HookResult.SKIP or raising; a veto aborts before any row or log write.
- post hooks run immediately after commit. Failures are logged and never
  affect the committed result.

Registries are instantiable (no global state) and order plugins by priority,
highest first.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, TYPE_CHECKING
import logging

from marklog.errors import MutationVetoed

if TYPE_CHECKING:
    from marklog.db import BookmarkDraft, DeleteReport, UpdateReport, UpdateRequest
    from marklog.models import Bookmark
    from marklog.selectors import Selector
    from marklog.undo import UndoReport

logger = logging.getLogger(__name__)

PLUGIN_API_VERSION = "1.0"


# ============================================================================
# Plugin Metadata
# ============================================================================

@dataclass
class PluginMetadata:
    """Metadata for a plugin."""
    name: str
    version: str
    author: str = ""
    description: str = ""
    api_version_required: str = PLUGIN_API_VERSION
    priority: int = 50  # 0-100, with 50 as default
    enabled: bool = True


class PluginPriority(Enum):
    """Standard priority levels for plugins."""
    LOWEST = 0
    LOW = 25
    NORMAL = 50
    HIGH = 75
    HIGHEST = 100


class HookResult(Enum):
    CONTINUE = "continue"
    SKIP = "skip"


# ============================================================================
# Plugin Interfaces
# ============================================================================

class Plugin(ABC):
    """Base class for all plugins."""

    @property
    @abstractmethod
    def metadata(self) -> PluginMetadata:
        """Return plugin metadata."""
        pass

    def validate(self) -> bool:
        """Override for custom validation logic."""
        return True


class MutationHook(Plugin):
    """
    Hook points around add/update/delete/undo.

    Every method has a no-op default; override the ones you need.
    """

    def on_pre_add(self, draft: "BookmarkDraft") -> HookResult:
        return HookResult.CONTINUE

    def on_post_add(self, bookmark: "Bookmark") -> None:
        pass

    def on_pre_update(self, request: "UpdateRequest") -> HookResult:
        return HookResult.CONTINUE

    def on_post_update(self, report: "UpdateReport") -> None:
        pass

    def on_pre_delete(self, selector: "Selector") -> HookResult:
        return HookResult.CONTINUE

    def on_post_delete(self, report: "DeleteReport") -> None:
        pass

    def on_post_undo(self, report: "UndoReport") -> None:
        pass


# ============================================================================
# Plugin Registry
# ============================================================================

class PluginError(Exception):
    """Base exception for plugin-related errors."""
    pass


class PluginVersionError(PluginError):
    """Raised when plugin version is incompatible."""
    pass


class PluginValidationError(PluginError):
    """Raised when plugin validation fails."""
    pass


class PluginRegistry:
    """Registry of mutation hooks, highest priority first."""

    def __init__(self, validate_strict: bool = True):
        """
        Args:
            validate_strict: If True, raise errors on registration failures.
                If False, log warnings and skip invalid plugins.
        """
        self._hooks: List[MutationHook] = []
        self.validate_strict = validate_strict

    def register(self, plugin: MutationHook) -> None:
        """
        Register a plugin instance.

        Raises:
            PluginError: If plugin is not a MutationHook
            PluginVersionError: If plugin requires an incompatible API version
            PluginValidationError: If plugin validation fails
        """
        if not isinstance(plugin, MutationHook):
            raise PluginError(f"Plugin {plugin.metadata.name} does not implement MutationHook")

        if not self._check_version_compatibility(plugin.metadata.api_version_required):
            error_msg = (
                f"Plugin {plugin.metadata.name} requires plugin API version "
                f"{plugin.metadata.api_version_required}, but current version is "
                f"{PLUGIN_API_VERSION}"
            )
            if self.validate_strict:
                raise PluginVersionError(error_msg)
            logger.warning(error_msg)
            return

        try:
            valid = plugin.validate()
        except Exception as e:
            error_msg = f"Plugin {plugin.metadata.name} validation error: {e}"
            if self.validate_strict:
                raise PluginValidationError(error_msg) from e
            logger.warning(error_msg)
            return
        if not valid:
            error_msg = f"Plugin {plugin.metadata.name} validation failed"
            if self.validate_strict:
                raise PluginValidationError(error_msg)
            logger.warning(error_msg)
            return

        for existing in self._hooks:
            if existing.metadata.name == plugin.metadata.name:
                logger.warning(f"Plugin {plugin.metadata.name} already registered, replacing")
                self._hooks.remove(existing)
                break

        self._hooks.append(plugin)
        self._hooks.sort(key=lambda p: p.metadata.priority, reverse=True)

        logger.info(
            f"Registered plugin: {plugin.metadata.name} "
            f"(priority: {plugin.metadata.priority})"
        )

    def unregister(self, name: str) -> bool:
        """Unregister a plugin by name. Returns True if it was registered."""
        for plugin in self._hooks:
            if plugin.metadata.name == name:
                self._hooks.remove(plugin)
                logger.info(f"Unregistered plugin: {name}")
                return True
        return False

    def get_plugins(self, enabled_only: bool = True) -> List[MutationHook]:
        if enabled_only:
            return [p for p in self._hooks if p.metadata.enabled]
        return list(self._hooks)

    def set_plugin_enabled(self, name: str, enabled: bool) -> bool:
        for plugin in self._hooks:
            if plugin.metadata.name == name:
                plugin.metadata.enabled = enabled
                logger.info(f"{'Enabled' if enabled else 'Disabled'} plugin: {name}")
                return True
        return False

    def get_plugin_info(self) -> List[Dict[str, Any]]:
        return [
            {
                'name': p.metadata.name,
                'version': p.metadata.version,
                'author': p.metadata.author,
                'description': p.metadata.description,
                'priority': p.metadata.priority,
                'enabled': p.metadata.enabled,
            }
            for p in self._hooks
        ]

    def clear(self) -> None:
        self._hooks.clear()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def run_pre(self, hook_name: str, operation: str, payload: Any) -> None:
        """
        Run a pre hook on every enabled plugin.

        Raises:
            MutationVetoed: a plugin returned SKIP or raised
        """
        for plugin in self.get_plugins():
            name = plugin.metadata.name
            try:
                result = getattr(plugin, hook_name)(payload)
            except Exception as e:
                logger.error(f"Plugin '{name}' {hook_name} error: {e}")
                raise MutationVetoed(name, operation, str(e)) from e
            if result is HookResult.SKIP:
                logger.warning(f"Plugin '{name}' requested to skip {operation}")
                raise MutationVetoed(name, operation)

    def run_post(self, hook_name: str, payload: Any) -> None:
        """Run a post hook on every enabled plugin; errors are logged only."""
        for plugin in self.get_plugins():
            try:
                getattr(plugin, hook_name)(payload)
            except Exception as e:
                logger.error(f"Plugin '{plugin.metadata.name}' {hook_name} error (non-fatal): {e}")

    def _check_version_compatibility(self, required_version: str) -> bool:
        """Major version check."""
        current_major = PLUGIN_API_VERSION.split('.')[0]
        required_major = required_version.split('.')[0]
        return current_major == required_major
