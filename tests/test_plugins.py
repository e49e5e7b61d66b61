"""
Tests for the marklog plugin system and mutation hooks.
"""
import logging

import pytest
from unittest.mock import MagicMock

from marklog.db import FieldChanges
from marklog.errors import DuplicateUrl, MutationVetoed
from marklog.plugins import (
    HookResult,
    MutationHook,
    PluginError,
    PluginMetadata,
    PluginPriority,
    PluginRegistry,
    PluginValidationError,
    PluginVersionError,
)
from marklog.selectors import IdRange


class RecordingHook(MutationHook):
    """Test hook that records every call."""

    def __init__(self, name="recorder", priority=50, api_version="1.0"):
        self._metadata = PluginMetadata(
            name=name,
            version="1.0.0",
            author="Test Author",
            description="Records hook calls",
            api_version_required=api_version,
            priority=priority,
        )
        self.calls = []

    @property
    def metadata(self):
        return self._metadata

    def on_pre_add(self, draft):
        self.calls.append(("pre_add", draft.url))
        return HookResult.CONTINUE

    def on_post_add(self, bookmark):
        self.calls.append(("post_add", bookmark.id))

    def on_pre_update(self, request):
        self.calls.append(("pre_update", request.selector))
        return HookResult.CONTINUE

    def on_post_update(self, report):
        self.calls.append(("post_update", report.changed))

    def on_pre_delete(self, selector):
        self.calls.append(("pre_delete", selector))
        return HookResult.CONTINUE

    def on_post_delete(self, report):
        self.calls.append(("post_delete", report.deleted))

    def on_post_undo(self, report):
        self.calls.append(("post_undo", report.undone))


class TaggingHook(MutationHook):
    """Adds a tag to every new bookmark and titles untitled ones."""

    metadata = PluginMetadata(name="tagger", version="1.0.0")

    def on_pre_add(self, draft):
        draft.set_tags(draft.tags + "inbox")
        if not draft.title:
            draft.title = draft.url
        return HookResult.CONTINUE


class VetoHook(MutationHook):
    """Refuses every add and delete."""

    metadata = PluginMetadata(name="veto", version="1.0.0")

    def on_pre_add(self, draft):
        return HookResult.SKIP

    def on_pre_delete(self, selector):
        raise RuntimeError("deletes are frozen")


class BrokenPostHook(MutationHook):
    metadata = PluginMetadata(name="broken", version="1.0.0")

    def on_post_add(self, bookmark):
        raise RuntimeError("post hook exploded")


class TestPluginRegistry:
    """Test registration and bookkeeping."""

    def test_register(self, registry):
        registry.register(RecordingHook())
        assert len(registry.get_plugins()) == 1

    def test_priority_order(self, registry):
        registry.register(RecordingHook("low", priority=PluginPriority.LOW.value))
        registry.register(RecordingHook("high", priority=PluginPriority.HIGH.value))
        assert [p.metadata.name for p in registry.get_plugins()] == ["high", "low"]

    def test_reregister_replaces(self, registry):
        registry.register(RecordingHook("same"))
        registry.register(RecordingHook("same"))
        assert len(registry.get_plugins()) == 1

    def test_non_hook_rejected(self, registry):
        plugin = MagicMock()
        plugin.metadata = PluginMetadata(name="mock", version="1.0")
        with pytest.raises(PluginError):
            registry.register(plugin)

    def test_incompatible_version_strict(self, registry):
        with pytest.raises(PluginVersionError):
            registry.register(RecordingHook(api_version="2.0"))

    def test_incompatible_version_lenient(self):
        registry = PluginRegistry(validate_strict=False)
        registry.register(RecordingHook(api_version="2.0"))
        assert registry.get_plugins() == []

    def test_validation_failure(self, registry):
        hook = RecordingHook()
        hook.validate = lambda: False
        with pytest.raises(PluginValidationError):
            registry.register(hook)

    def test_unregister(self, registry):
        registry.register(RecordingHook("gone"))
        assert registry.unregister("gone") is True
        assert registry.unregister("gone") is False

    def test_disable(self, registry):
        registry.register(RecordingHook("quiet"))
        assert registry.set_plugin_enabled("quiet", False)
        assert registry.get_plugins() == []
        assert len(registry.get_plugins(enabled_only=False)) == 1

    def test_plugin_info(self, registry):
        registry.register(RecordingHook("info"))
        info = registry.get_plugin_info()
        assert info[0]["name"] == "info"
        assert info[0]["author"] == "Test Author"

    def test_clear(self, registry):
        registry.register(RecordingHook())
        registry.clear()
        assert registry.get_plugins() == []


class TestMutationHooks:
    """Test hook dispatch around store mutations."""

    def test_hook_order_around_commands(self, store, registry):
        hook = RecordingHook()
        registry.register(hook)

        store.add("https://example.com")
        store.update(1, FieldChanges(title="t"))
        store.delete(IdRange(1, 1))
        store.undo()

        assert [name for name, _ in hook.calls] == [
            "pre_add", "post_add",
            "pre_update", "post_update",
            "pre_delete", "post_delete",
            "post_undo",
        ]

    def test_pre_add_can_rewrite_draft(self, store, registry):
        registry.register(TaggingHook())
        bookmark = store.add("https://example.com", tags=["web"])
        assert bookmark.tags == ",inbox,web,"
        assert bookmark.title == "https://example.com"

    def test_pre_update_can_rewrite_request(self, populated_store, registry):
        class Narrowing(MutationHook):
            metadata = PluginMetadata(name="narrow", version="1.0.0")

            def on_pre_update(self, request):
                request.tag_expr = "+checked"
                return HookResult.CONTINUE

        registry.register(Narrowing())
        populated_store.update(1, tag_expr="+ignored")
        assert populated_store.get(1).tag_list == ["checked", "lang", "systems"]

    def test_skip_vetoes_before_any_write(self, store, registry):
        registry.register(VetoHook())
        with pytest.raises(MutationVetoed) as exc_info:
            store.add("https://example.com")

        assert exc_info.value.plugin_name == "veto"
        assert exc_info.value.operation == "add"
        assert exc_info.value.exit_code == 7
        assert store.count() == 0
        assert store.undo_history() == []

    def test_exception_vetoes(self, populated_store, registry):
        registry.register(VetoHook())
        with pytest.raises(MutationVetoed) as exc_info:
            populated_store.delete(1)
        assert "deletes are frozen" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert populated_store.count() == 5

    def test_post_hook_failure_is_logged_only(self, store, registry, caplog):
        registry.register(BrokenPostHook())
        with caplog.at_level(logging.ERROR, logger="marklog"):
            bookmark = store.add("https://example.com")
        assert store.get(bookmark.id) is not None
        assert "post hook exploded" in caplog.text

    def test_hooks_not_run_for_failed_command(self, populated_store, registry):
        hook = RecordingHook()
        registry.register(hook)
        with pytest.raises(DuplicateUrl):
            populated_store.add("https://docs.python.org")
        assert [name for name, _ in hook.calls] == ["pre_add"]

    def test_plugins_disabled_in_config(self, store, registry):
        registry.register(VetoHook())
        store.config.plugins_enabled = False
        assert store.add("https://example.com").id == 1

    def test_post_update_receives_report(self, populated_store, registry):
        spy = MagicMock(spec=MutationHook)
        spy.metadata = PluginMetadata(name="spy", version="1.0.0")
        spy.validate.return_value = True
        spy.on_pre_update.return_value = HookResult.CONTINUE
        registry.register(spy)

        populated_store.update(IdRange(1, 2), FieldChanges(description="x"))

        report = spy.on_post_update.call_args[0][0]
        assert report.ids == [1, 2]
