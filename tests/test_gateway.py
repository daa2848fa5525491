"""
Tests for the gateway runtime context
"""

import asyncio
import logging
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from discord_availability import gateway as gateway_module
from discord_availability.gateway import AvailabilityGateway, main, setup_logging

from conftest import make_message


@pytest.fixture
def gateway(settings) -> AvailabilityGateway:
    return AvailabilityGateway(settings)


class TestWiring:
    """Components share one store and one settings object."""

    def test_components_share_store(self, gateway, settings):
        assert gateway.router.store is gateway.store
        assert gateway.workflow.store is gateway.store
        assert gateway.commands.store is gateway.store
        assert gateway.store.directory == settings.directory_availabilities
        assert gateway.store.max_per_user == settings.max_availabilities_per_user

    def test_strict_triggers_passed_to_classifier(self, settings):
        gateway = AvailabilityGateway(replace(settings, strict_triggers=True))
        assert gateway.classifier.strict is True


class TestRouting:
    """Adapter callbacks reach the core."""

    def test_message_routed_to_router(self, gateway, fake_adapter):
        gateway.adapters["discord"] = fake_adapter
        gateway.router.process_message = AsyncMock()
        message = make_message("available friday")

        asyncio.run(gateway._on_message(message))

        gateway.router.process_message.assert_awaited_once_with(message, fake_adapter)

    def test_unknown_platform_dropped(self, gateway):
        gateway.router.process_message = AsyncMock()

        asyncio.run(gateway._on_message(make_message("available friday")))

        gateway.router.process_message.assert_not_awaited()

    def test_prompt_answer_routed_to_workflow(self, gateway, fake_reply):
        gateway.workflow.handle_answer = AsyncMock()
        context = MagicMock()

        asyncio.run(gateway._on_prompt_answer(context, True, fake_reply))

        gateway.workflow.handle_answer.assert_awaited_once_with(context, True, fake_reply)


class TestStartup:
    """Start-up and shutdown."""

    def test_failed_adapter_not_registered(self, gateway):
        adapter = MagicMock()
        adapter.platform_name = "discord"
        adapter.start = AsyncMock(return_value=False)

        with patch.object(gateway_module, "DiscordAdapter", return_value=adapter) as adapter_cls:
            asyncio.run(gateway.start())

        assert adapter_cls.call_args.kwargs["config"] == {"bot_token": "test-token"}
        assert adapter_cls.call_args.kwargs["commands"] is gateway.commands
        assert gateway.adapters == {}

    def test_stop_stops_adapters(self, gateway, fake_adapter):
        fake_adapter.stop = AsyncMock()
        gateway.adapters["discord"] = fake_adapter

        asyncio.run(gateway.stop())

        fake_adapter.stop.assert_awaited_once()

    def test_main_without_config_exits(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setattr("sys.argv", ["discord-availability", str(tmp_path / "missing.yaml")])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "Missing config.yaml" in capsys.readouterr().err


class TestLogging:
    """Logging setup."""

    def test_setup_logging(self):
        root = logging.getLogger()
        handlers_before = list(root.handlers)
        level_before = root.level
        try:
            setup_logging("debug")
            assert root.level == logging.DEBUG
            assert logging.getLogger("discord").level == logging.WARNING
            added = [h for h in root.handlers if h not in handlers_before]
            assert len(added) == 1
            assert "%(name)" in added[0].formatter._fmt
        finally:
            for handler in root.handlers[:]:
                if handler not in handlers_before:
                    root.removeHandler(handler)
            root.setLevel(level_before)
