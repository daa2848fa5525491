#!/usr/bin/env python3
"""
Discord Availability gateway - main entry point.

Builds the process-wide runtime context once (settings, store, classifier,
resolver, workflow, router, adapters), connects to Discord and routes every
inbound message and prompt answer into the core.

Usage:
    discord-availability [config.yaml]

    If no config file is specified, the default locations are searched
    (see `config.candidate_paths`).
"""
import asyncio
import logging
import signal
import sys
from typing import Dict

from .adapters.base import BaseAdapter, IncomingMessage, PromptContext, ReplyHandle
from .adapters.discord_adapter import DiscordAdapter
from .classifier import IntentClassifier
from .commands import AvailabilityCommands
from .config import Settings, load_config
from .errors import ConfigError
from .router import AvailabilityRouter
from .store import AvailabilityStore
from .time_resolver import TimeResolver
from .workflow import ConfirmationWorkflow


def setup_logging(level: str = "INFO"):
    """Configure logging for the gateway."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s | %(name)-25s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    # Reduce noise from libraries
    logging.getLogger("discord").setLevel(logging.WARNING)


class AvailabilityGateway:
    """Runtime context: owns every component and wires adapters to the core."""

    def __init__(self, settings: Settings):
        """
        Initialize the gateway.

        Args:
            settings: Validated configuration
        """
        self.settings = settings
        self.logger = logging.getLogger("Availability.Gateway")

        self.store = AvailabilityStore(settings.directory_availabilities, settings.max_availabilities_per_user)
        self.classifier = IntentClassifier(strict=settings.strict_triggers)
        self.resolver = TimeResolver(settings)
        self.workflow = ConfirmationWorkflow(self.store, settings)
        self.router = AvailabilityRouter(self.store, self.classifier, self.resolver, self.workflow)
        self.commands = AvailabilityCommands(self.store, self.resolver, self.workflow)

        self.adapters: Dict[str, BaseAdapter] = {}
        self._shutdown_event = asyncio.Event()

    async def _on_message(self, message: IncomingMessage):
        """Handle incoming message from any platform."""
        adapter = self.adapters.get(message.platform)
        if not adapter:
            self.logger.error(f"No adapter for platform: {message.platform}")
            return

        await self.router.process_message(message, adapter)

    async def _on_prompt_answer(self, context: PromptContext, accepted: bool, reply: ReplyHandle):
        await self.workflow.handle_answer(context, accepted, reply)

    async def start(self):
        """Start the Discord adapter and run until shutdown is requested."""
        self.logger.info("Starting Discord Availability...")
        self.logger.info(f"Availabilities directory: {self.settings.directory_availabilities}")

        adapter = DiscordAdapter(
            config={"bot_token": self.settings.token},
            on_message=self._on_message,
            on_prompt_answer=self._on_prompt_answer,
            commands=self.commands,
        )
        # Registered before start: messages may arrive while it connects
        self.adapters[adapter.platform_name] = adapter

        if not await adapter.start():
            del self.adapters[adapter.platform_name]
            self.logger.error("No adapters started! Check your configuration.")
            return

        self.logger.info("=" * 50)
        self.logger.info(f"Tracking availability for {self.settings.event_name}")
        self.logger.info(f"Platforms: {', '.join(self.adapters)}")
        self.logger.info("=" * 50)

        await self._shutdown_event.wait()

    async def stop(self):
        """Stop all adapters gracefully."""
        self.logger.info("Shutting down...")

        stop_tasks = []
        for name, adapter in self.adapters.items():
            self.logger.info(f"Stopping {name}...")
            stop_tasks.append(adapter.stop())

        if stop_tasks:
            await asyncio.gather(*stop_tasks, return_exceptions=True)

        self.logger.info("Stopped.")

    def request_shutdown(self):
        """Request graceful shutdown."""
        self._shutdown_event.set()


async def run(settings: Settings):
    gateway = AvailabilityGateway(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, gateway.request_shutdown)

    try:
        await gateway.start()
    finally:
        await gateway.stop()


def main():
    """Main entry point."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        settings = load_config(config_path)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.log_level)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")


if __name__ == "__main__":
    main()
