"""
PolicyBot - policyserv community management bot orchestrator

Builds the components from a BotConfig and a chat transport, wires the
transport's events to them, and owns startup and shutdown:

1. Key-value store (SQLite by default)
2. Rate limiter sweep
3. Safety team room join
4. Event callbacks (joins, commands, votes)

All behavior lives in policybot.community and policybot.core.
"""

import logging
from pathlib import Path
from typing import Optional

from .community import ApplicationWorkflow, CommunitySettings, ConfigRegistry
from .config import BotConfig
from .connection import (
    ROOM_JOIN,
    ROOM_MESSAGE,
    ROOM_REACTION,
    JoinEvent,
    MessageEvent,
    MessagingClient,
    ReactionEvent,
)
from .core import BackgroundTasks, CommandParser, RateLimiter
from .core.dispatcher import CommandDispatcher
from .errors import new_correlation_token
from .policyserv import PolicyservClient
from .storage import CommunityStore, KeyValueStore, SQLKeyValueStore

logger = logging.getLogger(__name__)


class PolicyBot:
    """
    Bot orchestrator.

    Responsibilities:
    1. Construct the store, backend client, workflow and dispatcher
    2. Register event callbacks on the messaging client
    3. Coordinate graceful shutdown

    Example:
        bot = PolicyBot(load_config("config.yaml"), client)
        await bot.start()
        ...
        await bot.stop()
    """

    def __init__(
        self,
        config: BotConfig,
        client: MessagingClient,
        kv: Optional[KeyValueStore] = None,
        policyserv: Optional[PolicyservClient] = None,
    ):
        """
        Initialize the bot.

        Args:
            config: Validated configuration
            client: Chat transport
            kv: Key-value store (defaults to SQLKeyValueStore at config.database_url)
            policyserv: Backend client (defaults to one built from config.policyserv)
        """
        self.config = config
        self.client = client

        if kv is None:
            _ensure_parent_dir(config.database_url)
            kv = SQLKeyValueStore(config.database_url)
        self.kv = kv
        self.store = CommunityStore(kv)

        self.policyserv = policyserv or PolicyservClient(
            config.policyserv.base_url,
            config.policyserv.api_key,
            timeout=config.policyserv.timeout,
        )
        self.tasks = BackgroundTasks()
        self.rate_limiter = RateLimiter(config.rate_limit)
        self.registry = ConfigRegistry()
        self.settings = CommunitySettings(self.policyserv, self.registry)
        self.workflow = ApplicationWorkflow(
            client,
            self.policyserv,
            self.store,
            self.tasks,
            safety_team_room_id=config.safety_team_room_id,
            policy_server_name=config.policyserv.server_name,
            appeal_directions=config.appeal_directions,
            fallback_via=config.fallback_via,
            allow_repeat_resolution=config.allow_repeat_resolution,
        )
        self.dispatcher = CommandDispatcher(
            client,
            self.workflow,
            self.settings,
            self.tasks,
            parser=CommandParser(config.command_prefixes),
            rate_limiter=self.rate_limiter,
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start all components in order"""
        if self._running:
            logger.warning("PolicyBot already running")
            return
        try:
            logger.info("Opening key-value store...")
            await self.kv.connect()

            logger.info("Starting rate limiter...")
            await self.rate_limiter.start()

            logger.info(f"Joining safety team room {self.config.safety_team_room_id}...")
            await self.client.join_room(self.config.safety_team_room_id, [self.config.fallback_via])

            self.client.on_event(ROOM_JOIN, self.on_join)
            self.client.on_event(ROOM_MESSAGE, self.on_message)
            self.client.on_event(ROOM_REACTION, self.on_reaction)
            self._running = True
            logger.info("✅ PolicyBot started")
        except Exception as e:
            logger.error(f"Failed to start PolicyBot: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop all components in reverse order"""
        logger.info("Shutting down PolicyBot...")
        self.client.off_event(ROOM_REACTION, self.on_reaction)
        self.client.off_event(ROOM_MESSAGE, self.on_message)
        self.client.off_event(ROOM_JOIN, self.on_join)

        await self.tasks.drain()
        await self.rate_limiter.stop()
        await self.kv.close()
        self._running = False
        logger.info("✅ PolicyBot stopped")

    # ========================================================================
    # Event callbacks
    # ========================================================================

    async def on_join(self, event: JoinEvent) -> None:
        try:
            await self.workflow.welcome(event.room_id)
        except Exception as e:
            logger.error(f"Failed to welcome {event.room_id}: {e}", exc_info=True)

    async def on_message(self, event: MessageEvent) -> None:
        try:
            await self.dispatcher.handle_message(event)
        except Exception as e:
            ref = new_correlation_token()
            logger.error(
                f"REF:{ref} failed to handle message {event.event_id} "
                f"from {event.sender}: {e}",
                exc_info=True,
            )

    async def on_reaction(self, event: ReactionEvent) -> None:
        try:
            await self.workflow.handle_vote(event)
        except Exception as e:
            ref = new_correlation_token()
            logger.error(
                f"REF:{ref} failed to process reaction {event.key} on {event.relates_to} "
                f"from {event.sender}: {e}",
                exc_info=True,
            )


def _ensure_parent_dir(database_url: str) -> None:
    """Create the directory holding a SQLite file path, if it is one."""
    if "://" in database_url or database_url == ":memory:":
        return
    Path(database_url).parent.mkdir(parents=True, exist_ok=True)
