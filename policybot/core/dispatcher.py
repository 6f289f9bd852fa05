"""
Command dispatcher.

Routes recognized chat commands to the application workflow and the
community settings, and renders every outcome as a reply in the room
the command came from.

Commands:
    help                 - Show usage
    community <name...>  - Create a community managed from this room
    apply <room> [via..] - Apply a room to join the community
    config               - Show the community's configuration
    get <key>            - Show one configuration value
    set <key> <value...> - Change one configuration value

Everything except help and community requires the room to be linked to
a community already. Commands with side effects are acknowledged with
a reaction that is removed again when the command finishes.
"""

import html
import logging
from typing import Awaitable, Callable, Dict, Optional

from ..community import ApplicationWorkflow, CommunitySettings
from ..connection import MessageEvent, MessagingClient, MessagingError
from ..errors import (
    AlreadyProtectedError,
    DuplicateLinkError,
    InvalidValueError,
    NotLinkedError,
    PolicyBackendError,
    PublicAdminRoomError,
    RoomNotPublicError,
    UnknownConfigKeyError,
    ValidationError,
    new_correlation_token,
)
from ..formatting import html_to_text
from .commands import CommandParser, ParsedCommand
from .rate_limiter import RateLimiter
from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)

ACK_KEY = "👀"

MSG_GENERIC_FAILURE = "❌ There was an error processing your command. Please try again later."
MSG_RATE_LIMITED = "⏳ You're sending commands too quickly. Please wait a moment and try again."
MSG_UNKNOWN_COMMAND = "❌ Unknown command. Say <code>{prefix} help</code> for a list of available commands."
MSG_NOT_LINKED = (
    "❌ This room is not associated with a community. Create a community first with "
    "<code>{prefix} community &lt;community name&gt;</code>."
)
MSG_ALREADY_LINKED = "❌ This room is already associated with a community."
MSG_NAME_REQUIRED = "Please specify a community name."
MSG_PUBLIC_ADMIN_ROOM = "❌ This room is public and cannot be used as a community management room."
MSG_CREATE_FAILED = (
    "❌ Failed to create community. This could be because the name is too short or long, "
    "or because there is a temporary server error. Please try again later."
)
MSG_CREATED = (
    "✅ Community created! Anyone in this room will now be able to manage this community, "
    "including applying to add rooms and adjusting filters. To add your first room, say "
    "<code>{prefix} apply &lt;room ID or alias&gt;</code>."
)
MSG_ROOM_REQUIRED = "Please specify a room ID or alias."
MSG_BAD_ROOM_LINK = "❌ That doesn't look like a room link. Use a room ID, alias or matrix.to link."
MSG_NOT_PUBLIC = "❌ That room is not public and cannot be added to a community."
MSG_ALREADY_PROTECTED = "❌ That room is already protected by policyserv or has a pending application."
MSG_APPLY_FAILED = (
    "❌ Failed to submit application for the room to join the community. "
    "Ensure the bot can join and try again later."
)
MSG_APPLIED = (
    "An application has been submitted and will be reviewed by the safety team. You will be "
    "notified when the application is approved or denied. Please ensure this bot has permission "
    "to send state events in the room to make setup easier if approved."
)
MSG_UNKNOWN_KEY = (
    "❌ Unknown configuration key. Say <code>{prefix} config</code> for a list of available "
    "keys and their values."
)
MSG_INVALID_VALUE = "❌ <code>{value}</code> is not a valid value for <code>{key}</code>."
MSG_SAVE_FAILED = (
    "❌ There was an error saving your configuration. Please verify that the value is of the "
    "correct type or try again later."
)
MSG_SAVED = "✅ Configuration saved! It may take a few minutes for the changes to take effect."

HELP_HTML = (
    "This bot is used to manage a community's policyserv settings. <br/>"
    "All commands require a community to exist first. To do so, say "
    "<code>{prefix} community &lt;community name&gt;</code>.<br/>"
    "Afterwards, the following commands will be available:<br/><ul>"
    "<li><code>{prefix} apply &lt;room ID or alias&gt;</code> - Sends an application to the "
    "safety team to add the room to the community.</li>"
    "<li><code>{prefix} config</code> - Get the current configuration for the community.</li>"
    "<li><code>{prefix} get &lt;config key&gt;</code> - Get a specific configuration value.</li>"
    "<li><code>{prefix} set &lt;config key&gt; &lt;value&gt;</code> - Set a configuration value.</li>"
    "</ul>"
)

Handler = Callable[[MessageEvent, ParsedCommand], Awaitable[None]]
LinkedHandler = Callable[[MessageEvent, ParsedCommand, str], Awaitable[None]]


class CommandDispatcher:
    """
    Parses inbound messages and routes commands.

    Example:
        dispatcher = CommandDispatcher(client, workflow, settings, tasks)
        client.on_event(ROOM_MESSAGE, dispatcher.handle_message)
    """

    def __init__(
        self,
        client: MessagingClient,
        workflow: ApplicationWorkflow,
        settings: CommunitySettings,
        tasks: BackgroundTasks,
        parser: Optional[CommandParser] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.client = client
        self.workflow = workflow
        self.settings = settings
        self.tasks = tasks
        self.parser = parser or CommandParser()
        self.rate_limiter = rate_limiter

        # Commands that work in rooms without a community
        self._unlinked_handlers: Dict[str, Handler] = {
            "help": self._handle_help,
            "": self._handle_help,
            "community": self._handle_community,
        }
        self._linked_handlers: Dict[str, LinkedHandler] = {
            "apply": self._handle_apply,
            "config": self._handle_config,
            "get": self._handle_get,
            "set": self._handle_set,
        }

    @property
    def prefix(self) -> str:
        return self.parser.primary_prefix

    # ========================================================================
    # Entry point
    # ========================================================================

    async def handle_message(self, event: MessageEvent) -> None:
        """
        Handle one inbound message.

        Never raises: unexpected failures become a generic reply plus a
        log entry carrying a correlation token.
        """
        if event.msgtype != "m.text" or not event.body:
            return
        try:
            own_user_id = await self.client.get_user_id()
        except Exception as e:
            logger.error(f"Dropping message {event.event_id}: cannot determine own user id: {e}",
                         exc_info=True)
            return
        if event.sender == own_user_id:
            return

        command = self.parser.parse(event.body)
        if command is None:
            return

        if self.rate_limiter is not None and self.rate_limiter.is_limited(event.sender):
            if self.rate_limiter.is_egregious(event.sender):
                logger.warning(f"Dropping command from {event.sender}: egregiously rate limited")
                return
            logger.info(f"Rate limited command from {event.sender} in {event.room_id}")
            await self._safe_reply(event, MSG_RATE_LIMITED)
            return

        try:
            await self.dispatch(event, command)
        except Exception as e:
            ref = new_correlation_token()
            logger.error(
                f"REF:{ref} error handling {command.name!r} from {event.sender} "
                f"in {event.room_id}: {e}",
                exc_info=True,
            )
            await self._safe_reply(event, MSG_GENERIC_FAILURE)

    async def dispatch(self, event: MessageEvent, command: ParsedCommand) -> None:
        """
        Route a parsed command.

        Raises:
            Exception: Anything not converted into a user-facing reply
        """
        handler = self._unlinked_handlers.get(command.name)
        if handler is not None:
            await handler(event, command)
            return

        try:
            community_id = await self.workflow.require_community(event.room_id)
        except NotLinkedError:
            await self._reply(event, MSG_NOT_LINKED.format(prefix=self.prefix))
            return

        handler = self._linked_handlers.get(command.name)
        if handler is None:
            await self._reply(event, MSG_UNKNOWN_COMMAND.format(prefix=self.prefix))
            return
        await handler(event, command, community_id)

    # ========================================================================
    # Replies and acknowledgements
    # ========================================================================

    async def _reply(self, event: MessageEvent, html_body: str) -> None:
        await self.client.reply_notice(event.room_id, event.raw, html_to_text(html_body), html_body)

    async def _safe_reply(self, event: MessageEvent, html_body: str) -> None:
        try:
            await self._reply(event, html_body)
        except Exception as e:
            logger.error(f"Failed to reply in {event.room_id}: {e}", exc_info=True)

    async def _acknowledge(self, event: MessageEvent) -> str:
        return await self.client.react(event.room_id, event.event_id, ACK_KEY)

    def _unacknowledge(self, event: MessageEvent, ack_id: str) -> None:
        self.tasks.spawn(self.client.redact(event.room_id, ack_id), "remove acknowledgement")

    # ========================================================================
    # Handlers
    # ========================================================================

    async def _handle_help(self, event: MessageEvent, command: ParsedCommand) -> None:
        await self._reply(event, HELP_HTML.format(prefix=self.prefix))

    async def _handle_community(self, event: MessageEvent, command: ParsedCommand) -> None:
        try:
            name = await self.workflow.check_can_create(event.room_id, command.rest())
        except DuplicateLinkError:
            await self._reply(event, MSG_ALREADY_LINKED)
            return
        except ValidationError:
            await self._reply(event, MSG_NAME_REQUIRED)
            return

        ack_id = await self._acknowledge(event)
        try:
            await self.workflow.create_community(event.room_id, name, event.sender)
        except PublicAdminRoomError:
            await self._reply(event, MSG_PUBLIC_ADMIN_ROOM)
            return
        except DuplicateLinkError:
            await self._reply(event, MSG_ALREADY_LINKED)
            return
        except (PolicyBackendError, MessagingError) as e:
            ref = new_correlation_token()
            logger.error(f"REF:{ref} failed to create community {name!r}: {e}", exc_info=True)
            await self._reply(event, MSG_CREATE_FAILED)
            return
        finally:
            self._unacknowledge(event, ack_id)

        await self._reply(event, MSG_CREATED.format(prefix=self.prefix))

    async def _handle_apply(self, event: MessageEvent, command: ParsedCommand, community_id: str) -> None:
        target = command.arg(0)
        if not target:
            await self._reply(event, MSG_ROOM_REQUIRED)
            return

        ack_id = await self._acknowledge(event)
        try:
            await self.workflow.apply(event.room_id, target, event.sender, extra_via=command.args[1:])
        except RoomNotPublicError:
            await self._reply(event, MSG_NOT_PUBLIC)
            return
        except AlreadyProtectedError:
            await self._reply(event, MSG_ALREADY_PROTECTED)
            return
        except ValidationError:
            await self._reply(event, MSG_BAD_ROOM_LINK)
            return
        except (PolicyBackendError, MessagingError) as e:
            ref = new_correlation_token()
            logger.error(f"REF:{ref} failed to submit application for {target}: {e}", exc_info=True)
            await self._reply(event, MSG_APPLY_FAILED)
            return
        finally:
            self._unacknowledge(event, ack_id)

        await self._reply(event, MSG_APPLIED)

    async def _handle_config(self, event: MessageEvent, command: ParsedCommand, community_id: str) -> None:
        ack_id = await self._acknowledge(event)
        try:
            rendered = await self.settings.show(community_id)
        finally:
            self._unacknowledge(event, ack_id)
        await self._reply(event, rendered)

    async def _handle_get(self, event: MessageEvent, command: ParsedCommand, community_id: str) -> None:
        key = command.arg(0, "")
        if key not in self.settings.registry:
            await self._reply(event, MSG_UNKNOWN_KEY.format(prefix=self.prefix))
            return
        ack_id = await self._acknowledge(event)
        try:
            rendered = await self.settings.get(community_id, key)
        finally:
            self._unacknowledge(event, ack_id)
        await self._reply(event, rendered)

    async def _handle_set(self, event: MessageEvent, command: ParsedCommand, community_id: str) -> None:
        key = command.arg(0, "")
        if key not in self.settings.registry:
            await self._reply(event, MSG_UNKNOWN_KEY.format(prefix=self.prefix))
            return
        raw_value = command.rest(1)
        ack_id = await self._acknowledge(event)
        try:
            await self.settings.set(community_id, key, raw_value)
        except InvalidValueError as e:
            await self._reply(
                event,
                MSG_INVALID_VALUE.format(value=html.escape(e.raw_value), key=html.escape(e.key)),
            )
            return
        except UnknownConfigKeyError:
            await self._reply(event, MSG_UNKNOWN_KEY.format(prefix=self.prefix))
            return
        except PolicyBackendError as e:
            ref = new_correlation_token()
            logger.error(f"REF:{ref} failed to save {key} for {community_id}: {e}", exc_info=True)
            await self._reply(event, MSG_SAVE_FAILED)
            return
        finally:
            self._unacknowledge(event, ack_id)

        await self._reply(event, MSG_SAVED)
