"""
Community application workflow.

Drives a room from "unassociated" to "protected by the community's
policy", with a human safety team as the approval gate:

    Unlinked --create_community--> Linked
    Linked   --apply-------------> ApplicationPending (per target room)
    ApplicationPending --vote----> Resolved(Approved) | Resolved(Denied)

Application records are never removed. A room that has applied once
cannot apply again, even after a denial, until an operator edits the
store. Votes are processed at least once: a reviewer may approve after
denying (or approve twice) to correct a mistake, and each vote repeats
its side effects. Set ``allow_repeat_resolution=False`` to ignore votes
on prompts that have already been resolved.
"""

import html
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..connection import (
    EventNotFoundError,
    MessagingClient,
    ReactionEvent,
    is_permalink,
    parse_permalink,
)
from ..core.tasks import BackgroundTasks
from ..errors import (
    AlreadyProtectedError,
    DuplicateLinkError,
    NotLinkedError,
    PolicyBackendError,
    PublicAdminRoomError,
    RoomNotPublicError,
    ValidationError,
    new_correlation_token,
)
from ..formatting import html_to_text
from ..policyserv import Community, PolicyservClient
from ..storage import CommunityStore

logger = logging.getLogger(__name__)

APPROVE_KEY = "✅"
DENY_KEY = "❌"
APPROVED_MARKER = "🚀"
DENIED_MARKER = "🙈"

METADATA_KEY = "org.matrix.policyserv"
POLICY_EVENT_TYPE = "org.matrix.msc4284.policy"
JOIN_RULES_EVENT_TYPE = "m.room.join_rules"

DEFAULT_APPEAL_DIRECTIONS = "To appeal this decision, please email abuse@matrix.org"

WELCOME_HTML = (
    "Hello! To get started using policyserv, say "
    "<code>!policyserv community &lt;community name&gt;</code>. "
    "For more information, say <code>!policyserv help</code>."
)


def _find_state(state: List[Dict[str, Any]], event_type: str) -> Dict[str, Any]:
    """Content of the empty-state-key event of ``event_type``, or {}."""
    for event in state:
        if event.get("type") == event_type and event.get("state_key") == "":
            return event.get("content") or {}
    return {}


class ApplicationWorkflow:
    """
    Community creation, room applications and safety-team votes.

    All state lives in the injected CommunityStore; backend mutations go
    through the injected PolicyservClient.
    """

    def __init__(
        self,
        client: MessagingClient,
        policyserv: PolicyservClient,
        store: CommunityStore,
        tasks: BackgroundTasks,
        safety_team_room_id: str,
        policy_server_name: str,
        appeal_directions: str = DEFAULT_APPEAL_DIRECTIONS,
        fallback_via: str = "matrix.org",
        allow_repeat_resolution: bool = True,
    ):
        """
        Initialize the workflow.

        Args:
            client: Chat transport
            policyserv: Policy backend client
            store: Owner of room links and application records
            tasks: Runner for best-effort follow-up work
            safety_team_room_id: Room where review prompts are posted
            policy_server_name: Server name written into approved rooms
            appeal_directions: Appended to denial notices
            fallback_via: Routing hint always tried when joining a room
            allow_repeat_resolution: Process votes on already-resolved prompts
        """
        self.client = client
        self.policyserv = policyserv
        self.store = store
        self.tasks = tasks
        self.safety_team_room_id = safety_team_room_id
        self.policy_server_name = policy_server_name
        self.appeal_directions = appeal_directions
        self.fallback_via = fallback_via
        self.allow_repeat_resolution = allow_repeat_resolution

    # ========================================================================
    # Room inspection
    # ========================================================================

    async def _is_public(self, room_id: str) -> bool:
        try:
            content = await self.client.get_state_event(room_id, JOIN_RULES_EVENT_TYPE, "")
        except EventNotFoundError:
            return False
        return content.get("join_rule") == "public"

    async def welcome(self, room_id: str) -> None:
        """Greet a newly joined room, unless it is public."""
        logger.info(f"Joined {room_id}")
        if await self._is_public(room_id):
            return
        await self.client.send_notice(room_id, html_to_text(WELCOME_HTML), WELCOME_HTML)

    async def require_community(self, admin_room_id: str) -> str:
        """
        Community linked to an admin room.

        Raises:
            NotLinkedError: If the room has no community
        """
        community_id = await self.store.get_community_id(admin_room_id)
        if not community_id:
            raise NotLinkedError(f"{admin_room_id} is not associated with a community")
        return community_id

    # ========================================================================
    # Unlinked -> Linked
    # ========================================================================

    async def check_can_create(self, admin_room_id: str, name: str) -> str:
        """
        Validate a community-creation request without side effects.

        Returns:
            The trimmed community name

        Raises:
            DuplicateLinkError: If the room is already linked
            ValidationError: If no name was given
        """
        if await self.store.get_community_id(admin_room_id):
            raise DuplicateLinkError(f"{admin_room_id} is already associated with a community")
        name = name.strip()
        if not name:
            raise ValidationError("A community name is required")
        return name

    async def create_community(self, admin_room_id: str, name: str, sender: str) -> Community:
        """
        Create a community administered from ``admin_room_id``.

        Raises:
            DuplicateLinkError: If the room is already linked
            ValidationError: If no name was given
            PublicAdminRoomError: If the admin room is publicly joinable
            PolicyBackendError: If policyserv rejects the request
        """
        name = await self.check_can_create(admin_room_id, name)
        if await self._is_public(admin_room_id):
            raise PublicAdminRoomError("Public rooms cannot manage a community")

        community = await self.policyserv.create_community(name)
        await self.store.link_room(admin_room_id, community.community_id)

        self.tasks.spawn(
            self.client.send_notice(
                self.safety_team_room_id,
                f"A new community has been created by {sender}: {name} "
                f"({community.community_id} | {admin_room_id}).",
                f"A new community has been created by <code>{html.escape(sender)}</code>: "
                f"<code>{html.escape(name)}</code> (<code>{html.escape(community.community_id)}</code> "
                f"| <code>{html.escape(admin_room_id)}</code>).",
            ),
            "announce new community",
        )
        return community

    # ========================================================================
    # Linked -> ApplicationPending
    # ========================================================================

    def _resolve_reference(self, target: str, extra_via: Sequence[str]):
        if is_permalink(target):
            try:
                return parse_permalink(target)
            except ValueError as e:
                raise ValidationError(str(e)) from e
        return target, list(extra_via)

    async def apply(
        self,
        admin_room_id: str,
        target: str,
        sender: str,
        extra_via: Sequence[str] = (),
    ) -> str:
        """
        Submit a room for safety-team review.

        Preconditions are checked in order and the first failure wins:
        linked admin room, resolvable reference, successful join, public
        join rule, and neither registered nor already applied.

        Args:
            admin_room_id: Room the request came from
            target: Room ID, alias or permalink
            sender: Requesting user
            extra_via: Routing hints given after a bare room reference

        Returns:
            The target room ID

        Raises:
            NotLinkedError, ValidationError, JoinError, RoomNotPublicError,
            AlreadyProtectedError, PolicyBackendError
        """
        community_id = await self.require_community(admin_room_id)

        room_ref, via = self._resolve_reference(target, extra_via)
        room_id = await self.client.resolve_room(room_ref)
        room_id = await self.client.join_room(room_id, [self.fallback_via, *via])

        state = await self.client.get_room_state(room_id)
        if _find_state(state, JOIN_RULES_EVENT_TYPE).get("join_rule") != "public":
            raise RoomNotPublicError(f"{room_id} is not public")

        if await self.policyserv.get_room(room_id) is not None or await self.store.has_application(room_id):
            raise AlreadyProtectedError(f"{room_id} is already protected or has a pending application")

        community = await self.policyserv.get_community(community_id)
        if community is None:
            raise PolicyBackendError(f"Community {community_id} not found", status_code=404)

        room_name = _find_state(state, "m.room.name").get("name") or "__UNNAMED ROOM__"
        room_topic = _find_state(state, "m.room.topic").get("topic") or "__NO TOPIC__"

        prompt_id = await self.client.send_message(
            self.safety_team_room_id,
            self._review_prompt(sender, room_id, community, admin_room_id, room_name, room_topic),
        )
        await self.client.react(self.safety_team_room_id, prompt_id, APPROVE_KEY)
        await self.client.react(self.safety_team_room_id, prompt_id, DENY_KEY)
        await self.store.record_application(room_id, community_id)

        logger.info(f"Application {prompt_id}: {room_id} -> community {community_id}")
        return room_id

    def _review_prompt(
        self,
        sender: str,
        room_id: str,
        community: Community,
        admin_room_id: str,
        room_name: str,
        room_topic: str,
    ) -> Dict[str, Any]:
        e = html.escape
        return {
            "msgtype": "m.notice",
            "body": (
                f"A new application has been submitted by `{sender}` for the room `{room_id}` "
                f"to join the community \"{community.name}\" (`{community.community_id}`). "
                f"React with {APPROVE_KEY} to approve and {DENY_KEY} to deny.\n\n"
                f"Details:\n* Name: {room_name}\n* Topic: {room_topic}"
            ),
            "format": "org.matrix.custom.html",
            "formatted_body": (
                f"A new application has been submitted by <code>{e(sender)}</code> for the room "
                f"<code>{e(room_id)}</code> to join the community \"{e(community.name)}\" "
                f"(<code>{e(community.community_id)}</code>). "
                f"React with {APPROVE_KEY} to approve and {DENY_KEY} to deny.<br/><br/>"
                f"Details:<ul><li>Name: {e(room_name)}</li><li>Topic: {e(room_topic)}</li></ul>"
            ),
            METADATA_KEY: {
                "community_id": community.community_id,
                "community_room_id": admin_room_id,
                "room_id": room_id,
            },
        }

    # ========================================================================
    # ApplicationPending -> Resolved
    # ========================================================================

    async def handle_vote(self, event: ReactionEvent) -> Optional[bool]:
        """
        Resolve an application from a safety-team reaction.

        Returns:
            True if approved, False if denied, None if the reaction was ignored
        """
        if event.room_id != self.safety_team_room_id:
            return None
        if event.key not in (APPROVE_KEY, DENY_KEY):
            return None
        if event.sender == await self.client.get_user_id():
            return None

        try:
            prompt = await self.client.get_event(event.room_id, event.relates_to)
        except EventNotFoundError:
            logger.debug(f"Vote on unknown event {event.relates_to}, ignoring")
            return None
        data = (prompt.get("content") or {}).get(METADATA_KEY)
        if not data:
            return None

        if not self.allow_repeat_resolution:
            previous = await self.store.get_resolution(event.relates_to)
            if previous:
                logger.info(f"Application {event.relates_to} already {previous}, ignoring vote")
                return None

        approved = event.key == APPROVE_KEY
        logger.info(
            f"Application {event.relates_to} for {data.get('room_id')} "
            f"{'approved' if approved else 'denied'} by {event.sender}"
        )
        if approved:
            await self._approve(data)
        else:
            await self._deny(data)
        await self.store.record_resolution(event.relates_to, approved)

        self.tasks.spawn(
            self.client.react(
                event.room_id,
                event.relates_to,
                APPROVED_MARKER if approved else DENIED_MARKER,
            ),
            "mark application resolved",
        )
        return approved

    async def _deny(self, data: Dict[str, Any]) -> None:
        room = html.escape(data["room_id"])
        await self._report(
            data["community_room_id"],
            f"The application for the room {data['room_id']} to join this community "
            f"has been denied. {self.appeal_directions}",
            f"The application for the room <code>{room}</code> to join this community "
            f"has been <b>denied</b>. {html.escape(self.appeal_directions)}",
        )

    async def _approve(self, data: Dict[str, Any]) -> None:
        room_id = data["room_id"]
        admin_room_id = data["community_room_id"]
        room = html.escape(room_id)

        # The two side effects are independent: report each failure and carry on.
        try:
            await self.client.send_state_event(
                room_id, POLICY_EVENT_TYPE, "", {"via": self.policy_server_name}
            )
        except Exception as e:
            logger.error(f"Failed to set policy server in {room_id}: {e}", exc_info=True)
            await self._report(
                admin_room_id,
                f"⚠️ The bot was unable to set the policy server configuration in {room_id}. "
                f"It will have to be done manually. The server name for this room should be "
                f"{self.policy_server_name}",
                f"⚠️ The bot was unable to set the policy server configuration in "
                f"<code>{room}</code>. It will have to be done manually. The server name for "
                f"this room should be <code>{html.escape(self.policy_server_name)}</code>",
            )

        try:
            await self.policyserv.add_room(room_id, data["community_id"])
        except Exception as e:
            ref = new_correlation_token()
            logger.error(f"REF:{ref} failed to add {room_id} to policyserv: {e}", exc_info=True)
            await self._report(
                self.safety_team_room_id,
                f"There was an error while trying to approve the application for the room "
                f"{room_id} to join the community. Search the logs for {ref} to see the error.",
                f"There was an error while trying to approve the application for the room "
                f"<code>{room}</code> to join the community. Search the logs for "
                f"<code>{ref}</code> to see the error.",
            )
            return

        await self._report(
            admin_room_id,
            f"The application for the room {room_id} to join this community has been "
            f"approved! The room will now be protected by policyserv.",
            f"The application for the room <code>{room}</code> to join this community has "
            f"been <b>approved</b>! The room will now be protected by policyserv.",
        )

    async def _report(self, room_id: str, text: str, html_body: str) -> None:
        try:
            await self.client.send_notice(room_id, text, html_body)
        except Exception as e:
            logger.error(f"Failed to send notice to {room_id}: {e}", exc_info=True)
