"""Conversation lifetime, messaging and expiry.

Conversations live for a fixed initial period that participants may
extend near the end, up to a hard maximum fixed when the conversation is
first opened. Expired conversations are hard-deleted by the sweeper
together with their messages and notifications.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studymate.core.settings import settings
from studymate.db.time import as_utc
from studymate.models.conversation import (
    CONVERSATION_TYPE_POST,
    CONVERSATION_TYPES,
    FLAG_ARCHIVED,
    FLAG_DELETED,
    FLAG_PINNED,
    Conversation,
    build_participants_key,
)
from studymate.models.message import Message
from studymate.repositories import (
    ConversationRepository,
    NotificationRepository,
    PostRepository,
    UserRepository,
)
from studymate.services import lifecycle_policy as policy
from studymate.services.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

STATUS_ACTIVE = "active"
STATUS_ARCHIVED = "archived"

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class ConversationSummary:
    """A conversation as listed for one of its participants."""

    conversation: Conversation
    other_participant_id: int
    last_message: Message | None
    unread_count: int
    pinned: bool


@dataclass
class MessagePage:
    """One page of messages plus the cursor for the next page."""

    messages: list[Message]
    next_cursor: datetime | None


def parse_cursor(after: datetime | str | None) -> datetime | None:
    """Return the cursor as an aware UTC datetime.

    Raises:
        ValidationError: If a string cursor is not an ISO-8601 timestamp.
    """
    if after is None or after == "":
        return None
    if isinstance(after, datetime):
        return as_utc(after)
    try:
        return as_utc(datetime.fromisoformat(after))
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid cursor") from exc


class ConversationService:
    """Creates conversations, carries messages and ages conversations out."""

    def __init__(self, db: Session) -> None:
        """Initialize the service on a database session."""
        self.db = db
        self.conversations = ConversationRepository(db)
        self.notifications = NotificationRepository(db)
        self.posts = PostRepository(db)
        self.users = UserRepository(db)

    def _load_for_participant(self, conversation_id: int, user_id: int) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if not conversation.has_participant(user_id):
            raise ForbiddenError("Not authorized to access this conversation")
        return conversation

    def _ensure_lifetime(self, conversation: Conversation, now: datetime) -> None:
        if policy.ensure_lifetime(conversation, now):
            self.db.commit()

    # --- Creation and lifetime ----------------------------------------------------

    def create_or_get_conversation(
        self,
        user_id: int,
        other_user_id: int,
        type_: str,
        now: datetime,
        *,
        post_id: int | None = None,
    ) -> Conversation:
        """Return the conversation between two users, creating it on first contact.

        Raises:
            ValidationError: For an unknown type, a self-conversation or a
                post conversation without a post.
            NotFoundError: If the other user or the post does not exist.
        """
        if type_ not in CONVERSATION_TYPES:
            raise ValidationError("Invalid conversation type")
        if other_user_id == user_id:
            raise ValidationError("Cannot start a conversation with yourself")
        if self.users.get(other_user_id) is None:
            raise NotFoundError("User not found")
        if type_ == CONVERSATION_TYPE_POST:
            if post_id is None:
                raise ValidationError("post_id is required for post conversations")
            if self.posts.get(post_id) is None:
                raise NotFoundError("Post not found")
        else:
            post_id = None

        participants_key = build_participants_key(user_id, other_user_id)
        conversation = self.conversations.find_pair(type_, participants_key, post_id)
        if conversation is not None:
            self._ensure_lifetime(conversation, now)
            return conversation

        first, second = sorted((user_id, other_user_id), key=str)
        conversation = Conversation(
            type=type_,
            participant_a_id=first,
            participant_b_id=second,
            participants_key=participants_key,
            post_id=post_id,
            last_message_at=None,
        )
        policy.ensure_lifetime(conversation, now)
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a creation race against the other participant.
            self.db.rollback()
            existing = self.conversations.find_pair(type_, participants_key, post_id)
            if existing is None:
                raise
            return existing
        logger.info("Opened %s conversation %s", type_, conversation.id)
        return conversation

    def ensure_conversation_lifetime(
        self, conversation_id: int, user_id: int, now: datetime
    ) -> Conversation:
        """Back-fill and return a conversation's lifetime fields."""
        conversation = self._load_for_participant(conversation_id, user_id)
        self._ensure_lifetime(conversation, now)
        return conversation

    def extend_conversation(
        self, conversation_id: int, user_id: int, now: datetime
    ) -> Conversation:
        """Extend a conversation that is close to expiring.

        Raises:
            NotFoundError: If the conversation does not exist.
            ForbiddenError: If ``user_id`` is not a participant.
            InvalidStateError: Outside the extension window, or once the
                maximum lifetime has been reached.
        """
        conversation = self._load_for_participant(conversation_id, user_id)
        outcome = policy.extend(conversation, now)
        if outcome is not policy.ExtensionOutcome.EXTENDED:
            # Persist any lifetime back-fill done by extend().
            self.db.commit()
        if outcome is policy.ExtensionOutcome.OUTSIDE_WINDOW:
            raise InvalidStateError("Extension is only available during the last 2 days.")
        if outcome is policy.ExtensionOutcome.AT_MAXIMUM:
            raise InvalidStateError("Maximum conversation lifetime reached.")

        self.db.commit()
        logger.info("Extended conversation %s to %s", conversation_id, conversation.expires_at)
        return conversation

    # --- Listing and per-user flags -------------------------------------------

    def list_conversations(
        self, user_id: int, now: datetime, status: str = STATUS_ACTIVE
    ) -> list[ConversationSummary]:
        """Return the user's active or archived conversations, newest first."""
        if status not in (STATUS_ACTIVE, STATUS_ARCHIVED):
            raise ValidationError("Invalid status filter")

        conversations = self.conversations.list_for_user(
            user_id, archived=status == STATUS_ARCHIVED
        )
        changed = False
        for conversation in conversations:
            changed = policy.ensure_lifetime(conversation, now) or changed
        if changed:
            self.db.commit()

        return [
            ConversationSummary(
                conversation=conversation,
                other_participant_id=conversation.other_participant(user_id),
                last_message=self.conversations.last_message(conversation.id),
                unread_count=self.conversations.unread_count(conversation.id, user_id),
                pinned=user_id in conversation.flagged_by(FLAG_PINNED),
            )
            for conversation in conversations
        ]

    def archive(self, conversation_id: int, user_id: int) -> None:
        """Hide a conversation from the user's active list."""
        self._set_flag(conversation_id, user_id, FLAG_ARCHIVED, True)

    def unarchive(self, conversation_id: int, user_id: int) -> None:
        """Return an archived conversation to the user's active list."""
        self._set_flag(conversation_id, user_id, FLAG_ARCHIVED, False)

    def pin(self, conversation_id: int, user_id: int) -> None:
        """Pin a conversation for the user."""
        self._set_flag(conversation_id, user_id, FLAG_PINNED, True)

    def unpin(self, conversation_id: int, user_id: int) -> None:
        """Unpin a conversation for the user."""
        self._set_flag(conversation_id, user_id, FLAG_PINNED, False)

    def delete_for_me(self, conversation_id: int, user_id: int) -> None:
        """Hide a conversation from every list of the user; also un-archives it."""
        self._load_for_participant(conversation_id, user_id)
        self.conversations.add_flag(conversation_id, user_id, FLAG_DELETED)
        self.conversations.remove_flag(conversation_id, user_id, FLAG_ARCHIVED)
        self.db.commit()

    def _set_flag(self, conversation_id: int, user_id: int, flag: str, present: bool) -> None:
        self._load_for_participant(conversation_id, user_id)
        if present:
            self.conversations.add_flag(conversation_id, user_id, flag)
        else:
            self.conversations.remove_flag(conversation_id, user_id, flag)
        self.db.commit()

    # --- Messages ---------------------------------------------------------------

    def send_message(
        self, conversation_id: int, sender_id: int, text: str | None, now: datetime
    ) -> Message:
        """Append a message from ``sender_id`` to the conversation.

        Raises:
            ValidationError: If the text is empty or too long.
        """
        body = (text or "").strip()
        if not body:
            raise ValidationError("Message text is required")
        if len(body) > settings.message_max_length:
            raise ValidationError("Message text is too long")

        conversation = self._load_for_participant(conversation_id, sender_id)
        policy.ensure_lifetime(conversation, now)

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            text=body,
            created_at=now,
        )
        self.db.add(message)
        conversation.last_message_at = now
        self.db.commit()
        return message

    def get_messages(
        self,
        conversation_id: int,
        user_id: int,
        now: datetime,
        *,
        after: datetime | str | None = None,
        limit: int | None = None,
    ) -> MessagePage:
        """Return a page of messages and mark the other side's messages delivered.

        Without a cursor the newest page is returned; with one, the messages
        following it. Both are in ascending order.
        """
        cursor = parse_cursor(after)
        conversation = self._load_for_participant(conversation_id, user_id)
        policy.ensure_lifetime(conversation, now)

        page_size = settings.message_page_default if limit is None else int(limit)
        page_size = max(1, min(page_size, settings.message_page_max))

        if cursor is not None:
            messages = self.conversations.messages_after(conversation.id, cursor, page_size)
        else:
            messages = self.conversations.latest_messages(conversation.id, page_size)

        self.conversations.mark_delivered(conversation.id, user_id, now)
        self.db.commit()

        next_cursor = as_utc(messages[-1].created_at) if messages else None
        return MessagePage(messages=messages, next_cursor=next_cursor)

    def mark_read(self, conversation_id: int, user_id: int, now: datetime) -> int:
        """Mark the other participant's unread messages as read; returns how many."""
        conversation = self._load_for_participant(conversation_id, user_id)
        policy.ensure_lifetime(conversation, now)
        updated = self.conversations.mark_read(conversation.id, user_id, now)
        self.db.commit()
        return updated

    # --- Expiry -----------------------------------------------------------------

    def sweep_expired(self, now: datetime) -> int:
        """Hard-delete every expired conversation; returns how many were removed.

        Each conversation is removed in its own transaction, children first.
        A failure is logged and the sweep continues with the next one.
        """
        removed = 0
        for conversation_id in self.conversations.list_expired_ids(now):
            try:
                self.conversations.delete_messages(conversation_id)
                self.notifications.delete_by_conversation(conversation_id)
                if self.conversations.delete(conversation_id):
                    removed += 1
                self.db.commit()
            except Exception:
                self.db.rollback()
                logger.exception("Failed to delete expired conversation %s", conversation_id)
        self.db.commit()
        if removed:
            logger.info("Deleted %d expired conversations", removed)
        return removed
