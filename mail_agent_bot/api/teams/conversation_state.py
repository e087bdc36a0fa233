"""
Conversation state management for Teams Bot.

Holds the in-memory record of exchanges paused on OAuth consent and the
classification of inbound Teams messages into the relay's branches.
"""
import logging
import re
import time
import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from botbuilder.schema import Activity

logger = logging.getLogger(__name__)

RETRY_KEYWORD = "retry"


@dataclass
class PendingAuthorization:
    """A remote exchange paused until the user completes OAuth consent."""
    conversation_key: str  # "{channel_id}:{user_id}"
    remote_conversation_id: str
    original_message_text: str
    created_at_timestamp: int  # epoch milliseconds


class PendingAuthorizationStore:
    """
    In-memory map of paused OAuth exchanges, one entry per conversation key.

    Owned by the app lifespan: created at startup, swept for expired entries
    while running and cleared at shutdown. Writes are last-write-wins with no
    locking; the event loop and per-user message ordering keep writers apart.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.time):
        """
        Args:
            ttl_seconds: Entries older than this are treated as absent (None/0 = never expire)
            clock: Time source returning epoch seconds
        """
        self.ttl_seconds = ttl_seconds or None
        self._clock = clock
        self._entries: Dict[str, PendingAuthorization] = {}

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_expired(self, entry: PendingAuthorization) -> bool:
        if self.ttl_seconds is None:
            return False
        return self.now_ms() - entry.created_at_timestamp > self.ttl_seconds * 1000

    def set(self, entry: PendingAuthorization) -> None:
        if entry.conversation_key in self._entries:
            logger.info(f"Overwriting pending authorization for key: {entry.conversation_key}")
        self._entries[entry.conversation_key] = entry

    def get(self, conversation_key: str) -> Optional[PendingAuthorization]:
        entry = self._entries.get(conversation_key)
        if entry is not None and self._is_expired(entry):
            return None
        return entry

    def pop(self, conversation_key: str) -> Optional[PendingAuthorization]:
        """Read and delete the entry for a key; absent keys return None."""
        entry = self._entries.pop(conversation_key, None)
        if entry is not None and self._is_expired(entry):
            logger.info(f"Discarded expired pending authorization for key: {conversation_key}")
            return None
        return entry

    def evict_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        if self.ttl_seconds is None:
            return 0
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Evicted {len(expired)} expired pending authorization(s)")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, conversation_key: str) -> bool:
        return self.get(conversation_key) is not None

    def __len__(self) -> int:
        """Number of live (unexpired) entries."""
        return sum(1 for entry in self._entries.values() if not self._is_expired(entry))


# Inbound message variants, decided once per activity
@dataclass(frozen=True)
class ApprovalSubmission:
    """Approve/deny click on an approval card."""
    action: str
    request_id: str
    conversation_id: str

    @property
    def approved(self) -> bool:
        return self.action == "approve"


@dataclass(frozen=True)
class RetryKeyword:
    """User sent 'retry' while an OAuth exchange is pending."""
    conversation_key: str


@dataclass(frozen=True)
class TextMessage:
    """Any other text message, forwarded to the agent."""
    text: str


@dataclass(frozen=True)
class EmptyMessage:
    """No text and no card submission."""


InboundMessage = Union[ApprovalSubmission, RetryKeyword, TextMessage, EmptyMessage]


def remove_mention_text(text: Optional[str]) -> str:
    """
    Remove bot mention entities from message text.

    Teams includes mentions as <at>BotName</at> in the text.
    """
    if not text:
        return ""
    cleaned = re.sub(r'<at>.*?</at>', '', text, flags=re.IGNORECASE)
    return ' '.join(cleaned.split()).strip()


def normalize_command_text(text: Optional[str]) -> str:
    """Normalize Teams message text for reliable keyword matching."""
    if not text:
        return ""

    # Smart quotes, full-width variants
    normalized = unicodedata.normalize("NFKC", text)

    # Zero-width and formatting characters show up in Teams input
    normalized = "".join(ch for ch in normalized if unicodedata.category(ch) != "Cf")
    normalized = normalized.replace("\u00A0", " ")
    normalized = " ".join(normalized.split())

    return normalized.strip().lower()


def conversation_key_for(activity: Activity) -> str:
    """Correlation key for paused exchanges: channel plus sender."""
    user_id = activity.from_property.id if activity.from_property else ""
    return f"{activity.channel_id}:{user_id}"


def extract_submission_data(value: Any) -> Dict[str, Any]:
    """
    Flatten an Adaptive Card submission payload.

    Teams may wrap action data in msteams.value; root-level form fields
    override the wrapped metadata when keys collide.
    """
    if not isinstance(value, dict):
        return {}

    action_metadata: Dict[str, Any] = {}
    msteams = value.get("msteams")
    if isinstance(msteams, dict) and isinstance(msteams.get("value"), dict):
        action_metadata = msteams["value"]

    form_data = {k: v for k, v in value.items() if k != "msteams"}
    return {**action_metadata, **form_data}


def classify_inbound(activity: Activity, has_pending: Callable[[str], bool]) -> InboundMessage:
    """
    Decide which relay branch an inbound message activity belongs to.

    Priority: approval submission, then 'retry' with a pending OAuth exchange,
    then plain text, then empty.
    """
    submission = extract_submission_data(activity.value)
    if submission.get("action") and submission.get("requestId"):
        return ApprovalSubmission(
            action=str(submission["action"]),
            request_id=str(submission["requestId"]),
            conversation_id=str(submission.get("conversationId") or ""),
        )

    text = remove_mention_text(activity.text)
    if not text:
        return EmptyMessage()

    conversation_key = conversation_key_for(activity)
    if normalize_command_text(text) == RETRY_KEYWORD and has_pending(conversation_key):
        return RetryKeyword(conversation_key=conversation_key)

    return TextMessage(text=text)
