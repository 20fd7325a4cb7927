"""Pull-on-interval forum feed.

Every fetch is stamped with a sequence number when it is issued. A response
is applied only if its number is newer than the last applied one, so a slow
request finishing after a faster, later one never rolls the feed back.
"""

import logging
import threading
from typing import Callable, Optional

from ratemyeagle.api_client import ApiClientError, RatingsApiClient
from ratemyeagle.config import get_settings
from ratemyeagle.session import SessionManager

logger = logging.getLogger(__name__)


class ForumFeed:
    """In-memory message list with a response-ordering guard."""

    def __init__(self):
        self._lock = threading.Lock()
        self._issued = 0
        self._applied = 0
        self._messages: list[dict] = []
        # locally posted messages, keyed by id, with the last sequence issued before the post
        self._local: dict[str, tuple[int, dict]] = {}

    def next_sequence(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def apply(self, sequence: int, messages: list[dict]) -> bool:
        """Replace the list with ``messages`` unless a newer response is already applied.

        Messages posted locally after this fetch was issued are kept on top.
        """
        with self._lock:
            if sequence <= self._applied:
                logger.debug("Dropping stale forum response %d (applied %d)", sequence, self._applied)
                return False
            self._applied = sequence
            self._local = {k: v for k, v in self._local.items() if v[0] >= sequence}
            merged = list(messages)
            seen = {m.get("id") for m in merged}
            for _, message in self._local.values():
                if message.get("id") not in seen:
                    merged.append(message)
            self._messages = merged
            return True

    def append(self, message: dict):
        with self._lock:
            self._local[message.get("id")] = (self._issued, message)
            if not any(m.get("id") == message.get("id") for m in self._messages):
                self._messages.append(message)

    @property
    def messages(self) -> list[dict]:
        with self._lock:
            return list(self._messages)


class ForumPoller:
    """Refreshes a ForumFeed on a background thread until stopped."""

    def __init__(self, client: RatingsApiClient, session: Optional[SessionManager] = None,
                 interval: Optional[float] = None, feed: Optional[ForumFeed] = None,
                 on_update: Optional[Callable[[list[dict]], None]] = None):
        self.client = client
        self.session = session
        self.interval = interval if interval is not None else get_settings().forum_poll_interval
        self.feed = feed or ForumFeed()
        self.on_update = on_update
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _token(self) -> Optional[str]:
        return self.session.access_token if self.session else None

    def poll_once(self) -> bool:
        """Fetch messages once; returns True when the feed was updated."""
        sequence = self.feed.next_sequence()
        try:
            messages = self.client.fetch_forum_messages(self._token())
        except ApiClientError as exc:
            logger.warning("Failed to fetch forum messages: %s", exc)
            return False
        applied = self.feed.apply(sequence, messages)
        if applied and self.on_update:
            self.on_update(self.feed.messages)
        return applied

    def send(self, content: str) -> dict:
        """Post a message as the signed-in user and show it immediately."""
        token = self._token()
        if not token:
            raise ApiClientError("You must be signed in to post", status_code=401)
        text = content.strip()
        if not text:
            raise ApiClientError("Message cannot be empty", status_code=400)
        message = self.client.post_forum_message(text, token)
        self.feed.append(message)
        if self.on_update:
            self.on_update(self.feed.messages)
        return message

    def _run(self):
        while True:
            self.poll_once()
            if self._stop.wait(self.interval):
                break

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="forum-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
