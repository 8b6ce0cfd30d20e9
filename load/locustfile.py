"""
Locust load script for the support chat API.

Simulates a widget user polling their support conversation:
- Open (or re-open) the maintainer thread on start (/api/v1/chat/maintainer-thread)
- Refresh the thread list for unread badges (/api/v1/chat/threads)
- Poll the open thread's messages
- Occasionally send a message

Identity is passed with X-User-Id / X-User-Name headers; there is no login.

Configure with env vars or Locust UI:
- HOST: pass via `--host http://localhost:8000`
- CHAT_USER_PREFIX: prefix for generated user ids (default "load-user")
- CHAT_USER_POOL: number of distinct simulated users (default 200)
- CHAT_SEND_WEIGHT: relative weight of the send task (default 1)

Run:
  locust -f load/locustfile.py --host http://localhost:8000
"""

from __future__ import annotations

import logging
import os
import random
import time
from typing import Dict, Optional

from locust import HttpUser, between, events, task


# --- Config -------------------------------------------------------------------

USER_PREFIX = os.getenv("CHAT_USER_PREFIX", "load-user").strip() or "load-user"
USER_POOL = max(1, int(os.getenv("CHAT_USER_POOL", "200") or 200))
SEND_WEIGHT = max(0, int(os.getenv("CHAT_SEND_WEIGHT", "1") or 1))

SAMPLE_LINES = [
    "Hi, I have a question about my order",
    "Is anyone there?",
    "Thanks!",
    "Can you check the attached plan?",
    "When will the report be ready?",
]


# --- Helpers ------------------------------------------------------------------

def _safe_json(resp) -> Dict:
    try:
        return resp.json()
    except ValueError:
        return {}


def _retry_after(resp, default: float = 1.0) -> float:
    raw = (resp.headers.get("Retry-After") or "").strip()
    return float(raw) if raw.isdigit() else default


# --- The User Model -----------------------------------------------------------

class ChatWidgetUser(HttpUser):
    wait_time = between(1, 3)

    user_id: str = ""
    thread_id: Optional[int] = None
    backoff_until: float = 0.0

    def on_start(self):
        n = random.randint(1, USER_POOL)
        self.user_id = f"{USER_PREFIX}-{n}"
        self.headers = {"X-User-Id": self.user_id, "X-User-Name": f"Load User {n}"}
        self._open_support_thread()

    # ---- session helpers ----

    def _backing_off(self) -> bool:
        return time.time() < self.backoff_until

    def _note_failure(self, resp) -> None:
        if resp.status_code == 503:
            self.backoff_until = time.time() + _retry_after(resp)

    def _open_support_thread(self) -> None:
        r = self.client.get(
            "/api/v1/chat/maintainer-thread",
            headers=self.headers,
            name="/chat/maintainer-thread",
        )
        if r.status_code != 200:
            self._note_failure(r)
            return
        data = _safe_json(r).get("data") or {}
        if data.get("id") is not None:
            self.thread_id = int(data["id"])

    # ---- tasks ----

    @task(6)
    def thread_list(self):
        if self._backing_off():
            return
        r = self.client.get("/api/v1/chat/threads", headers=self.headers, name="/chat/threads")
        if r.status_code != 200:
            self._note_failure(r)

    @task(9)
    def poll_messages(self):
        if self._backing_off():
            return
        if self.thread_id is None:
            self._open_support_thread()
            return
        r = self.client.get(
            f"/api/v1/chat/threads/{self.thread_id}/messages",
            headers=self.headers,
            name="/chat/threads/[id]/messages",
        )
        if r.status_code == 404:
            self.thread_id = None
        elif r.status_code != 200:
            self._note_failure(r)

    @task(SEND_WEIGHT)
    def send_message(self):
        if self._backing_off() or self.thread_id is None:
            return
        r = self.client.post(
            f"/api/v1/chat/threads/{self.thread_id}/messages",
            headers=self.headers,
            json={"content": random.choice(SAMPLE_LINES)},
            name="/chat/threads/[id]/messages [send]",
        )
        if r.status_code != 200:
            self._note_failure(r)


# --- Optional event hooks -----------------------------------------------------

@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    logging.getLogger("locust").info(f"Starting chat test with {USER_POOL} users ({USER_PREFIX}-*)")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    logging.getLogger("locust").info("Test finished")
