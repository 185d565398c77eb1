from __future__ import annotations
import logging
from collections import Counter

logger = logging.getLogger("classroom.events")

EXERCISE_INVITATION_ACCEPT = "exercise_invitation.accept"
V2_EXERCISE_INVITATION_ACCEPT = "v2_exercise_invitation.accept"
V2_EXERCISE_REPO_RETRY = "v2_exercise_repo.retry"


class EventSink:
    """Fire-and-forget named counters.

    The default sink writes one log line per event and keeps in-process totals, which is
    enough for a log-based metrics pipeline to pick up.
    """

    def __init__(self):
        self.counts: Counter = Counter()

    def increment(self, name: str) -> None:
        self.counts[name] += 1
        logger.info("event %s", name)
