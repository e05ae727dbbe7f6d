"""
Server-authoritative exam timer synchronization

The server publishes (start_time, duration_minutes, server_time) on every
status poll. Clients derive their deadline from those three values alone,
so clock skew cancels out and a teacher's duration change propagates within
one poll + debounce cycle.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Union

from quizroom.config import settings
from quizroom.models import Quiz
from quizroom.utils.clock import from_epoch, to_epoch, utcnow

logger = logging.getLogger(__name__)


@dataclass
class QuizTiming:
    """The slice of a quiz the status poll needs; small enough to cache"""
    quiz_id: str
    status: str
    timer_mode: str
    duration_minutes: int
    start_time: Optional[float] = None  # epoch seconds, server clock

    @classmethod
    def from_quiz(cls, quiz: Quiz) -> "QuizTiming":
        return cls(
            quiz_id=str(quiz.id),
            status=quiz.status,
            timer_mode=quiz.timer_mode,
            duration_minutes=quiz.duration_minutes,
            start_time=to_epoch(quiz.start_time),
        )

    @property
    def ends_at(self) -> Optional[float]:
        if self.start_time is None:
            return None
        return self.start_time + self.duration_minutes * 60

    def has_elapsed(self, now: datetime) -> bool:
        return self.status == "started" and self.ends_at is not None and to_epoch(now) > self.ends_at

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_snapshot(timing: QuizTiming, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the status-poll payload

    Args:
        timing: Current quiz timing
        now: Server time of this poll (defaults to the clock)

    Returns:
        Dictionary matching QuizStatusResponse
    """
    now = now or utcnow()
    ends_at = timing.ends_at

    if ends_at is not None:
        remaining = max(0, int(ends_at - to_epoch(now)))
    elif timing.status == "finished":
        remaining = 0
    else:
        remaining = timing.duration_minutes * 60

    return {
        "quiz_id": timing.quiz_id,
        "status": timing.status,
        "timer_mode": timing.timer_mode,
        "start_time": from_epoch(timing.start_time) if timing.start_time is not None else None,
        "duration_minutes": timing.duration_minutes,
        "server_time": now,
        "ends_at": from_epoch(ends_at) if ends_at is not None else None,
        "remaining_seconds": remaining,
        "poll_interval_seconds": settings.STATUS_POLL_INTERVAL_SECONDS,
        "debounce_seconds": settings.DURATION_CHANGE_DEBOUNCE_SECONDS,
        "drift_tolerance_seconds": settings.DRIFT_TOLERANCE_SECONDS,
    }


def _as_epoch(value: Union[None, float, int, str, datetime]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        return value.timestamp()
    return to_epoch(value)


@dataclass
class TimerSnapshot:
    """What a client learns from one status poll, in server-clock seconds"""
    status: str
    duration_minutes: int
    server_time: float
    start_time: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TimerSnapshot":
        return cls(
            status=payload["status"],
            duration_minutes=int(payload["duration_minutes"]),
            server_time=_as_epoch(payload["server_time"]),
            start_time=_as_epoch(payload.get("start_time")),
        )


@dataclass
class DurationNotice:
    """Transient banner shown when the teacher changes the exam length"""
    delta_minutes: int
    duration_minutes: int
    apply_at: float  # client clock

    @property
    def message(self) -> str:
        verb = "added" if self.delta_minutes > 0 else "removed"
        minutes = abs(self.delta_minutes)
        return f"Your teacher {verb} {minutes} minute{'s' if minutes != 1 else ''}"


class CountdownSync:
    """
    Client-side countdown that converges on the server deadline

    - observe(): called on every poll; recomputes the deadline from scratch
    - tick(): called once a second for display continuity
    - should_finish(): true exactly once when the countdown reaches zero

    All *_now arguments are client-clock POSIX seconds.
    """

    def __init__(
        self,
        debounce_seconds: Optional[float] = None,
        drift_tolerance_seconds: Optional[float] = None
    ):
        self.debounce_seconds = (
            settings.DURATION_CHANGE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.drift_tolerance_seconds = (
            settings.DRIFT_TOLERANCE_SECONDS if drift_tolerance_seconds is None else drift_tolerance_seconds
        )

        self.offset: float = 0.0
        self.deadline: Optional[float] = None  # client clock
        self.displayed: Optional[float] = None
        self.notice: Optional[DurationNotice] = None

        self._duration: Optional[int] = None
        self._pending_duration: Optional[int] = None
        self._refresh_at: Optional[float] = None
        self._finish_due = False
        self._finish_fired = False

    @property
    def server_deadline(self) -> Optional[float]:
        """Deadline translated back to the server clock"""
        if self.deadline is None:
            return None
        return self.deadline + self.offset

    def observe(self, snapshot: TimerSnapshot, client_now: float) -> Optional[DurationNotice]:
        """
        Fold one status poll into the countdown

        Returns:
            A DurationNotice when this poll revealed a new duration that is
            being debounced, otherwise None
        """
        self.offset = snapshot.server_time - client_now

        if snapshot.start_time is None:
            self._duration = snapshot.duration_minutes
            self.displayed = float(snapshot.duration_minutes * 60)
            return None

        changed = (
            self.deadline is not None
            and self._duration is not None
            and snapshot.duration_minutes != self._duration
        )

        if changed:
            if self._refresh_at is None or snapshot.duration_minutes != self._pending_duration:
                self._pending_duration = snapshot.duration_minutes
                self._refresh_at = client_now + self.debounce_seconds
                self.notice = DurationNotice(
                    delta_minutes=snapshot.duration_minutes - self._duration,
                    duration_minutes=snapshot.duration_minutes,
                    apply_at=self._refresh_at,
                )
                logger.debug(f"Duration change observed: {self._duration} -> {snapshot.duration_minutes} min")
                return self.notice
            if client_now < self._refresh_at:
                return None

        self._duration = snapshot.duration_minutes
        self._pending_duration = None
        self._refresh_at = None
        self.deadline = snapshot.start_time + snapshot.duration_minutes * 60 - self.offset
        self.displayed = self.remaining(client_now)
        self._check_finish()
        return None

    def refresh_due(self, client_now: float) -> bool:
        """True once a debounced duration change should be re-fetched"""
        return self._refresh_at is not None and client_now >= self._refresh_at

    def remaining(self, client_now: float) -> float:
        if self.deadline is None:
            return float(self.displayed or 0.0)
        return max(0.0, self.deadline - client_now)

    def tick(self, client_now: float) -> Optional[float]:
        """Advance the display by one second, correcting large drift at once"""
        if self.displayed is None or self.deadline is None:
            return self.displayed

        self.displayed = max(0.0, self.displayed - 1)
        authoritative = self.remaining(client_now)
        if abs(self.displayed - authoritative) > self.drift_tolerance_seconds:
            self.displayed = authoritative

        self._check_finish()
        return self.displayed

    def question_remaining(
        self,
        question_started_at: float,
        time_limit_seconds: Optional[int],
        client_now: float
    ) -> float:
        """Per-question countdown for 'question' timer mode, capped by the exam"""
        exam_left = self.remaining(client_now)
        if not time_limit_seconds:
            return exam_left
        return min(max(0.0, question_started_at + time_limit_seconds - client_now), exam_left)

    def should_finish(self) -> bool:
        if self._finish_due and not self._finish_fired:
            self._finish_fired = True
            return True
        return False

    def _check_finish(self) -> None:
        if self.deadline is not None and self.displayed is not None and self.displayed <= 0:
            self._finish_due = True