from datetime import datetime

from trait_xp.storage.models import MicroEvent, SelfReport, SessionSummary


def make_session(
    session_id: str = "s1",
    minutes: float = 25,
    kinds: list[str] | None = None,
    report: SelfReport | None = None,
    task_id: str = "task-1",
    user_id: str = "user-1",
) -> SessionSummary:
    ts = datetime(2026, 3, 2, 9, 0)
    return SessionSummary(
        session_id=session_id,
        duration_minutes=minutes,
        events=tuple(MicroEvent(kind=k, timestamp=ts) for k in kinds or []),
        self_report=report,
        task_id=task_id,
        user_id=user_id,
    )
