"""
projects/context.py

Retention policy for a project's dated context notes, and the text block
that prefixes review prompts.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from models import ContextStatus, ExternalContext, Project
from utils import generate_context_id, now_iso, parse_iso

MAX_FILLED_CONTEXTS = 20
PENDING_RETENTION_DAYS = 21

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _date_key(context: ExternalContext) -> datetime:
    return parse_iso(context.date) or _EPOCH


def dedupe_contexts(contexts: List[ExternalContext]) -> List[ExternalContext]:
    """Drop entries whose id was already seen (first occurrence wins)."""
    seen = set()
    out = []
    for c in contexts:
        if c.id in seen:
            continue
        seen.add(c.id)
        out.append(c)
    return out


def is_stale_pending(context: ExternalContext, cutoff: datetime) -> bool:
    """True for a pending entry created (or dated) before ``cutoff``."""
    if context.status != ContextStatus.PENDING:
        return False
    stamp = parse_iso(context.created_at) or parse_iso(context.date)
    return stamp is None or stamp < cutoff


def compress_external_contexts(contexts: List[ExternalContext],
                               now: Optional[datetime] = None,
                               max_filled: int = MAX_FILLED_CONTEXTS,
                               pending_days: int = PENDING_RETENTION_DAYS) -> List[ExternalContext]:
    """
    Apply the retention policy.

    Keeps the ``max_filled`` most recent filled entries (by ``date``,
    newest first) followed by the pending entries younger than
    ``pending_days``.  Everything else, including empty entries, is dropped.
    """
    if not contexts:
        return []
    contexts = dedupe_contexts(list(contexts))
    cutoff = _now(now) - timedelta(days=pending_days)

    filled = sorted(
        (c for c in contexts if c.status == ContextStatus.FILLED),
        key=_date_key,
        reverse=True,
    )[:max_filled]
    pending = [c for c in contexts
               if c.status == ContextStatus.PENDING and not is_stale_pending(c, cutoff)]
    return filled + pending


def cleanup_old_pending(contexts: List[ExternalContext], now: Optional[datetime] = None,
                        pending_days: int = PENDING_RETENTION_DAYS) -> Tuple[List[ExternalContext], int]:
    """Remove stale pending entries only.  Returns ``(kept, removed_count)``."""
    cutoff = _now(now) - timedelta(days=pending_days)
    kept = [c for c in contexts if not is_stale_pending(c, cutoff)]
    return kept, len(contexts) - len(kept)


def js_weekday(day: date) -> int:
    """Weekday with Sunday = 0 ... Saturday = 6."""
    return (day.weekday() + 1) % 7


def weekly_context_for(project: Project, today: Optional[date] = None) -> Optional[ExternalContext]:
    """
    A new pending entry for today, if today is the project's input day and
    no entry for today exists yet.
    """
    today = today or date.today()
    if js_weekday(today) != project.weekly_input_day:
        return None
    today_str = today.isoformat()
    if any(c.date == today_str for c in project.external_contexts):
        return None
    return ExternalContext(
        id=generate_context_id(),
        date=today_str,
        content="",
        status=ContextStatus.PENDING,
        created_at=now_iso(),
    )


def build_context_prompt(project: Optional[Project]) -> str:
    """
    Assemble the context text that prefixes review prompts.

    A project block (purpose / audience, omitted when both are empty) is
    followed by one block per filled, non-blank context, newest first.
    Returns "" when nothing is populated.
    """
    if project is None:
        return ""

    parts: List[str] = []
    static = project.static_context
    if not static.is_empty():
        block = "[プロジェクトコンテキスト]\n"
        if static.purpose:
            block += f"目的: {static.purpose}\n"
        if static.audience:
            block += f"対象者: {static.audience}\n"
        parts.append(block + "\n")

    filled = sorted(
        (c for c in project.external_contexts
         if c.status == ContextStatus.FILLED and c.content.strip()),
        key=_date_key,
        reverse=True,
    )
    for context in filled:
        parts.append(f"[外部コンテキスト - {context.date}]\n{context.content}\n\n")

    return "".join(parts)
