"""
projects/store.py

Persistent project registry.

Projects are stored together under one key as ``{projectId: project}``, and
documents are linked to projects through a second ``{documentId: projectId}``
map.  Every save runs the context retention policy first, so the stored
record never grows beyond the configured limits.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from PyQt6.QtCore import QObject, pyqtSignal

from errors import describe_error
from models import ContextStatus, ExternalContext, Project, StaticContext
from projects.context import (
    build_context_prompt,
    cleanup_old_pending,
    compress_external_contexts,
    dedupe_contexts,
    weekly_context_for,
)
from projects.similarity import SimilarProject, find_similar
from settings import ProjectSettings
from storage.base import DOCUMENT_MAP_KEY, PROJECTS_KEY, Storage, unwrap_record, wrap_record
from utils import generate_context_id, generate_project_id, now_iso, parse_iso

log = logging.getLogger(__name__)

DEFAULT_PROJECT_TITLE = "無題のプレゼンテーション"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

ContextLike = Union[ExternalContext, Dict[str, Any]]


class ProjectContextStore(QObject):
    """
    Async CRUD over projects and the document-to-project map.

    Storage failures never propagate: reads fall back to "nothing stored",
    writes return False / None, and a user-facing notice is emitted through
    ``persistFailed``.

    Signals:
        projectsChanged(): Emitted after a project is saved or linked.
        persistFailed(str): Emitted with a user-facing notice when storage fails.

    Args:
        storage: Storage backend.
        config: Retention and similarity settings; read from settings when None.
    """

    projectsChanged = pyqtSignal()
    persistFailed = pyqtSignal(str)

    def __init__(self, storage: Storage, config: Optional[ProjectSettings] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        if config is None:
            from settings import get_settings
            config = get_settings().settings.projects
        self.storage = storage
        self.config = config

    # ------------------------------------------------------------------
    # Raw maps
    # ------------------------------------------------------------------

    async def _read_map(self, key: str) -> Dict[str, Any]:
        value = unwrap_record(await self.storage.get(key))
        return value if isinstance(value, dict) else {}

    async def _write_map(self, key: str, value: Dict[str, Any]) -> None:
        await self.storage.set(key, wrap_record(value))

    def _report(self, error: Exception, context: str) -> None:
        log.warning("%s failed: %s", context, error)
        self.persistFailed.emit(describe_error(error, context))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def all_projects(self) -> Dict[str, Project]:
        """Every stored project keyed by id ({} on failure)."""
        try:
            raw = await self._read_map(PROJECTS_KEY)
        except Exception as e:
            self._report(e, "Loading projects")
            return {}
        return {pid: Project.from_dict(pid, d) for pid, d in raw.items() if isinstance(d, dict)}

    async def load_project(self, project_id: str) -> Optional[Project]:
        if not project_id:
            return None
        return (await self.all_projects()).get(project_id)

    async def save_project(self, project: Project, now: Optional[datetime] = None) -> bool:
        """
        Compress the project's contexts, stamp ``updated_at`` and store it.

        The project object is updated in place.

        Returns:
            True if the write succeeded.
        """
        project.external_contexts = compress_external_contexts(
            project.external_contexts,
            now=now,
            max_filled=self.config.max_filled_contexts,
            pending_days=self.config.pending_retention_days,
        )
        project.updated_at = now_iso()
        try:
            raw = await self._read_map(PROJECTS_KEY)
            raw[project.project_id] = project.to_dict()
            await self._write_map(PROJECTS_KEY, raw)
        except Exception as e:
            self._report(e, "Saving project")
            return False
        log.info("Saved project %s (%d context(s))", project.project_id, len(project.external_contexts))
        self.projectsChanged.emit()
        return True

    async def create_project(self, name: str, document_id: Optional[str] = None) -> Optional[Project]:
        """Create and store a new project, optionally linking ``document_id`` to it."""
        stamp = now_iso()
        project = Project(
            project_id=generate_project_id(),
            project_name=(name or "").strip() or DEFAULT_PROJECT_TITLE,
            created_at=stamp,
            updated_at=stamp,
            weekly_input_day=self.config.weekly_input_day,
        )
        if not await self.save_project(project):
            return None
        if document_id and not await self.link_document(document_id, project.project_id):
            return None
        return project

    async def projects_by_recency(self) -> List[Project]:
        """All projects, most recently updated (or created) first."""
        projects = list((await self.all_projects()).values())
        projects.sort(
            key=lambda p: parse_iso(p.updated_at) or parse_iso(p.created_at) or _EPOCH,
            reverse=True,
        )
        return projects

    # ------------------------------------------------------------------
    # Document mapping
    # ------------------------------------------------------------------

    async def link_document(self, document_id: str, project_id: str) -> bool:
        try:
            mapping = await self._read_map(DOCUMENT_MAP_KEY)
            mapping[document_id] = project_id
            await self._write_map(DOCUMENT_MAP_KEY, mapping)
        except Exception as e:
            self._report(e, "Linking document")
            return False
        log.info("Linked document %s to project %s", document_id, project_id)
        self.projectsChanged.emit()
        return True

    async def project_id_for_document(self, document_id: str) -> Optional[str]:
        if not document_id:
            return None
        try:
            mapping = await self._read_map(DOCUMENT_MAP_KEY)
        except Exception as e:
            self._report(e, "Loading document map")
            return None
        project_id = mapping.get(document_id)
        return project_id if isinstance(project_id, str) else None

    async def project_for_document(self, document_id: str) -> Optional[Project]:
        project_id = await self.project_id_for_document(document_id)
        return await self.load_project(project_id) if project_id else None

    async def ensure_project_for_document(self, document_id: str, title: str = "") -> Optional[Project]:
        """Load the document's project, creating and linking one named ``title`` if needed."""
        project = await self.project_for_document(document_id)
        if project is not None:
            return project
        return await self.create_project(title or DEFAULT_PROJECT_TITLE, document_id)

    def find_similar(self, title: str,
                     all_projects: Union[Dict[str, Project], Iterable[Project]]) -> List[SimilarProject]:
        return find_similar(title, all_projects,
                            threshold=self.config.similarity_threshold,
                            generic_titles=self.config.generic_titles)

    async def detect_similar_projects(self, document_id: str, title: str) -> List[SimilarProject]:
        """
        Suggest existing projects for an unlinked document.

        Returns an empty list when the document is already linked or the
        title is empty.
        """
        if not title or not title.strip():
            return []
        if await self.project_id_for_document(document_id):
            return []
        return self.find_similar(title, await self.all_projects())

    # ------------------------------------------------------------------
    # Context editing
    # ------------------------------------------------------------------

    async def update_context(self, project_id: str, purpose: str, audience: str,
                             contexts: List[ContextLike]) -> Optional[Project]:
        """
        Replace a project's static context and context list, then save.

        Each entry becomes ``filled`` when it has content; a blank entry
        stays ``pending`` if it was pending before and is ``empty`` otherwise
        (empty entries are dropped on save).
        """
        project = await self.load_project(project_id)
        if project is None:
            return None

        previous = {c.id: c for c in project.external_contexts}
        updated: List[ExternalContext] = []
        for entry in contexts:
            ctx = ExternalContext.from_dict(entry) if isinstance(entry, dict) else entry
            if not ctx.id:
                ctx.id = generate_context_id()
            old = previous.get(ctx.id)
            if not ctx.created_at:
                ctx.created_at = old.created_at if old is not None and old.created_at else now_iso()
            if ctx.content.strip():
                ctx.status = ContextStatus.FILLED
            elif old is not None and old.status == ContextStatus.PENDING:
                ctx.status = ContextStatus.PENDING
            else:
                ctx.status = ContextStatus.EMPTY
            updated.append(ctx)

        project.static_context = StaticContext(purpose=(purpose or "").strip(),
                                               audience=(audience or "").strip())
        project.external_contexts = dedupe_contexts(updated)
        if not await self.save_project(project):
            return None
        return project

    async def context_prompt_for_document(self, document_id: str) -> str:
        """The context block for a document's project ("" if unlinked or empty)."""
        return build_context_prompt(await self.project_for_document(document_id))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def generate_weekly_context_if_needed(self, project_id: str,
                                                today: Optional[date] = None) -> Optional[ExternalContext]:
        """
        Add a pending entry dated today when today is the project's weekly
        input day and no entry for today exists.

        Returns:
            The new entry, or None if nothing was added.
        """
        project = await self.load_project(project_id)
        if project is None:
            return None
        context = weekly_context_for(project, today)
        if context is None:
            return None
        project.external_contexts = project.external_contexts + [context]
        if not await self.save_project(project):
            return None
        log.info("Added weekly context %s to project %s", context.date, project_id)
        return context

    async def cleanup_old_pending_contexts(self, project_id: str, now: Optional[datetime] = None) -> int:
        """
        Delete pending entries older than the retention window.

        The project is saved only when something was removed.

        Returns:
            The number of entries removed.
        """
        project = await self.load_project(project_id)
        if project is None:
            return 0
        kept, removed = cleanup_old_pending(project.external_contexts, now=now,
                                            pending_days=self.config.pending_retention_days)
        if not removed:
            return 0
        project.external_contexts = kept
        if not await self.save_project(project, now=now):
            return 0
        log.info("Removed %d stale pending context(s) from project %s", removed, project_id)
        return removed
