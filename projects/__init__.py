"""
projects package

Project registry, document linking, title similarity and context prompts.
"""

from projects.context import build_context_prompt, compress_external_contexts
from projects.similarity import SimilarProject, find_similar, is_similar_title
from projects.store import DEFAULT_PROJECT_TITLE, ProjectContextStore

__all__ = [
    "DEFAULT_PROJECT_TITLE",
    "ProjectContextStore",
    "SimilarProject",
    "build_context_prompt",
    "compress_external_contexts",
    "find_similar",
    "is_similar_title",
]
