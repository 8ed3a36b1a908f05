"""Models package - re-exports for convenience."""

from backend.app.models.docs import DocumentFile, IndexingResult, IndexLogEntry
from backend.app.models.repositories import GitHubOwner, GitHubRepo, RepositoryOut
from backend.app.models.rules import CreateRuleRequest, RuleOut, RulePatch
from backend.app.models.templates import ApplyTemplateRequest, CreateTemplateRequest, TemplateOut

__all__ = [
    # Docs
    "DocumentFile",
    "IndexLogEntry",
    "IndexingResult",
    # Repositories
    "GitHubOwner",
    "GitHubRepo",
    "RepositoryOut",
    # Rules
    "CreateRuleRequest",
    "RulePatch",
    "RuleOut",
    # Templates
    "ApplyTemplateRequest",
    "CreateTemplateRequest",
    "TemplateOut",
]
