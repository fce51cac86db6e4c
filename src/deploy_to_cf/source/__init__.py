"""Source repository clients."""

from .github import GitHubClient

__all__ = ["GitHubClient"]
