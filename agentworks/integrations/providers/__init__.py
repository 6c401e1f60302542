"""Concrete provider integrations."""

from .github import GitHubCreateIssueTool, GitHubIntegration, GitHubListReposTool
from .google import CalendarListEventsTool, GoogleCalendarIntegration

__all__ = [
    "GitHubIntegration",
    "GitHubListReposTool",
    "GitHubCreateIssueTool",
    "GoogleCalendarIntegration",
    "CalendarListEventsTool",
]
