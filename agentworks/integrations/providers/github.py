"""
GitHub integration.

Authenticates with a personal access token (or GitHub App installation
token) stored in the CredentialStore, verifies webhooks with the
X-Hub-Signature-256 HMAC, and contributes repository/issue tools.

Webhook handling is idempotent: it only parses and summarises the event.

Usage:
    config = IntegrationConfig(
        provider="github",
        credential_type=CredentialType.PAT,
        base_url="https://api.github.com",
        webhook_secret=settings.github_webhook_secret.get_secret_value(),
    )
    github = GitHubIntegration(config, credentials)
    registry.register(github)

API Reference:
    https://docs.github.com/en/rest
    https://docs.github.com/en/webhooks/using-webhooks/validating-webhook-deliveries
"""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from agentworks.errors import CredentialError, IntegrationError
from agentworks.integrations.base import Integration, IntegrationConfig, hmac_sha256_hex
from agentworks.integrations.credentials import Credential, CredentialType
from agentworks.tools.base import Tool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from agentworks.integrations.webhooks import WebhookPayload
    from agentworks.tools.context import ToolExecutionContext

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"


# =============================================================================
# Schemas
# =============================================================================


class GitHubRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str
    description: str | None = None
    private: bool = False
    html_url: str
    default_branch: str = "main"
    stargazers_count: int = 0


class GitHubIssue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str
    state: str = "open"
    html_url: str
    labels: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Integration
# =============================================================================


class GitHubIntegration(Integration):
    """GitHub REST API integration."""

    provider = "github"

    @classmethod
    def default_config(cls, **overrides: Any) -> IntegrationConfig:
        values: dict[str, Any] = {
            "provider": cls.provider,
            "credential_type": CredentialType.PAT,
            "base_url": GITHUB_API_URL,
        }
        values.update(overrides)
        return IntegrationConfig(**values)

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.access_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def verify_webhook(self, payload: WebhookPayload) -> bool:
        """Constant-time check of `sha256=<hex>` against the HMAC of the raw body."""
        secret = self.config.webhook_secret
        if not secret:
            logger.warning("[github] No webhook secret configured; rejecting payload")
            return False

        signature = payload.header(SIGNATURE_HEADER)
        if not signature or not signature.startswith("sha256="):
            return False

        expected = "sha256=" + hmac_sha256_hex(secret, payload.body)
        return hmac.compare_digest(expected, signature)

    def event_type(self, payload: WebhookPayload) -> str:
        return payload.header(EVENT_HEADER) or "unknown"

    async def handle_webhook(self, payload: WebhookPayload) -> dict[str, Any]:
        body = payload.json_body()
        event = self.event_type(payload)
        repository = (body.get("repository") or {}).get("full_name")

        logger.info(
            f"[github] Webhook {event} "
            f"(delivery={payload.header(DELIVERY_HEADER)}, repository={repository})"
        )
        return {
            "event": event,
            "action": body.get("action"),
            "repository": repository,
            "sender": (body.get("sender") or {}).get("login"),
        }

    def tools(self) -> list[Tool]:
        return [GitHubListReposTool(self), GitHubCreateIssueTool(self)]

    async def list_repositories(
        self,
        *,
        visibility: str = "all",
        per_page: int = 30,
        agent_id: str | None = None,
    ) -> list[GitHubRepository]:
        response = await self.request(
            "GET",
            "/user/repos",
            agent_id=agent_id,
            params={"visibility": visibility, "per_page": per_page, "sort": "updated"},
        )
        return [GitHubRepository.model_validate(item) for item in response.json()]

    async def create_issue(
        self,
        repository: str,
        *,
        title: str,
        body: str | None = None,
        labels: list[str] | None = None,
        agent_id: str | None = None,
    ) -> GitHubIssue:
        payload: dict[str, Any] = {"title": title}
        if body:
            payload["body"] = body
        if labels:
            payload["labels"] = labels

        response = await self.request(
            "POST",
            f"/repos/{repository}/issues",
            agent_id=agent_id,
            json=payload,
        )
        return GitHubIssue.model_validate(response.json())


# =============================================================================
# Tools
# =============================================================================


class GitHubListReposTool(Tool):
    """List repositories visible to the configured GitHub credential."""

    def __init__(self, github: GitHubIntegration):
        self._github = github

    def describe(self) -> ToolDefinition:
        return ToolDefinition(
            name="github_list_repos",
            description=(
                "List GitHub repositories the agent has access to, most recently "
                "updated first."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "visibility": {
                        "type": "string",
                        "enum": ["all", "public", "private"],
                        "description": "Filter by visibility (default: all)",
                    },
                    "limit": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": 100,
                        "description": "Maximum number of repositories (default: 30)",
                    },
                },
            },
            category="github",
            capabilities=frozenset({"external:read"}),
        )

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        try:
            repos = await context.cancellation.guard(
                self._github.list_repositories(
                    visibility=arguments.get("visibility", "all"),
                    per_page=arguments.get("limit", 30),
                    agent_id=context.agent_id,
                )
            )
        except (IntegrationError, CredentialError) as e:
            logger.error(f"[github_list_repos] Failed to list repositories: {e}")
            return ToolResult.failure(f"Failed to list repositories: {e}")

        return ToolResult.success(
            [repo.model_dump() for repo in repos],
            metadata={"result_count": len(repos)},
        )


class GitHubCreateIssueTool(Tool):
    """Open an issue in a GitHub repository."""

    def __init__(self, github: GitHubIntegration):
        self._github = github

    def describe(self) -> ToolDefinition:
        return ToolDefinition(
            name="github_create_issue",
            description=(
                "Create a new issue in a GitHub repository. Requires the repository "
                "as 'owner/name' and an issue title."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "repository": {
                        "type": "string",
                        "pattern": "^[^/\\s]+/[^/\\s]+$",
                        "description": "Repository in 'owner/name' form",
                    },
                    "title": {"type": "string", "minLength": 1, "description": "Issue title"},
                    "body": {"type": "string", "description": "Issue body in Markdown"},
                    "labels": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Label names to apply",
                    },
                },
                "required": ["repository", "title"],
            },
            category="github",
            capabilities=frozenset({"external:write"}),
        )

    async def execute(self, arguments: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        repository = arguments["repository"]
        logger.info(f"[github_create_issue] Creating issue in {repository}")

        try:
            issue = await context.cancellation.guard(
                self._github.create_issue(
                    repository,
                    title=arguments["title"],
                    body=arguments.get("body"),
                    labels=arguments.get("labels"),
                    agent_id=context.agent_id,
                )
            )
        except (IntegrationError, CredentialError) as e:
            logger.error(f"[github_create_issue] Failed to create issue: {e}")
            return ToolResult.failure(f"Failed to create issue: {e}")

        logger.info(f"[github_create_issue] Created {repository}#{issue.number}")
        return ToolResult.success(
            {"number": issue.number, "title": issue.title, "url": issue.html_url},
            metadata={"repository": repository},
        )
