"""OAuth v2 installation: authorize URL and code exchange into a stored installation."""

import structlog
from slack_sdk.oauth import AuthorizeUrlGenerator

from planning_poker.config import Settings
from planning_poker.db.models import TeamInstallation, utcnow
from planning_poker.services.installations import InstallationStore
from planning_poker.slack.api import SlackGateway

logger = structlog.get_logger()


class OAuthInstaller:
    """Builds the authorize URL and completes installs from callback codes."""

    def __init__(self, settings: Settings, gateway: SlackGateway, installations: InstallationStore):
        self._settings = settings
        self._gateway = gateway
        self._installations = installations
        self._url_generator = AuthorizeUrlGenerator(
            client_id=settings.slack_client_id,
            scopes=[s.strip() for s in settings.slack_oauth_scopes.split(",") if s.strip()],
            redirect_uri=settings.oauth_redirect_uri,
        )

    def authorize_url(self) -> str:
        # No state round-trip: the callback trusts Slack's redirect alone.
        return self._url_generator.generate(state="")

    async def complete(self, code: str) -> TeamInstallation:
        """Exchange ``code`` and persist the workspace installation.

        Raises:
            OAuthExchangeError: Slack rejected the code.
            StoreError: The installation could not be saved.
        """
        data = await self._gateway.exchange_oauth_code(code, self._settings.oauth_redirect_uri)

        team = data.get("team") or {}
        authed_user = data.get("authed_user") or {}
        installation = TeamInstallation(
            team_id=team["id"],
            team_name=team.get("name"),
            bot_token=data["access_token"],
            bot_user_id=data.get("bot_user_id"),
            scope=data.get("scope"),
            installer_user_id=authed_user.get("id"),
            app_id=data.get("app_id"),
            installed_at=utcnow(),
        )
        await self._installations.save(installation)
        logger.info("oauth_install_completed", team_id=installation.team_id, scope=installation.scope)
        return installation

