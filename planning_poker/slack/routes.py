"""Slack HTTP endpoints, mounted under ``/slack``.

Slash commands and vote clicks are handed to the Bolt request handler,
which verifies the signature and runs the matching listener. Interactive
requests whose payload cannot be a vote are answered here with a 200 and
an ephemeral error, since Bolt would find no listener for them.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from slack_sdk.signature import SignatureVerifier

from planning_poker.container import PokerServices, get_services
from planning_poker.errors import OAuthExchangeError, PayloadError, StoreError
from planning_poker.slack.blocks import ephemeral
from planning_poker.slack.payloads import parse_action_payload

logger = structlog.get_logger()

router = APIRouter(prefix="/slack", tags=["slack"])

SUCCESS_PATH = "/slack/oauth/success"


# =============================================================================
# Request verification
# =============================================================================


def signature_is_valid(secret: str, body: bytes, headers: dict) -> bool:
    """Check a request against the signing secret. True when no secret is configured."""
    if not secret:
        return True
    return SignatureVerifier(signing_secret=secret).is_valid_request(body, headers)


# =============================================================================
# Commands and actions
# =============================================================================


@router.post("/verify")
async def url_verification(request: Request) -> dict[str, Any]:
    """Echo Slack's URL verification challenge."""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    challenge = body.get("challenge") if isinstance(body, dict) else None
    logger.info("slack_url_verification", has_challenge=challenge is not None)
    return {"challenge": challenge}


@router.post("/commands")
async def slash_commands(request: Request, services: PokerServices = Depends(get_services)):
    """Handle ``/poker`` and ``/poker-reveal`` through Bolt."""
    return await services.slack_handler.handle(request)


@router.post("/actions")
async def interactive_actions(request: Request, services: PokerServices = Depends(get_services)):
    """Handle vote button clicks through Bolt, answering unusable payloads directly."""
    # Read the raw body first so it stays cached for the Bolt handler.
    body = await request.body()
    form = await request.form()
    raw = form.get("payload")

    try:
        parse_action_payload(raw if isinstance(raw, str) else None)
    except PayloadError as e:
        if not signature_is_valid(services.settings.slack_signing_secret, body, dict(request.headers)):
            logger.warning("slack_signature_invalid", path=request.url.path)
            raise HTTPException(status_code=401, detail="Invalid Slack signature")
        logger.warning("action_payload_rejected", reason=e.message)
        return ephemeral(e.user_message)

    return await services.slack_handler.handle(request)


# =============================================================================
# OAuth installation
# =============================================================================

SUCCESS_PAGE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Planning Poker - Installation Success</title>
    <style>
        body { font-family: Arial, sans-serif; text-align: center; padding: 50px; background-color: #f8f9fa; }
        .container { max-width: 600px; margin: 0 auto; background: white; padding: 40px; border-radius: 8px; }
        .commands { background: #f8f9fa; padding: 20px; border-radius: 4px; margin: 20px 0; text-align: left; }
        code { background: #e9ecef; padding: 2px 6px; border-radius: 3px; font-family: monospace; }
    </style>
</head>
<body>
    <div class="container">
        <h1>🎉 Planning Poker Installed Successfully!</h1>
        <p>Planning Poker has been installed to your Slack workspace.</p>
        <div class="commands">
            <h3>Available Commands:</h3>
            <p><code>/poker [issue link or description]</code> - Start a new planning poker session</p>
            <p><code>/poker-reveal</code> - Reveal votes for the current session</p>
        </div>
        <p>You can now use Planning Poker in any channel where the bot has been invited.</p>
        <p>Happy estimating! 🎯</p>
    </div>
</body>
</html>
"""


@router.get("/install")
async def install(services: PokerServices = Depends(get_services)) -> RedirectResponse:
    """Send the installer to Slack's authorization page."""
    return RedirectResponse(services.installer.authorize_url(), status_code=302)


@router.get("/oauth/callback")
async def oauth_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    services: PokerServices = Depends(get_services),
):
    """Complete an installation from Slack's redirect."""
    if error:
        logger.warning("oauth_denied", error=error)
        return PlainTextResponse(f"OAuth Error: {error}", status_code=400)

    if not code:
        return PlainTextResponse("Missing authorization code", status_code=400)

    try:
        installation = await services.installer.complete(code)
    except OAuthExchangeError as e:
        return PlainTextResponse(f"Token exchange failed: {e.error}", status_code=400)
    except StoreError as e:
        logger.error("installation_save_failed", error=str(e))
        return PlainTextResponse("Failed to save installation", status_code=500)
    except Exception as e:
        logger.error("oauth_callback_failed", error=str(e), exc_info=True)
        return PlainTextResponse("Internal server error during OAuth", status_code=500)

    logger.info("workspace_installed", team_id=installation.team_id, team_name=installation.team_name)
    return RedirectResponse(SUCCESS_PATH, status_code=302)


@router.get("/oauth/success", response_class=HTMLResponse)
async def oauth_success() -> str:
    """Static confirmation page shown after a successful install."""
    return SUCCESS_PAGE
