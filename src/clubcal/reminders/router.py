"""HTTP trigger for a reminder dispatch run (external cron)."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials

from clubcal.auth.dependencies import bearer_credentials, check_bearer
from clubcal.config import ConfigurationError, get_settings
from clubcal.database import get_session_factory
from clubcal.reminders.dispatcher import DispatchSummary, build_dispatcher, missing_dispatch_settings

router = APIRouter(prefix="/api/reminders", tags=["Reminders"])


@router.api_route("/run", methods=["GET", "POST"])
async def run_reminders(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_credentials),
) -> dict[str, int]:
    """
    Send every reminder due now.

    Configuration is checked before the caller: a deployment missing its
    cron secret or delivery credentials answers 500 to everyone.
    """
    settings = get_settings()
    missing = missing_dispatch_settings(settings)
    if missing:
        msg = f"Missing {', '.join(missing)}"
        raise ConfigurationError(msg)

    check_bearer(credentials, settings.cron_secret)

    dispatcher = build_dispatcher(get_session_factory(), settings)
    summary: DispatchSummary = await dispatcher.run_once(datetime.now(UTC))
    return summary.to_dict()
