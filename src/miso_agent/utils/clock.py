from datetime import datetime, timedelta, timezone

from miso_agent.config import settings


def now_text(hour_offset: float | None = None) -> str:
    """Current time as shown to the model, shifted to `hour_offset` hours when non-zero."""
    if hour_offset is None:
        hour_offset = settings.timezone_hour_offset
    if hour_offset:
        now = datetime.now(timezone(timedelta(hours=hour_offset)))
    else:
        now = datetime.now().astimezone()
    return now.strftime("%Y-%m-%d %H:%M:%S")
