import logging

from quotadesk.core.config import settings


def _category_enabled(category: str | None) -> bool:
    if not settings.FLOW_LOGS_ENABLED:
        return False
    if category == "approval":
        return settings.FLOW_LOGS_APPROVAL_ENABLED
    if category == "retention":
        return settings.FLOW_LOGS_RETENTION_ENABLED
    return True


def flow_info(
    logger: logging.Logger,
    msg: str,
    *args,
    category: str | None = None,
    **kwargs,
) -> None:
    if _category_enabled(category):
        logger.info(msg, *args, **kwargs)
