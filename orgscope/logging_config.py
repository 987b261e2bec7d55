from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level of the `orgscope` logger tree.

    Notes:
    - Plain stdlib logging. Under uvicorn the handlers already exist; when run
      any other way (scripts, `init_db`) a stderr handler is installed once.
    - Access denials are logged at INFO with their reason code (SCOPE_MISSING,
      FORBIDDEN, ...) while clients only ever see a uniform 403.
    - `ORGSCOPE_LOG_LEVEL=DEBUG` also logs every visibility denial and every
      resolved scope.
    """

    normalized = level.upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(format=LOG_FORMAT)

    package_logger = logging.getLogger("orgscope")
    package_logger.setLevel(normalized)
    package_logger.propagate = True
