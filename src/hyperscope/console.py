"""Diagnostic sink exposed to expressions as ``console``."""

import logging

logger = logging.getLogger("hyperscope.console")


def _join(args) -> str:
    return " ".join(str(arg) for arg in args)


class Console:
    """log/info/warn/error, routed to the ``hyperscope.console`` logger."""

    def log(self, *args) -> None:
        logger.info("%s", _join(args))

    info = log

    def warn(self, *args) -> None:
        logger.warning("%s", _join(args))

    def error(self, *args) -> None:
        logger.error("%s", _join(args))


console = Console()
