import logging
from os import getenv

from rich.logging import RichHandler

logging.basicConfig(
    level=getenv("REPOGEN_LOG_LEVEL", "INFO").upper(),
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            rich_tracebacks=True,
        )
    ],
)
logging.getLogger("gnupg").setLevel(logging.WARNING)
