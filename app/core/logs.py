import logging
import sys


def setup_logging(level="INFO"):
    """Sets up console logging for the API and CLI."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Silence chatty libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
