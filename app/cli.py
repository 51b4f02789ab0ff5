import argparse
import logging
import sys

from core.config import LOG_LEVEL, load_settings
from core.errors import CatalogError
from core.logs import setup_logging
from db.init import open_store
from db.movie_repo import clear_movies
from scanner.scan_movies import run_scan
from scanner.snapshot import delete_snapshot


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Movie Catalog: scan the library or reset the catalog")
    p.add_argument("command", choices=["scan", "reset"], help="scan the media directory, or clear the catalog")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def reset(settings):
    with open_store(settings) as store:
        clear_movies(store)
    if delete_snapshot(settings.snapshot_path):
        logging.info("Snapshot file deleted")
    logging.info("Movie_Info table has been cleared.")


def run(command, settings):
    if command == "scan":
        result = run_scan(settings)
        logging.info(f"Scan complete: {result.counts()}")
    else:
        reset(settings)


def main(argv=None):
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else LOG_LEVEL)

    try:
        run(args.command, load_settings())
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except CatalogError:
        logging.exception(f"Fatal error during {args.command}.")
        sys.exit(1)


if __name__ == "__main__":
    main()
