import argparse
import locale
import logging
from pathlib import Path
import sys

from PySide6.QtCore import QCoreApplication

from pathdeck.ops.search_worker import SearchEngine, SearchFilters
from pathdeck.state.listing import DirectoryListing
from pathdeck.utils.config import ConfigStore
from pathdeck.utils.locations import read_default_locations


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    config = ConfigStore()
    _setup_logging(config)
    _setup_collation()
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("pathdeck")

    locations = read_default_locations(config)
    start = Path(args.path).expanduser() if args.path else locations.home
    show_hidden = args.hidden or config.get_bool("show_hidden", False)

    if args.search:
        return _run_search(app, start, args.search, show_hidden)
    return _run_listing(app, start, show_hidden, config)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pathdeck", description="List or search a directory.")
    parser.add_argument("path", nargs="?", help="Directory to open (default: home)")
    parser.add_argument("--search", metavar="QUERY", help="Search names below the directory")
    parser.add_argument("--hidden", action="store_true", help="Include hidden entries")
    return parser.parse_args(argv)


def _run_listing(app: QCoreApplication, start: Path, show_hidden: bool, config: ConfigStore) -> int:
    listing = DirectoryListing(show_hidden=show_hidden, refresh_delay_ms=config.refresh_delay_ms())
    listing.loadingChanged.connect(lambda loading: app.quit() if not loading else None)
    listing.navigate(start)
    app.exec()
    if listing.error:
        print(listing.error, file=sys.stderr)
        return 1
    for entry in listing.entries:
        marker = "/" if entry.is_dir else ""
        print(f"{entry.display_size():>10}  {entry.modified:%Y-%m-%d %H:%M}  {entry.name}{marker}")
    return 0


def _run_search(app: QCoreApplication, start: Path, query: str, show_hidden: bool) -> int:
    engine = SearchEngine()
    engine.searchFinished.connect(lambda _count: app.quit())
    engine.search(start, query, filters=SearchFilters(include_hidden=show_hidden))
    if engine.is_searching:
        app.exec()
    if engine.last_error:
        print(engine.last_error, file=sys.stderr)
        return 1
    for entry in engine.results:
        print(entry.path)
    return 0


def _setup_collation() -> None:
    # Name ordering goes through locale.strxfrm.
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logging.getLogger(__name__).warning("Using default collation: %s", exc)


def _setup_logging(config: ConfigStore) -> None:
    log_dir = Path.home() / ".cache/pathdeck/logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "pathdeck.log"
    debug = config.get_bool("debug_logging", False)
    handlers: list[logging.Handler] = [logging.FileHandler(log_path)]
    if debug:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=handlers,
    )


if __name__ == "__main__":
    sys.exit(main())
