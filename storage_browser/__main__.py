"""Module entry point for the storage browser."""
import argparse
import json
import logging
import sys
import threading

from .controller import StorageController
from .errors import StorageError
from .file_utils import format_size, load_package_info
from .presenter import StoragePresenter
from .profiles import ProfileStorage
from .settings import SettingsStorage
from .web import create_app, serialize_listing

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    info = load_package_info()
    parser = argparse.ArgumentParser(prog="storage_browser", description=info.summary)
    parser.add_argument("--version", action="version", version=f"%(prog)s {info.version or 'dev'}")
    parser.add_argument("--profiles", help="path to the saved storages file")
    parser.add_argument("--settings", help="path to the settings file")
    parser.add_argument("--log-level", help="override the configured log level")
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="list one directory level of a storage")
    list_cmd.add_argument("storage_id", type=int)
    list_cmd.add_argument("prefix", nargs="?", default="")
    list_cmd.add_argument("--token", help="continuation token from a previous page")

    stats_cmd = commands.add_parser("stats", help="summarize the usage of a whole storage")
    stats_cmd.add_argument("storage_id", type=int)
    stats_cmd.add_argument("--json", action="store_true", help="print the raw statistics payload")

    serve_cmd = commands.add_parser("serve", help="run the HTTP API")
    serve_cmd.add_argument("--config", required=True, help="JSON file with the app configuration")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8080)
    return parser


def run_stats(presenter: StoragePresenter, storage_id: int, as_json: bool) -> int:
    done = threading.Event()
    cancel = threading.Event()
    outcome: dict[str, object] = {}

    presenter.collect_statistics(
        storage_id=storage_id,
        on_success=lambda stats: outcome.update(stats=stats),
        on_error=lambda message: outcome.update(error=message),
        on_cancelled=lambda message: outcome.update(error=message),
        on_done=done.set,
        cancel_requested=cancel.is_set,
    )
    try:
        while not done.wait(0.2):
            pass
    except KeyboardInterrupt:
        cancel.set()
        done.wait()

    if "error" in outcome:
        print(f"error: {outcome['error']}", file=sys.stderr)
        return 1
    stats = outcome["stats"]
    if as_json:
        print(json.dumps({"stats": stats.to_dict()}, indent=2))
        return 0
    print(f"files:   {stats.file_count}")
    print(f"folders: {stats.folder_count}")
    print(f"size:    {format_size(stats.total_size_bytes)}")
    for extension, bucket in sorted(
        stats.type_distribution.items(), key=lambda item: -item[1].total_size_bytes
    ):
        print(f"  {extension:<16} {bucket.count:>8}  {format_size(bucket.total_size_bytes)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = SettingsStorage(args.settings).load()
    level = (args.log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    controller = StorageController(ProfileStorage(args.profiles), settings)

    if args.command == "stats":
        return run_stats(StoragePresenter(controller=controller), args.storage_id, args.json)

    if args.command == "list":
        try:
            listing = controller.list_objects(
                args.storage_id,
                prefix=args.prefix,
                continuation_token=args.token,
            )
        except (StorageError, ValueError) as exc:
            LOGGER.debug("Listing failed", exc_info=True)
            print(f"error: {exc}", file=sys.stderr)
            return 1
        print(json.dumps(serialize_listing(listing), indent=2))
        return 0

    with open(args.config, encoding="utf-8") as fd:
        config = json.load(fd)
    create_app(config, controller).run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
