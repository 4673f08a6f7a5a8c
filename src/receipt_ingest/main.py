import argparse
import mimetypes
import os
import sys

from receipt_ingest.app import create_pipeline
from receipt_ingest.core import configuration, settings
from receipt_ingest.integration.storage import DirectoryDocumentStore
from receipt_ingest.logger import get_logger, setup_logging
from receipt_ingest.models import PipelineStage

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILED = 2


class LogProgress:
    def on_progress(self, stage: PipelineStage, percent: float) -> None:
        logger.info("[PIPELINE] %s (%.0f%%)", stage.value, percent)


def guess_mime_type(path: str) -> str | None:
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="receipt-ingest",
        description="Extract transactions from receipt images and bank-statement PDFs.",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL for this run.")
    commands = parser.add_subparsers(dest="command", required=True)

    process = commands.add_parser("process", help="Run the pipeline on one file and print JSON.")
    process.add_argument("file", help="Receipt image or PDF statement.")
    process.add_argument("--mime-type", help="MIME type; guessed from the file name when omitted.")
    process.add_argument(
        "--store",
        metavar="DIR",
        nargs="?",
        const=os.path.join(settings.DATA_DIR, "documents"),
        help="Keep a copy of the upload in DIR (DATA_DIR/documents when DIR is omitted).",
    )
    process.add_argument("--pretty", action="store_true", help="Indent the JSON output.")

    config = commands.add_parser("config", help="Manage config.yaml.")
    config_commands = config.add_subparsers(dest="config_command", required=True)
    init = config_commands.add_parser("init", help="Write a commented config.yaml template.")
    init.add_argument("--path", help="Target file (defaults to the resolved config path).")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file.")
    check = config_commands.add_parser("check", help="Validate config.yaml values.")
    check.add_argument("--path", help="File to check (defaults to the resolved config path).")
    set_value = config_commands.add_parser("set", help="Set one value in config.yaml.")
    set_value.add_argument("key", choices=configuration.get_config_keys())
    set_value.add_argument("value")
    set_value.add_argument("--path", help="Target file (defaults to the resolved config path).")
    return parser


def run_process(args: argparse.Namespace) -> int:
    mime_type = args.mime_type or guess_mime_type(args.file)
    try:
        with open(args.file, "rb") as handle:
            data = handle.read()
    except OSError as e:
        logger.error("Cannot read %s: %s", args.file, e)
        return EXIT_USAGE

    settings.log_environment()
    store = DirectoryDocumentStore(args.store) if args.store else None
    pipeline = create_pipeline(store=store, listener=LogProgress())
    result = pipeline.process(data, mime_type or "")

    print(result.model_dump_json(indent=2 if args.pretty else None))
    return EXIT_OK if result.ok else EXIT_FAILED


def run_config(args: argparse.Namespace) -> int:
    if args.config_command == "init":
        try:
            path = configuration.write_config_template(args.path, overwrite=args.force)
        except FileExistsError as e:
            logger.error("%s already exists. Use --force to overwrite.", e)
            return EXIT_USAGE
        print(path)
        return EXIT_OK

    if args.config_command == "check":
        errors = configuration.check_config_file(args.path)
        if errors:
            for key, error in errors.items():
                print(f"{key}: {error}")
            return EXIT_FAILED
        print("OK")
        return EXIT_OK

    try:
        path = configuration.set_config_value(args.key, args.value, args.path)
    except ValueError as e:
        logger.error("%s", e)
        return EXIT_USAGE
    print(path)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "process":
        return run_process(args)
    return run_config(args)


if __name__ == "__main__":
    sys.exit(main())
