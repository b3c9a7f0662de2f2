from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from grooming_backup.config.loader import AppConfig, ConfigError, ImportSettings, load_config
from grooming_backup.db.connection import ConnectionProvider
from grooming_backup.logging.error_log import ErrorLogBuffer
from grooming_backup.logging.init import log_summary, setup_logging
from grooming_backup.services.backup_service import BackupService
from grooming_backup.services.exporter import ExportError
from grooming_backup.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- export [--output DIR]                  write the backup workbook
- preview FILE [--json]                  parse + validate a workbook, no storage access
- restore FILE [--yes] [--no-partial]    preview then import in one transaction
- clear --yes                            delete all mutable tables

Exit codes: 0 all good, 2 partial failure (some rows or diagnostics), 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True lets .env values win over the existing environment, so the
    connection settings in .env take precedence.
    """
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="grooming-backup", description="Grooming salon backup / restore")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config file (default config/backup.yml)")
    sub = p.add_subparsers(dest="command", required=True)

    exp = sub.add_parser("export", help="Export all mutable tables to an xlsx workbook")
    exp.add_argument("--output", type=Path, default=Path("."), help="Target directory")

    prev = sub.add_parser("preview", help="Preview and validate a backup workbook")
    prev.add_argument("file", type=Path)
    prev.add_argument("--json", action="store_true", help="Print the preview body as JSON")

    res = sub.add_parser("restore", help="Import a backup workbook")
    res.add_argument("file", type=Path)
    res.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    res.add_argument("--no-partial", action="store_true", help="Roll back everything if any row fails")

    clr = sub.add_parser("clear", help="Delete all mutable tables")
    clr.add_argument("--yes", action="store_true", help="Required: confirm deletion")
    return p.parse_args(argv)


def _build_provider(cfg: AppConfig) -> Any:
    return ConnectionProvider.from_config(cfg.database)


def _read_file(path: Path, logger: Any) -> bytes | None:
    if not path.exists():
        logger.error(f"file not found: {path}")
        return None
    return path.read_bytes()


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _log_diagnostics(body: dict[str, Any], logger: Any) -> int:
    results = body.get("validationResults", [])
    for result in results:
        for error in result["errors"]:
            logger.warning(
                f"{result['table']} row {result['rowNumber']}: {error['field']}: {error['error']}"
            )
    for sheet in body.get("skippedSheets", []):
        logger.info(f"skipped sheet: {sheet}")
    if body.get("missingSheets"):
        logger.info(f"missing sheets: {', '.join(body['missingSheets'])}")
    return len(results)


def _cmd_export(service: BackupService, args: argparse.Namespace, logger: Any) -> int:
    try:
        exported = service.export()
    except ExportError as e:
        logger.error(str(e))
        return EXIT_FATAL
    args.output.mkdir(parents=True, exist_ok=True)
    target = args.output / exported.filename
    target.write_bytes(exported.content)
    rows = sum((exported.row_counts or {}).values())
    logger.info(f"backup written: {target}")
    log_summary(f"export file={exported.filename} rows={rows}")
    return EXIT_SUCCESS_ALL


def _cmd_preview(service: BackupService, args: argparse.Namespace, logger: Any) -> int:
    content = _read_file(args.file, logger)
    if content is None:
        return EXIT_FATAL
    status, body = service.preview(content)
    if status != 200:
        logger.error(f"{body.get('error')}: {body.get('details', '')}")
        return EXIT_FATAL
    if args.json:
        print(json.dumps(body, ensure_ascii=False, indent=2, default=str))
    invalid = _log_diagnostics(body, logger)
    rows = sum(len(r) for r in body["preview"].values())
    log_summary(f"preview tables={len(body['preview'])} rows={rows} invalid_rows={invalid}")
    return EXIT_PARTIAL_FAILURE if invalid else EXIT_SUCCESS_ALL


def _cmd_restore(service: BackupService, args: argparse.Namespace, logger: Any) -> int:
    content = _read_file(args.file, logger)
    if content is None:
        return EXIT_FATAL
    status, body = service.preview(content)
    if status != 200:
        logger.error(f"{body.get('error')}: {body.get('details', '')}")
        return EXIT_FATAL
    invalid = _log_diagnostics(body, logger)
    if not args.yes and not _confirm(f"Import {args.file.name} ({invalid} rows with diagnostics)?"):
        service.staging.clear()
        logger.info("restore cancelled")
        return EXIT_FATAL

    error_log = service.error_log
    status, body = service.restore()
    kinds = error_log.counts_by_kind() if error_log is not None else {}
    log_path = error_log.flush() if error_log is not None else None
    if log_path is not None:
        counts = " ".join(f"{k}={n}" for k, n in sorted(kinds.items()))
        logger.info(f"error log written: {log_path} ({counts})")

    if status == 400:
        logger.error(body["error"])
        return EXIT_FATAL
    logger.info(body["message"])
    if status == 500:
        logger.error(body.get("error", "transaction failed"))
    if service.last_outcome is not None:
        summary_line = render_summary_line(service.last_outcome)
        # log_summary adds the "SUMMARY " prefix itself
        log_summary(summary_line[len("SUMMARY "):])
    if status == 500:
        return EXIT_FATAL
    return EXIT_SUCCESS_ALL if body["status"] == "success" else EXIT_PARTIAL_FAILURE


def _cmd_clear(service: BackupService, args: argparse.Namespace, logger: Any) -> int:
    if not args.yes:
        logger.error("refusing to clear the database without --yes")
        return EXIT_FATAL
    status, body = service.clear()
    if status != 200:
        logger.error(f"{body['error']}: {body['details']}")
        return EXIT_FATAL
    log_summary(body["message"])
    return EXIT_SUCCESS_ALL


_COMMANDS = {
    "export": _cmd_export,
    "preview": _cmd_preview,
    "restore": _cmd_restore,
    "clear": _cmd_clear,
}


def main(argv: list[str] | None = None) -> int:
    # None only -> read sys.argv (an explicit [] must not pick up pytest's arguments)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # preview --json owns stdout
    json_out = getattr(args, "json", False)
    logger = setup_logging(debug=args.debug, stream=sys.stderr if json_out else sys.stdout)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if getattr(args, "no_partial", False):
        cfg = replace(cfg, import_settings=ImportSettings(commit_partial=False))

    provider = None
    if args.command != "preview":
        provider = _build_provider(cfg)
    service = BackupService(provider, cfg, error_log=ErrorLogBuffer(cfg.logs_directory))
    try:
        return _COMMANDS[args.command](service, args, logger)
    finally:
        close = getattr(provider, "close", None)
        if close is not None:
            close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
