#!/usr/bin/env python3
"""
zeplin-sync CLI：Zeplin 專案 metadata 與資產下載

  python -m zeplin_sync.cli pull -p PROJECT_ID                 # metadata + 資產
  python -m zeplin_sync.cli pull -p PROJECT_ID -s SCREEN_ID    # 只處理單一畫面
  python -m zeplin_sync.cli pull -p PROJECT_ID --metadata-only # 只建 metadata.json
"""

import argparse
import sys

from zeplin_sync import __version__

from .config import DEFAULT_CONFIG_PATH, config_section, export_settings, load_config, load_env, resolve_token
from .naming import FILENAME_SCHEMES
from .pipeline import (
    DEFAULT_DENSITIES,
    DEFAULT_FORMATS,
    SyncError,
    SyncOptions,
    save_outputs,
    sync_project,
)
from .zeplin_client import ZeplinAPIClient


def build_options(args, config: dict) -> SyncOptions:
    """CLI 參數 > config 檔 > 預設值；config 中無效的值（已警告過）一律回到預設."""
    export = export_settings(config)
    project_id = args.project_id or config_section(config, "zeplin").get("projectId")
    return SyncOptions(
        project_id=project_id,
        screen_id=args.screen_id,
        metadata_only=args.metadata_only,
        formats=args.formats or export.get("formats") or list(DEFAULT_FORMATS),
        densities=args.densities or export.get("densities") or list(DEFAULT_DENSITIES),
        output_dir=args.directory or export.get("outputDir"),
        batch_size=export.get("batchSize") or 30,
        concurrency=export.get("concurrency") or 20,
        filename_scheme=args.filename_scheme or export.get("filenameScheme") or "tags",
        snapshots=args.snapshots or bool(export.get("snapshots")),
        clean=args.clean,
        show_progress=not args.no_progress,
    )


def _report_sync_error(e: SyncError, project_id: str) -> None:
    if e.status in (401, 403):
        print("❌ Zeplin API 401/403：Token 無效或已過期，請重新產生 PERSONAL_ACCESS_TOKEN。")
    elif e.status == 404:
        print(f"❌ Zeplin API 404：找不到專案 '{project_id}'，請確認 project id 是否正確。")
    else:
        print(f"❌ Sync failed: {e}")


def cmd_pull(args, config: dict) -> int:
    """Pull: Zeplin → metadata.json + 資產檔案."""
    token = resolve_token(config)
    if not token:
        print("❌ 請設定 PERSONAL_ACCESS_TOKEN 環境變數（可放在 .env），或在 config 的 zeplin.personalAccessToken 設定。")
        print("   取得方式：Zeplin → Profile → Developer → Personal access tokens")
        return 1

    options = build_options(args, config)
    if not options.project_id:
        print("❌ 請使用 --projectId 或在 config 的 zeplin.projectId 設定專案 id。")
        return 1

    print(f"📥 Pulling Zeplin project: {options.project_id}")
    if options.screen_id:
        print(f"   Screen filter: {options.screen_id}")
    if options.metadata_only:
        print("   Metadata only: 不下載資產")

    client = ZeplinAPIClient(token)
    try:
        ctx = sync_project(client, options)
        paths = save_outputs(ctx)
    except SyncError as e:
        _report_sync_error(e, options.project_id)
        return 1
    except OSError as e:
        print(f"❌ 無法寫出輸出檔案：{e}")
        return 1

    stats = ctx.tree.stats()
    print(f"   ✅ {stats['screens']} screens, {stats['layers']} layers, {stats['assets']} assets")
    if not options.metadata_only:
        print(f"   ✅ Downloaded {ctx.downloads['ok']} files ({ctx.downloads['failed']} failed)")
    if len(ctx.log):
        print(f"   📝 {len(ctx.log)} log entries → {paths['log']}")
    print(f"   📄 Metadata saved to {paths['metadata']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zeplin-sync",
        description="zeplin-sync: Zeplin project metadata & asset download",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config path")
    parser.add_argument("--env-file", default=".env", help="dotenv file with PERSONAL_ACCESS_TOKEN")
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    pull_p = sub.add_parser("pull", help="Zeplin → metadata.json + assets",
        epilog="Examples:\n  zeplin-sync pull -p 5f1e...\n  zeplin-sync pull -p 5f1e... -s 60a2... --metadata-only\n  zeplin-sync pull -p 5f1e... -f png svg -e 1 2",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    pull_p.add_argument("-p", "--projectId", dest="project_id", help="Project ID")
    pull_p.add_argument("-s", "--screenId", dest="screen_id", help="Screen ID (optional)")
    pull_p.add_argument("--metadata-only", "--metadataOnly", dest="metadata_only", action="store_true",
                        help="Download metadata only (no assets)")
    pull_p.add_argument("-f", "--formats", nargs="+", help=f"Formats to download (default: {' '.join(DEFAULT_FORMATS)})")
    pull_p.add_argument("-e", "--densities", nargs="+", help=f"Densities to download (default: {' '.join(DEFAULT_DENSITIES)})")
    pull_p.add_argument("-d", "--directory", help="Output directory (default: '<project name>__assets')")
    pull_p.add_argument("--filename-scheme", choices=FILENAME_SCHEMES, help="Asset filename convention")
    pull_p.add_argument("--snapshots", action="store_true", help="Also download each screen's snapshot image")
    pull_p.add_argument("--clean", action="store_true", help="Remove the output directory before syncing")
    pull_p.add_argument("--no-progress", action="store_true", help="Hide the download progress bar")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_env(args.env_file)
    config = load_config(args.config)

    if args.command == "pull":
        return cmd_pull(args, config)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
