from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from nextnative.config import settings

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def parse_global_args() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog='nextnative', description='Next.js to React Native converter CLI')
  sub = parser.add_subparsers(dest='command', required=True)

  p_convert = sub.add_parser('convert', help='Convert a Next.js project into React Native sources')
  p_convert.add_argument('--src', required=True)
  p_convert.add_argument('--out', required=True)
  p_convert.add_argument('--resume', action='store_true', help='Skip files completed by a previous run')
  p_convert.add_argument('--offline', action='store_true', help='Never call the generation backend')
  p_convert.add_argument('--concurrency', type=int, default=2)
  p_convert.add_argument('--json', action='store_true')

  p_validate = sub.add_parser('validate', help='Score a converted file')
  p_validate.add_argument('file')
  p_validate.add_argument('--json', action='store_true')

  p_resolve = sub.add_parser('resolve', help='Apply fixes for a build or runtime error log')
  p_resolve.add_argument('--errors', required=True, help='File holding the error transcript')
  p_resolve.add_argument('--file', required=True, help='Converted source file to fix in place')
  p_resolve.add_argument('--install', action='store_true', help='Allow npm/yarn installs')
  p_resolve.add_argument('--project', help='Project directory used for installs')
  p_resolve.add_argument('--offline', action='store_true')

  return parser


def build_scheduler(offline: bool):
  if offline or not settings.gemini_api_key:
    return None
  from nextnative.ai.scheduler import RateLimitedScheduler
  return RateLimitedScheduler()


def build_client(scheduler):
  if scheduler is None:
    return None
  from nextnative.ai.clients import GeminiClient
  return GeminiClient(scheduler)


def build_event_logger():
  from nextnative.logging.event_logger import EventLogger
  settings.ensure_directories()
  return EventLogger(settings.log_dir)


async def _convert(src: Path, out: Path, ns: argparse.Namespace) -> Dict[str, Any]:
  from nextnative.conversion.batch import BatchConverter
  from nextnative.conversion.pipeline import PipelineOrchestrator
  from nextnative.conversion.progress import ProgressManager
  from nextnative.conversion.project import load_project

  event_logger = build_event_logger()
  context = load_project(src)
  scheduler = build_scheduler(ns.offline)
  if scheduler is None and not ns.offline:
    logger.warning('GEMINI_API_KEY is not set; running offline')
  client = build_client(scheduler)
  orchestrator = PipelineOrchestrator(client=client, event_logger=event_logger)
  batch = BatchConverter(
    orchestrator,
    ProgressManager(src, out),
    src,
    out,
    concurrency=ns.concurrency,
    event_logger=event_logger
  )
  try:
    if scheduler is not None:
      await scheduler.open()
    report = await batch.run(context, resume=ns.resume)
  finally:
    if scheduler is not None:
      await scheduler.close()
    if client is not None:
      await client.aclose()
  return report.to_dict()


def cmd_convert(ns: argparse.Namespace) -> int:
  src = Path(ns.src).expanduser().resolve()
  out = Path(ns.out).expanduser().resolve()
  if not src.exists() or not src.is_dir():
    print('Project path does not exist or is not a directory.', file=sys.stderr)
    return 2
  out.mkdir(parents=True, exist_ok=True)
  try:
    payload = asyncio.run(_convert(src, out, ns))
  except KeyboardInterrupt:
    print('Conversion interrupted; rerun with --resume to continue.', file=sys.stderr)
    return 130
  if ns.json:
    print(json.dumps(payload, indent=2))
  else:
    converted = payload['converted']
    ready = sum(1 for item in converted if item['is_production_ready'])
    print(f"Converted: {len(converted)}  Production ready: {ready}  Copied: {len(payload['copied'])}  Failed: {len(payload['failed'])}")
    for name, version in payload['dependencies'].items():
      print(f'  {name}@{version}')
  return 1 if payload['failed'] else 0


def cmd_validate(file: str, as_json: bool) -> int:
  from nextnative.quality.validator import group_advisories, validate
  path = Path(file)
  if not path.is_file():
    print('File does not exist.', file=sys.stderr)
    return 2
  report = validate(path.read_text(encoding='utf-8'), path.name)
  if as_json:
    print(json.dumps(report.summary(), indent=2))
  else:
    print(f'Score: {report.score}%  Production ready: {report.is_production_ready}')
    for issue in report.blocking_issues:
      print(f'  [blocking] {issue.message}')
    for group, issues in group_advisories(report.advisories).items():
      for issue in issues:
        print(f'  [{group}] {issue.message}')
  return 0 if report.is_production_ready else 1


async def _resolve(error_text: str, code: str, filename: str, project: Optional[Path], ns: argparse.Namespace):
  from nextnative.conversion.error_resolver import ErrorPatternResolver
  from nextnative.conversion.installer import NpmInstaller

  scheduler = build_scheduler(ns.offline)
  client = build_client(scheduler)
  resolver = ErrorPatternResolver(
    client=client,
    installer=NpmInstaller() if ns.install else None,
    event_logger=build_event_logger()
  )
  try:
    if scheduler is not None:
      await scheduler.open()
    return await resolver.resolve(error_text, code, filename, project)
  finally:
    if scheduler is not None:
      await scheduler.close()
    if client is not None:
      await client.aclose()


def cmd_resolve(ns: argparse.Namespace) -> int:
  errors_path = Path(ns.errors)
  file_path = Path(ns.file)
  if not errors_path.is_file() or not file_path.is_file():
    print('Error log or source file does not exist.', file=sys.stderr)
    return 2
  project = Path(ns.project).expanduser().resolve() if ns.project else None
  code = file_path.read_text(encoding='utf-8')
  report = asyncio.run(_resolve(errors_path.read_text(encoding='utf-8'), code, file_path.name, project, ns))
  if report.fixed_code != code:
    file_path.write_text(report.fixed_code, encoding='utf-8')
  print(json.dumps(report.to_dict(), indent=2))
  return 1 if report.has_unresolved_errors else 0


def main(argv: Optional[list] = None) -> int:
  parser = parse_global_args()
  ns = parser.parse_args(argv)
  cmd = ns.command
  if cmd == 'convert':
    return cmd_convert(ns)
  if cmd == 'validate':
    return cmd_validate(ns.file, ns.json)
  if cmd == 'resolve':
    return cmd_resolve(ns)
  return 1


if __name__ == '__main__':
  raise SystemExit(main())
