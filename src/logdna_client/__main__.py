from __future__ import annotations

import argparse
import sys
from typing import Iterable, List, NoReturn, Optional

from .logger import Logger
from .options import InvalidOptionsError, Options


def _build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="python -m logdna_client",
    description="Ship log lines to a LogDNA ingest endpoint.",
  )
  subparsers = parser.add_subparsers(dest="command", required=True)

  send = subparsers.add_parser("send", help="Send messages (or stdin lines) and wait for delivery")
  send.add_argument("messages", nargs="*", help="Lines to send; read from stdin when omitted")
  send.add_argument("--key", help="Ingestion key (default: LOGDNA_INGESTION_KEY)")
  send.add_argument("--ingest-url", help="Ingest endpoint URL")
  send.add_argument("--level", help="Level for every line")
  send.add_argument("--app", help="App name for every line")
  send.add_argument("--env", help="Environment for every line")
  send.add_argument("--hostname", help="Hostname reported with the batch")
  send.add_argument("--tags", help="Comma-separated tags")
  send.add_argument("--meta", help="Meta JSON text attached to every line")
  send.add_argument(
    "--index-meta",
    action="store_true",
    default=None,
    help="Embed meta as a JSON value instead of a string",
  )
  return parser


def _lines(messages: List[str]) -> Iterable[str]:
  if messages:
    return messages
  return (line.rstrip("\n") for line in sys.stdin if line.strip())


def _run_send(args: argparse.Namespace) -> int:
  try:
    options = Options.from_params_or_env(
      ingest_url=args.ingest_url,
      level=args.level,
      app=args.app,
      env=args.env,
      hostname=args.hostname,
      tags=args.tags,
      meta=args.meta,
      index_meta=args.index_meta,
    )
    client = Logger(options, args.key)
  except InvalidOptionsError as exc:
    print(f"Invalid options: {exc}", file=sys.stderr)
    return 2

  count = 0
  with client:
    for line in _lines(args.messages):
      client.log(line)
      count += 1

  print(f"Sent {count} line(s) to {client.options.ingest_url}")
  return 0


def main(argv: Optional[List[str]] = None) -> NoReturn:
  args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)
  if args.command == "send":
    sys.exit(_run_send(args))
  sys.exit(1)


if __name__ == "__main__":
  main()
