from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from logging import Handler, LogRecord
from typing import Optional

from .logger import Logger
from .options import Options
from .transport import THREAD_NAME_PREFIX

# Standard logging level names that differ from the ingest level strings.
_LEVEL_NAMES = {
  "WARNING": "warn",
}

# Loggers on the send path; their records are never shipped.
_SEND_PATH_LOGGERS = ("logdna_client", "httpx", "httpcore")


class _SkipOwnRecords(logging.Filter):
  """Keep the client's own diagnostics out of the shipped stream."""

  def filter(self, record: LogRecord) -> bool:
    name = record.name
    for prefix in _SEND_PATH_LOGGERS:
      if name == prefix or name.startswith(prefix + "."):
        return False
    return not (record.threadName or "").startswith(THREAD_NAME_PREFIX)


class LogDNAHandler(Handler):
  """
  Logging handler that forwards records to a ``Logger``.

  The record's ``created`` time becomes the line timestamp. Structured meta
  can be attached with ``extra={"meta": {...}}``; strings are passed as-is,
  anything else is serialized to JSON first. ``index_meta`` left as ``None``
  keeps the client's own setting.

  Records from the client's own loggers, from httpx and from the client's
  threads are dropped, otherwise every send (or failed send) would queue
  another line to send.
  """

  def __init__(self, client: Logger, index_meta: Optional[bool] = None) -> None:
    super().__init__()
    self.client = client
    self._index_meta = index_meta
    self.addFilter(_SkipOwnRecords())

  def emit(self, record: LogRecord) -> None:
    try:
      # The default formatter already appends any exception traceback.
      message = self.format(record)
      options = Options(
        level=_LEVEL_NAMES.get(record.levelname, record.levelname.lower()),
        timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
      )
      meta = getattr(record, "meta", None)
      if meta is not None:
        options = replace(
          options,
          meta=meta if isinstance(meta, str) else json.dumps(meta, default=str),
          index_meta=self._index_meta,
        )

      self.client.log(message, options)
    except Exception:
      # Never break application logging.
      self.handleError(record)

  def close(self) -> None:
    try:
      self.client.close()
    finally:
      super().close()


def setup_logging(
  logger: Optional[logging.Logger] = None,
  *,
  key: Optional[str] = None,
  options: Optional[Options] = None,
  index_meta: Optional[bool] = None,
) -> Logger:
  """
  Attach a ``LogDNAHandler`` to a standard library logger.

  Existing handlers are kept. When the logger already has a LogDNA handler
  its client is returned and nothing new is attached. Options default to
  ``Options.from_params_or_env()``.
  """
  target_logger = logger or logging.getLogger()

  # Avoid attaching duplicate client handlers to the same logger.
  for existing in target_logger.handlers:
    if isinstance(existing, LogDNAHandler):
      return existing.client

  client = Logger(options or Options.from_params_or_env(), key)
  handler = LogDNAHandler(client, index_meta=index_meta)
  target_logger.addHandler(handler)
  return client
