from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from .delivery import HttpDelivery
from .encoder import EncodingError, encode_payload
from .models import Identity, Record
from .options import Options, resolve_ingestion_key
from .transport import Transport

_logger = logging.getLogger("logdna_client.logger")


class Logger:
  """
  Entry point for shipping log lines.

  Options are validated and defaulted once here; each call to ``log``
  becomes a ``Record`` handed to the transport, which batches and sends in
  the background. Call ``close()`` (or use the logger as a context manager)
  before exiting so buffered lines are sent.
  """

  def __init__(
    self,
    options: Optional[Options] = None,
    key: Optional[str] = None,
    *,
    http_transport: Optional[httpx.BaseTransport] = None,
    max_workers: Optional[int] = None,
  ) -> None:
    opts = options or Options()
    opts.validate()
    self.options = opts.with_defaults()
    self.key = resolve_ingestion_key(key)
    self.identity = Identity(
      hostname=self.options.hostname,
      ip_address=self.options.ip_address,
      mac_address=self.options.mac_address,
      tags=self.options.tags,
    )
    self._delivery = HttpDelivery(
      ingest_url=self.options.ingest_url,
      key=self.key,
      timeout=self.options.send_timeout,
      transport=http_transport,
    )
    self._transport = Transport(
      sender=self._send_batch,
      max_buffer_len=self.options.max_buffer_len,
      flush_interval=self.options.flush_interval,
      max_workers=max_workers,
    )

  def log(self, message: str, options: Optional[Options] = None) -> None:
    """
    Queue a line, optionally overriding app, env, level, meta or timestamp.

    Raises ``InvalidOptionsError`` when the per-message options are invalid.
    """
    resolved = self.options
    if options is not None:
      options.validate()
      resolved = resolved.merge(options)

    self._transport.add(
      Record(
        body=message,
        app=resolved.app,
        env=resolved.env,
        level=resolved.level,
        meta=resolved.meta or None,
        meta_indexed=bool(resolved.index_meta),
        timestamp=resolved.timestamp,
      )
    )

  def log_with_level(self, message: str, level: str) -> None:
    self.log(message, Options(level=level))

  def info(self, message: str) -> None:
    self.log_with_level(message, "info")

  def warn(self, message: str) -> None:
    self.log_with_level(message, "warn")

  def debug(self, message: str) -> None:
    self.log_with_level(message, "debug")

  def error(self, message: str) -> None:
    self.log_with_level(message, "error")

  def fatal(self, message: str) -> None:
    self.log_with_level(message, "fatal")

  def critical(self, message: str) -> None:
    self.log_with_level(message, "critical")

  def close(self) -> None:
    """Send everything buffered and wait for in-flight batches."""
    self._transport.close()

  def __enter__(self) -> "Logger":
    return self

  def __exit__(self, exc_type, exc, tb) -> None:
    self.close()

  def _send_batch(self, batch: List[Record]) -> None:
    try:
      data = encode_payload(batch, self.key, self.identity)
    except EncodingError as exc:
      _logger.error("logdna_client dropping batch of %s records: %s", len(batch), exc)
      return
    self._delivery.send(data)


def new_logger(options: Optional[Options] = None, key: Optional[str] = None) -> Logger:
  """
  Create a logger, failing fast with ``InvalidOptionsError`` on bad options.
  """
  return Logger(options, key)
