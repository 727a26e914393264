from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from .models import Record

BatchSender = Callable[[List[Record]], None]

THREAD_NAME_PREFIX = "logdna-client-"

_logger = logging.getLogger("logdna_client.transport")


class Transport:
  """
  In-process buffer that batches records and hands them to a sender.

  A flush is triggered when the buffer reaches ``max_buffer_len``, every
  ``flush_interval`` seconds from a background thread, and once more on
  ``close()``. Flushing swaps the buffer for an empty list under the lock
  and submits the extracted batch to a thread pool, so ``add`` never waits
  on the network. The pool doubles as the join point for ``close()``.

  Batches submitted concurrently may reach the sender in any order; records
  inside one batch always keep the order in which ``add`` appended them.
  """

  def __init__(
    self,
    sender: BatchSender,
    max_buffer_len: int = 50,
    flush_interval: float = 0.25,
    max_workers: Optional[int] = None,
  ) -> None:
    self._sender = sender
    self._max_buffer_len = max_buffer_len
    self._flush_interval = flush_interval
    self._buffer: List[Record] = []
    self._lock = threading.Lock()
    self._done = threading.Event()
    self._executor = ThreadPoolExecutor(
      max_workers=max_workers, thread_name_prefix=THREAD_NAME_PREFIX + "send"
    )
    self._thread = threading.Thread(
      target=self._run, name=THREAD_NAME_PREFIX + "flush", daemon=True
    )
    self._thread.start()

  def add(self, record: Record) -> None:
    """
    Append a record, flushing when the buffer is full.

    Must not be called after ``close()``.
    """
    flushed = 0
    with self._lock:
      self._buffer.append(record)
      if len(self._buffer) >= self._max_buffer_len:
        flushed = self._flush_locked()
    self._log_flush(flushed)

  def flush(self) -> None:
    with self._lock:
      flushed = self._flush_locked()
    self._log_flush(flushed)

  def close(self) -> None:
    """
    Flush what is left, stop the interval thread and wait for every send.

    In-flight sends are not cancelled. Not idempotent.
    """
    self.flush()
    self._done.set()
    self._thread.join()
    self._executor.shutdown(wait=True)

  def _flush_locked(self) -> int:
    batch, self._buffer = self._buffer, []
    if batch:
      self._executor.submit(self._send, batch)
    return len(batch)

  def _log_flush(self, count: int) -> None:
    # Never log while holding the lock: a handler may call back into add().
    if count:
      _logger.debug("logdna_client flushed batch of %s records", count)

  def _send(self, batch: List[Record]) -> None:
    try:
      self._sender(batch)
    except Exception:
      _logger.exception("logdna_client sender failed; dropping %s records", len(batch))

  def _run(self) -> None:
    while not self._done.wait(self._flush_interval):
      self.flush()
