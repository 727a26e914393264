from __future__ import annotations

import enum
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import httpx

DEFAULT_ATTEMPTS = 2
DEFAULT_USER_AGENT = "logdna-client-python"

_logger = logging.getLogger("logdna_client.delivery")


class DeliveryOutcome(enum.Enum):
  SUCCESS = "success"
  # Attempts exhausted on connection errors, timeouts or 5xx responses.
  RETRYABLE_FAILURE = "retryable_failure"
  # Rejected by the endpoint (4xx); never retried.
  FATAL_FAILURE = "fatal_failure"


def _user_agent_from_env() -> str:
  return os.getenv("USERAGENT") or DEFAULT_USER_AGENT


@dataclass
class HttpDelivery:
  """
  Posts serialized payloads to the ingest endpoint.

  Each call to ``send`` makes at most ``attempts`` POSTs of the same body.
  Only transport-level errors and 5xx responses are retried. Failures are
  logged and reported through the returned outcome, never raised: a batch
  that still fails after the last attempt is dropped.

  ``timeout`` bounds each attempt as a whole. httpx enforces it per
  connect/read/write phase; the response body is streamed and checked
  against the attempt deadline, so a slowly trickling endpoint is cut off.
  """

  ingest_url: str
  key: str
  timeout: float = 30.0
  attempts: int = DEFAULT_ATTEMPTS
  base_backoff_seconds: float = 0.1
  user_agent: str = field(default_factory=_user_agent_from_env)
  # Injected httpx transport, used by tests to fake the endpoint.
  transport: Optional[httpx.BaseTransport] = None

  def headers(self) -> Dict[str, str]:
    return {
      "Content-Type": "application/json",
      "apikey": self.key,
      "user-agent": self.user_agent,
    }

  def send(self, data: bytes) -> DeliveryOutcome:
    with httpx.Client(timeout=httpx.Timeout(self.timeout), transport=self.transport) as client:
      for attempt in range(1, self.attempts + 1):
        try:
          status, body = self._post(client, data)
        except httpx.HTTPError as exc:
          _logger.warning(
            "logdna_client failed to reach ingest endpoint (attempt %s/%s): %s",
            attempt,
            self.attempts,
            exc,
          )
        else:
          if status >= 500:
            _logger.warning(
              "logdna_client ingest endpoint returned server error %s (attempt %s/%s)",
              status,
              attempt,
              self.attempts,
            )
          elif status >= 400:
            _logger.error(
              "logdna_client ingest endpoint rejected batch with status %s: %s",
              status,
              body.decode("utf-8", errors="replace"),
            )
            return DeliveryOutcome.FATAL_FAILURE
          else:
            return DeliveryOutcome.SUCCESS

        if attempt < self.attempts and self.base_backoff_seconds > 0:
          time.sleep(self.base_backoff_seconds * attempt)

    _logger.error(
      "logdna_client dropping batch after %s failed attempts to %s",
      self.attempts,
      self.ingest_url,
    )
    return DeliveryOutcome.RETRYABLE_FAILURE

  def _post(self, client: httpx.Client, data: bytes) -> Tuple[int, bytes]:
    deadline = time.monotonic() + self.timeout
    with client.stream("POST", self.ingest_url, content=data, headers=self.headers()) as response:
      self._check_deadline(deadline, response.request)
      body = bytearray()
      for chunk in response.iter_bytes():
        body.extend(chunk)
        self._check_deadline(deadline, response.request)
      return response.status_code, bytes(body)

  def _check_deadline(self, deadline: float, request: httpx.Request) -> None:
    if time.monotonic() > deadline:
      raise httpx.ReadTimeout(
        f"send timeout of {self.timeout}s exceeded",
        request=request,
      )
