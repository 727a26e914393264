import logging
import time

import httpx

from logdna_client.delivery import DeliveryOutcome, HttpDelivery

from conftest import FakeIngest


def _delivery(endpoint, **kwargs) -> HttpDelivery:
  return HttpDelivery(
    ingest_url="http://ingest.test/logs/ingest",
    key="abc123",
    base_backoff_seconds=0.0,
    transport=endpoint.transport if isinstance(endpoint, FakeIngest) else endpoint,
    **kwargs,
  )


def test_successful_post_sends_headers_and_body(monkeypatch):
  monkeypatch.setenv("USERAGENT", "orders-service/1.0")
  endpoint = FakeIngest()

  outcome = _delivery(endpoint).send(b'{"apikey":"abc123","lines":[]}')

  assert outcome is DeliveryOutcome.SUCCESS
  assert len(endpoint.requests) == 1
  request = endpoint.requests[0]
  assert request.method == "POST"
  assert str(request.url) == "http://ingest.test/logs/ingest"
  assert request.headers["content-type"] == "application/json"
  assert request.headers["apikey"] == "abc123"
  assert request.headers["user-agent"] == "orders-service/1.0"
  assert request.content == b'{"apikey":"abc123","lines":[]}'


def test_server_error_once_then_success_retries_once():
  endpoint = FakeIngest(statuses=[500, 200])

  outcome = _delivery(endpoint).send(b"{}")

  assert outcome is DeliveryOutcome.SUCCESS
  assert len(endpoint.requests) == 2


def test_server_error_twice_drops_batch_without_third_attempt(caplog):
  endpoint = FakeIngest(statuses=[500, 503, 200])

  with caplog.at_level(logging.WARNING, logger="logdna_client.delivery"):
    outcome = _delivery(endpoint).send(b"{}")

  assert outcome is DeliveryOutcome.RETRYABLE_FAILURE
  assert len(endpoint.requests) == 2
  assert "dropping batch after 2 failed attempts" in caplog.text


def test_client_error_is_not_retried(caplog):
  endpoint = FakeIngest(statuses=[400])

  with caplog.at_level(logging.ERROR, logger="logdna_client.delivery"):
    outcome = _delivery(endpoint).send(b"{}")

  assert outcome is DeliveryOutcome.FATAL_FAILURE
  assert len(endpoint.requests) == 1
  assert "rejected batch with status 400" in caplog.text


def test_connection_error_is_retried_and_never_raised(caplog):
  attempts = []

  def refuse(request):
    attempts.append(request)
    raise httpx.ConnectError("connection refused", request=request)

  with caplog.at_level(logging.WARNING, logger="logdna_client.delivery"):
    outcome = _delivery(httpx.MockTransport(refuse)).send(b"{}")

  assert outcome is DeliveryOutcome.RETRYABLE_FAILURE
  assert len(attempts) == 2
  assert "failed to reach ingest endpoint (attempt 1/2)" in caplog.text


def test_connection_error_then_success():
  calls = []

  def flaky(request):
    calls.append(request)
    if len(calls) == 1:
      raise httpx.ReadTimeout("timed out", request=request)
    return httpx.Response(200, json={"status": "ok"})

  outcome = _delivery(httpx.MockTransport(flaky)).send(b"{}")

  assert outcome is DeliveryOutcome.SUCCESS
  assert len(calls) == 2


def test_default_user_agent_when_environment_is_empty():
  endpoint = FakeIngest()
  _delivery(endpoint).send(b"{}")
  assert endpoint.requests[0].headers["user-agent"] == "logdna-client-python"


class TricklingStream(httpx.SyncByteStream):
  """Response body that dribbles one byte at a time."""

  def __init__(self, chunks: int, delay: float) -> None:
    self.chunks = chunks
    self.delay = delay

  def __iter__(self):
    for _ in range(self.chunks):
      time.sleep(self.delay)
      yield b" "


def test_send_timeout_bounds_the_whole_attempt(caplog):
  calls = []

  def trickle(request):
    calls.append(request)
    return httpx.Response(200, stream=TricklingStream(chunks=20, delay=0.05))

  delivery = _delivery(httpx.MockTransport(trickle), timeout=0.2)
  started = time.monotonic()
  with caplog.at_level(logging.WARNING, logger="logdna_client.delivery"):
    outcome = delivery.send(b"{}")
  elapsed = time.monotonic() - started

  assert outcome is DeliveryOutcome.RETRYABLE_FAILURE
  assert len(calls) == 2
  # Reading every chunk would take a full second per attempt.
  assert elapsed < 1.5
  assert "send timeout of 0.2s exceeded" in caplog.text
