import json
import os
import threading
from typing import Any, Dict, List, Sequence

import httpx
import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
  """Run every test in an empty directory with no LOGDNA_* variables set."""
  for name in list(os.environ):
    if name.startswith("LOGDNA_") or name == "USERAGENT":
      monkeypatch.delenv(name)
  monkeypatch.chdir(tmp_path)
  yield tmp_path


class FakeIngest:
  """
  Scripted ingest endpoint for httpx.MockTransport.

  Each request consumes the next status from ``statuses``; once exhausted,
  every request gets 200.
  """

  def __init__(self, statuses: Sequence[int] = ()) -> None:
    self.statuses: List[int] = list(statuses)
    self.requests: List[httpx.Request] = []
    self._lock = threading.Lock()

  def __call__(self, request: httpx.Request) -> httpx.Response:
    with self._lock:
      self.requests.append(request)
      status = self.statuses.pop(0) if self.statuses else 200
    return httpx.Response(status, json={"status": "ok" if status < 400 else "error"})

  @property
  def transport(self) -> httpx.MockTransport:
    return httpx.MockTransport(self)

  @property
  def bodies(self) -> List[Dict[str, Any]]:
    return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def fake_ingest():
  return FakeIngest()
