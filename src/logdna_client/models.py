from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class Record:
  """
  One log line plus its resolved per-message attributes.

  App, env and level are already merged with the logger defaults. The
  timestamp is optional; when missing, the send time is used.
  """

  body: str
  app: str = ""
  env: str = ""
  level: str = ""
  meta: Optional[str] = None
  meta_indexed: bool = False
  timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class Identity:
  """Host identity attached to every payload sent by a transport."""

  hostname: str = ""
  ip_address: str = ""
  mac_address: str = ""
  tags: str = ""


@dataclass(frozen=True)
class RawMeta:
  """Meta text embedded in the line object as a parsed JSON value."""

  text: str


@dataclass(frozen=True)
class QuotedMeta:
  """Meta text embedded in the line object as a JSON string."""

  text: str


MetaEnvelope = Union[RawMeta, QuotedMeta]


def meta_envelope(record: Record) -> Optional[MetaEnvelope]:
  if not record.meta:
    return None
  if record.meta_indexed:
    return RawMeta(record.meta)
  return QuotedMeta(record.meta)


class Line(BaseModel):
  """
  Wire shape of a single line.

  Optional fields are only serialized when explicitly set.
  """

  line: str
  timestamp: int
  app: Optional[str] = None
  level: Optional[str] = None
  env: Optional[str] = None
  meta: Any = None


class Payload(BaseModel):
  """
  Envelope posted to the ingest endpoint.
  """

  apikey: str
  hostname: Optional[str] = None
  ip: Optional[str] = None
  mac: Optional[str] = None
  tags: Optional[str] = None
  lines: List[Line]
