from __future__ import annotations

import json
import time
import uuid
from typing import Any, Callable, Dict, Optional, Sequence

from .models import Identity, Line, Payload, QuotedMeta, RawMeta, Record, meta_envelope

Clock = Callable[[], float]


class EncodingError(Exception):
  """A batch could not be serialized into a wire payload."""


def timestamp_ms(record: Record, now: Clock = time.time) -> int:
  """
  Milliseconds since epoch for a record, resolved at send time.

  Records created without a timestamp are stamped with the current time.
  """
  if record.timestamp is not None:
    return int(record.timestamp.timestamp() * 1000)
  return int(now() * 1000)


def _reject_constant(name: str) -> Any:
  raise ValueError(f"{name} is not valid JSON")


def validated_raw_meta(text: str) -> str:
  """
  Check that indexed meta is one JSON value and return it unchanged.

  NaN and Infinity are rejected since they are not part of JSON.
  """
  try:
    json.loads(text, parse_constant=_reject_constant)
  except ValueError as exc:
    raise EncodingError(f"indexed meta is not valid JSON: {exc}") from exc
  return text.strip()


def build_line(
  record: Record,
  now: Clock = time.time,
  raw_meta: Optional[Dict[str, str]] = None,
) -> Line:
  """
  Build the wire line for a record.

  Indexed meta is stored as a placeholder token and its text collected in
  ``raw_meta`` (token -> text) so it can be spliced into the serialized
  payload verbatim.
  """
  fields: Dict[str, Any] = {
    "line": record.body,
    "timestamp": timestamp_ms(record, now),
  }
  if record.app:
    fields["app"] = record.app
  if record.level:
    fields["level"] = record.level
  if record.env:
    fields["env"] = record.env

  envelope = meta_envelope(record)
  if isinstance(envelope, RawMeta):
    text = validated_raw_meta(envelope.text)
    if raw_meta is None:
      fields["meta"] = json.loads(text)
    else:
      token = f"__logdna_raw_meta_{uuid.uuid4().hex}__"
      raw_meta[token] = text
      fields["meta"] = token
  elif isinstance(envelope, QuotedMeta):
    fields["meta"] = envelope.text

  return Line(**fields)


def build_payload(
  batch: Sequence[Record],
  key: str,
  identity: Identity,
  now: Clock = time.time,
  raw_meta: Optional[Dict[str, str]] = None,
) -> Payload:
  fields: Dict[str, Any] = {
    "apikey": key,
    "lines": [build_line(record, now, raw_meta) for record in batch],
  }
  if identity.hostname:
    fields["hostname"] = identity.hostname
  if identity.ip_address:
    fields["ip"] = identity.ip_address
  if identity.mac_address:
    fields["mac"] = identity.mac_address
  if identity.tags:
    fields["tags"] = identity.tags
  return Payload(**fields)


def encode_payload(
  batch: Sequence[Record],
  key: str,
  identity: Identity,
  now: Optional[Clock] = None,
) -> bytes:
  """
  Serialize a batch into the JSON body posted to the ingest endpoint.

  Lines keep the order of ``batch``. Fields that are empty on the record or
  the identity are left out of the payload entirely; the only field that
  changes shape is ``meta``, which is embedded as the caller's JSON text,
  byte for byte, for indexed meta and as a JSON string otherwise.
  """
  clock = now or time.time
  raw_meta: Dict[str, str] = {}
  try:
    payload = build_payload(batch, key, identity, clock, raw_meta)
    body = payload.model_dump_json(exclude_unset=True)
  except EncodingError:
    raise
  except (TypeError, ValueError) as exc:
    raise EncodingError(f"failed to serialize payload: {exc}") from exc

  for token, text in raw_meta.items():
    body = body.replace(f'"{token}"', text, 1)
  return body.encode("utf-8")
