"""
logdna_client

Buffered LogDNA client: log lines are batched in-process and shipped to the
ingest endpoint from background threads, so logging calls never wait on the
network.
"""

from .encoder import EncodingError, encode_payload
from .delivery import DeliveryOutcome, HttpDelivery
from .logger import Logger, new_logger
from .logging_setup import LogDNAHandler, setup_logging
from .models import Identity, Record
from .options import InvalidOptionsError, Options
from .transport import Transport

__all__ = [
  "DeliveryOutcome",
  "EncodingError",
  "HttpDelivery",
  "Identity",
  "InvalidOptionsError",
  "LogDNAHandler",
  "Logger",
  "Options",
  "Record",
  "Transport",
  "encode_payload",
  "new_logger",
  "setup_logging",
]
