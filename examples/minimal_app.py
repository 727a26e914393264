import logging
import os

from logdna_client import Options, setup_logging


def main() -> None:
  # Minimal configuration via environment variables
  os.environ.setdefault("LOGDNA_APP", "example-app")

  logger = logging.getLogger("example_app")
  logging.basicConfig(level=logging.INFO)

  client = setup_logging(logger, options=Options.from_params_or_env(hostname="example-host"))

  logger.info("Example INFO log from minimal app")
  logger.info("Order placed", extra={"meta": {"order_id": 42}})
  try:
    1 / 0
  except ZeroDivisionError:
    logger.exception("Example ERROR log with exception")

  # Send whatever is still buffered before exiting.
  client.close()


if __name__ == "__main__":
  main()
