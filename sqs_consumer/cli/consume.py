"""
sqs-consumer consume - Run polling loops against a queue.

Usage:
  sqs-consumer consume --queue-url https://sqs... --handler mypkg.handlers:handle --concurrency 4
  sqs-consumer consume --config consumer.json

Environment variables (used when neither a flag nor the config file sets them):
  SQS_CONSUMER_REGION
  SQS_CONSUMER_QUEUE_URL
"""

import dataclasses
import importlib
import logging
import os
import sys

import click
from dotenv import load_dotenv
from rich.console import Console

console = Console()
logger = logging.getLogger("sqs_consumer.cli.consume")

load_dotenv()


def log_message(message) -> None:
    """Default handler: log the message and acknowledge it."""
    logger.info(
        f"Handled message {message.message_id}",
        extra={"message_id": message.message_id, "body": message.body},
    )


def load_handler(spec: str):
    """
    Resolve a ``module:function`` string to a callable.

    Raises:
        click.BadParameter: if the module or attribute cannot be found
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"Expected module:function, got '{spec}'", param_hint="--handler")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"Cannot import '{module_name}': {e}", param_hint="--handler") from e
    handler = getattr(module, attr, None)
    if not callable(handler):
        raise click.BadParameter(f"'{spec}' is not a callable", param_hint="--handler")
    return handler


def build_config(config_file, **overrides):
    """Merge config file, environment and command-line flags (flags win)."""
    from sqs_consumer.config import ConsumerConfig

    config = ConsumerConfig.from_json_file(config_file) if config_file else ConsumerConfig()

    env_defaults = {
        "region": os.environ.get("SQS_CONSUMER_REGION"),
        "queue_url": os.environ.get("SQS_CONSUMER_QUEUE_URL"),
    }
    changes = {k: v for k, v in env_defaults.items() if v and getattr(config, k) is None}
    # click passes empty tuples for unused multiple options
    changes.update({k: v for k, v in overrides.items() if v is not None and v != ()})
    return dataclasses.replace(config, **changes)


@click.command()
@click.option('--queue-url', type=str, help='SQS queue URL (default: from config file or SQS_CONSUMER_QUEUE_URL)')
@click.option('--handler', 'handler_spec', type=str, default='sqs_consumer.cli.consume:log_message',
              show_default=True, help='Message handler as module:function')
@click.option('--concurrency', type=int, default=1, show_default=True, help='Number of polling loops')
@click.option('--max-messages', type=int, help='Messages per receive (1-10, default 1)')
@click.option('--visibility-timeout', type=int, help='Visibility timeout in seconds (0-43200, default 30)')
@click.option('--wait-time', type=int, help='Long-poll wait time in seconds (0-20, default 10)')
@click.option('--idle', type=int, help='Empty polls tolerated before backing off (default 0, disabled)')
@click.option('--sleep', type=float, help='Backoff sleep in seconds (default 0, disabled)')
@click.option('--attribute-name', 'attribute_names', multiple=True, help='System attribute to fetch (repeatable, default All)')
@click.option('--message-attribute-name', 'message_attribute_names', multiple=True,
              help='Message attribute to fetch (repeatable)')
@click.option('--region', type=str, help='AWS region (default: from config file or SQS_CONSUMER_REGION)')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON config file (queueUrl, maxNumberOfMessages, waitTimeSeconds, ...)')
def consume(
    queue_url,
    handler_spec,
    concurrency,
    max_messages,
    visibility_timeout,
    wait_time,
    idle,
    sleep,
    attribute_names,
    message_attribute_names,
    region,
    config_file,
):
    """Poll an SQS queue and dispatch every message to a handler.

    Runs until SIGTERM/SIGINT; current batches are finished before exiting.
    """

    # JSON logs for the long-running process
    from sqs_consumer.logging_setup import setup_logging
    root_obj = click.get_current_context().find_root().obj or {}
    setup_logging(verbose=root_obj.get("verbose", False))

    from sqs_consumer.core.events import (
        EVENT_PROCESS_MESSAGE,
        EVENT_RECEIVE_MESSAGE,
        EVENT_RECEIVE_MESSAGE_ERROR,
    )
    from sqs_consumer.core.worker import Worker

    handler = load_handler(handler_spec)

    cfg = build_config(
        config_file,
        queue_url=queue_url,
        max_number_of_messages=max_messages,
        visibility_timeout=visibility_timeout,
        wait_time_seconds=wait_time,
        idle=idle,
        sleep=sleep,
        attribute_names=attribute_names,
        message_attribute_names=message_attribute_names,
        region=region,
    )

    if not cfg.queue_url:
        logger.error("Missing queue URL. Provide --queue-url, queueUrl in --config, or set SQS_CONSUMER_QUEUE_URL")
        sys.exit(1)

    worker = Worker(cfg)
    worker.on(EVENT_RECEIVE_MESSAGE, lambda messages: logger.debug(f"Received {len(messages)} message(s)"))
    worker.on(EVENT_PROCESS_MESSAGE, lambda message: logger.debug(f"Processed message {message.message_id}"))
    worker.on(EVENT_RECEIVE_MESSAGE_ERROR, lambda error: logger.warning(f"Receive failed: {error}"))

    logger.info(
        "Starting consumer",
        extra={"queue_url": cfg.queue_url, "region": cfg.region, "concurrency": concurrency, "handler": handler_spec},
    )

    worker.install_signal_handlers()
    threads = worker.concurrent(handler, concurrency)

    try:
        # Join with a timeout so the main thread keeps servicing signals
        while any(t.is_alive() for t in threads):
            worker.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Consumer interrupted")
        raise

    logger.info("Consumer stopped")
