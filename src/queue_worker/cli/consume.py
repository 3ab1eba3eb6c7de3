"""Consume messages from a queue.

This module provides a CLI that subscribes to a queue with client
acknowledgment, dispatches every message to a handler loaded from a handlers
path, and acknowledges it whether or not the handler succeeded.
"""

import logging

import click

from queue_worker.cli import load_settings
from queue_worker.handlers.registry import HandlerRegistry, load_handlers
from queue_worker.handlers.resolvers import DestinationResolver, PayloadResolver
from queue_worker.worker import Worker

STRATEGIES = ("payload", "destination")


def get_handler_names(
    handler_names: list[str], resolver: PayloadResolver | DestinationResolver, destination: str
) -> list[str]:
    """Return the handlers to load, defaulting to the queue's handler for the destination strategy."""
    if handler_names:
        return handler_names
    if isinstance(resolver, DestinationResolver):
        return [resolver.identifier(destination)]
    raise click.ClickException("No handler names given; use --handler-names with the payload strategy")


def build_resolver(strategy: str, registry: HandlerRegistry, prefix: str) -> PayloadResolver | DestinationResolver:
    if strategy == "destination":
        return DestinationResolver(registry, prefix)
    return PayloadResolver(registry)


@click.command()
@click.option("--queue-name", type=str, required=True, help="The name of the queue to consume from")
@click.option(
    "--handlers-path",
    type=str,
    required=True,
    multiple=True,
    help="The path to a directory with a handlers package, multiple allowed",
)
@click.option(
    "--handler-names",
    type=str,
    multiple=True,
    help="Handler module to load from handlers/, can be used multiple times",
)
@click.option(
    "--strategy",
    type=click.Choice(STRATEGIES),
    default="payload",
    help="Resolve handlers by the payload's class field or by the queue name",
)
@click.option("--prefetch-size", type=click.IntRange(min=1), default=1, help="Unacknowledged messages allowed in flight")
@click.option("--max-runtime", type=click.FloatRange(min=0, min_open=True), required=False, help="Stop after this many seconds, default is to run until unsubscribed")
@click.option("--log-level", type=str, default="INFO", help="Logging level")
@click.option("--host", type=str, required=False, help="Broker host, overrides STOMP_HOST")
@click.option("--port", type=int, required=False, help="Broker port, overrides STOMP_PORT")
def main(**kwargs) -> None:
    """Consume messages from the given queue.

    Each message is decoded as JSON and dispatched to a registered handler.
    Failures are logged and the message is acknowledged anyway; publishing
    the body UNSUBSCRIBE to the queue stops the consumer.
    """
    queue_name = kwargs["queue_name"]
    strategy = kwargs["strategy"]
    prefetch_size = kwargs["prefetch_size"]
    max_runtime = kwargs["max_runtime"]

    logging.basicConfig(level=kwargs["log_level"].upper())
    settings = load_settings(kwargs["host"], kwargs["port"])

    registry = HandlerRegistry()
    resolver = build_resolver(strategy, registry, settings.queue_prefix)
    names = get_handler_names(list(kwargs["handler_names"]), resolver, settings.destination(queue_name))
    try:
        load_handlers(names, list(kwargs["handlers_path"]), registry)
    except (ImportError, AttributeError) as e:
        raise click.ClickException(f"Cannot load handlers {names}: {e}") from e

    worker = Worker(queue_name, handler=resolver, settings=settings)
    try:
        if max_runtime is not None:
            finished = worker.subscribe_with_timeout(max_runtime, prefetch_size)
        else:
            worker.subscribe(size=prefetch_size)
            finished = worker.join()
        if finished:
            click.secho(f"Unsubscribed from {queue_name}", fg="green")
        else:
            click.secho(f"Stopped {queue_name} after {max_runtime}s", fg="yellow")
    finally:
        worker.close()


if __name__ == "__main__":
    main()
