"""Publish a message to a queue.

CLI that validates a JSON message and publishes it with the default headers,
optionally overridden by --priority and --header.
"""

import json

import click

from queue_worker.cli import load_settings, parse_headers
from queue_worker.worker import Worker


@click.command()
@click.option(
    "--queue-name",
    type=str,
    required=True,
    help="The name of the queue to publish the message to",
)
@click.option("--message", type=str, required=True, help="The message to publish (JSON)")
@click.option("--priority", type=click.IntRange(0, 9), required=False, help="Message priority, default 4")
@click.option("--header", "header", type=str, multiple=True, help="Extra header as key=value, can be repeated")
@click.option("--host", type=str, required=False, help="Broker host, overrides STOMP_HOST")
@click.option("--port", type=int, required=False, help="Broker port, overrides STOMP_PORT")
def main(queue_name: str, message: str, priority: int | None, header: tuple[str, ...], host: str, port: int) -> None:
    """Publish a JSON message to the specified queue."""
    click.echo(f"queue-name: {queue_name}")
    click.echo(f"message: {message}")

    try:
        data = json.loads(message)
    except json.JSONDecodeError as err:
        raise click.ClickException(f"Invalid JSON: {message}") from err

    headers = parse_headers(header)
    if priority is not None:
        headers["priority"] = priority

    worker = Worker(queue_name, settings=load_settings(host, port))
    try:
        worker.publish(data, headers)
        click.echo(f"Message published to {worker.destination()}")
    except Exception as e:
        raise click.ClickException(f"Error: {e}") from e
    finally:
        worker.close()


if __name__ == "__main__":
    """Entry point for the publish CLI."""
    main()
