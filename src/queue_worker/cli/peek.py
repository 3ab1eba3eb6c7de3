"""Peek at messages waiting on a queue.

CLI that reads up to --size messages within --duration seconds and prints
them. Read messages are acknowledged, so they leave the queue.
"""

import click
from icecream import ic

from queue_worker.cli import load_settings
from queue_worker.worker import PEEK_DURATION, peek


@click.command()
@click.option("--queue-name", type=str, required=True, help="The name of the queue to peek at")
@click.option("--size", type=click.IntRange(min=1), default=1, help="Maximum number of messages to read")
@click.option("--duration", type=float, default=PEEK_DURATION, help="Seconds to wait for messages")
@click.option("--host", type=str, required=False, help="Broker host, overrides STOMP_HOST")
@click.option("--port", type=int, required=False, help="Broker port, overrides STOMP_PORT")
def main(queue_name: str, size: int, duration: float, host: str, port: int) -> list[dict]:
    """Print up to SIZE messages from the specified queue."""
    click.echo(f"Peeking at {queue_name}")

    messages = peek(queue_name, size, duration=duration, settings=load_settings(host, port))
    for message in messages:
        ic(message)
    click.echo(f"{len(messages)} message(s) read")
    return messages


if __name__ == "__main__":
    main()
