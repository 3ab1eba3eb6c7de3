"""Command line entry points for publishing, consuming and peeking."""

import os

import click
import dotenv

from queue_worker.config import Settings


def load_settings(host: str | None = None, port: int | None = None) -> Settings:
    """Build broker settings from STOMP_* variables (and .env if present), then apply CLI overrides."""
    if os.path.exists(".env"):
        dotenv.load_dotenv()
    overrides = {key: value for key, value in {"host": host, "port": port}.items() if value is not None}
    return Settings(**overrides)


def parse_headers(values: tuple[str, ...]) -> dict[str, str]:
    """Turn repeated key=value options into a header dict."""
    headers = {}
    for value in values:
        key, sep, header_value = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got {value!r}", param_hint="--header")
        headers[key] = header_value
    return headers
