"""Click CLI for worldsign."""

import asyncio
import json as json_mod
import logging
import sys
from pathlib import Path

import click
import httpx

from worldsign.canonical import build_message
from worldsign.client import WorldClient
from worldsign.config import WorldSignConfig, load_config
from worldsign.constants import TxKind
from worldsign.crypto import derive_address, recover_signer, sign_message
from worldsign.errors import WorldSignError

PRIVATE_KEY_ENVVAR = "WORLDSIGN_PRIVATE_KEY"


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record):
        return json_mod.dumps({
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })


def setup_logging(level: str, json_log: bool = False) -> None:
    if json_log:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            handlers=[handler],
        )
    else:
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def parse_payload(payload: str):
    """Parse a --payload JSON argument, keeping its key order."""
    if payload is None:
        return None
    try:
        return json_mod.loads(payload)
    except ValueError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--payload")


def private_key_option(f):
    return click.option(
        "--private-key", envvar=PRIVATE_KEY_ENVVAR, prompt=True,
        hide_input=True,
        help=f"Hex-encoded private key (or set {PRIVATE_KEY_ENVVAR})",
    )(f)


def build_client(config: WorldSignConfig, base_url) -> WorldClient:
    if base_url:
        config.api.base_url = base_url
    return WorldClient.from_config(config)


def _run(coro):
    """Run a client coroutine, turning library errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except WorldSignError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except httpx.HTTPStatusError as e:
        click.echo(
            f"Error: {e.request.url.path} returned HTTP {e.response.status_code}: "
            f"{e.response.text}",
            err=True,
        )
        sys.exit(1)
    except httpx.HTTPError as e:
        click.echo(f"Error: request failed: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        # Unparseable or schema-violating response bodies
        click.echo(f"Error: malformed response: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True),
              default=None, help="Path to config YAML file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--json-log", is_flag=True, help="Output logs in structured JSON format")
@click.pass_context
def cli(ctx, config_path, verbose, json_log):
    """worldsign: signed requests for World Engine game backends."""
    ctx.ensure_object(dict)

    if config_path:
        try:
            config = load_config(Path(config_path))
        except ValueError as e:
            raise click.UsageError(str(e))
    else:
        config = WorldSignConfig()

    if verbose:
        config.log_level = "DEBUG"

    setup_logging(config.log_level, json_log=json_log)
    ctx.obj["config"] = config


# --- Offline commands ---

@cli.command()
@private_key_option
def address(private_key):
    """Print the checksummed address for a private key."""
    try:
        click.echo(derive_address(private_key))
    except WorldSignError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--kind", type=click.Choice(["persona", "game"]), required=True,
              help="Transaction kind to sign")
@click.option("--persona-tag", "-p", default="", help="Persona tag")
@click.option("--namespace", "-n", default="", help="World namespace")
@click.option("--payload", default=None,
              help="Game transaction body as JSON (game kind only)")
@click.option("--show-message", is_flag=True, help="Also print the canonical message")
@private_key_option
def sign(kind, persona_tag, namespace, payload, show_message, private_key):
    """Sign a transaction offline and print the signature."""
    if kind == "persona" and payload is not None:
        raise click.UsageError("--payload only applies to --kind game")
    try:
        if kind == "persona":
            message = build_message(
                TxKind.PERSONA_CREATE, persona_tag, namespace,
                signer_address=derive_address(private_key),
            )
        else:
            message = build_message(
                TxKind.GAME_TX, persona_tag, namespace,
                payload=parse_payload(payload),
            )
        signature = sign_message(message, private_key)
    except WorldSignError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if show_message:
        click.echo(f"Message:   {message}")
        click.echo(f"Signature: {signature}")
    else:
        click.echo(signature)


@cli.command()
@click.option("--address", "expected", required=True, help="Expected signer address")
@click.option("--signature", "-s", required=True, help="Hex signature (130 chars)")
@click.option("--message", "-m", required=True, help="Canonical message that was signed")
def verify(expected, signature, message):
    """Verify that a signature over a message came from an address."""
    try:
        recovered = recover_signer(message, signature)
    except WorldSignError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if recovered.lower() != expected.lower():
        click.echo(f"Signature INVALID: signed by {recovered}", err=True)
        sys.exit(1)
    click.echo(f"Signature valid: {recovered}")


# --- Backend commands ---

@cli.command()
@click.option("--base-url", default=None, help="Backend URL (overrides config)")
@click.pass_context
def world(ctx, base_url):
    """Print the world document, including its namespace."""
    client = build_client(ctx.obj["config"], base_url)

    async def _world():
        async with client:
            return await client.get_world()

    info = _run(_world())
    click.echo(json_mod.dumps(info.model_dump(), indent=2))


@cli.command("create-persona")
@click.option("--persona-tag", "-p", required=True, help="Persona tag to register")
@click.option("--namespace", "-n", default=None,
              help="Namespace to sign over (sent as _namespace)")
@click.option("--base-url", default=None, help="Backend URL (overrides config)")
@private_key_option
@click.pass_context
def create_persona(ctx, persona_tag, namespace, base_url, private_key):
    """Register a persona tag for the key's address."""
    client = build_client(ctx.obj["config"], base_url)

    async def _create():
        async with client:
            return await client.create_persona(
                persona_tag, private_key, namespace=namespace,
            )

    result = _run(_create())
    click.echo(json_mod.dumps(result, indent=2))


@cli.command()
@click.argument("tx_name")
@click.option("--persona-tag", "-p", required=True, help="Persona sending the transaction")
@click.option("--payload", required=True, help="Transaction body as JSON")
@click.option("--namespace", "-n", default=None,
              help="Namespace to sign over (sent as _namespace)")
@click.option("--base-url", default=None, help="Backend URL (overrides config)")
@private_key_option
@click.pass_context
def tx(ctx, tx_name, persona_tag, payload, namespace, base_url, private_key):
    """Submit a signed game transaction TX_NAME."""
    body = parse_payload(payload)
    client = build_client(ctx.obj["config"], base_url)

    async def _submit():
        async with client:
            return await client.submit_transaction(
                tx_name, persona_tag, body, private_key, namespace=namespace,
            )

    result = _run(_submit())
    click.echo(json_mod.dumps(result, indent=2))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
