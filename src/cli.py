"""Click CLI for checking payloads and documents against the checkout validators."""

from __future__ import annotations

import json
from typing import TextIO

import click

from src.validation.injection import InjectionDetector
from src.validation.schemas import CreatePaymentIntentRequest, validate_payload
from src.validation.validators import (
    validate_brazilian_phone,
    validate_cep,
    validate_cnpj,
    validate_cpf,
    validate_email,
)

_CHECKS = {
    "cpf": validate_cpf,
    "cnpj": validate_cnpj,
    "phone": validate_brazilian_phone,
    "cep": validate_cep,
    "email": validate_email,
}


@click.group()
@click.option("--rules", default=None, help="Path to injection rules JSON (built-in rules if omitted).")
@click.pass_context
def cli(ctx: click.Context, rules: str | None) -> None:
    """Checkout request-defense tooling."""
    ctx.ensure_object(dict)
    ctx.obj["detector"] = InjectionDetector.from_file(rules) if rules else InjectionDetector()


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def scan(ctx: click.Context, source: TextIO) -> None:
    """Scan text (file or stdin) for script/markup injection."""
    detector: InjectionDetector = ctx.obj["detector"]
    result = detector.scan(source.read())
    click.echo(result.model_dump_json(indent=2))
    if result.detected:
        ctx.exit(1)


@cli.command("validate-payment")
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def validate_payment(ctx: click.Context, source: TextIO) -> None:
    """Run a create-payment-intent body through the same gates as the API."""
    detector: InjectionDetector = ctx.obj["detector"]
    text = source.read()

    scan_result = detector.scan(text)
    if scan_result.detected:
        click.echo(json.dumps({"accepted": False, "injection": scan_result.patterns}, indent=2))
        ctx.exit(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        click.echo(json.dumps({"accepted": False, "error": f"Malformed JSON: {exc}"}, indent=2))
        ctx.exit(1)

    outcome = validate_payload(CreatePaymentIntentRequest, payload)
    click.echo(json.dumps(
        {
            "accepted": outcome.valid,
            "issues": [issue.model_dump() for issue in outcome.issues],
        },
        indent=2,
    ))
    if not outcome.valid:
        ctx.exit(1)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(_CHECKS)))
@click.argument("value")
@click.pass_context
def check(ctx: click.Context, kind: str, value: str) -> None:
    """Check a CPF, CNPJ, phone, CEP or e-mail value."""
    valid = _CHECKS[kind](value)
    click.echo("valid" if valid else "invalid")
    if not valid:
        ctx.exit(1)
