from dotenv import load_dotenv
load_dotenv()

import asyncio
import json
import os

import click

from db.usage import LoggingUsageRecorder
from orchestrator.catalog import Task, get_catalog
from orchestrator.dispatcher import Dispatcher
from orchestrator.errors import ClassifiedError
from orchestrator.prober import AvailabilityProber
from orchestrator.tasks import analyze_sentiment, converse, generate_creative
from providers.huggingface import HuggingFaceProvider

api_key_option = click.option(
    "--api-key",
    envvar="HF_API_KEY",
    required=True,
    help="Hugging Face token (or set HF_API_KEY).",
)
model_option = click.option("--model", default=None, help="Requested model; catalog fallbacks follow.")
user_option = click.option("--user", default=lambda: os.getenv("USER", "cli"), show_default="$USER",
                           help="User id recorded with the usage entry.")


def _dispatcher() -> Dispatcher:
    return Dispatcher(HuggingFaceProvider(), usage=LoggingUsageRecorder())


def _run(coro):
    try:
        return asyncio.run(coro)
    except ClassifiedError as e:
        raise click.ClickException(e.message)


def _notice(result) -> None:
    if result.notice:
        click.secho(result.notice, fg="yellow", err=True)


@click.group()
def cli():
    """
    Hugging Face inference with model fallbacks. Examples:
      python app.py creative "write a short story about a lighthouse"
      python app.py sentiment "I love this place" --model cardiffnlp/twitter-roberta-base-sentiment
      python app.py probe --task conversation
    """


@cli.command()
@click.argument("prompt", required=False)
@api_key_option
@model_option
@user_option
@click.option("--max-length", type=int, default=None, help="Maximum generated length (default 150).")
@click.option("--temperature", type=float, default=None, help="Sampling temperature (default 0.7).")
@click.option("--raw/--markdown", default=False, show_default=True, help="Print raw text instead of markdown.")
def creative(prompt, api_key, model, user, max_length, temperature, raw):
    """Creative text generation."""
    if not prompt:
        prompt = click.prompt("Prompt")

    result = _run(generate_creative(
        _dispatcher(), user, api_key, prompt,
        {"model": model, "max_length": max_length, "temperature": temperature},
    ))
    _notice(result)
    click.secho(f"\nModel: {result.model_used}", fg="green")
    click.echo(result.generated_text if raw else result.formatted_markdown)


@cli.command()
@click.argument("text", required=False)
@api_key_option
@model_option
@user_option
def sentiment(text, api_key, model, user):
    """Sentiment analysis."""
    if not text:
        text = click.prompt("Text")

    result = _run(analyze_sentiment(_dispatcher(), user, api_key, text, {"model": model}))
    _notice(result)
    click.secho(f"\nModel: {result.model_used}", fg="green")
    for item in result.sentiment_results:
        if isinstance(item, dict):
            click.echo(f"{item.get('label', '?'):<12} {float(item.get('score', 0.0)):.4f}")
        else:
            click.echo(json.dumps(item))


@cli.command()
@click.argument("message", required=False)
@api_key_option
@model_option
@user_option
def chat(message, api_key, model, user):
    """Conversational reply (single turn)."""
    if not message:
        message = click.prompt("You")

    result = _run(converse(_dispatcher(), user, api_key, message, {"model": model}))
    _notice(result)
    click.secho(f"\nModel: {result.model_used}", fg="green")
    click.echo(result.generated_text or result.formatted_markdown)


@cli.command()
@api_key_option
@click.option("--task", type=click.Choice([t.value for t in Task]), default=Task.CREATIVE.value,
              show_default=True, help="Catalog to probe.")
def probe(api_key, task):
    """Check which catalog models are available right now."""
    catalog = get_catalog()
    prober = AvailabilityProber(HuggingFaceProvider(), catalog=catalog)

    async def _probe_all():
        return [(m, await prober.probe(api_key, m)) for m in catalog.recommended_models(task)]

    for model, ok in asyncio.run(_probe_all()):
        click.echo(f"{'OK ' if ok else '-- '} {model}")


if __name__ == "__main__":
    cli()
