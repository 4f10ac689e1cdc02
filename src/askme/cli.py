import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx
from rich.markup import escape

from askme import __version__
from askme.cli_display import (
    ReplyPrinter,
    show_extracted,
    show_json_result,
    show_models,
    show_overview,
    show_prompt_text,
    show_prompts,
    show_services,
)
from askme.core import AskMe, client_for_service
from askme.errors import AskmeError, ConfigError, UnsupportedError
from askme.model_lister import list_service_models
from askme.processing.extraction import extract_json
from askme.utils.config import ConfigModel, Settings, load_config
from askme.utils.logging import get_console, setup_logging

logger = logging.getLogger(__name__)

LIST_TARGETS = {"services": "services", "s": "services", "prompts": "prompts", "p": "prompts"}
STDIN_SENTINEL = "-"


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="askme",
        description="Send a prompt to an LLM service defined in askme.yml and print the reply.",
    )
    parser.add_argument("question", nargs="*", help="Prompt text. Use '-' to read the prompt from stdin.")
    parser.add_argument("-s", "--service", type=str, default=None, help="Service to use (default: default_service)")
    parser.add_argument("-m", "--model", type=str, default=None, help="Model to use instead of the service's model")
    parser.add_argument("-p", "--prompt", type=str, default=None,
                        help="System prompt: a name from system_prompts, or literal text")
    parser.add_argument("-n", "--nothink", action="store_true", help="Drop the model's reasoning from the output")
    parser.add_argument("-j", "--json", action="store_true", help="Print the result as a JSON document")
    parser.add_argument("-E", "--extractjs", action="store_true", help="Print only the JSON embedded in the reply")
    parser.add_argument("-c", "--config", type=str, default=None,
                        help="Config file applied on top of the discovered ones")
    parser.add_argument("-l", "--list", nargs="?", const="services", default=None, metavar="TARGET",
                        type=str.lower, choices=sorted(LIST_TARGETS),
                        help="List services (s) or prompts (p) and exit")
    parser.add_argument("--sprompt", type=str, default=None, metavar="NAME",
                        help="Print the named system prompt and exit")
    parser.add_argument("--lmodels", type=str, default=None, metavar="SERVICE",
                        help="List the models offered by a service and exit")
    parser.add_argument("--no-stream", action="store_true", default=False, help="Disable streaming output")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def read_prompt(words: List[str], stdin=None) -> str | None:
    """Join the prompt words; a lone '-' reads the prompt from stdin."""
    if not words:
        return None
    if words == [STDIN_SENTINEL]:
        text = (stdin or sys.stdin).read()
        if not text.strip():
            raise AskmeError("No prompt read from stdin")
        return text
    return " ".join(words)


async def run_query(args: argparse.Namespace, config: ConfigModel, settings: Settings, prompt: str,
                    http_client: Optional[httpx.AsyncClient] = None) -> None:
    if not config.services:
        raise ConfigError("No services defined in the configuration")
    askme = AskMe(
        config,
        settings=settings,
        service_name=args.service,
        model=args.model,
        system_prompt=args.prompt,
        http_client=http_client,
    )

    # JSON and extraction output is only printed once the whole reply is known
    printer = None if (args.json or args.extractjs) else ReplyPrinter()
    result = await askme.ask(
        prompt,
        stream=not args.no_stream,
        suppress_reasoning=args.nothink,
        on_token=printer,
    )
    if printer is not None:
        printer.finish()
        return

    response = extract_json(result.answer) if args.extractjs else result.answer
    if args.json:
        show_json_result(askme.service_name, askme.model, askme.system_prompt, prompt, response, result.reasoning)
    else:
        show_extracted(response)


async def run_list_models(args: argparse.Namespace, config: ConfigModel, settings: Settings,
                          http_client: Optional[httpx.AsyncClient] = None) -> None:
    client = client_for_service(config, args.lmodels, settings=settings, http_client=http_client)
    models = await list_service_models(client)
    show_models(client.name, models, as_json=args.json)


def run(args: argparse.Namespace, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> None:
    """Carry out one invocation. Raises AskmeError on failure."""
    config = load_config(args.config, settings=settings)
    logger.info(f"Configuration loaded from {', '.join(str(p) for p in config.sources)}")

    if args.list:
        if LIST_TARGETS[args.list] == "services":
            show_services(config, as_json=args.json)
        else:
            show_prompts(config, as_json=args.json)
        return

    if args.sprompt:
        show_prompt_text(config.get_prompt(args.sprompt))
        return

    if args.lmodels:
        asyncio.run(run_list_models(args, config, settings, http_client=http_client))
        return

    prompt = read_prompt(args.question)
    if prompt is None:
        show_overview(config)
        return
    asyncio.run(run_query(args, config, settings, prompt, http_client=http_client))


def main(argv: Optional[List[str]] = None):
    args = parse_arguments(argv)
    settings = Settings()
    setup_logging(verbose=args.verbose or settings.VERBOSE, debug=args.debug or settings.DEBUG)
    err_console = get_console()

    try:
        run(args, settings)
    except UnsupportedError as e:
        err_console.print(f"[yellow]{escape(str(e))}[/yellow]")
        sys.exit(2)
    except AskmeError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print()
        err_console.print("[yellow]Interrupted[/yellow]")
        sys.exit(130)
