"""CLI display functions for listings, the overview and model replies.

Machine-readable output (``--json``, extracted payloads, replies) is written
with plain ``print`` so it is never wrapped or styled. Listings for people
use rich tables.
"""

import json
from typing import Any, List, TextIO

from rich.console import Console
from rich.table import Table

from askme.models.request import ModelInfo, Token
from askme.utils.config import ConfigModel, ServiceClass

console = Console()

PROMPT_PREVIEW_LENGTH = 50


def _dump(data: Any, pretty: bool = False) -> str:
    return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)


def _prompt_preview(prompt: str) -> str:
    first_line = prompt.splitlines()[0] if prompt else ""
    if len(first_line) > PROMPT_PREVIEW_LENGTH:
        return first_line[:PROMPT_PREVIEW_LENGTH - 3] + "..."
    return first_line


def _class_display(class_name: str) -> str:
    if class_name in ServiceClass.names():
        return class_name
    return "[red]invalid[/red]"


def services_document(config: ConfigModel) -> dict:
    return {
        "default": config.default_service,
        "services": [
            {
                "name": name,
                "type": service.class_,
                "model": service.model,
                "descr": service.description,
            }
            for name, service in config.services.items()
        ],
    }


def prompts_document(config: ConfigModel) -> dict:
    return {
        "default": config.default_prompt,
        "prompts": [{"name": name, "prompt": prompt} for name, prompt in config.system_prompts.items()],
    }


def show_services(config: ConfigModel, as_json: bool = False):
    """List configured services; the default one is marked with ``*``."""
    if as_json:
        print(_dump(services_document(config)))
        return
    table = Table(title="Configured services", title_justify="left")
    table.add_column("", width=1)
    table.add_column("Name", style="bold cyan")
    table.add_column("Class")
    table.add_column("Model", style="green")
    table.add_column("Description", style="dim")
    for name, service in config.services.items():
        marker = "*" if name == config.default_service else ""
        table.add_row(marker, name, _class_display(service.class_), service.model or "None",
                      service.description or "")
    console.print(table)


def show_prompts(config: ConfigModel, as_json: bool = False):
    """List named system prompts with a one-line preview."""
    if as_json:
        print(_dump(prompts_document(config)))
        return
    table = Table(title="Configured system prompts", title_justify="left")
    table.add_column("", width=1)
    table.add_column("Name", style="bold cyan")
    table.add_column("Prompt")
    for name, prompt in config.system_prompts.items():
        marker = "*" if name == config.default_prompt else ""
        table.add_row(marker, name, f'"{_prompt_preview(prompt)}"')
    console.print(table)


def show_prompt_text(prompt: str):
    print(prompt)


def show_models(service_name: str, models: List[ModelInfo], as_json: bool = False):
    if as_json:
        print(_dump([model.to_dict() for model in models], pretty=True))
        return
    if not models:
        console.print(f"[yellow]Service '{service_name}' returned no models.[/yellow]")
        return
    table = Table(title=f"Models available on '{service_name}'", title_justify="left")
    table.add_column("Model", style="bold cyan")
    table.add_column("Description", style="dim")
    for model in models:
        table.add_row(model.name, model.description)
    console.print(table)


def show_overview(config: ConfigModel):
    """Shown when askme runs without a prompt or directive."""
    console.print("[bold magenta]askme[/bold magenta] - send a prompt to a configured LLM service")
    console.print("[dim]Usage: askme [options] PROMPT... (use '-' to read the prompt from stdin)[/dim]")
    console.print()
    show_services(config)
    console.print()

    default_service = config.services.get(config.default_service or "")
    if default_service is not None:
        console.print(f"Default service: [bold cyan]{config.default_service}[/bold cyan] "
                      f"(model: [green]{default_service.model or 'None'}[/green])")
    elif config.default_service:
        console.print(f"[yellow]Default service '{config.default_service}' is not defined[/yellow]")
    else:
        console.print("[yellow]No default service configured[/yellow]")
    console.print(f"Default prompt: [bold cyan]{config.default_prompt or 'None'}[/bold cyan]")


def show_json_result(service: str, model: str, system_prompt: str | None, prompt: str, response: Any,
                     reasoning: str | None):
    print(_dump({
        "service": service,
        "model": model,
        "system_prompt": system_prompt,
        "prompt": prompt,
        "response": response,
        "think": reasoning,
    }))


def show_extracted(value: Any):
    print(_dump(value, pretty=True))


class ReplyPrinter:
    """Writes reply tokens as they arrive.

    Reasoning is framed by ``<think>`` and ``</think>`` lines ahead of the
    answer. Text is written raw so brackets in model output are never read
    as markup.
    """

    def __init__(self, out: TextIO | None = None):
        self.out = out
        self.in_reasoning = False
        self.wrote_reasoning = False
        self.at_line_start = True

    def _write(self, text: str):
        if not text:
            return
        print(text, end="", file=self.out, flush=True)
        self.at_line_start = text.endswith("\n")

    def _close_reasoning(self):
        if not self.at_line_start:
            self._write("\n")
        self._write("</think>\n")
        self.in_reasoning = False

    def __call__(self, token: Token):
        if token.is_final:
            return
        if token.is_reasoning:
            if not token.text:
                return
            if not self.in_reasoning:
                if not self.at_line_start:
                    self._write("\n")
                self._write("<think>\n")
                self.in_reasoning = True
                self.wrote_reasoning = True
            self._write(token.text)
            return
        if self.in_reasoning:
            self._close_reasoning()
        self._write(token.text)

    def finish(self):
        if self.in_reasoning:
            self._close_reasoning()
        if not self.at_line_start:
            self._write("\n")
