#!/usr/bin/env python
import sys
from rich.console import Console
from rich.markup import escape
from askme.cli import main as cli_main

console = Console(stderr=True)

def main() -> None:

    try:
        cli_main()
        sys.exit(0)
    except Exception as e:
        console.print(f"[bold red]An unexpected error occurred in the application:[/bold red] {escape(str(e))}")
        sys.exit(1)

if __name__ == "__main__":
    main()
