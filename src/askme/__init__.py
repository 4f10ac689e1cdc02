"""askme: send a prompt to a configured LLM service from the command line."""

__version__ = "0.3.0"
