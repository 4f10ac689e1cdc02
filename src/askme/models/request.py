from dataclasses import dataclass


@dataclass
class Request:
    """A single-turn request sent to a provider."""
    model: str
    user_message: str
    system_prompt: str | None = None
    stream: bool = True
    suppress_reasoning: bool = False

    def to_api_messages(self) -> list[dict]:
        """Messages in the role/content shape shared by OpenAI and Ollama."""
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.user_message})
        return messages


@dataclass(frozen=True)
class Token:
    """A fragment of streamed output.

    The final token marks the end of the stream and carries no text.
    """
    text: str = ""
    is_reasoning: bool = False
    is_final: bool = False

    @classmethod
    def answer(cls, text: str) -> "Token":
        return cls(text=text)

    @classmethod
    def reasoning(cls, text: str) -> "Token":
        return cls(text=text, is_reasoning=True)

    @classmethod
    def final(cls) -> "Token":
        return cls(is_final=True)


@dataclass
class FinalResponse:
    """A complete, non-streamed reply."""
    text: str
    reasoning: str | None = None


@dataclass
class ModelInfo:
    name: str
    description: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description}
