# conversation.py
# Append-only message log replayed to the completion service every round.

from collections.abc import Iterator

from tool_agent.models import Message, Role
from tool_agent.protocol import observation_message


class Conversation:
    """
    Ordered, append-only conversation state for one top-level query.

    The first message is always the system prompt. Messages are never
    reordered, removed, or truncated; there is no context-window eviction.
    """

    def __init__(self, system_prompt: str) -> None:
        self._messages: list[Message] = [Message(role=Role.SYSTEM, content=system_prompt)]

    def append(self, message: Message) -> Message:
        if message.role is Role.SYSTEM:
            raise ValueError("Only the initial message may carry the system role.")
        self._messages.append(message)
        return message

    def add_user(self, content: str) -> Message:
        return self.append(Message(role=Role.USER, content=content))

    def add_assistant(self, content: str) -> Message:
        return self.append(Message(role=Role.ASSISTANT, content=content))

    def add_observation(self, content: str) -> Message:
        return self.append(observation_message(content))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Message:
        return self._messages[-1]

    def to_payload(self) -> list[dict[str, str]]:
        """Render as the list of {role, content} dicts the chat API expects."""
        return [{"role": m.role.value, "content": m.content} for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)
