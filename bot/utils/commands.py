from typing import NamedTuple, Optional


class ParsedCommand(NamedTuple):
    name: str
    argument: Optional[str] = None


def parse_command(content: str) -> Optional[ParsedCommand]:
    """
    Split a chat message into its command and first argument.

    Commands are case sensitive and separated from their argument by a single
    space. Messages that don't start with "!" are not commands.
    """
    if not content.startswith("!"):
        return None
    parts = content.split(" ")
    argument = parts[1] if len(parts) > 1 and parts[1] else None
    return ParsedCommand(name=parts[0], argument=argument)
