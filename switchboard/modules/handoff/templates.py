"""Natural-language messages sent to users and agents during a handoff."""

QUEUED = "Putting you in queue for agent"
RECONNECTED_TO_BOT = "You are reconnected to the bot"
NO_QUEUED_USERS = "No queued users"
ALREADY_CONNECTED = "You are currently connected to a user. You must disconnect first."
NOT_CONNECTED = "You are not connected to a user"
HISTORY_ONLY_WHEN_CONNECTED = "This command is only valid when connected to a user"
HISTORY_BEGIN = "Beginning message history"
HISTORY_END = "End of messages"


def connected_to(name: str) -> str:
    return f"You are now connected to {name}"


def queued_users(names: list[str]) -> str:
    message = f"There are currently {len(names)} users\n\n"
    for name in names:
        message += f"- {name}\n\n"
    return message


def command_help(marker: str) -> str:
    return (
        "Available commands:\n\n"
        f"{marker}list - show users waiting for an agent\n\n"
        f"{marker}connect - connect to the longest waiting user\n\n"
        f"{marker}history - replay the connected user's messages\n\n"
        f"{marker}disconnect - hand the user back to the bot"
    )
