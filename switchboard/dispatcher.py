# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any
from switchboard.config import DialogConfig
from switchboard.messages import msg
from switchboard.metrics import DispatchMetrics
from switchboard.registry import HELP_INTENT, WELCOME_INTENT, CommandCallback, CommandRegistry
from switchboard.text import get_text

logger = logging.getLogger("[ DISPATCH ]")


# Reply being built for one inbound message. Callbacks may set text/end_session directly.
@dataclass
class DispatchResult:
    command: str | None
    user_text: str
    text: str = ""
    end_session: bool = False
    data: dict[str, Any] = field(default_factory=dict)


    @property
    def matched(self) -> bool:
        return self.command is not None


# Resolves each message once and runs the winning command's callback
class Dispatcher:

    def __init__(self, registry: CommandRegistry, dialog: DialogConfig | None = None, metrics: DispatchMetrics | None = None) -> None:
        self._registry = registry
        self._dialog = dialog or DialogConfig()
        self._metrics = metrics or registry.metrics


    @property
    def registry(self) -> CommandRegistry:
        return self._registry


    async def dispatch(self, user_text: str, is_first_message: bool = False) -> DispatchResult:
        command = self._registry.resolve(user_text)
        # a session's unmatched first message is a greeting
        if command is None and is_first_message:
            command = WELCOME_INTENT

        result = DispatchResult(command=command, user_text=user_text)
        if command is None:
            logger.debug("No command matched: %.80s", user_text)
            result.text = msg("dialog.not_understood")
            return result

        logger.info("Command matched: %s", command)
        if command == WELCOME_INTENT:
            result.text = get_text(self._dialog.welcome_text) or msg("dialog.welcome_text")
        elif command == HELP_INTENT:
            result.text = get_text(self._dialog.help_text) or msg("dialog.help_text")

        registered = self._registry.get_command(command)
        if registered is not None and registered.callback is not None:
            with self._metrics.measure("callback"):
                reply = await _run_callback(registered.callback, user_text, result)
            if reply is not None:
                result.text = reply

        return result


async def _run_callback(callback: CommandCallback, user_text: str, result: DispatchResult) -> str | None:
    try:
        if inspect.iscoroutinefunction(callback):
            reply = await callback(user_text, result)
        else:
            reply = callback(user_text, result)
            if inspect.isawaitable(reply):
                reply = await reply
    except Exception:
        logger.exception("Command callback failed: %s", result.command)

        return msg("dialog.callback_error")

    return None if reply is None else str(reply)
