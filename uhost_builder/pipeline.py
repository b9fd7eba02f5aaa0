"""Minimal step runner: shared state, forward run, reverse cleanup.

Steps run in order until one halts or the build is cancelled. Every step
that was started is then cleaned up in reverse order, whatever the outcome.
A failing cleanup never stops its siblings.

Example:
    state = StateBag({"client": client, "ui": ConsoleUi(), "config": config,
                      "source_image": image})
    action = run_steps([StepCreateInstance.from_config(config)], state)
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from uhost_builder.core.exceptions import ProvisioningError
from uhost_builder.logging import _setup_logging, _teardown_logging

if TYPE_CHECKING:
    from uhost_builder.logging import LogConfig
    from uhost_builder.ui import Ui

log = logger.bind(component="pipeline")

_MISSING: Any = object()

# Well-known state keys
STATE_CANCEL = "cancel"
STATE_CANCELLED = "cancelled"
STATE_HALTED = "halted"
STATE_ERROR = "error"


class StepAction(Enum):
    CONTINUE = "continue"
    HALT = "halt"


class StateBag:
    """Key-value store shared by the steps of one build."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = _MISSING) -> Any:
        if key in self._data:
            return self._data[key]
        if default is _MISSING:
            raise KeyError(f"state has no {key!r}")
        return default

    def get_ok(self, key: str) -> tuple[Any, bool]:
        if key in self._data:
            return self._data[key], True
        return None, False

    def put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class Step(Protocol):
    def run(self, state: StateBag) -> StepAction: ...

    def cleanup(self, state: StateBag) -> object: ...


def halt(state: StateBag, error: BaseException, message: str) -> StepAction:
    """Record a step failure, report it and tell the runner to stop."""
    wrapped = ProvisioningError(f"{message}, {error}")
    wrapped.__cause__ = error
    state.put(STATE_ERROR, wrapped)
    ui: Ui = state.get("ui")
    ui.error(str(wrapped))
    return StepAction.HALT


def run_steps(
    steps: Sequence[Step],
    state: StateBag,
    *,
    cancel: threading.Event | None = None,
    logging: LogConfig | None = None,
) -> StepAction:
    """Run ``steps`` forward, then clean up every started step in reverse.

    Returns:
        CONTINUE when every step ran through, HALT otherwise.
    """
    handler_ids = _setup_logging(logging) if logging is not None else []
    event = cancel if cancel is not None else threading.Event()
    state.put(STATE_CANCEL, event)

    started: list[Step] = []
    result = StepAction.CONTINUE
    try:
        for step in steps:
            if event.is_set():
                state.put(STATE_CANCELLED, True)
                result = StepAction.HALT
                break

            started.append(step)
            log.debug("Running step {step}", step=type(step).__name__)
            if step.run(state) is StepAction.HALT:
                state.put(STATE_CANCELLED if event.is_set() else STATE_HALTED, True)
                result = StepAction.HALT
                break
    except KeyboardInterrupt:
        event.set()
        state.put(STATE_CANCELLED, True)
        raise
    finally:
        for step in reversed(started):
            try:
                step.cleanup(state)
            except Exception:
                log.exception("Cleanup of {step} failed", step=type(step).__name__)
        if handler_ids:
            _teardown_logging(handler_ids)

    return result
