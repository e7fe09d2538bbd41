"""Worker process entry point that scores programs on request."""

from __future__ import annotations

import logging
import os
from multiprocessing.connection import Connection
from typing import Any

from machine.tape import TapeMachine

LOGGER = logging.getLogger(__name__)


def handle_request(machine: TapeMachine, message: dict[str, Any]) -> dict[str, Any]:
    """Score ``message["genes"]`` and return the request augmented with the result."""
    result = machine.evaluate(message["genes"])
    reply = dict(message)
    reply["fitness_result"] = result.to_dict()
    return reply


def worker_main(conn: Connection, goal: str, tape_size: int, max_ops: int) -> None:
    """Serve evaluation requests on ``conn`` until a ``None`` shutdown message.

    Announces readiness once the private interpreter is built. A closed pipe
    is treated as shutdown too.
    """
    machine = TapeMachine(goal=goal, tape_size=tape_size, max_ops=max_ops)
    conn.send({"event": "ready", "pid": os.getpid()})

    while True:
        try:
            message = conn.recv()
        except EOFError:
            break
        if message is None:
            break
        conn.send(handle_request(machine, message))

    LOGGER.debug("Tester %s shutting down", os.getpid())
    conn.close()
