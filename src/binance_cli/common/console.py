from __future__ import annotations

from typing import Callable


def confirm(prompt: str = "Are you sure? (y/N) ", input_fn: Callable[[str], str] = input) -> bool:
    try:
        answer = input_fn(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}
