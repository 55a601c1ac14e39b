"""Shared fixtures: a hand-driven event loop and a small sample analysis."""

from typing import Any, Callable

import pytest

from noteflow.models import AnalysisResult, Box, Frame


class FakeTimerHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        """Run the callback as a loop would, even if it was cancelled meanwhile."""
        self.fired = True
        self.callback(*self.args)


class FakeLoop:
    """Just enough of an asyncio loop for ``call_later``, advanced by hand."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[FakeTimerHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.now = handle.when
            handle.fire()
        self.now = target


@pytest.fixture
def loop() -> FakeLoop:
    return FakeLoop()


def make_frame(index: int, notes: list[str], duration: float, **kwargs: Any) -> Frame:
    return Frame(
        id=f"frame-{index}",
        page_index=kwargs.get("page_index", 0),
        notes=tuple(notes),
        duration=duration,
        region=kwargs.get("region", Box(100, 200, 300, 600)),
        highlights=tuple(kwargs.get("highlights", ())),
    )


@pytest.fixture
def scenario() -> AnalysisResult:
    """tempo 120: C4 for 1 beat, a half-beat rest, then E4+G4 for 2 beats."""
    return AnalysisResult(
        tempo=120.0,
        frames=(
            make_frame(0, ["C4"], 1.0),
            make_frame(1, ["rest"], 0.5),
            make_frame(2, ["E4", "G4"], 2.0),
        ),
    )
