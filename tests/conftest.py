from __future__ import annotations

import random

import pytest


class ScriptedRandom(random.Random):
    """random() replays a script, then returns ``fallback`` forever."""

    def __init__(self, script, fallback: float = 0.99, seed: int = 1):
        super().__init__(seed)
        self.script = list(script)
        self.fallback = fallback

    def random(self) -> float:
        if self.script:
            return self.script.pop(0)
        return self.fallback

    # without it, Random.__init_subclass__ routes randint through random()
    # and the ISN draw would consume the script
    def getrandbits(self, k: int) -> int:
        return super().getrandbits(k)


@pytest.fixture
def scripted_rng():
    return ScriptedRandom


class Recorder:
    def __init__(self):
        self.sent = []
        self.logged = []

    def send(self, raw, segment, event):
        self.sent.append((event, raw, segment))

    def log(self, event, segment):
        self.logged.append((event, segment))

    @property
    def events(self):
        return [e for e, _, _ in self.sent]


@pytest.fixture
def recorder():
    return Recorder()
