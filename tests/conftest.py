from typing import List

import pytest

from prompty import Engine, FunctionResolver, ResolveCall


@pytest.fixture
def engine() -> Engine:
    """Engine with default configuration and only the built-in resolvers."""
    return Engine()


class RecordingResolver(FunctionResolver):
    """Resolver that returns a fixed text and remembers every call it receives."""

    def __init__(self, tag_name: str, text: str = ""):
        self.calls: List[ResolveCall] = []
        super().__init__(tag_name, self._record)
        self.text = text

    def _record(self, call, context, attrs) -> str:
        self.calls.append(call)
        return self.text


@pytest.fixture
def failing_engine(engine: Engine) -> Engine:
    """Engine with ``acme.fail``, a resolver that always raises."""
    def _fail(call, context, attrs):
        raise RuntimeError("boom")

    engine.register_resolver(FunctionResolver("acme.fail", _fail))
    return engine


@pytest.fixture
def recording_resolver(engine: Engine) -> RecordingResolver:
    resolver = RecordingResolver("acme.record", "[rec]")
    engine.register_resolver(resolver)
    return resolver
