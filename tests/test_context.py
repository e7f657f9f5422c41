from __future__ import annotations

import pytest

from pycrudsync.context import Scope, bind
from pycrudsync.exceptions import MissingProviderError
from pycrudsync.observable import Observable


class _Counter(Observable):
    def __init__(self, start: int) -> None:
        super().__init__()
        self.value = start
        self.closed = False

    def increment(self) -> None:
        self.value += 1
        self._notify()

    def close(self) -> None:
        self.closed = True


def _use_counter_provider(scope: Scope, *, start: int = 0) -> _Counter:
    return _Counter(start)


def test_bind_returns_provider_and_accessor() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)

    assert CounterProvider.provider_name == "CounterProvider"
    assert use_counter.__name__ == "use_counter"


def test_accessor_reads_provider_value() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)

    with CounterProvider(Scope(), start=5) as scope:
        assert use_counter(scope).value == 5
        assert use_counter(scope.child()).value == 5


def test_accessor_without_provider_fails_with_contract_message() -> None:
    _CounterProvider, use_counter = bind(_use_counter_provider)

    with pytest.raises(MissingProviderError) as exc_info:
        use_counter(Scope())

    assert str(exc_info.value) == "use_counter must be used within a CounterProvider"


def test_explicit_name_drives_message() -> None:
    _provider, use_fields = bind(_use_counter_provider, name="Fields")

    with pytest.raises(MissingProviderError, match="^use_fields must be used within a FieldsProvider$"):
        use_fields(Scope())


def test_provider_republishes_value_changes() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)
    seen: list[int] = []

    with CounterProvider(Scope()) as scope:
        use_counter.subscribe(scope, lambda: seen.append(use_counter(scope).value))
        use_counter(scope).increment()
        use_counter(scope).increment()

    assert seen == [1, 2]


def test_unmount_closes_value_and_detaches_scope() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)
    provider = CounterProvider(Scope())

    scope = provider.mount()
    counter = use_counter(scope)
    provider.unmount()

    assert counter.closed is True
    with pytest.raises(MissingProviderError):
        use_counter(scope)


def test_nearest_provider_wins() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)

    with CounterProvider(Scope(), start=1) as outer:
        with CounterProvider(outer, start=2) as inner:
            assert use_counter(inner).value == 2
        assert use_counter(outer).value == 1


def test_unrelated_bindings_do_not_resolve_each_other() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)
    OtherProvider, use_other = bind(_use_counter_provider, name="Other")

    with CounterProvider(Scope(), start=1) as scope:
        with pytest.raises(MissingProviderError):
            use_other(scope)
        with OtherProvider(scope, start=9) as nested:
            assert use_other(nested).value == 9
            assert use_counter(nested).value == 1


def test_independent_roots_do_not_share_state() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)

    with CounterProvider(Scope(), start=1) as a, CounterProvider(Scope(), start=1) as b:
        use_counter(a).increment()
        assert use_counter(a).value == 2
        assert use_counter(b).value == 1


def test_hook_can_reach_ancestor_providers() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)

    def _use_double_provider(scope: Scope) -> int:
        return use_counter(scope).value * 2

    DoubleProvider, use_double = bind(_use_double_provider)

    with CounterProvider(Scope(), start=4) as scope:
        with DoubleProvider(scope) as nested:
            assert use_double(nested) == 8


@pytest.mark.asyncio
async def test_async_context_manager_mounts_and_unmounts() -> None:
    CounterProvider, use_counter = bind(_use_counter_provider)
    root = Scope()

    async with CounterProvider(root, start=3) as scope:
        counter = use_counter(scope)
        assert counter.value == 3

    assert counter.closed is True
