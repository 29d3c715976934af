"""Registry of named check factories.

Profiles refer to checks by name; the loader looks the factory up here and
calls it with the rule's `args` to obtain the check callable.
"""

from typing import Any, Callable, Iterable

from dansbag.rules.models import Check

CheckFactory = Callable[..., Check]


class CheckRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, CheckFactory] = {}

    def register(self, name: str, factory: CheckFactory) -> None:
        if not name:
            raise ValueError("Check factory must have a name")
        if name in self._factories:
            raise ValueError(f"Duplicate check registered: {name}")
        self._factories[name] = factory

    def create(self, name: str, **args: Any) -> Check:
        return self._factories[name](**args)

    def names(self) -> Iterable[str]:
        return self._factories.keys()

    def __contains__(self, name: object) -> bool:
        return name in self._factories


checks = CheckRegistry()


def register_check(name: str) -> Callable[[CheckFactory], CheckFactory]:
    """Decorator registering a check factory in the global registry."""

    def decorator(factory: CheckFactory) -> CheckFactory:
        checks.register(name, factory)
        return factory

    return decorator
