"""Interpreter implementations, looked up by identity.

Registered classes describe a dialect with its default binary, arguments
and prompt. resolve_implementation() turns an identity into a configured
instance: explicit arguments win over the [implementations.<name>] config
table, which wins over the registered defaults.
"""

from typing import TYPE_CHECKING, Optional, Type

from ..exceptions import UnknownImplementationError
from .base import Implementation
from .generic import GenericImplementation

if TYPE_CHECKING:
    from ..config import Config

_IMPLEMENTATIONS: dict[str, Type[Implementation]] = {}


def register_implementation(impl_class: Type[Implementation]) -> Type[Implementation]:
    """Class decorator; the class's `name` becomes its identity."""
    if not impl_class.name:
        raise ValueError(f"{impl_class.__name__} has no identity")
    _IMPLEMENTATIONS[impl_class.name] = impl_class
    return impl_class


def registered_identities() -> list[str]:
    return sorted(_IMPLEMENTATIONS)


def get_implementation(identity: str) -> Optional[Implementation]:
    """A fresh instance with registered defaults, or None when unregistered."""
    impl_class = _IMPLEMENTATIONS.get(identity)
    return impl_class() if impl_class else None


def get_all_implementations(config: Optional["Config"] = None) -> list[Implementation]:
    """Every registered implementation, with config overrides applied."""
    return [resolve_implementation(identity, config) for identity in registered_identities()]


def resolve_implementation(
    identity: str,
    config: Optional["Config"] = None,
    binary: Optional[str] = None,
    args=None,
    prompt_pattern: Optional[str] = None,
) -> Implementation:
    """An instance for identity with binary, arguments and prompt settled.

    An unregistered identity gets a GenericImplementation, provided a binary
    and a prompt are known for it.
    """
    override = config.override_for(identity) if config else None
    if override is not None:
        binary = binary or override.binary
        prompt_pattern = prompt_pattern or override.prompt
        if args is None:
            args = override.args

    implementation = get_implementation(identity)
    if implementation is None:
        if not binary or not prompt_pattern:
            known = ", ".join(registered_identities())
            raise UnknownImplementationError(
                identity,
                f"not a known implementation ({known}); "
                "configure a binary and prompt under [implementations." + identity + "]",
            )
        implementation = GenericImplementation(identity, binary, prompt_pattern)
    else:
        if binary:
            implementation.binary = binary
        if prompt_pattern:
            implementation.prompt_pattern = prompt_pattern

    if args is not None:
        implementation.arguments = tuple(args)
    if not implementation.binary or not implementation.prompt_pattern:
        raise UnknownImplementationError(identity, "No binary or prompt configured")
    return implementation


# Import implementations to trigger registration
from . import guile  # noqa: F401, E402
from . import racket  # noqa: F401, E402
from . import chicken  # noqa: F401, E402
