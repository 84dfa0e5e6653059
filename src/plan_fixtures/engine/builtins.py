"""Process-wide registry of custom builtin functions.

Some conformance cases call functions that only exist in the engine's own
test harness (``test.sleep``). Registering them here declares them to the
plan compiler through the capabilities document and substitutes a fixed
return value for every call during evaluation. Registration happens once at
startup, before any case is processed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomBuiltin:
    """Declaration of a custom builtin function.

    Attributes:
        name: Dotted function name as called from Rego (e.g. ``test.sleep``)
        args: Capability type names of the positional arguments
        result: Capability type name of the return value
        returns: Rego term every call evaluates to
    """

    name: str
    args: Tuple[str, ...] = ()
    result: str = "any"
    returns: str = "null"

    def declaration(self) -> Dict[str, Any]:
        """Capabilities entry for this builtin."""
        return {
            "name": self.name,
            "decl": {
                "type": "function",
                "args": [{"type": arg} for arg in self.args],
                "result": {"type": self.result},
            },
        }

    def mock_modifier(self) -> str:
        """``with`` modifier replacing every call during evaluation."""
        return f"with {self.name} as {self.returns}"


# Delay helper used by time-sensitive conformance cases. Clock builtins are
# frozen for the duration of a query, so only its null result is observable.
TEST_SLEEP = CustomBuiltin(name="test.sleep", args=("string",), result="null")

_registry: Dict[str, CustomBuiltin] = {}
_defaults_registered: bool = False


def register_builtin(builtin: CustomBuiltin) -> None:
    """Register (or replace) a custom builtin by name."""
    if builtin.name in _registry:
        logger.debug(f"Replacing custom builtin '{builtin.name}'")
    _registry[builtin.name] = builtin


def register_default_builtins() -> None:
    """Register the builtins every run needs. Repeat calls are no-ops."""
    global _defaults_registered

    if _defaults_registered:
        return

    register_builtin(TEST_SLEEP)
    _defaults_registered = True
    logger.debug("Registered default custom builtins: %s", ", ".join(sorted(_registry)))


def registered_builtins() -> List[CustomBuiltin]:
    """Registered builtins, sorted by name."""
    return [_registry[name] for name in sorted(_registry)]


def clear_builtins() -> None:
    """Forget every registration (used by tests)."""
    global _defaults_registered

    _registry.clear()
    _defaults_registered = False


def extend_capabilities(
    capabilities: Dict[str, Any],
    builtins: List[CustomBuiltin],
) -> Dict[str, Any]:
    """Return a copy of a capabilities document with custom builtins added.

    Existing declarations with the same name are replaced.
    """
    names = {b.name for b in builtins}
    existing = [
        decl for decl in capabilities.get("builtins", [])
        if decl.get("name") not in names
    ]
    extended = dict(capabilities)
    extended["builtins"] = existing + [b.declaration() for b in builtins]
    return extended
