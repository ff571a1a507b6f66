"""Router configuration.

RouterConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """Router configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = RouterConfig(case_sensitive=True, debug=True)
    """

    # Default for routes registered without an explicit case_sensitive option
    case_sensitive: bool = False

    # Seal the route table on first dispatch; later registration raises
    seal_on_dispatch: bool = True

    # ASGI binding: include error detail in 500 response bodies
    debug: bool = False
