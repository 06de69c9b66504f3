"""Shared dependencies for API routes.

FastAPI convention: deps.py contains reusable request dependencies.
All route files should import dependencies from here rather than
defining their own helper functions.

Usage with Annotated:
    from eventscope.api.deps import RepositoryDep

    @router.get("")
    async def list_events(repository: RepositoryDep) -> EventPage:
        ...
"""

from __future__ import annotations

__all__ = [
    # Dependency functions
    "get_config",
    "get_repository",
    "get_stats_source",
    # Type aliases for Annotated pattern
    "ConfigDep",
    "RepositoryDep",
    "StatsSourceDep",
    "StatsSource",
]

from typing import Annotated, Any, Callable

from fastapi import Depends, HTTPException, Request

from eventscope.config import AppConfig
from eventscope.query.repository import QueryRepository

# Returns a snapshot of pipeline counters
StatsSource = Callable[[], dict[str, Any]]


# =============================================================================
# Factory for State Getters
# =============================================================================


def _create_state_getter(
    attr_name: str,
    type_hint: str,
    error_detail: str,
) -> Callable[[Request], Any]:
    """Create a dependency function that retrieves a value from app.state.

    Args:
        attr_name: Attribute name on app.state (e.g., "config", "repository").
        type_hint: Type name used in the generated docstring.
        error_detail: Error message for the 503 response.

    Returns:
        A dependency function compatible with FastAPI's Depends().
    """

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise HTTPException(status_code=503, detail=error_detail)
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {type_hint} from app.state.\n\nRaises HTTPException 503 if not available."
    return getter


# =============================================================================
# Dependency Functions (generated via factory)
# =============================================================================

get_config: Callable[[Request], AppConfig] = _create_state_getter(
    "config",
    "AppConfig",
    "Config not available. Service may still be starting.",
)

get_repository: Callable[[Request], QueryRepository] = _create_state_getter(
    "repository",
    "QueryRepository",
    "Query repository not available. Service may still be starting.",
)

get_stats_source: Callable[[Request], StatsSource] = _create_state_getter(
    "stats_source",
    "StatsSource",
    "Pipeline statistics not available. Service may still be starting.",
)


# =============================================================================
# Type Aliases for Annotated Pattern
# =============================================================================

ConfigDep = Annotated[AppConfig, Depends(get_config)]
RepositoryDep = Annotated[QueryRepository, Depends(get_repository)]
StatsSourceDep = Annotated[StatsSource, Depends(get_stats_source)]
