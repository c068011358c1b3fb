"""Route and RouteMatch frozen dataclasses."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storefront._internal.types import Target

if TYPE_CHECKING:
    from storefront.routing.guards import Guard


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route.

    Built once when the route table is loaded and never mutated afterwards.
    ``template`` is the prefixed, slash-trimmed template (``""`` for the root)
    and ``pattern`` its compiled, case-insensitive matcher.
    """

    method: str
    template: str
    pattern: re.Pattern[str]
    target: Target
    guards: tuple[Guard, ...] = ()
    param_names: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        """Display form of the template, always with a leading slash."""
        return "/" + self.template


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful match: the route plus extracted parameters."""

    route: Route
    params: Mapping[str, str | int] = field(default_factory=dict)
    path: str = "/"

    @property
    def target(self) -> Target:
        return self.route.target
