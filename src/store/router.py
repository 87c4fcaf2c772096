from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from store.guard import RoleGuard
from utils.logger import get_logger

_logger = get_logger(__name__)

MAX_REDIRECTS = 5


@dataclass(frozen=True)
class Route:
    """
    A client side path.

    ``pattern`` segments starting with ":" capture a parameter, a trailing
    "*" matches any remainder. ``role`` None means public.
    """

    pattern: str
    name: str
    role: Optional[str] = None


NOT_FOUND = Route("*", "not_found")

APP_ROUTES = [
    Route("/", "home"),
    Route("/auth", "auth"),
    Route("/product/:id", "product"),
    Route("/assistant", "assistant"),
    Route("/buyer/dashboard", "home", role="buyer"),
    Route("/cart", "cart", role="buyer"),
    Route("/checkout", "checkout", role="buyer"),
    Route("/orders", "orders", role="buyer"),
    Route("/order/:id", "order", role="buyer"),
    Route("/seller/dashboard", "seller_products", role="seller"),
    Route("/seller/*", "seller_products", role="seller"),
    Route("/admin/dashboard", "admin_orders", role="admin"),
    Route("/admin/*", "admin_orders", role="admin"),
]

Params = Dict[str, str]
Renderer = Callable[[Route, Params], Awaitable[None]]


def _segments(path: str) -> List[str]:
    path = path.split("?", 1)[0]
    return [s for s in path.strip("/").split("/") if s]


def match_path(pattern: str, path: str) -> Optional[Params]:
    """Return captured params if ``path`` matches ``pattern``, else None."""
    pat = _segments(pattern)
    seg = _segments(path)

    if pat and pat[-1] == "*":
        pat = pat[:-1]
        if len(seg) < len(pat):
            return None
        seg = seg[: len(pat)]
    elif len(pat) != len(seg):
        return None

    params: Params = {}
    for p, s in zip(pat, seg):
        if p.startswith(":"):
            params[p[1:]] = s
        elif p != s:
            return None
    return params


def resolve(routes: Sequence[Route], path: str) -> Tuple[Route, Params]:
    """First matching route wins; unmatched paths give the not-found route."""
    for route in routes:
        params = match_path(route.pattern, path)
        if params is not None:
            return route, params
    return NOT_FOUND, {}


class Router:
    """
    Client side navigation: resolve the path, run the role guard, then hand
    the route to the renderer. Guard redirects are followed.
    """

    def __init__(
        self,
        routes: Sequence[Route],
        guard: RoleGuard,
        renderer: Optional[Renderer] = None,
        notifier=None,
    ) -> None:
        self.routes = list(routes)
        self.guard = guard
        self.renderer = renderer
        self.notifier = notifier
        self.history: List[str] = []

    @property
    def current_path(self) -> Optional[str]:
        return self.history[-1] if self.history else None

    async def navigate(self, path: str) -> None:
        for _ in range(MAX_REDIRECTS + 1):
            route, params = resolve(self.routes, path)
            decision = await self.guard.check(route.role)
            if decision.allowed:
                _logger.debug(f"Rendering {path} as {route.name}")
                self.history.append(path)
                if self.renderer is not None:
                    await self.renderer(route, params)
                return

            _logger.info(f"Blocked {path}, redirecting to {decision.redirect}")
            if self.notifier is not None and decision.reason:
                self.notifier.notify(decision.reason, severity="warning")
            path = decision.redirect

        raise RuntimeError(f"Too many redirects while navigating to {path}")
