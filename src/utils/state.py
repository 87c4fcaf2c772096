from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from api.client import ApiClient
from store.assistant import AssistantSession
from store.cache import QueryCache
from store.cart import CartStore
from store.checkout import CheckoutFlow
from store.guard import RoleGuard
from store.interfaces import Notifier
from store.router import APP_ROUTES, Renderer, Router
from store.session import SessionReader


@dataclass
class AppState:
    """
    Every store of the app, built once at startup and handed to screens
    through ``app.state``.

    Fields:
      - client: the cookie carrying http client
      - cache: server responses shared by all screens
      - session / guard / router: who is logged in, and where they may go
      - cart / checkout: the buyer's cart and order placement
      - assistant: the shopping assistant conversation
    """

    client: ApiClient
    cache: QueryCache
    session: SessionReader
    guard: RoleGuard
    router: Router
    cart: CartStore
    checkout: CheckoutFlow
    assistant: AssistantSession

    @classmethod
    def create(
        cls,
        notifier: Notifier,
        renderer: Optional[Renderer] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AppState":
        client = ApiClient(base_url=base_url, transport=transport)
        cache = QueryCache()
        session = SessionReader(client, cache)
        guard = RoleGuard(session)
        router = Router(APP_ROUTES, guard, renderer=renderer, notifier=notifier)
        cart = CartStore(client, cache, session, router, notifier)
        checkout = CheckoutFlow(client, cache, session, cart, router, notifier)
        assistant = AssistantSession(client, notifier)
        return cls(
            client=client,
            cache=cache,
            session=session,
            guard=guard,
            router=router,
            cart=cart,
            checkout=checkout,
            assistant=assistant,
        )

    async def end_session(self) -> None:
        """
        Log out and reset every store. Only called upon logging out.
        """
        try:
            await self.session.logout()
        finally:
            self.assistant.reset()

    async def aclose(self) -> None:
        await self.assistant.aclose()
        await self.client.aclose()
