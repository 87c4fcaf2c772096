from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Set

import httpx

import api.endpoints as endpoints
from api.client import ApiClient
from api.errors import ApiError
from api.models import ConversationMessage, ProductRecommendation, SizeRecommendation
from store.interfaces import Notifier
from utils.logger import get_logger

_logger = get_logger(__name__)

_REQUEST_ERRORS = (ApiError, httpx.HTTPError, ValueError, KeyError)

CHAT_ERROR_REPLY = (
    "I'm sorry, but I'm having trouble processing your request right now. "
    "Please try again later."
)
QA_ERROR_REPLY = (
    "I'm sorry, but I'm having trouble finding information about this product right now."
)
DEFAULT_SIZE = SizeRecommendation(
    recommended_size=None,
    confidence=0.0,
    message="Sign in to get personalized size recommendations",
)


class AssistantSession:
    """
    Shopping assistant state of one app run: session id, conversation and
    the latest recommendations.

    The session id comes from the backend on first use. When that call fails
    a local ``session_<millis>`` id is used for the rest of the run (see
    ``degraded``); ``reset`` drops it so the next use asks the backend again.
    """

    def __init__(
        self,
        client: ApiClient,
        notifier: Notifier,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._clock = clock
        self._session_lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()

        self.session_id: Optional[str] = None
        self.degraded = False
        self.conversation_history: List[ConversationMessage] = []
        self.personalized_recommendations: List[ProductRecommendation] = []
        self.complementary_products: List[ProductRecommendation] = []
        self.size_recommendation: SizeRecommendation = DEFAULT_SIZE
        self.is_loading = False

    async def ensure_session(self) -> str:
        if self.session_id:
            return self.session_id
        async with self._session_lock:
            if self.session_id:
                return self.session_id
            try:
                self.session_id = await endpoints.get_ai_session(self._client)
                self.degraded = False
            except _REQUEST_ERRORS as e:
                self.session_id = f"session_{int(self._clock() * 1000)}"
                self.degraded = True
                _logger.error(
                    f"Error initializing AI session, using local id {self.session_id}: {e}"
                )
        return self.session_id

    # ---------------------------
    # Telemetry
    # ---------------------------

    def track_activity(
        self,
        activity_type: str,
        product_id: Optional[int] = None,
        category_id: Optional[int] = None,
        search_query: Optional[str] = None,
        additional_data: Optional[Dict[str, Any]] = None,
    ) -> asyncio.Task:
        """
        Record a user activity in the background. The caller never waits for
        it; failures are logged and dropped.
        """
        task = asyncio.create_task(
            self._track(activity_type, product_id, category_id, search_query, additional_data)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _track(
        self,
        activity_type: str,
        product_id: Optional[int],
        category_id: Optional[int],
        search_query: Optional[str],
        additional_data: Optional[Dict[str, Any]],
    ) -> None:
        session_id = await self.ensure_session()
        try:
            await endpoints.track_activity(
                self._client,
                session_id,
                activity_type,
                product_id=product_id,
                category_id=category_id,
                search_query=search_query,
                additional_data=additional_data,
            )
        except _REQUEST_ERRORS as e:
            _logger.error(f"Error tracking activity {activity_type}: {e}")

    # ---------------------------
    # Recommendations
    # ---------------------------

    async def fetch_recommendations(self, limit: int = 5) -> List[ProductRecommendation]:
        session_id = await self.ensure_session()
        try:
            self.personalized_recommendations = await endpoints.get_recommendations(
                self._client, session_id, limit
            )
        except _REQUEST_ERRORS as e:
            _logger.error(f"Error fetching personalized recommendations: {e}")
        return self.personalized_recommendations

    async def get_complementary_products(
        self, product_id: int, limit: int = 5
    ) -> List[ProductRecommendation]:
        if not product_id:
            return []
        session_id = await self.ensure_session()
        try:
            self.complementary_products = await endpoints.get_complementary_products(
                self._client, product_id, session_id, limit
            )
        except _REQUEST_ERRORS as e:
            _logger.error(f"Error fetching complementary products: {e}")
            return []
        return self.complementary_products

    async def get_size_recommendation(
        self, product_id: int, category: Optional[str] = None
    ) -> SizeRecommendation:
        if not product_id:
            return SizeRecommendation(None, 0.0, "No product selected")
        try:
            self.size_recommendation = await endpoints.get_size_recommendation(
                self._client, product_id, category
            )
        except _REQUEST_ERRORS as e:
            _logger.error(f"Error fetching size recommendation: {e}")
            return SizeRecommendation(None, 0.0, "Unable to determine size recommendation")
        return self.size_recommendation

    # ---------------------------
    # Conversation
    # ---------------------------

    async def ask_product_question(self, product_id: int, question: str) -> str:
        if not product_id or not question.strip():
            return "Missing required information"
        session_id = await self.ensure_session()
        self.is_loading = True
        try:
            return await endpoints.ask_product_question(
                self._client, product_id, question, session_id
            )
        except _REQUEST_ERRORS as e:
            _logger.error(f"Error asking product question: {e}")
            return QA_ERROR_REPLY
        finally:
            self.is_loading = False

    async def send_message(
        self,
        text: str,
        product_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> None:
        """
        Show the user's message right away, then replace the conversation
        with the server's version of it. On failure an apology is appended
        after the user's message, which stays in place.
        """
        if not text.strip():
            return
        session_id = await self.ensure_session()

        history = list(self.conversation_history)
        self.conversation_history.append(ConversationMessage("user", text))
        self.is_loading = True
        try:
            self.conversation_history = await endpoints.chat(
                self._client,
                text,
                session_id,
                history,
                product_id=product_id,
                category_id=category_id,
            )
        except _REQUEST_ERRORS as e:
            _logger.error(f"Error sending message to AI assistant: {e}")
            self.conversation_history.append(ConversationMessage("assistant", CHAT_ERROR_REPLY))
            self._notifier.notify(
                "Unable to reach the AI assistant. Please try again later.",
                title="Communication Error",
                severity="error",
            )
        finally:
            self.is_loading = False

    def clear_conversation(self) -> None:
        self.conversation_history = []

    # ---------------------------
    # Lifecycle
    # ---------------------------

    def reset(self) -> None:
        """Forget everything tied to the previous user, used on logout."""
        self.session_id = None
        self.degraded = False
        self.conversation_history = []
        self.personalized_recommendations = []
        self.complementary_products = []
        self.size_recommendation = DEFAULT_SIZE

    async def aclose(self) -> None:
        """Let pending telemetry finish before the client goes away."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
