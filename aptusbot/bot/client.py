"""
Minimal Telegram Bot API client
"""
import logging
from typing import Any, Dict, List, Optional
import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class TelegramError(Exception):
    """Raised when the Bot API answers with ok=false or a non-2xx status"""


def book_now_keyboard(action: str, text: str = "Book Now") -> Dict[str, Any]:
    """Inline keyboard with a single callback button"""
    return {"inline_keyboard": [[{"text": text, "callback_data": action}]]}


class TelegramClient:
    """Thin async wrapper over the Bot API methods the bot uses"""

    def __init__(
        self,
        bot_token: str,
        timeout: float = 40.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.client = httpx.AsyncClient(
            base_url=f"{API_BASE}/bot{bot_token}",
            timeout=timeout,
            transport=transport,
        )

    async def _call(self, method: str, **params) -> Any:
        payload = {k: v for k, v in params.items() if v is not None}
        response = await self.client.post(f"/{method}", json=payload)
        try:
            data = response.json()
        except ValueError:
            raise TelegramError(f"{method}: non-JSON response ({response.status_code})")
        if response.status_code != 200 or not data.get("ok"):
            raise TelegramError(f"{method}: {data.get('description', response.status_code)}")
        return data.get("result")

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def send_message(
        self,
        chat_id: str,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Send a text message; returns False instead of raising"""
        try:
            await self._call("sendMessage", chat_id=chat_id, text=text, reply_markup=reply_markup)
            logger.info(f"Sent message to chatId: {chat_id}")
            return True
        except (TelegramError, httpx.HTTPError) as e:
            logger.error(f"Failed to send message to chatId: {chat_id}. Error: {e}")
            return False

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> bool:
        try:
            await self._call("answerCallbackQuery", callback_query_id=callback_query_id, text=text)
            return True
        except (TelegramError, httpx.HTTPError) as e:
            logger.warning(f"Failed to answer callback query {callback_query_id}: {e}")
            return False

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 30) -> List[Dict[str, Any]]:
        """
        Long-poll for updates.

        Raises:
            TelegramError, httpx.HTTPError
        """
        return await self._call(
            "getUpdates",
            offset=offset,
            timeout=timeout,
            allowed_updates=["message", "callback_query"],
        ) or []

    async def aclose(self):
        await self.client.aclose()
