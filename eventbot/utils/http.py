import logging
from dataclasses import dataclass

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

log = logging.getLogger("http")

@dataclass(frozen=True)
class HttpPolicy:
    user_agent: str = "community-event-bot/1.0"
    timeout_seconds: float = 20.0

class HttpClient:
    """
    Minimal async client with:
    - explicit User-Agent
    - conservative timeouts
    - a few retries on transport errors
    """

    def __init__(self, policy: HttpPolicy | None = None):
        self.policy = policy or HttpPolicy()
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self.policy.user_agent},
            timeout=self.policy.timeout_seconds,
            follow_redirects=True,
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_fixed(2),
        reraise=True,
    )
    async def get_text(self, url: str, params: dict[str, str] | None = None) -> str:
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()
        return resp.text

    async def aclose(self) -> None:
        await self._client.aclose()
