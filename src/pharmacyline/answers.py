import re
import httpx
import logging
from dataclasses import dataclass

from pharmacyline.config import PharmacyInfo
from pharmacyline.prompts import get_answer_system_prompt

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class GatewayError(Exception):
    """The answer service failed or returned something we can't speak."""


@dataclass(frozen=True)
class AnswerPolicy:
    """What an open-question answer may contain and how long it may run."""

    info: PharmacyInfo
    max_tokens: int = 150
    # Roughly 30 seconds of speech at a relaxed phone pace.
    max_words: int = 80
    max_seconds: int = 30

    @property
    def system_prompt(self) -> str:
        return get_answer_system_prompt(self.info, self.max_words, self.max_seconds)


def fit_to_policy(answer: str, policy: AnswerPolicy) -> str:
    """Trim an answer to the spoken-length ceiling at a sentence boundary.

    Raises GatewayError when the answer is empty or no whole sentence fits.
    """
    text = " ".join(answer.split())
    if not text:
        raise GatewayError("empty answer")
    if len(text.split()) <= policy.max_words:
        return text

    kept = []
    count = 0
    for sentence in re.split(r"(?<=[.!?])\s+", text):
        words = len(sentence.split())
        if count + words > policy.max_words:
            break
        kept.append(sentence)
        count += words
    if not kept:
        raise GatewayError(f"answer exceeds {policy.max_words} words with no sentence break")
    return " ".join(kept)


class AnswerClient:
    """Answers open questions from callers with a chat completion.

    Any failure (timeout, HTTP error, malformed payload, unusable answer)
    comes back as {"error": ...} so the call escalates instead of retrying.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=timeout,
            )

    async def close(self):
        await self._client.aclose()

    async def ask(self, question: str, policy: AnswerPolicy) -> dict:
        try:
            resp = await self._client.post(
                OPENAI_CHAT_URL,
                json={
                    "model": self.model,
                    "max_tokens": policy.max_tokens,
                    "temperature": 0.3,
                    "messages": [
                        {"role": "system", "content": policy.system_prompt},
                        {"role": "user", "content": question},
                    ],
                },
            )
            resp.raise_for_status()
            content = _extract_content(resp.json())
            return {"answer": fit_to_policy(content, policy)}
        except Exception as e:
            logger.error("answer_question failed: %s", e)
            return {"error": str(e)}


def _extract_content(payload: dict) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise GatewayError(f"malformed completion payload: {e!r}") from e
    if not isinstance(content, str):
        raise GatewayError("completion content is not text")
    return content
