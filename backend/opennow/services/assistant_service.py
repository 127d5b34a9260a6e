from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from ..config import Settings
from ..errors import OpenNowError, UpstreamError
from ..models import GeoPoint
from .ranking_service import RankedBusiness, RankingService, SearchParams
from .time_service import status_label, utcnow

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "searchBusinesses"
BOOST_MARKER = "🚀"
DESCRIPTION_PREVIEW_CHARS = 120
APOLOGY_TEXT = (
    "Opa! Tive um pequeno curto-circuito aqui. ⚡\n"
    "Pode repetir a pergunta? Estou aprendendo a ser um gênio! 🟣"
)
SALES_KEYWORDS = ("cadastrar", "Premium")

SYSTEM_PROMPT = """Você é a Nôni, assistente do OpenNow, um guia de comércios locais.
Fale em português do Brasil, de forma simpática e breve, com no máximo um emoji por frase.
Sempre que a pessoa procurar um produto, serviço ou lugar, chame a ferramenta searchBusinesses.
Informe em inferredCategory a categoria mais provável (por exemplo Farmácia, Alimentação, Saúde).
Use filterOpen=true quando a pessoa pedir algo aberto agora.
Nunca invente estabelecimentos: fale apenas dos resultados retornados pela ferramenta.
Se nada for encontrado, sugira que o dono do negócio se cadastre no OpenNow ou conheça o plano Premium.
Responda em JSON no formato {"text": "<sua resposta>"}."""

SEARCH_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": "Busca comércios locais cadastrados no OpenNow.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Termo de busca: produto, serviço ou nome do comércio.",
                },
                "inferredCategory": {
                    "type": "string",
                    "description": "Categoria provável, usada quando o termo não encontra nada.",
                },
                "filterOpen": {
                    "type": "boolean",
                    "description": "Retornar apenas comércios abertos agora.",
                },
            },
            "required": ["query"],
        },
    },
}


def format_tool_distance(distance_km: float | None) -> str:
    if distance_km is None:
        return "N/A"
    return f"{distance_km:.1f}km"


def _preview(text: str) -> str:
    if len(text) <= DESCRIPTION_PREVIEW_CHARS:
        return text
    return text[:DESCRIPTION_PREVIEW_CHARS].rstrip() + "..."


def project_result(item: RankedBusiness) -> dict[str, Any]:
    business = item.business
    name = f"{BOOST_MARKER} {business.name}" if item.boosted else business.name
    return {
        "id": business.business_id,
        "name": name,
        "category": business.category,
        "description": _preview(business.description),
        "status": status_label(item.is_open),
        "open_time": business.open_time,
        "close_time": business.close_time,
        "distance": format_tool_distance(item.distance_km),
        "whatsapp": business.whatsapp,
    }


class SearchToolAdapter:
    """Exposes the ranking engine to the model as a single callable tool."""

    def __init__(self, ranking: RankingService, result_limit: int = 5) -> None:
        self.ranking = ranking
        self.result_limit = result_limit

    async def run(
        self,
        arguments: dict[str, Any],
        user_location: GeoPoint | None = None,
        now_utc: datetime | None = None,
    ) -> list[dict[str, Any]]:
        query = arguments.get("query")
        category = arguments.get("inferredCategory")
        params = SearchParams(
            query=query if isinstance(query, str) else None,
            filter_open_only=arguments.get("filterOpen") is True,
            user_location=user_location,
            inferred_category=category if isinstance(category, str) else None,
            limit=self.result_limit,
        )
        ranked = await self.ranking.search(params, now_utc)
        return [project_result(item) for item in ranked]


class ConversationStore:
    """Per-user chat history, trimmed to the most recent messages."""

    def __init__(self, max_messages: int = 20) -> None:
        self.max_messages = max_messages
        self._histories: dict[str, list[dict[str, Any]]] = defaultdict(list)

    def history(self, user_id: str) -> list[dict[str, Any]]:
        return list(self._histories.get(user_id, []))

    def append(self, user_id: str, *messages: dict[str, Any]) -> None:
        history = self._histories[user_id]
        history.extend(messages)
        del history[: max(0, len(history) - self.max_messages)]


@dataclass
class ChatReply:
    text: str
    results: list[dict[str, Any]] = field(default_factory=list)
    action: str = "none"

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text, "results": self.results, "action": self.action}


def infer_action(text: str, results: list[dict[str, Any]]) -> str:
    if any(keyword in text for keyword in SALES_KEYWORDS):
        return "sales_pitch"
    if results:
        return "list"
    return "none"


def unwrap_envelope(content: str | None) -> str:
    """Pull ``text`` out of a ``{"text": ...}`` reply; plain text passes through."""
    if not content:
        return ""
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()
    try:
        envelope = json.loads(cleaned)
    except ValueError:
        return content.strip()
    if isinstance(envelope, dict) and isinstance(envelope.get("text"), str):
        return envelope["text"]
    return content.strip()


def _tool_call_message(message: Any) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": message.content or "",
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.function.name, "arguments": call.function.arguments},
            }
            for call in message.tool_calls
        ],
    }


class AssistantService:
    def __init__(
        self,
        client: AsyncOpenAI | None,
        tool: SearchToolAdapter,
        conversations: ConversationStore,
        settings: Settings,
    ) -> None:
        self.client = client
        self.tool = tool
        self.conversations = conversations
        self.settings = settings

    async def _complete(self, messages: list[dict[str, Any]]) -> Any:
        if self.client is None:
            raise UpstreamError("AI provider is not configured")
        response = await self.client.chat.completions.create(
            model=self.settings.ai_model,
            messages=messages,
            tools=[SEARCH_TOOL],
        )
        return response.choices[0].message

    async def _converse(
        self,
        user_id: str,
        message: str,
        user_location: GeoPoint | None,
        now_utc: datetime,
    ) -> ChatReply:
        user_message = {"role": "user", "content": message}
        messages = [{"role": "system", "content": SYSTEM_PROMPT}, *self.conversations.history(user_id), user_message]

        reply = await self._complete(messages)
        results: list[dict[str, Any]] = []
        tool_calls = reply.tool_calls or []
        if tool_calls:
            messages.append(_tool_call_message(reply))
            for call in tool_calls:
                if call.function.name != SEARCH_TOOL_NAME:
                    content: Any = {"error": f"unknown tool {call.function.name}"}
                else:
                    arguments = json.loads(call.function.arguments or "{}")
                    results = await self.tool.run(arguments, user_location, now_utc)
                    content = results
                messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(content, ensure_ascii=False)}
                )
            reply = await self._complete(messages)

        text = unwrap_envelope(reply.content)
        self.conversations.append(user_id, user_message, {"role": "assistant", "content": text})
        return ChatReply(text=text, results=results, action=infer_action(text, results))

    async def chat(
        self,
        message: str,
        user_id: str = "anonymous",
        user_location: GeoPoint | None = None,
        now_utc: datetime | None = None,
    ) -> ChatReply:
        if self.client is None:
            logger.warning("Chat requested but no AI provider is configured")
            return ChatReply(text=APOLOGY_TEXT)
        try:
            return await self._converse(user_id, message, user_location, now_utc or utcnow())
        except (OpenAIError, OpenNowError, ValueError, KeyError, IndexError, AttributeError):
            logger.exception("Chat turn failed for user %s", user_id)
            return ChatReply(text=APOLOGY_TEXT)


def build_ai_client(settings: Settings) -> AsyncOpenAI | None:
    if not settings.ai_api_key:
        return None
    return AsyncOpenAI(api_key=settings.ai_api_key, base_url=settings.ai_base_url)
