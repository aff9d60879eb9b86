"""
Reply Service - LLM Replies for 1:1 Conversations
==================================================

ARCHITECTURAL DECISION:
- Any OpenAI-compatible chat completions endpoint (OpenAI, OpenRouter, ...)
- Plain HTTP via requests; no vendor SDK
- Never raises: failures become a fixed apology string

Tone: executive, direct, cordial, light humour. Keeps the focus on BRYNIX
and redirects politely when asked about unrelated topics.
"""

import logging
from typing import Optional

import requests

from ..config import LLMSettings, get_settings

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """
Você é o **Assistente BRYNIX**.

Estilo: executivo, claro, cordial, com leve humor.
Regra de ouro: sempre que possível, traga utilidade prática (próximos passos, checklist,
sugestões objetivas). Evite respostas longas demais se não agregarem valor.

Escopo prioridade: BRYNIX (empresa, ofertas, automações, projetos, metodologia, exemplos),
organização de atividades de projeto e comunicação com cliente.
Se a pergunta estiver claramente fora desse escopo, redirecione com elegância:
explique que o foco é BRYNIX e projetos, e faça uma ponte útil.
""".strip()

APOLOGY_REPLY = "Tive um problema técnico com a IA agora há pouco. Pode reenviar sua mensagem?"
EMPTY_REPLY = "Certo! Consegue me dar um pouco mais de contexto para eu te ajudar melhor?"


class ReplyService:
    """
    Generates free-text replies through a chat completion API.

    USAGE:
        service = ReplyService()
        text = service.generate_reply("Quais serviços vocês oferecem?",
                                      {"sender_id": "5511...@c.us", "display_name": "Ana"})
    """

    def __init__(self, settings: Optional[LLMSettings] = None, session: Optional[requests.Session] = None):
        settings = settings or get_settings().llm
        self._api_key = settings.api_key
        self._api_url = settings.api_url
        self._model = settings.model
        self._temperature = settings.temperature
        self._max_tokens = settings.max_tokens
        self._timeout = settings.timeout_seconds
        self._session = session or requests.Session()

        if not self._api_key:
            logger.warning("No OPENAI_API_KEY set. 1:1 replies will use the fallback text.")

    @staticmethod
    def build_user_prompt(user_text: str, context: Optional[dict] = None) -> str:
        context = context or {}
        who = context.get("display_name") or context.get("sender_id") or "usuário"
        return f'Mensagem de {who}: "{user_text}"'

    def generate_reply(self, user_text: str, context: Optional[dict] = None) -> str:
        """
        Generate a reply for a private message.

        Args:
            user_text: Message body as typed by the user.
            context: Sender details (sender_id, display_name).

        Returns:
            Reply text; the apology string when the API fails.
        """
        if not self._api_key:
            return APOLOGY_REPLY

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self.build_user_prompt(user_text, context)},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

        try:
            response = self._session.post(
                self._api_url,
                headers=headers,
                json=payload,
                timeout=self._timeout,
            )
            response.raise_for_status()
            content = self._extract_response_content(response.json())
            return content or EMPTY_REPLY

        except requests.Timeout:
            logger.warning("LLM API timeout")
            return APOLOGY_REPLY

        except requests.RequestException as e:
            logger.warning(f"LLM API error: {e}")
            return APOLOGY_REPLY

        except Exception as e:
            logger.exception(f"Unexpected error in LLM call: {e}")
            return APOLOGY_REPLY

    def _extract_response_content(self, data: dict) -> str:
        """Extract text content from API response."""
        try:
            choices = data.get("choices", [])
            if choices:
                message = choices[0].get("message", {})
                return (message.get("content") or "").strip()
        except (KeyError, IndexError, TypeError, AttributeError):
            pass
        return ""
