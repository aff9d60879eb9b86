"""
Intent Classifier - Regex/Keyword Intent Detection (PT-BR)
===========================================================

Turns a chat message into one of a fixed set of bot actions.

DESIGN:
- Rules are an ordered table of (intent, pattern, extractor); first match wins
- Slash commands are checked before natural language
- Matching runs on accent-stripped, lower-cased text; captured arguments
  are taken from the original text so their casing survives

USAGE:
    result = classify("@Alice resumo curto")
    result.intent    # Intent.SUMMARY_BRIEF
"""

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional


class Intent(Enum):
    """Discrete actions the bot can take for a message."""
    HELP = "HELP"
    SUMMARY = "SUMMARY"
    SUMMARY_BRIEF = "SUMMARY_BRIEF"
    NEXT = "NEXT"
    LATE = "LATE"
    REMIND_NOW = "REMIND_NOW"
    NOTE = "NOTE"
    WHO = "WHO"
    MUTE_ON = "MUTE_ON"
    MUTE_OFF = "MUTE_OFF"
    NONE = "NONE"


# Intents that read the linked spreadsheet
DATA_INTENTS = frozenset({
    Intent.SUMMARY,
    Intent.SUMMARY_BRIEF,
    Intent.NEXT,
    Intent.LATE,
    Intent.REMIND_NOW,
    Intent.NOTE,
    Intent.WHO,
})


@dataclass(frozen=True)
class IntentResult:
    """Classification of a single message. Never persisted."""
    intent: Intent
    argument: str = ""

    @property
    def matched(self) -> bool:
        return self.intent is not Intent.NONE


Extractor = Callable[[str], str]


@dataclass(frozen=True)
class IntentRule:
    intent: Intent
    pattern: "re.Pattern[str]"
    extractor: Optional[Extractor] = None

    def match(self, normalized: str, raw: str) -> Optional[IntentResult]:
        if not self.pattern.search(normalized):
            return None
        argument = self.extractor(raw) if self.extractor else ""
        return IntentResult(self.intent, argument)


def normalize(text: str) -> str:
    """NFD-decompose, drop combining marks, lower-case and trim."""
    decomposed = unicodedata.normalize("NFD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


def is_command(text: str) -> bool:
    return (text or "").strip().startswith("/")


def _capture(pattern: str) -> Extractor:
    """Build an extractor returning the ``arg`` group of ``pattern`` on the raw text."""
    compiled = re.compile(pattern, re.IGNORECASE | re.DOTALL)

    def extract(raw: str) -> str:
        match = compiled.search(raw)
        if not match:
            return ""
        return (match.group("arg") or "").strip()

    return extract


def _rule(intent: Intent, pattern: str, extractor: Optional[Extractor] = None) -> IntentRule:
    return IntentRule(intent, re.compile(pattern), extractor)


# The leading slash is optional: "@Alice next" works like "/next"
SLASH_RULES: List[IntentRule] = [
    _rule(Intent.MUTE_OFF, r"^/?(mute|silencio)\s*off\b"),
    _rule(Intent.MUTE_ON, r"^/?(mute|silencio)\s*on\b"),
    _rule(Intent.HELP, r"^/?(menu|help|ajuda)\b"),
    _rule(Intent.SUMMARY_BRIEF, r"^/?brief\b"),
    _rule(Intent.SUMMARY, r"^/?(summary|resumo)\b"),
    _rule(Intent.NEXT, r"^/?next\b"),
    _rule(Intent.LATE, r"^/?late\b"),
    _rule(Intent.REMIND_NOW, r"^/?remind\s+now\b"),
    _rule(Intent.NOTE, r"^/note\b", _capture(r"^\s*/note\b[:\-\s]*(?P<arg>.*)$")),
    _rule(Intent.WHO, r"^/?who\b"),
]

NATURAL_RULES: List[IntentRule] = [
    _rule(
        Intent.MUTE_OFF,
        r"\b(silencio\s*off|tirar (o )?silencio|voltar a falar|desmutar)\b",
    ),
    _rule(
        Intent.MUTE_ON,
        r"\b(silencio\s*on|silenciar( o)? bot|fica(r)? em silencio|fique em silencio|mutar)\b",
    ),
    _rule(
        Intent.HELP,
        r"^menu\b|\b(ajuda|help|como funciona|o que voce faz|o que vc faz|manual|tutorial)\b",
    ),
    _rule(Intent.SUMMARY_BRIEF, r"\b(resumo (curto|rapido|breve)|status rapido)\b"),
    _rule(Intent.SUMMARY, r"\b(resumo completo|status completo|status geral|relatorio completo)\b"),
    _rule(Intent.SUMMARY, r"\b(resumo|status|como estamos|panorama)\b"),
    _rule(
        Intent.NEXT,
        r"\b(o que vence hoje|entregas de hoje|prazo de hoje|para hoje|hoje|amanha|proxim[ao]s?)\b",
    ),
    _rule(Intent.LATE, r"\b(atrasad[ao]s?|em atraso|pendencias atrasadas)\b"),
    _rule(Intent.REMIND_NOW, r"\b(dispara(r)? (o )?lembrete agora|lembrete agora)\b"),
    _rule(
        Intent.NOTE,
        r"\b(anota(r)?|registra(r)? (uma )?nota|cria(r)? (uma )?nota)\b",
        _capture(
            r"\b(?:anota(?:r)?|registra(?:r)? (?:uma )?nota|cria(?:r)? (?:uma )?nota)\b"
            r"[:\-\s]*(?P<arg>.*)$"
        ),
    ),
    _rule(
        Intent.WHO,
        r"\b(participantes|membros|quem faz parte|quem esta( no projeto)?|pessoas do projeto)\b",
    ),
]

RULES: List[IntentRule] = SLASH_RULES + NATURAL_RULES


def classify(text: str, rules: Optional[List[IntentRule]] = None) -> IntentResult:
    """
    Classify a message into an IntentResult.

    Args:
        text: Raw message body (mention tokens may still be present).
        rules: Optional rule table override, evaluated in order.

    Returns:
        The first matching IntentResult, or Intent.NONE.
    """
    raw = (text or "").strip()
    normalized = normalize(raw)

    for rule in rules if rules is not None else RULES:
        result = rule.match(normalized, raw)
        if result is not None:
            return result

    return IntentResult(Intent.NONE)
