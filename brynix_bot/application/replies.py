"""
Reply Templates - WhatsApp Cards and Message Chunking
======================================================

All user-facing text lives here so handlers stay focused on data access.
WhatsApp markup: *bold*, _italic_.
"""

from typing import Iterable, List, Optional

from ..domain.tasks import BriefSummary, StatusSummary, TaskRow

OK = "✅"
WARN = "⚠️"
NO = "❌"

UNMUTED_REPLY = "_voltei a falar 😉_"
MUTED_REPLY = "_ok, fico em silêncio até /mute off_"
TECHNICAL_ERROR_REPLY = "Dei uma engasgada técnica aqui. Pode reenviar?"

SETUP_USAGE = f"{WARN} Use: /setup <sheetId|url> | <Nome do Projeto>"
LINK_REQUIRED_FOR_MEDIA = f"{WARN} Vincule o projeto: /setup <sheetId|url> | <Nome>"
LINK_REQUIRED = f"{WARN} Vincule o projeto antes: /setup <sheetId|url> | <Nome>"
NOTE_USAGE = f"{WARN} Escreva a nota: /note <texto>"
TTS_UNAVAILABLE = f"{WARN} TTS indisponível no momento."
DRIVE_FAILED = f"{NO} Não consegui salvar no Drive."

NO_LATE_TASKS = "Sem atrasadas. 👌"
NO_UPCOMING_TASKS = "Nenhuma tarefa para hoje/amanhã."

DEFAULT_AUDIO_TEXT = "Teste de voz da Alice em português do Brasil. Tudo certo por aqui!"


def bold(text: str) -> str:
    return f"*{text}*"


def italic(text: str) -> str:
    return f"_{text}_"


def failure(action: str) -> str:
    """Short failure notice, e.g. ``failure("ler a planilha")``."""
    return f"{NO} Não consegui {action}."


# ── Cards ─────────────────────────────────────────────────────────

def menu_card(project_name: Optional[str] = None) -> str:
    title = f"🧭 {bold(project_name or 'Assistente de Projeto')} — Painel Rápido"
    return "\n".join([
        title,
        "",
        f"*1)* 📊 {bold('Resumo')}  →  /summary  |  /brief",
        f"*2)* ⏭️ {bold('Próximos')}  →  /next",
        f"*3)* ⏱️ {bold('Atrasadas')} →  /late",
        f"*4)* 🔔 {bold('Lembrete agora')} →  /remind now",
        f"*5)* 📝 {bold('Nota rápida')}  →  /note <texto>",
        f"*6)* 👥 {bold('Pessoas')}      →  /who",
        f"*7)* 🤫 {bold('Silenciar')}     →  /mute on   ( /mute off para voltar )",
        "",
        italic("Dica: mencione-me naturalmente:"),
        "• @Alice o que vence hoje?",
        "• @Alice resumo curto",
        "• @Alice enviar lembrete agora",
    ])


def help_card(project_name: Optional[str] = None) -> str:
    title = f"{project_name} — Assistente de Projeto" if project_name else "Assistente de Projeto"
    return "\n".join([
        bold(title),
        "",
        bold("Como falar comigo"),
        "• No grupo: me mencione (ex.: @Alice) e fale natural.",
        "  Ex.: @Alice o que vence hoje?  •  @Alice resumo curto",
        "",
        bold("Atalhos"),
        "• /menu — painel rápido",
        "• /summary — resumo completo",
        "• /brief — resumo curto",
        "• /next — próximos (hoje/amanhã)",
        "• /late — atrasadas (top 8)",
        "• /remind now — dispara lembrete agora",
        "• /note <texto> — registra nota",
        "• /who — quem está no projeto",
        "• /mute on | /mute off — silencia/volta a falar",
        "",
        italic("Dica: envie anexos me mencionando; eu salvo no Drive do projeto."),
    ])


def intro_card() -> str:
    return "\n".join([
        bold("Olá! Eu sou a Alice 🤖✨"),
        f"Sou a assistente da {bold('BRYNIX')} para apoiar projetos.",
        f"• No {bold('1:1')} eu tiro dúvidas sobre a BRYNIX (ofertas, metodologia, cases).",
        f"• Em {bold('grupos de projeto')} eu ajudo com tarefas, lembretes, status, documentos e rotinas.",
        "",
        italic("Dica: no grupo, mencione-me com @Alice ou use /menu para ver atalhos."),
    ])


def setup_confirmation(sheet_id: str, project_name: str) -> str:
    return (
        f"{OK} {bold('Projeto vinculado!')}\n"
        f"• Planilha: {sheet_id}\n"
        f"• Nome: {project_name}\n\n"
        f"{italic('Dica: /menu para o painel rápido')}"
    )


def unlink_confirmation(project_name: Optional[str]) -> str:
    if not project_name:
        return f"{WARN} Este grupo não tem projeto vinculado."
    return f"{OK} Projeto {bold(project_name)} desvinculado deste grupo."


def upload_confirmation(project_name: str, url: str) -> str:
    return f"{OK} Arquivo salvo em {bold(project_name)}.\n🔗 {url}"


def note_confirmation(note: str) -> str:
    return f"{OK} Nota registrada: {note}"


# ── Task views ────────────────────────────────────────────────────

def _task_line(task: TaskRow) -> str:
    owner = italic(f"({task.assignee})") if task.assignee else ""
    return f"• {task.title} {owner}".rstrip()


def format_status_summary(summary: StatusSummary) -> str:
    title = summary.project_name or "Projeto"
    counts = "\n".join(f"• {status}: {n}" for status, n in summary.by_status)
    preview = "\n".join(
        f"- {t.title} ({t.assignee or 's/resp'})" for t in summary.open_preview
    ) or "Nenhuma aberta."
    return (
        f"*{title} — Status*\n"
        f"Total de tarefas: {summary.total}\n"
        f"{counts or '• (sem distribuição)'}\n\n"
        f"*Abertas (amostra):*\n{preview}"
    )


def format_full_summary(summary: StatusSummary) -> str:
    return format_status_summary(summary) + "\n" + italic("Dica: @Alice resumo curto  •  /menu")


def format_brief_summary(summary: BriefSummary) -> str:
    top = "\n".join(f"• {status}: {n}" for status, n in summary.top_statuses) or "• Sem dados"
    return "\n".join([
        bold(f"{summary.project_name} — Resumo Rápido"),
        f"Total de tarefas: {summary.total}",
        top,
        f"Atrasadas: {summary.overdue_count}",
        italic("Dica: @Alice resumo completo  •  /summary"),
    ])


def format_weekly_wrap(summary: StatusSummary) -> str:
    return f"*{summary.project_name} — Fechamento semanal*\n\n" + format_status_summary(summary)


def format_task_list(title: str, tasks: Iterable[TaskRow], empty_text: str) -> str:
    lines = "\n".join(_task_line(t) for t in tasks)
    return f"{bold(title)}\n{lines or empty_text}"


def format_participants(project_name: str, names: List[str]) -> str:
    header = bold(f"{project_name} — Membros do projeto")
    if not names:
        return f"{header}\n{italic('Nenhum participante encontrado na planilha.')}"
    return header + "\n" + "\n".join(f"• {name}" for name in names)


# ── Chunking ──────────────────────────────────────────────────────

def chunk_text(text: str, limit: int = 3500) -> List[str]:
    """
    Split ``text`` into parts of at most ``limit`` characters.

    Breaks on line boundaries and keeps the order; only a single line
    longer than ``limit`` is hard-split. Joining the parts with newlines
    gives back the original text.
    """
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    current: List[str] = []
    size = 0
    for line in text.split("\n"):
        pieces = [line[i:i + limit] for i in range(0, len(line), limit)] or [""]
        for piece in pieces:
            added = len(piece) + (1 if current else 0)
            if current and size + added > limit:
                chunks.append("\n".join(current))
                current, size = [], 0
                added = len(piece)
            current.append(piece)
            size += added

    if current:
        chunks.append("\n".join(current))
    return chunks
