# BRYNIX Bot - WhatsApp Project Assistant
# =======================================
# Answers project questions in WhatsApp groups from a linked Google Sheet,
# stores attachments in Google Drive and chats 1:1 through an LLM.
#
# ARCHITECTURE LAYERS:
# - Presentation:   FastAPI health/QR/status endpoints (web/)
# - Application:    Command routing, handlers, connection supervision, reminders
# - Domain:         Intent classification and task views (no external dependencies)
# - Infrastructure: External services (WhatsApp Web, LLM, Sheets, Drive, TTS)
#
# Infrastructure pieces are injected into the application layer, so tests and
# alternate backends can replace them without touching routing logic.

__version__ = "1.0.0"
