# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - whatsapp/:    Selenium-based WhatsApp Web automation
# - llm/:         OpenAI-compatible reply generation
# - sheets/:      Google Sheets project data
# - drive/:       Google Drive attachment storage
# - tts/:         Google Cloud Text-to-Speech
# - alerts/:      Outbound webhook notifications
# - persistence/: Conversation link / mute store
# - config/:      Environment and settings management
