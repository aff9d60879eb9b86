from .tts_service import TextToSpeechService, AudioClip

__all__ = ["TextToSpeechService", "AudioClip"]
