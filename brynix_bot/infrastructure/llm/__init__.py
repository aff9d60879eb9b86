from .reply_service import ReplyService, APOLOGY_REPLY, EMPTY_REPLY

__all__ = ["ReplyService", "APOLOGY_REPLY", "EMPTY_REPLY"]
