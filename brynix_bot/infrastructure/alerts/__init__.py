from .webhook import AlertNotifier

__all__ = ["AlertNotifier"]
