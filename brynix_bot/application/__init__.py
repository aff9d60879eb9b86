# Application Layer
# =================
# Wires the domain to the infrastructure: message routing, project handlers,
# reply templates, connection supervision and scheduled reminders.

from .handlers import ProjectHandlers
from .router import CommandRouter
from .scheduler import ReminderScheduler
from .supervisor import ConnectionState, ConnectionSupervisor, ReinitRateLimiter
from .bot import BrynixBot, build_bot

__all__ = [
    "ProjectHandlers",
    "CommandRouter",
    "ReminderScheduler",
    "ConnectionState",
    "ConnectionSupervisor",
    "ReinitRateLimiter",
    "BrynixBot",
    "build_bot",
]
