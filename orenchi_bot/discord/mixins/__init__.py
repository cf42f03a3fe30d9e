from .commands_mixin import CommandsMixin
from .message_mixin import MessageMixin
from .workers_mixin import WorkersMixin

__all__ = [
    "CommandsMixin",
    "MessageMixin",
    "WorkersMixin",
]
