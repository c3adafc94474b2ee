from .prefix import CommandDispatcher, parse_command, CommandSyntaxError
from .events import EventHandlers
from .survey import TriggerListener, make_trigger_resolver

__all__ = [
    'CommandDispatcher',
    'parse_command',
    'CommandSyntaxError',
    'EventHandlers',
    'TriggerListener',
    'make_trigger_resolver',
]
