from .gateway import CommandGateway, CommandResult
from .listing import LunarDisplayRecord, match_record, parse_displays_listing


__all__ = [
    "CommandGateway",
    "CommandResult",
    "LunarDisplayRecord",
    "match_record",
    "parse_displays_listing",
]
