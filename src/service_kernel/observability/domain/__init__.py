from .logging import LEVELS, LogMessage, level_rank

__all__ = ["LEVELS", "LogMessage", "level_rank"]
