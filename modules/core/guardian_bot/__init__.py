from .bot import GuardianBot

__all__ = ["GuardianBot"]
