"""
Configuration for the Mail Agent Teams Bot.
"""
from .settings import BotSettings, get_settings, DEFAULT_AGENT_NAME, TOKEN_SCOPE

__all__ = ['BotSettings', 'get_settings', 'DEFAULT_AGENT_NAME', 'TOKEN_SCOPE']
