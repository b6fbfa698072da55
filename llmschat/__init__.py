"""
llmschat application package.

This package contains the desktop UI, the SQLite-backed catalog and chat
history, and the provider clients that stream replies from hosted LLMs.
"""

from .config import AppConfig
