"""
AI Chat Router.

Routes chat and task requests to backend models and keeps the ordered
turn history that multi-turn conversations depend on.
"""

__version__ = "0.1.0"
