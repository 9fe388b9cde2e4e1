"""
Core modules for AI Chat Router.

This package contains model catalog access, routing, context assembly
and conversation orchestration.
"""
