# screens/dashboard/__init__.py
"""
Dashboard Module

Summary counts and recent activity across the four manager screens.
"""
