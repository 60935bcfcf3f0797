# screens/announcements/__init__.py
"""
Announcements Module

List, search, create, edit, activate/deactivate and delete portal
announcements, including their optional banner image.

Main components:
- db: AnnouncementManager (store access, validation, image upload/cleanup)
- page: Streamlit UI (main entry point)
"""
