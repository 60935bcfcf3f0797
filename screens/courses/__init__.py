# screens/courses/__init__.py
"""
Courses Module

Courses with their cover images and sections.

Main components:
- db: CourseManager, SectionManager (store access, validation, image handling)
- page: Streamlit UI (main entry point)
"""
