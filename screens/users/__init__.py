# screens/users/__init__.py
"""
Users Module

Portal user profiles (every role except superadmin) and instructor
subject assignments.

Main components:
- db: UserManager, TeacherSubjectResolver
- page: Streamlit UI (main entry point)
"""
