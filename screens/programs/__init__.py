# screens/programs/__init__.py
"""
Programs Module

Academic programs with a generated, immutable program code.

Main components:
- codes: generate_program_code (pure code generator)
- db: ProgramManager (store access, validation, uniqueness)
- page: Streamlit UI (main entry point)
"""
