# app/core/forms.py
from __future__ import annotations
import streamlit as st

from core.errors import StoreError, ValidationError
from core.notify import ERROR, SUCCESS, WARNING, Notifier


def render_notifications(notifier: Notifier) -> None:
    """Show and clear queued notifications as toasts."""
    icons = {SUCCESS: "✅", ERROR: "❌", WARNING: "⚠️"}
    for event in notifier.drain():
        st.toast(event.message, icon=icons.get(event.level))

def show_field_errors(err: ValidationError) -> None:
    for field, message in err.errors.items():
        st.error(f"**{field.replace('_', ' ').title()}**: {message}")

def show_store_error(err: StoreError, what: str) -> None:
    st.error(f"{what}: {err.message}")
    if err.hint:
        st.caption(f"Hint: {err.hint}")
