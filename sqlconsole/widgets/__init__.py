"""Widget library for the Textual UI."""

from __future__ import annotations

from .dialogs import CredentialsScreen, FileNameScreen
from .profile_list import ProfileList
from .results_view import ResultsView
from .sql_editor import SqlEditor
from .status_bar import StatusBar

__all__ = ["CredentialsScreen", "FileNameScreen", "ProfileList", "ResultsView", "SqlEditor", "StatusBar"]
