"""Attendance spreadsheet import and per-employee time balance summaries."""
