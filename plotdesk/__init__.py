"""Plotdesk - account and session backend for an interactive fiction CMS."""
