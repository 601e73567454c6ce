"""Storyboard scene generation service."""
