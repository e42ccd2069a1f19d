"""Shared test doubles for the session flow collaborators."""
