"""
Services module for business logic separation.

This module contains the affiliate redirect pipeline (link resolution,
bot and fraud heuristics, session cookies, click recording, redirect
orchestration) plus the admin-side link generation and statistics services,
keeping them separate from API endpoints and database models.
"""
