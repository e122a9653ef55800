"""Clinic chat: team chat backend for a dental clinic.

Staff sign in with Google, create or join rooms by invite code, exchange
text and image messages with read receipts, and request AI summaries of
a room's recent conversation.
"""
