"""Service layer for Karat.

Provides persistence and business operations used by the chat pipeline:
conversations, actions, customers, invoices, firm profiles, audit
logging and rate limiting.
"""
