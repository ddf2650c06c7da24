"""Storefront back-office: supplier catalog synchronization service."""
