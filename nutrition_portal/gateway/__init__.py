"""Nutrition Portal - Request gate: RBAC, anti-forgery and security middleware."""
