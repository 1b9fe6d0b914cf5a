"""Nutrition Portal - Two-phase officer provisioning."""
