"""Nutrition Portal - Voucher submission and verification."""
