"""
Nutrition Portal

Back end for the school nutrition programme dashboards: credential store,
bearer and anti-forgery tokens, request gate, officer provisioning and
voucher routing.
"""

__version__ = "0.1.0"
