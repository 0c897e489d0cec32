"""Moderation package: report lifecycle, trust policy and admin actions."""
