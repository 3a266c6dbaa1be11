"""Outward module (waste dispatched to cement companies through transporters)."""
