"""
Storefront services: domain logic, catalog defaults and event delivery.
"""
