"""
Storefront API: stock, menu availability, orders and loyalty coupons.
"""
