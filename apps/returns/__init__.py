"""
Returns app: customer returns and exchanges against completed sales.
"""
