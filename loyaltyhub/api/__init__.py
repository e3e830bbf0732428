"""
API blueprints for Loyalty Hub.
"""
