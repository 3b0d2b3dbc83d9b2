"""
REST API blueprints for Giya. Registered in giya.register_blueprints().
"""
