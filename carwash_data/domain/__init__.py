"""
Domain layer - Entities, query types and the error taxonomy.

Independent of where the data comes from.
"""
