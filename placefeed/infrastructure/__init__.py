"""Infrastructure Layer: database access, SQL compilation, image host client, logging.

Invariants:
    - May import core/ types and errors; core/ never imports from here
    - External calls wrapped with retry and error mapping
"""
