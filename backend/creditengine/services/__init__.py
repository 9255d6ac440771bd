"""
ShipShow credit service layer.

Ledger, viewing-session, purchase and boost services over the shared
SQLAlchemy session.
"""
