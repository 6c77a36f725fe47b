"""
extensions.py — Flask extension singletons.

Created here without an app and bound inside the factory with init_app(),
so any module can import them without a circular dependency:

    from backend.cartpool.extensions import db, ma

Schema classes in cartpool/schemas/ inherit from marshmallow.Schema, not
ma.Schema: ma.Schema needs an active application context, and the unit
tests load schemas without one.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ma = Marshmallow()
