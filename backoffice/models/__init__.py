"""
Back-Office Approval Platform
Model package — shared Flask-SQLAlchemy handle.

Every model module imports ``db`` from here:

    from backoffice.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
