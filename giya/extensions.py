"""
Flask extensions initialization.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_compress import Compress

# Database
db = SQLAlchemy()

# Migrations
migrate = Migrate()

# Response compression
compress = Compress()
