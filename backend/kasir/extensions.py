# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# db.session is scoped to the app context: each request, CLI command and
# worker thread gets its own session and connection.
db = SQLAlchemy()
migrate = Migrate()
