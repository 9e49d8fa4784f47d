# Overview: Flask extension instances for database, migrations, and branch publishing.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .realtime import BranchPublisher

db = SQLAlchemy()
migrate = Migrate()
publisher = BranchPublisher()
