# Overview: Flask extension instances for the document database and its migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Document bodies are handed to change-feed subscribers right after commit;
# keep loaded rows readable without a refresh round-trip.
db = SQLAlchemy(session_options={"expire_on_commit": False})
migrate = Migrate()
