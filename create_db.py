# create_db.py
from slotbooker import create_app
from slotbooker.sqlite_db import init_db

app = create_app({"SWEEPER_ENABLED": False})

with app.app_context():
    init_db()
    print(f"Database initialized at {app.config['DATABASE_PATH']}.")
