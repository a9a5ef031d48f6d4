# app.py (root of the project)
import logging
import os

from slotbooker import create_app

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()

if __name__ == "__main__":
    debug = os.environ.get("FLASK_ENV") != "production"
    # the reloader would start a second sweeper and mail worker
    app.run(debug=debug, use_reloader=False, port=int(os.environ.get("PORT", "5000")))
