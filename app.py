# app.py
# WSGI entrypoint: `flask --app app run`
import logging, os

from core import create_app

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
app = create_app()

# Local dev entrypoint
if __name__ == "__main__":
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1", port=int(os.environ.get("PORT", 5000)))
