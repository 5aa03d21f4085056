"""
DairyFlow – development entry point.

    python run.py                    # development config
    FLASK_CONFIG=production python run.py
"""
import os

from dairyflow import create_app

app = create_app(os.environ.get("FLASK_CONFIG", "development"))

if __name__ == "__main__":
    app.run(
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "5000")),
    )
