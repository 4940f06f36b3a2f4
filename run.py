"""Local development entry point.

Usage:
    python run.py

Loads .env, builds the app with FLASK_ENV (default: development) and
serves it on port 5001.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from app import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
