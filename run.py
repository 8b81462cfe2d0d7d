"""Local development entry point for LiftFlow.

Usage:
    python run.py
    PORT=5050 python run.py

Loads .env, re-launches under ./venv if it exists and we are not already
in it, then serves the app with the Flask dev server. Stripe webhooks for
local testing:

    stripe listen --forward-to localhost:5000/stripe/webhooks
"""

import os
import sys
import subprocess

# ── Re-exec under the project virtualenv ──
_project_dir = os.path.dirname(os.path.abspath(__file__))
_venv_python = os.path.join(_project_dir, "venv", "bin", "python")

if os.path.exists(_venv_python) and os.path.realpath(sys.executable) != os.path.realpath(_venv_python):
    print("[run.py] Re-launching with venv Python...")
    try:
        sys.exit(subprocess.call([_venv_python] + sys.argv))
    except KeyboardInterrupt:
        sys.exit(0)

# ── Startup ──
from dotenv import load_dotenv

load_dotenv()  # SECRET_KEY, DATABASE_URL, STRIPE_* must be set before create_app

from liftflow import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
