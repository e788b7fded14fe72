"""
Vercel entry point for the draftdesk API
"""
import sys
import os

# Add the src directory to path
src_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src")
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")

from mangum import Adapter
from draftdesk.main import app

# Lifespan wires the pipeline into app.state, so it stays on
handler = Adapter(app, lifespan="auto")
