#!/usr/bin/env python3
"""Run the Scaffolder API server."""

import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn
from api.app import create_app

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=3001,
        reload=True,
        reload_dirs=[str(Path(__file__).parent / "src")],
    )
