#!/usr/bin/env python3
"""
Start the Memory Studio API server.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from memstudio.core.config import HOST, PORT, debug_enabled


def main():
    parser = argparse.ArgumentParser(description='Serve the Memory Studio API')
    parser.add_argument('--host', default=HOST,
                        help=f'Host to bind to (default: {HOST})')
    parser.add_argument('--port', type=int, default=PORT,
                        help=f'Port to serve on (default: {PORT})')
    parser.add_argument('--reload', action='store_true',
                        help='Reload on code changes (development only)')
    args = parser.parse_args()

    print(f"🧠 Memory Studio API: http://{args.host}:{args.port}/api/v1")
    if debug_enabled():
        print(f"🔧 Debug mode enabled - docs at http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "memstudio.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if debug_enabled() else "info",
    )


if __name__ == "__main__":
    main()
