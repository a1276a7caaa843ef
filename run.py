"""
Run the MarketStructure application
"""
import logging
import os, sys

# Ensure cwd is the directory containing this script so that the
# `marketstructure` package is importable regardless of where we're invoked from.
_here = os.path.dirname(os.path.abspath(__file__))
os.chdir(_here)
if _here not in sys.path:
    sys.path.insert(0, _here)

import uvicorn
from marketstructure.config import settings

if __name__ == "__main__":
    is_dev = settings.ENVIRONMENT == "development"
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"""
    ╔═══════════════════════════════════════════╗
    ║        MarketStructure v1.0               ║
    ║        Structure & Positioning Analytics  ║
    ╠═══════════════════════════════════════════╣
    ║  Server starting at:                      ║
    ║  http://{settings.HOST}:{settings.PORT}                   ║
    ╚═══════════════════════════════════════════╝
    """)

    uvicorn.run(
        "marketstructure.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=is_dev,
    )
